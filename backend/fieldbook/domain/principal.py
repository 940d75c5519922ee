from dataclasses import dataclass

from ..models import UserRole


@dataclass(frozen=True)
class Principal:
    """Authenticated caller. Built from the users table, never from request bodies."""

    username: str
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
