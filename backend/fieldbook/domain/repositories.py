from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time
from typing import Iterable, Protocol, Sequence

from ..models import ClosedDay, ClosedSlot, Field, Reservation, User
from .rules import BookingRules


class ReservationRepository(Protocol):
    async def get(self, reservation_id: int) -> Reservation | None: ...

    async def exists_at(self, field_id: str, day: date, slot_time: time) -> bool: ...

    async def create(self, *, field_id: str, day: date, slot_time: time, username: str) -> Reservation:
        """Insert only if the (field, date, time) key is free; raises SlotConflictError otherwise."""
        ...

    async def delete(self, reservation: Reservation) -> None: ...

    async def delete_many(self, reservation_ids: Sequence[int]) -> int: ...

    async def list_for_date(self, day: date) -> list[Reservation]: ...

    async def list_for_user(self, username: str) -> list[Reservation]: ...

    async def list_on_or_before(self, day: date) -> list[Reservation]: ...

    async def count_for_user_between(self, username: str, start: date, end: date) -> int: ...

    async def count_for_user_after(self, username: str, day: date) -> int: ...

    async def reassign_user(self, old_username: str, new_username: str) -> int: ...


class UserRepository(Protocol):
    async def get(self, username: str) -> User | None: ...

    async def list_all(self) -> list[User]: ...

    async def debit_credit(self, username: str) -> bool:
        """Atomically take one credit if the balance is positive; False when nothing was taken."""
        ...

    async def adjust_credits(self, username: str, delta: int) -> User | None: ...

    async def add_credits_all(self, amount: int) -> int: ...

    async def rename(self, old_username: str, new_username: str) -> None: ...

    async def set_disabled(self, username: str, disabled: bool) -> User | None: ...


class ConfigRepository(Protocol):
    async def get_rules(self) -> BookingRules: ...

    async def save_rules(self, rules: BookingRules) -> BookingRules: ...


class FieldRepository(Protocol):
    async def list_all(self) -> list[Field]: ...

    async def get(self, field_id: str) -> Field | None: ...

    async def replace_all(self, fields: Iterable[tuple[str, str]]) -> list[Field]: ...


class ClosureRepository(Protocol):
    async def list_closed_days(self) -> list[ClosedDay]: ...

    async def get_closed_day(self, day: date) -> ClosedDay | None: ...

    async def add_closed_days(self, days: Iterable[date], reason: str | None) -> list[ClosedDay]: ...

    async def delete_closed_day(self, day: date) -> bool: ...

    async def list_closed_slots(self) -> list[ClosedSlot]: ...

    async def closed_slots_on(self, day: date, field_id: str | None = None) -> list[ClosedSlot]: ...

    async def create_closed_slot(
        self,
        *,
        field_id: str,
        start_date: date,
        end_date: date,
        start_time: time,
        end_time: time,
        reason: str | None,
    ) -> ClosedSlot: ...

    async def delete_closed_slot(self, closed_slot_id: int) -> bool: ...


@dataclass(frozen=True)
class Repositories:
    reservations: ReservationRepository
    users: UserRepository
    config: ConfigRepository
    fields: FieldRepository
    closures: ClosureRepository
