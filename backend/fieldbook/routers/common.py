from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import (
    ConflictError,
    DomainError,
    InsufficientCreditError,
    MalformedRequestError,
    NotFoundError,
    QuotaExceededError,
    ResourceClosedError,
    SlotConflictError,
    UnauthorizedError,
)
from ..domain.reaper import ExpiryReaper
from ..domain.repositories import Repositories
from ..utils.audit_log import emit_audit_log

_STATUS_BY_KIND: list[tuple[type[DomainError], int]] = [
    (MalformedRequestError, status.HTTP_400_BAD_REQUEST),
    (UnauthorizedError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (InsufficientCreditError, status.HTTP_402_PAYMENT_REQUIRED),
    (ResourceClosedError, status.HTTP_409_CONFLICT),
    (QuotaExceededError, status.HTTP_409_CONFLICT),
    (SlotConflictError, status.HTTP_409_CONFLICT),
    (ConflictError, status.HTTP_409_CONFLICT),
]


def to_http_exception(exc: DomainError) -> HTTPException:
    for kind, status_code in _STATUS_BY_KIND:
        if isinstance(exc, kind):
            return HTTPException(status_code=status_code, detail=exc.code)
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.code)


def audit_failed() -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="AUDIT_LOG_FAILED")


async def reap_expired(session: AsyncSession, repos: Repositories, reaper: ExpiryReaper) -> int:
    """Run the reaper in its own transaction so a later rejection cannot undo it."""
    async with session.begin():
        deleted = await reaper.reap(repos.reservations, repos.config)
        if deleted:
            try:
                emit_audit_log(
                    action="reservation.expired",
                    initiator="system",
                    actor=None,
                    extra={"count": deleted},
                )
            except RuntimeError as exc:
                raise audit_failed() from exc
    return deleted
