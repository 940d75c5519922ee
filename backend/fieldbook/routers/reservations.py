import datetime as dt

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_clock, get_current_principal, get_reaper, get_session
from ..domain.errors import DomainError
from ..domain.principal import Principal
from ..domain.reaper import ExpiryReaper
from ..infrastructure.repositories import build_repositories
from ..schemas import OkResponse, ReservationCreate, ReservationList, ReservationRead, UserRead
from ..usecases import reservations as reservation_usecase
from ..utils.audit_log import AuditInitiator, emit_audit_log
from ..utils.time import Clock
from .common import audit_failed, reap_expired, to_http_exception

router = APIRouter(prefix="", tags=["reservations"])


def _initiator(principal: Principal) -> AuditInitiator:
    return "admin" if principal.is_admin else "user"


@router.get("/me", response_model=UserRead)
async def get_me(
    session: AsyncSession = Depends(get_session),
    principal: Principal = Depends(get_current_principal),
) -> UserRead:
    repos = build_repositories(session)
    user = await repos.users.get(principal.username)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="NOT_AUTHENTICATED")
    return UserRead.from_db(user=user)


@router.get("/me/reservations", response_model=ReservationList)
async def list_my_reservations(
    session: AsyncSession = Depends(get_session),
    principal: Principal = Depends(get_current_principal),
    reaper: ExpiryReaper = Depends(get_reaper),
) -> ReservationList:
    repos = build_repositories(session)
    await reap_expired(session, repos, reaper)
    rows = await reservation_usecase.list_user_reservations(repos.reservations, username=principal.username)
    return ReservationList(items=[ReservationRead.from_db(reservation=r) for r in rows])


@router.get("/reservations", response_model=ReservationList)
async def list_reservations(
    date: dt.date = Query(..., description="Calendar date (YYYY-MM-DD)"),
    session: AsyncSession = Depends(get_session),
    principal: Principal = Depends(get_current_principal),
    reaper: ExpiryReaper = Depends(get_reaper),
) -> ReservationList:
    repos = build_repositories(session)
    await reap_expired(session, repos, reaper)
    rows = await reservation_usecase.list_reservations_for_date(repos.reservations, day=date)
    return ReservationList(items=[ReservationRead.from_db(reservation=r) for r in rows])


@router.post("/reservations", response_model=ReservationRead, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    payload: ReservationCreate,
    session: AsyncSession = Depends(get_session),
    principal: Principal = Depends(get_current_principal),
    clock: Clock = Depends(get_clock),
    reaper: ExpiryReaper = Depends(get_reaper),
) -> ReservationRead:
    repos = build_repositories(session)
    await reap_expired(session, repos, reaper)

    # Insert and debit share this transaction; any exception rolls both back.
    async with session.begin():
        try:
            reservation = await reservation_usecase.try_book(
                repos,
                clock=clock,
                field_id=payload.field_id,
                day=payload.date,
                slot_time=payload.time,
                principal=principal,
            )
        except DomainError as exc:
            raise to_http_exception(exc) from exc
        try:
            emit_audit_log(
                action="reservation.created",
                initiator=_initiator(principal),
                actor=principal.username,
                reservation_id=reservation.id,
                field_id=reservation.field_id,
                day=reservation.date,
                slot_time=reservation.time,
                username=reservation.username,
                extra={"credits_debited": 0 if principal.is_admin else 1},
            )
        except RuntimeError as exc:
            raise audit_failed() from exc

    return ReservationRead.from_db(reservation=reservation)


@router.delete("/reservations/{reservation_id}", response_model=OkResponse)
async def delete_reservation(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    principal: Principal = Depends(get_current_principal),
) -> OkResponse:
    repos = build_repositories(session)
    async with session.begin():
        try:
            removed = await reservation_usecase.cancel_reservation(
                repos.reservations,
                reservation_id=reservation_id,
                principal=principal,
            )
        except DomainError as exc:
            raise to_http_exception(exc) from exc
        if removed is not None:
            try:
                emit_audit_log(
                    action="reservation.cancelled",
                    initiator=_initiator(principal),
                    actor=principal.username,
                    reservation_id=removed.id,
                    field_id=removed.field_id,
                    day=removed.date,
                    slot_time=removed.time,
                    username=removed.username,
                )
            except RuntimeError as exc:
                raise audit_failed() from exc
    return OkResponse()
