from datetime import date, time

from ..domain.closures import find_closure
from ..domain.errors import (
    DayClosedError,
    FieldClosedError,
    InsufficientCreditError,
    SlotConflictError,
    UnauthorizedError,
    UnknownFieldError,
)
from ..domain.principal import Principal
from ..domain.repositories import ClosureRepository, Repositories, ReservationRepository
from ..domain.services import (
    ensure_active_quota,
    ensure_credits,
    ensure_daily_quota,
    ensure_not_past,
    ensure_on_grid,
    ensure_weekly_quota,
)
from ..models import Reservation
from ..utils.time import Clock, week_bounds


async def ensure_open(
    closures: ClosureRepository,
    *,
    field_id: str,
    day: date,
    slot_time: time,
) -> None:
    closed_day = await closures.get_closed_day(day)
    if closed_day is not None:
        raise DayClosedError("facility closed on this date", reason=closed_day.reason)
    window = find_closure(
        await closures.closed_slots_on(day, field_id),
        field_id=field_id,
        day=day,
        slot_time=slot_time,
    )
    if window is not None:
        raise FieldClosedError("field closed at this time", reason=window.reason)


async def try_book(
    repos: Repositories,
    *,
    clock: Clock,
    field_id: str,
    day: date,
    slot_time: time,
    principal: Principal,
) -> Reservation:
    """
    Validate and commit one booking. Checks run cheapest-first and stop at the
    first failure: slot shape, closures, credit, daily/weekly/active quotas,
    then uniqueness. Admins skip everything except the shape and uniqueness
    checks and are never debited.

    The caller owns the transaction: the insert and the debit must be
    committed together, and any raised error must roll both back.
    """
    rules = await repos.config.get_rules()
    if await repos.fields.get(field_id) is None:
        raise UnknownFieldError(f"unknown field {field_id!r}")
    ensure_on_grid(rules, slot_time)

    username = principal.username
    if not principal.is_admin:
        now = clock.now()
        ensure_not_past(day=day, slot_time=slot_time, now=now)
        await ensure_open(repos.closures, field_id=field_id, day=day, slot_time=slot_time)

        user = await repos.users.get(username)
        ensure_credits(user.credits if user is not None else 0)

        ensure_daily_quota(await repos.reservations.count_for_user_between(username, day, day), rules)
        monday, sunday = week_bounds(day)
        ensure_weekly_quota(await repos.reservations.count_for_user_between(username, monday, sunday), rules)
        ensure_active_quota(await repos.reservations.count_for_user_after(username, now.date()), rules)

    if await repos.reservations.exists_at(field_id, day, slot_time):
        raise SlotConflictError("slot already booked")

    reservation = await repos.reservations.create(
        field_id=field_id,
        day=day,
        slot_time=slot_time,
        username=username,
    )
    if not principal.is_admin and not await repos.users.debit_credit(username):
        raise InsufficientCreditError("credit balance changed during booking")
    return reservation


async def cancel_reservation(
    res_repo: ReservationRepository,
    *,
    reservation_id: int,
    principal: Principal,
) -> Reservation | None:
    """Delete a booking. Already gone is success (returns None); no credit is refunded."""
    reservation = await res_repo.get(reservation_id)
    if reservation is None:
        return None
    if not principal.is_admin and reservation.username != principal.username:
        raise UnauthorizedError("only the owner or an admin may cancel")
    await res_repo.delete(reservation)
    return reservation


async def list_reservations_for_date(res_repo: ReservationRepository, *, day: date) -> list[Reservation]:
    return await res_repo.list_for_date(day)


async def list_user_reservations(res_repo: ReservationRepository, *, username: str) -> list[Reservation]:
    return await res_repo.list_for_user(username)
