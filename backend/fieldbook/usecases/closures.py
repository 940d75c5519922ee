from datetime import date, time, timedelta

from ..domain.closures import ALL_FIELDS, validate_window
from ..domain.errors import ClosedSlotNotFoundError, InvalidWindowError, UnknownFieldError
from ..domain.repositories import ClosureRepository, FieldRepository
from ..models import ClosedDay, ClosedSlot
from ..utils.time import iter_days

MAX_RANGE_DAYS = 366


async def list_closed_days(closures: ClosureRepository) -> list[ClosedDay]:
    return await closures.list_closed_days()


async def close_day(closures: ClosureRepository, *, day: date, reason: str | None) -> ClosedDay:
    stored = await closures.add_closed_days([day], reason)
    return stored[0]


async def close_day_range(
    closures: ClosureRepository,
    *,
    start_date: date,
    end_date: date,
    reason: str | None,
) -> list[ClosedDay]:
    if start_date > end_date:
        raise InvalidWindowError("start_date must not be after end_date")
    if end_date - start_date >= timedelta(days=MAX_RANGE_DAYS):
        raise InvalidWindowError(f"a closed range may span at most {MAX_RANGE_DAYS} days")
    return await closures.add_closed_days(iter_days(start_date, end_date), reason)


async def reopen_day(closures: ClosureRepository, *, day: date) -> bool:
    return await closures.delete_closed_day(day)


async def list_closed_slots(closures: ClosureRepository) -> list[ClosedSlot]:
    return await closures.list_closed_slots()


async def create_closed_slot(
    closures: ClosureRepository,
    fields: FieldRepository,
    *,
    field_id: str,
    start_date: date,
    end_date: date,
    start_time: time,
    end_time: time,
    reason: str | None,
) -> ClosedSlot:
    validate_window(start_date=start_date, end_date=end_date, start_time=start_time, end_time=end_time)
    if field_id != ALL_FIELDS and await fields.get(field_id) is None:
        raise UnknownFieldError(f"unknown field {field_id!r}")
    return await closures.create_closed_slot(
        field_id=field_id,
        start_date=start_date,
        end_date=end_date,
        start_time=start_time,
        end_time=end_time,
        reason=reason,
    )


async def delete_closed_slot(closures: ClosureRepository, *, closed_slot_id: int) -> None:
    if not await closures.delete_closed_slot(closed_slot_id):
        raise ClosedSlotNotFoundError("closed slot not found")
