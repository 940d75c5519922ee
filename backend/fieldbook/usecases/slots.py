from dataclasses import dataclass
from datetime import date, time
from typing import Optional

from ..domain.closures import find_closure
from ..domain.errors import UnknownFieldError
from ..domain.repositories import Repositories
from ..domain.slots import generate_slot_times


@dataclass(frozen=True)
class SlotState:
    time: time
    taken: bool
    closed: bool
    reason: Optional[str] = None
    reservation_id: Optional[int] = None
    username: Optional[str] = None


@dataclass(frozen=True)
class DayAvailability:
    day: date
    field_id: str
    day_closed: bool
    reason: Optional[str]
    slots: list[SlotState]


async def list_availability(repos: Repositories, *, day: date, field_id: str) -> DayAvailability:
    if await repos.fields.get(field_id) is None:
        raise UnknownFieldError(f"unknown field {field_id!r}")

    closed_day = await repos.closures.get_closed_day(day)
    if closed_day is not None:
        return DayAvailability(day=day, field_id=field_id, day_closed=True, reason=closed_day.reason, slots=[])

    rules = await repos.config.get_rules()
    windows = await repos.closures.closed_slots_on(day, field_id)
    booked = {
        reservation.time: reservation
        for reservation in await repos.reservations.list_for_date(day)
        if reservation.field_id == field_id
    }

    slots: list[SlotState] = []
    for start in generate_slot_times(rules):
        window = find_closure(windows, field_id=field_id, day=day, slot_time=start)
        reservation = booked.get(start)
        slots.append(
            SlotState(
                time=start,
                taken=reservation is not None,
                closed=window is not None,
                reason=window.reason if window is not None else None,
                reservation_id=reservation.id if reservation is not None else None,
                username=reservation.username if reservation is not None else None,
            )
        )
    return DayAvailability(day=day, field_id=field_id, day_closed=False, reason=None, slots=slots)
