from __future__ import annotations

from datetime import date, time
from typing import Iterable, Protocol

from .errors import InvalidWindowError

ALL_FIELDS = "*"


class ClosureWindow(Protocol):
    field_id: str
    start_date: date
    end_date: date
    start_time: time
    end_time: time
    reason: str | None


def validate_window(*, start_date: date, end_date: date, start_time: time, end_time: time) -> None:
    if start_date > end_date:
        raise InvalidWindowError("start_date must not be after end_date")
    if start_time >= end_time:
        raise InvalidWindowError("start_time must be earlier than end_time")


def window_covers(window: ClosureWindow, *, field_id: str, day: date, slot_time: time) -> bool:
    if window.field_id != ALL_FIELDS and window.field_id != field_id:
        return False
    if not window.start_date <= day <= window.end_date:
        return False
    # Half-open: a window ending at 12:00 leaves the 12:00 slot bookable.
    return window.start_time <= slot_time < window.end_time


def find_closure(
    windows: Iterable[ClosureWindow],
    *,
    field_id: str,
    day: date,
    slot_time: time,
) -> ClosureWindow | None:
    for window in windows:
        if window_covers(window, field_id=field_id, day=day, slot_time=slot_time):
            return window
    return None
