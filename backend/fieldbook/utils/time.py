from datetime import date, datetime, time, timedelta, tzinfo
from typing import Protocol
from zoneinfo import ZoneInfo

DEFAULT_TZ = ZoneInfo("Europe/Rome")


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock in the facility's local timezone."""

    def __init__(self, tz: tzinfo = DEFAULT_TZ) -> None:
        self.tz = tz

    def now(self) -> datetime:
        return datetime.now(self.tz)


def time_to_minutes(t: time) -> int:
    return t.hour * 60 + t.minute


def minute_of_day(moment: datetime) -> int:
    return time_to_minutes(moment.time())


def minutes_to_time(minutes: int) -> time:
    if not 0 <= minutes < 24 * 60:
        raise ValueError("minutes must fall within a single day")
    return time(hour=minutes // 60, minute=minutes % 60)


def format_hhmm(t: time) -> str:
    return t.strftime("%H:%M")


def week_bounds(day: date) -> tuple[date, date]:
    """Monday..Sunday week containing `day`, both ends inclusive."""
    monday = day - timedelta(days=day.weekday())
    return monday, monday + timedelta(days=6)


def iter_days(start: date, end: date):
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
