from datetime import date, datetime, time

from ..utils.time import minute_of_day, time_to_minutes
from .errors import (
    ActiveQuotaExceededError,
    DailyQuotaExceededError,
    InsufficientCreditError,
    InvalidSlotError,
    SlotInPastError,
    WeeklyQuotaExceededError,
)
from .rules import BookingRules
from .slots import generate_slot_times


def ensure_on_grid(rules: BookingRules, slot_time: time) -> None:
    if slot_time not in generate_slot_times(rules):
        raise InvalidSlotError("time is not a bookable slot start")


def ensure_not_past(*, day: date, slot_time: time, now: datetime) -> None:
    today = now.date()
    if day < today:
        raise SlotInPastError("date is in the past")
    if day == today and time_to_minutes(slot_time) < minute_of_day(now):
        raise SlotInPastError("slot has already started")


def ensure_credits(balance: int) -> None:
    if balance <= 0:
        raise InsufficientCreditError("no credits left")


def ensure_daily_quota(count: int, rules: BookingRules) -> None:
    if count >= rules.max_per_day:
        raise DailyQuotaExceededError("daily booking limit reached")


def ensure_weekly_quota(count: int, rules: BookingRules) -> None:
    if count >= rules.max_per_week:
        raise WeeklyQuotaExceededError("weekly booking limit reached")


def ensure_active_quota(count: int, rules: BookingRules) -> None:
    if count >= rules.max_active:
        raise ActiveQuotaExceededError("active booking limit reached")
