from dataclasses import dataclass, field
from datetime import time


@dataclass(frozen=True)
class OpenRange:
    start: time
    end: time


@dataclass(frozen=True)
class BookingRules:
    """Admin-tunable booking configuration, read on every request."""

    slot_minutes: int = 45
    open_ranges: tuple[OpenRange, ...] = field(default_factory=lambda: (OpenRange(time(9, 0), time(20, 0)),))
    max_per_day: int = 1
    max_per_week: int = 3
    max_active: int = 1


DEFAULT_RULES = BookingRules()
