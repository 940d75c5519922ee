from datetime import time

from ..utils.time import minutes_to_time, time_to_minutes
from .rules import BookingRules


def generate_slot_times(rules: BookingRules) -> list[time]:
    """
    Ordered slot starts for one day. Each open range contributes starts from its
    own start time, stepping by the slot length, as long as the whole slot fits
    before the range end. Ranges are concatenated in configured order.
    """
    if rules.slot_minutes <= 0:
        raise ValueError("slot_minutes must be positive")
    starts: list[time] = []
    for open_range in rules.open_ranges:
        minute = time_to_minutes(open_range.start)
        end = time_to_minutes(open_range.end)
        while minute + rules.slot_minutes <= end:
            starts.append(minutes_to_time(minute))
            minute += rules.slot_minutes
    return starts
