from datetime import time

import pytest
from fieldbook.domain.rules import DEFAULT_RULES, BookingRules, OpenRange
from fieldbook.domain.slots import generate_slot_times


def _rules(slot_minutes: int, *ranges: tuple[time, time]) -> BookingRules:
    return BookingRules(slot_minutes=slot_minutes, open_ranges=tuple(OpenRange(s, e) for s, e in ranges))


def test_slot_must_fit_entirely_before_range_end() -> None:
    rules = _rules(45, (time(9, 0), time(11, 0)))
    assert generate_slot_times(rules) == [time(9, 0), time(9, 45)]


def test_exact_fit_includes_last_slot() -> None:
    rules = _rules(30, (time(9, 0), time(10, 0)))
    assert generate_slot_times(rules) == [time(9, 0), time(9, 30)]


def test_ranges_are_concatenated_in_order() -> None:
    rules = _rules(60, (time(18, 0), time(20, 0)), (time(9, 0), time(10, 0)))
    assert generate_slot_times(rules) == [time(18, 0), time(19, 0), time(9, 0)]


def test_range_shorter_than_slot_contributes_nothing() -> None:
    rules = _rules(90, (time(9, 0), time(10, 0)), (time(14, 0), time(15, 30)))
    assert generate_slot_times(rules) == [time(14, 0)]


def test_default_rules_grid() -> None:
    starts = generate_slot_times(DEFAULT_RULES)
    assert starts[0] == time(9, 0)
    assert starts[-1] == time(18, 45)
    assert len(starts) == 14


def test_non_positive_slot_length_rejected() -> None:
    with pytest.raises(ValueError):
        generate_slot_times(_rules(0, (time(9, 0), time(10, 0))))
