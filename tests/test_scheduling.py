from datetime import time

import pytest

from clinic.core import scheduling


def test_abutting_intervals_do_not_overlap():
    a = scheduling.interval(time(9, 0), 30)
    b = scheduling.interval(time(9, 30), 30)
    assert a == (540, 570)
    assert not scheduling.overlaps(a, b)
    assert not scheduling.overlaps(b, a)


def test_partial_and_contained_overlap():
    base = scheduling.interval(time(9, 0), 30)
    assert scheduling.overlaps(base, scheduling.interval(time(9, 15), 30))
    assert scheduling.overlaps(base, scheduling.interval(time(8, 45), 30))
    assert scheduling.overlaps(base, scheduling.interval(time(9, 10), 15))
    assert scheduling.overlaps(scheduling.interval(time(8, 0), 180), base)


def test_find_conflicts_returns_clashing_items():
    existing = [("a", time(9, 0), 30), ("b", time(10, 0), 60), ("c", time(11, 0), 15)]
    assert scheduling.find_conflicts(existing, time(9, 15), 30) == ["a"]
    assert scheduling.find_conflicts(existing, time(9, 30), 30) == []
    assert scheduling.find_conflicts(existing, time(9, 45), 90) == ["b", "c"]


@pytest.mark.parametrize("raw,expected", [("09:05", time(9, 5)), ("9:30", time(9, 30)), ("23:59", time(23, 59))])
def test_parse_hhmm(raw, expected):
    assert scheduling.parse_hhmm(raw) == expected


@pytest.mark.parametrize("raw", ["24:00", "9:5", "abc", "12:60"])
def test_parse_hhmm_rejects_bad_values(raw):
    with pytest.raises(ValueError):
        scheduling.parse_hhmm(raw)


def test_free_slots_skip_busy_time():
    slots = scheduling.free_slots([(time(9, 0), 30), (time(10, 0), 45)], slot_minutes=30,
                                  day_start=time(8, 30), day_end=time(11, 30))
    starts = [s["start"] for s in slots]
    assert starts == ["08:30", "09:30", "11:00"]


@pytest.mark.parametrize("start,duration,expected", [
    (time(23, 30), 30, True),
    (time(23, 30), 31, False),
    (time(23, 30), 60, False),
    (time(9, 0), 180, True),
])
def test_ends_same_day(start, duration, expected):
    assert scheduling.ends_same_day(start, duration) is expected
