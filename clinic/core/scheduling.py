# clinic/core/scheduling.py
from datetime import datetime, time, timedelta
from typing import Iterable, List, Sequence, Tuple, TypeVar

T = TypeVar("T")

# Statuses that still occupy the doctor's slot
BUSY_STATUSES = ("scheduled", "confirmed", "in-progress")

DAY_START = time(8, 0)
DAY_END = time(17, 0)
DAY_MINUTES = 24 * 60


def to_minutes(t: time) -> int:
    return t.hour * 60 + t.minute


def parse_hhmm(value: str) -> time:
    """'HH:MM' (24h) -> time. Raises ValueError on bad input."""
    hh, mm = value.strip().split(":")
    h, m = int(hh), int(mm)
    if len(hh) not in (1, 2) or len(mm) != 2 or not (0 <= h <= 23 and 0 <= m <= 59):
        raise ValueError(f"Invalid time '{value}', expected HH:MM")
    return time(h, m)


def interval(start: time, duration: int) -> Tuple[int, int]:
    """Half-open [start, start+duration) in minutes from midnight."""
    s = to_minutes(start)
    return s, s + int(duration)


def ends_same_day(start: time, duration: int) -> bool:
    return interval(start, duration)[1] <= DAY_MINUTES


def overlaps(a: Tuple[int, int], b: Tuple[int, int]) -> bool:
    # abutting intervals (a.end == b.start) do not overlap
    return a[0] < b[1] and a[1] > b[0]


def find_conflicts(
    existing: Iterable[Tuple[T, time, int]],
    start: time,
    duration: int,
) -> List[T]:
    """
    existing: (item, start, duration) triples already booked for the doctor/day.
    Returns the items whose interval intersects the requested one.
    """
    wanted = interval(start, duration)
    return [item for item, s, d in existing if overlaps(interval(s, d), wanted)]


def _time_range(start: time, end: time,
                minutes: int) -> List[Tuple[time, time]]:
    slots = []
    cur = datetime.combine(datetime.today().date(), start)
    end_dt = datetime.combine(datetime.today().date(), end)
    delta = timedelta(minutes=minutes)
    while cur + delta <= end_dt:
        slots.append((cur.time(), (cur + delta).time()))
        cur += delta
    return slots


def free_slots(busy: Sequence[Tuple[time, int]],
               slot_minutes: int = 30,
               day_start: time = DAY_START,
               day_end: time = DAY_END):
    """
    Working-day slots of slot_minutes that do not intersect any busy booking.
    """
    taken = [interval(s, d) for s, d in busy]
    out = []
    for s, e in _time_range(day_start, day_end, slot_minutes):
        cand = (to_minutes(s), to_minutes(e))
        if any(overlaps(cand, b) for b in taken):
            continue
        out.append({"start": s.strftime("%H:%M"), "end": e.strftime("%H:%M")})
    return out
