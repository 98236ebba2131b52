# FILE: clinic/utils/timezone.py
from __future__ import annotations

from datetime import datetime, date, timedelta
from typing import Tuple
from zoneinfo import ZoneInfo

from clinic.core.config import settings

LOCAL_TZ = ZoneInfo(settings.LOCAL_TZ)


def now_local() -> datetime:
    """
    Returns a *naive* datetime in the clinic's timezone.
    DateTime columns are naive, so we never store tz-aware values.
    """
    return datetime.now(LOCAL_TZ).replace(tzinfo=None)


def today_local() -> date:
    return now_local().date()


def month_start(d: date) -> date:
    return d.replace(day=1)


def next_month_start(d: date) -> date:
    return (d.replace(day=28) + timedelta(days=4)).replace(day=1)


def day_bounds(d: date) -> Tuple[datetime, datetime]:
    """[00:00 of d, 00:00 of d+1) for DateTime columns."""
    start = datetime.combine(d, datetime.min.time())
    return start, start + timedelta(days=1)
