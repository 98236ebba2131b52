# FILE: clinic/models/common.py
from __future__ import annotations

import enum


class RecordState(str, enum.Enum):
    """Lifecycle of records that are never hard-deleted."""

    ACTIVE = "active"
    ARCHIVED = "archived"


RECORD_STATES = tuple(s.value for s in RecordState)
