# FILE: clinic/services/pagination.py
from __future__ import annotations

from typing import Any, Dict, List, Tuple

from sqlalchemy.orm import Query

from clinic.core.config import settings


def clamp_limit(limit: int | None) -> int:
    if not limit or limit < 1:
        return settings.DEFAULT_PAGE_SIZE
    return min(limit, settings.MAX_PAGE_SIZE)


def paginate(q: Query, page: int, limit: int | None) -> Tuple[List[Any], Dict[str, int]]:
    """
    Returns (rows, meta) where meta mirrors what the SPA pager expects:
    current page, total pages, page size, total records.
    """
    page = max(int(page or 1), 1)
    limit = clamp_limit(limit)
    total = q.order_by(None).count()
    rows = q.offset((page - 1) * limit).limit(limit).all()
    pages = (total + limit - 1) // limit
    return rows, {
        "current": page,
        "total": pages,
        "count": len(rows),
        "totalRecords": total,
    }
