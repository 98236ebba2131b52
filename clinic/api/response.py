# FILE: clinic/api/response.py
from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from clinic.core.errors import ClinicError


def _send(status_code: int, payload: Dict[str, Any]) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=jsonable_encoder(payload))


def ok(
    data: Any = None,
    *,
    meta: Optional[Dict[str, Any]] = None,
    status_code: int = 200,
) -> JSONResponse:
    """{"ok": true, "data": ..., "meta": {...}}; meta only on list endpoints."""
    payload: Dict[str, Any] = {"ok": True, "data": data}
    if meta is not None:
        payload["meta"] = meta
    return _send(status_code, payload)


def created(data: Any) -> JSONResponse:
    return ok(data, status_code=201)


def paged(rows: Iterable[Any], meta: Dict[str, int], render: Callable[[Any], Any]) -> JSONResponse:
    """List response: rows rendered one by one, pager meta from services.pagination."""
    return ok([render(r) for r in rows], meta=meta)


def err(
    msg: str = "Something went wrong",
    *,
    status_code: int = 400,
    code: Optional[str] = None,
    details: Any = None,
) -> JSONResponse:
    """{"ok": false, "error": {"msg", "code", "details"}}"""
    return _send(status_code, {
        "ok": False,
        "error": {"msg": msg, "code": code, "details": details},
    })


def clinic_err(exc: ClinicError) -> JSONResponse:
    return err(exc.msg, status_code=exc.status_code, code=exc.code, details=exc.details)
