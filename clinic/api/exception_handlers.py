# FILE: clinic/api/exception_handlers.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm.exc import StaleDataError
from starlette.exceptions import HTTPException as StarletteHTTPException

from clinic.api.response import clinic_err, err
from clinic.core.errors import ClinicError

logger = logging.getLogger(__name__)


def _field_errors(exc: RequestValidationError):
    out = []
    for e in exc.errors():
        # loc is ("body", "field", ...) / ("query", "page")
        loc = [str(p) for p in e.get("loc", ()) if p not in ("body", "query", "path")]
        out.append({"field": ".".join(loc) or None, "msg": e.get("msg")})
    return out


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ClinicError)
    async def clinic_error_handler(request: Request, exc: ClinicError) -> JSONResponse:
        return clinic_err(exc)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        # exc.detail can be str/dict/list
        msg = exc.detail if isinstance(exc.detail, str) else "Request failed"
        details = None if isinstance(exc.detail, str) else exc.detail
        return err(msg=msg, status_code=exc.status_code, details=details)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return err(
            msg="Validation error",
            status_code=400,
            code="VALIDATION_ERROR",
            details=_field_errors(exc),
        )

    @app.exception_handler(StaleDataError)
    async def stale_data_handler(request: Request, exc: StaleDataError) -> JSONResponse:
        logger.warning("Concurrent modification on %s: %s", request.url.path, exc)
        return err(
            msg="Record was modified concurrently; reload and retry",
            status_code=409,
            code="CONCURRENT_UPDATE",
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return err(msg="Internal server error", status_code=500)
