# FILE: clinic/core/errors.py
from __future__ import annotations

from typing import Any, Optional


class ClinicError(RuntimeError):
    """
    Base for domain errors raised by services.

    Each subclass carries the HTTP status and machine code the API layer
    renders through the standard error envelope.
    """

    status_code: int = 400
    code: str = "CLINIC_ERROR"

    def __init__(self, msg: str, *, details: Any = None, code: Optional[str] = None):
        super().__init__(msg)
        self.msg = msg
        self.details = details
        if code:
            self.code = code


class ValidationFailed(ClinicError):
    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(ClinicError):
    status_code = 404
    code = "NOT_FOUND"


class PermissionDenied(ClinicError):
    status_code = 403
    code = "FORBIDDEN"


class ConflictError(ClinicError):
    status_code = 409
    code = "CONFLICT"


class SchedulingConflict(ConflictError):
    # booking clients expect 400 for a taken slot
    status_code = 400
    code = "SCHEDULING_CONFLICT"


class InsufficientStock(ClinicError):
    status_code = 400
    code = "INSUFFICIENT_STOCK"


class InvalidTransition(ClinicError):
    status_code = 400
    code = "INVALID_TRANSITION"
