from __future__ import annotations

from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional, Set

from fastapi import HTTPException, status


class Perm:
    """Permission codes checked by the API layer."""

    PATIENTS_VIEW = "patients.view"
    PATIENTS_CREATE = "patients.create"
    PATIENTS_UPDATE = "patients.update"
    PATIENTS_ARCHIVE = "patients.archive"
    PATIENTS_RESTORE = "patients.restore"
    PATIENTS_STATS = "patients.stats"

    APPOINTMENTS_VIEW = "appointments.view"
    APPOINTMENTS_VIEW_ALL = "appointments.view_all"
    APPOINTMENTS_CREATE = "appointments.create"
    APPOINTMENTS_UPDATE = "appointments.update"

    RECORDS_VIEW = "medical_records.view"
    RECORDS_VIEW_ALL = "medical_records.view_all"
    RECORDS_CREATE = "medical_records.create"
    RECORDS_UPDATE = "medical_records.update"
    RECORDS_ARCHIVE = "medical_records.archive"
    RECORDS_REVIEW = "medical_records.review"

    RX_VIEW = "prescriptions.view"
    RX_VIEW_ALL = "prescriptions.view_all"
    RX_CREATE = "prescriptions.create"
    RX_UPDATE = "prescriptions.update"
    RX_ARCHIVE = "prescriptions.archive"
    RX_STATUS = "prescriptions.status"
    RX_DISPENSE = "prescriptions.dispense"

    MEDICINES_VIEW = "medicines.view"
    MEDICINES_MANAGE = "medicines.manage"
    MEDICINES_ARCHIVE = "medicines.archive"

    USERS_MANAGE = "users.manage"
    USERS_VIEW_DOCTORS = "users.view_doctors"

    DASHBOARD_VIEW = "dashboard.view"
    DASHBOARD_VIEW_ALL = "dashboard.view_all"
    DASHBOARD_REVENUE = "dashboard.revenue"
    DASHBOARD_INVENTORY = "dashboard.inventory"
    DASHBOARD_CLINIC_TOTALS = "dashboard.clinic_totals"
    DASHBOARD_DEMOGRAPHICS = "dashboard.demographics"
    DASHBOARD_DIAGNOSES = "dashboard.diagnoses"


_SHARED = frozenset({
    Perm.PATIENTS_VIEW,
    Perm.PATIENTS_CREATE,
    Perm.PATIENTS_UPDATE,
    Perm.APPOINTMENTS_VIEW,
    Perm.APPOINTMENTS_CREATE,
    Perm.APPOINTMENTS_UPDATE,
    Perm.RECORDS_VIEW,
    Perm.RX_VIEW,
    Perm.RX_STATUS,
    Perm.MEDICINES_VIEW,
    Perm.USERS_VIEW_DOCTORS,
    Perm.DASHBOARD_VIEW,
})

ROLE_PERMISSIONS: Dict[str, FrozenSet[str]] = {
    "admin": _SHARED | {
        Perm.PATIENTS_ARCHIVE,
        Perm.PATIENTS_RESTORE,
        Perm.PATIENTS_STATS,
        Perm.APPOINTMENTS_VIEW_ALL,
        Perm.RECORDS_VIEW_ALL,
        Perm.RECORDS_REVIEW,
        Perm.RX_VIEW_ALL,
        Perm.RX_DISPENSE,
        Perm.MEDICINES_MANAGE,
        Perm.MEDICINES_ARCHIVE,
        Perm.USERS_MANAGE,
        Perm.DASHBOARD_VIEW_ALL,
        Perm.DASHBOARD_REVENUE,
        Perm.DASHBOARD_INVENTORY,
        Perm.DASHBOARD_CLINIC_TOTALS,
        Perm.DASHBOARD_DEMOGRAPHICS,
        Perm.DASHBOARD_DIAGNOSES,
    },
    # doctors work on their own patients' data only (no *.view_all)
    "doctor": _SHARED | {
        Perm.RECORDS_CREATE,
        Perm.RECORDS_UPDATE,
        Perm.RECORDS_ARCHIVE,
        Perm.RX_CREATE,
        Perm.RX_UPDATE,
        Perm.RX_ARCHIVE,
        Perm.RX_DISPENSE,
        Perm.MEDICINES_MANAGE,
        Perm.DASHBOARD_REVENUE,
        Perm.DASHBOARD_INVENTORY,
        Perm.DASHBOARD_DIAGNOSES,
    },
    "receptionist": _SHARED | {
        Perm.PATIENTS_ARCHIVE,
        Perm.PATIENTS_STATS,
        Perm.APPOINTMENTS_VIEW_ALL,
        Perm.RECORDS_VIEW_ALL,
        Perm.RX_VIEW_ALL,
        Perm.DASHBOARD_VIEW_ALL,
        Perm.DASHBOARD_DEMOGRAPHICS,
    },
}


def _code(x: Any) -> str:
    """
    Normalize a role or permission code:
      - Enum -> enum.value
      - str  -> str
      - object with .code -> str
    """
    if x is None:
        return ""
    if isinstance(x, Enum):
        return str(x.value)
    if isinstance(x, str):
        return x
    if hasattr(x, "code"):
        return _code(getattr(x, "code"))
    return str(x)


def iter_user_perm_codes(user: Any) -> Set[str]:
    """
    Permission codes granted to the user through their role.
    Inactive users hold no permissions.
    """
    if not user or not getattr(user, "is_active", False):
        return set()
    role = _code(getattr(user, "role", None)).strip().lower()
    return set(ROLE_PERMISSIONS.get(role, frozenset()))


def has_perm(user: Any, code: Any) -> bool:
    want = _code(code).strip()
    if not want:
        return False
    return want in iter_user_perm_codes(user)


def require_perm(user: Any, code: Any) -> None:
    if not has_perm(user, code):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Forbidden: missing {_code(code)}",
        )


def require_any(user: Any, required: Iterable[Any], *, message: Optional[str] = None) -> None:
    """
    Raise 403 if user doesn't have at least one permission from 'required'.
    """
    required_set = {_code(x).strip() for x in required if _code(x).strip()}
    if not required_set:
        return

    if iter_user_perm_codes(user).intersection(required_set):
        return

    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail=message or "You do not have permission to perform this action.",
    )


def scope_doctor_id(user: Any, view_all_code: Any) -> Optional[int]:
    """
    None when the user may see every doctor's rows, otherwise the user id
    the query must be restricted to.
    """
    if has_perm(user, view_all_code):
        return None
    return getattr(user, "id", None)


def ensure_can_see(user: Any, owner_id: Optional[int], view_all_code: Any) -> None:
    """
    Row-level check for detail endpoints: owner or holder of the *.view_all code.
    """
    if has_perm(user, view_all_code):
        return
    if owner_id is not None and owner_id == getattr(user, "id", None):
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="You do not have permission to access this record.",
    )


def ensure_owner(user: Any, owner_id: Optional[int], *, message: Optional[str] = None) -> None:
    if owner_id is None or owner_id != getattr(user, "id", None):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=message or "Only the owning doctor can change this record.",
        )
