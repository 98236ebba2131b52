# FILE: clinic/services/patients.py
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Query, Session

from clinic.core.errors import ConflictError, NotFoundError, ValidationFailed
from clinic.models.common import RecordState
from clinic.models.patient import Patient, calc_age
from clinic.schemas.patient import PatientCreate, PatientUpdate
from clinic.services.id_gen import patient_code
from clinic.utils.timezone import month_start, now_local, today_local

logger = logging.getLogger(__name__)

AGE_GROUPS = ("0-17", "18-59", "60+")


def age_group(age: Optional[int]) -> str:
    if age is None or age < 18:
        return "0-17"
    if age < 60:
        return "18-59"
    return "60+"


def get_patient(db: Session, patient_id: int, *, active_only: bool = False) -> Patient:
    p = db.get(Patient, patient_id)
    if not p or (active_only and p.state != RecordState.ACTIVE.value):
        raise NotFoundError("Patient not found")
    return p


def _ensure_identity_free(db: Session, identity_card: Optional[str], exclude_id: Optional[int] = None) -> None:
    if not identity_card:
        return
    q = db.query(Patient.id).filter(Patient.identity_card == identity_card)
    if exclude_id:
        q = q.filter(Patient.id != exclude_id)
    if q.first():
        raise ConflictError("Identity card already registered")


def _apply(p: Patient, data: Dict[str, Any]) -> None:
    ec = data.pop("emergency_contact", None)
    if ec is not None:
        p.emergency_contact_name = ec.get("name")
        p.emergency_contact_relationship = ec.get("relationship")
        p.emergency_contact_phone = ec.get("phone")
    if "allergies" in data:
        data["allergies"] = [a.strip() for a in (data["allergies"] or []) if a and a.strip()]
    for k, v in data.items():
        setattr(p, k, v)


def create_patient(db: Session, payload: PatientCreate, user) -> Patient:
    _ensure_identity_free(db, payload.identity_card)

    p = Patient(
        created_by_id=getattr(user, "id", None),
        state=RecordState.ACTIVE.value,
        total_visits=0,
        allergies=[],
    )
    _apply(p, payload.model_dump())
    db.add(p)
    db.flush()  # get id
    p.patient_code = patient_code(p.id)
    return p


def update_patient(db: Session, p: Patient, payload: PatientUpdate) -> Patient:
    data = payload.model_dump(exclude_unset=True)
    for required in ("full_name", "date_of_birth", "gender", "phone"):
        if required in data and data[required] is None:
            raise ValidationFailed(f"{required} cannot be empty")
    if "identity_card" in data:
        _ensure_identity_free(db, data["identity_card"], exclude_id=p.id)
    _apply(p, data)
    db.flush()
    return p


def archive_patient(db: Session, p: Patient) -> Patient:
    if p.state == RecordState.ARCHIVED.value:
        raise ValidationFailed("Patient is already archived")
    p.state = RecordState.ARCHIVED.value
    p.archived_at = now_local()
    db.flush()
    return p


def restore_patient(db: Session, p: Patient) -> Patient:
    if p.state == RecordState.ACTIVE.value:
        raise ValidationFailed("Patient is already active")
    p.state = RecordState.ACTIVE.value
    p.archived_at = None
    db.flush()
    return p


def record_visit(p: Patient, when: datetime) -> None:
    """Booking an appointment counts as a visit."""
    p.total_visits = (p.total_visits or 0) + 1
    if not p.last_visit or when > p.last_visit:
        p.last_visit = when


def _dob_bound(years: int) -> date:
    today = today_local()
    try:
        return today.replace(year=today.year - years)
    except ValueError:  # 29 Feb
        return today.replace(year=today.year - years, day=28)


def search_query(
    db: Session,
    *,
    search: Optional[str] = None,
    gender: Optional[str] = None,
    blood_type: Optional[str] = None,
    min_age: Optional[int] = None,
    max_age: Optional[int] = None,
    state: Optional[str] = RecordState.ACTIVE.value,
) -> Query:
    q = db.query(Patient)
    if state:
        q = q.filter(Patient.state == state)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(
            or_(
                Patient.full_name.ilike(like),
                Patient.phone.like(like),
                Patient.patient_code.ilike(like),
                Patient.identity_card.like(like),
            ))
    if gender:
        q = q.filter(Patient.gender == gender)
    if blood_type:
        q = q.filter(Patient.blood_type == blood_type)
    # age N means born in (today - N - 1 years, today - N years]
    if min_age is not None:
        q = q.filter(Patient.date_of_birth <= _dob_bound(min_age))
    if max_age is not None:
        q = q.filter(Patient.date_of_birth > _dob_bound(max_age + 1))
    return q.order_by(Patient.created_at.desc(), Patient.id.desc())


def quick_search(db: Session, *, phone: Optional[str] = None, identity_card: Optional[str] = None):
    if not phone and not identity_card:
        raise ValidationFailed("phone or identityCard is required")
    q = db.query(Patient).filter(Patient.state == RecordState.ACTIVE.value)
    if phone:
        q = q.filter(Patient.phone == phone.strip())
    if identity_card:
        q = q.filter(Patient.identity_card == identity_card.strip())
    return q.order_by(Patient.id.desc()).limit(10).all()


def demographics(db: Session) -> Dict[str, Dict[str, int]]:
    rows = (
        db.query(Patient.gender, Patient.date_of_birth)
        .filter(Patient.state == RecordState.ACTIVE.value)
        .all()
    )
    today = today_local()
    gender: Dict[str, int] = {}
    ages = {g: 0 for g in AGE_GROUPS}
    for g, dob in rows:
        gender[g] = gender.get(g, 0) + 1
        ages[age_group(calc_age(dob, today))] += 1
    return {"gender": gender, "age_groups": ages}


def stats_overview(db: Session) -> Dict[str, Any]:
    active = Patient.state == RecordState.ACTIVE.value
    total = db.query(func.count(Patient.id)).filter(active).scalar() or 0
    first = datetime.combine(month_start(today_local()), datetime.min.time())
    new_this_month = (
        db.query(func.count(Patient.id))
        .filter(active, Patient.created_at >= first)
        .scalar()
        or 0
    )
    out: Dict[str, Any] = {"total": total, "new_this_month": new_this_month}
    out.update(demographics(db))
    return out
