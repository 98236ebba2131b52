# FILE: clinic/services/medical_records.py
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from clinic.core.errors import InvalidTransition, NotFoundError, PermissionDenied, ValidationFailed
from clinic.core.rbac import Perm, has_perm
from clinic.models.appointment import Appointment
from clinic.models.common import RecordState
from clinic.models.medical_record import MedicalRecord, RecordStatus
from clinic.schemas.medical_record import InvestigationIn, MedicalRecordCreate, MedicalRecordUpdate
from clinic.services.id_gen import record_code
from clinic.services.patients import get_patient
from clinic.utils.timezone import now_local

logger = logging.getLogger(__name__)

ST = RecordStatus


def compute_bmi(weight: Optional[float], height_cm: Optional[float]) -> Optional[float]:
    if not weight or not height_cm:
        return None
    h = height_cm / 100
    return round(weight / (h * h), 1)


def compute_billing(
    consultation_fee: int,
    procedure_fees: List[Dict[str, Any]],
    medication_fees: List[Dict[str, Any]],
) -> Tuple[List[Dict[str, Any]], int]:
    """
    Returns (medication_fees with total_price filled in, grand total).
    Pure: same input always gives the same total.
    """
    meds = []
    for m in medication_fees or []:
        qty = int(m.get("quantity") or 0)
        price = int(m.get("unit_price") or 0)
        meds.append({**m, "quantity": qty, "unit_price": price, "total_price": qty * price})
    total = int(consultation_fee or 0)
    total += sum(int(p.get("fee") or 0) for p in procedure_fees or [])
    total += sum(m["total_price"] for m in meds)
    return meds, total


def recompute_derived(rec: MedicalRecord) -> None:
    """Run before every persist: BMI from vitals, billing total from fee lines."""
    vitals = dict(rec.vital_signs or {})
    bmi = compute_bmi(vitals.get("weight"), vitals.get("height"))
    if bmi is None:
        vitals.pop("bmi", None)
    else:
        vitals["bmi"] = bmi
    rec.vital_signs = vitals

    meds, total = compute_billing(rec.consultation_fee, rec.procedure_fees, rec.medication_fees)
    rec.medication_fees = meds
    rec.total_amount = total


def get_record(db: Session, record_id: int) -> MedicalRecord:
    rec = db.get(MedicalRecord, record_id)
    if not rec or rec.state != RecordState.ACTIVE.value:
        raise NotFoundError("Medical record not found")
    return rec


def _apply(rec: MedicalRecord, data: Dict[str, Any]) -> None:
    diagnosis = data.pop("diagnosis", None)
    if diagnosis is not None:
        rec.diagnosis_primary = diagnosis["primary"]
        rec.diagnosis_secondary = list(diagnosis.get("secondary") or [])
        rec.icd10_code = diagnosis.get("icd10_code")
        rec.diagnosis_severity = diagnosis.get("severity")

    treatment = data.pop("treatment", None)
    if treatment is not None:
        rec.treatment_plan = treatment.get("plan")
        rec.treatment_medications = list(treatment.get("medications") or [])
        rec.procedures = list(treatment.get("procedures") or [])
        rec.referrals = list(treatment.get("referrals") or [])

    billing = data.pop("billing", None)
    if billing is not None:
        rec.consultation_fee = int(billing.get("consultation_fee") or 0)
        rec.procedure_fees = list(billing.get("procedure_fees") or [])
        rec.medication_fees = list(billing.get("medication_fees") or [])

    for key in ("vital_signs", "physical_examination", "follow_up"):
        if key in data:
            setattr(rec, key, {k: v for k, v in (data.pop(key) or {}).items() if v is not None})

    for key in ("symptoms", "investigations", "attachments"):
        if key in data:
            setattr(rec, key, list(data.pop(key) or []))

    for k, v in data.items():
        setattr(rec, k, v)


def create_record(db: Session, payload: MedicalRecordCreate, doctor) -> MedicalRecord:
    get_patient(db, payload.patient_id, active_only=True)
    if payload.appointment_id:
        ap = db.get(Appointment, payload.appointment_id)
        if not ap:
            raise NotFoundError("Appointment not found")
        if ap.patient_id != payload.patient_id:
            raise ValidationFailed("Appointment belongs to a different patient")

    data = payload.model_dump(mode="json")
    # model_dump(mode="json") stringifies datetimes; keep the typed value for the column
    data.pop("visit_date", None)

    rec = MedicalRecord(
        doctor_id=doctor.id,
        created_by_id=doctor.id,
        visit_date=payload.visit_date or now_local(),
        status=ST.DRAFT.value,
        state=RecordState.ACTIVE.value,
        consultation_fee=0,
        procedure_fees=[],
        medication_fees=[],
    )
    _apply(rec, data)
    recompute_derived(rec)
    db.add(rec)
    db.flush()  # get id
    rec.record_code = record_code(rec.id)
    return rec


def update_record(db: Session, rec: MedicalRecord, payload: MedicalRecordUpdate) -> MedicalRecord:
    if rec.status == ST.REVIEWED.value:
        raise ValidationFailed("Reviewed records can no longer be edited")

    data = payload.model_dump(mode="json", exclude_unset=True)
    if "visit_date" in data:
        data.pop("visit_date")
        if payload.visit_date:
            rec.visit_date = payload.visit_date
    for required in ("chief_complaint", "visit_type", "diagnosis"):
        if required in data and data[required] is None:
            data.pop(required)

    _apply(rec, data)
    recompute_derived(rec)
    db.flush()
    return rec


def change_status(db: Session, rec: MedicalRecord, new_status: str, user) -> MedicalRecord:
    current = rec.status
    if current == ST.REVIEWED.value:
        raise InvalidTransition("Reviewed records are locked")
    if new_status == current:
        raise InvalidTransition(f"Record is already {current}")

    if new_status == ST.REVIEWED.value:
        if not has_perm(user, Perm.RECORDS_REVIEW):
            raise PermissionDenied("Only an administrator can mark a record as reviewed")
        if current != ST.COMPLETED.value:
            raise InvalidTransition("Only completed records can be reviewed")
        rec.reviewed_by_id = user.id
        rec.reviewed_at = now_local()
    else:
        if rec.doctor_id != getattr(user, "id", None):
            raise PermissionDenied("Only the treating doctor can change this record")

    rec.status = new_status
    recompute_derived(rec)
    db.flush()
    return rec


def add_investigation(db: Session, rec: MedicalRecord, inv: InvestigationIn) -> MedicalRecord:
    if rec.status == ST.REVIEWED.value:
        raise ValidationFailed("Reviewed records can no longer be edited")
    item = inv.model_dump(mode="json")
    if not item.get("date"):
        item["date"] = now_local().isoformat()
    rec.investigations = list(rec.investigations or []) + [item]
    db.flush()
    return rec


def archive_record(db: Session, rec: MedicalRecord) -> MedicalRecord:
    if rec.status == ST.REVIEWED.value:
        raise ValidationFailed("Reviewed records cannot be deleted")
    rec.state = RecordState.ARCHIVED.value
    rec.archived_at = now_local()
    db.flush()
    return rec


def common_diagnoses(db: Session, limit: int = 10, doctor_id: Optional[int] = None):
    q = db.query(MedicalRecord.diagnosis_primary, func.count(MedicalRecord.id)).filter(
        MedicalRecord.state == RecordState.ACTIVE.value,
        MedicalRecord.diagnosis_primary != "",
    )
    if doctor_id:
        q = q.filter(MedicalRecord.doctor_id == doctor_id)
    rows = (
        q.group_by(MedicalRecord.diagnosis_primary)
        .order_by(func.count(MedicalRecord.id).desc(), MedicalRecord.diagnosis_primary)
        .limit(limit)
        .all()
    )
    return [{"diagnosis": d, "count": c} for d, c in rows]


def stats_overview(db: Session, doctor_id: Optional[int] = None) -> Dict[str, Any]:
    def _scoped(q):
        q = q.filter(MedicalRecord.state == RecordState.ACTIVE.value)
        if doctor_id:
            q = q.filter(MedicalRecord.doctor_id == doctor_id)
        return q

    since = now_local() - timedelta(days=30)
    return {
        "total": _scoped(db.query(func.count(MedicalRecord.id))).scalar() or 0,
        "last_30_days": _scoped(db.query(func.count(MedicalRecord.id))).filter(
            MedicalRecord.visit_date >= since).scalar() or 0,
        "by_status": dict(
            _scoped(db.query(MedicalRecord.status, func.count(MedicalRecord.id)))
            .group_by(MedicalRecord.status).all()),
        "top_diagnoses": common_diagnoses(db, 5, doctor_id),
    }
