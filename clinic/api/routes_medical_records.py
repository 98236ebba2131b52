# clinic/api/routes_medical_records.py
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from clinic.api.deps import commit_or_conflict, current_user, get_db
from clinic.api.response import created, ok, paged
from clinic.core.rbac import Perm, ensure_can_see, ensure_owner, require_perm, scope_doctor_id
from clinic.models.common import RecordState
from clinic.models.medical_record import MedicalRecord
from clinic.models.user import User
from clinic.schemas.medical_record import (
    InvestigationIn,
    MedicalRecordCreate,
    MedicalRecordOut,
    MedicalRecordUpdate,
    RecordStatus,
    RecordStatusIn,
)
from clinic.services import medical_records as record_service
from clinic.services.pagination import paginate
from clinic.services.patients import get_patient

logger = logging.getLogger(__name__)
router = APIRouter()


def _out(rec: MedicalRecord) -> dict:
    return MedicalRecordOut.model_validate(rec).model_dump()


def _load(db: Session, record_id: int, me: User) -> MedicalRecord:
    rec = record_service.get_record(db, record_id)
    ensure_can_see(me, rec.doctor_id, Perm.RECORDS_VIEW_ALL)
    return rec


@router.get("/")
def list_records(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    patient: Optional[int] = None,
    doctor: Optional[int] = None,
    status: Optional[RecordStatus] = None,
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    diagnosis: Optional[str] = None,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.RECORDS_VIEW)

    q = db.query(MedicalRecord).filter(MedicalRecord.state == RecordState.ACTIVE.value)
    doctor_id = scope_doctor_id(me, Perm.RECORDS_VIEW_ALL) or doctor
    if doctor_id:
        q = q.filter(MedicalRecord.doctor_id == doctor_id)
    if patient:
        q = q.filter(MedicalRecord.patient_id == patient)
    if status:
        q = q.filter(MedicalRecord.status == status)
    if start_date:
        q = q.filter(MedicalRecord.visit_date >= datetime.combine(start_date, datetime.min.time()))
    if end_date:
        q = q.filter(MedicalRecord.visit_date
                     < datetime.combine(end_date + timedelta(days=1), datetime.min.time()))
    if diagnosis:
        q = q.filter(MedicalRecord.diagnosis_primary.ilike(f"%{diagnosis.strip()}%"))

    q = q.order_by(MedicalRecord.visit_date.desc(), MedicalRecord.id.desc())
    rows, meta = paginate(q, page, limit)
    return paged(rows, meta, _out)


@router.get("/stats/overview")
def stats_overview(
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.RECORDS_VIEW)
    return ok(record_service.stats_overview(db, scope_doctor_id(me, Perm.RECORDS_VIEW_ALL)))


@router.get("/patient/{patient_id}")
def patient_history(
    patient_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.RECORDS_VIEW)
    get_patient(db, patient_id)
    q = db.query(MedicalRecord).filter(
        MedicalRecord.patient_id == patient_id,
        MedicalRecord.state == RecordState.ACTIVE.value,
    )
    doctor_id = scope_doctor_id(me, Perm.RECORDS_VIEW_ALL)
    if doctor_id:
        q = q.filter(MedicalRecord.doctor_id == doctor_id)
    q = q.order_by(MedicalRecord.visit_date.desc(), MedicalRecord.id.desc())
    rows, meta = paginate(q, page, limit)
    return paged(rows, meta, _out)


@router.get("/{record_id}")
def get_record(
    record_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.RECORDS_VIEW)
    return ok(_out(_load(db, record_id, me)))


@router.post("/")
def create_record(
    payload: MedicalRecordCreate,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.RECORDS_CREATE)
    rec = record_service.create_record(db, payload, me)
    commit_or_conflict(db)
    db.refresh(rec)
    logger.info("Medical record %s created by doctor=%s", rec.record_code, me.id)
    return created(_out(rec))


@router.put("/{record_id}")
def update_record(
    record_id: int,
    payload: MedicalRecordUpdate,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.RECORDS_UPDATE)
    rec = record_service.get_record(db, record_id)
    ensure_owner(me, rec.doctor_id, message="Only the treating doctor can edit this record.")
    record_service.update_record(db, rec, payload)
    db.commit()
    db.refresh(rec)
    return ok(_out(rec))


@router.patch("/{record_id}/status")
def change_status(
    record_id: int,
    payload: RecordStatusIn,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.RECORDS_VIEW)
    rec = _load(db, record_id, me)
    previous = rec.status
    record_service.change_status(db, rec, payload.status, me)
    db.commit()
    db.refresh(rec)
    logger.info("Medical record %s %s -> %s by user=%s", rec.record_code, previous, rec.status, me.id)
    return ok(_out(rec))


@router.post("/{record_id}/investigations")
def add_investigation(
    record_id: int,
    payload: InvestigationIn,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.RECORDS_UPDATE)
    rec = record_service.get_record(db, record_id)
    ensure_owner(me, rec.doctor_id, message="Only the treating doctor can edit this record.")
    record_service.add_investigation(db, rec, payload)
    db.commit()
    db.refresh(rec)
    return created(_out(rec))


@router.delete("/{record_id}")
def archive_record(
    record_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.RECORDS_ARCHIVE)
    rec = record_service.get_record(db, record_id)
    ensure_owner(me, rec.doctor_id, message="Only the treating doctor can delete this record.")
    record_service.archive_record(db, rec)
    db.commit()
    return ok({"id": rec.id, "state": rec.state})
