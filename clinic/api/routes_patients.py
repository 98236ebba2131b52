# clinic/api/routes_patients.py
from __future__ import annotations

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from clinic.api.deps import commit_or_conflict, current_user, get_db
from clinic.api.response import created, ok, paged
from clinic.core.rbac import Perm, require_perm, scope_doctor_id
from clinic.models.common import RecordState
from clinic.models.medical_record import MedicalRecord
from clinic.models.user import User
from clinic.schemas.medical_record import MedicalRecordOut
from clinic.schemas.patient import PatientCreate, PatientOut, PatientUpdate
from clinic.services import patients as patient_service
from clinic.services.pagination import paginate

logger = logging.getLogger(__name__)
router = APIRouter()


def _out(p) -> dict:
    return PatientOut.model_validate(p).model_dump()


@router.get("/")
def list_patients(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    search: Optional[str] = None,
    gender: Optional[Literal["male", "female", "other"]] = None,
    blood_type: Optional[str] = Query(None, alias="bloodType"),
    min_age: Optional[int] = Query(None, alias="minAge", ge=0),
    max_age: Optional[int] = Query(None, alias="maxAge", ge=0),
    state: Literal["active", "archived"] = "active",
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.PATIENTS_VIEW)
    if state == RecordState.ARCHIVED.value:
        require_perm(me, Perm.PATIENTS_RESTORE)
    q = patient_service.search_query(
        db,
        search=search,
        gender=gender,
        blood_type=blood_type,
        min_age=min_age,
        max_age=max_age,
        state=state,
    )
    rows, meta = paginate(q, page, limit)
    return paged(rows, meta, _out)


@router.get("/search/quick")
def quick_search(
    phone: Optional[str] = None,
    identity_card: Optional[str] = Query(None, alias="identityCard"),
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.PATIENTS_VIEW)
    rows = patient_service.quick_search(db, phone=phone, identity_card=identity_card)
    return ok([_out(p) for p in rows])


@router.get("/stats/overview")
def stats_overview(
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.PATIENTS_STATS)
    return ok(patient_service.stats_overview(db))


@router.get("/{patient_id}")
def get_patient(
    patient_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.PATIENTS_VIEW)
    p = patient_service.get_patient(db, patient_id)
    if p.state != RecordState.ACTIVE.value:
        require_perm(me, Perm.PATIENTS_RESTORE)
    return ok(_out(p))


@router.get("/{patient_id}/medical-history")
def medical_history(
    patient_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.RECORDS_VIEW)
    patient = patient_service.get_patient(db, patient_id)

    q = db.query(MedicalRecord).filter(
        MedicalRecord.patient_id == patient.id,
        MedicalRecord.state == RecordState.ACTIVE.value,
    )
    doctor_id = scope_doctor_id(me, Perm.RECORDS_VIEW_ALL)
    if doctor_id:
        q = q.filter(MedicalRecord.doctor_id == doctor_id)
    q = q.order_by(MedicalRecord.visit_date.desc(), MedicalRecord.id.desc())

    rows, meta = paginate(q, page, limit)
    return ok(
        {
            "patient": _out(patient),
            "records": [MedicalRecordOut.model_validate(r).model_dump() for r in rows],
        },
        meta=meta,
    )


@router.post("/")
def create_patient(
    payload: PatientCreate,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.PATIENTS_CREATE)
    p = patient_service.create_patient(db, payload, me)
    commit_or_conflict(db, "Identity card already registered")
    db.refresh(p)
    logger.info("Patient %s created by user=%s", p.patient_code, me.id)
    return created(_out(p))


@router.put("/{patient_id}")
def update_patient(
    patient_id: int,
    payload: PatientUpdate,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.PATIENTS_UPDATE)
    p = patient_service.get_patient(db, patient_id, active_only=True)
    patient_service.update_patient(db, p, payload)
    commit_or_conflict(db, "Identity card already registered")
    db.refresh(p)
    return ok(_out(p))


@router.delete("/{patient_id}")
def archive_patient(
    patient_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.PATIENTS_ARCHIVE)
    p = patient_service.archive_patient(db, patient_service.get_patient(db, patient_id))
    db.commit()
    logger.info("Patient %s archived by user=%s", p.patient_code, me.id)
    return ok({"id": p.id, "state": p.state})


@router.patch("/{patient_id}/restore")
def restore_patient(
    patient_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.PATIENTS_RESTORE)
    p = patient_service.restore_patient(db, patient_service.get_patient(db, patient_id))
    db.commit()
    db.refresh(p)
    return ok(_out(p))
