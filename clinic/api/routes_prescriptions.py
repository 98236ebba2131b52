# clinic/api/routes_prescriptions.py
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from io import BytesIO
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from clinic.api.deps import commit_or_conflict, current_user, get_db
from clinic.api.response import created, ok, paged
from clinic.core.rbac import Perm, ensure_can_see, ensure_owner, require_perm, scope_doctor_id
from clinic.models.common import RecordState
from clinic.models.prescription import Prescription
from clinic.models.user import User
from clinic.schemas.prescription import (
    DispenseIn,
    DispenseOut,
    PrescriptionCreate,
    PrescriptionOut,
    PrescriptionStatusIn,
    PrescriptionUpdate,
)
from clinic.services import prescriptions as rx_service
from clinic.services.pagination import paginate
from clinic.services.patients import get_patient
from clinic.services.pdf_prescription import build_prescription_pdf

logger = logging.getLogger(__name__)
router = APIRouter()

RxStatus = Literal["draft", "issued", "partially-dispensed", "fully-dispensed", "cancelled"]


def _out(rx: Prescription) -> dict:
    return PrescriptionOut.model_validate(rx).model_dump()


def _load(db: Session, rx_id: int, me: User) -> Prescription:
    rx = rx_service.get_prescription(db, rx_id)
    ensure_can_see(me, rx.doctor_id, Perm.RX_VIEW_ALL)
    return rx


@router.get("/")
def list_prescriptions(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    patient: Optional[int] = None,
    doctor: Optional[int] = None,
    status: Optional[RxStatus] = None,
    priority: Optional[Literal["normal", "urgent"]] = None,
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.RX_VIEW)

    q = db.query(Prescription).filter(Prescription.state == RecordState.ACTIVE.value)
    doctor_id = scope_doctor_id(me, Perm.RX_VIEW_ALL) or doctor
    if doctor_id:
        q = q.filter(Prescription.doctor_id == doctor_id)
    if patient:
        q = q.filter(Prescription.patient_id == patient)
    if status:
        q = q.filter(Prescription.status == status)
    if priority:
        q = q.filter(Prescription.priority == priority)
    if start_date:
        q = q.filter(Prescription.prescription_date >= datetime.combine(start_date, datetime.min.time()))
    if end_date:
        q = q.filter(Prescription.prescription_date
                     < datetime.combine(end_date + timedelta(days=1), datetime.min.time()))
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(Prescription.diagnosis.ilike(like) | Prescription.prescription_code.ilike(like))

    q = q.order_by(Prescription.prescription_date.desc(), Prescription.id.desc())
    rows, meta = paginate(q, page, limit)
    return paged(rows, meta, _out)


@router.get("/stats/overview")
def stats_overview(
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.RX_VIEW)
    return ok(rx_service.stats_overview(db, scope_doctor_id(me, Perm.RX_VIEW_ALL)))


@router.get("/patient/{patient_id}")
def patient_history(
    patient_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.RX_VIEW)
    get_patient(db, patient_id)
    q = db.query(Prescription).filter(
        Prescription.patient_id == patient_id,
        Prescription.state == RecordState.ACTIVE.value,
    )
    doctor_id = scope_doctor_id(me, Perm.RX_VIEW_ALL)
    if doctor_id:
        q = q.filter(Prescription.doctor_id == doctor_id)
    q = q.order_by(Prescription.prescription_date.desc(), Prescription.id.desc())
    rows, meta = paginate(q, page, limit)
    return paged(rows, meta, _out)


@router.get("/{rx_id}")
def get_prescription(
    rx_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.RX_VIEW)
    return ok(_out(_load(db, rx_id, me)))


@router.get("/{rx_id}/print")
def print_prescription(
    rx_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.RX_VIEW)
    rx = _load(db, rx_id, me)
    pdf = build_prescription_pdf(rx)
    filename = f"{rx.prescription_code or rx.id}.pdf"
    return StreamingResponse(
        BytesIO(pdf),
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{filename}"'},
    )


@router.post("/")
def create_prescription(
    payload: PrescriptionCreate,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.RX_CREATE)
    rx = rx_service.create_prescription(db, payload, me)
    commit_or_conflict(db)
    db.refresh(rx)
    logger.info("Prescription %s created by doctor=%s total=%s", rx.prescription_code, me.id, rx.total_amount)
    return created(_out(rx))


@router.put("/{rx_id}")
def update_prescription(
    rx_id: int,
    payload: PrescriptionUpdate,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.RX_UPDATE)
    rx = rx_service.get_prescription(db, rx_id)
    ensure_owner(me, rx.doctor_id, message="Only the prescribing doctor can edit this prescription.")
    rx_service.update_prescription(db, rx, payload)
    db.commit()
    db.refresh(rx)
    return ok(_out(rx))


@router.patch("/{rx_id}/status")
def change_status(
    rx_id: int,
    payload: PrescriptionStatusIn,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.RX_STATUS)
    rx = _load(db, rx_id, me)
    previous = rx.status
    rx_service.change_status(db, rx, payload.status, me, reason=payload.reason)
    db.commit()
    db.refresh(rx)
    logger.info("Prescription %s %s -> %s by user=%s", rx.prescription_code, previous, rx.status, me.id)
    return ok(_out(rx))


@router.patch("/{rx_id}/dispense")
def dispense(
    rx_id: int,
    payload: DispenseIn,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.RX_DISPENSE)
    _load(db, rx_id, me)
    rx, results = rx_service.dispense(db, rx_id, payload.medication_ids, me, payload.pharmacy_notes)
    db.commit()
    db.refresh(rx)
    out = DispenseOut(prescription=PrescriptionOut.model_validate(rx), results=results)
    return ok(out.model_dump())


@router.delete("/{rx_id}")
def archive_prescription(
    rx_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.RX_ARCHIVE)
    rx = rx_service.get_prescription(db, rx_id)
    ensure_owner(me, rx.doctor_id, message="Only the prescribing doctor can delete this prescription.")
    rx_service.archive_prescription(db, rx)
    db.commit()
    return ok({"id": rx.id, "state": rx.state})
