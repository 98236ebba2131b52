# clinic/api/routes_appointments.py
from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from clinic.api.deps import current_user, get_db
from clinic.api.response import created, ok, paged
from clinic.core import scheduling
from clinic.core.rbac import Perm, ensure_can_see, require_perm, scope_doctor_id
from clinic.models.appointment import Appointment
from clinic.models.user import User
from clinic.schemas.appointment import (
    HHMM_RE,
    AppointmentCreate,
    AppointmentDetailOut,
    AppointmentOut,
    AppointmentStatusIn,
    AppointmentType,
    AppointmentUpdate,
    Priority,
    Status,
    StatusLogOut,
)
from clinic.services import appointments as appointment_service
from clinic.services.pagination import paginate

logger = logging.getLogger(__name__)
router = APIRouter()


def _out(ap: Appointment) -> dict:
    return AppointmentOut.model_validate(ap).model_dump()


def _load(db: Session, appointment_id: int, me: User) -> Appointment:
    ap = appointment_service.get_appointment(db, appointment_id)
    ensure_can_see(me, ap.doctor_id, Perm.APPOINTMENTS_VIEW_ALL)
    return ap


@router.get("/")
def list_appointments(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    status: Optional[Status] = None,
    doctor: Optional[int] = None,
    patient: Optional[int] = None,
    day: Optional[date] = Query(None, alias="date"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    priority: Optional[Priority] = None,
    appointment_type: Optional[AppointmentType] = Query(None, alias="type"),
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.APPOINTMENTS_VIEW)

    q = db.query(Appointment)
    # doctors only ever see their own book
    doctor_id = scope_doctor_id(me, Perm.APPOINTMENTS_VIEW_ALL) or doctor
    if doctor_id:
        q = q.filter(Appointment.doctor_id == doctor_id)
    if patient:
        q = q.filter(Appointment.patient_id == patient)
    if status:
        q = q.filter(Appointment.status == status)
    if priority:
        q = q.filter(Appointment.priority == priority)
    if appointment_type:
        q = q.filter(Appointment.appointment_type == appointment_type)
    if day:
        q = q.filter(Appointment.appointment_date == day)
    else:
        if start_date:
            q = q.filter(Appointment.appointment_date >= start_date)
        if end_date:
            q = q.filter(Appointment.appointment_date <= end_date)

    q = q.order_by(Appointment.appointment_date.desc(), Appointment.appointment_time.desc())
    rows, meta = paginate(q, page, limit)
    return paged(rows, meta, _out)


@router.get("/check-availability")
def check_availability(
    doctor: int,
    day: date = Query(..., alias="date"),
    start: str = Query(..., alias="time", pattern=HHMM_RE),
    duration: int = Query(30, ge=15, le=180),
    exclude_id: Optional[int] = Query(None, alias="excludeId"),
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.APPOINTMENTS_VIEW)
    result = appointment_service.check_availability(
        db, doctor, day, scheduling.parse_hhmm(start), duration, exclude_id,
    )
    return ok(result)


@router.get("/available-slots")
def available_slots(
    doctor: int,
    day: date = Query(..., alias="date"),
    slot_minutes: int = Query(30, alias="slotMinutes", ge=15, le=180),
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.APPOINTMENTS_VIEW)
    slots = appointment_service.free_slots(db, doctor, day, slot_minutes)
    return ok({"doctor": doctor, "date": day, "slots": slots})


@router.get("/calendar")
def calendar(
    day: date = Query(..., alias="date"),
    doctor: Optional[int] = None,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.APPOINTMENTS_VIEW)
    q = db.query(Appointment).filter(Appointment.appointment_date == day)
    doctor_id = scope_doctor_id(me, Perm.APPOINTMENTS_VIEW_ALL) or doctor
    if doctor_id:
        q = q.filter(Appointment.doctor_id == doctor_id)
    rows = q.order_by(Appointment.appointment_time.asc(), Appointment.id.asc()).all()
    return ok({"date": day, "appointments": [_out(a) for a in rows]})


@router.get("/stats/overview")
def stats_overview(
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.APPOINTMENTS_VIEW)
    doctor_id = scope_doctor_id(me, Perm.APPOINTMENTS_VIEW_ALL)
    return ok(appointment_service.stats_overview(db, doctor_id))


@router.get("/{appointment_id}")
def get_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.APPOINTMENTS_VIEW)
    ap = _load(db, appointment_id, me)
    return ok(AppointmentDetailOut.model_validate(ap).model_dump())


@router.get("/{appointment_id}/history")
def status_history(
    appointment_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.APPOINTMENTS_VIEW)
    ap = _load(db, appointment_id, me)
    return ok([StatusLogOut.model_validate(x).model_dump() for x in ap.status_logs])


@router.post("/")
def create_appointment(
    payload: AppointmentCreate,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.APPOINTMENTS_CREATE)
    ap = appointment_service.create_appointment(db, payload, me)
    db.commit()
    db.refresh(ap)
    logger.info(
        "Appointment %s booked doctor=%s date=%s time=%s by user=%s",
        ap.appointment_code, ap.doctor_id, ap.appointment_date,
        ap.appointment_time.strftime("%H:%M"), me.id,
    )
    return created(_out(ap))


@router.put("/{appointment_id}")
def update_appointment(
    appointment_id: int,
    payload: AppointmentUpdate,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.APPOINTMENTS_UPDATE)
    ap = _load(db, appointment_id, me)
    appointment_service.update_appointment(db, ap, payload, me)
    db.commit()
    db.refresh(ap)
    return ok(_out(ap))


@router.patch("/{appointment_id}/status")
def change_status(
    appointment_id: int,
    payload: AppointmentStatusIn,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.APPOINTMENTS_UPDATE)
    ap = _load(db, appointment_id, me)
    previous = ap.status
    appointment_service.change_status(
        db, ap, payload.status, me,
        cancel_reason=payload.cancel_reason,
        note=payload.note,
    )
    db.commit()
    db.refresh(ap)
    logger.info("Appointment %s %s -> %s by user=%s", ap.appointment_code, previous, ap.status, me.id)
    return ok(_out(ap))
