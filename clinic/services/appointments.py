# FILE: clinic/services/appointments.py
from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from clinic.core import scheduling
from clinic.core.errors import (
    InvalidTransition,
    NotFoundError,
    SchedulingConflict,
    ValidationFailed,
)
from clinic.models.appointment import Appointment, AppointmentStatus, AppointmentStatusLog
from clinic.models.user import User, UserRole
from clinic.schemas.appointment import AppointmentCreate, AppointmentUpdate
from clinic.services.id_gen import appointment_code
from clinic.services.patients import get_patient, record_visit
from clinic.utils.timezone import month_start, next_month_start, now_local, today_local

logger = logging.getLogger(__name__)

S = AppointmentStatus

TRANSITIONS: Dict[str, set] = {
    S.SCHEDULED.value: {S.CONFIRMED.value, S.IN_PROGRESS.value, S.CANCELLED.value, S.NO_SHOW.value},
    S.CONFIRMED.value: {S.IN_PROGRESS.value, S.CANCELLED.value, S.NO_SHOW.value},
    S.IN_PROGRESS.value: {S.COMPLETED.value, S.CANCELLED.value},
    S.COMPLETED.value: set(),
    S.CANCELLED.value: set(),
    S.NO_SHOW.value: set(),
}

TERMINAL = {S.COMPLETED.value, S.CANCELLED.value, S.NO_SHOW.value}


def get_appointment(db: Session, appointment_id: int) -> Appointment:
    ap = db.get(Appointment, appointment_id)
    if not ap:
        raise NotFoundError("Appointment not found")
    return ap


def lock_doctor(db: Session, doctor_id: int) -> User:
    """
    Row-lock the doctor so bookings for the same doctor run one at a time
    (the overlap check and the insert happen inside that lock).
    """
    doc = (
        db.query(User)
        .filter(User.id == doctor_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not doc or doc.role != UserRole.DOCTOR.value or not doc.is_active:
        raise NotFoundError("Doctor not found")
    return doc


def _ensure_not_past(day: date, start: time) -> None:
    if datetime.combine(day, start) < now_local():
        raise ValidationFailed("Cannot book an appointment in the past")


def find_conflicts(
    db: Session,
    doctor_id: int,
    day: date,
    start: time,
    duration: int,
    exclude_appointment_id: Optional[int] = None,
) -> List[Appointment]:
    q = db.query(Appointment).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.appointment_date == day,
        Appointment.status.in_(scheduling.BUSY_STATUSES),
    )
    if exclude_appointment_id:
        q = q.filter(Appointment.id != exclude_appointment_id)
    existing = [(a, a.appointment_time, a.duration) for a in q.all()]
    return scheduling.find_conflicts(existing, start, duration)


def _conflict_details(rows: List[Appointment]) -> List[Dict[str, Any]]:
    return [{
        "id": a.id,
        "appointment_code": a.appointment_code,
        "time": a.appointment_time.strftime("%H:%M"),
        "end_time": a.end_time,
        "duration": a.duration,
        "status": a.status,
    } for a in rows]


def _ensure_slot_free(
    db: Session,
    doctor_id: int,
    day: date,
    start: time,
    duration: int,
    exclude_appointment_id: Optional[int] = None,
) -> None:
    # conflicts are only looked up within one day
    if not scheduling.ends_same_day(start, duration):
        raise ValidationFailed(
            "Appointment must end by midnight",
            details={"time": start.strftime("%H:%M"), "duration": duration},
        )
    clashes = find_conflicts(db, doctor_id, day, start, duration, exclude_appointment_id)
    if clashes:
        logger.info(
            "Slot conflict doctor=%s date=%s time=%s duration=%s with %s",
            doctor_id, day, start, duration, [a.id for a in clashes],
        )
        raise SchedulingConflict(
            "Doctor already has an appointment in this time slot",
            details=_conflict_details(clashes),
        )


def _log_status(ap: Appointment, from_status: Optional[str], to_status: str,
                user, note: Optional[str] = None) -> None:
    ap.status_logs.append(
        AppointmentStatusLog(
            from_status=from_status,
            to_status=to_status,
            note=note,
            changed_by_id=getattr(user, "id", None),
            changed_at=now_local(),
        ))


def create_appointment(db: Session, payload: AppointmentCreate, user) -> Appointment:
    start = scheduling.parse_hhmm(payload.appointment_time)
    _ensure_not_past(payload.appointment_date, start)

    patient = get_patient(db, payload.patient_id, active_only=True)
    lock_doctor(db, payload.doctor_id)
    _ensure_slot_free(db, payload.doctor_id, payload.appointment_date, start, payload.duration)

    data = payload.model_dump(exclude={"appointment_time"})
    ap = Appointment(
        **data,
        appointment_time=start,
        status=S.SCHEDULED.value,
        created_by_id=getattr(user, "id", None),
    )
    _log_status(ap, None, S.SCHEDULED.value, user)
    db.add(ap)

    record_visit(patient, datetime.combine(payload.appointment_date, start))

    db.flush()  # get id
    ap.appointment_code = appointment_code(ap.appointment_date, ap.id)
    return ap


def update_appointment(db: Session, ap: Appointment, payload: AppointmentUpdate, user) -> Appointment:
    if ap.status in TERMINAL:
        raise ValidationFailed(f"Cannot edit an appointment that is {ap.status}")

    data = payload.model_dump(exclude_unset=True)
    for required in ("doctor_id", "appointment_date", "appointment_time", "duration", "reason"):
        if required in data and data[required] is None:
            data.pop(required)

    doctor_id = data.get("doctor_id", ap.doctor_id)
    day = data.get("appointment_date", ap.appointment_date)
    start = (scheduling.parse_hhmm(data["appointment_time"])
             if "appointment_time" in data else ap.appointment_time)
    duration = data.get("duration", ap.duration)

    slot_changed = (
        doctor_id != ap.doctor_id
        or day != ap.appointment_date
        or start != ap.appointment_time
        or duration != ap.duration
    )
    if slot_changed:
        if day != ap.appointment_date or start != ap.appointment_time:
            _ensure_not_past(day, start)
        lock_doctor(db, doctor_id)
        _ensure_slot_free(db, doctor_id, day, start, duration, exclude_appointment_id=ap.id)

    data.pop("appointment_time", None)
    for k, v in data.items():
        setattr(ap, k, v)
    ap.appointment_time = start
    ap.updated_by_id = getattr(user, "id", None)
    db.flush()
    return ap


def change_status(
    db: Session,
    ap: Appointment,
    new_status: str,
    user,
    *,
    cancel_reason: Optional[str] = None,
    note: Optional[str] = None,
) -> Appointment:
    current = ap.status
    if new_status == current:
        raise InvalidTransition(f"Appointment is already {current}")
    if new_status not in TRANSITIONS.get(current, set()):
        raise InvalidTransition(f"Cannot move from {current} to {new_status}")

    if new_status == S.CANCELLED.value:
        if not cancel_reason:
            raise ValidationFailed("cancelReason is required when cancelling an appointment")
        ap.cancel_reason = cancel_reason
        ap.cancelled_at = now_local()
        ap.cancelled_by_id = getattr(user, "id", None)

    ap.status = new_status
    ap.updated_by_id = getattr(user, "id", None)
    _log_status(ap, current, new_status, user, note or cancel_reason)
    db.flush()
    return ap


def check_availability(
    db: Session,
    doctor_id: int,
    day: date,
    start: time,
    duration: int,
    exclude_appointment_id: Optional[int] = None,
) -> Dict[str, Any]:
    clashes = find_conflicts(db, doctor_id, day, start, duration, exclude_appointment_id)
    return {
        "available": not clashes,
        "conflicts": _conflict_details(clashes),
    }


def free_slots(db: Session, doctor_id: int, day: date, slot_minutes: int = 30):
    booked = (
        db.query(Appointment.appointment_time, Appointment.duration)
        .filter(
            Appointment.doctor_id == doctor_id,
            Appointment.appointment_date == day,
            Appointment.status.in_(scheduling.BUSY_STATUSES),
        )
        .all()
    )
    slots = scheduling.free_slots([(t, d) for t, d in booked], slot_minutes)
    if day == today_local():
        now_hhmm = now_local().strftime("%H:%M")
        slots = [s for s in slots if s["start"] >= now_hhmm]
    return slots


def stats_overview(db: Session, doctor_id: Optional[int] = None) -> Dict[str, Any]:
    today = today_local()
    week_start = today - timedelta(days=today.weekday())

    def _base():
        q = db.query(func.count(Appointment.id))
        if doctor_id:
            q = q.filter(Appointment.doctor_id == doctor_id)
        return q

    by_status_q = db.query(Appointment.status, func.count(Appointment.id))
    by_type_q = db.query(Appointment.appointment_type, func.count(Appointment.id))
    if doctor_id:
        by_status_q = by_status_q.filter(Appointment.doctor_id == doctor_id)
        by_type_q = by_type_q.filter(Appointment.doctor_id == doctor_id)

    return {
        "today": _base().filter(Appointment.appointment_date == today).scalar() or 0,
        "this_week": _base().filter(
            Appointment.appointment_date >= week_start,
            Appointment.appointment_date < week_start + timedelta(days=7),
        ).scalar() or 0,
        "this_month": _base().filter(
            Appointment.appointment_date >= month_start(today),
            Appointment.appointment_date < next_month_start(today),
        ).scalar() or 0,
        "by_status": {s: c for s, c in by_status_q.group_by(Appointment.status).all()},
        "by_type": {t: c for t, c in by_type_q.group_by(Appointment.appointment_type).all()},
    }
