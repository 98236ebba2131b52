# FILE: clinic/services/dashboard_service.py
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from clinic.core.rbac import Perm, has_perm, scope_doctor_id
from clinic.models.appointment import Appointment, AppointmentStatus
from clinic.models.common import RecordState
from clinic.models.medical_record import MedicalRecord
from clinic.models.patient import Patient
from clinic.models.prescription import Prescription, PrescriptionStatus
from clinic.models.user import User, UserRole
from clinic.services import inventory as inventory_service
from clinic.services import patients as patient_service
from clinic.services import medical_records as record_service
from clinic.services.prescriptions import revenue_between
from clinic.utils.timezone import day_bounds, month_start, next_month_start, now_local, today_local

A = AppointmentStatus

OPEN_STATUSES = (A.SCHEDULED.value, A.CONFIRMED.value, A.IN_PROGRESS.value)


def _doctor_scope(user) -> Optional[int]:
    return scope_doctor_id(user, Perm.DASHBOARD_VIEW_ALL)


def _count(db: Session, model, *filters) -> int:
    return db.query(func.count(model.id)).filter(*filters).scalar() or 0


def overview(db: Session, user) -> Dict[str, Any]:
    doctor_id = _doctor_scope(user)
    today = today_local()
    first = month_start(today)
    nxt = next_month_start(today)
    t0, t1 = day_bounds(today)
    m0 = datetime.combine(first, datetime.min.time())
    m1 = datetime.combine(nxt, datetime.min.time())

    ap_scope = [Appointment.doctor_id == doctor_id] if doctor_id else []
    rec_scope = [MedicalRecord.state == RecordState.ACTIVE.value]
    rx_scope = [Prescription.state == RecordState.ACTIVE.value]
    if doctor_id:
        rec_scope.append(MedicalRecord.doctor_id == doctor_id)
        rx_scope.append(Prescription.doctor_id == doctor_id)

    stats: Dict[str, Any] = {
        "appointments": {
            "today": _count(db, Appointment, *ap_scope,
                            Appointment.appointment_date == today,
                            Appointment.status.in_(OPEN_STATUSES)),
            "this_month": _count(db, Appointment, *ap_scope,
                                 Appointment.appointment_date >= first,
                                 Appointment.appointment_date < nxt),
            "pending": _count(db, Appointment, *ap_scope,
                              Appointment.status == A.SCHEDULED.value),
        },
        "medical_records": {
            "today": _count(db, MedicalRecord, *rec_scope,
                            MedicalRecord.visit_date >= t0, MedicalRecord.visit_date < t1),
            "this_month": _count(db, MedicalRecord, *rec_scope,
                                 MedicalRecord.visit_date >= m0, MedicalRecord.visit_date < m1),
        },
        "prescriptions": {
            "today": _count(db, Prescription, *rx_scope,
                            Prescription.prescription_date >= t0, Prescription.prescription_date < t1),
            "this_month": _count(db, Prescription, *rx_scope,
                                 Prescription.prescription_date >= m0, Prescription.prescription_date < m1),
        },
    }

    if has_perm(user, Perm.DASHBOARD_CLINIC_TOTALS):
        stats["patients_total"] = _count(db, Patient, Patient.state == RecordState.ACTIVE.value)
        stats["doctors_active"] = _count(db, User, User.role == UserRole.DOCTOR.value,
                                         User.state == RecordState.ACTIVE.value)

    if has_perm(user, Perm.DASHBOARD_REVENUE):
        stats["revenue"] = {
            "today": revenue_between(db, t0, t1, doctor_id),
            "this_month": revenue_between(db, m0, m1, doctor_id),
        }

    out: Dict[str, Any] = {"stats": stats}
    if has_perm(user, Perm.DASHBOARD_INVENTORY):
        out["alerts"] = inventory_service.alert_counts(db)
    return out


def daily_appointments(db: Session, user, days: int = 7) -> Dict[str, Any]:
    doctor_id = _doctor_scope(user)
    end = today_local()
    start = end - timedelta(days=days)
    q = db.query(Appointment.appointment_date, Appointment.status, func.count(Appointment.id)).filter(
        Appointment.appointment_date >= start,
        Appointment.appointment_date <= end,
    )
    if doctor_id:
        q = q.filter(Appointment.doctor_id == doctor_id)
    rows = q.group_by(Appointment.appointment_date, Appointment.status).all()

    per_day: Dict[str, Dict[str, Any]] = {}
    for d, status, n in rows:
        key = d.isoformat()
        slot = per_day.setdefault(key, {"date": key, "total": 0, "by_status": {}})
        slot["by_status"][status] = n
        slot["total"] += n
    return {
        "daily": [per_day[k] for k in sorted(per_day)],
        "period": {"start": start, "end": end},
    }


def monthly_revenue(db: Session, user, months: int = 6) -> Dict[str, Any]:
    doctor_id = _doctor_scope(user)
    today = today_local()
    first = month_start(today)
    for _ in range(max(months - 1, 0)):
        first = month_start(first - timedelta(days=1))
    start = datetime.combine(first, datetime.min.time())

    q = db.query(Prescription.prescription_date, Prescription.total_amount).filter(
        Prescription.state == RecordState.ACTIVE.value,
        Prescription.status != PrescriptionStatus.CANCELLED.value,
        Prescription.prescription_date >= start,
    )
    if doctor_id:
        q = q.filter(Prescription.doctor_id == doctor_id)

    # grouped in python: month extraction differs between mysql and sqlite
    buckets: Dict[str, Dict[str, Any]] = {}
    cur = first
    while cur <= today:
        key = cur.strftime("%Y-%m")
        buckets[key] = {"month": key, "revenue": 0, "prescriptions": 0}
        cur = next_month_start(cur)
    for when, amount in q.all():
        b = buckets.setdefault(when.strftime("%Y-%m"),
                               {"month": when.strftime("%Y-%m"), "revenue": 0, "prescriptions": 0})
        b["revenue"] += int(amount or 0)
        b["prescriptions"] += 1
    return {
        "monthly": [buckets[k] for k in sorted(buckets)],
        "period": {"start": first, "end": today},
    }


def demographics(db: Session) -> Dict[str, Any]:
    return patient_service.demographics(db)


def common_diagnoses(db: Session, user, limit: int = 10) -> List[Dict[str, Any]]:
    return record_service.common_diagnoses(db, limit, _doctor_scope(user))


def recent_activities(db: Session, user, limit: int = 10) -> List[Dict[str, Any]]:
    doctor_id = _doctor_scope(user)

    ap_q = db.query(Appointment).options(
        joinedload(Appointment.patient), joinedload(Appointment.doctor))
    rec_q = db.query(MedicalRecord).options(
        joinedload(MedicalRecord.patient)).filter(MedicalRecord.state == RecordState.ACTIVE.value)
    if doctor_id:
        ap_q = ap_q.filter(Appointment.doctor_id == doctor_id)
        rec_q = rec_q.filter(MedicalRecord.doctor_id == doctor_id)

    items: List[Dict[str, Any]] = []
    for ap in ap_q.order_by(Appointment.id.desc()).limit(limit).all():
        items.append({
            "type": "appointment",
            "title": f"Appointment {ap.appointment_code}",
            "description": f"Patient: {ap.patient.full_name} - Doctor: {ap.doctor.full_name}",
            "timestamp": ap.created_at,
            "status": ap.status,
        })
    for rec in rec_q.order_by(MedicalRecord.id.desc()).limit(limit).all():
        items.append({
            "type": "medical_record",
            "title": f"Record {rec.record_code}",
            "description": f"Patient: {rec.patient.full_name} - Diagnosis: {rec.diagnosis_primary}",
            "timestamp": rec.created_at,
            "status": rec.status,
        })
    items.sort(key=lambda a: a["timestamp"] or datetime.min, reverse=True)
    return items[:limit]


def upcoming_appointments(db: Session, user, days: int = 7, limit: int = 10) -> List[Appointment]:
    doctor_id = _doctor_scope(user)
    today = today_local()
    now_hhmm = now_local().time().replace(second=0, microsecond=0)
    q = db.query(Appointment).options(
        joinedload(Appointment.patient), joinedload(Appointment.doctor)
    ).filter(
        Appointment.appointment_date >= today,
        Appointment.appointment_date <= today + timedelta(days=days),
        Appointment.status.in_((A.SCHEDULED.value, A.CONFIRMED.value)),
    )
    if doctor_id:
        q = q.filter(Appointment.doctor_id == doctor_id)
    rows = q.order_by(Appointment.appointment_date, Appointment.appointment_time).all()
    rows = [a for a in rows if a.appointment_date > today or a.appointment_time >= now_hhmm]
    return rows[:limit]
