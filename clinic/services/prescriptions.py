# FILE: clinic/services/prescriptions.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from clinic.core.config import settings
from clinic.core.errors import (
    InsufficientStock,
    InvalidTransition,
    NotFoundError,
    ValidationFailed,
)
from clinic.models.common import RecordState
from clinic.models.medical_record import MedicalRecord
from clinic.models.medicine import Medicine, StockTxnType
from clinic.models.prescription import Prescription, PrescriptionLine, PrescriptionStatus
from clinic.schemas.prescription import PrescriptionCreate, PrescriptionLineIn, PrescriptionUpdate
from clinic.services.id_gen import prescription_code
from clinic.services.inventory import lock_medicine, set_stock
from clinic.services.patients import get_patient
from clinic.utils.timezone import now_local

logger = logging.getLogger(__name__)

RX = PrescriptionStatus

# status changes a user can request; dispensing statuses are derived
STATUS_TRANSITIONS = {
    RX.DRAFT.value: {RX.ISSUED.value, RX.CANCELLED.value},
    RX.ISSUED.value: {RX.CANCELLED.value},
}

LOCKED_FOR_EDIT = {RX.FULLY_DISPENSED.value, RX.CANCELLED.value}


class DispenseOutcome:
    DISPENSED = "dispensed"
    ALREADY_DISPENSED = "already_dispensed"
    NOT_FOUND = "not_found"
    INSUFFICIENT_STOCK = "insufficient_stock"


def get_prescription(db: Session, rx_id: int) -> Prescription:
    rx = db.get(Prescription, rx_id)
    if not rx or rx.state != RecordState.ACTIVE.value:
        raise NotFoundError("Prescription not found")
    return rx


def recompute_totals(rx: Prescription) -> int:
    """line.total_price = quantity * unit_price; total_amount = sum of lines."""
    total = 0
    for ln in rx.lines:
        ln.total_price = int(ln.quantity) * int(ln.unit_price or 0)
        total += ln.total_price
    rx.total_amount = total
    return total


def recompute_dispense_status(rx: Prescription) -> str:
    lines = list(rx.lines)
    done = [ln for ln in lines if ln.dispensed]
    if lines and len(done) == len(lines):
        rx.status = RX.FULLY_DISPENSED.value
    elif done:
        rx.status = RX.PARTIALLY_DISPENSED.value
    return rx.status


def _build_lines(db: Session, items: Iterable[PrescriptionLineIn]) -> List[PrescriptionLine]:
    """
    Resolve medicines and check stock for every requested line.
    Missing medicine -> 404, any shortage -> 400 for the whole request.
    Lines for the same medicine are summed before comparing with stock.
    Creation never touches stock.
    """
    items = list(items)
    ids = {it.medicine_id for it in items}
    meds = {
        m.id: m
        for m in db.query(Medicine).filter(Medicine.id.in_(ids)).all()
        if m.state == RecordState.ACTIVE.value
    }
    missing = sorted(ids - set(meds))
    if missing:
        raise NotFoundError(
            f"Medicine not found: {', '.join(str(i) for i in missing)}",
            details={"medicine_ids": missing},
        )

    # quantities of the same medicine across lines are checked together
    wanted: Dict[int, int] = {}
    for it in items:
        wanted[it.medicine_id] = wanted.get(it.medicine_id, 0) + it.quantity
    short = [{
        "medicine_id": mid,
        "medicine_name": meds[mid].name,
        "requested": qty,
        "available": meds[mid].stock_quantity or 0,
    } for mid, qty in wanted.items() if qty > (meds[mid].stock_quantity or 0)]
    if short:
        names = ", ".join(f"{s['medicine_name']} (available {s['available']})" for s in short)
        raise InsufficientStock(f"Insufficient stock: {names}", details=short)

    lines = []
    for it in items:
        med = meds[it.medicine_id]
        lines.append(
            PrescriptionLine(
                medicine_id=med.id,
                medicine_name=med.name,
                dosage=it.dosage,
                frequency=it.frequency,
                duration=it.duration,
                quantity=it.quantity,
                unit_price=it.unit_price if it.unit_price is not None else (med.price or 0),
                instructions=it.instructions,
                before_meal=it.before_meal,
                after_meal=it.after_meal,
                warnings=list(it.warnings or []),
                dispensed=False,
            ))
    return lines


def _check_medical_record(db: Session, record_id: Optional[int], patient_id: int) -> None:
    if not record_id:
        return
    rec = db.get(MedicalRecord, record_id)
    if not rec or rec.state != RecordState.ACTIVE.value:
        raise NotFoundError("Medical record not found")
    if rec.patient_id != patient_id:
        raise ValidationFailed("Medical record belongs to a different patient")


def create_prescription(db: Session, payload: PrescriptionCreate, doctor) -> Prescription:
    get_patient(db, payload.patient_id, active_only=True)
    _check_medical_record(db, payload.medical_record_id, payload.patient_id)
    lines = _build_lines(db, payload.medications)

    now = now_local()
    rx = Prescription(
        patient_id=payload.patient_id,
        doctor_id=doctor.id,
        medical_record_id=payload.medical_record_id,
        prescription_date=now,
        diagnosis=payload.diagnosis,
        symptoms=payload.symptoms,
        general_instructions=payload.general_instructions,
        follow_up_date=payload.follow_up_date,
        follow_up_instructions=payload.follow_up_instructions,
        priority=payload.priority,
        notes=payload.notes,
        status=RX.DRAFT.value,
        state=RecordState.ACTIVE.value,
        valid_until=(now + timedelta(days=settings.PRESCRIPTION_VALID_DAYS)).date(),
        created_by_id=doctor.id,
    )
    rx.lines = lines
    recompute_totals(rx)
    db.add(rx)
    db.flush()  # get id
    rx.prescription_code = prescription_code(rx.id)
    return rx


def update_prescription(db: Session, rx: Prescription, payload: PrescriptionUpdate) -> Prescription:
    if rx.status in LOCKED_FOR_EDIT:
        raise ValidationFailed(f"Cannot edit a prescription that is {rx.status}")

    data = payload.model_dump(exclude_unset=True)
    items = data.pop("medications", None)
    if items is not None:
        if any(ln.dispensed for ln in rx.lines):
            raise ValidationFailed("Medications cannot be replaced after dispensing has started")
        rx.lines = _build_lines(db, payload.medications)

    if "diagnosis" in data and not data["diagnosis"]:
        raise ValidationFailed("diagnosis cannot be empty")
    if "priority" in data and data["priority"] is None:
        data.pop("priority")
    for k, v in data.items():
        setattr(rx, k, v)

    recompute_totals(rx)
    db.flush()
    return rx


def change_status(db: Session, rx: Prescription, new_status: str, user,
                  reason: Optional[str] = None) -> Prescription:
    current = rx.status
    if new_status not in STATUS_TRANSITIONS.get(current, set()):
        raise InvalidTransition(f"Cannot move from {current} to {new_status}")

    now = now_local()
    if new_status == RX.ISSUED.value:
        rx.issued_at = now
        rx.issued_by_id = getattr(user, "id", None)
    elif new_status == RX.CANCELLED.value:
        if not reason:
            raise ValidationFailed("reason is required when cancelling a prescription")
        rx.cancel_reason = reason
        rx.cancelled_at = now
        rx.cancelled_by_id = getattr(user, "id", None)
    rx.status = new_status
    db.flush()
    return rx


def dispense(
    db: Session,
    rx_id: int,
    line_ids: Iterable[int],
    user,
    pharmacy_notes: Optional[str] = None,
) -> Tuple[Prescription, List[Dict[str, Any]]]:
    """
    Dispense the requested lines.

    The prescription row and then each medicine row (ascending id) are locked
    for the rest of the transaction, so two dispensers of the same line are
    serialized and the second one sees it already dispensed. Without row
    locks (sqlite) the version column turns the race into a StaleDataError.
    Lines that cannot be dispensed are reported and skipped; the rest proceed.
    """
    rx = (
        db.query(Prescription)
        .filter(Prescription.id == rx_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not rx or rx.state != RecordState.ACTIVE.value:
        raise NotFoundError("Prescription not found")
    if rx.status == RX.CANCELLED.value:
        raise ValidationFailed("Cannot dispense a cancelled prescription")

    requested = list(dict.fromkeys(int(i) for i in line_ids))
    by_id = {ln.id: ln for ln in rx.lines}

    pending = [by_id[i] for i in requested if i in by_id and not by_id[i].dispensed]
    meds: Dict[int, Optional[Medicine]] = {}
    for mid in sorted({ln.medicine_id for ln in pending}):
        meds[mid] = lock_medicine(db, mid)

    now = now_local()
    results: List[Dict[str, Any]] = []
    for lid in requested:
        ln = by_id.get(lid)
        if ln is None:
            results.append({"line_id": lid, "outcome": DispenseOutcome.NOT_FOUND})
            continue

        base = {
            "line_id": ln.id,
            "medicine_id": ln.medicine_id,
            "medicine_name": ln.medicine_name,
            "quantity": ln.quantity,
        }
        if ln.dispensed:
            results.append({**base, "outcome": DispenseOutcome.ALREADY_DISPENSED})
            continue

        med = meds.get(ln.medicine_id)
        available = (med.stock_quantity or 0) if med else 0
        if med is None or med.state != RecordState.ACTIVE.value or available < ln.quantity:
            logger.warning(
                "Dispense skipped rx=%s line=%s medicine=%s: need %s, have %s",
                rx.id, ln.id, ln.medicine_id, ln.quantity, available,
            )
            results.append({**base, "outcome": DispenseOutcome.INSUFFICIENT_STOCK,
                            "available": available})
            continue

        set_stock(db, med, available - ln.quantity, user,
                  txn_type=StockTxnType.DISPENSE.value,
                  ref_type="prescription", ref_id=rx.id,
                  note=rx.prescription_code)

        ln.dispensed = True
        ln.dispensed_at = now
        ln.dispensed_by_id = getattr(user, "id", None)
        results.append({**base, "outcome": DispenseOutcome.DISPENSED})

    recompute_dispense_status(rx)
    if pharmacy_notes:
        rx.pharmacy_notes = pharmacy_notes

    db.flush()
    logger.info(
        "Dispense rx=%s status=%s results=%s",
        rx.id, rx.status, [(r["line_id"], r["outcome"]) for r in results],
    )
    return rx, results


def archive_prescription(db: Session, rx: Prescription) -> Prescription:
    if any(ln.dispensed for ln in rx.lines):
        raise ValidationFailed("Cannot delete a prescription that has dispensed medications")
    rx.state = RecordState.ARCHIVED.value
    rx.archived_at = now_local()
    db.flush()
    return rx


def stats_overview(db: Session, doctor_id: Optional[int] = None) -> Dict[str, Any]:
    active = Prescription.state == RecordState.ACTIVE.value

    def _scoped(q):
        q = q.filter(active)
        if doctor_id:
            q = q.filter(Prescription.doctor_id == doctor_id)
        return q

    since = now_local() - timedelta(days=30)
    total = _scoped(db.query(func.count(Prescription.id))).scalar() or 0
    recent = _scoped(db.query(func.count(Prescription.id))).filter(
        Prescription.prescription_date >= since).scalar() or 0
    by_status = dict(
        _scoped(db.query(Prescription.status, func.count(Prescription.id)))
        .group_by(Prescription.status).all())
    revenue = _scoped(db.query(func.coalesce(func.sum(Prescription.total_amount), 0))).filter(
        Prescription.status != RX.CANCELLED.value).scalar() or 0

    top_q = (
        db.query(
            PrescriptionLine.medicine_id,
            PrescriptionLine.medicine_name,
            func.count(PrescriptionLine.id).label("times"),
            func.sum(PrescriptionLine.quantity).label("quantity"),
        )
        .join(Prescription, Prescription.id == PrescriptionLine.prescription_id)
        .filter(active)
    )
    if doctor_id:
        top_q = top_q.filter(Prescription.doctor_id == doctor_id)
    top = (
        top_q.group_by(PrescriptionLine.medicine_id, PrescriptionLine.medicine_name)
        .order_by(func.count(PrescriptionLine.id).desc())
        .limit(5)
        .all()
    )
    return {
        "total": total,
        "last_30_days": recent,
        "by_status": by_status,
        "revenue": int(revenue),
        "top_medicines": [
            {"medicine_id": m, "name": n, "times_prescribed": t, "quantity": int(q or 0)}
            for m, n, t, q in top
        ],
    }


def revenue_between(db: Session, start: datetime, end: datetime,
                    doctor_id: Optional[int] = None) -> int:
    q = db.query(func.coalesce(func.sum(Prescription.total_amount), 0)).filter(
        Prescription.state == RecordState.ACTIVE.value,
        Prescription.status != RX.CANCELLED.value,
        Prescription.prescription_date >= start,
        Prescription.prescription_date < end,
    )
    if doctor_id:
        q = q.filter(Prescription.doctor_id == doctor_id)
    return int(q.scalar() or 0)
