# FILE: clinic/services/inventory.py
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Query, Session

from clinic.core.config import settings
from clinic.core.errors import InsufficientStock, NotFoundError, ValidationFailed
from clinic.models.common import RecordState
from clinic.models.medicine import Medicine, StockTransaction, StockTxnType
from clinic.schemas.medicine import MedicineCreate, MedicineUpdate
from clinic.utils.timezone import now_local, today_local

logger = logging.getLogger(__name__)


def get_medicine(db: Session, medicine_id: int, *, active_only: bool = False) -> Medicine:
    m = db.get(Medicine, medicine_id)
    if not m or (active_only and m.state != RecordState.ACTIVE.value):
        raise NotFoundError("Medicine not found")
    return m


def lock_medicine(db: Session, medicine_id: int) -> Optional[Medicine]:
    """SELECT ... FOR UPDATE, refreshing any copy already in the session."""
    return (
        db.query(Medicine)
        .filter(Medicine.id == medicine_id)
        .with_for_update()
        .populate_existing()
        .first()
    )


def create_stock_transaction(
    db: Session,
    user,
    medicine: Medicine,
    *,
    before: int,
    after: int,
    txn_type: str,
    ref_type: Optional[str] = None,
    ref_id: Optional[int] = None,
    note: Optional[str] = None,
) -> StockTransaction:
    """
    Central creator for StockTransaction, always use this so audit is consistent.
    """
    st = StockTransaction(
        medicine_id=medicine.id,
        txn_type=txn_type,
        delta=after - before,
        quantity_before=before,
        quantity_after=after,
        ref_type=ref_type,
        ref_id=ref_id,
        note=note,
        user_id=getattr(user, "id", None),
        created_at=now_local(),
    )
    db.add(st)
    return st


def set_stock(
    db: Session,
    medicine: Medicine,
    new_quantity: int,
    user,
    *,
    txn_type: str,
    ref_type: Optional[str] = None,
    ref_id: Optional[int] = None,
    note: Optional[str] = None,
) -> Medicine:
    """
    The only place stock_quantity is written. Never lets it go below zero.
    """
    before = medicine.stock_quantity or 0
    if new_quantity < 0:
        raise InsufficientStock(
            f"Insufficient stock for {medicine.name}: available {before}",
            details={"medicine_id": medicine.id, "available": before},
        )
    medicine.stock_quantity = new_quantity
    create_stock_transaction(
        db, user, medicine,
        before=before,
        after=new_quantity,
        txn_type=txn_type,
        ref_type=ref_type,
        ref_id=ref_id,
        note=note,
    )
    logger.info("Stock %s medicine=%s %s -> %s", txn_type, medicine.id, before, new_quantity)
    return medicine


def adjust_stock(db: Session, medicine_id: int, op: str, quantity: int, user,
                 note: Optional[str] = None) -> Medicine:
    med = lock_medicine(db, medicine_id)
    if not med or med.state != RecordState.ACTIVE.value:
        raise NotFoundError("Medicine not found")

    current = med.stock_quantity or 0
    if op == StockTxnType.ADD.value:
        target = current + quantity
    elif op == StockTxnType.SUBTRACT.value:
        target = current - quantity
    elif op == StockTxnType.SET.value:
        target = quantity
    else:
        raise ValidationFailed("type must be add, subtract or set")

    if target < 0:
        raise ValidationFailed(
            f"Stock cannot go below zero (current {current}, requested -{quantity})",
            details={"current": current, "requested": quantity},
        )
    med.updated_by_id = getattr(user, "id", None)
    set_stock(db, med, target, user, txn_type=op, ref_type="manual", note=note)
    db.flush()
    return med


def _apply(med: Medicine, data: Dict[str, Any]) -> None:
    storage = data.pop("storage", None)
    if storage is not None:
        med.storage_temperature = storage.get("temperature")
        med.storage_humidity = storage.get("humidity")
        med.storage_light_sensitive = bool(storage.get("light_sensitive"))
        med.storage_notes = storage.get("special_instructions")
    for k, v in data.items():
        if v is None and k in ("indications", "contraindications", "side_effects",
                               "interactions", "precautions", "tags"):
            v = []
        setattr(med, k, v)


def create_medicine(db: Session, payload: MedicineCreate, user) -> Medicine:
    data = payload.model_dump()
    stock = data.pop("stock")
    if stock["max_quantity"] < stock["min_quantity"]:
        raise ValidationFailed("maxQuantity must be greater than or equal to minQuantity")

    for flag, default in (("requires_prescription", True), ("is_controlled", False)):
        if data.get(flag) is None:
            data[flag] = default

    med = Medicine(
        state=RecordState.ACTIVE.value,
        stock_quantity=0,
        min_quantity=stock["min_quantity"],
        max_quantity=stock["max_quantity"],
        created_by_id=getattr(user, "id", None),
    )
    _apply(med, data)
    db.add(med)
    db.flush()  # get id
    set_stock(db, med, stock["quantity"], user, txn_type=StockTxnType.INITIAL.value)
    db.flush()
    return med


def update_medicine(db: Session, med: Medicine, payload: MedicineUpdate, user) -> Medicine:
    data = payload.model_dump(exclude_unset=True)
    stock = data.pop("stock", None) or {}

    for required in ("name", "category", "dosage_form", "strength", "unit",
                     "manufacturer", "expiry_date", "price"):
        if required in data and data[required] is None:
            raise ValidationFailed(f"{required} cannot be empty")
    for flag in ("requires_prescription", "is_controlled"):
        if flag in data and data[flag] is None:
            data.pop(flag)

    mfg = data.get("manufacture_date", med.manufacture_date)
    exp = data.get("expiry_date", med.expiry_date)
    if mfg and exp and exp <= mfg:
        raise ValidationFailed("expiryDate must be after manufactureDate")

    if stock.get("quantity") is not None and stock["quantity"] != med.stock_quantity:
        locked = lock_medicine(db, med.id)
        set_stock(db, locked, stock["quantity"], user,
                  txn_type=StockTxnType.ADJUST.value, ref_type="manual", note="catalog edit")
    if stock.get("min_quantity") is not None:
        med.min_quantity = stock["min_quantity"]
    if stock.get("max_quantity") is not None:
        med.max_quantity = stock["max_quantity"]
    if med.max_quantity < med.min_quantity:
        raise ValidationFailed("maxQuantity must be greater than or equal to minQuantity")

    _apply(med, data)
    med.updated_by_id = getattr(user, "id", None)
    db.flush()
    return med


def archive_medicine(db: Session, med: Medicine) -> Medicine:
    if med.state == RecordState.ARCHIVED.value:
        raise ValidationFailed("Medicine is already archived")
    med.state = RecordState.ARCHIVED.value
    med.archived_at = now_local()
    db.flush()
    return med


def restore_medicine(db: Session, med: Medicine) -> Medicine:
    if med.state == RecordState.ACTIVE.value:
        raise ValidationFailed("Medicine is already active")
    med.state = RecordState.ACTIVE.value
    med.archived_at = None
    db.flush()
    return med


def search_query(
    db: Session,
    *,
    search: Optional[str] = None,
    category: Optional[str] = None,
    dosage_form: Optional[str] = None,
    low_stock: bool = False,
    expired: bool = False,
    expiring_soon: bool = False,
    state: Optional[str] = RecordState.ACTIVE.value,
) -> Query:
    q = db.query(Medicine)
    if state:
        q = q.filter(Medicine.state == state)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(
            or_(
                Medicine.name.ilike(like),
                Medicine.generic_name.ilike(like),
                Medicine.brand.ilike(like),
                Medicine.manufacturer.ilike(like),
            ))
    if category:
        q = q.filter(Medicine.category == category)
    if dosage_form:
        q = q.filter(Medicine.dosage_form == dosage_form)
    today = today_local()
    if low_stock:
        q = q.filter(Medicine.stock_quantity <= Medicine.min_quantity)
    if expired:
        q = q.filter(Medicine.expiry_date < today)
    if expiring_soon:
        q = q.filter(
            Medicine.expiry_date >= today,
            Medicine.expiry_date <= today + timedelta(days=settings.EXPIRY_WARNING_DAYS),
        )
    return q.order_by(Medicine.name.asc(), Medicine.id.asc())


def quick_search(db: Session, term: str, limit: int = 20):
    term = (term or "").strip()
    if len(term) < 2:
        raise ValidationFailed("Search term must be at least 2 characters")
    like = f"%{term}%"
    return (
        db.query(Medicine)
        .filter(
            Medicine.state == RecordState.ACTIVE.value,
            or_(Medicine.name.ilike(like), Medicine.generic_name.ilike(like)),
        )
        .order_by(Medicine.name.asc())
        .limit(limit)
        .all()
    )


def alerts(db: Session) -> Dict[str, Any]:
    today = today_local()
    active = db.query(Medicine).filter(Medicine.state == RecordState.ACTIVE.value)
    expired = active.filter(Medicine.expiry_date < today).order_by(Medicine.expiry_date).all()
    expiring = active.filter(
        Medicine.expiry_date >= today,
        Medicine.expiry_date <= today + timedelta(days=settings.EXPIRY_WARNING_DAYS),
    ).order_by(Medicine.expiry_date).all()
    low = active.filter(Medicine.stock_quantity <= Medicine.min_quantity).order_by(
        Medicine.stock_quantity).all()
    return {"expired": expired, "expiring_soon": expiring, "low_stock": low}


def alert_counts(db: Session) -> Dict[str, int]:
    today = today_local()
    base = db.query(func.count(Medicine.id)).filter(Medicine.state == RecordState.ACTIVE.value)
    return {
        "low_stock": base.filter(Medicine.stock_quantity <= Medicine.min_quantity).scalar() or 0,
        "expired": base.filter(Medicine.expiry_date < today).scalar() or 0,
    }


def stats_overview(db: Session) -> Dict[str, Any]:
    active = Medicine.state == RecordState.ACTIVE.value
    total = db.query(func.count(Medicine.id)).scalar() or 0
    active_count = db.query(func.count(Medicine.id)).filter(active).scalar() or 0
    by_category = dict(
        db.query(Medicine.category, func.count(Medicine.id))
        .filter(active)
        .group_by(Medicine.category)
        .all())
    stock_value = (
        db.query(func.coalesce(func.sum(Medicine.stock_quantity * func.coalesce(Medicine.cost_price, 0)), 0))
        .filter(active)
        .scalar()
        or 0
    )
    counts = alert_counts(db)
    return {
        "total": total,
        "active": active_count,
        "archived": total - active_count,
        "by_category": by_category,
        "stock_value": int(stock_value),
        "low_stock": counts["low_stock"],
        "expired": counts["expired"],
    }


def transactions_query(db: Session, medicine_id: int) -> Query:
    return (
        db.query(StockTransaction)
        .filter(StockTransaction.medicine_id == medicine_id)
        .order_by(StockTransaction.id.desc())
    )
