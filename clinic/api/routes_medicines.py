# clinic/api/routes_medicines.py
from __future__ import annotations

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from clinic.api.deps import current_user, get_db
from clinic.api.response import created, ok, paged
from clinic.core.rbac import Perm, require_perm
from clinic.models.common import RecordState
from clinic.models.user import User
from clinic.schemas.medicine import (
    Category,
    DosageForm,
    MedicineCreate,
    MedicineLite,
    MedicineOut,
    MedicineUpdate,
    StockAdjustIn,
    StockTxnOut,
)
from clinic.services import inventory
from clinic.services.pagination import paginate

logger = logging.getLogger(__name__)
router = APIRouter()


def _out(m) -> dict:
    return MedicineOut.model_validate(m).model_dump()


def _lite(rows) -> list:
    return [MedicineLite.model_validate(m).model_dump() for m in rows]


@router.get("/")
def list_medicines(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    search: Optional[str] = None,
    category: Optional[Category] = None,
    dosage_form: Optional[DosageForm] = Query(None, alias="dosageForm"),
    low_stock: bool = Query(False, alias="lowStock"),
    expired: bool = False,
    expiring_soon: bool = Query(False, alias="expiringSoon"),
    state: Literal["active", "archived"] = "active",
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.MEDICINES_VIEW)
    if state == RecordState.ARCHIVED.value:
        require_perm(me, Perm.MEDICINES_ARCHIVE)
    q = inventory.search_query(
        db,
        search=search,
        category=category,
        dosage_form=dosage_form,
        low_stock=low_stock,
        expired=expired,
        expiring_soon=expiring_soon,
        state=state,
    )
    rows, meta = paginate(q, page, limit)
    return paged(rows, meta, _out)


@router.get("/search/quick")
def quick_search(
    q: str = Query(""),
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.MEDICINES_VIEW)
    return ok(_lite(inventory.quick_search(db, q)))


@router.get("/alerts/overview")
def alerts_overview(
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.MEDICINES_VIEW)
    groups = inventory.alerts(db)
    return ok({
        key: {"count": len(rows), "items": _lite(rows)}
        for key, rows in groups.items()
    })


@router.get("/stats/overview")
def stats_overview(
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.MEDICINES_MANAGE)
    return ok(inventory.stats_overview(db))


@router.get("/{medicine_id}")
def get_medicine(
    medicine_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.MEDICINES_VIEW)
    return ok(_out(inventory.get_medicine(db, medicine_id)))


@router.get("/{medicine_id}/transactions")
def stock_transactions(
    medicine_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.MEDICINES_MANAGE)
    inventory.get_medicine(db, medicine_id)
    rows, meta = paginate(inventory.transactions_query(db, medicine_id), page, limit)
    return paged(rows, meta, lambda t: StockTxnOut.model_validate(t).model_dump())


@router.post("/")
def create_medicine(
    payload: MedicineCreate,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.MEDICINES_MANAGE)
    med = inventory.create_medicine(db, payload, me)
    db.commit()
    db.refresh(med)
    logger.info("Medicine id=%s '%s' created by user=%s", med.id, med.name, me.id)
    return created(_out(med))


@router.put("/{medicine_id}")
def update_medicine(
    medicine_id: int,
    payload: MedicineUpdate,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.MEDICINES_MANAGE)
    med = inventory.get_medicine(db, medicine_id, active_only=True)
    inventory.update_medicine(db, med, payload, me)
    db.commit()
    db.refresh(med)
    return ok(_out(med))


@router.patch("/{medicine_id}/stock")
def adjust_stock(
    medicine_id: int,
    payload: StockAdjustIn,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.MEDICINES_MANAGE)
    med = inventory.adjust_stock(db, medicine_id, payload.type, payload.quantity, me, payload.note)
    db.commit()
    db.refresh(med)
    return ok(_out(med))


@router.delete("/{medicine_id}")
def archive_medicine(
    medicine_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.MEDICINES_ARCHIVE)
    med = inventory.archive_medicine(db, inventory.get_medicine(db, medicine_id))
    db.commit()
    return ok({"id": med.id, "state": med.state})


@router.patch("/{medicine_id}/restore")
def restore_medicine(
    medicine_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.MEDICINES_ARCHIVE)
    med = inventory.restore_medicine(db, inventory.get_medicine(db, medicine_id))
    db.commit()
    db.refresh(med)
    return ok(_out(med))
