# clinic/api/routes_dashboard.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from clinic.api.deps import current_user, get_db
from clinic.api.response import ok
from clinic.core.rbac import Perm, require_perm
from clinic.models.user import User
from clinic.schemas.appointment import AppointmentOut
from clinic.schemas.dashboard import (
    Activity,
    DailyAppointments,
    Demographics,
    DiagnosisCount,
    MonthlyRevenue,
    OverviewOut,
)
from clinic.services import dashboard_service

router = APIRouter()


@router.get("/overview")
def overview(
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.DASHBOARD_VIEW)
    data = OverviewOut.model_validate(dashboard_service.overview(db, me))
    # sections the caller may not see are left out entirely
    return ok(data.model_dump(exclude_none=True))


@router.get("/appointments/daily")
def daily_appointments(
    days: int = Query(7, ge=1, le=90),
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.DASHBOARD_VIEW)
    data = dashboard_service.daily_appointments(db, me, days)
    data["daily"] = [DailyAppointments(**d).model_dump() for d in data["daily"]]
    return ok(data)


@router.get("/revenue/monthly")
def monthly_revenue(
    months: int = Query(6, ge=1, le=24),
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.DASHBOARD_REVENUE)
    data = dashboard_service.monthly_revenue(db, me, months)
    data["monthly"] = [MonthlyRevenue(**m).model_dump() for m in data["monthly"]]
    return ok(data)


@router.get("/patients/demographics")
def demographics(
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.DASHBOARD_DEMOGRAPHICS)
    return ok(Demographics(**dashboard_service.demographics(db)).model_dump())


@router.get("/diagnoses/common")
def common_diagnoses(
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.DASHBOARD_DIAGNOSES)
    rows = dashboard_service.common_diagnoses(db, me, limit)
    return ok([DiagnosisCount(**r).model_dump() for r in rows])


@router.get("/activities/recent")
def recent_activities(
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.DASHBOARD_VIEW)
    rows = dashboard_service.recent_activities(db, me, limit)
    return ok([Activity(**a).model_dump() for a in rows])


@router.get("/appointments/upcoming")
def upcoming_appointments(
    days: int = Query(7, ge=1, le=30),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.DASHBOARD_VIEW)
    rows = dashboard_service.upcoming_appointments(db, me, days, limit)
    return ok([AppointmentOut.model_validate(a).model_dump() for a in rows])
