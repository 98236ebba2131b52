# FILE: clinic/schemas/dashboard.py
from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel


class CountPair(BaseModel):
    today: int = 0
    this_month: int = 0


class AppointmentCounts(CountPair):
    pending: int = 0


class OverviewStats(BaseModel):
    patients_total: Optional[int] = None
    doctors_active: Optional[int] = None
    appointments: AppointmentCounts
    medical_records: CountPair
    prescriptions: CountPair
    revenue: Optional[CountPair] = None


class InventoryAlerts(BaseModel):
    low_stock: int = 0
    expired: int = 0


class OverviewOut(BaseModel):
    stats: OverviewStats
    alerts: Optional[InventoryAlerts] = None


class DailyAppointments(BaseModel):
    date: str
    total: int
    by_status: Dict[str, int]


class MonthlyRevenue(BaseModel):
    month: str
    revenue: int
    prescriptions: int


class Activity(BaseModel):
    type: str
    title: str
    description: str
    timestamp: Optional[datetime] = None
    status: Optional[str] = None


class DiagnosisCount(BaseModel):
    diagnosis: str
    count: int


class Demographics(BaseModel):
    gender: Dict[str, int]
    age_groups: Dict[str, int]
