# FILE: clinic/schemas/appointment.py
from __future__ import annotations

from datetime import date, datetime, time
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator

from clinic.schemas.common import ApiModel, OptStr, PatientMini, UserMini

HHMM_RE = r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$"

Status = Literal["scheduled", "confirmed", "in-progress", "completed", "cancelled", "no-show"]
Priority = Literal["low", "normal", "high", "urgent"]
AppointmentType = Literal["consultation", "follow-up", "emergency", "checkup"]
PaymentStatus = Literal["pending", "paid", "partial", "refunded"]


class AppointmentCreate(ApiModel):
    patient_id: int = Field(..., alias="patient")
    doctor_id: int = Field(..., alias="doctor")
    appointment_date: date
    appointment_time: str = Field(..., pattern=HHMM_RE)
    duration: int = Field(30, ge=15, le=180)
    reason: str = Field(..., min_length=1, max_length=500)
    symptoms: OptStr = None
    priority: Priority = "normal"
    appointment_type: AppointmentType = Field("consultation", alias="type")
    notes: OptStr = None
    fee: int = Field(0, ge=0)
    payment_status: PaymentStatus = "pending"


class AppointmentUpdate(ApiModel):
    doctor_id: Optional[int] = Field(None, alias="doctor")
    appointment_date: Optional[date] = None
    appointment_time: Optional[str] = Field(None, pattern=HHMM_RE)
    duration: Optional[int] = Field(None, ge=15, le=180)
    reason: Optional[str] = Field(None, min_length=1, max_length=500)
    symptoms: OptStr = None
    priority: Optional[Priority] = None
    appointment_type: Optional[AppointmentType] = Field(None, alias="type")
    notes: OptStr = None
    fee: Optional[int] = Field(None, ge=0)
    payment_status: Optional[PaymentStatus] = None


class AppointmentStatusIn(ApiModel):
    status: Status
    cancel_reason: OptStr = Field(None, max_length=500)
    note: OptStr = Field(None, max_length=500)

    @model_validator(mode="after")
    def reason_required_for_cancel(self):
        if self.status == "cancelled" and not self.cancel_reason:
            raise ValueError("cancelReason is required when cancelling an appointment")
        return self


class StatusLogOut(BaseModel):
    id: int
    from_status: Optional[str] = None
    to_status: str
    note: Optional[str] = None
    changed_by_id: Optional[int] = None
    changed_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AppointmentOut(BaseModel):
    id: int
    appointment_code: Optional[str] = None
    patient_id: int
    doctor_id: int
    patient: Optional[PatientMini] = None
    doctor: Optional[UserMini] = None
    appointment_date: date
    appointment_time: time
    end_time: str
    duration: int
    reason: str
    symptoms: Optional[str] = None
    status: str
    priority: str
    appointment_type: str
    notes: Optional[str] = None
    fee: int = 0
    payment_status: str
    reminder_sent: bool = False
    cancel_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by_id: Optional[int] = None
    created_by_id: Optional[int] = None
    updated_by_id: Optional[int] = None
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("appointment_time")
    def serialize_time(self, v: time) -> str:
        return v.strftime("%H:%M")


class AppointmentDetailOut(AppointmentOut):
    status_logs: List[StatusLogOut] = []
