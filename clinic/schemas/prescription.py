# FILE: clinic/schemas/prescription.py
from __future__ import annotations

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from clinic.schemas.common import ApiModel, OptStr, PatientMini, UserMini


class PrescriptionLineIn(ApiModel):
    medicine_id: int = Field(..., alias="medicine")
    dosage: str = Field(..., min_length=1, max_length=64)
    frequency: str = Field(..., min_length=1, max_length=64)
    duration: str = Field(..., min_length=1, max_length=64)
    quantity: int = Field(..., ge=1)
    # catalog price is used when omitted
    unit_price: Optional[int] = Field(None, ge=0)
    instructions: OptStr = Field(None, max_length=500)
    before_meal: bool = False
    after_meal: bool = False
    warnings: List[str] = []


class PrescriptionCreate(ApiModel):
    patient_id: int = Field(..., alias="patient")
    medical_record_id: Optional[int] = Field(None, alias="medicalRecord")
    diagnosis: str = Field(..., min_length=1, max_length=500)
    symptoms: OptStr = None
    medications: List[PrescriptionLineIn] = Field(..., min_length=1)
    general_instructions: OptStr = None
    follow_up_date: Optional[date] = None
    follow_up_instructions: OptStr = None
    priority: Literal["normal", "urgent"] = "normal"
    notes: OptStr = None


class PrescriptionUpdate(ApiModel):
    diagnosis: Optional[str] = Field(None, min_length=1, max_length=500)
    symptoms: OptStr = None
    medications: Optional[List[PrescriptionLineIn]] = Field(None, min_length=1)
    general_instructions: OptStr = None
    follow_up_date: Optional[date] = None
    follow_up_instructions: OptStr = None
    priority: Optional[Literal["normal", "urgent"]] = None
    notes: OptStr = None


class PrescriptionStatusIn(ApiModel):
    status: Literal["issued", "cancelled"]
    reason: OptStr = Field(None, max_length=500)

    @model_validator(mode="after")
    def reason_required_for_cancel(self):
        if self.status == "cancelled" and not self.reason:
            raise ValueError("reason is required when cancelling a prescription")
        return self


class DispenseIn(ApiModel):
    medication_ids: List[int] = Field(..., min_length=1)
    pharmacy_notes: OptStr = None


class PrescriptionLineOut(BaseModel):
    id: int
    medicine_id: int
    medicine_name: str
    dosage: str
    frequency: str
    duration: str
    quantity: int
    unit_price: int
    total_price: int
    instructions: Optional[str] = None
    before_meal: bool = False
    after_meal: bool = False
    warnings: List[str] = []
    substituted: bool = False
    dispensed: bool = False
    dispensed_at: Optional[datetime] = None
    dispensed_by_id: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class PrescriptionOut(BaseModel):
    id: int
    prescription_code: Optional[str] = None
    patient_id: int
    doctor_id: int
    medical_record_id: Optional[int] = None
    patient: Optional[PatientMini] = None
    doctor: Optional[UserMini] = None
    prescription_date: datetime
    lines: List[PrescriptionLineOut] = []
    diagnosis: str
    symptoms: Optional[str] = None
    general_instructions: Optional[str] = None
    follow_up_date: Optional[date] = None
    follow_up_instructions: Optional[str] = None
    total_amount: int
    status: str
    priority: str
    valid_until: Optional[date] = None
    notes: Optional[str] = None
    pharmacy_notes: Optional[str] = None
    state: str
    issued_at: Optional[datetime] = None
    issued_by_id: Optional[int] = None
    cancel_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by_id: Optional[int] = None
    is_expired: bool = False
    has_undispensed: bool = False
    dispensed_percentage: int = 0
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class DispenseLineResult(BaseModel):
    line_id: int
    medicine_id: Optional[int] = None
    medicine_name: Optional[str] = None
    quantity: Optional[int] = None
    outcome: Literal["dispensed", "already_dispensed", "not_found", "insufficient_stock"]
    available: Optional[int] = None


class DispenseOut(BaseModel):
    prescription: PrescriptionOut
    results: List[DispenseLineResult]
