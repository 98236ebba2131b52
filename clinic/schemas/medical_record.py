# FILE: clinic/schemas/medical_record.py
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from clinic.schemas.common import ApiModel, OptStr, PatientMini, UserMini

VisitType = Literal["consultation", "follow-up", "emergency", "checkup"]
Severity = Literal["mild", "moderate", "severe", "critical"]
RecordStatus = Literal["draft", "completed", "reviewed"]


class BloodPressureIn(ApiModel):
    systolic: int = Field(..., ge=50, le=250)
    diastolic: int = Field(..., ge=30, le=150)


class VitalSignsIn(ApiModel):
    temperature: Optional[float] = Field(None, ge=30, le=45)
    blood_pressure: Optional[BloodPressureIn] = None
    heart_rate: Optional[int] = Field(None, ge=30, le=200)
    respiratory_rate: Optional[int] = Field(None, ge=5, le=60)
    weight: Optional[float] = Field(None, gt=0, le=500)
    height: Optional[float] = Field(None, gt=0, le=300)
    oxygen_saturation: Optional[int] = Field(None, ge=70, le=100)


class PhysicalExamIn(ApiModel):
    general: OptStr = None
    head: OptStr = None
    neck: OptStr = None
    chest: OptStr = None
    heart: OptStr = None
    lungs: OptStr = None
    abdomen: OptStr = None
    extremities: OptStr = None
    neurological: OptStr = None
    skin: OptStr = None


class InvestigationIn(ApiModel):
    name: str = Field(..., min_length=1, max_length=200)
    type: Literal["lab", "imaging", "other"] = "lab"
    result: OptStr = None
    normal_range: OptStr = None
    date: Optional[datetime] = None
    notes: OptStr = None


class DiagnosisIn(ApiModel):
    primary: str = Field(..., min_length=1, max_length=255)
    secondary: List[str] = []
    icd10_code: OptStr = Field(None, max_length=16)
    severity: Optional[Severity] = None


class TreatmentMedicationIn(ApiModel):
    name: str = Field(..., min_length=1)
    dosage: OptStr = None
    frequency: OptStr = None
    duration: OptStr = None
    instructions: OptStr = None


class ProcedureIn(ApiModel):
    name: str = Field(..., min_length=1)
    description: OptStr = None
    date: Optional[datetime] = None
    notes: OptStr = None


class ReferralIn(ApiModel):
    specialty: str = Field(..., min_length=1)
    doctor: OptStr = None
    reason: OptStr = None
    urgency: Literal["routine", "urgent", "emergency"] = "routine"


class TreatmentIn(ApiModel):
    plan: OptStr = None
    medications: List[TreatmentMedicationIn] = []
    procedures: List[ProcedureIn] = []
    referrals: List[ReferralIn] = []


class FollowUpIn(ApiModel):
    required: bool = False
    follow_up_date: Optional[date] = Field(None, alias="date")
    instructions: OptStr = None


class ProcedureFeeIn(ApiModel):
    name: str = Field(..., min_length=1)
    fee: int = Field(0, ge=0)


class MedicationFeeIn(ApiModel):
    name: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=0)
    unit_price: int = Field(0, ge=0)


class BillingIn(ApiModel):
    consultation_fee: int = Field(0, ge=0)
    procedure_fees: List[ProcedureFeeIn] = []
    medication_fees: List[MedicationFeeIn] = []


class AttachmentIn(ApiModel):
    filename: str
    url: str
    type: OptStr = None


class MedicalRecordBase(ApiModel):
    visit_date: Optional[datetime] = None
    present_illness: OptStr = None
    symptoms: Optional[List[str]] = None
    vital_signs: Optional[VitalSignsIn] = None
    physical_examination: Optional[PhysicalExamIn] = None
    investigations: Optional[List[InvestigationIn]] = None
    treatment: Optional[TreatmentIn] = None
    follow_up: Optional[FollowUpIn] = None
    billing: Optional[BillingIn] = None
    notes: OptStr = None
    attachments: Optional[List[AttachmentIn]] = None


class MedicalRecordCreate(MedicalRecordBase):
    patient_id: int = Field(..., alias="patient")
    appointment_id: Optional[int] = Field(None, alias="appointment")
    visit_type: VisitType = "consultation"
    chief_complaint: str = Field(..., min_length=1, max_length=1000)
    diagnosis: DiagnosisIn


class MedicalRecordUpdate(MedicalRecordBase):
    visit_type: Optional[VisitType] = None
    chief_complaint: Optional[str] = Field(None, min_length=1, max_length=1000)
    diagnosis: Optional[DiagnosisIn] = None


class RecordStatusIn(ApiModel):
    status: RecordStatus


class MedicalRecordOut(BaseModel):
    id: int
    record_code: Optional[str] = None
    patient_id: int
    doctor_id: int
    appointment_id: Optional[int] = None
    patient: Optional[PatientMini] = None
    doctor: Optional[UserMini] = None
    visit_date: datetime
    visit_type: str
    chief_complaint: str
    present_illness: Optional[str] = None
    symptoms: List[str] = []
    vital_signs: Dict[str, Any] = {}
    physical_examination: Dict[str, Any] = {}
    investigations: List[Dict[str, Any]] = []
    diagnosis_primary: str
    diagnosis_secondary: List[str] = []
    icd10_code: Optional[str] = None
    diagnosis_severity: Optional[str] = None
    treatment_plan: Optional[str] = None
    treatment_medications: List[Dict[str, Any]] = []
    procedures: List[Dict[str, Any]] = []
    referrals: List[Dict[str, Any]] = []
    follow_up: Dict[str, Any] = {}
    consultation_fee: int = 0
    procedure_fees: List[Dict[str, Any]] = []
    medication_fees: List[Dict[str, Any]] = []
    total_amount: int = 0
    status: str
    notes: Optional[str] = None
    attachments: List[Dict[str, Any]] = []
    state: str
    created_by_id: Optional[int] = None
    reviewed_by_id: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
