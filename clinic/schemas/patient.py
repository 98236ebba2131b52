# FILE: clinic/schemas/patient.py
from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, List, Literal, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator

from clinic.schemas.common import ApiModel, OptEmail, OptStr, blank_to_none

Gender = Literal["male", "female", "other"]
BloodType = Literal["A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-"]

PHONE_RE = r"^[0-9]{10,11}$"
IDENTITY_RE = r"^[0-9]{9,12}$"


class EmergencyContactIn(ApiModel):
    name: OptStr = Field(None, max_length=120)
    relationship: OptStr = Field(None, max_length=64)
    phone: OptStr = Field(None, pattern=PHONE_RE)


class PatientBase(ApiModel):
    email: OptEmail = None
    address: OptStr = Field(None, max_length=500)
    identity_card: OptStr = Field(None, pattern=IDENTITY_RE)
    insurance_number: OptStr = Field(None, max_length=64)
    emergency_contact: Optional[EmergencyContactIn] = None
    medical_history: OptStr = None
    allergies: Optional[List[str]] = None
    blood_type: Annotated[Optional[BloodType], BeforeValidator(blank_to_none)] = None
    height: Optional[float] = Field(None, ge=0, le=300)
    weight: Optional[float] = Field(None, ge=0, le=500)
    notes: OptStr = None


class PatientCreate(PatientBase):
    full_name: str = Field(..., min_length=2, max_length=100)
    date_of_birth: date
    gender: Gender
    phone: str = Field(..., pattern=PHONE_RE)

    @field_validator("date_of_birth")
    @classmethod
    def dob_not_future(cls, v: date) -> date:
        if v > date.today():
            raise ValueError("Date of birth cannot be in the future")
        return v


class PatientUpdate(PatientBase):
    full_name: Optional[str] = Field(None, min_length=2, max_length=100)
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    phone: Optional[str] = Field(None, pattern=PHONE_RE)

    @field_validator("date_of_birth")
    @classmethod
    def dob_not_future(cls, v: Optional[date]) -> Optional[date]:
        if v and v > date.today():
            raise ValueError("Date of birth cannot be in the future")
        return v


class PatientOut(BaseModel):
    id: int
    patient_code: Optional[str] = None
    full_name: str
    date_of_birth: date
    age: Optional[int] = None
    gender: str
    phone: str
    email: Optional[str] = None
    address: Optional[str] = None
    identity_card: Optional[str] = None
    insurance_number: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_relationship: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    medical_history: Optional[str] = None
    allergies: List[str] = []
    blood_type: Optional[str] = None
    height: Optional[float] = None
    weight: Optional[float] = None
    notes: Optional[str] = None
    last_visit: Optional[datetime] = None
    total_visits: int = 0
    state: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
