# FILE: clinic/schemas/user.py
from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from clinic.schemas.common import ApiModel, OptStr

Role = Literal["admin", "doctor", "receptionist"]


class UserCreate(ApiModel):
    full_name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    role: Role = "receptionist"
    phone: OptStr = Field(None, pattern=r"^[0-9]{10,11}$")
    specialization: OptStr = Field(None, max_length=120)
    license_number: OptStr = Field(None, max_length=64)


class UserUpdate(ApiModel):
    full_name: Optional[str] = Field(None, min_length=2, max_length=100)
    email: Optional[EmailStr] = None
    role: Optional[Role] = None
    phone: OptStr = Field(None, pattern=r"^[0-9]{10,11}$")
    specialization: OptStr = Field(None, max_length=120)
    license_number: OptStr = Field(None, max_length=64)


class ProfileUpdate(ApiModel):
    full_name: Optional[str] = Field(None, min_length=2, max_length=100)
    phone: OptStr = Field(None, pattern=r"^[0-9]{10,11}$")
    specialization: OptStr = Field(None, max_length=120)


class PasswordReset(ApiModel):
    new_password: str = Field(..., min_length=6, max_length=128)


class UserOut(BaseModel):
    id: int
    full_name: str
    email: str
    role: str
    phone: Optional[str] = None
    specialization: Optional[str] = None
    license_number: Optional[str] = None
    state: str
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
