# FILE: clinic/schemas/auth.py
from __future__ import annotations

from pydantic import BaseModel, EmailStr, Field

from clinic.schemas.common import ApiModel
from clinic.schemas.user import UserOut


class LoginIn(ApiModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshIn(ApiModel):
    refresh_token: str


class ChangePasswordIn(ApiModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=128)


class TokenOut(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserOut
