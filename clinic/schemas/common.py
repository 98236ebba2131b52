# FILE: clinic/schemas/common.py
from __future__ import annotations

from typing import Annotated, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, EmailStr
from pydantic.alias_generators import to_camel


def blank_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v


# empty form fields arrive as "" and mean "not given"
OptStr = Annotated[Optional[str], BeforeValidator(blank_to_none)]
OptEmail = Annotated[Optional[EmailStr], BeforeValidator(blank_to_none)]


class ApiModel(BaseModel):
    """
    Request bodies: accept camelCase keys from the SPA and snake_case from
    scripts / tests.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class UserMini(BaseModel):
    id: int
    full_name: str
    email: Optional[str] = None
    specialization: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class PatientMini(BaseModel):
    id: int
    patient_code: Optional[str] = None
    full_name: str
    phone: Optional[str] = None
    gender: Optional[str] = None
    age: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)
