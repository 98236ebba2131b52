# FILE: clinic/models/user.py
from __future__ import annotations

import enum

from sqlalchemy import Column, Integer, String, DateTime, func

from clinic.db.base import Base, MYSQL_ARGS
from clinic.models.common import RecordState


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    DOCTOR = "doctor"
    RECEPTIONIST = "receptionist"


class User(Base):
    __tablename__ = "users"
    __table_args__ = MYSQL_ARGS

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(120), nullable=False)
    email = Column(String(191), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=True)

    role = Column(String(20), nullable=False, default=UserRole.RECEPTIONIST.value, index=True)

    # doctor-only
    specialization = Column(String(120), nullable=True)
    license_number = Column(String(64), unique=True, nullable=True)

    # active / archived (deactivated accounts cannot log in)
    state = Column(String(16), nullable=False, default=RecordState.ACTIVE.value, index=True)

    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    @property
    def is_active(self) -> bool:
        return (self.state or RecordState.ACTIVE.value) == RecordState.ACTIVE.value

    @property
    def is_doctor(self) -> bool:
        return self.role == UserRole.DOCTOR.value
