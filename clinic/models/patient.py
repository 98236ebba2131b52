# FILE: clinic/models/patient.py
from __future__ import annotations

from datetime import date
from typing import Optional

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Float,
    Date,
    DateTime,
    JSON,
    ForeignKey,
    func,
)
from sqlalchemy.orm import relationship

from clinic.db.base import Base, MYSQL_ARGS
from clinic.models.common import RecordState


def calc_age(dob: Optional[date], today: Optional[date] = None) -> Optional[int]:
    if not dob:
        return None
    today = today or date.today()
    return today.year - dob.year - ((today.month, today.day) < (dob.month, dob.day))


class Patient(Base):
    __tablename__ = "patients"
    __table_args__ = MYSQL_ARGS

    id = Column(Integer, primary_key=True, index=True)
    # PT000001, filled right after the first flush
    patient_code = Column(String(16), unique=True, index=True, nullable=True)

    full_name = Column(String(120), nullable=False, index=True)
    date_of_birth = Column(Date, nullable=False)
    gender = Column(String(10), nullable=False)  # male / female / other

    phone = Column(String(15), nullable=False, index=True)
    email = Column(String(191), nullable=True)
    address = Column(Text, nullable=True)

    identity_card = Column(String(12), unique=True, nullable=True)
    insurance_number = Column(String(64), nullable=True)

    emergency_contact_name = Column(String(120), nullable=True)
    emergency_contact_relationship = Column(String(64), nullable=True)
    emergency_contact_phone = Column(String(15), nullable=True)

    medical_history = Column(Text, nullable=True)
    allergies = Column(JSON, nullable=False, default=list)
    blood_type = Column(String(4), nullable=True)
    height = Column(Float, nullable=True)  # cm
    weight = Column(Float, nullable=True)  # kg
    notes = Column(Text, nullable=True)

    last_visit = Column(DateTime, nullable=True)
    total_visits = Column(Integer, nullable=False, default=0)

    state = Column(String(16), nullable=False, default=RecordState.ACTIVE.value, index=True)
    archived_at = Column(DateTime, nullable=True)

    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now(), index=True)
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    created_by = relationship("User", foreign_keys=[created_by_id])

    @property
    def age(self) -> Optional[int]:
        return calc_age(self.date_of_birth)
