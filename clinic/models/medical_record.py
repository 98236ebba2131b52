# FILE: clinic/models/medical_record.py
from __future__ import annotations

import enum

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    JSON,
    ForeignKey,
    Index,
    func,
)
from sqlalchemy.orm import relationship

from clinic.db.base import Base, MYSQL_ARGS
from clinic.models.common import RecordState


class RecordStatus(str, enum.Enum):
    DRAFT = "draft"
    COMPLETED = "completed"
    REVIEWED = "reviewed"


class VisitType(str, enum.Enum):
    CONSULTATION = "consultation"
    FOLLOW_UP = "follow-up"
    EMERGENCY = "emergency"
    CHECKUP = "checkup"


class MedicalRecord(Base):
    """
    One clinical visit.

    Embedded value objects (vitals, examination, diagnosis extras, treatment
    parts, billing lines) are JSON columns owned by the record.
    """

    __tablename__ = "medical_records"
    __table_args__ = (
        Index("ix_medical_records_patient_visit", "patient_id", "visit_date"),
        Index("ix_medical_records_doctor_visit", "doctor_id", "visit_date"),
        MYSQL_ARGS,
    )

    id = Column(Integer, primary_key=True, index=True)
    record_code = Column(String(16), unique=True, index=True, nullable=True)

    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    doctor_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=True, index=True)

    visit_date = Column(DateTime, nullable=False)
    visit_type = Column(String(20), nullable=False, default=VisitType.CONSULTATION.value)

    chief_complaint = Column(Text, nullable=False)
    present_illness = Column(Text, nullable=True)
    symptoms = Column(JSON, nullable=False, default=list)

    vital_signs = Column(JSON, nullable=False, default=dict)
    physical_examination = Column(JSON, nullable=False, default=dict)
    investigations = Column(JSON, nullable=False, default=list)

    diagnosis_primary = Column(String(255), nullable=False, index=True)
    diagnosis_secondary = Column(JSON, nullable=False, default=list)
    icd10_code = Column(String(16), nullable=True)
    diagnosis_severity = Column(String(16), nullable=True)  # mild / moderate / severe / critical

    treatment_plan = Column(Text, nullable=True)
    treatment_medications = Column(JSON, nullable=False, default=list)
    procedures = Column(JSON, nullable=False, default=list)
    referrals = Column(JSON, nullable=False, default=list)
    follow_up = Column(JSON, nullable=False, default=dict)

    # billing, integers in base currency unit; total is derived on every save
    consultation_fee = Column(Integer, nullable=False, default=0)
    procedure_fees = Column(JSON, nullable=False, default=list)
    medication_fees = Column(JSON, nullable=False, default=list)
    total_amount = Column(Integer, nullable=False, default=0)

    status = Column(String(16), nullable=False, default=RecordStatus.DRAFT.value, index=True)
    notes = Column(Text, nullable=True)
    attachments = Column(JSON, nullable=False, default=list)

    state = Column(String(16), nullable=False, default=RecordState.ACTIVE.value, index=True)
    archived_at = Column(DateTime, nullable=True)

    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    reviewed_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, server_default=func.now(), index=True)
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    patient = relationship("Patient")
    doctor = relationship("User", foreign_keys=[doctor_id])
    appointment = relationship("Appointment")
    reviewed_by = relationship("User", foreign_keys=[reviewed_by_id])
