# FILE: clinic/models/prescription.py
from __future__ import annotations

import enum

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    Date,
    DateTime,
    JSON,
    ForeignKey,
    CheckConstraint,
    func,
)
from sqlalchemy.orm import relationship

from clinic.db.base import Base, MYSQL_ARGS
from clinic.models.common import RecordState
from clinic.utils.timezone import today_local


class PrescriptionStatus(str, enum.Enum):
    DRAFT = "draft"
    ISSUED = "issued"
    PARTIALLY_DISPENSED = "partially-dispensed"
    FULLY_DISPENSED = "fully-dispensed"
    CANCELLED = "cancelled"


class Prescription(Base):
    __tablename__ = "prescriptions"
    __table_args__ = MYSQL_ARGS

    id = Column(Integer, primary_key=True, index=True)
    prescription_code = Column(String(16), unique=True, index=True, nullable=True)

    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    medical_record_id = Column(Integer, ForeignKey("medical_records.id"), nullable=True)

    prescription_date = Column(DateTime, nullable=False, index=True)

    diagnosis = Column(String(500), nullable=False)
    symptoms = Column(Text, nullable=True)
    general_instructions = Column(Text, nullable=True)
    follow_up_date = Column(Date, nullable=True)
    follow_up_instructions = Column(Text, nullable=True)

    # derived: sum of line totals
    total_amount = Column(Integer, nullable=False, default=0)

    status = Column(String(24), nullable=False, default=PrescriptionStatus.DRAFT.value, index=True)
    priority = Column(String(10), nullable=False, default="normal")
    valid_until = Column(Date, nullable=True)

    notes = Column(Text, nullable=True)
    pharmacy_notes = Column(Text, nullable=True)

    state = Column(String(16), nullable=False, default=RecordState.ACTIVE.value, index=True)
    archived_at = Column(DateTime, nullable=True)

    issued_at = Column(DateTime, nullable=True)
    issued_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    cancel_reason = Column(String(500), nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancelled_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, nullable=False, server_default=func.now(), index=True)
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}

    lines = relationship(
        "PrescriptionLine",
        back_populates="prescription",
        cascade="all, delete-orphan",
        order_by="PrescriptionLine.id",
    )

    patient = relationship("Patient")
    doctor = relationship("User", foreign_keys=[doctor_id])
    medical_record = relationship("MedicalRecord")
    issued_by = relationship("User", foreign_keys=[issued_by_id])
    cancelled_by = relationship("User", foreign_keys=[cancelled_by_id])

    @property
    def is_expired(self) -> bool:
        return bool(self.valid_until and self.valid_until < today_local())

    @property
    def has_undispensed(self) -> bool:
        return any(not ln.dispensed for ln in self.lines)

    @property
    def dispensed_percentage(self) -> int:
        if not self.lines:
            return 0
        done = sum(1 for ln in self.lines if ln.dispensed)
        return round(done * 100 / len(self.lines))


class PrescriptionLine(Base):
    """One prescribed medicine; total_price = quantity * unit_price."""

    __tablename__ = "prescription_lines"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_prescription_lines_qty"),
        MYSQL_ARGS,
    )

    id = Column(Integer, primary_key=True, index=True)
    prescription_id = Column(
        Integer,
        ForeignKey("prescriptions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    medicine_id = Column(Integer, ForeignKey("medicines.id"), nullable=False, index=True)
    medicine_name = Column(String(200), nullable=False)

    dosage = Column(String(64), nullable=False)
    frequency = Column(String(64), nullable=False)
    duration = Column(String(64), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Integer, nullable=False, default=0)
    total_price = Column(Integer, nullable=False, default=0)

    instructions = Column(String(500), nullable=True)
    before_meal = Column(Boolean, nullable=False, default=False)
    after_meal = Column(Boolean, nullable=False, default=False)
    warnings = Column(JSON, nullable=False, default=list)
    substituted = Column(Boolean, nullable=False, default=False)

    dispensed = Column(Boolean, nullable=False, default=False)
    dispensed_at = Column(DateTime, nullable=True)
    dispensed_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    prescription = relationship("Prescription", back_populates="lines")
    medicine = relationship("Medicine")
    dispensed_by = relationship("User")
