# FILE: clinic/models/appointment.py
from __future__ import annotations

import enum
from datetime import datetime, timedelta

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    Date,
    Time,
    DateTime,
    ForeignKey,
    Index,
    CheckConstraint,
    func,
)
from sqlalchemy.orm import relationship

from clinic.db.base import Base, MYSQL_ARGS


class AppointmentStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


class AppointmentPriority(str, enum.Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class AppointmentType(str, enum.Enum):
    CONSULTATION = "consultation"
    FOLLOW_UP = "follow-up"
    EMERGENCY = "emergency"
    CHECKUP = "checkup"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    PARTIAL = "partial"
    REFUNDED = "refunded"


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        Index("ix_appointments_doctor_date", "doctor_id", "appointment_date"),
        CheckConstraint("duration >= 15 AND duration <= 180", name="ck_appointments_duration"),
        MYSQL_ARGS,
    )

    id = Column(Integer, primary_key=True, index=True)
    appointment_code = Column(String(32), unique=True, index=True, nullable=True)

    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    appointment_date = Column(Date, nullable=False, index=True)
    appointment_time = Column(Time, nullable=False)
    duration = Column(Integer, nullable=False, default=30)  # minutes

    reason = Column(String(500), nullable=False)
    symptoms = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    status = Column(String(20), nullable=False, default=AppointmentStatus.SCHEDULED.value, index=True)
    priority = Column(String(10), nullable=False, default=AppointmentPriority.NORMAL.value)
    appointment_type = Column(String(20), nullable=False, default=AppointmentType.CONSULTATION.value)

    fee = Column(Integer, nullable=False, default=0)
    payment_status = Column(String(10), nullable=False, default=PaymentStatus.PENDING.value)
    reminder_sent = Column(Boolean, nullable=False, default=False)

    cancel_reason = Column(String(500), nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancelled_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    updated_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, nullable=False, server_default=func.now(), index=True)
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}

    patient = relationship("Patient")
    doctor = relationship("User", foreign_keys=[doctor_id])
    created_by = relationship("User", foreign_keys=[created_by_id])
    cancelled_by = relationship("User", foreign_keys=[cancelled_by_id])
    status_logs = relationship(
        "AppointmentStatusLog",
        back_populates="appointment",
        cascade="all, delete-orphan",
        order_by="AppointmentStatusLog.id",
    )

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.appointment_date, self.appointment_time)

    @property
    def ends_at(self) -> datetime:
        return self.starts_at + timedelta(minutes=self.duration or 0)

    @property
    def end_time(self) -> str:
        return self.ends_at.strftime("%H:%M")


class AppointmentStatusLog(Base):
    """One row per status change (who / when / from -> to)."""

    __tablename__ = "appointment_status_logs"
    __table_args__ = MYSQL_ARGS

    id = Column(Integer, primary_key=True, index=True)
    appointment_id = Column(
        Integer,
        ForeignKey("appointments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    from_status = Column(String(20), nullable=True)
    to_status = Column(String(20), nullable=False)
    note = Column(String(500), nullable=True)

    changed_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    changed_at = Column(DateTime, nullable=False)

    appointment = relationship("Appointment", back_populates="status_logs")
    changed_by = relationship("User")
