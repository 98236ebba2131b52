# FILE: clinic/models/medicine.py
from __future__ import annotations

import enum
from datetime import timedelta

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

from clinic.core.config import settings
from clinic.db.base import Base, MYSQL_ARGS
from clinic.models.common import RecordState
from clinic.utils.timezone import today_local


class MedicineCategory(str, enum.Enum):
    ANTIBIOTIC = "antibiotic"
    PAINKILLER = "painkiller"
    VITAMIN = "vitamin"
    ANTACID = "antacid"
    ANTIHISTAMINE = "antihistamine"
    ANTIHYPERTENSIVE = "antihypertensive"
    DIABETES = "diabetes"
    CARDIOVASCULAR = "cardiovascular"
    RESPIRATORY = "respiratory"
    DERMATOLOGY = "dermatology"
    NEUROLOGY = "neurology"
    PSYCHIATRY = "psychiatry"
    OTHER = "other"


class DosageForm(str, enum.Enum):
    TABLET = "tablet"
    CAPSULE = "capsule"
    SYRUP = "syrup"
    INJECTION = "injection"
    CREAM = "cream"
    DROPS = "drops"
    SPRAY = "spray"
    PATCH = "patch"
    OTHER = "other"


class MedicineUnit(str, enum.Enum):
    TABLET = "tablet"
    CAPSULE = "capsule"
    BOTTLE = "bottle"
    TUBE = "tube"
    VIAL = "vial"
    AMPOULE = "ampoule"
    SACHET = "sachet"
    BOX = "box"
    PACK = "pack"


class StockTxnType(str, enum.Enum):
    INITIAL = "initial"
    ADD = "add"
    SUBTRACT = "subtract"
    SET = "set"
    ADJUST = "adjust"
    DISPENSE = "dispense"


class Medicine(Base):
    __tablename__ = "medicines"
    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="ck_medicines_stock_nonneg"),
        CheckConstraint("min_quantity >= 0", name="ck_medicines_min_nonneg"),
        MYSQL_ARGS,
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False, index=True)
    generic_name = Column(String(200), nullable=True, index=True)
    brand = Column(String(120), nullable=True)

    category = Column(String(32), nullable=False, index=True)
    dosage_form = Column(String(16), nullable=False)
    strength = Column(String(64), nullable=False)
    unit = Column(String(16), nullable=False)
    manufacturer = Column(String(200), nullable=False)

    batch_number = Column(String(64), nullable=True)
    manufacture_date = Column(Date, nullable=True)
    expiry_date = Column(Date, nullable=False, index=True)

    # money is kept in whole currency units
    price = Column(Integer, nullable=False, default=0)
    cost_price = Column(Integer, nullable=True)

    stock_quantity = Column(Integer, nullable=False, default=0)
    min_quantity = Column(Integer, nullable=False, default=settings.DEFAULT_MIN_STOCK)
    max_quantity = Column(Integer, nullable=False, default=1000)

    # usage
    indications = Column(JSON, nullable=False, default=list)
    contraindications = Column(JSON, nullable=False, default=list)
    side_effects = Column(JSON, nullable=False, default=list)
    interactions = Column(JSON, nullable=False, default=list)
    dosage_instructions = Column(Text, nullable=True)
    precautions = Column(JSON, nullable=False, default=list)

    # storage
    storage_temperature = Column(String(64), nullable=True)
    storage_humidity = Column(String(64), nullable=True)
    storage_light_sensitive = Column(Boolean, nullable=False, default=False)
    storage_notes = Column(Text, nullable=True)

    requires_prescription = Column(Boolean, nullable=False, default=True)
    is_controlled = Column(Boolean, nullable=False, default=False)

    tags = Column(JSON, nullable=False, default=list)
    notes = Column(Text, nullable=True)

    state = Column(String(16), nullable=False, default=RecordState.ACTIVE.value, index=True)
    archived_at = Column(DateTime, nullable=True)

    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    updated_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}

    transactions = relationship("StockTransaction", back_populates="medicine")

    @property
    def is_expired(self) -> bool:
        return bool(self.expiry_date and self.expiry_date < today_local())

    @property
    def is_expiring_soon(self) -> bool:
        if not self.expiry_date:
            return False
        today = today_local()
        return today <= self.expiry_date <= today + timedelta(days=settings.EXPIRY_WARNING_DAYS)

    @property
    def is_low_stock(self) -> bool:
        return (self.stock_quantity or 0) <= (self.min_quantity or 0)


class StockTransaction(Base):
    """
    Audit ledger: every change to Medicine.stock_quantity writes one row.
    """

    __tablename__ = "stock_transactions"
    __table_args__ = MYSQL_ARGS

    id = Column(Integer, primary_key=True, index=True)
    medicine_id = Column(Integer, ForeignKey("medicines.id"), nullable=False, index=True)

    txn_type = Column(String(16), nullable=False)
    delta = Column(Integer, nullable=False)
    quantity_before = Column(Integer, nullable=False)
    quantity_after = Column(Integer, nullable=False)

    ref_type = Column(String(32), nullable=True)  # prescription / manual
    ref_id = Column(Integer, nullable=True)
    note = Column(String(255), nullable=True)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, index=True)

    medicine = relationship("Medicine", back_populates="transactions")
    user = relationship("User")
