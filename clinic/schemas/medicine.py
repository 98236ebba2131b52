# FILE: clinic/schemas/medicine.py
from __future__ import annotations

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from clinic.core.config import settings
from clinic.schemas.common import ApiModel, OptStr

Category = Literal[
    "antibiotic", "painkiller", "vitamin", "antacid", "antihistamine",
    "antihypertensive", "diabetes", "cardiovascular", "respiratory",
    "dermatology", "neurology", "psychiatry", "other",
]
DosageForm = Literal["tablet", "capsule", "syrup", "injection", "cream", "drops", "spray", "patch", "other"]
Unit = Literal["tablet", "capsule", "bottle", "tube", "vial", "ampoule", "sachet", "box", "pack"]


class StockIn(ApiModel):
    quantity: int = Field(0, ge=0)
    min_quantity: int = Field(settings.DEFAULT_MIN_STOCK, ge=0)
    max_quantity: int = Field(1000, ge=1)


class StockPatch(ApiModel):
    quantity: Optional[int] = Field(None, ge=0)
    min_quantity: Optional[int] = Field(None, ge=0)
    max_quantity: Optional[int] = Field(None, ge=1)


class StorageIn(ApiModel):
    temperature: OptStr = None
    humidity: OptStr = None
    light_sensitive: bool = False
    special_instructions: OptStr = None


class MedicineBase(ApiModel):
    generic_name: OptStr = Field(None, max_length=200)
    brand: OptStr = Field(None, max_length=120)
    batch_number: OptStr = Field(None, max_length=64)
    manufacture_date: Optional[date] = None
    cost_price: Optional[int] = Field(None, ge=0)
    indications: Optional[List[str]] = None
    contraindications: Optional[List[str]] = None
    side_effects: Optional[List[str]] = None
    interactions: Optional[List[str]] = None
    dosage_instructions: OptStr = None
    precautions: Optional[List[str]] = None
    storage: Optional[StorageIn] = None
    requires_prescription: Optional[bool] = None
    is_controlled: Optional[bool] = None
    tags: Optional[List[str]] = None
    notes: OptStr = None


class MedicineCreate(MedicineBase):
    name: str = Field(..., min_length=1, max_length=200)
    category: Category
    dosage_form: DosageForm
    strength: str = Field(..., min_length=1, max_length=64)
    unit: Unit
    manufacturer: str = Field(..., min_length=1, max_length=200)
    expiry_date: date
    price: int = Field(..., ge=0)
    stock: StockIn = Field(default_factory=StockIn)

    @model_validator(mode="after")
    def expiry_after_manufacture(self):
        if self.manufacture_date and self.expiry_date <= self.manufacture_date:
            raise ValueError("expiryDate must be after manufactureDate")
        return self


class MedicineUpdate(MedicineBase):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    category: Optional[Category] = None
    dosage_form: Optional[DosageForm] = None
    strength: Optional[str] = Field(None, min_length=1, max_length=64)
    unit: Optional[Unit] = None
    manufacturer: Optional[str] = Field(None, min_length=1, max_length=200)
    expiry_date: Optional[date] = None
    price: Optional[int] = Field(None, ge=0)
    stock: Optional[StockPatch] = None


class StockAdjustIn(ApiModel):
    type: Literal["add", "subtract", "set"]
    quantity: int = Field(..., ge=0)
    note: OptStr = Field(None, max_length=255)


class MedicineOut(BaseModel):
    id: int
    name: str
    generic_name: Optional[str] = None
    brand: Optional[str] = None
    category: str
    dosage_form: str
    strength: str
    unit: str
    manufacturer: str
    batch_number: Optional[str] = None
    manufacture_date: Optional[date] = None
    expiry_date: date
    price: int
    cost_price: Optional[int] = None
    stock_quantity: int
    min_quantity: int
    max_quantity: int
    indications: List[str] = []
    contraindications: List[str] = []
    side_effects: List[str] = []
    interactions: List[str] = []
    dosage_instructions: Optional[str] = None
    precautions: List[str] = []
    storage_temperature: Optional[str] = None
    storage_humidity: Optional[str] = None
    storage_light_sensitive: bool = False
    storage_notes: Optional[str] = None
    requires_prescription: bool = True
    is_controlled: bool = False
    tags: List[str] = []
    notes: Optional[str] = None
    state: str
    is_expired: bool
    is_expiring_soon: bool
    is_low_stock: bool
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class MedicineLite(BaseModel):
    id: int
    name: str
    generic_name: Optional[str] = None
    strength: str
    unit: str
    dosage_form: str
    price: int
    stock_quantity: int
    expiry_date: date
    is_low_stock: bool
    is_expired: bool

    model_config = ConfigDict(from_attributes=True)


class StockTxnOut(BaseModel):
    id: int
    medicine_id: int
    txn_type: str
    delta: int
    quantity_before: int
    quantity_after: int
    ref_type: Optional[str] = None
    ref_id: Optional[int] = None
    note: Optional[str] = None
    user_id: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
