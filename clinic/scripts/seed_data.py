# FILE: clinic/scripts/seed_data.py
from __future__ import annotations

import argparse
import logging
from datetime import timedelta
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from clinic.db.init_db import create_tables
from clinic.db.session import SessionLocal
from clinic.models.medicine import Medicine
from clinic.models.patient import Patient
from clinic.models.user import User
from clinic.schemas.medicine import MedicineCreate
from clinic.schemas.patient import PatientCreate
from clinic.schemas.user import UserCreate
from clinic.services import inventory, patients, users
from clinic.utils.timezone import today_local

logger = logging.getLogger("clinic.seed")

DEFAULT_PASSWORD = "password123"

USERS: List[Dict[str, Any]] = [
    {"full_name": "Clinic Admin", "email": "admin@clinic.com", "role": "admin"},
    {"full_name": "Dr. Nguyen Van An", "email": "doctor1@clinic.com", "role": "doctor",
     "specialization": "Internal Medicine", "license_number": "BS-0001"},
    {"full_name": "Dr. Tran Thi Binh", "email": "doctor2@clinic.com", "role": "doctor",
     "specialization": "Pediatrics", "license_number": "BS-0002"},
    {"full_name": "Le Thi Cuc", "email": "reception@clinic.com", "role": "receptionist"},
]

PATIENTS: List[Dict[str, Any]] = [
    {"full_name": "Pham Van Duc", "date_of_birth": "1985-04-12", "gender": "male",
     "phone": "0901234567", "identity_card": "001085000123", "blood_type": "O+",
     "allergies": ["penicillin"]},
    {"full_name": "Hoang Thi Em", "date_of_birth": "1992-09-30", "gender": "female",
     "phone": "0912345678", "identity_card": "001192000456", "blood_type": "A+"},
    {"full_name": "Vu Minh Khang", "date_of_birth": "2015-01-20", "gender": "male",
     "phone": "0987654321", "address": "12 Le Loi, District 1"},
    {"full_name": "Do Thi Lan", "date_of_birth": "1950-07-07", "gender": "female",
     "phone": "0934567890", "medical_history": "Hypertension"},
]

MEDICINES: List[Dict[str, Any]] = [
    {"name": "Paracetamol 500mg", "generic_name": "Paracetamol", "category": "painkiller",
     "dosage_form": "tablet", "strength": "500mg", "unit": "tablet", "manufacturer": "DHG Pharma",
     "price": 1000, "cost_price": 600, "stock": {"quantity": 500, "min_quantity": 50}},
    {"name": "Amoxicillin 500mg", "generic_name": "Amoxicillin", "category": "antibiotic",
     "dosage_form": "capsule", "strength": "500mg", "unit": "capsule", "manufacturer": "Imexpharm",
     "price": 2500, "cost_price": 1500, "stock": {"quantity": 200, "min_quantity": 30}},
    {"name": "Omeprazole 20mg", "generic_name": "Omeprazole", "category": "antacid",
     "dosage_form": "capsule", "strength": "20mg", "unit": "capsule", "manufacturer": "Stada",
     "price": 3000, "cost_price": 1800, "stock": {"quantity": 8, "min_quantity": 20}},
    {"name": "Vitamin C 1000mg", "generic_name": "Ascorbic acid", "category": "vitamin",
     "dosage_form": "tablet", "strength": "1000mg", "unit": "tablet", "manufacturer": "Traphaco",
     "price": 1500, "cost_price": 900, "requires_prescription": False,
     "stock": {"quantity": 300, "min_quantity": 40}},
    {"name": "Amlodipine 5mg", "generic_name": "Amlodipine", "category": "antihypertensive",
     "dosage_form": "tablet", "strength": "5mg", "unit": "tablet", "manufacturer": "Pymepharco",
     "price": 1200, "cost_price": 700, "stock": {"quantity": 150, "min_quantity": 30},
     "expiry_days": 20},
]


def seed_users(db: Session, password: str) -> Dict[str, User]:
    out: Dict[str, User] = {}
    for row in USERS:
        u = db.query(User).filter(User.email == row["email"]).first()
        if u is None:
            u = users.create_user(db, UserCreate(password=password, **row))
            logger.info("user %s (%s) created", u.email, u.role)
        out[u.email] = u
    return out


def seed_patients(db: Session, actor: User) -> int:
    created = 0
    for row in PATIENTS:
        if db.query(Patient.id).filter(Patient.phone == row["phone"]).first():
            continue
        patients.create_patient(db, PatientCreate(**row), actor)
        created += 1
    return created


def seed_medicines(db: Session, actor: User) -> int:
    today = today_local()
    created = 0
    for row in MEDICINES:
        row = dict(row)
        if db.query(Medicine.id).filter(Medicine.name == row["name"]).first():
            continue
        expiry_days = row.pop("expiry_days", 720)
        payload = MedicineCreate(
            manufacture_date=today - timedelta(days=90),
            expiry_date=today + timedelta(days=expiry_days),
            **row,
        )
        inventory.create_medicine(db, payload, actor)
        created += 1
    return created


def main():
    ap = argparse.ArgumentParser(description="Seed demo data for local development")
    ap.add_argument("--create-tables", action="store_true", help="Create tables before seeding")
    ap.add_argument("--password", default=DEFAULT_PASSWORD, help="Password for every seeded user")
    args = ap.parse_args()

    logging.basicConfig(level=logging.INFO)
    if args.create_tables:
        create_tables()

    db = SessionLocal()
    try:
        staff = seed_users(db, args.password)
        admin = staff["admin@clinic.com"]
        n_patients = seed_patients(db, admin)
        n_medicines = seed_medicines(db, admin)
        db.commit()
        logger.info(
            "Seed done: users=%s patients=%s medicines=%s",
            len(staff), n_patients, n_medicines,
        )
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
