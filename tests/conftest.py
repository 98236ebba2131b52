import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ.setdefault("JWT_SECRET", "test-secret")

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import clinic.models  # noqa: F401
from clinic.api.deps import get_db
from clinic.db.base import Base
from clinic.main import app
from clinic.schemas.user import UserCreate
from clinic.services import users as user_service
from clinic.utils.jwt import create_access_token
from clinic.utils.timezone import today_local


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def client(session_factory):
    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def make_user(session_factory):
    """Create a user directly in the db and return (id, auth headers)."""

    def _make(role: str, email: str, **extra):
        db = session_factory()
        try:
            u = user_service.create_user(
                db,
                UserCreate(full_name=extra.pop("full_name", email.split("@")[0].title()),
                           email=email, password="secret123", role=role, **extra),
            )
            db.commit()
            token = create_access_token(u.email, u.id)
            return u.id, {"Authorization": f"Bearer {token}"}
        finally:
            db.close()

    return _make


@pytest.fixture()
def admin(make_user):
    return make_user("admin", "admin@clinic.com")


@pytest.fixture()
def doctor(make_user):
    return make_user("doctor", "doctor@clinic.com", specialization="General", license_number="LIC-1")


@pytest.fixture()
def other_doctor(make_user):
    return make_user("doctor", "doctor2@clinic.com", license_number="LIC-2")


@pytest.fixture()
def receptionist(make_user):
    return make_user("receptionist", "front@clinic.com")


@pytest.fixture()
def future_day():
    return today_local() + timedelta(days=7)


@pytest.fixture()
def create_patient(client):
    counter = {"n": 0}

    def _create(headers, **overrides):
        counter["n"] += 1
        body = {
            "fullName": f"Patient {counter['n']}",
            "dateOfBirth": "1990-05-01",
            "gender": "female",
            "phone": f"09000000{counter['n']:02d}",
        }
        body.update(overrides)
        res = client.post("/api/patients/", json=body, headers=headers)
        assert res.status_code == 201, res.text
        return res.json()["data"]

    return _create


@pytest.fixture()
def create_medicine(client):
    def _create(headers, name="Paracetamol", quantity=100, price=1000, **overrides):
        body = {
            "name": name,
            "category": "painkiller",
            "dosageForm": "tablet",
            "strength": "500mg",
            "unit": "tablet",
            "manufacturer": "Acme Pharma",
            "expiryDate": (today_local() + timedelta(days=365)).isoformat(),
            "price": price,
            "costPrice": price // 2,
            "stock": {"quantity": quantity, "minQuantity": 5, "maxQuantity": 1000},
        }
        body.update(overrides)
        res = client.post("/api/medicines/", json=body, headers=headers)
        assert res.status_code == 201, res.text
        return res.json()["data"]

    return _create
