import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.orm.exc import StaleDataError

from clinic.api.exception_handlers import register_exception_handlers
from clinic.models.medicine import Medicine
from clinic.models.prescription import Prescription


def _stale_write(session_factory, model, row_id, field, first, second):
    """Load the row in one session, commit a change from another, then flush the stale copy."""
    db = session_factory()
    try:
        stale = db.get(model, row_id)
        other = session_factory()
        try:
            fresh = other.get(model, row_id)
            setattr(fresh, field, first)
            other.commit()
        finally:
            other.close()
        setattr(stale, field, second)
        db.flush()
    finally:
        db.rollback()
        db.close()


@pytest.fixture()
def rx_and_medicine(client, doctor, create_patient, create_medicine):
    _, headers = doctor
    p = create_patient(headers)
    med = create_medicine(headers, quantity=20)
    rx = client.post("/api/prescriptions/", json={
        "patient": p["id"],
        "diagnosis": "Sore throat",
        "medications": [{"medicine": med["id"], "dosage": "1 tablet", "frequency": "daily",
                         "duration": "3 days", "quantity": 3}],
    }, headers=headers).json()["data"]
    return rx, med


def test_stale_prescription_write_is_rejected(session_factory, rx_and_medicine):
    rx, _ = rx_and_medicine
    with pytest.raises(StaleDataError):
        _stale_write(session_factory, Prescription, rx["id"], "pharmacy_notes", "first", "second")


def test_stale_medicine_write_maps_to_conflict_envelope(session_factory, rx_and_medicine):
    _, med = rx_and_medicine
    app = FastAPI()
    register_exception_handlers(app)

    @app.post("/stock/{medicine_id}")
    def write_stock(medicine_id: int):
        _stale_write(session_factory, Medicine, medicine_id, "stock_quantity", 7, 9)

    with TestClient(app) as c:
        res = c.post(f"/stock/{med['id']}")
    assert res.status_code == 409
    body = res.json()
    assert body["ok"] is False
    assert body["error"]["code"] == "CONCURRENT_UPDATE"

    db = session_factory()
    try:
        # the committed write wins, the stale one is discarded
        assert db.get(Medicine, med["id"]).stock_quantity == 7
    finally:
        db.close()
