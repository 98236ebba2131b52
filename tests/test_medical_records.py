import pytest

from clinic.services.medical_records import compute_billing, compute_bmi


def test_compute_billing_is_pure():
    meds = [{"name": "Paracetamol", "quantity": 2, "unit_price": 15000}]
    procedures = [{"name": "Dressing", "fee": 50000}]
    first = compute_billing(100000, procedures, meds)
    second = compute_billing(100000, procedures, first[0])
    assert first == second
    assert first[1] == 180000
    assert first[0][0]["total_price"] == 30000


@pytest.mark.parametrize("weight,height,expected", [(70, 175, 22.9), (50, 160, 19.5), (None, 170, None)])
def test_compute_bmi(weight, height, expected):
    assert compute_bmi(weight, height) == expected


def _record_body(patient_id, **extra):
    body = {
        "patient": patient_id,
        "chiefComplaint": "Headache for two days",
        "diagnosis": {"primary": "Tension headache"},
        "vitalSigns": {"weight": 70, "height": 175, "temperature": 37.2},
        "billing": {
            "consultationFee": 100000,
            "procedureFees": [{"name": "Dressing", "fee": 50000}],
            "medicationFees": [{"name": "Paracetamol", "quantity": 2, "unitPrice": 15000}],
        },
    }
    body.update(extra)
    return body


def test_create_derives_bmi_and_total(client, doctor, create_patient):
    doctor_id, headers = doctor
    p = create_patient(headers)
    res = client.post("/api/medical-records/", json=_record_body(p["id"]), headers=headers)
    assert res.status_code == 201, res.text
    rec = res.json()["data"]
    assert rec["record_code"] == f"MR{rec['id']:06d}"
    assert rec["doctor_id"] == doctor_id
    assert rec["status"] == "draft"
    assert rec["vital_signs"]["bmi"] == 22.9
    assert rec["total_amount"] == 180000
    assert rec["medication_fees"][0]["total_price"] == 30000

    # saving again without billing changes keeps the same total
    res = client.put(f"/api/medical-records/{rec['id']}", json={"notes": "rest"}, headers=headers)
    assert res.status_code == 200, res.text
    assert res.json()["data"]["total_amount"] == 180000

    res = client.put(f"/api/medical-records/{rec['id']}",
                     json={"billing": {"consultationFee": 20000}}, headers=headers)
    assert res.json()["data"]["total_amount"] == 20000


def test_appointment_must_belong_to_patient(client, doctor, receptionist, create_patient, future_day):
    _, front = receptionist
    p1 = create_patient(front)
    p2 = create_patient(front)
    ap = client.post("/api/appointments/", json={
        "patient": p1["id"], "doctor": doctor[0],
        "appointmentDate": future_day.isoformat(), "appointmentTime": "09:00", "reason": "Fever",
    }, headers=front).json()["data"]

    _, headers = doctor
    res = client.post("/api/medical-records/", json=_record_body(p2["id"], appointment=ap["id"]), headers=headers)
    assert res.status_code == 400
    res = client.post("/api/medical-records/", json=_record_body(p1["id"], appointment=ap["id"]), headers=headers)
    assert res.status_code == 201


def test_only_doctors_create_records(client, admin, receptionist, create_patient):
    p = create_patient(admin[1])
    for _, headers in (admin, receptionist):
        assert client.post("/api/medical-records/", json=_record_body(p["id"]), headers=headers).status_code == 403


def test_review_flow(client, doctor, other_doctor, admin, create_patient):
    _, headers = doctor
    p = create_patient(headers)
    rec = client.post("/api/medical-records/", json=_record_body(p["id"]), headers=headers).json()["data"]
    url = f"/api/medical-records/{rec['id']}"

    # not completed yet
    assert client.patch(f"{url}/status", json={"status": "reviewed"}, headers=admin[1]).status_code == 400
    # another doctor cannot see it, let alone change it
    assert client.patch(f"{url}/status", json={"status": "completed"}, headers=other_doctor[1]).status_code == 403

    assert client.patch(f"{url}/status", json={"status": "completed"}, headers=headers).status_code == 200
    # doctors cannot review
    assert client.patch(f"{url}/status", json={"status": "reviewed"}, headers=headers).status_code == 403

    res = client.patch(f"{url}/status", json={"status": "reviewed"}, headers=admin[1])
    assert res.status_code == 200
    assert res.json()["data"]["reviewed_by_id"] == admin[0]

    assert client.put(url, json={"notes": "late edit"}, headers=headers).status_code == 400
    assert client.patch(f"{url}/status", json={"status": "draft"}, headers=headers).status_code == 400


def test_add_investigation_and_history(client, doctor, create_patient):
    _, headers = doctor
    p = create_patient(headers)
    rec = client.post("/api/medical-records/", json=_record_body(p["id"]), headers=headers).json()["data"]

    res = client.post(f"/api/medical-records/{rec['id']}/investigations",
                      json={"name": "CBC", "type": "lab", "result": "normal"}, headers=headers)
    assert res.status_code == 201, res.text
    inv = res.json()["data"]["investigations"]
    assert inv[0]["name"] == "CBC"
    assert inv[0]["date"]

    res = client.get(f"/api/patients/{p['id']}/medical-history", headers=headers).json()
    assert [r["id"] for r in res["data"]["records"]] == [rec["id"]]

    stats = client.get("/api/medical-records/stats/overview", headers=headers).json()["data"]
    assert stats["total"] == 1
    assert stats["top_diagnoses"] == [{"diagnosis": "Tension headache", "count": 1}]


def test_resave_without_billing_changes_keeps_total(client, doctor, create_patient):
    _, headers = doctor
    p = create_patient(headers)
    body = _record_body(p["id"], billing={
        "consultationFee": 100,
        "procedureFees": [{"name": "Dressing", "fee": 50}],
        "medicationFees": [{"name": "Paracetamol", "quantity": 2, "unitPrice": 30}],
    })
    rec = client.post("/api/medical-records/", json=body, headers=headers).json()["data"]
    assert rec["total_amount"] == 210

    for payload in ({"notes": "n"}, {"vitalSigns": {"weight": 72, "height": 175}},
                    {"chiefComplaint": "Headache, improving"}):
        res = client.put(f"/api/medical-records/{rec['id']}", json=payload, headers=headers)
        assert res.status_code == 200, res.text
        data = res.json()["data"]
        assert data["total_amount"] == 210
        assert data["medication_fees"][0]["total_price"] == 60
