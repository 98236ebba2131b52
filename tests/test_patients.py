def test_create_assigns_code_and_age(client, receptionist, create_patient):
    _, headers = receptionist
    p = create_patient(headers, identityCard="012345678901", allergies=[" penicillin ", ""])
    assert p["patient_code"] == f"PT{p['id']:06d}"
    assert p["age"] >= 30
    assert p["allergies"] == ["penicillin"]
    assert p["total_visits"] == 0


def test_validation_errors_use_envelope(client, receptionist):
    _, headers = receptionist
    res = client.post("/api/patients/", json={
        "fullName": "X", "dateOfBirth": "2999-01-01", "gender": "unknown", "phone": "123",
    }, headers=headers)
    assert res.status_code == 400
    body = res.json()
    assert body["ok"] is False
    assert body["error"]["code"] == "VALIDATION_ERROR"
    fields = {d["field"] for d in body["error"]["details"]}
    assert {"fullName", "dateOfBirth", "gender", "phone"} <= fields


def test_identity_card_is_unique(client, receptionist, create_patient):
    _, headers = receptionist
    create_patient(headers, identityCard="123456789")
    res = client.post("/api/patients/", json={
        "fullName": "Someone Else", "dateOfBirth": "1980-01-01", "gender": "male",
        "phone": "0911111111", "identityCard": "123456789",
    }, headers=headers)
    assert res.status_code == 409


def test_search_and_quick_search(client, receptionist, create_patient):
    _, headers = receptionist
    create_patient(headers, fullName="Nguyen Van A", phone="0901111111")
    create_patient(headers, fullName="Tran Thi B", phone="0902222222", identityCard="987654321")

    res = client.get("/api/patients/", params={"search": "nguyen"}, headers=headers).json()
    assert [p["full_name"] for p in res["data"]] == ["Nguyen Van A"]
    assert res["meta"] == {"current": 1, "total": 1, "count": 1, "totalRecords": 1}

    res = client.get("/api/patients/search/quick", params={"identityCard": "987654321"}, headers=headers)
    assert [p["full_name"] for p in res.json()["data"]] == ["Tran Thi B"]
    assert client.get("/api/patients/search/quick", headers=headers).status_code == 400


def test_pagination(client, receptionist, create_patient):
    _, headers = receptionist
    for _ in range(3):
        create_patient(headers)
    res = client.get("/api/patients/", params={"page": 2, "limit": 2}, headers=headers).json()
    assert res["meta"] == {"current": 2, "total": 2, "count": 1, "totalRecords": 3}


def test_update_and_archive_restore(client, receptionist, admin, create_patient):
    _, headers = receptionist
    p = create_patient(headers)

    res = client.put(f"/api/patients/{p['id']}", json={"address": "1 Main St",
                                                      "emergencyContact": {"name": "Mom", "phone": "0903333333"}},
                     headers=headers)
    assert res.status_code == 200
    assert res.json()["data"]["emergency_contact_name"] == "Mom"

    assert client.delete(f"/api/patients/{p['id']}", headers=headers).status_code == 200
    assert client.get("/api/patients/", headers=headers).json()["data"] == []
    # receptionists may archive but not restore
    assert client.patch(f"/api/patients/{p['id']}/restore", headers=headers).status_code == 403

    res = client.patch(f"/api/patients/{p['id']}/restore", headers=admin[1])
    assert res.status_code == 200
    assert res.json()["data"]["state"] == "active"


def test_archived_patient_cannot_book(client, admin, doctor, create_patient, future_day):
    _, headers = admin
    p = create_patient(headers)
    client.delete(f"/api/patients/{p['id']}", headers=headers)
    res = client.post("/api/appointments/", json={
        "patient": p["id"], "doctor": doctor[0],
        "appointmentDate": future_day.isoformat(), "appointmentTime": "09:00", "reason": "x",
    }, headers=headers)
    assert res.status_code == 404


def test_stats_require_permission(client, receptionist, doctor, create_patient):
    create_patient(receptionist[1])
    assert client.get("/api/patients/stats/overview", headers=doctor[1]).status_code == 403
    stats = client.get("/api/patients/stats/overview", headers=receptionist[1]).json()["data"]
    assert stats["total"] == 1
    assert stats["gender"] == {"female": 1}
