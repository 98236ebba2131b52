from datetime import timedelta

from clinic.utils.timezone import today_local


def _book(client, headers, patient_id, doctor_id, day, at, duration=30, **extra):
    body = {
        "patient": patient_id,
        "doctor": doctor_id,
        "appointmentDate": day.isoformat(),
        "appointmentTime": at,
        "duration": duration,
        "reason": "Check-up",
    }
    body.update(extra)
    return client.post("/api/appointments/", json=body, headers=headers)


def test_overlapping_booking_rejected_and_abutting_accepted(client, receptionist, doctor, create_patient, future_day):
    _, headers = receptionist
    doctor_id, _ = doctor
    p = create_patient(headers)

    first = _book(client, headers, p["id"], doctor_id, future_day, "09:00")
    assert first.status_code == 201, first.text
    data = first.json()["data"]
    assert data["status"] == "scheduled"
    assert data["appointment_time"] == "09:00"
    assert data["end_time"] == "09:30"
    assert data["appointment_code"] == f"AP{future_day:%Y%m%d}{data['id']:05d}"

    clash = _book(client, headers, p["id"], doctor_id, future_day, "09:15")
    assert clash.status_code == 400
    body = clash.json()
    assert body["ok"] is False
    assert body["error"]["code"] == "SCHEDULING_CONFLICT"
    assert [c["id"] for c in body["error"]["details"]] == [data["id"]]

    abutting = _book(client, headers, p["id"], doctor_id, future_day, "09:30")
    assert abutting.status_code == 201, abutting.text


def test_other_doctor_same_slot_is_free(client, receptionist, doctor, other_doctor, create_patient, future_day):
    _, headers = receptionist
    p = create_patient(headers)
    assert _book(client, headers, p["id"], doctor[0], future_day, "10:00").status_code == 201
    assert _book(client, headers, p["id"], other_doctor[0], future_day, "10:00").status_code == 201


def test_cancelled_appointment_frees_the_slot(client, receptionist, doctor, create_patient, future_day):
    _, headers = receptionist
    p = create_patient(headers)
    ap = _book(client, headers, p["id"], doctor[0], future_day, "11:00").json()["data"]

    res = client.patch(f"/api/appointments/{ap['id']}/status",
                       json={"status": "cancelled", "cancelReason": "Patient called"}, headers=headers)
    assert res.status_code == 200, res.text
    assert res.json()["data"]["cancel_reason"] == "Patient called"

    assert _book(client, headers, p["id"], doctor[0], future_day, "11:00").status_code == 201


def test_booking_in_the_past_rejected(client, receptionist, doctor, create_patient):
    _, headers = receptionist
    p = create_patient(headers)
    res = _book(client, headers, p["id"], doctor[0], today_local() - timedelta(days=1), "09:00")
    assert res.status_code == 400
    assert "past" in res.json()["error"]["msg"]


def test_unknown_doctor_and_patient(client, receptionist, admin, create_patient, future_day):
    _, headers = receptionist
    p = create_patient(headers)
    # admin is a user but not a doctor
    res = _book(client, headers, p["id"], admin[0], future_day, "09:00")
    assert res.status_code == 404
    res = _book(client, headers, 999, admin[0], future_day, "09:00")
    assert res.status_code == 404


def test_duration_and_time_validation(client, receptionist, doctor, create_patient, future_day):
    _, headers = receptionist
    p = create_patient(headers)
    assert _book(client, headers, p["id"], doctor[0], future_day, "09:00", duration=10).status_code == 400
    assert _book(client, headers, p["id"], doctor[0], future_day, "25:00").status_code == 400


def test_update_checks_conflicts_excluding_itself(client, receptionist, doctor, create_patient, future_day):
    _, headers = receptionist
    p = create_patient(headers)
    a = _book(client, headers, p["id"], doctor[0], future_day, "09:00").json()["data"]
    b = _book(client, headers, p["id"], doctor[0], future_day, "10:00").json()["data"]

    # extending itself does not clash with itself
    res = client.put(f"/api/appointments/{a['id']}", json={"duration": 60}, headers=headers)
    assert res.status_code == 200, res.text
    assert res.json()["data"]["end_time"] == "10:00"

    res = client.put(f"/api/appointments/{b['id']}", json={"appointmentTime": "09:30"}, headers=headers)
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "SCHEDULING_CONFLICT"


def test_status_machine_and_history(client, receptionist, doctor, create_patient, future_day):
    _, headers = receptionist
    p = create_patient(headers)
    ap = _book(client, headers, p["id"], doctor[0], future_day, "14:00").json()["data"]
    url = f"/api/appointments/{ap['id']}"

    for status in ("confirmed", "in-progress", "completed"):
        res = client.patch(f"{url}/status", json={"status": status}, headers=headers)
        assert res.status_code == 200, res.text

    res = client.patch(f"{url}/status", json={"status": "scheduled"}, headers=headers)
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "INVALID_TRANSITION"

    res = client.put(url, json={"reason": "changed"}, headers=headers)
    assert res.status_code == 400

    history = client.get(f"{url}/history", headers=headers).json()["data"]
    assert [h["to_status"] for h in history] == ["scheduled", "confirmed", "in-progress", "completed"]


def test_cancel_requires_reason(client, receptionist, doctor, create_patient, future_day):
    _, headers = receptionist
    p = create_patient(headers)
    ap = _book(client, headers, p["id"], doctor[0], future_day, "15:00").json()["data"]
    res = client.patch(f"/api/appointments/{ap['id']}/status", json={"status": "cancelled"}, headers=headers)
    assert res.status_code == 400


def test_availability_and_slots(client, receptionist, doctor, create_patient, future_day):
    _, headers = receptionist
    p = create_patient(headers)
    _book(client, headers, p["id"], doctor[0], future_day, "09:00")

    params = {"doctor": doctor[0], "date": future_day.isoformat(), "time": "09:15", "duration": 30}
    res = client.get("/api/appointments/check-availability", params=params, headers=headers)
    assert res.status_code == 200
    assert res.json()["data"]["available"] is False

    params["time"] = "09:30"
    res = client.get("/api/appointments/check-availability", params=params, headers=headers)
    assert res.json()["data"] == {"available": True, "conflicts": []}

    res = client.get("/api/appointments/available-slots",
                     params={"doctor": doctor[0], "date": future_day.isoformat()}, headers=headers)
    starts = [s["start"] for s in res.json()["data"]["slots"]]
    assert "09:00" not in starts
    assert "08:30" in starts and "09:30" in starts


def test_booking_counts_as_visit(client, receptionist, doctor, create_patient, future_day):
    _, headers = receptionist
    p = create_patient(headers)
    _book(client, headers, p["id"], doctor[0], future_day, "09:00")
    _book(client, headers, p["id"], doctor[0], future_day, "10:00")
    res = client.get(f"/api/patients/{p['id']}", headers=headers).json()["data"]
    assert res["total_visits"] == 2


def test_doctor_sees_only_own_appointments(client, receptionist, doctor, other_doctor, create_patient, future_day):
    _, headers = receptionist
    p = create_patient(headers)
    mine = _book(client, headers, p["id"], doctor[0], future_day, "09:00").json()["data"]
    theirs = _book(client, headers, p["id"], other_doctor[0], future_day, "09:00").json()["data"]

    _, doc_headers = doctor
    listing = client.get("/api/appointments/", headers=doc_headers).json()
    assert [a["id"] for a in listing["data"]] == [mine["id"]]
    assert listing["meta"]["totalRecords"] == 1

    assert client.get(f"/api/appointments/{theirs['id']}", headers=doc_headers).status_code == 403
    assert len(client.get("/api/appointments/", headers=headers).json()["data"]) == 2


def test_slot_must_end_by_midnight(client, receptionist, doctor, create_patient, future_day):
    _, headers = receptionist
    p = create_patient(headers)

    res = _book(client, headers, p["id"], doctor[0], future_day, "23:30", duration=60)
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "VALIDATION_ERROR"

    late = _book(client, headers, p["id"], doctor[0], future_day, "23:30", duration=30)
    assert late.status_code == 201, late.text
    assert late.json()["data"]["end_time"] == "00:00"

    res = client.put(f"/api/appointments/{late.json()['data']['id']}", json={"duration": 45}, headers=headers)
    assert res.status_code == 400
