def _seed(client, receptionist, doctor, other_doctor, create_patient, create_medicine, future_day):
    _, front = receptionist
    p = create_patient(front)
    for doc, at in ((doctor, "09:00"), (doctor, "10:00"), (other_doctor, "09:00")):
        res = client.post("/api/appointments/", json={
            "patient": p["id"], "doctor": doc[0],
            "appointmentDate": future_day.isoformat(), "appointmentTime": at, "reason": "Visit",
        }, headers=front)
        assert res.status_code == 201, res.text

    med = create_medicine(doctor[1], quantity=2)
    res = client.post("/api/prescriptions/", json={
        "patient": p["id"], "diagnosis": "Flu",
        "medications": [{"medicine": med["id"], "dosage": "1", "frequency": "daily",
                         "duration": "2 days", "quantity": 2}],
    }, headers=doctor[1])
    assert res.status_code == 201, res.text
    return p


def test_overview_sections_depend_on_role(client, admin, receptionist, doctor, other_doctor,
                                         create_patient, create_medicine, future_day):
    _seed(client, receptionist, doctor, other_doctor, create_patient, create_medicine, future_day)

    data = client.get("/api/dashboard/overview", headers=admin[1]).json()["data"]
    assert data["stats"]["patients_total"] == 1
    assert data["stats"]["doctors_active"] == 2
    assert data["stats"]["appointments"]["pending"] == 3
    assert data["stats"]["revenue"]["today"] == 2000
    assert data["alerts"]["low_stock"] == 1

    data = client.get("/api/dashboard/overview", headers=doctor[1]).json()["data"]
    assert "patients_total" not in data["stats"]
    assert data["stats"]["appointments"]["pending"] == 2
    assert data["stats"]["prescriptions"]["today"] == 1
    assert "revenue" in data["stats"]
    assert "alerts" in data

    data = client.get("/api/dashboard/overview", headers=other_doctor[1]).json()["data"]
    assert data["stats"]["appointments"]["pending"] == 1
    assert data["stats"]["prescriptions"]["today"] == 0
    assert data["stats"]["revenue"]["today"] == 0

    data = client.get("/api/dashboard/overview", headers=receptionist[1]).json()["data"]
    assert data["stats"]["appointments"]["pending"] == 3
    assert "revenue" not in data["stats"]
    assert "patients_total" not in data["stats"]
    assert "alerts" not in data


def test_role_gated_endpoints(client, admin, receptionist, doctor):
    assert client.get("/api/dashboard/revenue/monthly", headers=receptionist[1]).status_code == 403
    assert client.get("/api/dashboard/revenue/monthly", headers=doctor[1]).status_code == 200
    assert client.get("/api/dashboard/patients/demographics", headers=doctor[1]).status_code == 403
    assert client.get("/api/dashboard/patients/demographics", headers=receptionist[1]).status_code == 200
    assert client.get("/api/dashboard/diagnoses/common", headers=receptionist[1]).status_code == 403
    assert client.get("/api/dashboard/overview").status_code == 401


def test_monthly_revenue_buckets(client, admin, receptionist, doctor, other_doctor,
                                 create_patient, create_medicine, future_day):
    _seed(client, receptionist, doctor, other_doctor, create_patient, create_medicine, future_day)
    data = client.get("/api/dashboard/revenue/monthly", params={"months": 3}, headers=admin[1]).json()["data"]
    assert len(data["monthly"]) == 3
    assert data["monthly"][-1]["revenue"] == 2000
    assert data["monthly"][-1]["prescriptions"] == 1


def test_upcoming_and_recent(client, admin, receptionist, doctor, other_doctor,
                             create_patient, create_medicine, future_day):
    _seed(client, receptionist, doctor, other_doctor, create_patient, create_medicine, future_day)

    upcoming = client.get("/api/dashboard/appointments/upcoming", headers=doctor[1]).json()["data"]
    assert [a["appointment_time"] for a in upcoming] == ["09:00", "10:00"]

    recent = client.get("/api/dashboard/activities/recent", headers=admin[1]).json()["data"]
    assert len(recent) == 3
    assert {a["type"] for a in recent} == {"appointment"}


def test_demographics(client, receptionist, create_patient):
    _, headers = receptionist
    create_patient(headers, gender="male", dateOfBirth="2015-01-01")
    create_patient(headers, gender="female", dateOfBirth="1950-01-01")
    data = client.get("/api/dashboard/patients/demographics", headers=headers).json()["data"]
    assert data["gender"] == {"male": 1, "female": 1}
    assert data["age_groups"] == {"0-17": 1, "18-59": 0, "60+": 1}
