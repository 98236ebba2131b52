def test_admin_manages_users(client, admin):
    _, headers = admin
    res = client.post("/api/users/", json={
        "fullName": "Dr. New", "email": "new@clinic.com", "password": "secret123",
        "role": "doctor", "specialization": "ENT",
    }, headers=headers)
    assert res.status_code == 201, res.text
    user = res.json()["data"]

    res = client.put(f"/api/users/{user['id']}", json={"role": "receptionist"}, headers=headers)
    assert res.status_code == 200
    # doctor-only fields are cleared for other roles
    assert res.json()["data"]["specialization"] is None

    res = client.get("/api/users/", params={"role": "receptionist"}, headers=headers).json()
    assert [u["email"] for u in res["data"]] == ["new@clinic.com"]

    res = client.put(f"/api/users/{user['id']}/reset-password", json={"newPassword": "changed1"}, headers=headers)
    assert res.status_code == 200
    login = client.post("/api/auth/login", json={"email": "new@clinic.com", "password": "changed1"})
    assert login.status_code == 200


def test_email_must_stay_unique(client, admin, receptionist):
    _, headers = admin
    user_id, _ = receptionist
    res = client.put(f"/api/users/{user_id}", json={"email": "admin@clinic.com"}, headers=headers)
    assert res.status_code == 409


def test_admin_cannot_deactivate_self(client, admin):
    user_id, headers = admin
    assert client.patch(f"/api/users/{user_id}/deactivate", headers=headers).status_code == 400


def test_non_admin_access(client, receptionist, doctor, other_doctor):
    user_id, headers = receptionist
    assert client.get("/api/users/", headers=headers).status_code == 403
    assert client.get(f"/api/users/{user_id}", headers=headers).status_code == 200
    assert client.get(f"/api/users/{doctor[0]}", headers=headers).status_code == 403

    doctors = client.get("/api/users/doctors", headers=headers).json()["data"]
    assert {d["id"] for d in doctors} == {doctor[0], other_doctor[0]}
