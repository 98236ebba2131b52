def _register(client, headers=None, **overrides):
    body = {
        "fullName": "First User",
        "email": "owner@clinic.com",
        "password": "secret123",
        "role": "receptionist",
    }
    body.update(overrides)
    return client.post("/api/auth/register", json=body, headers=headers or {})


def test_first_registration_bootstraps_admin(client):
    res = _register(client)
    assert res.status_code == 201, res.text
    data = res.json()["data"]
    assert data["user"]["role"] == "admin"
    assert data["token_type"] == "bearer"
    assert "users.manage" in data["permissions"]

    # after that only an admin can add staff
    res = _register(client, email="second@clinic.com")
    assert res.status_code == 401

    headers = {"Authorization": f"Bearer {data['access_token']}"}
    res = _register(client, headers=headers, email="doc@clinic.com", role="doctor",
                    specialization="Cardiology", licenseNumber="LIC-99")
    assert res.status_code == 201
    assert res.json()["data"]["user"]["role"] == "doctor"
    assert res.json()["data"]["user"]["specialization"] == "Cardiology"


def test_duplicate_email_conflicts(client):
    _register(client)
    token = client.post("/api/auth/login", json={"email": "owner@clinic.com", "password": "secret123"}).json()
    headers = {"Authorization": f"Bearer {token['data']['access_token']}"}
    res = _register(client, headers=headers, email="OWNER@clinic.com")
    assert res.status_code == 409


def test_login_refresh_and_me(client):
    _register(client)
    res = client.post("/api/auth/login", json={"email": "owner@clinic.com", "password": "wrong-pass"})
    assert res.status_code == 401
    assert res.json()["ok"] is False

    res = client.post("/api/auth/login", json={"email": "Owner@clinic.com", "password": "secret123"})
    assert res.status_code == 200
    tokens = res.json()["data"]
    assert tokens["user"]["last_login"] is not None

    # refresh tokens are not accepted as access tokens
    bad = client.get("/api/auth/me", headers={"Authorization": f"Bearer {tokens['refresh_token']}"})
    assert bad.status_code == 401

    res = client.post("/api/auth/refresh", json={"refreshToken": tokens["refresh_token"]})
    assert res.status_code == 200
    access = res.json()["data"]["access_token"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {access}"}).json()["data"]
    assert me["email"] == "owner@clinic.com"
    assert me["is_active"] is True


def test_change_password(client, receptionist):
    _, headers = receptionist
    res = client.put("/api/auth/change-password",
                     json={"currentPassword": "nope12", "newPassword": "another1"}, headers=headers)
    assert res.status_code == 400
    res = client.put("/api/auth/change-password",
                     json={"currentPassword": "secret123", "newPassword": "another1"}, headers=headers)
    assert res.status_code == 200
    res = client.post("/api/auth/login", json={"email": "front@clinic.com", "password": "another1"})
    assert res.status_code == 200


def test_deactivated_user_is_locked_out(client, admin, receptionist):
    user_id, headers = receptionist
    res = client.patch(f"/api/users/{user_id}/deactivate", headers=admin[1])
    assert res.status_code == 200
    assert res.json()["data"]["is_active"] is False

    assert client.get("/api/auth/me", headers=headers).status_code == 401
    res = client.post("/api/auth/login", json={"email": "front@clinic.com", "password": "secret123"})
    assert res.status_code == 401

    client.patch(f"/api/users/{user_id}/activate", headers=admin[1])
    assert client.get("/api/auth/me", headers=headers).status_code == 200


def test_missing_or_garbage_token(client):
    assert client.get("/api/auth/me").status_code == 401
    assert client.get("/api/auth/me", headers={"Authorization": "Bearer nonsense"}).status_code == 401
