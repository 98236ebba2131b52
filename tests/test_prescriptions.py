def _line(medicine_id, quantity, **extra):
    line = {
        "medicine": medicine_id,
        "dosage": "1 tablet",
        "frequency": "twice daily",
        "duration": "5 days",
        "quantity": quantity,
    }
    line.update(extra)
    return line


def _prescribe(client, headers, patient_id, lines):
    return client.post(
        "/api/prescriptions/",
        json={"patient": patient_id, "diagnosis": "Common cold", "medications": lines},
        headers=headers,
    )


def _stock(client, headers, medicine_id):
    return client.get(f"/api/medicines/{medicine_id}", headers=headers).json()["data"]["stock_quantity"]


def test_create_rejected_when_stock_short_then_single_line_dispense(client, doctor, create_patient, create_medicine):
    _, headers = doctor
    p = create_patient(headers)
    med = create_medicine(headers, quantity=5, price=2000)

    res = _prescribe(client, headers, p["id"], [_line(med["id"], 10)])
    assert res.status_code == 400
    err = res.json()["error"]
    assert err["code"] == "INSUFFICIENT_STOCK"
    assert err["details"][0]["available"] == 5
    assert _stock(client, headers, med["id"]) == 5

    res = _prescribe(client, headers, p["id"], [_line(med["id"], 3)])
    assert res.status_code == 201, res.text
    rx = res.json()["data"]
    assert rx["status"] == "draft"
    assert rx["prescription_code"] == f"RX{rx['id']:06d}"
    assert rx["total_amount"] == 6000
    assert rx["lines"][0]["total_price"] == 6000
    assert rx["lines"][0]["medicine_name"] == "Paracetamol"
    # creating does not touch stock
    assert _stock(client, headers, med["id"]) == 5

    line_id = rx["lines"][0]["id"]
    res = client.patch(f"/api/prescriptions/{rx['id']}/dispense",
                       json={"medicationIds": [line_id]}, headers=headers)
    assert res.status_code == 200, res.text
    data = res.json()["data"]
    assert data["results"][0]["outcome"] == "dispensed"
    assert data["prescription"]["status"] == "fully-dispensed"
    assert data["prescription"]["lines"][0]["dispensed"] is True
    assert data["prescription"]["dispensed_percentage"] == 100
    assert _stock(client, headers, med["id"]) == 2


def test_partial_dispense_skips_line_without_stock(client, doctor, create_patient, create_medicine):
    _, headers = doctor
    p = create_patient(headers)
    med_a = create_medicine(headers, name="Amoxicillin", quantity=5)
    med_b = create_medicine(headers, name="Vitamin C", quantity=10)

    rx = _prescribe(client, headers, p["id"], [_line(med_a["id"], 2), _line(med_b["id"], 4)]).json()["data"]
    line_a, line_b = rx["lines"][0]["id"], rx["lines"][1]["id"]

    # A runs out after the prescription was written
    res = client.patch(f"/api/medicines/{med_a['id']}/stock",
                       json={"type": "set", "quantity": 0}, headers=headers)
    assert res.status_code == 200

    res = client.patch(f"/api/prescriptions/{rx['id']}/dispense",
                       json={"medicationIds": [line_a, line_b]}, headers=headers)
    assert res.status_code == 200, res.text
    data = res.json()["data"]
    outcomes = {r["line_id"]: r["outcome"] for r in data["results"]}
    assert outcomes == {line_a: "insufficient_stock", line_b: "dispensed"}
    assert data["prescription"]["status"] == "partially-dispensed"
    assert _stock(client, headers, med_a["id"]) == 0
    assert _stock(client, headers, med_b["id"]) == 6

    # dispensing B again changes nothing
    res = client.patch(f"/api/prescriptions/{rx['id']}/dispense",
                       json={"medicationIds": [line_b]}, headers=headers)
    assert res.json()["data"]["results"][0]["outcome"] == "already_dispensed"
    assert _stock(client, headers, med_b["id"]) == 6


def test_quantities_of_same_medicine_are_checked_together(client, doctor, create_patient, create_medicine):
    _, headers = doctor
    p = create_patient(headers)
    med = create_medicine(headers, quantity=5)
    res = _prescribe(client, headers, p["id"], [_line(med["id"], 3), _line(med["id"], 3)])
    assert res.status_code == 400
    assert res.json()["error"]["details"][0]["requested"] == 6


def test_unknown_medicine_is_not_found(client, doctor, create_patient):
    _, headers = doctor
    p = create_patient(headers)
    res = _prescribe(client, headers, p["id"], [_line(999, 1)])
    assert res.status_code == 404


def test_admin_cannot_prescribe(client, admin, create_patient, create_medicine):
    _, headers = admin
    p = create_patient(headers)
    med = create_medicine(headers)
    res = _prescribe(client, headers, p["id"], [_line(med["id"], 1)])
    assert res.status_code == 403


def test_status_flow_and_cancelled_cannot_be_dispensed(client, doctor, create_patient, create_medicine):
    _, headers = doctor
    p = create_patient(headers)
    med = create_medicine(headers)
    rx = _prescribe(client, headers, p["id"], [_line(med["id"], 1)]).json()["data"]
    url = f"/api/prescriptions/{rx['id']}"

    res = client.patch(f"{url}/status", json={"status": "issued"}, headers=headers)
    assert res.status_code == 200
    assert res.json()["data"]["issued_at"] is not None

    assert client.patch(f"{url}/status", json={"status": "cancelled"}, headers=headers).status_code == 400
    res = client.patch(f"{url}/status", json={"status": "cancelled", "reason": "Wrong patient"}, headers=headers)
    assert res.status_code == 200
    assert res.json()["data"]["status"] == "cancelled"

    res = client.patch(f"{url}/dispense", json={"medicationIds": [rx["lines"][0]["id"]]}, headers=headers)
    assert res.status_code == 400
    assert _stock(client, headers, med["id"]) == 100


def test_update_recomputes_total_and_other_doctor_cannot_edit(client, doctor, other_doctor, create_patient,
                                                              create_medicine):
    _, headers = doctor
    p = create_patient(headers)
    med = create_medicine(headers, price=500)
    rx = _prescribe(client, headers, p["id"], [_line(med["id"], 2)]).json()["data"]
    assert rx["total_amount"] == 1000

    res = client.put(f"/api/prescriptions/{rx['id']}",
                     json={"medications": [_line(med["id"], 4, unitPrice=700)]}, headers=headers)
    assert res.status_code == 200, res.text
    assert res.json()["data"]["total_amount"] == 2800

    _, other = other_doctor
    res = client.put(f"/api/prescriptions/{rx['id']}", json={"notes": "x"}, headers=other)
    assert res.status_code == 403


def test_archive_blocked_after_dispensing(client, doctor, create_patient, create_medicine):
    _, headers = doctor
    p = create_patient(headers)
    med = create_medicine(headers)
    rx = _prescribe(client, headers, p["id"], [_line(med["id"], 1)]).json()["data"]
    client.patch(f"/api/prescriptions/{rx['id']}/dispense",
                 json={"medicationIds": [rx["lines"][0]["id"]]}, headers=headers)
    assert client.delete(f"/api/prescriptions/{rx['id']}", headers=headers).status_code == 400


def test_print_returns_pdf(client, doctor, create_patient, create_medicine):
    _, headers = doctor
    p = create_patient(headers)
    med = create_medicine(headers)
    rx = _prescribe(client, headers, p["id"], [_line(med["id"], 1)]).json()["data"]
    res = client.get(f"/api/prescriptions/{rx['id']}/print", headers=headers)
    assert res.status_code == 200
    assert res.headers["content-type"] == "application/pdf"
    assert res.content.startswith(b"%PDF")


def test_resave_without_line_changes_keeps_total(client, doctor, create_patient, create_medicine):
    _, headers = doctor
    p = create_patient(headers)
    a = create_medicine(headers, name="Amoxicillin", quantity=50, price=1500)
    b = create_medicine(headers, name="Vitamin C", quantity=50, price=700)
    rx = _prescribe(client, headers, p["id"], [_line(a["id"], 4), _line(b["id"], 10)]).json()["data"]
    assert rx["total_amount"] == 4 * 1500 + 10 * 700

    for note in ("take with water", "recheck in a week"):
        res = client.put(f"/api/prescriptions/{rx['id']}", json={"notes": note}, headers=headers)
        assert res.status_code == 200, res.text
        data = res.json()["data"]
        assert data["notes"] == note
        assert data["total_amount"] == rx["total_amount"]
        assert [line["total_price"] for line in data["lines"]] == [6000, 7000]
