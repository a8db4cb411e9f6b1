from sqlalchemy import select

from pharmdesk.models.audit_log import AuditLog


def _register(client, *, email: str, name: str = "Owner"):
    return client.post(
        "/auth/register",
        json={"email": email, "name": name, "password": "password123"},
    )


def _auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _admin_headers(client) -> dict[str, str]:
    res = _register(client, email="owner@example.com")
    assert res.status_code == 200, res.text
    return _auth_headers(res.json()["access_token"])


def _create_supplier(client, headers, *, name: str = "MedSource Ltd") -> dict:
    res = client.post(
        "/suppliers",
        json={
            "name": f"  {name}  ",
            "email": "orders@medsource.example",
            "phone": "  ",
            "contact_person": "Sam Lee",
        },
        headers=headers,
    )
    assert res.status_code == 201, res.text
    return res.json()


def test_supplier_crud(test_context):
    client, session_local = test_context
    headers = _admin_headers(client)

    supplier = _create_supplier(client, headers)
    assert supplier["name"] == "MedSource Ltd"
    assert supplier["phone"] is None

    _create_supplier(client, headers, name="Apex Wholesale")
    searched = client.get("/suppliers", params={"search": "medsource"}, headers=headers)
    assert searched.status_code == 200, searched.text
    assert [row["id"] for row in searched.json()] == [supplier["id"]]

    everything = client.get("/suppliers", headers=headers)
    assert [row["name"] for row in everything.json()] == ["Apex Wholesale", "MedSource Ltd"]

    updated = client.put(
        f"/suppliers/{supplier['id']}",
        json={"phone": "+1 555 0100", "address": "12 Harbour Road"},
        headers=headers,
    )
    assert updated.status_code == 200, updated.text
    assert updated.json()["phone"] == "+1 555 0100"
    assert updated.json()["name"] == "MedSource Ltd"

    blank_name = client.put(f"/suppliers/{supplier['id']}", json={"name": " "}, headers=headers)
    assert blank_name.status_code == 422, blank_name.text

    deleted = client.delete(f"/suppliers/{supplier['id']}", headers=headers)
    assert deleted.status_code == 200, deleted.text

    missing = client.get(f"/suppliers/{supplier['id']}", headers=headers)
    assert missing.status_code == 404, missing.text

    with session_local() as db:
        actions = [row.action for row in db.execute(select(AuditLog).order_by(AuditLog.created_at)).scalars()]
    assert "supplier.create" in actions
    assert "supplier.update" in actions
    assert "supplier.delete" in actions


def test_supplier_in_use_cannot_be_deleted(test_context):
    client, _ = test_context
    headers = _admin_headers(client)
    supplier = _create_supplier(client, headers)

    medicine = client.post(
        "/medicines",
        json={
            "name": "Amoxicillin 250mg",
            "quantity": 10,
            "purchase_price": 3,
            "selling_price": 6,
            "supplier_id": supplier["id"],
        },
        headers=headers,
    )
    assert medicine.status_code == 201, medicine.text
    assert medicine.json()["supplier"]["name"] == "MedSource Ltd"

    res = client.delete(f"/suppliers/{supplier['id']}", headers=headers)
    assert res.status_code == 409, res.text
    assert res.json()["error"]["code"] == "conflict"


def test_medicine_crud_and_filters(test_context):
    client, _ = test_context
    headers = _admin_headers(client)

    unknown_supplier = client.post(
        "/medicines",
        json={"name": "Ghost", "purchase_price": 1, "selling_price": 2, "supplier_id": "nope"},
        headers=headers,
    )
    assert unknown_supplier.status_code == 404, unknown_supplier.text

    negative = client.post(
        "/medicines",
        json={"name": "Negative", "quantity": -1, "purchase_price": 1, "selling_price": 2},
        headers=headers,
    )
    assert negative.status_code == 422, negative.text

    created = client.post(
        "/medicines",
        json={
            "name": "Paracetamol 500mg",
            "category": "Analgesic",
            "batch_number": "PCM-01",
            "expiry_date": "2030-01-31",
            "quantity": 40,
            "purchase_price": 2.5,
            "selling_price": 5,
        },
        headers=headers,
    )
    assert created.status_code == 201, created.text
    body = created.json()
    assert body["quantity"] == 40
    assert body["selling_price"] == 5.0
    assert body["expiry_date"] == "2030-01-31"

    other = client.post(
        "/medicines",
        json={"name": "Cough Syrup", "category": "respiratory", "purchase_price": 4, "selling_price": 7},
        headers=headers,
    )
    assert other.status_code == 201, other.text
    assert other.json()["quantity"] == 0

    by_search = client.get("/medicines", params={"search": "PARA"}, headers=headers)
    assert [row["id"] for row in by_search.json()] == [body["id"]]

    by_category = client.get("/medicines", params={"category": "analgesic"}, headers=headers)
    assert [row["id"] for row in by_category.json()] == [body["id"]]

    updated = client.put(
        f"/medicines/{body['id']}",
        json={"selling_price": 5.5, "batch_number": "PCM-02"},
        headers=headers,
    )
    assert updated.status_code == 200, updated.text
    assert updated.json()["selling_price"] == 5.5
    assert updated.json()["batch_number"] == "PCM-02"
    assert updated.json()["quantity"] == 40

    quantity_edit = client.put(f"/medicines/{body['id']}", json={"quantity": 999}, headers=headers)
    assert quantity_edit.status_code == 422, quantity_edit.text

    deleted = client.delete(f"/medicines/{other.json()['id']}", headers=headers)
    assert deleted.status_code == 200, deleted.text
    assert client.get(f"/medicines/{other.json()['id']}", headers=headers).status_code == 404


def test_stock_adjustments_are_recorded(test_context):
    client, _ = test_context
    headers = _admin_headers(client)
    medicine = client.post(
        "/medicines",
        json={"name": "Insulin", "quantity": 5, "purchase_price": 20, "selling_price": 30},
        headers=headers,
    ).json()

    restock = client.post(
        f"/medicines/{medicine['id']}/stock",
        json={"qty_delta": 15, "reason": "restock", "note": "Weekly delivery"},
        headers=headers,
    )
    assert restock.status_code == 200, restock.text
    assert restock.json()["quantity"] == 20

    correction = client.post(
        f"/medicines/{medicine['id']}/stock",
        json={"qty_delta": -4, "reason": "correction", "note": "Broken vials"},
        headers=headers,
    )
    assert correction.status_code == 200, correction.text
    assert correction.json()["quantity"] == 16

    too_much = client.post(
        f"/medicines/{medicine['id']}/stock",
        json={"qty_delta": -17, "reason": "correction"},
        headers=headers,
    )
    assert too_much.status_code == 400, too_much.text
    assert too_much.json()["error"]["code"] == "insufficient_stock"
    assert too_much.json()["error"]["details"]["available"] == 16

    negative_restock = client.post(
        f"/medicines/{medicine['id']}/stock",
        json={"qty_delta": -1, "reason": "restock"},
        headers=headers,
    )
    assert negative_restock.status_code == 422, negative_restock.text

    zero = client.post(f"/medicines/{medicine['id']}/stock", json={"qty_delta": 0}, headers=headers)
    assert zero.status_code == 422, zero.text

    movements = client.get(f"/medicines/{medicine['id']}/movements", headers=headers)
    assert movements.status_code == 200, movements.text
    assert sorted((row["reason"], row["qty_delta"]) for row in movements.json()) == [
        ("correction", -4),
        ("initial", 5),
        ("restock", 15),
    ]
    assert sum(row["qty_delta"] for row in movements.json()) == 16

    missing = client.post("/medicines/nope/stock", json={"qty_delta": 1}, headers=headers)
    assert missing.status_code == 404, missing.text


def test_oversized_text_fields_are_rejected_before_storage(test_context):
    client, _ = test_context
    headers = _admin_headers(client)
    long_text = "x" * 256

    medicine = client.post(
        "/medicines",
        json={"name": long_text, "quantity": 1, "purchase_price": 1, "selling_price": 2},
        headers=headers,
    )
    assert medicine.status_code == 422, medicine.text
    assert "name" in {item["field"] for item in medicine.json()["error"]["details"]}

    created = client.post(
        "/medicines",
        json={"name": "Ibuprofen", "quantity": 1, "purchase_price": 1, "selling_price": 2},
        headers=headers,
    ).json()
    note = client.post(
        f"/medicines/{created['id']}/stock",
        json={"qty_delta": 1, "reason": "restock", "note": long_text},
        headers=headers,
    )
    assert note.status_code == 422, note.text

    supplier = client.post("/suppliers", json={"name": long_text}, headers=headers)
    assert supplier.status_code == 422, supplier.text

    listing = client.get("/medicines", headers=headers)
    assert [row["name"] for row in listing.json()] == ["Ibuprofen"]
    assert client.get(f"/medicines/{created['id']}", headers=headers).json()["quantity"] == 1
