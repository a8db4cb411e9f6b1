from datetime import datetime, timedelta, timezone

from sqlalchemy import select, update

from pharmdesk.models.medicine import Medicine
from pharmdesk.models.sales import Sale


def _register(client, *, email: str, name: str = "Owner"):
    return client.post(
        "/auth/register",
        json={"email": email, "name": name, "password": "password123"},
    )


def _auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _admin_token(client) -> str:
    res = _register(client, email="admin@example.com", name="Admin")
    assert res.status_code == 200, res.text
    return res.json()["access_token"]


def _create_medicine(client, token: str, *, name: str, quantity: int, selling_price: float) -> str:
    res = client.post(
        "/medicines",
        json={
            "name": name,
            "category": "analgesic",
            "quantity": quantity,
            "purchase_price": 1.0,
            "selling_price": selling_price,
        },
        headers=_auth_headers(token),
    )
    assert res.status_code == 201, res.text
    return res.json()["id"]


def _stock(client, token: str, medicine_id: str) -> int:
    res = client.get(f"/medicines/{medicine_id}", headers=_auth_headers(token))
    assert res.status_code == 200, res.text
    return res.json()["quantity"]


def test_create_sale_returns_lines_and_takes_stock(test_context):
    client, _ = test_context
    token = _admin_token(client)
    medicine_id = _create_medicine(client, token, name="Paracetamol", quantity=10, selling_price=5.0)

    res = client.post(
        "/sales",
        json={"lines": [{"medicine_id": medicine_id, "quantity": 3}], "customer_name": "  Walk-in  "},
        headers=_auth_headers(token),
    )
    assert res.status_code == 201, res.text
    body = res.json()
    assert set(body) == {"id", "lines", "totalAmount", "customerName", "createdBy", "createdAt"}
    assert body["totalAmount"] == 15.0
    assert body["customerName"] == "Walk-in"
    assert body["lines"] == [
        {
            "medicineId": medicine_id,
            "medicineName": "Paracetamol",
            "quantity": 3,
            "unitPrice": 5.0,
            "totalPrice": 15.0,
        }
    ]
    assert _stock(client, token, medicine_id) == 7

    movements = client.get(f"/medicines/{medicine_id}/movements", headers=_auth_headers(token))
    assert movements.status_code == 200, movements.text
    reasons = sorted((row["reason"], row["qty_delta"]) for row in movements.json())
    assert reasons == [("initial", 10), ("sale", -3)]
    sale_rows = [row for row in movements.json() if row["reason"] == "sale"]
    assert sale_rows[0]["reference_id"] == body["id"]


def test_create_sale_accepts_camel_case_fields_and_merges_repeats(test_context):
    client, _ = test_context
    token = _admin_token(client)
    first = _create_medicine(client, token, name="Amoxicillin", quantity=10, selling_price=2.5)
    second = _create_medicine(client, token, name="Ibuprofen", quantity=10, selling_price=4.0)

    res = client.post(
        "/sales",
        json={
            "lines": [
                {"medicineId": first, "quantity": 1},
                {"medicineId": second, "quantity": 2},
                {"medicineId": first, "quantity": 3},
            ],
            "customerName": "Ada",
        },
        headers=_auth_headers(token),
    )
    assert res.status_code == 201, res.text
    body = res.json()
    assert [(line["medicineId"], line["quantity"]) for line in body["lines"]] == [(first, 4), (second, 2)]
    assert body["totalAmount"] == 18.0
    assert body["customerName"] == "Ada"
    assert _stock(client, token, first) == 6
    assert _stock(client, token, second) == 8


def test_staff_can_sell(test_context):
    client, _ = test_context
    admin_token = _admin_token(client)
    medicine_id = _create_medicine(client, admin_token, name="Cetirizine", quantity=4, selling_price=3.0)

    staff = _register(client, email="staff@example.com", name="Staff")
    assert staff.status_code == 200, staff.text
    assert staff.json()["user"]["role"] == "staff"
    staff_token = staff.json()["access_token"]

    res = client.post(
        "/sales",
        json={"lines": [{"medicine_id": medicine_id, "quantity": 4}]},
        headers=_auth_headers(staff_token),
    )
    assert res.status_code == 201, res.text
    assert res.json()["createdBy"] == staff.json()["user"]["id"]


def test_insufficient_stock_returns_structured_error(test_context):
    client, _ = test_context
    token = _admin_token(client)
    medicine_id = _create_medicine(client, token, name="Loratadine", quantity=2, selling_price=3.0)

    res = client.post(
        "/sales",
        json={"lines": [{"medicine_id": medicine_id, "quantity": 5}]},
        headers={**_auth_headers(token), "X-Request-ID": "req-sale-1"},
    )
    assert res.status_code == 400, res.text
    assert res.json()["message"] == "Insufficient stock for Loratadine: requested 5, available 2"
    error = res.json()["error"]
    assert error["code"] == "insufficient_stock"
    assert error["request_id"] == "req-sale-1"
    assert error["path"] == "/sales"
    assert error["details"]["medicine_id"] == medicine_id
    assert error["details"]["available"] == 2
    assert error["details"]["requested"] == 5
    assert res.headers["X-Request-ID"] == "req-sale-1"
    assert _stock(client, token, medicine_id) == 2


def test_unknown_medicine_rejects_whole_basket(test_context):
    client, session_local = test_context
    token = _admin_token(client)
    medicine_id = _create_medicine(client, token, name="Omeprazole", quantity=10, selling_price=6.0)

    res = client.post(
        "/sales",
        json={
            "lines": [
                {"medicine_id": medicine_id, "quantity": 3},
                {"medicine_id": "missing", "quantity": 1},
            ]
        },
        headers=_auth_headers(token),
    )
    assert res.status_code == 400, res.text
    assert res.json()["error"]["code"] == "medicine_not_found"
    assert res.json()["error"]["details"] == {"medicine_id": "missing"}
    assert _stock(client, token, medicine_id) == 10

    with session_local() as db:
        assert db.execute(select(Sale)).scalars().all() == []


def test_invalid_baskets_are_rejected_before_touching_stock(test_context):
    client, _ = test_context
    token = _admin_token(client)
    medicine_id = _create_medicine(client, token, name="Metformin", quantity=10, selling_price=1.5)

    empty = client.post("/sales", json={"lines": []}, headers=_auth_headers(token))
    assert empty.status_code == 400, empty.text
    assert empty.json()["error"]["code"] == "invalid_basket"

    zero = client.post(
        "/sales",
        json={"lines": [{"medicine_id": medicine_id, "quantity": 0}]},
        headers=_auth_headers(token),
    )
    assert zero.status_code == 400, zero.text
    assert zero.json()["error"]["code"] == "invalid_basket"

    extra_field = client.post(
        "/sales",
        json={"lines": [{"medicine_id": medicine_id, "quantity": 1, "price": 0.01}]},
        headers=_auth_headers(token),
    )
    assert extra_field.status_code == 422, extra_field.text
    assert extra_field.json()["error"]["code"] == "validation_error"

    not_a_number = client.post(
        "/sales",
        json={"lines": [{"medicine_id": medicine_id, "quantity": "many"}]},
        headers=_auth_headers(token),
    )
    assert not_a_number.status_code == 422, not_a_number.text

    assert _stock(client, token, medicine_id) == 10


def test_sales_require_authentication(test_context):
    client, _ = test_context

    res = client.post("/sales", json={"lines": [{"medicine_id": "m1", "quantity": 1}]})
    assert res.status_code == 401, res.text
    assert res.json()["error"]["code"] == "unauthorized"


def test_list_get_and_totals(test_context):
    client, session_local = test_context
    token = _admin_token(client)
    medicine_id = _create_medicine(client, token, name="Vitamin C", quantity=50, selling_price=2.0)

    created_ids = []
    for quantity in (1, 2, 3):
        res = client.post(
            "/sales",
            json={"lines": [{"medicine_id": medicine_id, "quantity": quantity}]},
            headers=_auth_headers(token),
        )
        assert res.status_code == 201, res.text
        created_ids.append(res.json()["id"])

    old_sale_id = created_ids[0]
    old_timestamp = datetime.now(timezone.utc) - timedelta(days=40)
    with session_local() as db:
        db.execute(update(Sale).where(Sale.id == old_sale_id).values(created_at=old_timestamp))
        db.commit()

    listed = client.get("/sales", headers=_auth_headers(token))
    assert listed.status_code == 200, listed.text
    assert len(listed.json()) == 3
    assert listed.json()[-1]["id"] == old_sale_id

    today = datetime.now(timezone.utc).date().isoformat()
    today_only = client.get(
        "/sales", params={"start_date": today, "end_date": today}, headers=_auth_headers(token)
    )
    assert today_only.status_code == 200, today_only.text
    assert {row["id"] for row in today_only.json()} == set(created_ids[1:])

    bad_range = client.get(
        "/sales",
        params={"start_date": today, "end_date": "2000-01-01"},
        headers=_auth_headers(token),
    )
    assert bad_range.status_code == 400, bad_range.text

    daily = client.get("/sales/daily", headers=_auth_headers(token))
    assert daily.status_code == 200, daily.text
    assert daily.json()["total"] == 10.0
    assert daily.json()["startDate"] == today

    monthly = client.get("/sales/monthly", headers=_auth_headers(token))
    assert monthly.status_code == 200, monthly.text
    assert monthly.json()["total"] >= 10.0
    assert monthly.json()["startDate"].endswith("-01")

    one = client.get(f"/sales/{created_ids[1]}", headers=_auth_headers(token))
    assert one.status_code == 200, one.text
    assert one.json()["totalAmount"] == 4.0

    missing = client.get("/sales/does-not-exist", headers=_auth_headers(token))
    assert missing.status_code == 404, missing.text
    assert missing.json()["error"]["code"] == "not_found"


def test_sale_survives_medicine_deletion(test_context):
    client, session_local = test_context
    token = _admin_token(client)
    medicine_id = _create_medicine(client, token, name="Aspirin", quantity=5, selling_price=1.25)

    sale = client.post(
        "/sales",
        json={"lines": [{"medicine_id": medicine_id, "quantity": 2}]},
        headers=_auth_headers(token),
    )
    assert sale.status_code == 201, sale.text

    deleted = client.delete(f"/medicines/{medicine_id}", headers=_auth_headers(token))
    assert deleted.status_code == 200, deleted.text

    with session_local() as db:
        assert db.execute(select(Medicine).where(Medicine.id == medicine_id)).scalar_one_or_none() is None

    fetched = client.get(f"/sales/{sale.json()['id']}", headers=_auth_headers(token))
    assert fetched.status_code == 200, fetched.text
    assert fetched.json()["lines"][0]["medicineName"] == "Aspirin"
    assert fetched.json()["totalAmount"] == 2.5
