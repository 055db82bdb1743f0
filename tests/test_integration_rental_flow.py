"""
End-to-end over HTTP: price preview -> order -> confirm -> start -> complete
-> invoice -> two payments, checking the envelope and amounts at each step.
"""

from datetime import date
from decimal import Decimal

ORDER_BODY = {
    "startDate": "2030-06-01",
    "endDate": "2030-06-04",
    "pickupLocation": "HCMC - District 1",
    "returnLocation": "HCMC - District 1",
    "depositAmount": "1000000",
}


def _ok(resp, status=200):
    body = resp.get_json()
    assert resp.status_code == status, body
    assert body["success"] is True
    return body["data"]


def _order_body(ids, **extra):
    body = dict(ORDER_BODY, customerId=ids.customer_id, vehicleId=ids.vehicle_id,
                employeeId=ids.employee_id)
    body.update(extra)
    return body


def test_full_rental_lifecycle(client, app_ids):
    quote = _ok(client.post("/RentalOrders/calculate-price", json={
        "vehicleId": app_ids.vehicle_id, "startDate": "2030-06-01", "endDate": "2030-06-04",
        "promotionCode": "SAVE10",
    }))
    assert quote == {
        "dailyRentalPrice": "500000.00",
        "totalDays": 3,
        "subTotal": "1500000.00",
        "discountAmount": "150000.00",
        "totalAmount": "1350000.00",
        "promotionMessage": "Promotion code applied",
    }

    order = _ok(client.post("/RentalOrders", json=_order_body(app_ids, promotionCode="SAVE10")), 201)
    oid = order["id"]
    assert order["status"] == "Draft"
    assert order["totalAmount"] == "1350000.00"
    assert order["depositAmount"] == "1000000.00"

    assert _ok(client.post(f"/RentalOrders/{oid}/confirm"))["status"] == "Confirmed"
    assert _ok(client.post(f"/RentalOrders/{oid}/start", json={"vehicleVersion": 1}))["status"] == "InProgress"
    done = _ok(client.post(f"/RentalOrders/{oid}/complete", json={
        "actualEndDate": "2099-01-01T10:00:00", "returnLocation": "Da Nang",
    }))
    assert done["status"] == "Completed"
    assert done["returnLocation"] == "Da Nang"

    history = _ok(client.get(f"/RentalOrders/{oid}/status-history"))
    assert [h["newStatus"] for h in history] == ["Completed", "InProgress", "Confirmed", "Draft"]

    invoice = _ok(client.post("/Invoices/from-rental", json={
        "rentalOrderId": oid, "invoiceDate": "2030-06-05", "dueDate": "2030-06-12", "taxRate": 10,
    }), 201)
    assert invoice["taxAmount"] == "135000.00"
    assert invoice["totalAmount"] == "1485000.00"
    assert len(invoice["invoiceDetails"]) == 1
    assert _ok(client.get(f"/RentalOrders/{oid}"))["status"] == "Invoiced"

    paid = _ok(client.post("/Payments", json={
        "invoiceId": invoice["id"], "amount": "700000", "paymentMethod": "Cash",
    }), 201)
    assert paid["invoice"]["status"] == "Partial"
    assert paid["invoice"]["remainingAmount"] == "785000.00"

    resp = client.post("/Payments", json={
        "invoiceId": invoice["id"], "amount": "785000.01", "paymentMethod": "Cash",
    })
    assert resp.status_code == 409
    assert resp.get_json()["code"] == "OverpaymentNotAllowed"

    paid = _ok(client.post("/Payments", json={
        "invoiceId": invoice["id"], "amount": "785000", "paymentMethod": "BankTransfer",
        "bankAccount": "0071000123456", "transactionCode": "FT2030060600001",
    }), 201)
    assert paid["invoice"]["status"] == "Paid"
    assert paid["invoice"]["remainingAmount"] == "0.00"

    payments = _ok(client.get(f"/Invoices/{invoice['id']}/payments"))
    assert [p["amount"] for p in payments] == ["785000.00", "700000.00"]
    assert _ok(client.get(f"/Payments/{payments[0]['id']}"))["transactionCode"] == "FT2030060600001"


def test_explicit_bad_promotion_rejects_order(client, app_store, app_ids):
    app_store.create_promotion({
        "type": "FixedAmount", "code": "BIG", "name": "BIG", "value": Decimal("200000"),
        "min_amount": Decimal("2000000"), "start_date": date(2030, 1, 1), "end_date": date(2030, 12, 31),
    })
    resp = client.post("/RentalOrders", json=_order_body(app_ids, promotionCode="BIG"))
    assert resp.status_code == 400
    assert resp.get_json()["code"] == "BelowMinimumAmount"

    order = _ok(client.post("/RentalOrders", json=_order_body(app_ids)), 201)
    assert order["discountAmount"] == "0.00"
    assert order["totalAmount"] == "1500000.00"


def test_update_delete_and_list(client, app_ids):
    oid = _ok(client.post("/RentalOrders", json=_order_body(app_ids)), 201)["id"]
    updated = _ok(client.put(f"/RentalOrders/{oid}", json={"endDate": "2030-06-06", "notes": "Two more days"}))
    assert updated["totalDays"] == 5
    assert updated["notes"] == "Two more days"

    other = _ok(client.post("/RentalOrders", json=_order_body(app_ids)), 201)["id"]
    listing = _ok(client.get("/RentalOrders?status=Draft&pageSize=1"))
    assert listing["totalCount"] == 2
    assert len(listing["items"]) == 1

    _ok(client.delete(f"/RentalOrders/{other}"))
    assert client.get(f"/RentalOrders/{other}").status_code == 404
    assert _ok(client.get("/RentalOrders"))["totalCount"] == 1


def test_invalid_transition_is_409(client, app_ids):
    oid = _ok(client.post("/RentalOrders", json=_order_body(app_ids)), 201)["id"]
    resp = client.post(f"/RentalOrders/{oid}/complete")
    assert resp.status_code == 409
    body = resp.get_json()
    assert body["success"] is False
    assert body["code"] == "InvalidTransition"


def test_invoice_edit_and_cancel_endpoints(client, app_ids):
    oid = _ok(client.post("/RentalOrders", json=_order_body(app_ids)), 201)["id"]
    for step in ("confirm", "start", "complete"):
        _ok(client.post(f"/RentalOrders/{oid}/{step}"))
    invoice = _ok(client.post(f"/RentalOrders/{oid}/create-invoice", json={"taxRate": "10"}), 201)
    assert client.post(f"/RentalOrders/{oid}/create-invoice").status_code == 409

    edited = _ok(client.put(f"/Invoices/{invoice['id']}", json={"discountAmount": "100000", "notes": "Loyalty"}))
    assert edited["totalAmount"] == "1540000.00"
    assert edited["notes"] == "Loyalty"

    cancelled = _ok(client.post(f"/Invoices/{invoice['id']}/cancel", json={"reason": "Wrong customer"}))
    assert cancelled["status"] == "Cancelled"
    resp = client.post("/Payments", json={"invoiceId": invoice["id"], "amount": "1000", "paymentMethod": "Cash"})
    assert resp.status_code == 409
    assert resp.get_json()["code"] == "InvoiceClosed"


def test_amount_beyond_cents_range_is_400_and_nothing_is_stored(client, app_ids):
    for deposit in ("1e30", 1e30):
        resp = client.post("/RentalOrders", json=_order_body(app_ids, depositAmount=deposit))
        assert resp.status_code == 400
        assert "depositAmount" in resp.get_json()["errors"]
    assert _ok(client.get("/RentalOrders"))["totalCount"] == 0
