"""
Paged invoice and payment lists, and promotion code checks over HTTP.
"""

from datetime import date

import pytest

from conftest import Flow


def _data(resp, status=200):
    body = resp.get_json()
    assert resp.status_code == status, body
    return body["data"]


@pytest.fixture
def billed(app_store, app_ids):
    """
    Two invoices: one long past due with a partial payment, one settled
    in full with a bank transfer.
    """
    flow = Flow(app_store, app_ids)
    late = flow.invoice(flow.completed(), invoice_date=date(2020, 1, 1), due_date=date(2020, 1, 8))
    flow.pay(late, "500000")
    settled = flow.invoice(flow.completed("SAVE10"))
    flow.pay(settled, "1485000", method="BankTransfer")
    return late, settled


def test_invoice_list_filters_on_derived_overdue(client, billed):
    late, settled = billed
    listing = _data(client.get("/Invoices"))
    assert listing["totalCount"] == 2
    assert [i["id"] for i in listing["items"]] == [settled, late]

    overdue = _data(client.get("/Invoices?status=Overdue"))
    assert [i["id"] for i in overdue["items"]] == [late]
    assert overdue["items"][0]["status"] == "Overdue"
    assert _data(client.get("/Invoices?status=Partial"))["totalCount"] == 0
    assert _data(client.get("/Invoices?status=Paid"))["items"][0]["id"] == settled


def test_invoice_list_search_sort_and_paging(client, billed):
    late, settled = billed
    assert [i["id"] for i in _data(client.get("/Invoices?search=hd2020"))["items"]] == [late]
    assert _data(client.get("/Invoices?search=cuong"))["totalCount"] == 2

    page = _data(client.get("/Invoices?sortBy=invoiceDate&pageSize=1&page=2"))
    assert page["totalCount"] == 2
    assert page["page"] == 2
    assert [i["id"] for i in page["items"]] == [settled]


def test_invoice_list_rejects_unknown_status(client):
    resp = client.get("/Invoices?status=Lost")
    assert resp.status_code == 400
    assert "status" in resp.get_json()["errors"]


def test_payment_list_filters(client, billed):
    late, settled = billed
    assert _data(client.get("/Payments"))["totalCount"] == 2

    by_invoice = _data(client.get(f"/Payments?invoiceId={late}"))
    assert [p["amount"] for p in by_invoice["items"]] == ["500000.00"]
    by_method = _data(client.get("/Payments?paymentMethod=BankTransfer"))
    assert [p["invoiceId"] for p in by_method["items"]] == [settled]

    by_amount = _data(client.get("/Payments?sortBy=amount&desc=true"))
    assert [p["amount"] for p in by_amount["items"]] == ["1485000.00", "500000.00"]
    assert client.get("/Payments?paymentMethod=Cheque").status_code == 400


def test_validate_promotion_code(client, app_store, app_ids):
    check = _data(client.post("/Promotions/validate", json={
        "promotionCode": "SAVE10", "subTotal": "1500000", "startDate": "2030-06-01",
    }))
    assert check["isValid"] is True
    assert check["discountAmount"] == "150000.00"
    assert check["promotion"]["code"] == "SAVE10"

    expired = _data(client.post("/Promotions/validate", json={
        "promotionCode": "SAVE10", "subTotal": "1500000", "startDate": "2031-01-01",
    }))
    assert expired["isValid"] is False
    assert expired["reason"] == "Expired"
    assert expired["discountAmount"] == "0.00"

    unknown = _data(client.post("/Promotions/validate", json={"promotionCode": "NOPE", "subTotal": "1"}))
    assert unknown["reason"] == "NotFound"
    assert unknown["promotion"] is None

    with app_store.reading() as uow:
        assert uow.get("promotions", app_ids.promotion_id).used_count == 0


def test_validate_promotion_requires_code_and_subtotal(client):
    resp = client.post("/Promotions/validate", json={"subTotal": "-1"})
    assert resp.status_code == 400
    assert set(resp.get_json()["errors"]) == {"promotionCode", "subTotal"}
