"""Properties, journal, sales, EMIs, documents and reports over HTTP."""

from datetime import date
from decimal import Decimal

import pytest

API = "/api/v1"
PDF = ("receipt.pdf", b"%PDF-1.4 test", "application/pdf")


def amount(value):
    return Decimal(str(value))


@pytest.fixture
def prop(make_property):
    return make_property(rate="2000000", gst="0", paid="500000")


def post_payment(client, headers, property_id, value, **extra):
    payload = {
        "property_id": property_id,
        "amount": value,
        "payment_date": date.today().isoformat(),
        "payment_mode": "UPI",
    }
    payload.update(extra)
    return client.post(f"{API}/transactions", json=payload, headers=headers)


def sell(client, headers, prop, buyer, received="0", files=None, **extra):
    form = {
        "property_id": str(prop.id),
        "customer_id": str(buyer.id),
        "sale_date": date.today().isoformat(),
        "sale_rate": "2500000",
        "gst_percentage": "5",
        "received_amount": received,
    }
    form.update(extra)
    return client.post(f"{API}/sell-properties", data=form, files=files, headers=headers)


def test_not_found_uses_the_envelope(client, admin_headers):
    response = client.get(f"{API}/properties/999", headers=admin_headers)
    assert response.status_code == 404
    assert response.json() == {"status": False, "message": "Property not found"}


def test_create_customer_and_property(client, admin_headers):
    customer = client.post(
        f"{API}/customers",
        json={"name": "Suresh Patel", "phone": "9000000001", "type": "SELLER", "pan_number": "abcde1234f"},
        headers=admin_headers,
    )
    assert customer.status_code == 201
    assert customer.json()["data"]["pan_number"] == "ABCDE1234F"

    response = client.post(
        f"{API}/properties",
        json={
            "date": date.today().isoformat(),
            "title": "Plot 7, Lake View",
            "category": "LAND",
            "seller_id": customer.json()["data"]["id"],
            "rate": "1000000",
            "gst_percentage": "5",
            "paid_amount": "250000",
            "period_years": 1,
            "amount_per_month": "50000",
        },
        headers=admin_headers,
    )
    assert response.status_code == 201
    data = response.json()["data"]
    assert amount(data["total_amount"]) == Decimal("1050000")
    assert amount(data["due_amount"]) == Decimal("800000")
    assert data["status"] == "AVAILABLE"
    assert data["seller_name"] == "Suresh Patel"
    assert len(data["emis"]) == 12


def test_payment_returns_the_new_balances(client, admin_headers, prop):
    response = post_payment(client, admin_headers, prop.id, "300000")
    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Transaction recorded successfully"
    assert body["data"]["transaction"]["type"] == "DEBIT"
    balances = body["data"]["balances"]
    assert balances["ledger"] == "PROPERTY"
    assert amount(balances["paid"]) == Decimal("800000")
    assert amount(balances["due"]) == Decimal("1200000")


def test_overpayment_is_rejected_with_the_envelope(client, admin_headers, prop):
    response = post_payment(client, admin_headers, prop.id, "1500000.02")
    assert response.status_code == 400
    body = response.json()
    assert body["status"] is False
    assert "exceeds due amount" in body["message"]


def test_invalid_amount_is_a_validation_error(client, admin_headers, prop):
    response = post_payment(client, admin_headers, prop.id, "-5")
    assert response.status_code == 422


def test_delete_and_restore_payment(client, admin_headers, prop):
    created = post_payment(client, admin_headers, prop.id, "300000").json()["data"]
    transaction_id = created["transaction"]["id"]

    deleted = client.delete(f"{API}/transactions/{transaction_id}", headers=admin_headers)
    assert deleted.status_code == 200
    assert amount(deleted.json()["data"]["balances"]["due"]) == Decimal("1500000")
    assert client.get(f"{API}/transactions/{transaction_id}", headers=admin_headers).status_code == 404

    trash = client.get(f"{API}/transactions/trash", headers=admin_headers).json()["data"]
    assert [t["id"] for t in trash] == [transaction_id]

    restored = client.post(f"{API}/transactions/{transaction_id}/restore", headers=admin_headers)
    assert restored.status_code == 200
    assert amount(restored.json()["data"]["balances"]["due"]) == Decimal("1200000")


def test_property_journal_listing(client, admin_headers, prop):
    post_payment(client, admin_headers, prop.id, "100000")

    response = client.get(f"{API}/transactions", params={"property_id": prop.id}, headers=admin_headers)
    assert response.status_code == 200
    body = response.json()
    assert len(body["data"]) == 2
    assert body["property"]["id"] == prop.id
    assert body["data"][0]["party_name"] == "Suresh Patel"


def test_journal_filters_and_totals(client, admin_headers, prop, buyer):
    post_payment(client, admin_headers, prop.id, "100000", remarks="Stamp duty")
    sell(client, admin_headers, prop, buyer, received="1000000")

    everything = client.get(f"{API}/transactions/all", headers=admin_headers).json()
    assert everything["pagination"]["total"] == 3
    assert amount(everything["summary"]["total_credit"]) == Decimal("1000000")
    assert amount(everything["summary"]["total_debit"]) == Decimal("600000")

    credits = client.get(f"{API}/transactions/sell", headers=admin_headers).json()
    assert [t["type"] for t in credits["data"]] == ["CREDIT"]
    assert credits["data"][0]["party_name"] == "Anita Sharma"

    debits = client.get(f"{API}/transactions/all", params={"type": "DEBIT", "min_amount": "200000"},
                        headers=admin_headers).json()
    assert [amount(t["amount"]) for t in debits["data"]] == [Decimal("500000")]


def test_sale_with_receipt(client, admin_headers, prop, buyer, upload_dir):
    response = sell(client, admin_headers, prop, buyer, received="2625000", files={"payment_receipt": PDF})
    assert response.status_code == 201
    data = response.json()["data"]
    assert amount(data["total_sale_amount"]) == Decimal("2625000")
    assert amount(data["pending_amount"]) == Decimal("0")
    assert data["property_status"] == "SOLD"
    assert data["buyer_name"] == "Anita Sharma"
    assert data["payment_receipt"].startswith("sale_receipts")
    assert (upload_dir / data["payment_receipt"]).exists()
    assert len(data["transactions"]) == 1
    assert data["transactions"][0]["payment_receipt"] == data["payment_receipt"]

    again = sell(client, admin_headers, prop, buyer)
    assert again.status_code == 400


def test_sale_form_is_validated(client, admin_headers, prop, buyer):
    response = sell(client, admin_headers, prop, buyer, received="-1")
    assert response.status_code == 422


def test_cancel_sale_over_http(client, admin_headers, prop, buyer):
    sale_id = sell(client, admin_headers, prop, buyer, received="100000").json()["data"]["id"]

    response = client.delete(f"{API}/sell-properties/{sale_id}", headers=admin_headers)
    assert response.status_code == 200
    detail = client.get(f"{API}/properties/{prop.id}", headers=admin_headers).json()["data"]
    assert detail["status"] == "AVAILABLE"
    assert detail["buyer_id"] is None


def test_sell_emi_payment_over_http(client, admin_headers, prop, buyer):
    sale = sell(client, admin_headers, prop, buyer, period_years="1", amount_per_month="200000").json()["data"]
    assert len(sale["sell_emis"]) == 12
    emi_id = sale["sell_emis"][0]["id"]

    response = client.post(
        f"{API}/sell-emis/{emi_id}/pay",
        data={"paid_amount": "200000", "payment_mode": "ONLINE", "transaction_no": "UTR42"},
        files={"payment_receipt": PDF},
        headers=admin_headers,
    )
    assert response.status_code == 200, response.text
    data = response.json()["data"]
    assert data["emi"]["status"] == "PAID"
    assert data["transaction"]["type"] == "CREDIT"
    assert data["balances"]["ledger"] == "SALE"
    assert amount(data["balances"]["paid"]) == Decimal("200000")

    again = client.post(f"{API}/sell-emis/{emi_id}/pay", data={"paid_amount": "1"}, headers=admin_headers)
    assert again.status_code == 400

    reversed_ = client.post(f"{API}/sell-emis/{emi_id}/unpay", headers=admin_headers)
    assert reversed_.status_code == 200
    assert reversed_.json()["data"]["status"] == "PENDING"


def test_vendor_emi_listing_and_payment(client, admin_headers, make_property):
    prop = make_property(rate="1000000", gst="0", paid="400000", period_years=1, amount_per_month="50000")

    listed = client.get(f"{API}/emis", params={"property_id": prop.id}, headers=admin_headers).json()["data"]
    assert len(listed) == 12

    response = client.post(f"{API}/emis/{listed[0]['id']}/pay", data={"paid_amount": "50000"}, headers=admin_headers)
    assert response.status_code == 200
    assert amount(response.json()["data"]["balances"]["due"]) == Decimal("550000")

    paid = client.get(f"{API}/emis", params={"property_id": prop.id, "status": "PAID"}, headers=admin_headers)
    assert [e["id"] for e in paid.json()["data"]] == [listed[0]["id"]]


def test_document_lifecycle(client, admin_headers, prop, upload_dir):
    response = client.post(
        f"{API}/property-docs",
        data={"property_id": str(prop.id), "doc_name": "Sale deed"},
        files={"doc_file": ("deed.pdf", b"%PDF-1.4 deed", "application/pdf")},
        headers=admin_headers,
    )
    assert response.status_code == 201
    document = response.json()["data"]
    stored = upload_dir / document["doc_file"]
    assert stored.exists()

    forced = client.delete(f"{API}/property-docs/{document['id']}/force", headers=admin_headers)
    assert forced.status_code == 400

    assert client.delete(f"{API}/property-docs/{document['id']}", headers=admin_headers).status_code == 200
    assert client.get(f"{API}/property-docs", params={"property_id": prop.id}, headers=admin_headers).json()["data"] == []
    assert stored.exists()

    assert client.delete(f"{API}/property-docs/{document['id']}/force", headers=admin_headers).status_code == 200
    assert not stored.exists()


def test_disallowed_upload_type(client, admin_headers, prop):
    response = client.post(
        f"{API}/property-docs",
        data={"property_id": str(prop.id), "doc_name": "Script"},
        files={"doc_file": ("run.exe", b"MZ", "application/octet-stream")},
        headers=admin_headers,
    )
    assert response.status_code == 422
    assert "not allowed" in response.json()["message"]


def test_property_force_delete_requires_trash(client, admin_headers, prop, upload_dir):
    client.post(
        f"{API}/property-docs",
        data={"property_id": str(prop.id), "doc_name": "Map"},
        files={"doc_file": ("map.png", b"\x89PNG", "image/png")},
        headers=admin_headers,
    )

    assert client.delete(f"{API}/properties/{prop.id}/force", headers=admin_headers).status_code == 400
    assert client.delete(f"{API}/properties/{prop.id}", headers=admin_headers).status_code == 200
    trash = client.get(f"{API}/properties/trash", headers=admin_headers).json()["data"]
    assert [p["id"] for p in trash] == [prop.id]

    response = client.delete(f"{API}/properties/{prop.id}/force", headers=admin_headers)
    assert response.status_code == 200
    assert list(upload_dir.rglob("*.png")) == []
    assert client.get(f"{API}/properties/trash", headers=admin_headers).json()["data"] == []


def test_dashboard_figures(client, admin_headers, prop, buyer):
    sell(client, admin_headers, prop, buyer, received="1000000")

    response = client.get(f"{API}/dashboard", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()["data"]

    assert amount(data["cash_book"]["total_received"]) == Decimal("1000000")
    assert amount(data["cash_book"]["total_paid"]) == Decimal("500000")
    assert amount(data["cash_book"]["cash_in_hand"]) == Decimal("500000")
    assert data["cash_book"]["status"] == "POSITIVE"
    assert data["inventory"] == {"total_units": 1, "sold_units": 1, "unsold_units": 0}
    assert amount(data["profitability"]["gross_profit"]) == Decimal("625000")
    assert amount(data["profitability"]["profit_margin"]) == Decimal("31.25")
    assert amount(data["outstanding"]["receivables"]) == Decimal("1625000")
    assert amount(data["outstanding"]["payables"]) == Decimal("1500000")
    assert data["recent_activity"]["sales"][0]["party"] == "Anita Sharma"


def test_dues_report_totals(client, admin_headers, prop, buyer):
    sell(client, admin_headers, prop, buyer, received="1000000")

    body = client.get(f"{API}/reports/dues", headers=admin_headers).json()
    assert amount(body["total_recoverable"]) == Decimal("1625000")
    assert body["data"][0]["buyer"] == "Anita Sharma"


def test_daybook_export_is_a_workbook(client, admin_headers, prop):
    response = client.get(f"{API}/reports/daybook/export", headers=admin_headers)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )
    assert "attachment" in response.headers["content-disposition"]
    assert response.content[:2] == b"PK"


def test_audit_logs_are_super_admin_only(client, admin_headers, prop):
    response = client.get(f"{API}/reports/audit-logs", headers=admin_headers)
    assert response.status_code == 200
    actions = [log["action"] for log in response.json()["data"]]
    assert "LOGIN" in actions
