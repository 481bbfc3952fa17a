from datetime import date
from decimal import Decimal
import uuid

import pytest
from sqlalchemy import select
from sqlalchemy.orm.exc import StaleDataError

from rentals.database import async_session_factory
from rentals.models.invoice import Invoice
from rentals.models.payment import PaymentMethod
from rentals.services.payment_service import PaymentService, PaymentError


TODAY = date.today().isoformat()


async def record(client, headers, invoice_id, amount, method="CASH"):
    return await client.post(
        "/api/v1/payments",
        json={"invoice_id": invoice_id, "amount": amount, "method": method, "payment_date": TODAY},
        headers=headers,
    )


async def fetch_invoice(client, headers, invoice_id):
    response = await client.get(f"/api/v1/invoices/{invoice_id}", headers=headers)
    assert response.status_code == 200
    return response.json()["data"]


async def test_partial_then_full_payment(client, staff_headers, invoice):
    assert invoice["total_amount"] == 1200.0
    assert invoice["status"] == "ISSUED"

    response = await record(client, staff_headers, invoice["id"], "500.00")
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["data"]["is_verified"] is False
    assert body["data"]["invoice_number"] == invoice["invoice_number"]

    current = await fetch_invoice(client, staff_headers, invoice["id"])
    assert current["paid_amount"] == 500.0
    assert current["remaining_balance"] == 700.0
    assert current["status"] == "PARTIALLY_PAID"
    assert current["paid_date"] is None

    response = await record(client, staff_headers, invoice["id"], "700.00", method="BANK_TRANSFER")
    assert response.status_code == 201

    current = await fetch_invoice(client, staff_headers, invoice["id"])
    assert current["paid_amount"] == 1200.0
    assert current["remaining_balance"] == 0.0
    assert current["status"] == "PAID"
    assert current["paid_date"] == TODAY


async def test_overpayment_is_rejected(client, staff_headers, invoice):
    response = await record(client, staff_headers, invoice["id"], "1200.01")

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert "exceed" in body["message"]

    current = await fetch_invoice(client, staff_headers, invoice["id"])
    assert current["paid_amount"] == 0.0
    assert current["status"] == "ISSUED"


async def test_payment_for_unknown_invoice(client, staff_headers):
    response = await record(client, staff_headers, "00000000-0000-0000-0000-000000000000", "10.00")
    assert response.status_code == 404


async def test_zero_amount_fails_validation(client, staff_headers, invoice):
    response = await record(client, staff_headers, invoice["id"], "0")

    assert response.status_code == 422
    assert response.json()["success"] is False
    assert response.json()["errors"]


async def test_update_payment_reapplies_difference(client, staff_headers, manager_headers, invoice):
    payment = (await record(client, staff_headers, invoice["id"], "500.00")).json()["data"]

    response = await client.put(
        f"/api/v1/payments/{payment['id']}",
        json={"amount": "1200.00"},
        headers=manager_headers,
    )
    assert response.status_code == 200
    assert response.json()["data"]["amount"] == 1200.0

    current = await fetch_invoice(client, staff_headers, invoice["id"])
    assert current["paid_amount"] == 1200.0
    assert current["status"] == "PAID"

    response = await client.put(
        f"/api/v1/payments/{payment['id']}",
        json={"amount": "1300.00"},
        headers=manager_headers,
    )
    assert response.status_code == 400

    after = await fetch_invoice(client, staff_headers, invoice["id"])
    assert (after["paid_amount"], after["remaining_balance"], after["status"]) == (1200.0, 0.0, "PAID")


async def test_staff_cannot_update_payment(client, staff_headers, invoice):
    payment = (await record(client, staff_headers, invoice["id"], "100.00")).json()["data"]

    response = await client.put(
        f"/api/v1/payments/{payment['id']}",
        json={"amount": "200.00"},
        headers=staff_headers,
    )
    assert response.status_code == 403


async def test_delete_payment_reverses_balance(client, staff_headers, admin_headers, invoice):
    first = (await record(client, staff_headers, invoice["id"], "500.00")).json()["data"]
    second = (await record(client, staff_headers, invoice["id"], "700.00")).json()["data"]

    response = await client.delete(f"/api/v1/payments/{second['id']}", headers=admin_headers)
    assert response.status_code == 200

    current = await fetch_invoice(client, staff_headers, invoice["id"])
    assert current["paid_amount"] == 500.0
    assert current["remaining_balance"] == 700.0
    assert current["status"] == "PARTIALLY_PAID"
    assert current["paid_date"] is None

    response = await client.delete(f"/api/v1/payments/{first['id']}", headers=admin_headers)
    assert response.status_code == 200

    current = await fetch_invoice(client, staff_headers, invoice["id"])
    assert current["paid_amount"] == 0.0
    assert current["status"] == "ISSUED"


async def test_verified_payment_is_immutable(client, staff_headers, manager_headers, admin_headers, invoice):
    payment = (await record(client, staff_headers, invoice["id"], "300.00")).json()["data"]

    response = await client.post(f"/api/v1/payments/{payment['id']}/verify", headers=manager_headers)
    assert response.status_code == 200
    assert response.json()["data"]["is_verified"] is True

    response = await client.put(
        f"/api/v1/payments/{payment['id']}",
        json={"notes": "late"},
        headers=manager_headers,
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Cannot update a verified payment"

    response = await client.delete(f"/api/v1/payments/{payment['id']}", headers=admin_headers)
    assert response.status_code == 400

    after = await fetch_invoice(client, staff_headers, invoice["id"])
    assert (after["paid_amount"], after["remaining_balance"], after["status"]) == (300.0, 900.0, "PARTIALLY_PAID")

    response = await client.post(
        f"/api/v1/payments/{payment['id']}/verify",
        params={"is_verified": "false"},
        headers=manager_headers,
    )
    assert response.json()["data"]["is_verified"] is False

    response = await client.delete(f"/api/v1/payments/{payment['id']}", headers=admin_headers)
    assert response.status_code == 200


async def test_cancelled_invoice_rejects_payment(client, staff_headers, invoice):
    response = await client.put(
        f"/api/v1/invoices/{invoice['id']}",
        json={"status": "CANCELLED"},
        headers=staff_headers,
    )
    assert response.status_code == 200

    response = await record(client, staff_headers, invoice["id"], "100.00")
    assert response.status_code == 400
    assert "cancelled" in response.json()["message"]


async def test_payment_listing_and_filters(client, staff_headers, invoice, tenant):
    await record(client, staff_headers, invoice["id"], "100.00", method="CASH")
    await record(client, staff_headers, invoice["id"], "250.00", method="CREDIT_CARD")

    response = await client.get("/api/v1/payments", params={"method": "CREDIT_CARD"}, headers=staff_headers)
    page = response.json()["data"]
    assert page["total"] == 1
    assert page["items"][0]["amount"] == 250.0
    assert page["items"][0]["tenant_name"] == "Jane Doe"

    response = await client.get(f"/api/v1/payments/invoice/{invoice['id']}", headers=staff_headers)
    assert len(response.json()["data"]) == 2

    response = await client.get(f"/api/v1/payments/tenant/{tenant.id}", headers=staff_headers)
    assert len(response.json()["data"]) == 2

    response = await client.get("/api/v1/payments", params={"min_amount": "200"}, headers=staff_headers)
    assert response.json()["data"]["total"] == 1


async def test_statistics_and_monthly_summary(client, staff_headers, manager_headers, invoice):
    await record(client, staff_headers, invoice["id"], "100.00", method="CASH")
    await record(client, staff_headers, invoice["id"], "300.00", method="CHECK")

    response = await client.get("/api/v1/payments/statistics", headers=manager_headers)
    stats = response.json()["data"]
    assert stats["total_payments"] == 2
    assert stats["total_amount"] == 400.0
    assert stats["unverified_payments"] == 2
    assert stats["this_month_amount"] == 400.0
    assert stats["by_method"][0] == {"method": "CHECK", "count": 1, "amount": 300.0}

    year = date.today().year
    response = await client.get(f"/api/v1/payments/monthly-summary/{year}", headers=manager_headers)
    summary = response.json()["data"]
    assert len(summary["months"]) == 12
    assert summary["months"][date.today().month - 1]["amount"] == 400.0
    assert summary["by_method"] == {"CASH": 100.0, "CHECK": 300.0}

    response = await client.get("/api/v1/payments/statistics", headers=staff_headers)
    assert response.status_code == 403


async def test_service_rejects_non_positive_amount(db, invoice):
    with pytest.raises(PaymentError):
        await PaymentService(db).create_payment(
            invoice_id=uuid.UUID(invoice["id"]),
            amount=Decimal("-5"),
            method=PaymentMethod.CASH,
            payment_date=date.today(),
        )


async def test_stale_invoice_write_is_rejected(invoice):
    invoice_id = uuid.UUID(invoice["id"])

    async with async_session_factory() as first, async_session_factory() as second:
        stale = (await second.execute(select(Invoice).where(Invoice.id == invoice_id))).scalar_one()
        assert stale.version == invoice["version"]

        await PaymentService(first).create_payment(
            invoice_id=invoice_id,
            amount=Decimal("500.00"),
            method=PaymentMethod.CASH,
            payment_date=date.today(),
        )

        # second still believes nothing was paid
        stale.paid_amount = stale.paid_amount + Decimal("900.00")
        stale.remaining_balance = stale.total_amount - stale.paid_amount
        with pytest.raises(StaleDataError):
            await second.flush()
        await second.rollback()

    async with async_session_factory() as check:
        current = (await check.execute(select(Invoice).where(Invoice.id == invoice_id))).scalar_one()
        assert current.paid_amount == Decimal("500.00")
        assert current.remaining_balance == Decimal("700.00")


async def test_concurrent_update_returns_conflict(client, staff_headers, invoice, monkeypatch):
    async def lost_race(self, **kwargs):
        raise StaleDataError("UPDATE statement on table 'invoices' expected to update 1 row(s); 0 were matched.")

    monkeypatch.setattr(PaymentService, "create_payment", lost_race)

    response = await record(client, staff_headers, invoice["id"], "100.00")

    assert response.status_code == 409
    body = response.json()
    assert body["success"] is False
    assert body["data"] is None
    assert body["message"] == "The record was changed by another request; reload and try again"

    monkeypatch.undo()
    current = await fetch_invoice(client, staff_headers, invoice["id"])
    assert current["paid_amount"] == 0.0
