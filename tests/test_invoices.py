from datetime import date, timedelta
from decimal import Decimal

from rentals.models.item import Item
from rentals.models.tenant import Tenant
from rentals.models.room import Room
from rentals.services.invoice_service import InvoiceService


def month_start(offset_days: int = 0) -> str:
    return (date.today() + timedelta(days=offset_days)).replace(day=1).isoformat()


async def create_invoice(client, headers, tenant_id, due_in_days=15, **extra):
    payload = {
        "tenant_id": str(tenant_id),
        "billing_period": month_start(),
        "due_date": (date.today() + timedelta(days=due_in_days)).isoformat(),
        **extra,
    }
    return await client.post("/api/v1/invoices", json=payload, headers=headers)


async def test_invoice_number_and_totals(client, staff_headers, invoice):
    assert invoice["invoice_number"] == f"INV-{date.today():%Y%m}-0001"
    assert invoice["monthly_rent"] == 1000.0
    assert invoice["additional_charges"] == 200.0
    assert invoice["remaining_balance"] == 1200.0
    assert invoice["tenant_name"] == "Jane Doe"
    assert invoice["room_number"] == "101"
    assert invoice["billing_period"] == month_start()

    response = await create_invoice(client, staff_headers, invoice["tenant_id"], discount="50")
    second = response.json()["data"]
    assert second["invoice_number"] == f"INV-{date.today():%Y%m}-0002"
    assert second["total_amount"] == 950.0


async def test_invoice_lines_add_to_charges(client, staff_headers, db, tenant):
    water = Item(item_code="WATER", name="Water", unit_of_measure="m3", unit_price=Decimal("2.50"), tax_percent=Decimal("10"))
    db.add(water)
    await db.commit()

    response = await create_invoice(
        client,
        staff_headers,
        tenant.id,
        additional_charges="0",
        items=[
            {"item_id": str(water.id), "quantity": "4"},
            {"description": "Parking", "unit_price": "30"},
        ],
    )
    assert response.status_code == 201
    data = response.json()["data"]

    assert [line["line_number"] for line in data["items"]] == [1, 2]
    assert data["items"][0]["description"] == "Water"
    assert data["items"][0]["line_total"] == 10.0
    assert data["items"][0]["tax_amount"] == 1.0
    assert data["additional_charges"] == 41.0
    assert data["total_amount"] == 1041.0


async def test_invoice_requires_room(client, staff_headers, db):
    drifter = Tenant(first_name="No", last_name="Room", email="noroom@example.com", phone_number="0900000002")
    db.add(drifter)
    await db.commit()

    response = await create_invoice(client, staff_headers, drifter.id)

    assert response.status_code == 400
    assert response.json()["message"] == "Tenant is not assigned to any room"


async def test_generate_monthly_skips_existing(client, manager_headers, staff_headers, db, tenant):
    other_room = Room(room_number="102", type="DOUBLE", monthly_rent=Decimal("1500.00"), floor=1, status="RENTED")
    db.add(other_room)
    await db.flush()
    db.add(Tenant(
        first_name="Bob",
        last_name="Smith",
        email="bob@example.com",
        phone_number="0900000003",
        room_id=other_room.id,
        monthly_rent=Decimal("1500.00"),
    ))
    await db.commit()

    period = {"billing_period": month_start()}
    response = await client.post("/api/v1/invoices/generate-monthly", json=period, headers=manager_headers)
    assert response.status_code == 200
    created = response.json()["data"]
    assert len(created) == 2
    assert {i["monthly_rent"] for i in created} == {1000.0, 1500.0}
    assert all(i["notes"] == f"Monthly rent for {date.today():%B %Y}" for i in created)
    assert all(i["due_date"] == (date.today() + timedelta(days=15)).isoformat() for i in created)

    response = await client.post("/api/v1/invoices/generate-monthly", json=period, headers=manager_headers)
    assert response.json()["data"] == []

    response = await client.post("/api/v1/invoices/generate-monthly", json=period, headers=staff_headers)
    assert response.status_code == 403


async def test_mark_paid_settles_balance(client, staff_headers, invoice):
    response = await client.post(
        f"/api/v1/invoices/{invoice['id']}/mark-paid",
        params={"method": "BANK_TRANSFER"},
        headers=staff_headers,
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "PAID"
    assert data["remaining_balance"] == 0.0
    assert data["paid_date"] == date.today().isoformat()

    payments = (await client.get(f"/api/v1/payments/invoice/{invoice['id']}", headers=staff_headers)).json()["data"]
    assert len(payments) == 1
    assert payments[0]["amount"] == 1200.0
    assert payments[0]["method"] == "BANK_TRANSFER"

    response = await client.post(f"/api/v1/invoices/{invoice['id']}/mark-paid", headers=staff_headers)
    assert response.status_code == 400


async def test_update_rules(client, staff_headers, invoice):
    response = await client.put(
        f"/api/v1/invoices/{invoice['id']}",
        json={"discount": "100", "notes": "Loyalty discount"},
        headers=staff_headers,
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total_amount"] == 1100.0
    assert data["remaining_balance"] == 1100.0
    assert data["version"] > invoice["version"]

    response = await client.put(
        f"/api/v1/invoices/{invoice['id']}",
        json={"status": "PAID"},
        headers=staff_headers,
    )
    assert response.status_code == 400

    await client.post(f"/api/v1/invoices/{invoice['id']}/mark-paid", headers=staff_headers)
    response = await client.put(
        f"/api/v1/invoices/{invoice['id']}",
        json={"notes": "too late"},
        headers=staff_headers,
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Cannot update a paid invoice"


async def test_delete_blocked_by_payments(client, staff_headers, admin_headers, invoice):
    await client.post(
        "/api/v1/payments",
        json={"invoice_id": invoice["id"], "amount": "10", "payment_date": date.today().isoformat()},
        headers=staff_headers,
    )

    response = await client.delete(f"/api/v1/invoices/{invoice['id']}", headers=staff_headers)
    assert response.status_code == 403

    response = await client.delete(f"/api/v1/invoices/{invoice['id']}", headers=admin_headers)
    assert response.status_code == 400


async def test_delete_invoice(client, admin_headers, staff_headers, invoice):
    response = await client.delete(f"/api/v1/invoices/{invoice['id']}", headers=admin_headers)
    assert response.status_code == 200

    response = await client.get(f"/api/v1/invoices/{invoice['id']}", headers=staff_headers)
    assert response.status_code == 404
    assert response.json() == {
        "success": False,
        "data": None,
        "message": "Invoice not found",
        "errors": ["Invoice not found"],
    }


async def test_overdue_marking(client, staff_headers, db, tenant):
    late = (await create_invoice(client, staff_headers, tenant.id, due_in_days=-5)).json()["data"]
    await create_invoice(client, staff_headers, tenant.id, due_in_days=10)

    response = await client.get("/api/v1/invoices/overdue", headers=staff_headers)
    assert [i["id"] for i in response.json()["data"]] == [late["id"]]
    assert response.json()["data"][0]["is_overdue"] is True

    assert await InvoiceService(db).mark_overdue_invoices() == 1
    assert await InvoiceService(db).mark_overdue_invoices() == 0

    current = (await client.get(f"/api/v1/invoices/{late['id']}", headers=staff_headers)).json()["data"]
    assert current["status"] == "OVERDUE"
    assert current["version"] == late["version"] + 1

    response = await client.post(
        "/api/v1/payments",
        json={"invoice_id": late["id"], "amount": "100", "payment_date": date.today().isoformat()},
        headers=staff_headers,
    )
    assert response.status_code == 201
    current = (await client.get(f"/api/v1/invoices/{late['id']}", headers=staff_headers)).json()["data"]
    assert current["status"] == "PARTIALLY_PAID"


async def test_reminders_cover_due_soon(client, staff_headers, manager_headers, tenant):
    soon = (await create_invoice(client, staff_headers, tenant.id, due_in_days=2)).json()["data"]
    await create_invoice(client, staff_headers, tenant.id, due_in_days=20)

    response = await client.post("/api/v1/invoices/send-reminders", headers=manager_headers)
    assert response.status_code == 200
    assert response.json()["data"] == {"reminders_sent": 1, "invoice_numbers": [soon["invoice_number"]]}


async def test_filters_and_statistics(client, staff_headers, manager_headers, invoice, tenant):
    await client.post(f"/api/v1/invoices/{invoice['id']}/mark-paid", headers=staff_headers)
    await create_invoice(client, staff_headers, tenant.id)

    response = await client.get("/api/v1/invoices", params={"status": "PAID"}, headers=staff_headers)
    assert response.json()["data"]["total"] == 1

    response = await client.get("/api/v1/invoices", params={"search": "doe"}, headers=staff_headers)
    assert response.json()["data"]["total"] == 2

    response = await client.get(f"/api/v1/invoices/tenant/{tenant.id}", headers=staff_headers)
    assert len(response.json()["data"]) == 2

    response = await client.get("/api/v1/invoices/statistics", headers=manager_headers)
    stats = response.json()["data"]
    assert stats["total_invoices"] == 2
    assert stats["total_billed"] == 2200.0
    assert stats["total_collected"] == 1200.0
    assert stats["total_outstanding"] == 1000.0
    assert stats["invoices_by_status"]["PAID"] == 1
    assert stats["collection_rate"] == 54.55


async def test_pdf_export(client, staff_headers, invoice):
    await client.post(
        "/api/v1/payments",
        json={"invoice_id": invoice["id"], "amount": "200", "payment_date": date.today().isoformat()},
        headers=staff_headers,
    )

    response = await client.get(f"/api/v1/invoices/{invoice['id']}/export-pdf", headers=staff_headers)

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert invoice["invoice_number"] in response.headers["content-disposition"]
    assert response.content.startswith(b"%PDF")


async def test_pdf_export_missing_invoice(client, staff_headers):
    response = await client.get(
        "/api/v1/invoices/00000000-0000-0000-0000-000000000000/export-pdf",
        headers=staff_headers,
    )
    assert response.status_code == 404


async def test_paid_money_pins_status(client, staff_headers, invoice):
    response = await client.post(
        "/api/v1/payments",
        json={"invoice_id": invoice["id"], "amount": "500", "payment_date": date.today().isoformat()},
        headers=staff_headers,
    )
    assert response.status_code == 201

    for manual in ("ISSUED", "DRAFT", "UNPAID", "CANCELLED"):
        response = await client.put(
            f"/api/v1/invoices/{invoice['id']}",
            json={"status": manual},
            headers=staff_headers,
        )
        assert response.status_code == 400, manual

    current = (await client.get(f"/api/v1/invoices/{invoice['id']}", headers=staff_headers)).json()["data"]
    assert current["status"] == "PARTIALLY_PAID"
    assert current["paid_amount"] == 500.0
    assert current["remaining_balance"] == 700.0

    response = await client.put(
        f"/api/v1/invoices/{invoice['id']}",
        json={"status": "OVERDUE"},
        headers=staff_headers,
    )
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "OVERDUE"
