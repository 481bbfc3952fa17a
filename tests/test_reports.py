from datetime import date, timedelta


TODAY = date.today()


async def overdue_invoice(client, headers, tenant_id, days_late=40):
    response = await client.post(
        "/api/v1/invoices",
        json={
            "tenant_id": str(tenant_id),
            "billing_period": TODAY.replace(day=1).isoformat(),
            "due_date": (TODAY - timedelta(days=days_late)).isoformat(),
        },
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()["data"]


async def pay(client, headers, invoice_id, amount, method="CASH"):
    response = await client.post(
        "/api/v1/payments",
        json={"invoice_id": invoice_id, "amount": amount, "method": method, "payment_date": TODAY.isoformat()},
        headers=headers,
    )
    assert response.status_code == 201


async def test_reports_require_manager(client, staff_headers):
    response = await client.get("/api/v1/reports/dashboard-summary", headers=staff_headers)
    assert response.status_code == 403


async def test_outstanding_payments_aging(client, staff_headers, manager_headers, tenant, invoice):
    late = await overdue_invoice(client, staff_headers, tenant.id)
    await pay(client, staff_headers, invoice["id"], "200")

    response = await client.get("/api/v1/reports/outstanding-payments", headers=manager_headers)
    report = response.json()["data"]

    assert report["summary"] == {
        "total_outstanding_amount": 2000.0,
        "total_overdue_amount": 1000.0,
        "total_upcoming_amount": 1000.0,
        "overdue_count": 1,
        "upcoming_count": 1,
    }
    assert report["overdue_invoices"][0]["invoice_number"] == late["invoice_number"]
    assert report["overdue_invoices"][0]["days_overdue"] == 40
    assert report["upcoming_invoices"][0]["days_until_due"] == 15
    assert report["aging"] == {"0-30": 0, "31-60": 1, "61-90": 0, "90+": 0}


async def test_financial_summary(client, staff_headers, manager_headers, tenant, invoice):
    await overdue_invoice(client, staff_headers, tenant.id)
    await pay(client, staff_headers, invoice["id"], "200")

    params = {"from_date": (TODAY - timedelta(days=1)).isoformat(), "to_date": TODAY.isoformat()}
    response = await client.get("/api/v1/reports/financial-summary", params=params, headers=manager_headers)
    summary = response.json()["data"]
    assert summary["total_billed"] == 2200.0
    assert summary["total_collected"] == 200.0
    assert summary["total_outstanding"] == 2000.0
    assert summary["collection_rate"] == 9.09
    assert summary["monthly_breakdown"][0]["period"] == f"{TODAY:%Y-%m}"

    reversed_range = {"from_date": params["to_date"], "to_date": params["from_date"]}
    response = await client.get("/api/v1/reports/financial-summary", params=reversed_range, headers=manager_headers)
    assert response.status_code == 400

    response = await client.get("/api/v1/reports/financial-summary", headers=manager_headers)
    assert response.status_code == 422


async def test_monthly_revenue(client, staff_headers, manager_headers, invoice):
    await pay(client, staff_headers, invoice["id"], "300")

    response = await client.get(f"/api/v1/reports/monthly-revenue/{TODAY.year}", headers=manager_headers)
    report = response.json()["data"]
    month = report["monthly_breakdown"][TODAY.month - 1]
    assert month["billed"] == 1200.0
    assert month["collected"] == 300.0
    assert month["outstanding"] == 900.0
    assert report["highest_revenue_month"] == month["month_name"]
    assert report["average_monthly_revenue"] == 25.0

    response = await client.get("/api/v1/reports/monthly-revenue/1999", headers=manager_headers)
    assert response.status_code == 400


async def test_dashboard_summary(client, staff_headers, manager_headers, tenant, invoice):
    await overdue_invoice(client, staff_headers, tenant.id)
    await pay(client, staff_headers, invoice["id"], "200")

    response = await client.get("/api/v1/reports/dashboard-summary", headers=manager_headers)
    dashboard = response.json()["data"]
    assert dashboard["occupancy"]["occupancy_rate"] == 100.0
    assert dashboard["tenants"] == {"total_active": 1, "unassigned": 0}
    assert dashboard["financials"]["collected_this_month"] == 200.0
    assert dashboard["financials"]["overdue_invoices"] == 1
    assert dashboard["financials"]["overdue_amount"] == 1000.0
    assert dashboard["alerts"] == [{"type": "warning", "message": "1 overdue invoice(s)"}]


async def test_occupancy_and_utilization(client, manager_headers, tenant):
    await client.post(
        "/api/v1/rooms",
        json={"room_number": "301", "type": "SUITE", "monthly_rent": "3000", "floor": 3},
        headers=manager_headers,
    )

    response = await client.get("/api/v1/reports/occupancy", headers=manager_headers)
    occupancy = response.json()["data"]
    assert occupancy["total_rooms"] == 2
    assert occupancy["current_occupancy_rate"] == 50.0
    assert occupancy["monthly_occupancy"][-1] == {
        "period": f"{TODAY:%Y-%m}",
        "occupied_rooms": 1,
        "occupancy_rate": 50.0,
    }

    response = await client.get("/api/v1/reports/room-utilization", headers=manager_headers)
    utilization = response.json()["data"]
    assert utilization["current_monthly_revenue"] == 1000.0
    assert utilization["potential_monthly_revenue"] == 4000.0
    assert utilization["revenue_efficiency"] == 25.0
    assert [row["key"] for row in utilization["by_floor"]] == [1, 3]

    response = await client.get(
        "/api/v1/reports/occupancy",
        params={"from_date": TODAY.isoformat(), "to_date": (TODAY - timedelta(days=1)).isoformat()},
        headers=manager_headers,
    )
    assert response.status_code == 400


async def test_tenant_statistics_and_methods(client, staff_headers, manager_headers, invoice):
    await pay(client, staff_headers, invoice["id"], "100", method="CASH")
    await pay(client, staff_headers, invoice["id"], "300", method="BANK_TRANSFER")

    response = await client.get("/api/v1/reports/tenant-statistics", headers=manager_headers)
    stats = response.json()["data"]
    assert stats["active_tenants"] == 1
    assert stats["assignment_rate"] == 100.0
    assert stats["average_stay_days"] == 30.0

    response = await client.get("/api/v1/reports/payment-method-distribution", headers=manager_headers)
    distribution = response.json()["data"]
    assert distribution["total_amount"] == 400.0
    assert [row["method"] for row in distribution["distribution"]] == ["BANK_TRANSFER", "CASH"]
    assert distribution["distribution"][0]["percentage"] == 75.0


async def test_csv_export(client, manager_headers, invoice):
    response = await client.get("/api/v1/reports/export/invoices", headers=manager_headers)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert f'invoices_{TODAY:%Y%m%d}.csv' in response.headers["content-disposition"]
    lines = response.text.strip().split("\n")
    assert lines[0].startswith("Id,InvoiceNumber,TenantName")
    assert len(lines) == 2
    assert invoice["invoice_number"] in lines[1]
    assert "Jane Doe" in lines[1]

    response = await client.get("/api/v1/reports/export/ROOMS", headers=manager_headers)
    lines = response.text.strip().split("\n")
    assert lines[1].split(",")[1] == "101"
    assert lines[1].split(",")[6] == "Jane Doe"

    response = await client.get("/api/v1/reports/export/leases", headers=manager_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Unknown report type: leases"
