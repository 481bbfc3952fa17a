from datetime import date, timedelta
import logging

from rentals.jobs import billing_jobs
from rentals.jobs.scheduler import get_job_status, run_job, scheduler, shutdown_scheduler, start_scheduler


async def test_health_and_root(client):
    response = await client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["checks"] == {"database": "connected", "scheduler": "stopped"}
    assert body["data"]["jobs"] == []

    response = await client.get("/")
    assert response.json()["data"]["docs"] == "/docs"


async def test_unknown_route_uses_envelope(client, staff_headers):
    response = await client.get("/api/v1/nothing-here", headers=staff_headers)
    assert response.status_code == 404
    assert response.json()["success"] is False


async def test_validation_errors_name_the_field(client, staff_headers):
    response = await client.post("/api/v1/tenants", json={"first_name": "Ann"}, headers=staff_headers)

    assert response.status_code == 422
    body = response.json()
    assert body["message"] == "Validation failed"
    assert any(error.startswith("email:") for error in body["errors"])


async def test_monthly_generation_job(tenant):
    result = await billing_jobs.generate_monthly_invoices_job(date.today())
    assert result["invoices_created"] == 1
    assert result["billing_period"] == date.today().replace(day=1).isoformat()

    result = await billing_jobs.generate_monthly_invoices_job(date.today())
    assert result["invoices_created"] == 0


async def test_overdue_and_reminder_jobs(client, staff_headers, tenant):
    for due_in in (-3, 1):
        await client.post(
            "/api/v1/invoices",
            json={
                "tenant_id": str(tenant.id),
                "billing_period": date.today().replace(day=1).isoformat(),
                "due_date": (date.today() + timedelta(days=due_in)).isoformat(),
            },
            headers=staff_headers,
        )

    assert (await billing_jobs.mark_overdue_invoices_job())["marked_overdue"] == 1
    assert (await billing_jobs.payment_reminders_job())["reminders_sent"] == 1


async def test_failed_job_is_logged(monkeypatch, caplog):
    async def broken():
        raise RuntimeError("boom")

    monkeypatch.setattr(billing_jobs, "mark_overdue_invoices_job", broken)

    with caplog.at_level(logging.ERROR):
        await run_job("mark_overdue_invoices_job")

    assert "Job 'mark_overdue_invoices_job' failed: boom" in caplog.text


async def test_scheduler_registers_billing_jobs():
    start_scheduler()
    try:
        assert scheduler.running
        assert {job["id"] for job in get_job_status()} == {
            "generate_monthly_invoices",
            "mark_overdue_invoices",
            "payment_reminders",
        }
    finally:
        scheduler.remove_all_jobs()
        shutdown_scheduler()
