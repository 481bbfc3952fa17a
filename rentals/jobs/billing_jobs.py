"""
Billing jobs run by the scheduler.

- Monthly invoice generation for every active tenant with a room
- Daily overdue marking
- Daily due-soon payment reminders

Each job opens its own session and returns a summary dict.
"""
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

from rentals.database import get_db_session
from rentals.services.invoice_service import InvoiceService

logger = logging.getLogger(__name__)


async def generate_monthly_invoices_job(billing_period: Optional[date] = None) -> Dict[str, Any]:
    period = (billing_period or date.today()).replace(day=1)
    logger.info(f"Starting monthly invoice generation for {period:%B %Y}...")

    async with get_db_session() as db:
        invoices = await InvoiceService(db).generate_monthly_invoices(period)

    results = {
        "finished_at": datetime.now(timezone.utc).isoformat(),
        "billing_period": period.isoformat(),
        "invoices_created": len(invoices),
    }
    logger.info(f"Monthly invoice generation finished: {results['invoices_created']} created")
    return results


async def mark_overdue_invoices_job() -> Dict[str, Any]:
    logger.info("Starting overdue invoice check...")

    async with get_db_session() as db:
        marked = await InvoiceService(db).mark_overdue_invoices()

    logger.info(f"Overdue invoice check finished: {marked} marked overdue")
    return {"finished_at": datetime.now(timezone.utc).isoformat(), "marked_overdue": marked}


async def payment_reminders_job() -> Dict[str, Any]:
    logger.info("Starting payment reminders job...")

    async with get_db_session() as db:
        result = await InvoiceService(db).send_payment_reminders()

    logger.info(f"Payment reminders job finished: {result['reminders_sent']} reminders")
    return {"finished_at": datetime.now(timezone.utc).isoformat(), **result}
