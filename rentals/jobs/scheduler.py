"""
APScheduler configuration.

Registers the billing jobs on an in-memory AsyncIOScheduler. Started and
stopped from the application lifespan when SCHEDULER_ENABLED is set.
"""

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.executors.asyncio import AsyncIOExecutor

from rentals.config import settings

logger = logging.getLogger(__name__)

# Job stores
jobstores = {
    'default': MemoryJobStore()
}

# Executors
executors = {
    'default': AsyncIOExecutor(),
}

# Job defaults
job_defaults = {
    'coalesce': True,  # Combine multiple pending executions into one
    'max_instances': 1,
    'misfire_grace_time': 3600,
}

scheduler = AsyncIOScheduler(
    jobstores=jobstores,
    executors=executors,
    job_defaults=job_defaults,
    timezone=settings.SCHEDULER_TIMEZONE
)


async def run_job(job_name: str):
    """Entry point called by APScheduler; failures are logged so the scheduler keeps running."""
    from rentals.jobs import billing_jobs

    job = getattr(billing_jobs, job_name)
    try:
        result = await job()
        logger.info(f"Job '{job_name}' completed: {result}")
    except Exception as e:
        logger.exception(f"Job '{job_name}' failed: {e}")


def start_scheduler():
    """Start the background job scheduler with the billing jobs."""
    if not scheduler.running:
        # Generate rent invoices on the configured day of each month
        scheduler.add_job(
            run_job,
            'cron',
            day=settings.MONTHLY_INVOICE_DAY,
            hour=1,
            args=['generate_monthly_invoices_job'],
            id='generate_monthly_invoices',
            name='Generate Monthly Invoices',
            replace_existing=True,
        )

        scheduler.add_job(
            run_job,
            'cron',
            hour=0,
            minute=30,
            args=['mark_overdue_invoices_job'],
            id='mark_overdue_invoices',
            name='Mark Overdue Invoices',
            replace_existing=True,
        )

        scheduler.add_job(
            run_job,
            'cron',
            hour=settings.REMINDER_HOUR,
            args=['payment_reminders_job'],
            id='payment_reminders',
            name='Payment Reminders',
            replace_existing=True,
        )

        scheduler.start()
        logger.info("Background job scheduler started")

        for job in scheduler.get_jobs():
            logger.info(f"Scheduled job: {job.name} - Next run: {job.next_run_time}")


def shutdown_scheduler():
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Background job scheduler stopped")


def get_job_status():
    """Get status of all scheduled jobs."""
    return [
        {
            'id': job.id,
            'name': job.name,
            'next_run_time': str(job.next_run_time) if job.next_run_time else None,
            'trigger': str(job.trigger),
        }
        for job in scheduler.get_jobs()
    ]
