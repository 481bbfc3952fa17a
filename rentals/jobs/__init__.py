"""
Background Jobs Module

Handles scheduled billing tasks:
- Monthly invoice generation
- Overdue marking
- Payment reminders
"""

from rentals.jobs.scheduler import scheduler, start_scheduler, shutdown_scheduler, get_job_status

__all__ = [
    "scheduler",
    "start_scheduler",
    "shutdown_scheduler",
    "get_job_status",
]
