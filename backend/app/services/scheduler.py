"""Daily billing scheduler.

Runs recurring invoice generation followed by the overdue sweep once a day at
``GENERATION_HOUR_UTC``. Only started when ``SCHEDULER_ENABLED`` is set; deployments
that prefer cron can call ``backend.app.scripts.run_billing_jobs`` instead.
"""

import logging
import threading
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from backend.app.core.settings import Settings
from backend.app.core.time import utc_today
from backend.app.db.session import SessionLocal
from backend.app.services.email import get_email_sender
from backend.app.services.overdue import sweep_overdue
from backend.app.services.recurring_generation import generate_due

logger = logging.getLogger(__name__)

JOB_ID = "daily_billing_jobs"

_scheduler: Optional[BackgroundScheduler] = None
_cancel_event = threading.Event()


def run_daily_billing_jobs(reference_date=None, cancel_event: Optional[threading.Event] = None):
    """Generate due recurring invoices, then persist overdue status. Returns the generation report."""
    reference_date = reference_date or utc_today()
    db = SessionLocal()
    try:
        report = generate_due(
            db,
            reference_date,
            email_sender=get_email_sender(),
            cancel_event=cancel_event,
        )
        for failure in report.errors:
            logger.error(
                "Template %s (owner %s) failed: %s: %s",
                failure.template_id,
                failure.owner_id,
                failure.error_type,
                failure.message,
            )
        sweep_overdue(db, reference_date)
        return report
    finally:
        db.close()


def _scheduled_run():
    try:
        run_daily_billing_jobs(cancel_event=_cancel_event)
    except Exception:
        logger.exception("Daily billing jobs failed")


def init_scheduler(settings: Settings) -> Optional[BackgroundScheduler]:
    global _scheduler
    if not settings.scheduler_enabled:
        logger.info("Billing scheduler disabled")
        return None
    if _scheduler is not None:
        return _scheduler

    _cancel_event.clear()
    scheduler = BackgroundScheduler(timezone="UTC")
    scheduler.add_job(
        _scheduled_run,
        CronTrigger(hour=settings.generation_hour_utc, minute=0, timezone="UTC"),
        id=JOB_ID,
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    scheduler.start()
    _scheduler = scheduler
    logger.info("Billing scheduler started, daily at %02d:00 UTC", settings.generation_hour_utc)
    return scheduler


def shutdown_scheduler() -> None:
    global _scheduler
    if _scheduler is None:
        return
    # Let the template in progress finish, skip the rest
    _cancel_event.set()
    _scheduler.shutdown(wait=False)
    _scheduler = None
    logger.info("Billing scheduler stopped")
