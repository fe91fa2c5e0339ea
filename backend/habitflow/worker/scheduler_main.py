"""Dedicated APScheduler worker process."""
from __future__ import annotations

import logging
import signal
import threading
from datetime import datetime
from uuid import uuid4
from zoneinfo import ZoneInfo

from apscheduler.schedulers.background import BackgroundScheduler

from habitflow.core.config import settings
from habitflow.core.context import bind_request_id
from habitflow.core.logging import configure_logging
from habitflow.db.session import SessionLocal
from habitflow.services.job_runner import run_reminders_for_all_users


logger = logging.getLogger(__name__)

# Reminders match slot starts to the minute, so the job runs once per minute.
REMINDER_TRIGGER = {"trigger": "cron", "minute": "*"}


def main() -> None:
    configure_logging(log_level=settings.log_level)
    logger.info("Scheduler worker starting (enabled=%s)", settings.scheduler_enabled)

    scheduler = BackgroundScheduler(timezone=settings.scheduler_timezone)

    if settings.scheduler_enabled:
        _register_jobs(scheduler)
        scheduler.start()
    else:
        logger.warning("Scheduler disabled via config; worker will idle")

    stop_event = threading.Event()

    def shutdown(signum, frame):  # pragma: no cover - signal handler
        logger.info("Scheduler worker shutting down (signal=%s)", signum)
        if scheduler.running:
            scheduler.shutdown(wait=False)
        stop_event.set()

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    try:
        stop_event.wait()
    except KeyboardInterrupt:  # pragma: no cover - manual stop
        shutdown(signal.SIGINT, None)


def _register_jobs(scheduler: BackgroundScheduler) -> None:
    scheduler.add_job(
        _run_reminder_job,
        **REMINDER_TRIGGER,
        id="habit_reminder_job",
        replace_existing=True,
    )
    logger.info(
        "Registered scheduler jobs (reminders every minute, %s)",
        settings.scheduler_timezone,
    )


def _run_reminder_job() -> None:
    session = SessionLocal()
    with bind_request_id(f"reminder-job-{uuid4().hex[:12]}"):
        try:
            now = datetime.now(ZoneInfo(settings.scheduler_timezone))
            result = run_reminders_for_all_users(session, now)
            logger.info(
                "Reminder job complete: users=%s, reminders=%s",
                result.users_processed,
                result.reminders_sent,
            )
        except Exception:  # pragma: no cover - scheduler thread
            logger.exception("Reminder job failed")
        finally:
            session.close()


if __name__ == "__main__":  # pragma: no cover - manual launch
    main()
