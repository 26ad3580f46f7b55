"""
APScheduler configuration for the order engine.

A single interval job runs the notification pass. Passes never overlap:
`max_instances=1` stops a second run from starting while one is in flight and
`coalesce=True` folds missed runs into one.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from printshop.core.settings import AppSettings, get_app_settings
from printshop.db.session import get_session_maker
from printshop.schemas.notifications import NotificationPassSummary
from printshop.services.notifications import NotificationRuleEngine
from printshop.services.transport import NotificationTransport

logger = logging.getLogger(__name__)

NOTIFICATION_JOB_ID = "check_order_notifications"

jobstores = {
    "default": MemoryJobStore(),
}

executors = {
    "default": AsyncIOExecutor(),
}

job_defaults = {
    "coalesce": True,
    "max_instances": 1,
    "misfire_grace_time": 60,
}

scheduler = AsyncIOScheduler(
    jobstores=jobstores,
    executors=executors,
    job_defaults=job_defaults,
    timezone="UTC",
)


# PUBLIC_INTERFACE
async def run_notification_pass(
    transport: Optional[NotificationTransport] = None,
    settings: Optional[AppSettings] = None,
) -> Optional[NotificationPassSummary]:
    """Run one notification pass on a fresh session; errors are logged, not raised."""
    settings = settings or get_app_settings()
    try:
        maker = get_session_maker()
        async with maker() as session:
            engine = NotificationRuleEngine(
                session,
                transport,
                recent_window=timedelta(minutes=settings.NOTIFICATION_RECENT_WINDOW_MINUTES),
            )
            return await engine.check_order_notifications()
    except Exception:
        logger.exception("Notification pass failed")
        return None


# PUBLIC_INTERFACE
def start_scheduler(settings: Optional[AppSettings] = None) -> None:
    """Register the notification job and start the scheduler if it is not running."""
    settings = settings or get_app_settings()
    if scheduler.running:
        return

    scheduler.add_job(
        run_notification_pass,
        "interval",
        minutes=settings.NOTIFICATION_INTERVAL_MINUTES,
        id=NOTIFICATION_JOB_ID,
        name="Check order notifications",
        replace_existing=True,
    )
    scheduler.start()
    logger.info("Background job scheduler started")

    for job in scheduler.get_jobs():
        logger.info("Scheduled job: %s - Next run: %s", job.name, job.next_run_time)


# PUBLIC_INTERFACE
def shutdown_scheduler() -> None:
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Background job scheduler stopped")


# PUBLIC_INTERFACE
def get_job_status() -> List[Dict[str, Any]]:
    """Get status of all scheduled jobs."""
    return [
        {
            "id": job.id,
            "name": job.name,
            "next_run_time": str(job.next_run_time) if job.next_run_time else None,
            "trigger": str(job.trigger),
        }
        for job in scheduler.get_jobs()
    ]
