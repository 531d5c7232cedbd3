"""Background workers using APScheduler.

Runs the notification jobs for every organization:
- Overdue task notifications (daily)
- Task reminders (every few minutes)
- Tolerance rule evaluation (daily)
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from manageros.config import settings
from manageros.tasks.jobs import run_job

logger = logging.getLogger(__name__)

_scheduler: AsyncIOScheduler | None = None


def start_scheduler() -> None:
    """Start the background task scheduler."""
    global _scheduler
    if _scheduler is not None:
        return

    _scheduler = AsyncIOScheduler()

    _scheduler.add_job(
        run_scheduled_job,
        "cron",
        hour=settings.overdue_notification_hour,
        minute=0,
        args=["overdue-tasks-notification"],
        id="overdue_tasks_daily",
        replace_existing=True,
    )

    _scheduler.add_job(
        run_scheduled_job,
        "interval",
        minutes=settings.reminder_poll_minutes,
        args=["task-reminders"],
        id="task_reminders",
        replace_existing=True,
    )

    # Tolerance rules: run daily at 6 AM UTC
    _scheduler.add_job(
        run_scheduled_job,
        "cron",
        hour=6,
        minute=0,
        args=["tolerance-rules"],
        id="tolerance_rules_daily",
        replace_existing=True,
    )

    _scheduler.start()
    logger.info("Background scheduler started")


def stop_scheduler() -> None:
    """Stop the background task scheduler."""
    global _scheduler
    if _scheduler is not None:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Background scheduler stopped")


async def run_scheduled_job(job_id: str) -> None:
    """Run one job across all organizations; failures never stop the scheduler."""
    logger.info("Starting scheduled job %s", job_id)
    try:
        results = await run_job(job_id)
    except Exception:
        logger.exception("Scheduled job %s failed", job_id)
        return
    failed = [result for result in results if not result["success"]]
    logger.info(
        "Scheduled job %s finished: %d organization(s), %d failed",
        job_id,
        len(results),
        len(failed),
    )
