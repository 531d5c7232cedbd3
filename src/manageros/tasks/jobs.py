"""Notification jobs run per organization by the scheduler, the cron endpoint and the CLI."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from manageros.models.db import Organization, Person, Task, User, utcnow
from manageros.services import notifications, reminders, tolerance_rules
from manageros.services.common import as_utc

logger = logging.getLogger(__name__)

DEDUP_WINDOW = timedelta(hours=24)


@dataclass
class JobResult:
    success: bool
    notifications_created: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


JobFunc = Callable[[AsyncSession, uuid.UUID, datetime], Awaitable[JobResult]]


@dataclass(frozen=True)
class Job:
    id: str
    name: str
    description: str
    run: JobFunc


def relative_time(target: datetime, now: datetime) -> str:
    """Human wording for how far ``target`` lies from ``now`` (``in 2 hours``)."""
    seconds = (as_utc(target) - now).total_seconds()
    if seconds < 60:
        return "now" if seconds > -60 else "overdue"
    minutes = int(seconds // 60)
    if minutes < 60:
        return f"in {minutes} minute{'s' if minutes != 1 else ''}"
    hours = minutes // 60
    if hours < 24:
        return f"in {hours} hour{'s' if hours != 1 else ''}"
    days = hours // 24
    return f"in {days} day{'s' if days != 1 else ''}"


# ── Jobs ──────────────────────────────────────────────────────────────────────


async def overdue_tasks_notification(
    session: AsyncSession, organization_id: uuid.UUID, now: datetime
) -> JobResult:
    """Tell each assignee about their tasks due before today, once per 24h per task set."""
    start_of_today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    result = await session.execute(
        select(Task, User.id)
        .join(Person, Person.id == Task.assignee_id)
        .join(User, User.person_id == Person.id)
        .where(
            Task.due_date.is_not(None),
            Task.due_date < start_of_today,
            Task.status.not_in(reminders.CLOSED_TASK_STATUSES),
            Person.status == "active",
            Person.organization_id == organization_id,
            reminders.organization_task_clause(organization_id),
        )
        .order_by(Task.due_date)
    )

    by_user: dict[uuid.UUID, list[Task]] = {}
    for task, user_id in result.all():
        by_user.setdefault(user_id, []).append(task)

    created = skipped = 0
    for user_id, overdue in by_user.items():
        dedup_key = "overdue-tasks:" + "|".join(sorted(str(task.id) for task in overdue))
        if await notifications.has_recent_notification(session, user_id, dedup_key, now - DEDUP_WINDOW):
            skipped += 1
            continue
        if len(overdue) == 1:
            title, message = "Overdue Task", f'Task "{overdue[0].title}" is overdue'
        else:
            title, message = "Overdue Tasks", f"You have {len(overdue)} overdue tasks"
        await notifications.create_notification(
            session,
            organization_id,
            title,
            message,
            type="warning",
            user_id=user_id,
            metadata={"dedup_key": dedup_key, "task_ids": [str(task.id) for task in overdue]},
        )
        created += 1

    return JobResult(
        success=True,
        notifications_created=created,
        metadata={"users_with_overdue_tasks": len(by_user), "skipped_duplicates": skipped},
    )


async def task_reminders(session: AsyncSession, organization_id: uuid.UUID, now: datetime) -> JobResult:
    """Turn due reminder deliveries into notifications."""
    ensured = await reminders.ensure_delivery_records_for_organization(session, organization_id, now=now)
    deliveries = await reminders.get_due_now_deliveries_for_organization(session, organization_id, now)

    for delivery in deliveries:
        await notifications.create_notification(
            session,
            organization_id,
            "Task Reminder",
            f'Task "{delivery.task.title}" is due {relative_time(delivery.task_due_date, now)}',
            type="info",
            user_id=delivery.user_id,
            metadata={"task_id": str(delivery.task_id), "delivery_id": str(delivery.id)},
        )
        await reminders.mark_delivery_push_sent(session, delivery.id, now)

    return JobResult(
        success=True,
        notifications_created=len(deliveries),
        metadata={"deliveries_created": ensured},
    )


async def evaluate_tolerance_rules(
    session: AsyncSession, organization_id: uuid.UUID, now: datetime
) -> JobResult:
    summary = await tolerance_rules.evaluate_rules_for_organization(session, organization_id, now)
    return JobResult(success=True, metadata=summary)


JOBS: dict[str, Job] = {
    job.id: job
    for job in (
        Job(
            "overdue-tasks-notification",
            "Overdue tasks",
            "Notify assignees about tasks past their due date",
            overdue_tasks_notification,
        ),
        Job(
            "task-reminders",
            "Task reminders",
            "Send reminders for tasks approaching their due date",
            task_reminders,
        ),
        Job(
            "tolerance-rules",
            "Tolerance rules",
            "Evaluate tolerance rules and raise exceptions",
            evaluate_tolerance_rules,
        ),
    )
}


async def _organization_ids(session: AsyncSession, org_id: uuid.UUID | None) -> list[uuid.UUID]:
    if org_id is not None:
        return [org_id]
    result = await session.execute(select(Organization.id).order_by(Organization.created_at))
    return list(result.scalars().all())


async def run_job(
    job_id: str,
    org_id: uuid.UUID | None = None,
    dry_run: bool = False,
    session_factory: Any = None,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """Run ``job_id`` for one organization, or for all of them.

    Each organization runs in its own session. A failing organization is
    logged and reported and the rest still run. With ``dry_run`` every
    session is rolled back.

    Raises:
        KeyError: for an unknown job id.
    """
    job = JOBS[job_id]
    if session_factory is None:
        from manageros.db.session import async_session_factory

        session_factory = async_session_factory
    now = now or utcnow()

    async with session_factory() as session:
        organization_ids = await _organization_ids(session, org_id)

    results = []
    for organization_id in organization_ids:
        async with session_factory() as session:
            try:
                outcome = await job.run(session, organization_id, now)
                if dry_run:
                    await session.rollback()
                else:
                    await session.commit()
            except Exception as exc:
                logger.exception("Job %s failed for organization %s", job_id, organization_id)
                await session.rollback()
                outcome = JobResult(success=False, error=str(exc))
        logger.info(
            "Job %s for organization %s: success=%s notifications=%d%s",
            job_id,
            organization_id,
            outcome.success,
            outcome.notifications_created,
            " (dry run)" if dry_run else "",
        )
        results.append({"job": job_id, "organization_id": str(organization_id), **outcome.as_dict()})
    return results
