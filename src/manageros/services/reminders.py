"""Task reminder preferences and delivery tracking.

A delivery is one scheduled reminder for a (task, user, due date) triple and
moves PENDING -> ACKNOWLEDGED or PENDING -> SNOOZED. Nothing here schedules
anything: the API polls ``get_due_now_deliveries`` and the ``task-reminders``
job polls the organization variants.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from manageros.auth import UserContext
from manageros.errors import NotFoundError, TaskReminderValidationError
from manageros.models.db import (
    Initiative,
    Objective,
    OrganizationMember,
    Task,
    TaskReminderDelivery,
    TaskReminderPreference,
    utcnow,
)
from manageros.services.common import as_utc, get_accessible_task, task_access_clause

logger = logging.getLogger(__name__)

DEFAULT_WINDOW = timedelta(hours=24)
CLOSED_TASK_STATUSES = ("done", "dropped")


def _open_task_criteria() -> list[Any]:
    return [Task.status.not_in(CLOSED_TASK_STATUSES), Task.completed_at.is_(None)]


# ── Preferences ───────────────────────────────────────────────────────────────


async def upsert_preference(
    session: AsyncSession, task_id: uuid.UUID, ctx: UserContext, minutes: int | None
) -> TaskReminderPreference | None:
    """Set the caller's reminder offset for a task; ``None`` clears it."""
    if minutes is not None and minutes <= 0:
        raise TaskReminderValidationError("Reminder minutes must be positive or null")
    await get_accessible_task(session, ctx, task_id)

    result = await session.execute(
        select(TaskReminderPreference).where(
            TaskReminderPreference.task_id == task_id,
            TaskReminderPreference.user_id == ctx.user_id,
        )
    )
    preference = result.scalar_one_or_none()

    if minutes is None:
        if preference is not None:
            await session.delete(preference)
            await session.flush()
        return None

    if preference is None:
        preference = TaskReminderPreference(
            task_id=task_id, user_id=ctx.user_id, reminder_minutes_before_due=minutes
        )
        session.add(preference)
    else:
        preference.reminder_minutes_before_due = minutes
    await session.flush()
    return preference


async def get_preference(session: AsyncSession, task_id: uuid.UUID, ctx: UserContext) -> int | None:
    result = await session.execute(
        select(TaskReminderPreference.reminder_minutes_before_due).where(
            TaskReminderPreference.task_id == task_id,
            TaskReminderPreference.user_id == ctx.user_id,
        )
    )
    return result.scalar_one_or_none()


# ── Delivery records ──────────────────────────────────────────────────────────


async def _ensure_delivery(
    session: AsyncSession,
    task_id: uuid.UUID,
    user_id: uuid.UUID,
    due_date: datetime,
    minutes: int,
    now: datetime,
) -> TaskReminderDelivery | None:
    """Create the PENDING delivery for (task, user, due_date) unless it exists."""
    result = await session.execute(
        select(TaskReminderDelivery.id).where(
            TaskReminderDelivery.task_id == task_id,
            TaskReminderDelivery.user_id == user_id,
            TaskReminderDelivery.task_due_date == due_date,
            TaskReminderDelivery.status == "PENDING",
        )
    )
    if result.first() is not None:
        return None

    # Stale schedule from before a due-date change
    await session.execute(
        delete(TaskReminderDelivery).where(
            TaskReminderDelivery.task_id == task_id,
            TaskReminderDelivery.user_id == user_id,
            TaskReminderDelivery.task_due_date != due_date,
            TaskReminderDelivery.status == "PENDING",
        )
    )

    remind_at = max(due_date - timedelta(minutes=minutes), now)
    delivery = TaskReminderDelivery(
        task_id=task_id,
        user_id=user_id,
        task_due_date=due_date,
        reminder_minutes_before_due=minutes,
        remind_at=remind_at,
        status="PENDING",
    )
    session.add(delivery)
    await session.flush()
    return delivery


async def ensure_delivery_records_for_upcoming(
    session: AsyncSession,
    ctx: UserContext,
    window: timedelta = DEFAULT_WINDOW,
    now: datetime | None = None,
) -> int:
    """Create deliveries for the caller's reminders due within ``window``.

    Returns:
        Number of delivery records created.
    """
    now = now or utcnow()
    result = await session.execute(
        select(Task.id, Task.due_date, TaskReminderPreference.reminder_minutes_before_due)
        .join(
            TaskReminderPreference,
            and_(
                TaskReminderPreference.task_id == Task.id,
                TaskReminderPreference.user_id == ctx.user_id,
            ),
        )
        .where(
            Task.due_date.is_not(None),
            Task.due_date <= now + window,
            *_open_task_criteria(),
            task_access_clause(ctx),
        )
    )
    created = 0
    for task_id, due_date, minutes in result.all():
        if await _ensure_delivery(session, task_id, ctx.user_id, as_utc(due_date), minutes, now):
            created += 1
    return created


def organization_task_clause(organization_id: uuid.UUID) -> Any:
    creator_in_org = select(OrganizationMember.user_id).where(
        OrganizationMember.organization_id == organization_id
    )
    return or_(
        Task.initiative_id.in_(
            select(Initiative.id).where(Initiative.organization_id == organization_id)
        ),
        Task.objective_id.in_(
            select(Objective.id)
            .join(Initiative, Initiative.id == Objective.initiative_id)
            .where(Initiative.organization_id == organization_id)
        ),
        and_(
            Task.initiative_id.is_(None),
            Task.objective_id.is_(None),
            Task.created_by_id.in_(creator_in_org),
        ),
    )


async def ensure_delivery_records_for_organization(
    session: AsyncSession,
    organization_id: uuid.UUID,
    window: timedelta = DEFAULT_WINDOW,
    now: datetime | None = None,
) -> int:
    """Same as ``ensure_delivery_records_for_upcoming`` for every user of an org."""
    now = now or utcnow()
    result = await session.execute(
        select(
            Task.id,
            Task.due_date,
            TaskReminderPreference.user_id,
            TaskReminderPreference.reminder_minutes_before_due,
        )
        .join(TaskReminderPreference, TaskReminderPreference.task_id == Task.id)
        .where(
            Task.due_date.is_not(None),
            Task.due_date <= now + window,
            *_open_task_criteria(),
            organization_task_clause(organization_id),
        )
    )
    created = 0
    for task_id, due_date, user_id, minutes in result.all():
        if await _ensure_delivery(session, task_id, user_id, as_utc(due_date), minutes, now):
            created += 1
    if created:
        logger.info("Created %d reminder deliveries for organization %s", created, organization_id)
    return created


def _pending_with_task():
    return (
        select(TaskReminderDelivery)
        .join(Task, Task.id == TaskReminderDelivery.task_id)
        .where(TaskReminderDelivery.status == "PENDING", *_open_task_criteria())
        .options(selectinload(TaskReminderDelivery.task))
        .order_by(TaskReminderDelivery.remind_at)
    )


async def get_due_now_deliveries(
    session: AsyncSession, ctx: UserContext, now: datetime | None = None
) -> list[TaskReminderDelivery]:
    """PENDING deliveries whose time has come and that were not pushed yet."""
    now = now or utcnow()
    result = await session.execute(
        _pending_with_task().where(
            TaskReminderDelivery.user_id == ctx.user_id,
            TaskReminderDelivery.remind_at <= now,
            TaskReminderDelivery.push_sent_at.is_(None),
        )
    )
    return list(result.scalars().all())


async def get_due_now_deliveries_for_organization(
    session: AsyncSession, organization_id: uuid.UUID, now: datetime | None = None
) -> list[TaskReminderDelivery]:
    now = now or utcnow()
    members = select(OrganizationMember.user_id).where(
        OrganizationMember.organization_id == organization_id
    )
    result = await session.execute(
        _pending_with_task().where(
            TaskReminderDelivery.user_id.in_(members),
            TaskReminderDelivery.remind_at <= now,
            TaskReminderDelivery.push_sent_at.is_(None),
        )
    )
    return list(result.scalars().all())


async def get_upcoming_deliveries(
    session: AsyncSession,
    ctx: UserContext,
    window: timedelta = DEFAULT_WINDOW,
    now: datetime | None = None,
) -> list[TaskReminderDelivery]:
    now = now or utcnow()
    await ensure_delivery_records_for_upcoming(session, ctx, window, now)
    result = await session.execute(
        _pending_with_task().where(
            TaskReminderDelivery.user_id == ctx.user_id,
            TaskReminderDelivery.remind_at <= now + window,
        )
    )
    return list(result.scalars().all())


async def _get_own_delivery(
    session: AsyncSession, delivery_id: uuid.UUID, ctx: UserContext, pending_only: bool = False
) -> TaskReminderDelivery:
    stmt = (
        select(TaskReminderDelivery)
        .join(Task, Task.id == TaskReminderDelivery.task_id)
        .where(
            TaskReminderDelivery.id == delivery_id,
            TaskReminderDelivery.user_id == ctx.user_id,
            task_access_clause(ctx),
        )
    )
    if pending_only:
        stmt = stmt.where(TaskReminderDelivery.status == "PENDING")
    delivery = (await session.execute(stmt)).scalar_one_or_none()
    if delivery is None:
        raise NotFoundError("Reminder not found or access denied")
    return delivery


async def acknowledge_delivery(
    session: AsyncSession, delivery_id: uuid.UUID, ctx: UserContext, now: datetime | None = None
) -> TaskReminderDelivery:
    delivery = await _get_own_delivery(session, delivery_id, ctx)
    delivery.status = "ACKNOWLEDGED"
    delivery.acknowledged_at = now or utcnow()
    await session.flush()
    return delivery


async def snooze_delivery(
    session: AsyncSession,
    delivery_id: uuid.UUID,
    ctx: UserContext,
    minutes: int,
    now: datetime | None = None,
) -> TaskReminderDelivery:
    """Snooze a PENDING delivery and schedule its replacement.

    Returns:
        The new PENDING delivery.

    Raises:
        TaskReminderValidationError: for non-positive minutes, overdue tasks,
            or a snooze that would land after the due date.
    """
    if minutes <= 0:
        raise TaskReminderValidationError("Snooze minutes must be positive")
    delivery = await _get_own_delivery(session, delivery_id, ctx, pending_only=True)

    now = now or utcnow()
    due_date = as_utc(delivery.task_due_date)
    minutes_until_due = int((due_date - now).total_seconds() // 60)
    if minutes_until_due <= 0:
        raise TaskReminderValidationError("Task is already overdue and cannot be snoozed")
    if minutes > minutes_until_due:
        raise TaskReminderValidationError("Snooze time cannot be later than the task due date")

    snoozed_until = now + timedelta(minutes=minutes)
    delivery.status = "SNOOZED"
    delivery.snoozed_until = snoozed_until
    replacement = TaskReminderDelivery(
        task_id=delivery.task_id,
        user_id=ctx.user_id,
        task_due_date=due_date,
        reminder_minutes_before_due=delivery.reminder_minutes_before_due,
        remind_at=snoozed_until,
        status="PENDING",
    )
    session.add(replacement)
    await session.flush()
    return replacement


async def invalidate_deliveries_for_due_date_change(
    session: AsyncSession, task_id: uuid.UUID, ctx: UserContext, new_due_date: datetime | None
) -> None:
    """Drop PENDING deliveries that no longer match the task's due date."""
    await get_accessible_task(session, ctx, task_id)
    stmt = delete(TaskReminderDelivery).where(
        TaskReminderDelivery.task_id == task_id,
        TaskReminderDelivery.status == "PENDING",
    )
    if new_due_date is not None:
        stmt = stmt.where(TaskReminderDelivery.task_due_date != as_utc(new_due_date))
    await session.execute(stmt)
    await session.flush()


async def mark_delivery_push_sent(
    session: AsyncSession, delivery_id: uuid.UUID, now: datetime | None = None
) -> None:
    delivery = await session.get(TaskReminderDelivery, delivery_id)
    if delivery is None:
        raise NotFoundError("Reminder not found or access denied")
    delivery.push_sent_at = now or utcnow()
    await session.flush()
