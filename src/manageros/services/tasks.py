"""Tasks and task priority helpers."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from manageros.auth import UserContext, require_organization
from manageros.errors import DomainValidationError, NotFoundError
from manageros.models.db import Initiative, Objective, Person, Task, utcnow
from manageros.models.schemas import TaskCreate, TaskUpdate
from manageros.services import reminders
from manageros.services.common import (
    apply_updates,
    as_utc,
    get_accessible_task,
    get_in_org,
    task_access_clause,
)

logger = logging.getLogger(__name__)


# ── Priority ──────────────────────────────────────────────────────────────────

DEFAULT_PRIORITY = 2

PRIORITY_LABELS = {1: "Critical", 2: "High", 3: "Medium", 4: "Low", 5: "Very Low"}
PRIORITY_SHORT_LABELS = {value: f"P{value}" for value in PRIORITY_LABELS}


def priority_from_number(value: Any) -> int:
    """Coerce ``value`` to a valid priority, falling back to the default."""
    try:
        number = int(value)
    except (TypeError, ValueError):
        return DEFAULT_PRIORITY
    return number if number in PRIORITY_LABELS else DEFAULT_PRIORITY


def priority_label(priority: int) -> str:
    return PRIORITY_LABELS[priority_from_number(priority)]


def priority_short_label(priority: int) -> str:
    return PRIORITY_SHORT_LABELS[priority_from_number(priority)]


def is_high_priority(priority: int) -> bool:
    return priority in (1, 2)


def is_low_priority(priority: int) -> bool:
    return priority in (4, 5)


def is_urgent(priority: int) -> bool:
    return priority == 1


def priority_options() -> list[dict[str, Any]]:
    return [
        {"value": value, "label": label, "short_label": PRIORITY_SHORT_LABELS[value]}
        for value, label in PRIORITY_LABELS.items()
    ]


# ── Tasks ─────────────────────────────────────────────────────────────────────


async def _check_references(
    session: AsyncSession,
    org_id: uuid.UUID,
    values: dict[str, Any],
    current_initiative_id: uuid.UUID | None = None,
) -> None:
    """Org-scope the referenced rows; an objective must sit under the effective initiative."""
    if values.get("assignee_id"):
        await get_in_org(
            session, Person, values["assignee_id"], org_id, "Assignee not found or access denied"
        )
    if values.get("initiative_id"):
        await get_in_org(
            session, Initiative, values["initiative_id"], org_id, "Initiative not found or access denied"
        )
    if values.get("objective_id"):
        result = await session.execute(
            select(Objective)
            .join(Initiative, Initiative.id == Objective.initiative_id)
            .where(Objective.id == values["objective_id"], Initiative.organization_id == org_id)
        )
        objective = result.scalar_one_or_none()
        if objective is None:
            raise NotFoundError("Objective not found or access denied")
        initiative_id = values["initiative_id"] if "initiative_id" in values else current_initiative_id
        if initiative_id and objective.initiative_id != initiative_id:
            raise DomainValidationError("Objective does not belong to the selected initiative")


async def create_task(session: AsyncSession, ctx: UserContext, data: TaskCreate) -> Task:
    org_id = require_organization(ctx, "create tasks")
    values = data.model_dump(exclude={"reminder_minutes_before_due"})
    await _check_references(session, org_id, values)
    values["due_date"] = as_utc(values["due_date"])

    task = Task(created_by_id=ctx.user_id, **values)
    if task.status == "done":
        task.completed_at = utcnow()
    session.add(task)
    await session.flush()

    if data.reminder_minutes_before_due and task.due_date is not None:
        await reminders.upsert_preference(session, task.id, ctx, data.reminder_minutes_before_due)
    logger.info("Created task %s", task.id)
    return task


def _apply_status(task: Task, status: str, now: datetime) -> None:
    if status == "done" and task.status != "done":
        task.completed_at = now
    elif status != "done":
        task.completed_at = None
    task.status = status


async def update_task(
    session: AsyncSession, ctx: UserContext, task_id: uuid.UUID, data: TaskUpdate
) -> Task:
    org_id = require_organization(ctx, "update tasks")
    task = await get_accessible_task(session, ctx, task_id)

    values = data.model_dump(exclude_unset=True)
    reminder_set = "reminder_minutes_before_due" in values
    reminder_minutes = values.pop("reminder_minutes_before_due", None)
    await _check_references(session, org_id, values, current_initiative_id=task.initiative_id)

    status = values.pop("status", None)
    if status is not None:
        _apply_status(task, status, utcnow())

    due_changed = False
    if "due_date" in values:
        values["due_date"] = as_utc(values["due_date"])
        due_changed = values["due_date"] != as_utc(task.due_date)
    apply_updates(task, values)
    await session.flush()

    if due_changed:
        await reminders.invalidate_deliveries_for_due_date_change(
            session, task.id, ctx, task.due_date
        )
    if reminder_set:
        await reminders.upsert_preference(session, task.id, ctx, reminder_minutes)
    return task


async def update_task_status(
    session: AsyncSession, ctx: UserContext, task_id: uuid.UUID, status: str
) -> Task:
    return await update_task(session, ctx, task_id, TaskUpdate(status=status))


async def delete_task(session: AsyncSession, ctx: UserContext, task_id: uuid.UUID) -> None:
    task = await get_accessible_task(session, ctx, task_id)
    await session.delete(task)
    await session.flush()


async def get_task(session: AsyncSession, ctx: UserContext, task_id: uuid.UUID) -> Task:
    return await get_accessible_task(session, ctx, task_id)


async def list_tasks(
    session: AsyncSession,
    ctx: UserContext,
    status: list[str] | None = None,
    priority: list[int] | None = None,
    assignee_id: uuid.UUID | None = None,
    initiative_id: uuid.UUID | None = None,
    query: str | None = None,
    updated_after: datetime | None = None,
    updated_before: datetime | None = None,
    limit: int | None = None,
) -> list[Task]:
    require_organization(ctx, "view tasks")
    stmt = select(Task).where(task_access_clause(ctx))
    if status:
        stmt = stmt.where(Task.status.in_(status))
    if priority:
        stmt = stmt.where(Task.priority.in_(priority))
    if assignee_id:
        stmt = stmt.where(Task.assignee_id == assignee_id)
    if initiative_id:
        stmt = stmt.where(Task.initiative_id == initiative_id)
    if query:
        term = f"%{query}%"
        stmt = stmt.where(or_(Task.title.ilike(term), Task.description.ilike(term)))
    if updated_after:
        stmt = stmt.where(Task.updated_at >= as_utc(updated_after))
    if updated_before:
        stmt = stmt.where(Task.updated_at <= as_utc(updated_before))
    stmt = stmt.order_by(Task.priority, Task.due_date.asc().nulls_last(), Task.created_at.desc())
    if limit:
        stmt = stmt.limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_my_tasks(
    session: AsyncSession, ctx: UserContext, include_closed: bool = False
) -> list[Task]:
    require_organization(ctx, "view tasks")
    if ctx.person_id is None:
        return []
    stmt = select(Task).where(Task.assignee_id == ctx.person_id, task_access_clause(ctx))
    if not include_closed:
        stmt = stmt.where(Task.status.not_in(("done", "dropped")))
    result = await session.execute(
        stmt.order_by(Task.due_date.asc().nulls_last(), Task.priority)
    )
    return list(result.scalars().all())
