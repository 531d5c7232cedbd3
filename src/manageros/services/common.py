"""Helpers shared by the service modules."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, TypeVar

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from manageros.auth import UserContext
from manageros.errors import AccessDeniedError, NotFoundError
from manageros.models.db import Initiative, Objective, Person, Task

ModelT = TypeVar("ModelT")


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from the database."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


async def get_in_org(
    session: AsyncSession,
    model: type[ModelT],
    entity_id: uuid.UUID,
    organization_id: uuid.UUID,
    message: str,
) -> ModelT:
    """Fetch ``model`` by id within an organization or raise NotFoundError."""
    result = await session.execute(
        select(model).where(
            model.id == entity_id,  # type: ignore[attr-defined]
            model.organization_id == organization_id,  # type: ignore[attr-defined]
        )
    )
    entity = result.scalar_one_or_none()
    if entity is None:
        raise NotFoundError(message)
    return entity


async def get_current_person(session: AsyncSession, ctx: UserContext) -> Person:
    """Return the Person linked to the caller."""
    if ctx.person_id is None:
        raise AccessDeniedError("No person record found for current user")
    result = await session.execute(select(Person).where(Person.id == ctx.person_id))
    person = result.scalar_one_or_none()
    if person is None:
        raise AccessDeniedError("No person record found for current user")
    return person


async def count_rows(session: AsyncSession, model: Any, *criteria: Any) -> int:
    result = await session.execute(select(func.count()).select_from(model).where(*criteria))
    return int(result.scalar_one())


def apply_updates(entity: Any, values: dict[str, Any]) -> None:
    for key, value in values.items():
        setattr(entity, key, value)


def task_access_clause(ctx: UserContext) -> Any:
    """Tasks the caller created, or tasks hanging off an initiative of their org."""
    clauses = [Task.created_by_id == ctx.user_id]
    if ctx.organization_id is not None:
        org_initiatives = select(Initiative.id).where(
            Initiative.organization_id == ctx.organization_id
        )
        org_objectives = (
            select(Objective.id)
            .join(Initiative, Initiative.id == Objective.initiative_id)
            .where(Initiative.organization_id == ctx.organization_id)
        )
        clauses.append(Task.initiative_id.in_(org_initiatives))
        clauses.append(Task.objective_id.in_(org_objectives))
    return or_(*clauses)


async def get_accessible_task(session: AsyncSession, ctx: UserContext, task_id: uuid.UUID) -> Task:
    result = await session.execute(
        select(Task).where(Task.id == task_id, task_access_clause(ctx))
    )
    task = result.scalar_one_or_none()
    if task is None:
        raise NotFoundError("Task not found or access denied")
    return task
