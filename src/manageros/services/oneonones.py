"""One-on-one meeting records between a manager and a report."""

from __future__ import annotations

import uuid

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from manageros.auth import UserContext, require_organization
from manageros.errors import NotFoundError
from manageros.models.db import OneOnOne, Person
from manageros.models.schemas import OneOnOneCreate
from manageros.services.common import apply_updates, as_utc, get_in_org
from manageros.services.tolerance_rules import resolve_one_on_one_exceptions


def _involves(ctx: UserContext):
    return or_(OneOnOne.manager_id == ctx.person_id, OneOnOne.report_id == ctx.person_id)


async def _get_accessible(
    session: AsyncSession, ctx: UserContext, one_on_one_id: uuid.UUID
) -> OneOnOne:
    require_organization(ctx, "view one-on-ones")
    one_on_one = None
    if ctx.person_id is not None:
        result = await session.execute(
            select(OneOnOne).where(OneOnOne.id == one_on_one_id, _involves(ctx))
        )
        one_on_one = result.scalar_one_or_none()
    if one_on_one is None:
        raise NotFoundError("One-on-one not found or you do not have access to it")
    return one_on_one


async def _check_pair(session: AsyncSession, org_id: uuid.UUID, manager_id, report_id) -> None:
    await get_in_org(session, Person, manager_id, org_id, "Manager not found or not in your organization")
    await get_in_org(session, Person, report_id, org_id, "Report not found or not in your organization")


async def create_one_on_one(session: AsyncSession, ctx: UserContext, data: OneOnOneCreate) -> OneOnOne:
    org_id = require_organization(ctx, "create one-on-ones")
    await _check_pair(session, org_id, data.manager_id, data.report_id)

    one_on_one = OneOnOne(
        manager_id=data.manager_id,
        report_id=data.report_id,
        scheduled_at=as_utc(data.scheduled_at),
        notes=data.notes,
    )
    session.add(one_on_one)
    await session.flush()

    await resolve_one_on_one_exceptions(session, org_id, data.manager_id, data.report_id)
    return one_on_one


async def update_one_on_one(
    session: AsyncSession, ctx: UserContext, one_on_one_id: uuid.UUID, data: OneOnOneCreate
) -> OneOnOne:
    org_id = require_organization(ctx, "update one-on-ones")
    one_on_one = await _get_accessible(session, ctx, one_on_one_id)
    await _check_pair(session, org_id, data.manager_id, data.report_id)

    values = data.model_dump()
    values["scheduled_at"] = as_utc(values["scheduled_at"])
    apply_updates(one_on_one, values)
    await session.flush()
    return one_on_one


async def delete_one_on_one(session: AsyncSession, ctx: UserContext, one_on_one_id: uuid.UUID) -> None:
    one_on_one = await _get_accessible(session, ctx, one_on_one_id)
    await session.delete(one_on_one)
    await session.flush()


async def get_one_on_one(session: AsyncSession, ctx: UserContext, one_on_one_id: uuid.UUID) -> OneOnOne:
    return await _get_accessible(session, ctx, one_on_one_id)


async def list_one_on_ones(session: AsyncSession, ctx: UserContext) -> list[OneOnOne]:
    """One-on-ones where the caller is the manager or the report."""
    require_organization(ctx, "view one-on-ones")
    if ctx.person_id is None:
        return []
    result = await session.execute(
        select(OneOnOne)
        .where(_involves(ctx))
        .order_by(OneOnOne.scheduled_at.desc().nulls_last(), OneOnOne.created_at.desc())
    )
    return list(result.scalars().all())
