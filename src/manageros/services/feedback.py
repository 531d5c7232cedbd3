"""Free-form feedback notes about people."""

from __future__ import annotations

import uuid

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from manageros.auth import UserContext, require_organization
from manageros.errors import NotFoundError
from manageros.models.db import Feedback, Person
from manageros.models.schemas import FeedbackCreate
from manageros.services.common import apply_updates, get_current_person, get_in_org


async def _get_own(session: AsyncSession, ctx: UserContext, feedback_id: uuid.UUID) -> Feedback:
    org_id = require_organization(ctx, "edit feedback")
    result = await session.execute(
        select(Feedback)
        .join(Person, Person.id == Feedback.about_id)
        .where(
            Feedback.id == feedback_id,
            Feedback.from_id == ctx.person_id,
            Person.organization_id == org_id,
        )
    )
    feedback = result.scalar_one_or_none()
    if feedback is None or ctx.person_id is None:
        raise NotFoundError("Feedback not found or you do not have permission to edit it")
    return feedback


async def create_feedback(session: AsyncSession, ctx: UserContext, data: FeedbackCreate) -> Feedback:
    org_id = require_organization(ctx, "create feedback")
    author = await get_current_person(session, ctx)
    await get_in_org(session, Person, data.about_id, org_id, "Person not found or access denied")

    feedback = Feedback(from_id=author.id, **data.model_dump())
    session.add(feedback)
    await session.flush()
    return feedback


async def update_feedback(
    session: AsyncSession, ctx: UserContext, feedback_id: uuid.UUID, data: FeedbackCreate
) -> Feedback:
    feedback = await _get_own(session, ctx, feedback_id)
    await get_in_org(
        session, Person, data.about_id, ctx.organization_id, "Person not found or access denied"
    )
    apply_updates(feedback, data.model_dump())
    await session.flush()
    return feedback


async def delete_feedback(session: AsyncSession, ctx: UserContext, feedback_id: uuid.UUID) -> None:
    feedback = await _get_own(session, ctx, feedback_id)
    await session.delete(feedback)
    await session.flush()


async def list_feedback_for_person(
    session: AsyncSession, ctx: UserContext, person_id: uuid.UUID
) -> list[Feedback]:
    """Public feedback about ``person_id`` plus the caller's own private notes."""
    org_id = require_organization(ctx, "view feedback")
    await get_in_org(session, Person, person_id, org_id, "Person not found or access denied")

    visible = Feedback.is_private.is_(False)
    if ctx.person_id is not None:
        visible = or_(visible, and_(Feedback.is_private.is_(True), Feedback.from_id == ctx.person_id))
    result = await session.execute(
        select(Feedback)
        .where(Feedback.about_id == person_id, visible)
        .order_by(Feedback.created_at.desc())
    )
    return list(result.scalars().all())


async def list_feedback(
    session: AsyncSession,
    ctx: UserContext,
    about_id: uuid.UUID | None = None,
    kind: str | None = None,
    limit: int | None = None,
) -> list[Feedback]:
    """Feedback across the organization with the same visibility rule."""
    org_id = require_organization(ctx, "view feedback")
    visible = Feedback.is_private.is_(False)
    if ctx.person_id is not None:
        visible = or_(visible, Feedback.from_id == ctx.person_id)
    stmt = (
        select(Feedback)
        .join(Person, Person.id == Feedback.about_id)
        .where(Person.organization_id == org_id, visible)
    )
    if about_id:
        stmt = stmt.where(Feedback.about_id == about_id)
    if kind:
        stmt = stmt.where(Feedback.kind == kind)
    stmt = stmt.order_by(Feedback.created_at.desc())
    if limit:
        stmt = stmt.limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())
