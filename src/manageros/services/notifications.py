"""In-app notifications, addressed to one user or to a whole organization."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from manageros.auth import UserContext, require_organization
from manageros.errors import AccessDeniedError, NotFoundError
from manageros.models.db import Notification, utcnow

logger = logging.getLogger(__name__)


async def create_notification(
    session: AsyncSession,
    organization_id: uuid.UUID,
    title: str,
    message: str,
    type: str = "info",
    user_id: uuid.UUID | None = None,
    metadata: dict[str, Any] | None = None,
    ctx: UserContext | None = None,
) -> Notification:
    """Create a notification for ``user_id``, or for the whole org when None.

    When called on behalf of a user (``ctx`` given) the target organization
    must be the caller's own.
    """
    if ctx is not None and ctx.organization_id != organization_id:
        raise AccessDeniedError("Cannot create notification for different organization")

    notification = Notification(
        organization_id=organization_id,
        user_id=user_id,
        title=title,
        message=message,
        type=type,
        metadata_=metadata or {},
    )
    session.add(notification)
    await session.flush()
    logger.debug("Created %s notification %s for user %s", type, notification.id, user_id)
    return notification


def _visible_to(ctx: UserContext):
    org_id = require_organization(ctx, "view notifications")
    return (
        Notification.organization_id == org_id,
        or_(Notification.user_id == ctx.user_id, Notification.user_id.is_(None)),
    )


async def list_notifications(
    session: AsyncSession, ctx: UserContext, limit: int = 10
) -> list[Notification]:
    result = await session.execute(
        select(Notification)
        .where(*_visible_to(ctx), Notification.dismissed_at.is_(None))
        .order_by(Notification.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def list_unread(session: AsyncSession, ctx: UserContext, limit: int = 5) -> list[Notification]:
    result = await session.execute(
        select(Notification)
        .where(
            *_visible_to(ctx),
            Notification.read_at.is_(None),
            Notification.dismissed_at.is_(None),
        )
        .order_by(Notification.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def unread_count(session: AsyncSession, ctx: UserContext) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(Notification)
        .where(
            *_visible_to(ctx),
            Notification.read_at.is_(None),
            Notification.dismissed_at.is_(None),
        )
    )
    return int(result.scalar_one())


async def _get_visible(
    session: AsyncSession, ctx: UserContext, notification_id: uuid.UUID
) -> Notification:
    result = await session.execute(
        select(Notification).where(Notification.id == notification_id, *_visible_to(ctx))
    )
    notification = result.scalar_one_or_none()
    if notification is None:
        raise NotFoundError("Notification not found or access denied")
    return notification


async def mark_read(
    session: AsyncSession, ctx: UserContext, notification_id: uuid.UUID
) -> Notification:
    notification = await _get_visible(session, ctx, notification_id)
    if notification.read_at is None:
        notification.read_at = utcnow()
    await session.flush()
    return notification


async def mark_dismissed(
    session: AsyncSession, ctx: UserContext, notification_id: uuid.UUID
) -> Notification:
    notification = await _get_visible(session, ctx, notification_id)
    notification.dismissed_at = utcnow()
    if notification.read_at is None:
        notification.read_at = notification.dismissed_at
    await session.flush()
    return notification


async def mark_all_read(session: AsyncSession, ctx: UserContext) -> int:
    unread = await list_unread(session, ctx, limit=1000)
    now = utcnow()
    for notification in unread:
        notification.read_at = now
    await session.flush()
    return len(unread)


async def has_recent_notification(
    session: AsyncSession, user_id: uuid.UUID, dedup_key: str, since: datetime
) -> bool:
    """True if ``user_id`` already got a notification tagged ``dedup_key`` after ``since``."""
    result = await session.execute(
        select(Notification).where(
            Notification.user_id == user_id,
            Notification.created_at >= since,
        )
    )
    return any(
        (notification.metadata_ or {}).get("dedup_key") == dedup_key
        for notification in result.scalars().all()
    )
