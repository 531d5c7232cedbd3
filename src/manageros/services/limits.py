"""Subscription plan limits backed by Clerk billing."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from manageros.errors import LimitExceededError
from manageros.integrations.clerk import ClerkClient, clerk_client
from manageros.models.db import Organization

logger = logging.getLogger(__name__)

LIMIT_LABELS = {
    "max_people": "People",
    "max_initiatives": "Initiatives",
    "max_teams": "Teams",
    "max_feedback_campaigns": "Feedback campaigns",
}


@dataclass
class PlanLimits:
    """Per-plan caps. None means unlimited."""

    max_people: int | None = None
    max_initiatives: int | None = None
    max_teams: int | None = None
    max_feedback_campaigns: int | None = None


def limits_from_plan(plan: dict | None) -> PlanLimits:
    """Read limits from a Clerk plan; free and unknown plans are unlimited."""
    if not plan:
        return PlanLimits()
    fee = (plan.get("fee") or {}).get("amount", 0)
    if plan.get("name") == "free" or not fee:
        return PlanLimits()
    metadata = plan.get("public_metadata") or {}
    values = {}
    for field in LIMIT_LABELS:
        raw = metadata.get(field)
        values[field] = int(raw) if isinstance(raw, (int, str)) and str(raw).isdigit() else None
    return PlanLimits(**values)


async def get_organization_limits(
    session: AsyncSession,
    organization_id: uuid.UUID,
    client: ClerkClient | None = None,
) -> PlanLimits:
    client = client or clerk_client
    result = await session.execute(
        select(Organization.clerk_organization_id).where(Organization.id == organization_id)
    )
    clerk_org_id = result.scalar_one_or_none()
    if not clerk_org_id:
        return PlanLimits()

    subscription = await client.get_organization_subscription(clerk_org_id)
    items = (subscription or {}).get("subscription_items") or []
    if not items or not items[0].get("plan"):
        return PlanLimits()
    return limits_from_plan(items[0]["plan"])


async def check_organization_limit(
    session: AsyncSession,
    organization_id: uuid.UUID,
    limit_type: str,
    current_count: int,
    client: ClerkClient | None = None,
) -> None:
    """Raise LimitExceededError when one more ``limit_type`` would exceed the plan."""
    limits = await get_organization_limits(session, organization_id, client)
    limit = getattr(limits, limit_type)
    if limit is not None and current_count >= limit:
        logger.info(
            "Organization %s hit %s limit (%d/%d)", organization_id, limit_type, current_count, limit
        )
        raise LimitExceededError(f"{LIMIT_LABELS[limit_type]} limit exceeded")
