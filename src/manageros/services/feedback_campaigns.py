"""360 feedback campaigns, their templates and responses."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from manageros.auth import UserContext, require_admin, require_organization
from manageros.errors import AccessDeniedError, ConflictError, DomainValidationError, NotFoundError
from manageros.models.db import (
    FeedbackCampaign,
    FeedbackResponse,
    FeedbackTemplate,
    Person,
    utcnow,
)
from manageros.models.schemas import (
    FeedbackCampaignCreate,
    FeedbackCampaignUpdate,
    FeedbackTemplateCreate,
)
from manageros.services.common import apply_updates, as_utc, count_rows, get_current_person, get_in_org
from manageros.services.limits import check_organization_limit
from manageros.services.people import is_manager_of
from manageros.services.tolerance_rules import resolve_feedback_360_exceptions

logger = logging.getLogger(__name__)

TEMPLATE_ADMIN_MESSAGE = "Only administrators can manage feedback templates"


# ── Templates ─────────────────────────────────────────────────────────────────


async def _get_template(session: AsyncSession, template_id: uuid.UUID, org_id: uuid.UUID) -> FeedbackTemplate:
    return await get_in_org(session, FeedbackTemplate, template_id, org_id, "Template not found")


async def _clear_default(session: AsyncSession, org_id: uuid.UUID) -> None:
    await session.execute(
        update(FeedbackTemplate)
        .where(FeedbackTemplate.organization_id == org_id)
        .values(is_default=False)
        .execution_options(synchronize_session="fetch")
    )


async def create_template(
    session: AsyncSession, ctx: UserContext, data: FeedbackTemplateCreate
) -> FeedbackTemplate:
    org_id = require_admin(ctx, TEMPLATE_ADMIN_MESSAGE)
    if data.is_default:
        await _clear_default(session, org_id)
    template = FeedbackTemplate(
        organization_id=org_id,
        name=data.name,
        description=data.description,
        questions=[question.model_dump() for question in data.questions],
        is_default=data.is_default,
    )
    session.add(template)
    await session.flush()
    return template


async def update_template(
    session: AsyncSession, ctx: UserContext, template_id: uuid.UUID, data: FeedbackTemplateCreate
) -> FeedbackTemplate:
    org_id = require_admin(ctx, TEMPLATE_ADMIN_MESSAGE)
    template = await _get_template(session, template_id, org_id)
    if data.is_default and not template.is_default:
        await _clear_default(session, org_id)
    template.name = data.name
    template.description = data.description
    template.questions = [question.model_dump() for question in data.questions]
    template.is_default = data.is_default
    await session.flush()
    return template


async def delete_template(session: AsyncSession, ctx: UserContext, template_id: uuid.UUID) -> None:
    org_id = require_admin(ctx, TEMPLATE_ADMIN_MESSAGE)
    template = await _get_template(session, template_id, org_id)
    if await count_rows(session, FeedbackCampaign, FeedbackCampaign.template_id == template.id):
        raise ConflictError("Cannot delete template that is being used by existing campaigns")
    await session.delete(template)
    await session.flush()


async def set_default_template(
    session: AsyncSession, ctx: UserContext, template_id: uuid.UUID
) -> FeedbackTemplate:
    org_id = require_admin(ctx, TEMPLATE_ADMIN_MESSAGE)
    template = await _get_template(session, template_id, org_id)
    await _clear_default(session, org_id)
    template.is_default = True
    await session.flush()
    return template


async def list_templates(session: AsyncSession, ctx: UserContext) -> list[FeedbackTemplate]:
    org_id = require_organization(ctx, "view feedback templates")
    result = await session.execute(
        select(FeedbackTemplate)
        .where(FeedbackTemplate.organization_id == org_id)
        .order_by(FeedbackTemplate.is_default.desc(), FeedbackTemplate.name)
    )
    return list(result.scalars().all())


async def get_template(session: AsyncSession, ctx: UserContext, template_id: uuid.UUID) -> FeedbackTemplate:
    org_id = require_organization(ctx, "view feedback templates")
    return await _get_template(session, template_id, org_id)


# ── Campaigns ─────────────────────────────────────────────────────────────────


async def _require_manager(
    session: AsyncSession, manager_id: uuid.UUID, target_id: uuid.UUID, message: str
) -> None:
    if not await is_manager_of(session, manager_id, target_id):
        raise AccessDeniedError(message)


async def _get_own_campaign(
    session: AsyncSession, ctx: UserContext, campaign_id: uuid.UUID
) -> FeedbackCampaign:
    result = await session.execute(
        select(FeedbackCampaign).where(
            FeedbackCampaign.id == campaign_id,
            FeedbackCampaign.user_id == ctx.user_id,
            FeedbackCampaign.organization_id == ctx.organization_id,
        )
    )
    campaign = result.scalar_one_or_none()
    if campaign is None:
        raise NotFoundError("Campaign not found or access denied")
    return campaign


async def create_campaign(
    session: AsyncSession, ctx: UserContext, data: FeedbackCampaignCreate
) -> FeedbackCampaign:
    """Open a campaign about one of the caller's (direct or indirect) reports."""
    org_id = require_organization(ctx, "create feedback campaigns")
    manager = await get_current_person(session, ctx)
    target = await get_in_org(
        session, Person, data.target_person_id, org_id, "Target person not found or access denied"
    )
    await _require_manager(
        session,
        manager.id,
        target.id,
        "You must be a manager of the target person to create a feedback campaign",
    )
    if data.template_id:
        await _get_template(session, data.template_id, org_id)

    current = await count_rows(session, FeedbackCampaign, FeedbackCampaign.organization_id == org_id)
    await check_organization_limit(session, org_id, "max_feedback_campaigns", current)

    campaign = FeedbackCampaign(
        organization_id=org_id,
        user_id=ctx.user_id,
        target_person_id=target.id,
        template_id=data.template_id,
        name=data.name,
        start_date=as_utc(data.start_date),
        end_date=as_utc(data.end_date),
        invite_emails=data.invite_emails,
        status="draft",
    )
    session.add(campaign)
    await session.flush()

    await resolve_feedback_360_exceptions(session, org_id, target.id)
    logger.info("Created feedback campaign %s for person %s", campaign.id, target.id)
    return campaign


async def update_campaign(
    session: AsyncSession, ctx: UserContext, campaign_id: uuid.UUID, data: FeedbackCampaignUpdate
) -> FeedbackCampaign:
    org_id = require_organization(ctx, "update feedback campaigns")
    manager = await get_current_person(session, ctx)
    campaign = await _get_own_campaign(session, ctx, campaign_id)
    await _require_manager(
        session,
        manager.id,
        campaign.target_person_id,
        "You must be a manager of the target person to update this feedback campaign",
    )

    values = data.model_dump(exclude_unset=True)
    if values.get("template_id"):
        await _get_template(session, values["template_id"], org_id)
    if values.get("invite_emails") is not None and not values["invite_emails"]:
        raise DomainValidationError("At least one invite email is required")
    for field in ("start_date", "end_date"):
        if field in values:
            if values[field] is None:
                del values[field]
            else:
                values[field] = as_utc(values[field])

    start = values.get("start_date", as_utc(campaign.start_date))
    end = values.get("end_date", as_utc(campaign.end_date))
    if end <= start:
        raise DomainValidationError("End date must be after start date")

    apply_updates(campaign, values)
    await session.flush()
    return campaign


async def delete_campaign(session: AsyncSession, ctx: UserContext, campaign_id: uuid.UUID) -> None:
    require_organization(ctx, "delete feedback campaigns")
    campaign = await _get_own_campaign(session, ctx, campaign_id)
    await session.delete(campaign)
    await session.flush()


async def update_campaign_status(
    session: AsyncSession, ctx: UserContext, campaign_id: uuid.UUID, status: str
) -> FeedbackCampaign:
    require_organization(ctx, "update campaign status")
    campaign = await _get_own_campaign(session, ctx, campaign_id)
    campaign.status = status
    await session.flush()
    return campaign


async def list_campaigns_for_person(
    session: AsyncSession, ctx: UserContext, person_id: uuid.UUID
) -> list[FeedbackCampaign]:
    org_id = require_organization(ctx, "view feedback campaigns")
    manager = await get_current_person(session, ctx)
    await get_in_org(session, Person, person_id, org_id, "Person not found or access denied")
    await _require_manager(
        session,
        manager.id,
        person_id,
        "You must be a manager of this person to view their feedback campaigns",
    )
    result = await session.execute(
        select(FeedbackCampaign)
        .where(FeedbackCampaign.target_person_id == person_id, FeedbackCampaign.organization_id == org_id)
        .options(selectinload(FeedbackCampaign.responses))
        .order_by(FeedbackCampaign.created_at.desc())
    )
    return list(result.scalars().all())


async def get_campaign(session: AsyncSession, ctx: UserContext, campaign_id: uuid.UUID) -> FeedbackCampaign:
    org_id = require_organization(ctx, "view feedback campaigns")
    manager = await get_current_person(session, ctx)
    result = await session.execute(
        select(FeedbackCampaign)
        .where(FeedbackCampaign.id == campaign_id, FeedbackCampaign.organization_id == org_id)
        .options(selectinload(FeedbackCampaign.responses))
    )
    campaign = result.scalar_one_or_none()
    if campaign is None:
        raise NotFoundError("Campaign not found or access denied")
    await _require_manager(
        session,
        manager.id,
        campaign.target_person_id,
        "You must be a manager of this person to view their feedback campaigns",
    )
    return campaign


async def submit_feedback_response(
    session: AsyncSession,
    campaign_id: uuid.UUID,
    email: str,
    responses: dict,
    now: datetime | None = None,
) -> FeedbackResponse:
    """Record one invitee's answers. Callers need not be authenticated users."""
    result = await session.execute(select(FeedbackCampaign).where(FeedbackCampaign.id == campaign_id))
    campaign = result.scalar_one_or_none()
    if campaign is None:
        raise NotFoundError("Campaign not found")

    now = now or utcnow()
    if (
        campaign.status != "active"
        or now < as_utc(campaign.start_date)
        or now > as_utc(campaign.end_date)
    ):
        raise DomainValidationError("Campaign is not accepting responses")

    email = email.strip().lower()
    if email not in (campaign.invite_emails or []):
        raise AccessDeniedError("Your email is not authorized to respond to this campaign")

    existing = await count_rows(
        session,
        FeedbackResponse,
        FeedbackResponse.campaign_id == campaign.id,
        FeedbackResponse.responder_email == email,
    )
    if existing:
        raise ConflictError("You have already submitted feedback for this campaign")

    response = FeedbackResponse(campaign_id=campaign.id, responder_email=email, responses=responses)
    session.add(response)
    await session.flush()
    return response
