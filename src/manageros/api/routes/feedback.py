"""Feedback notes, feedback templates and 360 campaign API routes."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from manageros.api.deps import get_current_user, get_db
from manageros.auth import UserContext
from manageros.models.schemas import (
    CampaignAnswerResponse,
    CampaignStatusUpdate,
    FeedbackCampaignCreate,
    FeedbackCampaignDetail,
    FeedbackCampaignResponse,
    FeedbackCampaignUpdate,
    FeedbackCreate,
    FeedbackResponse,
    FeedbackResponseSubmit,
    FeedbackTemplateCreate,
    FeedbackTemplateResponse,
)
from manageros.services import feedback, feedback_campaigns

router = APIRouter()


# ── Feedback notes ────────────────────────────────────────────────────────────


@router.get("/feedback", response_model=list[FeedbackResponse])
async def list_feedback(
    about_id: uuid.UUID | None = None,
    kind: str | None = Query(None, pattern="^(praise|concern|note)$"),
    limit: int | None = Query(None, ge=1, le=500),
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await feedback.list_feedback(session, ctx, about_id=about_id, kind=kind, limit=limit)


@router.post("/feedback", response_model=FeedbackResponse, status_code=201)
async def create_feedback(
    data: FeedbackCreate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await feedback.create_feedback(session, ctx, data)


@router.put("/feedback/{feedback_id}", response_model=FeedbackResponse)
async def update_feedback(
    feedback_id: uuid.UUID,
    data: FeedbackCreate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await feedback.update_feedback(session, ctx, feedback_id, data)


@router.delete("/feedback/{feedback_id}", status_code=204)
async def delete_feedback(
    feedback_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    await feedback.delete_feedback(session, ctx, feedback_id)


@router.get("/people/{person_id}/feedback", response_model=list[FeedbackResponse])
async def feedback_for_person(
    person_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    """Public feedback about a person plus the caller's private notes."""
    return await feedback.list_feedback_for_person(session, ctx, person_id)


# ── Templates ─────────────────────────────────────────────────────────────────


@router.get("/feedback-templates", response_model=list[FeedbackTemplateResponse])
async def list_templates(
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await feedback_campaigns.list_templates(session, ctx)


@router.post("/feedback-templates", response_model=FeedbackTemplateResponse, status_code=201)
async def create_template(
    data: FeedbackTemplateCreate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await feedback_campaigns.create_template(session, ctx, data)


@router.get("/feedback-templates/{template_id}", response_model=FeedbackTemplateResponse)
async def get_template(
    template_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await feedback_campaigns.get_template(session, ctx, template_id)


@router.put("/feedback-templates/{template_id}", response_model=FeedbackTemplateResponse)
async def update_template(
    template_id: uuid.UUID,
    data: FeedbackTemplateCreate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await feedback_campaigns.update_template(session, ctx, template_id, data)


@router.post("/feedback-templates/{template_id}/default", response_model=FeedbackTemplateResponse)
async def set_default_template(
    template_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await feedback_campaigns.set_default_template(session, ctx, template_id)


@router.delete("/feedback-templates/{template_id}", status_code=204)
async def delete_template(
    template_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    await feedback_campaigns.delete_template(session, ctx, template_id)


# ── Campaigns ─────────────────────────────────────────────────────────────────


@router.post("/feedback-campaigns", response_model=FeedbackCampaignResponse, status_code=201)
async def create_campaign(
    data: FeedbackCampaignCreate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await feedback_campaigns.create_campaign(session, ctx, data)


@router.get("/feedback-campaigns/{campaign_id}", response_model=FeedbackCampaignDetail)
async def get_campaign(
    campaign_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await feedback_campaigns.get_campaign(session, ctx, campaign_id)


@router.patch("/feedback-campaigns/{campaign_id}", response_model=FeedbackCampaignResponse)
async def update_campaign(
    campaign_id: uuid.UUID,
    data: FeedbackCampaignUpdate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await feedback_campaigns.update_campaign(session, ctx, campaign_id, data)


@router.patch("/feedback-campaigns/{campaign_id}/status", response_model=FeedbackCampaignResponse)
async def update_campaign_status(
    campaign_id: uuid.UUID,
    data: CampaignStatusUpdate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await feedback_campaigns.update_campaign_status(session, ctx, campaign_id, data.status)


@router.delete("/feedback-campaigns/{campaign_id}", status_code=204)
async def delete_campaign(
    campaign_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    await feedback_campaigns.delete_campaign(session, ctx, campaign_id)


@router.post(
    "/feedback-campaigns/{campaign_id}/responses",
    response_model=CampaignAnswerResponse,
    status_code=201,
)
async def submit_response(
    campaign_id: uuid.UUID,
    data: FeedbackResponseSubmit,
    session: AsyncSession = Depends(get_db),
):
    """Public endpoint: invitees answer by email, no sign-in required."""
    return await feedback_campaigns.submit_feedback_response(
        session, campaign_id, data.email, data.responses
    )


@router.get("/people/{person_id}/feedback-campaigns", response_model=list[FeedbackCampaignDetail])
async def campaigns_for_person(
    person_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await feedback_campaigns.list_campaigns_for_person(session, ctx, person_id)
