"""Onboarding template, instance and progress API routes."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from manageros.api.deps import get_current_user, get_db
from manageros.auth import UserContext
from manageros.models.db import OnboardingInstance
from manageros.models.schemas import (
    AssignOnboardingRequest,
    ItemProgressResponse,
    ItemProgressUpdate,
    OnboardingInstanceResponse,
    OnboardingTemplateCreate,
    OnboardingTemplateResponse,
    OnboardingTemplateUpdate,
)
from manageros.services import onboarding

router = APIRouter()


def _instance_body(instance: OnboardingInstance) -> dict:
    body = OnboardingInstanceResponse.model_validate(instance).model_dump()
    body["summary"] = onboarding.calculate_progress(instance)
    body["is_stuck"] = onboarding.is_stuck(instance)
    return body


# ── Templates ─────────────────────────────────────────────────────────────────


@router.get("/onboarding/templates", response_model=list[OnboardingTemplateResponse])
async def list_templates(
    include_inactive: bool = False,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await onboarding.list_templates(session, ctx, include_inactive=include_inactive)


@router.post("/onboarding/templates", response_model=OnboardingTemplateResponse, status_code=201)
async def create_template(
    data: OnboardingTemplateCreate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await onboarding.create_template(session, ctx, data)


@router.get("/onboarding/templates/{template_id}", response_model=OnboardingTemplateResponse)
async def get_template(
    template_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await onboarding.get_template(session, ctx, template_id)


@router.patch("/onboarding/templates/{template_id}", response_model=OnboardingTemplateResponse)
async def update_template(
    template_id: uuid.UUID,
    data: OnboardingTemplateUpdate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await onboarding.update_template(session, ctx, template_id, data)


@router.delete("/onboarding/templates/{template_id}", status_code=204)
async def delete_template(
    template_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    await onboarding.delete_template(session, ctx, template_id)


# ── Instances ─────────────────────────────────────────────────────────────────


@router.get("/onboarding/instances")
async def list_instances(
    status: list[str] | None = Query(None),
    person_id: uuid.UUID | None = None,
    manager_id: uuid.UUID | None = None,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    """Instances with a progress summary and a stuck flag."""
    found = await onboarding.list_instances(
        session, ctx, status=status, person_id=person_id, manager_id=manager_id
    )
    return [_instance_body(instance) for instance in found]


@router.post("/onboarding/instances", status_code=201)
async def assign_onboarding(
    data: AssignOnboardingRequest,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    instance = await onboarding.assign_onboarding(session, ctx, data)
    return _instance_body(instance)


@router.get("/onboarding/me")
async def my_onboarding(
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    instance = await onboarding.get_my_onboarding(session, ctx)
    return _instance_body(instance) if instance else None


@router.get("/onboarding/stats")
async def onboarding_stats(
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await onboarding.get_onboarding_stats(session, ctx)


@router.get("/onboarding/instances/{instance_id}")
async def get_instance(
    instance_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return _instance_body(await onboarding.get_instance(session, ctx, instance_id))


@router.post("/onboarding/instances/{instance_id}/complete")
async def complete_onboarding(
    instance_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return _instance_body(await onboarding.complete_onboarding(session, ctx, instance_id))


@router.post("/onboarding/instances/{instance_id}/cancel")
async def cancel_onboarding(
    instance_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return _instance_body(await onboarding.cancel_onboarding(session, ctx, instance_id))


@router.patch("/onboarding/progress/{progress_id}", response_model=ItemProgressResponse)
async def update_progress(
    progress_id: uuid.UUID,
    data: ItemProgressUpdate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await onboarding.update_item_progress(session, ctx, progress_id, data)
