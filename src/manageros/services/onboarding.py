"""Onboarding templates and per-person onboarding checklists."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from manageros.auth import UserContext, require_admin, require_organization
from manageros.errors import AccessDeniedError, ConflictError, DomainValidationError, NotFoundError
from manageros.models.db import (
    JobRole,
    OnboardingInstance,
    OnboardingItem,
    OnboardingItemProgress,
    OnboardingPhase,
    OnboardingTemplate,
    Person,
    Team,
    utcnow,
)
from manageros.models.schemas import (
    AssignOnboardingRequest,
    ItemProgressUpdate,
    OnboardingPhaseInput,
    OnboardingTemplateCreate,
    OnboardingTemplateUpdate,
)
from manageros.services.common import apply_updates, as_utc, count_rows, get_in_org

logger = logging.getLogger(__name__)

TEMPLATE_ADMIN_MESSAGE = "Only administrators can manage onboarding templates"
ACTIVE_STATUSES = ("NOT_STARTED", "IN_PROGRESS")
DONE_PROGRESS = ("COMPLETED", "SKIPPED")
STUCK_AFTER_DAYS = 3


# ── Templates ─────────────────────────────────────────────────────────────────


async def _load_template(
    session: AsyncSession, template_id: uuid.UUID, org_id: uuid.UUID, active_only: bool = False
) -> OnboardingTemplate | None:
    stmt = (
        select(OnboardingTemplate)
        .where(OnboardingTemplate.id == template_id, OnboardingTemplate.organization_id == org_id)
        .options(selectinload(OnboardingTemplate.phases).selectinload(OnboardingPhase.items))
        .execution_options(populate_existing=True)
    )
    if active_only:
        stmt = stmt.where(OnboardingTemplate.is_active.is_(True))
    return (await session.execute(stmt)).scalar_one_or_none()


async def _get_template(session: AsyncSession, template_id: uuid.UUID, org_id: uuid.UUID) -> OnboardingTemplate:
    template = await _load_template(session, template_id, org_id)
    if template is None:
        raise NotFoundError("Template not found or access denied")
    return template


async def _check_template_refs(session: AsyncSession, org_id: uuid.UUID, values: dict[str, Any]) -> None:
    if values.get("team_id"):
        await get_in_org(session, Team, values["team_id"], org_id, "Team not found or access denied")
    if values.get("job_role_id"):
        await get_in_org(session, JobRole, values["job_role_id"], org_id, "Job role not found or access denied")


def _build_phases(phases: list[OnboardingPhaseInput]) -> list[OnboardingPhase]:
    return [
        OnboardingPhase(
            name=phase.name,
            description=phase.description,
            sort_order=phase_index,
            items=[
                OnboardingItem(sort_order=item_index, **item.model_dump())
                for item_index, item in enumerate(phase.items)
            ],
        )
        for phase_index, phase in enumerate(phases)
    ]


async def _clear_default(session: AsyncSession, org_id: uuid.UUID) -> None:
    await session.execute(
        update(OnboardingTemplate)
        .where(OnboardingTemplate.organization_id == org_id)
        .values(is_default=False)
        .execution_options(synchronize_session="fetch")
    )


async def create_template(
    session: AsyncSession, ctx: UserContext, data: OnboardingTemplateCreate
) -> OnboardingTemplate:
    org_id = require_admin(ctx, TEMPLATE_ADMIN_MESSAGE)
    values = data.model_dump(exclude={"phases"})
    await _check_template_refs(session, org_id, values)
    if data.is_default:
        await _clear_default(session, org_id)

    template = OnboardingTemplate(organization_id=org_id, phases=_build_phases(data.phases), **values)
    session.add(template)
    await session.flush()
    logger.info("Created onboarding template %s", template.id)
    return await _get_template(session, template.id, org_id)


async def update_template(
    session: AsyncSession, ctx: UserContext, template_id: uuid.UUID, data: OnboardingTemplateUpdate
) -> OnboardingTemplate:
    org_id = require_admin(ctx, TEMPLATE_ADMIN_MESSAGE)
    template = await _get_template(session, template_id, org_id)

    values = data.model_dump(exclude_unset=True, exclude={"phases"})
    await _check_template_refs(session, org_id, values)
    if values.get("is_default") and not template.is_default:
        await _clear_default(session, org_id)
    apply_updates(template, values)

    if data.phases is not None:
        template.phases = _build_phases(data.phases)

    await session.flush()
    return await _get_template(session, template.id, org_id)


async def delete_template(session: AsyncSession, ctx: UserContext, template_id: uuid.UUID) -> None:
    org_id = require_admin(ctx, TEMPLATE_ADMIN_MESSAGE)
    template = await _get_template(session, template_id, org_id)
    if await count_rows(session, OnboardingInstance, OnboardingInstance.template_id == template.id):
        raise ConflictError(
            "Cannot delete template that has active onboarding instances. Deactivate it instead."
        )
    await session.delete(template)
    await session.flush()


async def list_templates(
    session: AsyncSession, ctx: UserContext, include_inactive: bool = False
) -> list[OnboardingTemplate]:
    org_id = require_organization(ctx, "view templates")
    stmt = (
        select(OnboardingTemplate)
        .where(OnboardingTemplate.organization_id == org_id)
        .options(selectinload(OnboardingTemplate.phases).selectinload(OnboardingPhase.items))
        .order_by(OnboardingTemplate.is_default.desc(), OnboardingTemplate.name)
    )
    if not include_inactive:
        stmt = stmt.where(OnboardingTemplate.is_active.is_(True))
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_template(session: AsyncSession, ctx: UserContext, template_id: uuid.UUID) -> OnboardingTemplate:
    org_id = require_organization(ctx, "view templates")
    return await _get_template(session, template_id, org_id)


# ── Instances ─────────────────────────────────────────────────────────────────


def _instance_query():
    return select(OnboardingInstance).options(
        selectinload(OnboardingInstance.progress).selectinload(OnboardingItemProgress.item)
    )


async def _get_instance(session: AsyncSession, instance_id: uuid.UUID, org_id: uuid.UUID) -> OnboardingInstance:
    result = await session.execute(
        _instance_query()
        .where(OnboardingInstance.id == instance_id, OnboardingInstance.organization_id == org_id)
        .execution_options(populate_existing=True)
    )
    instance = result.scalar_one_or_none()
    if instance is None:
        raise NotFoundError("Onboarding instance not found or access denied")
    return instance


async def assign_onboarding(
    session: AsyncSession, ctx: UserContext, data: AssignOnboardingRequest
) -> OnboardingInstance:
    """Start a template for a person with one PENDING progress row per item.

    Raises:
        AccessDeniedError: if the caller is neither the person's manager nor an admin.
        NotFoundError: for a person, template, manager or mentor outside the org.
        DomainValidationError: if the template has no items.
        ConflictError: if the person already runs this template.
    """
    org_id = require_organization(ctx, "assign onboarding")
    person = await get_in_org(session, Person, data.person_id, org_id, "Person not found or access denied")
    is_persons_manager = ctx.person_id is not None and person.manager_id == ctx.person_id
    if not is_persons_manager and not ctx.is_admin_or_owner:
        raise AccessDeniedError("Only the person's manager or an admin can assign onboarding")

    template = await _load_template(session, data.template_id, org_id, active_only=True)
    if template is None:
        raise NotFoundError("Template not found, inactive, or access denied")
    items = [item for phase in template.phases for item in phase.items]
    if not items:
        raise DomainValidationError(
            "Cannot assign this template - it has no items. Please add items to the template first."
        )

    existing = await count_rows(
        session,
        OnboardingInstance,
        OnboardingInstance.person_id == person.id,
        OnboardingInstance.template_id == template.id,
        OnboardingInstance.status.in_(ACTIVE_STATUSES),
    )
    if existing:
        raise ConflictError("Person already has an active onboarding with this template")

    if data.manager_id:
        await get_in_org(session, Person, data.manager_id, org_id, "Manager not found or access denied")
    if data.mentor_id:
        await get_in_org(session, Person, data.mentor_id, org_id, "Mentor not found or access denied")

    instance = OnboardingInstance(
        organization_id=org_id,
        template_id=template.id,
        person_id=person.id,
        manager_id=data.manager_id or person.manager_id,
        mentor_id=data.mentor_id,
        status="NOT_STARTED",
        progress=[OnboardingItemProgress(item_id=item.id, status="PENDING") for item in items],
    )
    session.add(instance)
    await session.flush()
    logger.info("Assigned onboarding template %s to person %s", template.id, person.id)
    return await _get_instance(session, instance.id, org_id)


async def update_item_progress(
    session: AsyncSession,
    ctx: UserContext,
    progress_id: uuid.UUID,
    data: ItemProgressUpdate,
    now: datetime | None = None,
) -> OnboardingItemProgress:
    org_id = require_organization(ctx, "update onboarding progress")
    result = await session.execute(
        select(OnboardingItemProgress)
        .join(OnboardingInstance, OnboardingInstance.id == OnboardingItemProgress.instance_id)
        .where(OnboardingItemProgress.id == progress_id, OnboardingInstance.organization_id == org_id)
        .options(
            selectinload(OnboardingItemProgress.instance),
            selectinload(OnboardingItemProgress.item),
        )
    )
    progress = result.scalar_one_or_none()
    if progress is None:
        raise NotFoundError("Progress record not found or access denied")

    instance = progress.instance
    me = ctx.person_id
    is_manager = me is not None and instance.manager_id == me
    is_mentor = me is not None and instance.mentor_id == me
    is_onboardee = me is not None and instance.person_id == me
    if progress.item.type == "CHECKPOINT":
        if not (is_manager or is_mentor or ctx.is_admin_or_owner):
            raise AccessDeniedError("Only the manager or mentor can complete checkpoint items")
    elif not (is_onboardee or is_manager or is_mentor or ctx.is_admin_or_owner):
        raise AccessDeniedError("You do not have permission to update this item")

    now = now or utcnow()
    progress.status = data.status
    progress.notes = data.notes
    if data.status in DONE_PROGRESS:
        progress.completed_at = now
        progress.completed_by_id = ctx.user_id
    else:
        progress.completed_at = None
        progress.completed_by_id = None
    progress.updated_at = now

    if instance.status == "NOT_STARTED" and data.status != "PENDING":
        instance.status = "IN_PROGRESS"
        instance.started_at = now
    await session.flush()
    return progress


async def _get_managed_instance(
    session: AsyncSession, ctx: UserContext, instance_id: uuid.UUID, action: str
) -> OnboardingInstance:
    org_id = require_organization(ctx, f"{action} onboarding")
    instance = await _get_instance(session, instance_id, org_id)
    is_manager = ctx.person_id is not None and instance.manager_id == ctx.person_id
    if not is_manager and not ctx.is_admin_or_owner:
        raise AccessDeniedError(f"Only the onboarding manager or an admin can {action} this onboarding")
    return instance


async def complete_onboarding(
    session: AsyncSession, ctx: UserContext, instance_id: uuid.UUID, now: datetime | None = None
) -> OnboardingInstance:
    instance = await _get_managed_instance(session, ctx, instance_id, "complete")
    incomplete = [
        progress
        for progress in instance.progress
        if progress.item.is_required and progress.status not in DONE_PROGRESS
    ]
    if incomplete:
        raise DomainValidationError(
            f"Cannot complete onboarding: {len(incomplete)} required items are not complete"
        )
    instance.status = "COMPLETED"
    instance.completed_at = now or utcnow()
    await session.flush()
    return instance


async def cancel_onboarding(session: AsyncSession, ctx: UserContext, instance_id: uuid.UUID) -> OnboardingInstance:
    instance = await _get_managed_instance(session, ctx, instance_id, "cancel")
    instance.status = "CANCELLED"
    await session.flush()
    return instance


async def get_instance(session: AsyncSession, ctx: UserContext, instance_id: uuid.UUID) -> OnboardingInstance:
    org_id = require_organization(ctx, "view onboarding")
    return await _get_instance(session, instance_id, org_id)


async def list_instances(
    session: AsyncSession,
    ctx: UserContext,
    status: list[str] | None = None,
    person_id: uuid.UUID | None = None,
    manager_id: uuid.UUID | None = None,
) -> list[OnboardingInstance]:
    org_id = require_organization(ctx, "view onboarding")
    stmt = _instance_query().where(OnboardingInstance.organization_id == org_id)
    if status:
        stmt = stmt.where(OnboardingInstance.status.in_(status))
    if person_id:
        stmt = stmt.where(OnboardingInstance.person_id == person_id)
    if manager_id:
        stmt = stmt.where(OnboardingInstance.manager_id == manager_id)
    result = await session.execute(stmt.order_by(OnboardingInstance.created_at.desc()))
    return list(result.scalars().all())


async def get_my_onboarding(session: AsyncSession, ctx: UserContext) -> OnboardingInstance | None:
    """The caller's most recent active onboarding, if any."""
    require_organization(ctx, "view onboarding")
    if ctx.person_id is None:
        return None
    result = await session.execute(
        _instance_query()
        .where(
            OnboardingInstance.person_id == ctx.person_id,
            OnboardingInstance.status.in_(ACTIVE_STATUSES),
        )
        .order_by(OnboardingInstance.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


# ── Progress ──────────────────────────────────────────────────────────────────


def calculate_progress(instance: OnboardingInstance) -> dict[str, int]:
    total = len(instance.progress)
    completed = sum(1 for p in instance.progress if p.status in DONE_PROGRESS)
    required = [p for p in instance.progress if p.item.is_required]
    return {
        "total": total,
        "completed": completed,
        "percent": round(completed / total * 100) if total else 0,
        "required_total": len(required),
        "required_completed": sum(1 for p in required if p.status in DONE_PROGRESS),
    }


def last_activity(instance: OnboardingInstance) -> datetime:
    touched = [as_utc(p.updated_at) for p in instance.progress if p.status != "PENDING" and p.updated_at]
    return max(touched) if touched else as_utc(instance.created_at)


def is_stuck(instance: OnboardingInstance, now: datetime | None = None, days: int = STUCK_AFTER_DAYS) -> bool:
    """True when an in-progress onboarding has seen no activity for ``days``."""
    if instance.status != "IN_PROGRESS":
        return False
    progress = calculate_progress(instance)
    if progress["completed"] >= progress["total"]:
        return False
    now = now or utcnow()
    return (now - last_activity(instance)).days >= days


async def get_onboarding_stats(
    session: AsyncSession, ctx: UserContext, now: datetime | None = None
) -> dict[str, Any]:
    org_id = require_organization(ctx, "view onboarding")
    now = now or utcnow()
    in_org = OnboardingInstance.organization_id == org_id

    result = await session.execute(
        select(OnboardingInstance.status, func.count()).where(in_org).group_by(OnboardingInstance.status)
    )
    by_status = {status: int(count) for status, count in result.all()}
    completed_recently = await count_rows(
        session,
        OnboardingInstance,
        in_org,
        OnboardingInstance.status == "COMPLETED",
        OnboardingInstance.completed_at >= now - timedelta(days=30),
    )
    return {
        "total_active": sum(by_status.get(status, 0) for status in ACTIVE_STATUSES),
        "in_progress": by_status.get("IN_PROGRESS", 0),
        "completed_last_30_days": completed_recently,
        "by_status": by_status,
    }
