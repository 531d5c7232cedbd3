"""Tolerance rule and exception API routes."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from manageros.api.deps import get_current_user, get_db
from manageros.auth import UserContext, require_admin
from manageros.models.schemas import (
    ToleranceExceptionResponse,
    ToleranceRuleCreate,
    ToleranceRuleResponse,
    ToleranceRuleUpdate,
)
from manageros.services import tolerance_rules

router = APIRouter()


@router.get("/tolerance-rules", response_model=list[ToleranceRuleResponse])
async def list_rules(
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await tolerance_rules.list_rules(session, ctx)


@router.post("/tolerance-rules", response_model=ToleranceRuleResponse, status_code=201)
async def create_rule(
    data: ToleranceRuleCreate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await tolerance_rules.create_rule(session, ctx, data)


@router.post("/tolerance-rules/evaluate")
async def evaluate_rules(
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    """Evaluate every enabled rule of the caller's organization now."""
    org_id = require_admin(ctx, "Only administrators can evaluate tolerance rules")
    return await tolerance_rules.evaluate_rules_for_organization(session, org_id)


@router.get("/tolerance-rules/{rule_id}", response_model=ToleranceRuleResponse)
async def get_rule(
    rule_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await tolerance_rules.get_rule(session, ctx, rule_id)


@router.patch("/tolerance-rules/{rule_id}", response_model=ToleranceRuleResponse)
async def update_rule(
    rule_id: uuid.UUID,
    data: ToleranceRuleUpdate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await tolerance_rules.update_rule(session, ctx, rule_id, data)


@router.delete("/tolerance-rules/{rule_id}", status_code=204)
async def delete_rule(
    rule_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    await tolerance_rules.delete_rule(session, ctx, rule_id)


# ── Exceptions ────────────────────────────────────────────────────────────────


@router.get("/exceptions", response_model=list[ToleranceExceptionResponse])
async def list_exceptions(
    status: str | None = Query(None, pattern="^(active|acknowledged|ignored|resolved)$"),
    severity: str | None = Query(None, pattern="^(warning|urgent)$"),
    rule_id: uuid.UUID | None = None,
    entity_type: str | None = None,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await tolerance_rules.list_exceptions(
        session, ctx, status=status, severity=severity, rule_id=rule_id, entity_type=entity_type
    )


@router.get("/exceptions/{exception_id}", response_model=ToleranceExceptionResponse)
async def get_exception(
    exception_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await tolerance_rules.get_exception(session, ctx, exception_id)


@router.post("/exceptions/{exception_id}/acknowledge", response_model=ToleranceExceptionResponse)
async def acknowledge_exception(
    exception_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await tolerance_rules.acknowledge_exception(session, ctx, exception_id)


@router.post("/exceptions/{exception_id}/ignore", response_model=ToleranceExceptionResponse)
async def ignore_exception(
    exception_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await tolerance_rules.ignore_exception(session, ctx, exception_id)


@router.post("/exceptions/{exception_id}/resolve", response_model=ToleranceExceptionResponse)
async def resolve_exception(
    exception_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await tolerance_rules.resolve_exception(session, ctx, exception_id)
