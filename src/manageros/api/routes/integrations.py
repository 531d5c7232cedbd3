"""Organization- and user-level integration API routes."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from manageros.api.deps import get_current_user, get_db
from manageros.auth import UserContext
from manageros.models.schemas import (
    IntegrationCreate,
    IntegrationResponse,
    IntegrationTestResponse,
    IntegrationUpdate,
)
from manageros.services import integrations

router = APIRouter()


@router.get("/integrations/{scope}", response_model=list[IntegrationResponse])
async def list_integrations(
    scope: str,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    """List ``organization`` or ``user`` integrations."""
    return await integrations.list_integrations(session, ctx, _scope(scope))


@router.post("/integrations/{scope}", response_model=IntegrationResponse, status_code=201)
async def create_integration(
    scope: str,
    data: IntegrationCreate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    """Create an integration; the connection is tested before it is kept."""
    return await integrations.create_integration(session, ctx, data, scope=_scope(scope))


@router.patch("/integrations/{scope}/{integration_id}", response_model=IntegrationResponse)
async def update_integration(
    scope: str,
    integration_id: uuid.UUID,
    data: IntegrationUpdate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await integrations.update_integration(session, ctx, integration_id, data, scope=_scope(scope))


@router.delete("/integrations/{scope}/{integration_id}", status_code=204)
async def delete_integration(
    scope: str,
    integration_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    await integrations.delete_integration(session, ctx, integration_id, scope=_scope(scope))


@router.post("/integrations/{scope}/{integration_id}/test", response_model=IntegrationTestResponse)
async def test_integration(
    scope: str,
    integration_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await integrations.test_integration(session, ctx, integration_id, scope=_scope(scope))


def _scope(value: str) -> str:
    if value not in ("organization", "user"):
        raise HTTPException(status_code=404, detail="Unknown integration scope")
    return value
