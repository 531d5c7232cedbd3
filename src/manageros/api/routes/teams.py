"""Team API routes."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from manageros.api.deps import get_current_user, get_db
from manageros.auth import UserContext
from manageros.models.schemas import TeamCreate, TeamResponse, TeamUpdate
from manageros.services import teams

router = APIRouter()


@router.get("/teams", response_model=list[TeamResponse])
async def list_teams(
    search: str | None = None,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await teams.list_teams(session, ctx, search=search)


@router.post("/teams", response_model=TeamResponse, status_code=201)
async def create_team(
    data: TeamCreate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await teams.create_team(session, ctx, data)


@router.get("/teams/hierarchy")
async def get_team_hierarchy(
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await teams.get_team_hierarchy(session, ctx)


@router.get("/teams/{team_id}", response_model=TeamResponse)
async def get_team(
    team_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await teams.get_team(session, ctx, team_id)


@router.patch("/teams/{team_id}", response_model=TeamResponse)
async def update_team(
    team_id: uuid.UUID,
    data: TeamUpdate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await teams.update_team(session, ctx, team_id, data)


@router.delete("/teams/{team_id}", status_code=204)
async def delete_team(
    team_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    await teams.delete_team(session, ctx, team_id)
