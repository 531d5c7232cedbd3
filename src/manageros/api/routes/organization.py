"""Current user and organization membership API routes."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from manageros.api.deps import get_current_user, get_db
from manageros.auth import UserContext
from manageros.models.schemas import (
    LinkPersonRequest,
    MemberResponse,
    MemberRoleUpdate,
    UserContextResponse,
)
from manageros.services import organization

router = APIRouter()


@router.get("/me", response_model=UserContextResponse)
async def get_me(ctx: UserContext = Depends(get_current_user)):
    """Return the authenticated user's context."""
    return ctx.as_dict()


@router.get("/organization/members", response_model=list[MemberResponse])
async def list_members(
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await organization.list_members(session, ctx)


@router.patch("/organization/members/{user_id}")
async def update_member_role(
    user_id: uuid.UUID,
    data: MemberRoleUpdate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    member = await organization.update_member_role(session, ctx, user_id, data.role)
    return {"user_id": member.user_id, "role": member.role}


@router.post("/organization/members/{user_id}/link-person")
async def link_person(
    user_id: uuid.UUID,
    data: LinkPersonRequest,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    user = await organization.link_person(session, ctx, user_id, data.person_id)
    return {"user_id": user.id, "person_id": user.person_id}


@router.delete("/organization/members/{user_id}/link-person")
async def unlink_person(
    user_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    user = await organization.unlink_person(session, ctx, user_id)
    return {"user_id": user.id, "person_id": user.person_id}
