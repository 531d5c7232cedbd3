"""Organization membership: roles and user-to-person links."""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from manageros.auth import UserContext, require_admin, require_organization
from manageros.errors import AccessDeniedError, ConflictError, NotFoundError
from manageros.models.db import OrganizationMember, Person, User
from manageros.services.common import get_in_org


async def list_members(session: AsyncSession, ctx: UserContext) -> list[dict[str, Any]]:
    org_id = require_organization(ctx, "view members")
    result = await session.execute(
        select(User, OrganizationMember.role)
        .join(OrganizationMember, OrganizationMember.user_id == User.id)
        .where(OrganizationMember.organization_id == org_id)
        .order_by(User.name)
    )
    return [
        {
            "user_id": user.id,
            "email": user.email,
            "name": user.name,
            "role": role,
            "person_id": user.person_id,
        }
        for user, role in result.all()
    ]


async def _get_member(session: AsyncSession, org_id: uuid.UUID, user_id: uuid.UUID) -> OrganizationMember:
    result = await session.execute(
        select(OrganizationMember).where(
            OrganizationMember.organization_id == org_id,
            OrganizationMember.user_id == user_id,
        )
    )
    member = result.scalar_one_or_none()
    if member is None:
        raise NotFoundError("Member not found or access denied")
    return member


async def update_member_role(
    session: AsyncSession, ctx: UserContext, user_id: uuid.UUID, role: str
) -> OrganizationMember:
    org_id = require_admin(ctx, "Only organization admins can change member roles")
    member = await _get_member(session, org_id, user_id)
    if member.role == "owner":
        raise AccessDeniedError("Cannot change the role of the organization owner")
    member.role = role
    await session.flush()
    return member


async def link_person(
    session: AsyncSession, ctx: UserContext, user_id: uuid.UUID, person_id: uuid.UUID
) -> User:
    org_id = require_admin(ctx, "Only organization admins can link users to persons")
    await _get_member(session, org_id, user_id)
    await get_in_org(session, Person, person_id, org_id, "Person not found or access denied")

    result = await session.execute(
        select(User).where(User.person_id == person_id, User.id != user_id)
    )
    if result.scalar_one_or_none() is not None:
        raise ConflictError("Person is already linked to another user")

    user = await session.get(User, user_id)
    user.person_id = person_id
    await session.flush()
    return user


async def unlink_person(session: AsyncSession, ctx: UserContext, user_id: uuid.UUID) -> User:
    org_id = require_admin(ctx, "Only organization admins can unlink users from persons")
    await _get_member(session, org_id, user_id)
    user = await session.get(User, user_id)
    user.person_id = None
    await session.flush()
    return user
