"""Caller identity resolved for each request or tool call."""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from manageros.errors import AccessDeniedError
from manageros.models.db import OrganizationMember, User


@dataclass
class UserContext:
    """The authenticated user plus their tenant, role and linked person."""

    user_id: uuid.UUID
    email: str
    name: str
    organization_id: uuid.UUID | None = None
    person_id: uuid.UUID | None = None
    role: str | None = None  # "admin" | "owner" | "user"

    @property
    def is_admin_or_owner(self) -> bool:
        return self.role in ("admin", "owner")

    def as_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "email": self.email,
            "name": self.name,
            "organization_id": self.organization_id,
            "person_id": self.person_id,
            "role": self.role,
        }


async def build_user_context(session: AsyncSession, user: User) -> UserContext:
    """Load the membership for ``user`` and build its context."""
    result = await session.execute(
        select(OrganizationMember).where(OrganizationMember.user_id == user.id)
    )
    membership = result.scalar_one_or_none()
    return UserContext(
        user_id=user.id,
        email=user.email,
        name=user.name,
        organization_id=membership.organization_id if membership else None,
        person_id=user.person_id,
        role=membership.role if membership else None,
    )


def require_organization(ctx: UserContext, action: str) -> uuid.UUID:
    """Return the caller's organization id or refuse the action."""
    if ctx.organization_id is None:
        raise AccessDeniedError(f"User must belong to an organization to {action}")
    return ctx.organization_id


def require_admin(ctx: UserContext, message: str) -> uuid.UUID:
    """Like ``require_organization`` but also demands an admin/owner role."""
    if not ctx.is_admin_or_owner:
        raise AccessDeniedError(message)
    if ctx.organization_id is None:
        raise AccessDeniedError("User must belong to an organization")
    return ctx.organization_id
