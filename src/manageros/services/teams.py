"""Teams and the team hierarchy."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from manageros.auth import UserContext, require_admin, require_organization
from manageros.errors import DomainValidationError
from manageros.models.db import Initiative, Person, Team
from manageros.models.schemas import TeamCreate, TeamUpdate
from manageros.services.common import apply_updates, count_rows, get_in_org
from manageros.services.limits import check_organization_limit

logger = logging.getLogger(__name__)


async def _is_descendant(session: AsyncSession, ancestor_id: uuid.UUID, team_id: uuid.UUID) -> bool:
    """True if ``team_id`` sits below ``ancestor_id`` in the parent chain."""
    seen: set[uuid.UUID] = set()
    current: uuid.UUID | None = team_id
    while current is not None and current not in seen:
        seen.add(current)
        result = await session.execute(select(Team.parent_id).where(Team.id == current))
        current = result.scalar_one_or_none()
        if current == ancestor_id:
            return True
    return False


async def _check_parent(
    session: AsyncSession, org_id: uuid.UUID, parent_id: uuid.UUID, team_id: uuid.UUID | None = None
) -> None:
    if team_id is not None and parent_id == team_id:
        raise DomainValidationError("Team cannot be its own parent")
    await get_in_org(session, Team, parent_id, org_id, "Parent team not found or access denied")
    if team_id is not None and await _is_descendant(session, team_id, parent_id):
        raise DomainValidationError("Team cannot be moved under one of its own child teams")


async def create_team(session: AsyncSession, ctx: UserContext, data: TeamCreate) -> Team:
    org_id = require_admin(ctx, "Only organization admins or owners can create teams")
    if data.parent_id:
        await _check_parent(session, org_id, data.parent_id)

    current = await count_rows(session, Team, Team.organization_id == org_id)
    await check_organization_limit(session, org_id, "max_teams", current)

    team = Team(organization_id=org_id, **data.model_dump())
    session.add(team)
    await session.flush()
    logger.info("Created team %s (%s)", team.name, team.id)
    return team


async def update_team(
    session: AsyncSession, ctx: UserContext, team_id: uuid.UUID, data: TeamUpdate
) -> Team:
    org_id = require_admin(ctx, "Only organization admins or owners can update teams")
    team = await get_in_org(session, Team, team_id, org_id, "Team not found or access denied")
    values = data.model_dump(exclude_unset=True)
    if values.get("parent_id"):
        await _check_parent(session, org_id, values["parent_id"], team.id)
    apply_updates(team, values)
    await session.flush()
    return team


async def delete_team(session: AsyncSession, ctx: UserContext, team_id: uuid.UUID) -> None:
    org_id = require_admin(ctx, "Only organization admins or owners can delete teams")
    team = await get_in_org(session, Team, team_id, org_id, "Team not found or access denied")

    members = await count_rows(session, Person, Person.team_id == team.id)
    if members:
        raise DomainValidationError(
            f'Cannot delete team "{team.name}" because it has {members} member(s). '
            "Please reassign or remove team members first."
        )
    initiatives = await count_rows(session, Initiative, Initiative.team_id == team.id)
    if initiatives:
        raise DomainValidationError(
            f'Cannot delete team "{team.name}" because it has {initiatives} initiative(s). '
            "Please reassign or delete initiatives first."
        )
    children = await count_rows(session, Team, Team.parent_id == team.id)
    if children:
        raise DomainValidationError(
            f'Cannot delete team "{team.name}" because it has {children} child team(s). '
            "Please delete or reassign child teams first."
        )

    await session.delete(team)
    await session.flush()


async def get_team(session: AsyncSession, ctx: UserContext, team_id: uuid.UUID) -> Team:
    org_id = require_organization(ctx, "view teams")
    return await get_in_org(session, Team, team_id, org_id, "Team not found or access denied")


async def list_teams(session: AsyncSession, ctx: UserContext, search: str | None = None) -> list[Team]:
    org_id = require_organization(ctx, "view teams")
    stmt = select(Team).where(Team.organization_id == org_id)
    if search:
        stmt = stmt.where(Team.name.ilike(f"%{search}%"))
    result = await session.execute(stmt.order_by(Team.name))
    return list(result.scalars().all())


async def get_team_hierarchy(session: AsyncSession, ctx: UserContext) -> list[dict[str, Any]]:
    """Nested team tree; each node carries its member count."""
    org_id = require_organization(ctx, "view teams")
    result = await session.execute(
        select(Team, func.count(Person.id))
        .outerjoin(Person, Person.team_id == Team.id)
        .where(Team.organization_id == org_id)
        .group_by(Team.id)
        .order_by(Team.name)
    )
    rows = result.all()

    nodes = {
        team.id: {
            "id": team.id,
            "name": team.name,
            "description": team.description,
            "member_count": int(count),
            "children": [],
        }
        for team, count in rows
    }
    roots = []
    for team, _ in rows:
        parent = nodes.get(team.parent_id) if team.parent_id else None
        if parent is None:
            roots.append(nodes[team.id])
        else:
            parent["children"].append(nodes[team.id])
    return roots
