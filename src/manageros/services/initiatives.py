"""Initiatives, their objectives and owners, check-ins, and size helpers."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from manageros.auth import UserContext, require_organization
from manageros.errors import NotFoundError
from manageros.models.db import (
    CheckIn,
    Initiative,
    InitiativeOwner,
    Objective,
    Organization,
    Person,
    Task,
    Team,
)
from manageros.models.schemas import (
    CheckInCreate,
    InitiativeCreate,
    InitiativeUpdate,
    ObjectiveInput,
    OwnerInput,
)
from manageros.services.common import apply_updates, count_rows, get_current_person, get_in_org
from manageros.services.limits import check_organization_limit
from manageros.services.tolerance_rules import resolve_initiative_checkin_exceptions

logger = logging.getLogger(__name__)


# ── Sizes ─────────────────────────────────────────────────────────────────────

SIZES = ["xs", "s", "m", "l", "xl"]

SIZE_LABELS = {
    "xs": "Extra Small",
    "s": "Small",
    "m": "Medium",
    "l": "Large",
    "xl": "Extra Large",
}

SIZE_SHORT_LABELS = {size: size.upper() for size in SIZES}

SIZE_DEFAULT_DESCRIPTIONS = {
    "xs": "A few days of work, minimal complexity",
    "s": "1-2 weeks of work, low complexity",
    "m": "2-4 weeks of work, moderate complexity",
    "l": "1-2 months of work, high complexity",
    "xl": "2+ months of work, very high complexity",
}


def is_valid_size(value: Any) -> bool:
    return value in SIZES


def size_description(size: str, org_definitions: dict[str, str] | None = None) -> str:
    """Organization override if present, otherwise the default description."""
    if org_definitions and org_definitions.get(size):
        return org_definitions[size]
    return SIZE_DEFAULT_DESCRIPTIONS[size]


def size_options(org_definitions: dict[str, str] | None = None) -> list[dict[str, str]]:
    return [
        {
            "value": size,
            "label": SIZE_LABELS[size],
            "short_label": SIZE_SHORT_LABELS[size],
            "description": size_description(size, org_definitions),
        }
        for size in SIZES
    ]


def _size_rank(size: str | None) -> int:
    return SIZES.index(size) if size in SIZES else len(SIZES)


def compare_sizes(a: str | None, b: str | None) -> int:
    """Negative, zero or positive like a classic comparator; unknown sizes sort last."""
    return _size_rank(a) - _size_rank(b)


def sort_by_size(items: list[Any], key=lambda item: item.size, descending: bool = False) -> list[Any]:
    ranked = sorted(items, key=lambda item: _size_rank(key(item)))
    if descending:
        known = [item for item in ranked if key(item) in SIZES]
        unknown = [item for item in ranked if key(item) not in SIZES]
        return list(reversed(known)) + unknown
    return ranked


async def get_size_definitions(session: AsyncSession, organization_id: uuid.UUID) -> dict[str, str]:
    result = await session.execute(
        select(Organization.initiative_size_definitions).where(Organization.id == organization_id)
    )
    return result.scalar_one_or_none() or {}


# ── Initiatives ───────────────────────────────────────────────────────────────


async def _load(session: AsyncSession, initiative_id: uuid.UUID, org_id: uuid.UUID) -> Initiative:
    result = await session.execute(
        select(Initiative)
        .where(Initiative.id == initiative_id, Initiative.organization_id == org_id)
        .options(
            selectinload(Initiative.objectives),
            selectinload(Initiative.owners),
        )
        .execution_options(populate_existing=True)
    )
    initiative = result.scalar_one_or_none()
    if initiative is None:
        raise NotFoundError("Initiative not found or access denied")
    return initiative


async def _check_owners(session: AsyncSession, org_id: uuid.UUID, owners: list[OwnerInput]) -> None:
    person_ids = {owner.person_id for owner in owners}
    if not person_ids:
        return
    found = await count_rows(
        session, Person, Person.id.in_(person_ids), Person.organization_id == org_id
    )
    if found != len(person_ids):
        raise NotFoundError("One or more owners not found or access denied")


def _build_objectives(objectives: list[ObjectiveInput]) -> list[Objective]:
    return [
        Objective(title=objective.title, key_result=objective.key_result, sort_index=index)
        for index, objective in enumerate(objectives)
    ]


def _build_owners(owners: list[OwnerInput]) -> list[InitiativeOwner]:
    by_person = {owner.person_id: owner.role for owner in owners}
    return [InitiativeOwner(person_id=person_id, role=role) for person_id, role in by_person.items()]


async def create_initiative(
    session: AsyncSession, ctx: UserContext, data: InitiativeCreate
) -> Initiative:
    org_id = require_organization(ctx, "create initiatives")
    if data.team_id:
        await get_in_org(session, Team, data.team_id, org_id, "Team not found or access denied")
    await _check_owners(session, org_id, data.owners)

    current = await count_rows(session, Initiative, Initiative.organization_id == org_id)
    await check_organization_limit(session, org_id, "max_initiatives", current)

    values = data.model_dump(exclude={"objectives", "owners"})
    initiative = Initiative(
        organization_id=org_id,
        objectives=_build_objectives(data.objectives),
        owners=_build_owners(data.owners),
        **values,
    )
    session.add(initiative)
    await session.flush()
    logger.info("Created initiative %s (%s)", initiative.title, initiative.id)
    return await _load(session, initiative.id, org_id)


async def update_initiative(
    session: AsyncSession, ctx: UserContext, initiative_id: uuid.UUID, data: InitiativeUpdate
) -> Initiative:
    org_id = require_organization(ctx, "update initiatives")
    initiative = await _load(session, initiative_id, org_id)

    values = data.model_dump(exclude_unset=True, exclude={"objectives", "owners"})
    if values.get("team_id"):
        await get_in_org(session, Team, values["team_id"], org_id, "Team not found or access denied")
    apply_updates(initiative, values)

    if data.objectives is not None:
        initiative.objectives = _build_objectives(data.objectives)
    if data.owners is not None:
        await _check_owners(session, org_id, data.owners)
        initiative.owners = []
        await session.flush()
        initiative.owners = _build_owners(data.owners)

    await session.flush()
    return await _load(session, initiative.id, org_id)


async def delete_initiative(session: AsyncSession, ctx: UserContext, initiative_id: uuid.UUID) -> None:
    org_id = require_organization(ctx, "delete initiatives")
    initiative = await _load(session, initiative_id, org_id)
    objective_ids = [objective.id for objective in initiative.objectives]

    criteria = [Task.initiative_id == initiative.id]
    if objective_ids:
        criteria.append(Task.objective_id.in_(objective_ids))
    await session.execute(
        update(Task)
        .where(or_(*criteria))
        .values(initiative_id=None, objective_id=None)
        .execution_options(synchronize_session="fetch")
    )

    await session.delete(initiative)
    await session.flush()
    logger.info("Deleted initiative %s", initiative_id)


async def get_initiative(
    session: AsyncSession, ctx: UserContext, initiative_id: uuid.UUID
) -> Initiative:
    org_id = require_organization(ctx, "view initiatives")
    return await _load(session, initiative_id, org_id)


async def get_initiative_counts(session: AsyncSession, initiative_id: uuid.UUID) -> dict[str, int]:
    return {
        "tasks": await count_rows(session, Task, Task.initiative_id == initiative_id),
        "completed_tasks": await count_rows(
            session, Task, Task.initiative_id == initiative_id, Task.status == "done"
        ),
        "check_ins": await count_rows(session, CheckIn, CheckIn.initiative_id == initiative_id),
    }


# ── Check-ins ─────────────────────────────────────────────────────────────────


async def _get_check_in(
    session: AsyncSession, check_in_id: uuid.UUID, org_id: uuid.UUID
) -> CheckIn:
    result = await session.execute(
        select(CheckIn)
        .join(Initiative, Initiative.id == CheckIn.initiative_id)
        .where(CheckIn.id == check_in_id, Initiative.organization_id == org_id)
    )
    check_in = result.scalar_one_or_none()
    if check_in is None:
        raise NotFoundError("Check-in not found or access denied")
    return check_in


async def create_check_in(session: AsyncSession, ctx: UserContext, data: CheckInCreate) -> CheckIn:
    org_id = require_organization(ctx, "create check-ins")
    person = await get_current_person(session, ctx)
    await get_in_org(
        session, Initiative, data.initiative_id, org_id, "Initiative not found or access denied"
    )

    check_in = CheckIn(created_by_id=person.id, **data.model_dump())
    session.add(check_in)
    await session.flush()

    await resolve_initiative_checkin_exceptions(session, org_id, data.initiative_id)
    return check_in


async def update_check_in(
    session: AsyncSession, ctx: UserContext, check_in_id: uuid.UUID, data: CheckInCreate
) -> CheckIn:
    org_id = require_organization(ctx, "update check-ins")
    check_in = await _get_check_in(session, check_in_id, org_id)
    apply_updates(check_in, data.model_dump(exclude={"initiative_id"}))
    await session.flush()
    return check_in


async def delete_check_in(session: AsyncSession, ctx: UserContext, check_in_id: uuid.UUID) -> None:
    org_id = require_organization(ctx, "delete check-ins")
    check_in = await _get_check_in(session, check_in_id, org_id)
    await session.delete(check_in)
    await session.flush()


async def get_check_in(session: AsyncSession, ctx: UserContext, check_in_id: uuid.UUID) -> CheckIn:
    org_id = require_organization(ctx, "view check-ins")
    return await _get_check_in(session, check_in_id, org_id)


async def list_check_ins(
    session: AsyncSession, ctx: UserContext, initiative_id: uuid.UUID
) -> list[CheckIn]:
    org_id = require_organization(ctx, "view check-ins")
    await get_in_org(session, Initiative, initiative_id, org_id, "Initiative not found or access denied")
    result = await session.execute(
        select(CheckIn)
        .where(CheckIn.initiative_id == initiative_id)
        .order_by(CheckIn.week_of.desc(), CheckIn.created_at.desc())
    )
    return list(result.scalars().all())

