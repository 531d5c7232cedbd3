"""People, reporting lines and job roles."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from manageros.auth import UserContext, require_admin, require_organization
from manageros.errors import DomainValidationError, NotFoundError
from manageros.models.db import JobRole, Person, Team
from manageros.models.schemas import JobRoleCreate, JobRoleUpdate, PersonCreate, PersonUpdate
from manageros.services.common import apply_updates, count_rows, get_in_org
from manageros.services.limits import check_organization_limit
from manageros.services.tolerance_rules import resolve_manager_span_exceptions

logger = logging.getLogger(__name__)


# ── Reporting lines ───────────────────────────────────────────────────────────


async def is_manager_of(
    session: AsyncSession, manager_id: uuid.UUID, person_id: uuid.UUID
) -> bool:
    """True if ``manager_id`` sits anywhere above ``person_id`` in the chain."""
    seen: set[uuid.UUID] = set()
    current = person_id
    while current is not None and current not in seen:
        seen.add(current)
        result = await session.execute(select(Person.manager_id).where(Person.id == current))
        current = result.scalar_one_or_none()
        if current == manager_id:
            return True
    return False


async def _check_manager(
    session: AsyncSession,
    org_id: uuid.UUID,
    person_id: uuid.UUID | None,
    manager_id: uuid.UUID,
) -> None:
    if person_id is not None and manager_id == person_id:
        raise DomainValidationError("A person cannot be their own manager")
    await get_in_org(session, Person, manager_id, org_id, "Manager not found or access denied")
    if person_id is not None and await is_manager_of(session, person_id, manager_id):
        raise DomainValidationError(
            "Manager assignment would create a circular reporting line"
        )


async def _check_references(
    session: AsyncSession,
    org_id: uuid.UUID,
    values: dict[str, Any],
    person_id: uuid.UUID | None = None,
) -> None:
    if values.get("team_id"):
        await get_in_org(session, Team, values["team_id"], org_id, "Team not found or access denied")
    if values.get("manager_id"):
        await _check_manager(session, org_id, person_id, values["manager_id"])
    if values.get("job_role_id"):
        await get_in_org(
            session, JobRole, values["job_role_id"], org_id, "Job role not found or access denied"
        )


# ── People CRUD ───────────────────────────────────────────────────────────────


async def create_person(session: AsyncSession, ctx: UserContext, data: PersonCreate) -> Person:
    org_id = require_admin(ctx, "Only organization admins or owners can create people")
    values = data.model_dump()
    await _check_references(session, org_id, values)

    current = await count_rows(session, Person, Person.organization_id == org_id)
    await check_organization_limit(session, org_id, "max_people", current)

    person = Person(organization_id=org_id, **values)
    session.add(person)
    await session.flush()
    logger.info("Created person %s in organization %s", person.id, org_id)
    return person


async def update_person(
    session: AsyncSession, ctx: UserContext, person_id: uuid.UUID, data: PersonUpdate
) -> Person:
    org_id = require_admin(ctx, "Only organization admins or owners can update people")
    person = await get_in_org(session, Person, person_id, org_id, "Person not found or access denied")

    values = data.model_dump(exclude_unset=True)
    await _check_references(session, org_id, values, person_id=person.id)

    previous_manager = person.manager_id
    apply_updates(person, values)
    await session.flush()

    if "manager_id" in values and previous_manager and previous_manager != person.manager_id:
        await resolve_manager_span_exceptions(session, org_id, previous_manager)
    return person


async def delete_person(session: AsyncSession, ctx: UserContext, person_id: uuid.UUID) -> None:
    org_id = require_admin(ctx, "Only organization admins or owners can delete people")
    person = await get_in_org(session, Person, person_id, org_id, "Person not found or access denied")

    reports = await count_rows(session, Person, Person.manager_id == person.id)
    if reports:
        raise DomainValidationError(
            "Cannot delete person with direct reports. Please reassign their reports first."
        )
    await session.delete(person)
    await session.flush()


async def get_person(session: AsyncSession, ctx: UserContext, person_id: uuid.UUID) -> Person:
    org_id = require_organization(ctx, "view people")
    return await get_in_org(session, Person, person_id, org_id, "Person not found or access denied")


async def list_people(
    session: AsyncSession,
    ctx: UserContext,
    search: str | None = None,
    team_id: uuid.UUID | None = None,
    status: str | None = None,
) -> list[Person]:
    org_id = require_organization(ctx, "view people")
    stmt = select(Person).where(Person.organization_id == org_id)
    if search:
        term = f"%{search}%"
        stmt = stmt.where(or_(Person.name.ilike(term), Person.email.ilike(term)))
    if team_id:
        stmt = stmt.where(Person.team_id == team_id)
    if status:
        stmt = stmt.where(Person.status == status)
    result = await session.execute(stmt.order_by(Person.name))
    return list(result.scalars().all())


async def get_direct_reports(
    session: AsyncSession, ctx: UserContext, person_id: uuid.UUID | None = None
) -> list[Person]:
    """Direct reports of ``person_id`` (defaults to the caller's person)."""
    org_id = require_organization(ctx, "view people")
    manager_id = person_id or ctx.person_id
    if manager_id is None:
        return []
    result = await session.execute(
        select(Person)
        .where(Person.organization_id == org_id, Person.manager_id == manager_id)
        .order_by(Person.name)
    )
    return list(result.scalars().all())


def build_hierarchy(people: list[Person]) -> list[dict[str, Any]]:
    """Nest people under their managers; roots are people without one."""
    nodes = {
        person.id: {"id": person.id, "name": person.name, "role": person.role, "reports": []}
        for person in people
    }
    roots = []
    for person in people:
        node = nodes[person.id]
        parent = nodes.get(person.manager_id) if person.manager_id else None
        if parent is None:
            roots.append(node)
        else:
            parent["reports"].append(node)
    return roots


async def get_hierarchy(session: AsyncSession, ctx: UserContext) -> list[dict[str, Any]]:
    people = await list_people(session, ctx)
    return build_hierarchy(people)


# ── Job roles ─────────────────────────────────────────────────────────────────


async def list_job_roles(session: AsyncSession, ctx: UserContext, search: str | None = None) -> list[JobRole]:
    org_id = require_organization(ctx, "view job roles")
    stmt = select(JobRole).where(JobRole.organization_id == org_id)
    if search:
        stmt = stmt.where(JobRole.title.ilike(f"%{search}%"))
    result = await session.execute(stmt.order_by(JobRole.title))
    return list(result.scalars().all())


async def create_job_role(session: AsyncSession, ctx: UserContext, data: JobRoleCreate) -> JobRole:
    org_id = require_admin(ctx, "Only organization admins or owners can manage job roles")
    job_role = JobRole(organization_id=org_id, **data.model_dump())
    session.add(job_role)
    await session.flush()
    return job_role


async def update_job_role(
    session: AsyncSession, ctx: UserContext, job_role_id: uuid.UUID, data: JobRoleUpdate
) -> JobRole:
    org_id = require_admin(ctx, "Only organization admins or owners can manage job roles")
    job_role = await get_in_org(session, JobRole, job_role_id, org_id, "Job role not found or access denied")
    apply_updates(job_role, data.model_dump(exclude_unset=True))
    await session.flush()
    return job_role


async def delete_job_role(session: AsyncSession, ctx: UserContext, job_role_id: uuid.UUID) -> None:
    org_id = require_admin(ctx, "Only organization admins or owners can manage job roles")
    job_role = await get_in_org(session, JobRole, job_role_id, org_id, "Job role not found or access denied")
    await session.delete(job_role)
    await session.flush()


async def find_person_by_name_or_email(
    session: AsyncSession, org_id: uuid.UUID, query: str, limit: int = 10
) -> list[Person]:
    term = f"%{query}%"
    result = await session.execute(
        select(Person)
        .where(
            Person.organization_id == org_id,
            or_(Person.name.ilike(term), Person.email.ilike(term)),
        )
        .order_by(Person.name)
        .limit(limit)
    )
    people = list(result.scalars().all())
    if not people:
        raise NotFoundError(f'No person matching "{query}"')
    return people
