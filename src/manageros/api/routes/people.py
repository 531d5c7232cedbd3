"""People, reporting hierarchy and job role API routes."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from manageros.api.deps import get_current_user, get_db
from manageros.auth import UserContext
from manageros.models.schemas import (
    JobRoleCreate,
    JobRoleResponse,
    JobRoleUpdate,
    PeopleStatsResponse,
    PersonCreate,
    PersonListResponse,
    PersonResponse,
    PersonUpdate,
)
from manageros.services import people, people_stats

router = APIRouter()


@router.get("/people", response_model=PersonListResponse)
async def list_people(
    search: str | None = None,
    team_id: uuid.UUID | None = None,
    status: str | None = None,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    """List people in the caller's organization."""
    found = await people.list_people(session, ctx, search=search, team_id=team_id, status=status)
    return PersonListResponse(people=found, total=len(found))


@router.post("/people", response_model=PersonResponse, status_code=201)
async def create_person(
    data: PersonCreate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await people.create_person(session, ctx, data)


@router.get("/people/hierarchy")
async def get_hierarchy(
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    """Reporting lines as a tree of ``{id, name, role, reports}`` nodes."""
    return await people.get_hierarchy(session, ctx)


@router.get("/people/stats", response_model=PeopleStatsResponse)
async def get_people_stats(
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    """Headcount breakdowns and overdue 1:1 / 360 counts for the caller's reports."""
    return await people_stats.get_people_stats(session, ctx)


@router.get("/people/{person_id}", response_model=PersonResponse)
async def get_person(
    person_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await people.get_person(session, ctx, person_id)


@router.patch("/people/{person_id}", response_model=PersonResponse)
async def update_person(
    person_id: uuid.UUID,
    data: PersonUpdate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await people.update_person(session, ctx, person_id, data)


@router.delete("/people/{person_id}", status_code=204)
async def delete_person(
    person_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    await people.delete_person(session, ctx, person_id)


@router.get("/people/{person_id}/reports", response_model=list[PersonResponse])
async def get_reports(
    person_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    await people.get_person(session, ctx, person_id)
    return await people.get_direct_reports(session, ctx, person_id)


# ── Job roles ─────────────────────────────────────────────────────────────────


@router.get("/job-roles", response_model=list[JobRoleResponse])
async def list_job_roles(
    search: str | None = None,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await people.list_job_roles(session, ctx, search=search)


@router.post("/job-roles", response_model=JobRoleResponse, status_code=201)
async def create_job_role(
    data: JobRoleCreate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await people.create_job_role(session, ctx, data)


@router.patch("/job-roles/{job_role_id}", response_model=JobRoleResponse)
async def update_job_role(
    job_role_id: uuid.UUID,
    data: JobRoleUpdate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await people.update_job_role(session, ctx, job_role_id, data)


@router.delete("/job-roles/{job_role_id}", status_code=204)
async def delete_job_role(
    job_role_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    await people.delete_job_role(session, ctx, job_role_id)
