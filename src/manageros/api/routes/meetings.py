"""Meeting, participant, ICS import and one-on-one API routes."""

from __future__ import annotations

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from manageros.api.deps import get_current_user, get_db
from manageros.auth import UserContext
from manageros.models.schemas import (
    IcsImportRequest,
    MeetingCreate,
    MeetingResponse,
    MeetingUpdate,
    OneOnOneCreate,
    OneOnOneResponse,
    ParticipantInput,
    ParticipantResponse,
    ParticipantStatusUpdate,
)
from manageros.services import meetings, oneonones

router = APIRouter()


@router.get("/meetings", response_model=list[MeetingResponse])
async def list_meetings(
    team_id: uuid.UUID | None = None,
    initiative_id: uuid.UUID | None = None,
    scheduled_from: datetime | None = Query(None, alias="from"),
    scheduled_to: datetime | None = Query(None, alias="to"),
    limit: int | None = Query(None, ge=1, le=500),
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    """Meetings the caller can see, most recent first."""
    return await meetings.list_meetings(
        session,
        ctx,
        team_id=team_id,
        initiative_id=initiative_id,
        scheduled_from=scheduled_from,
        scheduled_to=scheduled_to,
        limit=limit,
    )


@router.post("/meetings", response_model=MeetingResponse, status_code=201)
async def create_meeting(
    data: MeetingCreate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await meetings.create_meeting(session, ctx, data)


@router.post("/meetings/import-ics")
async def import_ics(
    data: IcsImportRequest,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    """Parse an ICS invite into prefilled meeting fields; nothing is saved."""
    return await meetings.import_meeting_from_ics(session, ctx, data.ics)


@router.get("/meetings/{meeting_id}", response_model=MeetingResponse)
async def get_meeting(
    meeting_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await meetings.get_meeting(session, ctx, meeting_id)


@router.patch("/meetings/{meeting_id}", response_model=MeetingResponse)
async def update_meeting(
    meeting_id: uuid.UUID,
    data: MeetingUpdate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await meetings.update_meeting(session, ctx, meeting_id, data)


@router.delete("/meetings/{meeting_id}", status_code=204)
async def delete_meeting(
    meeting_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    await meetings.delete_meeting(session, ctx, meeting_id)


@router.post(
    "/meetings/{meeting_id}/participants", response_model=ParticipantResponse, status_code=201
)
async def add_participant(
    meeting_id: uuid.UUID,
    data: ParticipantInput,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await meetings.add_participant(session, ctx, meeting_id, data)


@router.patch("/meetings/{meeting_id}/participants/{person_id}", response_model=ParticipantResponse)
async def update_participant(
    meeting_id: uuid.UUID,
    person_id: uuid.UUID,
    data: ParticipantStatusUpdate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await meetings.update_participant_status(session, ctx, meeting_id, person_id, data.status)


@router.delete("/meetings/{meeting_id}/participants/{person_id}", status_code=204)
async def remove_participant(
    meeting_id: uuid.UUID,
    person_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    await meetings.remove_participant(session, ctx, meeting_id, person_id)


# ── One-on-ones ───────────────────────────────────────────────────────────────


@router.get("/oneonones", response_model=list[OneOnOneResponse])
async def list_one_on_ones(
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await oneonones.list_one_on_ones(session, ctx)


@router.post("/oneonones", response_model=OneOnOneResponse, status_code=201)
async def create_one_on_one(
    data: OneOnOneCreate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await oneonones.create_one_on_one(session, ctx, data)


@router.get("/oneonones/{one_on_one_id}", response_model=OneOnOneResponse)
async def get_one_on_one(
    one_on_one_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await oneonones.get_one_on_one(session, ctx, one_on_one_id)


@router.put("/oneonones/{one_on_one_id}", response_model=OneOnOneResponse)
async def update_one_on_one(
    one_on_one_id: uuid.UUID,
    data: OneOnOneCreate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await oneonones.update_one_on_one(session, ctx, one_on_one_id, data)


@router.delete("/oneonones/{one_on_one_id}", status_code=204)
async def delete_one_on_one(
    one_on_one_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    await oneonones.delete_one_on_one(session, ctx, one_on_one_id)
