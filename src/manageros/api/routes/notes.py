"""Notes and entity link API routes."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from manageros.api.deps import get_current_user, get_db
from manageros.auth import UserContext
from manageros.models.schemas import (
    EntityLinkCreate,
    EntityLinkResponse,
    EntityLinkUpdate,
    NoteCreate,
    NoteResponse,
    NoteUpdate,
)
from manageros.services import notes

router = APIRouter()


@router.get("/notes", response_model=list[NoteResponse])
async def list_notes(
    entity_type: str,
    entity_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    """Notes on one entity, newest first."""
    return await notes.get_notes_for_entity(session, ctx, entity_type, entity_id)


@router.post("/notes", response_model=NoteResponse, status_code=201)
async def create_note(
    data: NoteCreate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await notes.create_note(session, ctx, data)


@router.patch("/notes/{note_id}", response_model=NoteResponse)
async def update_note(
    note_id: uuid.UUID,
    data: NoteUpdate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await notes.update_note(session, ctx, note_id, data)


@router.delete("/notes/{note_id}", status_code=204)
async def delete_note(
    note_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    await notes.delete_note(session, ctx, note_id)


# ── Links ─────────────────────────────────────────────────────────────────────


@router.get("/links", response_model=list[EntityLinkResponse])
async def list_links(
    entity_type: str,
    entity_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await notes.get_links_for_entity(session, ctx, entity_type, entity_id)


@router.post("/links", response_model=EntityLinkResponse, status_code=201)
async def create_link(
    data: EntityLinkCreate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await notes.create_link(session, ctx, data)


@router.patch("/links/{link_id}", response_model=EntityLinkResponse)
async def update_link(
    link_id: uuid.UUID,
    data: EntityLinkUpdate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await notes.update_link(session, ctx, link_id, data)


@router.delete("/links/{link_id}", status_code=204)
async def delete_link(
    link_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    await notes.delete_link(session, ctx, link_id)
