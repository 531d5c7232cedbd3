"""Notes and external links attached to initiatives, tasks, meetings, 1:1s and people."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from manageros.auth import UserContext, require_organization
from manageros.errors import AccessDeniedError, NotFoundError
from manageros.models.db import EntityLink, Note
from manageros.models.schemas import EntityLinkCreate, EntityLinkUpdate, NoteCreate, NoteUpdate
from manageros.services.entities import can_edit_entity, load_entity, normalize_entity_type

logger = logging.getLogger(__name__)


# ── Notes ─────────────────────────────────────────────────────────────────────


async def _get_note(session: AsyncSession, org_id: uuid.UUID, note_id: uuid.UUID) -> Note:
    result = await session.execute(
        select(Note)
        .where(Note.id == note_id, Note.organization_id == org_id)
        .options(selectinload(Note.created_by))
    )
    note = result.scalar_one_or_none()
    if note is None:
        raise NotFoundError("Note not found or access denied")
    return note


async def create_note(session: AsyncSession, ctx: UserContext, data: NoteCreate) -> Note:
    org_id = require_organization(ctx, "create notes")
    entity_type = normalize_entity_type(data.entity_type)
    await load_entity(session, ctx, entity_type, data.entity_id)

    note = Note(
        organization_id=org_id,
        entity_type=entity_type,
        entity_id=data.entity_id,
        content=data.content,
        created_by_id=ctx.user_id,
    )
    session.add(note)
    await session.flush()
    await session.refresh(note, ["created_by"])
    logger.info("Created note %s on %s %s", note.id, entity_type, data.entity_id)
    return note


async def update_note(
    session: AsyncSession, ctx: UserContext, note_id: uuid.UUID, data: NoteUpdate
) -> Note:
    org_id = require_organization(ctx, "update notes")
    note = await _get_note(session, org_id, note_id)
    note.content = data.content
    await session.flush()
    return note


async def delete_note(session: AsyncSession, ctx: UserContext, note_id: uuid.UUID) -> None:
    org_id = require_organization(ctx, "delete notes")
    note = await _get_note(session, org_id, note_id)
    await session.delete(note)
    await session.flush()


async def get_notes_for_entity(
    session: AsyncSession, ctx: UserContext, entity_type: str, entity_id: uuid.UUID
) -> list[Note]:
    """Newest first."""
    org_id = require_organization(ctx, "view notes")
    entity_type = normalize_entity_type(entity_type)
    await load_entity(session, ctx, entity_type, entity_id)
    result = await session.execute(
        select(Note)
        .where(
            Note.organization_id == org_id,
            Note.entity_type == entity_type,
            Note.entity_id == entity_id,
        )
        .options(selectinload(Note.created_by))
        .order_by(Note.created_at.desc())
    )
    return list(result.scalars().all())


# ── Links ─────────────────────────────────────────────────────────────────────


async def _get_editable_link(
    session: AsyncSession, ctx: UserContext, org_id: uuid.UUID, link_id: uuid.UUID, action: str
) -> EntityLink:
    result = await session.execute(
        select(EntityLink)
        .where(EntityLink.id == link_id, EntityLink.organization_id == org_id)
        .options(selectinload(EntityLink.created_by))
    )
    link = result.scalar_one_or_none()
    if link is None:
        raise NotFoundError("Link not found or access denied")
    entity = await load_entity(session, ctx, link.entity_type, link.entity_id)
    if not can_edit_entity(ctx, link.entity_type, entity):
        raise AccessDeniedError(f"You do not have permission to {action} this link")
    return link


async def create_link(session: AsyncSession, ctx: UserContext, data: EntityLinkCreate) -> EntityLink:
    org_id = require_organization(ctx, "create links")
    entity_type = normalize_entity_type(data.entity_type)
    entity = await load_entity(session, ctx, entity_type, data.entity_id)
    if not can_edit_entity(ctx, entity_type, entity):
        raise AccessDeniedError("You do not have permission to add links to this entity")

    link = EntityLink(
        organization_id=org_id,
        entity_type=entity_type,
        entity_id=data.entity_id,
        url=str(data.url),
        title=data.title,
        description=data.description,
        created_by_id=ctx.user_id,
    )
    session.add(link)
    await session.flush()
    await session.refresh(link, ["created_by"])
    return link


async def update_link(
    session: AsyncSession, ctx: UserContext, link_id: uuid.UUID, data: EntityLinkUpdate
) -> EntityLink:
    org_id = require_organization(ctx, "update links")
    link = await _get_editable_link(session, ctx, org_id, link_id, "update")
    values = data.model_dump(exclude_unset=True)
    if values.get("url") is not None:
        link.url = str(data.url)
    if "title" in values:
        link.title = values["title"]
    if "description" in values:
        link.description = values["description"]
    await session.flush()
    return link


async def delete_link(session: AsyncSession, ctx: UserContext, link_id: uuid.UUID) -> None:
    org_id = require_organization(ctx, "delete links")
    link = await _get_editable_link(session, ctx, org_id, link_id, "delete")
    await session.delete(link)
    await session.flush()


async def get_links_for_entity(
    session: AsyncSession, ctx: UserContext, entity_type: str, entity_id: uuid.UUID
) -> list[EntityLink]:
    org_id = require_organization(ctx, "view links")
    entity_type = normalize_entity_type(entity_type)
    await load_entity(session, ctx, entity_type, entity_id)
    result = await session.execute(
        select(EntityLink)
        .where(
            EntityLink.organization_id == org_id,
            EntityLink.entity_type == entity_type,
            EntityLink.entity_id == entity_id,
        )
        .options(selectinload(EntityLink.created_by))
        .order_by(EntityLink.created_at.desc())
    )
    return list(result.scalars().all())
