"""Polymorphic entity references used by notes and links.

Notes and links point at an entity by ``(entity_type, entity_id)``. Types are
normalised (``One_On_One`` and ``oneonone`` are the same) and the target is
loaded through its own service, so the usual visibility rules apply.
"""

from __future__ import annotations

import re
import uuid
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from manageros.auth import UserContext
from manageros.errors import DomainValidationError
from manageros.services import initiatives, meetings, oneonones, people, tasks

ENTITY_TYPES = ("initiative", "task", "meeting", "oneonone", "person")


def normalize_entity_type(entity_type: str) -> str:
    normalized = re.sub(r"[\s_-]", "", entity_type or "").lower()
    if normalized not in ENTITY_TYPES:
        raise DomainValidationError(f"Unsupported entity type: {entity_type}")
    return normalized


async def load_entity(
    session: AsyncSession, ctx: UserContext, entity_type: str, entity_id: uuid.UUID
) -> Any:
    """Return the entity if the caller can see it; NotFoundError otherwise."""
    if entity_type == "initiative":
        return await initiatives.get_initiative(session, ctx, entity_id)
    if entity_type == "task":
        return await tasks.get_task(session, ctx, entity_id)
    if entity_type == "meeting":
        return await meetings.get_meeting(session, ctx, entity_id)
    if entity_type == "oneonone":
        return await oneonones.get_one_on_one(session, ctx, entity_id)
    return await people.get_person(session, ctx, entity_id)


def can_edit_entity(ctx: UserContext, entity_type: str, entity: Any) -> bool:
    if ctx.is_admin_or_owner:
        return True
    if entity_type == "task":
        return entity.created_by_id == ctx.user_id or (
            ctx.person_id is not None and entity.assignee_id == ctx.person_id
        )
    if entity_type in ("meeting", "oneonone"):
        # anyone who can see a meeting or 1:1 may manage its links
        return True
    return False
