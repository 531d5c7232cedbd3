"""Initiative, size and check-in API routes."""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, Query
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from manageros.api.deps import get_current_user, get_db
from manageros.auth import UserContext, require_organization
from manageros.errors import AccessDeniedError, DomainValidationError
from manageros.models.schemas import (
    CheckInCreate,
    CheckInResponse,
    InitiativeCreate,
    InitiativeResponse,
    InitiativeUpdate,
)
from manageros.services import initiatives
from manageros.services.initiative_query import InitiativeListParams, list_initiatives

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/initiatives")
async def get_initiatives(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    search: str = "",
    team_id: str = Query("", alias="teamId"),
    owner_id: str = Query("", alias="ownerId"),
    rag: str = "",
    status: str = "",
    date_from: str = Query("", alias="dateFrom"),
    date_to: str = Query("", alias="dateTo"),
    sort: str = "",
    immutable_filters: str | None = Query(None, alias="immutableFilters"),
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    """Filtered, sorted, paginated initiatives.

    Errors use an ``{"error": ...}`` body rather than ``detail``.
    """
    params = InitiativeListParams(
        page=page,
        limit=limit,
        search=search,
        team_id=team_id,
        owner_id=owner_id,
        rag=rag,
        status=status,
        date_from=date_from,
        date_to=date_to,
        sort=sort,
        immutable_filters=immutable_filters,
    )
    try:
        result = await list_initiatives(session, ctx, params)
    except DomainValidationError as exc:
        return JSONResponse(status_code=400, content={"error": exc.message})
    except AccessDeniedError as exc:
        return JSONResponse(status_code=403, content={"error": exc.message})
    except Exception:
        logger.exception("Failed to fetch initiatives")
        await session.rollback()
        return JSONResponse(status_code=500, content={"error": "Failed to fetch initiatives"})
    return jsonable_encoder(result)


@router.post("/initiatives", response_model=InitiativeResponse, status_code=201)
async def create_initiative(
    data: InitiativeCreate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await initiatives.create_initiative(session, ctx, data)


@router.get("/initiatives/sizes")
async def get_size_options(
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    """Size options with the organization's own descriptions where set."""
    org_id = require_organization(ctx, "view initiatives")
    definitions = await initiatives.get_size_definitions(session, org_id)
    return initiatives.size_options(definitions)


@router.get("/initiatives/{initiative_id}")
async def get_initiative(
    initiative_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    initiative = await initiatives.get_initiative(session, ctx, initiative_id)
    body = InitiativeResponse.model_validate(initiative).model_dump()
    body["counts"] = await initiatives.get_initiative_counts(session, initiative.id)
    return body


@router.patch("/initiatives/{initiative_id}", response_model=InitiativeResponse)
async def update_initiative(
    initiative_id: uuid.UUID,
    data: InitiativeUpdate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await initiatives.update_initiative(session, ctx, initiative_id, data)


@router.delete("/initiatives/{initiative_id}", status_code=204)
async def delete_initiative(
    initiative_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    await initiatives.delete_initiative(session, ctx, initiative_id)


# ── Check-ins ─────────────────────────────────────────────────────────────────


@router.get("/initiatives/{initiative_id}/check-ins", response_model=list[CheckInResponse])
async def list_check_ins(
    initiative_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await initiatives.list_check_ins(session, ctx, initiative_id)


@router.post("/initiatives/{initiative_id}/check-ins", response_model=CheckInResponse, status_code=201)
async def create_check_in(
    initiative_id: uuid.UUID,
    data: CheckInCreate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    data = data.model_copy(update={"initiative_id": initiative_id})
    return await initiatives.create_check_in(session, ctx, data)


@router.get("/check-ins/{check_in_id}", response_model=CheckInResponse)
async def get_check_in(
    check_in_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await initiatives.get_check_in(session, ctx, check_in_id)


@router.patch("/check-ins/{check_in_id}", response_model=CheckInResponse)
async def update_check_in(
    check_in_id: uuid.UUID,
    data: CheckInCreate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await initiatives.update_check_in(session, ctx, check_in_id, data)


@router.delete("/check-ins/{check_in_id}", status_code=204)
async def delete_check_in(
    check_in_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    await initiatives.delete_check_in(session, ctx, check_in_id)
