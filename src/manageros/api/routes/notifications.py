"""Notification API routes."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from manageros.api.deps import get_current_user, get_db
from manageros.auth import UserContext
from manageros.models.schemas import NotificationResponse, UnreadCountResponse
from manageros.services import notifications

router = APIRouter()


@router.get("/notifications", response_model=list[NotificationResponse])
async def list_notifications(
    limit: int = Query(10, ge=1, le=100),
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await notifications.list_notifications(session, ctx, limit=limit)


@router.get("/notifications/unread", response_model=list[NotificationResponse])
async def list_unread(
    limit: int = Query(5, ge=1, le=100),
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await notifications.list_unread(session, ctx, limit=limit)


@router.get("/notifications/count", response_model=UnreadCountResponse)
async def unread_count(
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return UnreadCountResponse(count=await notifications.unread_count(session, ctx))


@router.post("/notifications/read-all")
async def mark_all_read(
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return {"updated": await notifications.mark_all_read(session, ctx)}


@router.post("/notifications/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await notifications.mark_read(session, ctx, notification_id)


@router.post("/notifications/{notification_id}/dismiss", response_model=NotificationResponse)
async def dismiss(
    notification_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await notifications.mark_dismissed(session, ctx, notification_id)
