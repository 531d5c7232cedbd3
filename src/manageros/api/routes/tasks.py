"""Task and task reminder API routes."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from manageros.api.deps import get_current_user, get_db
from manageros.auth import UserContext
from manageros.config import settings
from manageros.models.schemas import (
    DueReminderResponse,
    ReminderDeliveryResponse,
    ReminderPreferenceResponse,
    ReminderPreferenceUpdate,
    SnoozeRequest,
    TaskCreate,
    TaskListResponse,
    TaskResponse,
    TaskStatusUpdate,
    TaskUpdate,
)
from manageros.services import reminders, tasks
from manageros.services.common import get_accessible_task

router = APIRouter()


@router.get("/tasks", response_model=TaskListResponse)
async def list_tasks(
    status: list[str] | None = Query(None),
    priority: list[int] | None = Query(None),
    assignee_id: uuid.UUID | None = None,
    initiative_id: uuid.UUID | None = None,
    q: str | None = None,
    updated_after: datetime | None = None,
    updated_before: datetime | None = None,
    limit: int | None = Query(None, ge=1, le=500),
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    found = await tasks.list_tasks(
        session,
        ctx,
        status=status,
        priority=priority,
        assignee_id=assignee_id,
        initiative_id=initiative_id,
        query=q,
        updated_after=updated_after,
        updated_before=updated_before,
        limit=limit,
    )
    return TaskListResponse(tasks=found, total=len(found))


@router.get("/tasks/my-tasks", response_model=list[TaskResponse])
async def my_tasks(
    include_closed: bool = False,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    """Open tasks assigned to the caller's linked person."""
    return await tasks.get_my_tasks(session, ctx, include_closed=include_closed)


@router.get("/tasks/priorities")
async def priority_options():
    return tasks.priority_options()


@router.post("/tasks", response_model=TaskResponse, status_code=201)
async def create_task(
    data: TaskCreate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await tasks.create_task(session, ctx, data)


@router.get("/tasks/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await tasks.get_task(session, ctx, task_id)


@router.patch("/tasks/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: uuid.UUID,
    data: TaskUpdate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await tasks.update_task(session, ctx, task_id, data)


@router.patch("/tasks/{task_id}/status", response_model=TaskResponse)
async def update_task_status(
    task_id: uuid.UUID,
    data: TaskStatusUpdate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await tasks.update_task_status(session, ctx, task_id, data.status)


@router.delete("/tasks/{task_id}", status_code=204)
async def delete_task(
    task_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    await tasks.delete_task(session, ctx, task_id)


# ── Reminders ─────────────────────────────────────────────────────────────────


@router.get("/tasks/{task_id}/reminder", response_model=ReminderPreferenceResponse)
async def get_reminder_preference(
    task_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    await get_accessible_task(session, ctx, task_id)
    minutes = await reminders.get_preference(session, task_id, ctx)
    return ReminderPreferenceResponse(task_id=task_id, reminder_minutes_before_due=minutes)


@router.put("/tasks/{task_id}/reminder", response_model=ReminderPreferenceResponse)
async def set_reminder_preference(
    task_id: uuid.UUID,
    data: ReminderPreferenceUpdate,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    """Set or clear (``null``) the caller's reminder offset for a task."""
    preference = await reminders.upsert_preference(
        session, task_id, ctx, data.reminder_minutes_before_due
    )
    minutes = preference.reminder_minutes_before_due if preference else None
    return ReminderPreferenceResponse(task_id=task_id, reminder_minutes_before_due=minutes)


@router.get("/task-reminders/upcoming", response_model=list[ReminderDeliveryResponse])
async def upcoming_reminders(
    hours: int = Query(settings.reminder_window_hours, ge=1, le=24 * 14),
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await reminders.get_upcoming_deliveries(session, ctx, window=timedelta(hours=hours))


@router.get("/task-reminders/due-now", response_model=list[DueReminderResponse])
async def due_now_reminders(
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    deliveries = await reminders.get_due_now_deliveries(session, ctx)
    return [
        DueReminderResponse(
            **ReminderDeliveryResponse.model_validate(delivery).model_dump(),
            task_title=delivery.task.title,
        )
        for delivery in deliveries
    ]


@router.post("/task-reminders/{delivery_id}/acknowledge", response_model=ReminderDeliveryResponse)
async def acknowledge_reminder(
    delivery_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    return await reminders.acknowledge_delivery(session, delivery_id, ctx)


@router.post("/task-reminders/{delivery_id}/snooze", response_model=ReminderDeliveryResponse)
async def snooze_reminder(
    delivery_id: uuid.UUID,
    data: SnoozeRequest,
    session: AsyncSession = Depends(get_db),
    ctx: UserContext = Depends(get_current_user),
):
    """Snooze a reminder; the response is the replacement delivery."""
    return await reminders.snooze_delivery(session, delivery_id, ctx, data.minutes)
