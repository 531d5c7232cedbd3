"""Tests for in-app notifications."""

from __future__ import annotations

import uuid
from datetime import timedelta

import pytest

from manageros.errors import AccessDeniedError, NotFoundError
from manageros.models.db import utcnow
from manageros.services import notifications


class TestNotifications:
    @pytest.mark.asyncio
    async def test_user_and_org_wide_visibility(self, session, org, manager, report):
        """Test that users see their own and organization-wide notifications."""
        await notifications.create_notification(session, org.id, "Personal", "For Morgan", user_id=manager.user_id)
        await notifications.create_notification(session, org.id, "Everyone", "All hands")

        assert {n.title for n in await notifications.list_notifications(session, manager)} == {
            "Personal",
            "Everyone",
        }
        assert [n.title for n in await notifications.list_notifications(session, report)] == ["Everyone"]

    @pytest.mark.asyncio
    async def test_cross_org_creation_denied(self, session, manager):
        """Test that notifications cannot target another organization's user."""
        with pytest.raises(AccessDeniedError):
            await notifications.create_notification(session, uuid.uuid4(), "t", "m", ctx=manager)

    @pytest.mark.asyncio
    async def test_read_and_dismiss(self, session, org, manager):
        """Test marking a notification read and dismissing it."""
        first = await notifications.create_notification(session, org.id, "One", "m", user_id=manager.user_id)
        await notifications.create_notification(session, org.id, "Two", "m", user_id=manager.user_id)
        assert await notifications.unread_count(session, manager) == 2

        await notifications.mark_read(session, manager, first.id)
        assert await notifications.unread_count(session, manager) == 1

        dismissed = await notifications.mark_dismissed(session, manager, first.id)
        assert dismissed.read_at is not None
        assert [n.title for n in await notifications.list_notifications(session, manager)] == ["Two"]

        assert await notifications.mark_all_read(session, manager) == 1
        assert await notifications.unread_count(session, manager) == 0

    @pytest.mark.asyncio
    async def test_others_cannot_mark_personal_notifications(self, session, org, manager, report):
        """Test that personal notifications belong to their user."""
        note = await notifications.create_notification(session, org.id, "Mine", "m", user_id=manager.user_id)
        with pytest.raises(NotFoundError):
            await notifications.mark_read(session, report, note.id)

    @pytest.mark.asyncio
    async def test_recent_dedup_key(self, session, org, manager):
        """Test lookup of recent notifications by dedup key."""
        await notifications.create_notification(
            session,
            org.id,
            "Overdue Task",
            "late",
            type="warning",
            user_id=manager.user_id,
            metadata={"dedup_key": "overdue:abc"},
        )
        since = utcnow() - timedelta(hours=1)
        assert await notifications.has_recent_notification(session, manager.user_id, "overdue:abc", since)
        assert not await notifications.has_recent_notification(session, manager.user_id, "overdue:xyz", since)
