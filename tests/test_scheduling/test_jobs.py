"""Tests for the notification jobs and the scheduler wrapper."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select

from manageros.models.db import Notification, utcnow
from manageros.models.schemas import TaskCreate
from manageros.services import tasks
from manageros.tasks import jobs, workers

NOW = datetime(2026, 10, 19, 12, tzinfo=timezone.utc)


class TestRelativeTime:
    @pytest.mark.parametrize(
        "delta, expected",
        [
            (timedelta(seconds=30), "now"),
            (timedelta(minutes=-5), "overdue"),
            (timedelta(minutes=1), "in 1 minute"),
            (timedelta(minutes=45), "in 45 minutes"),
            (timedelta(hours=1, minutes=10), "in 1 hour"),
            (timedelta(hours=5), "in 5 hours"),
            (timedelta(days=3, hours=2), "in 3 days"),
        ],
    )
    def test_wording(self, delta, expected):
        """Test relative time wording."""
        assert jobs.relative_time(NOW + delta, NOW) == expected

    def test_naive_targets_are_utc(self):
        """Test that naive datetimes are read as UTC."""
        naive = (NOW + timedelta(hours=2)).replace(tzinfo=None)
        assert jobs.relative_time(naive, NOW) == "in 2 hours"


async def _notifications(session_factory) -> list[Notification]:
    async with session_factory() as session:
        result = await session.execute(select(Notification).order_by(Notification.created_at))
        return list(result.scalars().all())


class TestOverdueTasks:
    """Tests for the overdue task notification job."""

    @pytest.mark.asyncio
    async def test_notifies_assignee_once(self, session, session_factory, org, manager, report):
        """Test that an overdue task notifies its assignee once."""
        now = utcnow()
        await tasks.create_task(
            session,
            manager,
            TaskCreate(title="File expenses", assignee_id=report.person_id, due_date=now - timedelta(days=2)),
        )
        await session.commit()

        (result,) = await jobs.run_job(
            "overdue-tasks-notification", org_id=org.id, session_factory=session_factory, now=now
        )
        assert result["success"] is True
        assert result["notifications_created"] == 1

        (notification,) = await _notifications(session_factory)
        assert notification.user_id == report.user_id
        assert notification.title == "Overdue Task"
        assert notification.message == 'Task "File expenses" is overdue'

        (again,) = await jobs.run_job(
            "overdue-tasks-notification", org_id=org.id, session_factory=session_factory, now=now
        )
        assert again["notifications_created"] == 0
        assert again["metadata"]["skipped_duplicates"] == 1

    @pytest.mark.asyncio
    async def test_several_tasks_are_summarised(self, session, session_factory, org, manager, report):
        """Test that several overdue tasks share one notification."""
        now = utcnow()
        for title in ("One", "Two"):
            await tasks.create_task(
                session,
                manager,
                TaskCreate(title=title, assignee_id=report.person_id, due_date=now - timedelta(days=3)),
            )
        await tasks.create_task(
            session,
            manager,
            TaskCreate(
                title="Done already",
                assignee_id=report.person_id,
                due_date=now - timedelta(days=3),
                status="done",
            ),
        )
        await session.commit()

        await jobs.run_job("overdue-tasks-notification", org_id=org.id, session_factory=session_factory, now=now)
        (notification,) = await _notifications(session_factory)
        assert notification.title == "Overdue Tasks"
        assert notification.message == "You have 2 overdue tasks"

    @pytest.mark.asyncio
    async def test_dry_run_rolls_back(self, session, session_factory, org, manager, report):
        """Test that a dry run writes nothing."""
        now = utcnow()
        await tasks.create_task(
            session,
            manager,
            TaskCreate(title="Late", assignee_id=report.person_id, due_date=now - timedelta(days=2)),
        )
        await session.commit()

        (result,) = await jobs.run_job(
            "overdue-tasks-notification",
            org_id=org.id,
            dry_run=True,
            session_factory=session_factory,
            now=now,
        )
        assert result["notifications_created"] == 1
        assert await _notifications(session_factory) == []


class TestTaskReminders:
    @pytest.mark.asyncio
    async def test_due_reminder_becomes_notification(self, session, session_factory, org, manager):
        """Test that a due reminder is delivered as a notification."""
        now = utcnow()
        await tasks.create_task(
            session,
            manager,
            TaskCreate(
                title="Send offer letter",
                due_date=now + timedelta(minutes=30),
                reminder_minutes_before_due=60,
            ),
        )
        await session.commit()

        (result,) = await jobs.run_job("task-reminders", org_id=org.id, session_factory=session_factory, now=now)
        assert result["notifications_created"] == 1
        assert result["metadata"]["deliveries_created"] == 1

        (notification,) = await _notifications(session_factory)
        assert notification.user_id == manager.user_id
        assert notification.title == "Task Reminder"
        assert notification.message == 'Task "Send offer letter" is due in 30 minutes'

        (again,) = await jobs.run_job("task-reminders", org_id=org.id, session_factory=session_factory, now=now)
        assert again["notifications_created"] == 0


class TestRunJob:
    """Tests for running jobs by id."""

    @pytest.mark.asyncio
    async def test_runs_for_every_organization(self, session_factory, org):
        """Test that jobs run once per organization."""
        results = await jobs.run_job("tolerance-rules", session_factory=session_factory, now=NOW)
        assert [r["organization_id"] for r in results] == [str(org.id)]
        assert results[0]["metadata"]["rules_evaluated"] == 0

    @pytest.mark.asyncio
    async def test_unknown_job(self, session_factory):
        """Test that run_job rejects unknown job ids."""
        with pytest.raises(KeyError):
            await jobs.run_job("nope", session_factory=session_factory)

    @pytest.mark.asyncio
    async def test_failure_is_reported(self, session_factory, org):
        """Test that a job failure is captured in its result."""
        async def explode(session, organization_id, now):
            raise RuntimeError("database on fire")

        broken = jobs.Job("broken", "Broken", "Always fails", explode)
        with patch.dict(jobs.JOBS, {"broken": broken}):
            (result,) = await jobs.run_job("broken", org_id=org.id, session_factory=session_factory)
        assert result["success"] is False
        assert result["error"] == "database on fire"


class TestScheduler:
    """Tests for the in-process scheduler."""

    @pytest.mark.asyncio
    async def test_scheduled_job_swallows_failures(self):
        """Test that the scheduler wrapper logs rather than raises."""
        with patch("manageros.tasks.workers.run_job", AsyncMock(side_effect=RuntimeError("down"))):
            await workers.run_scheduled_job("task-reminders")

    @pytest.mark.asyncio
    async def test_scheduled_job_runs_all_organizations(self):
        """Test that scheduled runs cover all organizations."""
        run = AsyncMock(return_value=[{"success": True}, {"success": False}])
        with patch("manageros.tasks.workers.run_job", run):
            await workers.run_scheduled_job("tolerance-rules")
        run.assert_awaited_once_with("tolerance-rules")

    def test_start_registers_jobs_once(self):
        """Test that starting the scheduler twice registers jobs once."""
        with patch("manageros.tasks.workers.AsyncIOScheduler") as scheduler_cls:
            try:
                workers.start_scheduler()
                workers.start_scheduler()
            finally:
                workers.stop_scheduler()
        scheduler = scheduler_cls.return_value
        assert scheduler_cls.call_count == 1
        job_ids = [call.kwargs["id"] for call in scheduler.add_job.call_args_list]
        assert job_ids == ["overdue_tasks_daily", "task_reminders", "tolerance_rules_daily"]
        scheduler.shutdown.assert_called_once_with(wait=False)


def test_job_ids_match_cli_and_cron():
    """Test that scheduler, CLI and cron share job ids."""
    assert set(jobs.JOBS) == {"overdue-tasks-notification", "task-reminders", "tolerance-rules"}
    assert all(isinstance(job_id, str) and job_id == job.id for job_id, job in jobs.JOBS.items())
