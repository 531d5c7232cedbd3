"""Tests for the people dashboard statistics."""

from __future__ import annotations

from datetime import timedelta

import pytest
import pytest_asyncio

from manageros.models.db import (
    FeedbackCampaign,
    OneOnOne,
    Person,
    Team,
    ToleranceException,
    ToleranceRule,
    utcnow,
)
from manageros.services.people_stats import get_people_stats


@pytest_asyncio.fixture
async def team_of_three(session, org, manager, report, make_person):
    """Morgan manages Riley (recent 1:1 and 360), Quinn (neither) and Pat (on leave)."""
    platform = Team(organization_id=org.id, name="Platform")
    session.add(platform)
    await session.flush()
    riley = await session.get(Person, report.person_id)
    riley.team_id = platform.id
    quinn = await make_person("Quinn Quiet", manager_id=manager.person_id)
    await make_person("Pat Away", manager_id=manager.person_id, status="on_leave")

    now = utcnow()
    session.add(
        OneOnOne(manager_id=manager.person_id, report_id=report.person_id, scheduled_at=now - timedelta(days=3))
    )
    session.add(
        FeedbackCampaign(
            organization_id=org.id,
            target_person_id=report.person_id,
            start_date=now,
            end_date=now + timedelta(days=14),
        )
    )
    await session.commit()
    return quinn


class TestPeopleStats:
    """Tests for get_people_stats."""

    @pytest.mark.asyncio
    async def test_counts_for_manager(self, session, manager, team_of_three):
        """Overdue counts cover active direct reports only."""
        stats = await get_people_stats(session, manager)
        assert stats.total_people == 5
        assert stats.direct_reports == 3
        assert stats.reports_without_recent_one_on_one == 1
        assert stats.reports_without_recent_feedback_360 == 1
        assert stats.has_max_reports_rule is False
        assert stats.managers_exceeding_max_reports == 0

        assert {s.status: s.count for s in stats.status_breakdown} == {"active": 4, "on_leave": 1}
        assert {t.team_name: t.count for t in stats.team_breakdown} == {"Platform": 1, None: 4}
        assert {r.job_role_title: r.count for r in stats.job_role_breakdown} == {None: 5}

    @pytest.mark.asyncio
    async def test_one_on_one_threshold_from_rule(self, session, org, manager, team_of_three):
        """An enabled 1:1 frequency rule tightens the window."""
        session.add(
            ToleranceRule(
                organization_id=org.id,
                rule_type="one_on_one_frequency",
                name="Weekly-ish",
                config={"warning_threshold_days": 2, "urgent_threshold_days": 5},
            )
        )
        await session.commit()

        stats = await get_people_stats(session, manager)
        assert stats.reports_without_recent_one_on_one == 2

    @pytest.mark.asyncio
    async def test_span_exceptions_counted(self, session, org, admin, manager):
        """Active span-of-control exceptions are reported when the rule is enabled."""
        rule = ToleranceRule(
            organization_id=org.id,
            rule_type="manager_span",
            name="Span",
            config={"max_direct_reports": 1},
        )
        session.add(rule)
        await session.flush()
        session.add(
            ToleranceException(
                organization_id=org.id,
                rule_id=rule.id,
                entity_type="Person",
                entity_id=str(admin.person_id),
                severity="warning",
                message="Too many reports",
                status="active",
            )
        )
        await session.commit()

        stats = await get_people_stats(session, admin)
        assert stats.has_max_reports_rule is True
        assert stats.managers_exceeding_max_reports == 1
        assert stats.direct_reports == 1

    @pytest.mark.asyncio
    async def test_caller_without_person(self, session, make_member, manager):
        """Without a linked person only org-wide numbers are filled in."""
        ctx = await make_member("Nora Noperson", with_person=False)
        stats = await get_people_stats(session, ctx)
        assert stats.total_people == 2
        assert stats.direct_reports == 0
        assert stats.reports_without_recent_one_on_one == 0
