"""Aggregated people numbers for the people dashboard."""

from __future__ import annotations

import uuid
from datetime import timedelta
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from manageros.auth import UserContext, require_organization
from manageros.models.db import (
    FeedbackCampaign,
    JobRole,
    OneOnOne,
    Person,
    Team,
    ToleranceException,
    ToleranceRule,
    utcnow,
)
from manageros.models.schemas import (
    JobRoleCount,
    PeopleStatsResponse,
    StatusCount,
    TeamCount,
)
from manageros.services.common import as_utc, count_rows

DEFAULT_ONE_ON_ONE_DAYS = 14
DEFAULT_FEEDBACK_360_MONTHS = 6


async def _enabled_rule(
    session: AsyncSession, org_id: uuid.UUID, rule_type: str
) -> ToleranceRule | None:
    result = await session.execute(
        select(ToleranceRule)
        .where(
            ToleranceRule.organization_id == org_id,
            ToleranceRule.rule_type == rule_type,
            ToleranceRule.is_enabled.is_(True),
        )
        .limit(1)
    )
    return result.scalar_one_or_none()


async def _thresholds(session: AsyncSession, org_id: uuid.UUID) -> tuple[int, int]:
    """(1:1 days, 360 months) from the enabled rules, or the defaults."""
    days, months = DEFAULT_ONE_ON_ONE_DAYS, DEFAULT_FEEDBACK_360_MONTHS
    rule = await _enabled_rule(session, org_id, "one_on_one_frequency")
    if rule is not None:
        config = rule.config or {}
        days = config.get("warning_threshold_days") or config.get("urgent_threshold_days") or days
    rule = await _enabled_rule(session, org_id, "feedback_360")
    if rule is not None:
        months = (rule.config or {}).get("warning_threshold_months") or months
    return int(days), int(months)


async def _grouped(
    session: AsyncSession, key: Any, label: Any, outer: Any, org_id: uuid.UUID
) -> list[tuple]:
    """Person counts per ``key``, labelled from the joined table (None when unset)."""
    stmt = (
        select(label, func.count(Person.id))
        .select_from(Person)
        .outerjoin(outer, outer.id == key)
        .where(Person.organization_id == org_id)
        .group_by(key, label)
    )
    return list((await session.execute(stmt)).all())


def _count_stale(last_seen: dict[uuid.UUID, Any], report_ids: list[uuid.UUID], cutoff) -> int:
    stale = 0
    for report_id in report_ids:
        last = as_utc(last_seen.get(report_id))
        if last is None or last < cutoff:
            stale += 1
    return stale


async def get_people_stats(session: AsyncSession, ctx: UserContext) -> PeopleStatsResponse:
    """Headcount breakdowns plus the caller's direct reports overdue for a 1:1 or a 360."""
    org_id = require_organization(ctx, "view people stats")
    now = utcnow()
    one_on_one_days, feedback_months = await _thresholds(session, org_id)

    total_people = await count_rows(session, Person, Person.organization_id == org_id)
    direct_reports = 0
    without_one_on_one = 0
    without_feedback = 0

    if ctx.person_id is not None:
        me = ctx.person_id
        direct_reports = await count_rows(
            session, Person, Person.organization_id == org_id, Person.manager_id == me
        )
        result = await session.execute(
            select(Person.id).where(
                Person.organization_id == org_id,
                Person.manager_id == me,
                Person.status == "active",
            )
        )
        report_ids = list(result.scalars().all())

        if report_ids:
            # a 1:1 counts in either direction between the caller and the report
            result = await session.execute(
                select(OneOnOne.manager_id, OneOnOne.report_id, OneOnOne.scheduled_at)
                .where(
                    or_(
                        (OneOnOne.manager_id == me) & OneOnOne.report_id.in_(report_ids),
                        (OneOnOne.report_id == me) & OneOnOne.manager_id.in_(report_ids),
                    ),
                    OneOnOne.scheduled_at.is_not(None),
                )
            )
            last_one_on_one: dict[uuid.UUID, Any] = {}
            for manager_id, report_id, scheduled_at in result.all():
                other = report_id if manager_id == me else manager_id
                last = last_one_on_one.get(other)
                if last is None or as_utc(scheduled_at) > as_utc(last):
                    last_one_on_one[other] = scheduled_at
            without_one_on_one = _count_stale(
                last_one_on_one, report_ids, now - timedelta(days=one_on_one_days)
            )

            result = await session.execute(
                select(FeedbackCampaign.target_person_id, func.max(FeedbackCampaign.created_at))
                .where(FeedbackCampaign.target_person_id.in_(report_ids))
                .group_by(FeedbackCampaign.target_person_id)
            )
            last_campaign = {row[0]: row[1] for row in result.all()}
            without_feedback = _count_stale(
                last_campaign, report_ids, now - timedelta(days=feedback_months * 30)
            )

    managers_exceeding = 0
    span_rule = await _enabled_rule(session, org_id, "manager_span")
    if span_rule is not None:
        managers_exceeding = await count_rows(
            session,
            ToleranceException,
            ToleranceException.organization_id == org_id,
            ToleranceException.rule_id == span_rule.id,
            ToleranceException.entity_type == "Person",
            ToleranceException.status == "active",
        )

    status_rows = await session.execute(
        select(Person.status, func.count(Person.id))
        .where(Person.organization_id == org_id)
        .group_by(Person.status)
    )
    team_rows = await _grouped(session, Person.team_id, Team.name, Team, org_id)
    role_rows = await _grouped(session, Person.job_role_id, JobRole.title, JobRole, org_id)

    return PeopleStatsResponse(
        total_people=total_people,
        direct_reports=direct_reports,
        reports_without_recent_one_on_one=without_one_on_one,
        reports_without_recent_feedback_360=without_feedback,
        managers_exceeding_max_reports=managers_exceeding,
        has_max_reports_rule=span_rule is not None,
        status_breakdown=[StatusCount(status=s, count=c) for s, c in status_rows.all()],
        team_breakdown=[TeamCount(team_name=name, count=c) for name, c in team_rows],
        job_role_breakdown=[JobRoleCount(job_role_title=title, count=c) for title, c in role_rows],
    )
