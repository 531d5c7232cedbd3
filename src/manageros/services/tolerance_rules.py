"""Tolerance rules, their evaluation, and the exceptions they raise.

A tolerance rule is an org-defined threshold (1:1 cadence, check-in cadence,
360 feedback cadence, span of control). Evaluating a rule creates an
``active`` exception for every entity that violates it, unless one is
already active for that (rule, entity). Resolvers close exceptions as soon
as the underlying problem is fixed elsewhere in the app.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ValidationError
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from manageros.auth import UserContext, require_admin, require_organization
from manageros.errors import DomainValidationError
from manageros.models.db import (
    CheckIn,
    FeedbackCampaign,
    Initiative,
    OneOnOne,
    Person,
    ToleranceException,
    ToleranceRule,
    User,
    utcnow,
)
from manageros.models.schemas import (
    Feedback360Config,
    InitiativeCheckInConfig,
    ManagerSpanConfig,
    MaxReportsConfig,
    OneOnOneFrequencyConfig,
    ToleranceRuleCreate,
    ToleranceRuleUpdate,
)
from manageros.services.common import apply_updates, as_utc, get_in_org
from manageros.services.notifications import create_notification

logger = logging.getLogger(__name__)

CONFIG_MODELS: dict[str, type[BaseModel]] = {
    "one_on_one_frequency": OneOnOneFrequencyConfig,
    "initiative_checkin": InitiativeCheckInConfig,
    "feedback_360": Feedback360Config,
    "manager_span": ManagerSpanConfig,
    "max_reports": MaxReportsConfig,
}

SPAN_RULES = {
    "manager_span": ("max_direct_reports", "Warning: Manager Span of Control"),
    "max_reports": ("max_reports", "Warning: Maximum Reports Exceeded"),
}


def validate_rule_config(rule_type: str, config: dict[str, Any]) -> dict[str, Any]:
    model = CONFIG_MODELS.get(rule_type)
    if model is None:
        raise DomainValidationError(f"Unknown rule type: {rule_type}")
    try:
        return model.model_validate(config).model_dump()
    except ValidationError as exc:
        raise DomainValidationError(f"Invalid configuration for rule type {rule_type}") from exc


# ── Rule CRUD ─────────────────────────────────────────────────────────────────


async def list_rules(session: AsyncSession, ctx: UserContext) -> list[ToleranceRule]:
    org_id = require_organization(ctx, "view tolerance rules")
    result = await session.execute(
        select(ToleranceRule)
        .where(ToleranceRule.organization_id == org_id)
        .order_by(ToleranceRule.created_at)
    )
    return list(result.scalars().all())


async def get_rule(session: AsyncSession, ctx: UserContext, rule_id: uuid.UUID) -> ToleranceRule:
    org_id = require_organization(ctx, "view tolerance rules")
    return await get_in_org(
        session, ToleranceRule, rule_id, org_id, "Tolerance rule not found or access denied"
    )


async def create_rule(
    session: AsyncSession, ctx: UserContext, data: ToleranceRuleCreate
) -> ToleranceRule:
    org_id = require_admin(ctx, "Only administrators can create tolerance rules")
    rule = ToleranceRule(
        organization_id=org_id,
        rule_type=data.rule_type,
        name=data.name,
        description=data.description,
        is_enabled=data.is_enabled,
        config=validate_rule_config(data.rule_type, data.config),
    )
    session.add(rule)
    await session.flush()
    return rule


async def update_rule(
    session: AsyncSession, ctx: UserContext, rule_id: uuid.UUID, data: ToleranceRuleUpdate
) -> ToleranceRule:
    org_id = require_admin(ctx, "Only administrators can update tolerance rules")
    rule = await get_in_org(
        session, ToleranceRule, rule_id, org_id, "Tolerance rule not found or access denied"
    )
    values = data.model_dump(exclude_unset=True)
    if values.get("config") is not None:
        values["config"] = validate_rule_config(rule.rule_type, values["config"])
    else:
        values.pop("config", None)
    apply_updates(rule, values)
    await session.flush()
    return rule


async def delete_rule(session: AsyncSession, ctx: UserContext, rule_id: uuid.UUID) -> None:
    org_id = require_admin(ctx, "Only administrators can delete tolerance rules")
    rule = await get_in_org(
        session, ToleranceRule, rule_id, org_id, "Tolerance rule not found or access denied"
    )
    await session.delete(rule)
    await session.flush()


# ── Evaluation ────────────────────────────────────────────────────────────────


async def _active_entity_ids(
    session: AsyncSession, rule: ToleranceRule, entity_type: str
) -> set[str]:
    result = await session.execute(
        select(ToleranceException.entity_id).where(
            ToleranceException.rule_id == rule.id,
            ToleranceException.organization_id == rule.organization_id,
            ToleranceException.entity_type == entity_type,
            ToleranceException.status == "active",
        )
    )
    return set(result.scalars().all())


def _new_exception(
    rule: ToleranceRule,
    entity_type: str,
    entity_id: str,
    severity: str,
    message: str,
    metadata: dict[str, Any],
) -> ToleranceException:
    return ToleranceException(
        organization_id=rule.organization_id,
        rule_id=rule.id,
        entity_type=entity_type,
        entity_id=entity_id,
        severity=severity,
        message=message,
        status="active",
        metadata_=metadata,
    )


async def _evaluate_one_on_one_frequency(
    session: AsyncSession, rule: ToleranceRule, now: datetime
) -> int:
    config = OneOnOneFrequencyConfig.model_validate(rule.config)

    report_criteria = [Person.status == "active", Person.manager_id.is_not(None)]
    if config.only_full_time_employees:
        report_criteria.append(Person.employee_type == "full_time")
    result = await session.execute(
        select(Person).where(Person.organization_id == rule.organization_id, *report_criteria)
    )
    reports = list(result.scalars().all())

    managers: dict[uuid.UUID, Person] = {}
    if reports:
        result = await session.execute(
            select(Person).where(
                Person.id.in_({r.manager_id for r in reports}), Person.status == "active"
            )
        )
        managers = {m.id: m for m in result.scalars().all()}

    existing = await _active_entity_ids(session, rule, "OneOnOne")
    created = 0
    for report in reports:
        manager = managers.get(report.manager_id)
        if manager is None:
            continue
        entity_id = f"{manager.id}-{report.id}"
        if entity_id in existing:
            continue

        result = await session.execute(
            select(func.max(OneOnOne.scheduled_at)).where(
                OneOnOne.scheduled_at.is_not(None),
                or_(
                    (OneOnOne.manager_id == manager.id) & (OneOnOne.report_id == report.id),
                    (OneOnOne.manager_id == report.id) & (OneOnOne.report_id == manager.id),
                ),
            )
        )
        last = as_utc(result.scalar_one_or_none())

        if last is None:
            days_since = None
            severity, threshold = "urgent", config.urgent_threshold_days
            message = (
                f"{manager.name} has never had a one on one with {report.name} "
                f"(threshold: {threshold} days)"
            )
        else:
            days_since = (now - last).days
            if days_since > config.urgent_threshold_days:
                severity, threshold = "urgent", config.urgent_threshold_days
            elif days_since > config.warning_threshold_days:
                severity, threshold = "warning", config.warning_threshold_days
            else:
                continue
            message = (
                f"{manager.name} has not had a 1:1 with {report.name} in {days_since} days "
                f"(threshold: {threshold} days)"
            )

        session.add(
            _new_exception(
                rule,
                "OneOnOne",
                entity_id,
                severity,
                message,
                {
                    "manager_id": str(manager.id),
                    "report_id": str(report.id),
                    "manager_name": manager.name,
                    "report_name": report.name,
                    "threshold_days": threshold,
                    "days_since": days_since,
                },
            )
        )
        created += 1
    return created


async def _evaluate_initiative_checkin(
    session: AsyncSession, rule: ToleranceRule, now: datetime
) -> int:
    config = InitiativeCheckInConfig.model_validate(rule.config)
    threshold = config.warning_threshold_days

    result = await session.execute(
        select(Initiative, func.max(CheckIn.created_at))
        .outerjoin(CheckIn, CheckIn.initiative_id == Initiative.id)
        .where(
            Initiative.organization_id == rule.organization_id,
            Initiative.status.in_(("planned", "in_progress")),
        )
        .group_by(Initiative.id)
    )
    existing = await _active_entity_ids(session, rule, "Initiative")
    created = 0
    for initiative, last_check_in in result.all():
        if str(initiative.id) in existing:
            continue
        last = as_utc(last_check_in)
        if last is None:
            days_since = None
            message = f'Initiative "{initiative.title}" has no check-ins (threshold: {threshold} days)'
        else:
            days_since = (now - last).days
            if days_since <= threshold:
                continue
            message = (
                f'Initiative "{initiative.title}" has not had a check-in in {days_since} days '
                f"(threshold: {threshold} days)"
            )
        session.add(
            _new_exception(
                rule,
                "Initiative",
                str(initiative.id),
                "warning",
                message,
                {
                    "initiative_id": str(initiative.id),
                    "initiative_name": initiative.title,
                    "threshold_days": threshold,
                    "days_since": days_since,
                },
            )
        )
        created += 1
    return created


async def _evaluate_feedback_360(
    session: AsyncSession, rule: ToleranceRule, now: datetime
) -> int:
    config = Feedback360Config.model_validate(rule.config)
    threshold = config.warning_threshold_months

    result = await session.execute(
        select(Person, func.max(FeedbackCampaign.created_at))
        .outerjoin(FeedbackCampaign, FeedbackCampaign.target_person_id == Person.id)
        .where(Person.organization_id == rule.organization_id, Person.status == "active")
        .group_by(Person.id)
    )
    existing = await _active_entity_ids(session, rule, "Person")
    created = 0
    for person, last_campaign in result.all():
        if str(person.id) in existing:
            continue
        last = as_utc(last_campaign)
        if last is None:
            months_since = None
            message = f"{person.name} has not had a 360 feedback campaign (threshold: {threshold} months)"
        else:
            months_since = (now - last).days // 30
            if months_since <= threshold:
                continue
            message = (
                f"{person.name} has not had a 360 feedback campaign in {months_since} months "
                f"(threshold: {threshold} months)"
            )
        session.add(
            _new_exception(
                rule,
                "Person",
                str(person.id),
                "warning",
                message,
                {
                    "person_id": str(person.id),
                    "person_name": person.name,
                    "threshold_months": threshold,
                    "months_since": months_since,
                },
            )
        )
        created += 1
    return created


async def _active_report_counts(
    session: AsyncSession, organization_id: uuid.UUID
) -> list[tuple[Person, int]]:
    Report = Person.__table__.alias("reports")
    result = await session.execute(
        select(Person, func.count(Report.c.id))
        .join(Report, Report.c.manager_id == Person.id)
        .where(
            Person.organization_id == organization_id,
            Person.status == "active",
            Report.c.status == "active",
        )
        .group_by(Person.id)
    )
    return [(manager, int(count)) for manager, count in result.all()]


async def _evaluate_span(session: AsyncSession, rule: ToleranceRule, now: datetime) -> int:
    config_key, notification_title = SPAN_RULES[rule.rule_type]
    CONFIG_MODELS[rule.rule_type].model_validate(rule.config)
    maximum = int(rule.config[config_key])

    existing = await _active_entity_ids(session, rule, "Person")
    created = 0
    for manager, count in await _active_report_counts(session, rule.organization_id):
        if count <= maximum or str(manager.id) in existing:
            continue
        message = f"{manager.name} has {count} direct reports (threshold: {maximum})"
        exception = _new_exception(
            rule,
            "Person",
            str(manager.id),
            "warning",
            message,
            {
                "manager_id": str(manager.id),
                "manager_name": manager.name,
                config_key: maximum,
                "current_count": count,
            },
        )
        session.add(exception)
        await session.flush()

        result = await session.execute(select(User.id).where(User.person_id == manager.id))
        user_id = result.scalar_one_or_none()
        if user_id is not None:
            notification = await create_notification(
                session,
                rule.organization_id,
                title=notification_title,
                message=message,
                type="warning",
                user_id=user_id,
                metadata={
                    "exception_id": str(exception.id),
                    "entity_type": "Person",
                    "entity_id": str(manager.id),
                    "navigation_path": f"/people/{manager.id}",
                },
            )
            exception.notification_id = notification.id
        created += 1
    return created


EVALUATORS = {
    "one_on_one_frequency": _evaluate_one_on_one_frequency,
    "initiative_checkin": _evaluate_initiative_checkin,
    "feedback_360": _evaluate_feedback_360,
    "manager_span": _evaluate_span,
    "max_reports": _evaluate_span,
}


async def evaluate_rules_for_organization(
    session: AsyncSession, organization_id: uuid.UUID, now: datetime | None = None
) -> dict[str, Any]:
    """Run every enabled rule of an organization.

    Returns:
        ``{"rules_evaluated": int, "exceptions_created": int, "by_rule": {...}}``
    """
    now = now or utcnow()
    result = await session.execute(
        select(ToleranceRule).where(
            ToleranceRule.organization_id == organization_id,
            ToleranceRule.is_enabled.is_(True),
        )
    )
    rules = list(result.scalars().all())

    by_rule: dict[str, int] = {}
    for rule in rules:
        created = await EVALUATORS[rule.rule_type](session, rule, now)
        by_rule[str(rule.id)] = created
        logger.info("Rule %s (%s) created %d exception(s)", rule.name, rule.rule_type, created)
    await session.flush()

    return {
        "rules_evaluated": len(rules),
        "exceptions_created": sum(by_rule.values()),
        "by_rule": by_rule,
    }


# ── Resolvers ─────────────────────────────────────────────────────────────────


async def _resolve(session: AsyncSession, *criteria: Any) -> int:
    result = await session.execute(
        select(ToleranceException).where(ToleranceException.status == "active", *criteria)
    )
    exceptions = list(result.scalars().all())
    now = utcnow()
    for exception in exceptions:
        exception.status = "resolved"
        exception.resolved_at = now
    await session.flush()
    return len(exceptions)


async def resolve_one_on_one_exceptions(
    session: AsyncSession, organization_id: uuid.UUID, manager_id: uuid.UUID, report_id: uuid.UUID
) -> int:
    return await _resolve(
        session,
        ToleranceException.organization_id == organization_id,
        ToleranceException.entity_type == "OneOnOne",
        ToleranceException.entity_id.in_((f"{manager_id}-{report_id}", f"{report_id}-{manager_id}")),
    )


async def resolve_initiative_checkin_exceptions(
    session: AsyncSession, organization_id: uuid.UUID, initiative_id: uuid.UUID
) -> int:
    return await _resolve(
        session,
        ToleranceException.organization_id == organization_id,
        ToleranceException.entity_type == "Initiative",
        ToleranceException.entity_id == str(initiative_id),
    )


async def resolve_feedback_360_exceptions(
    session: AsyncSession, organization_id: uuid.UUID, person_id: uuid.UUID
) -> int:
    rule_ids = select(ToleranceRule.id).where(
        ToleranceRule.organization_id == organization_id,
        ToleranceRule.rule_type == "feedback_360",
    )
    return await _resolve(
        session,
        ToleranceException.organization_id == organization_id,
        ToleranceException.entity_type == "Person",
        ToleranceException.entity_id == str(person_id),
        ToleranceException.rule_id.in_(rule_ids),
    )


async def resolve_manager_span_exceptions(
    session: AsyncSession, organization_id: uuid.UUID, manager_id: uuid.UUID
) -> int:
    """Resolve span exceptions of rules the manager no longer exceeds."""
    result = await session.execute(
        select(func.count())
        .select_from(Person)
        .where(Person.manager_id == manager_id, Person.status == "active")
    )
    report_count = int(result.scalar_one())

    result = await session.execute(
        select(ToleranceRule).where(
            ToleranceRule.organization_id == organization_id,
            ToleranceRule.rule_type.in_(tuple(SPAN_RULES)),
            ToleranceRule.is_enabled.is_(True),
        )
    )
    rule_ids = [
        rule.id
        for rule in result.scalars().all()
        if report_count <= int(rule.config[SPAN_RULES[rule.rule_type][0]])
    ]
    if not rule_ids:
        return 0
    return await _resolve(
        session,
        ToleranceException.organization_id == organization_id,
        ToleranceException.entity_type == "Person",
        ToleranceException.entity_id == str(manager_id),
        ToleranceException.rule_id.in_(rule_ids),
    )


# ── Exceptions ────────────────────────────────────────────────────────────────


async def list_exceptions(
    session: AsyncSession,
    ctx: UserContext,
    status: str | None = None,
    severity: str | None = None,
    rule_id: uuid.UUID | None = None,
    entity_type: str | None = None,
) -> list[ToleranceException]:
    org_id = require_organization(ctx, "view exceptions")
    stmt = select(ToleranceException).where(ToleranceException.organization_id == org_id)
    if status:
        stmt = stmt.where(ToleranceException.status == status)
    if severity:
        stmt = stmt.where(ToleranceException.severity == severity)
    if rule_id:
        stmt = stmt.where(ToleranceException.rule_id == rule_id)
    if entity_type:
        stmt = stmt.where(ToleranceException.entity_type == entity_type)
    result = await session.execute(stmt.order_by(ToleranceException.created_at.desc()))
    return list(result.scalars().all())


async def get_exception(
    session: AsyncSession, ctx: UserContext, exception_id: uuid.UUID
) -> ToleranceException:
    org_id = require_organization(ctx, "view exceptions")
    return await get_in_org(
        session, ToleranceException, exception_id, org_id, "Exception not found or access denied"
    )


async def acknowledge_exception(
    session: AsyncSession, ctx: UserContext, exception_id: uuid.UUID
) -> ToleranceException:
    exception = await get_exception(session, ctx, exception_id)
    exception.status = "acknowledged"
    exception.acknowledged_at = utcnow()
    exception.acknowledged_by_id = ctx.user_id
    await session.flush()
    return exception


async def ignore_exception(
    session: AsyncSession, ctx: UserContext, exception_id: uuid.UUID
) -> ToleranceException:
    exception = await get_exception(session, ctx, exception_id)
    exception.status = "ignored"
    await session.flush()
    return exception


async def resolve_exception(
    session: AsyncSession, ctx: UserContext, exception_id: uuid.UUID
) -> ToleranceException:
    exception = await get_exception(session, ctx, exception_id)
    exception.status = "resolved"
    exception.resolved_at = utcnow()
    await session.flush()
    return exception
