"""Filtered, sorted and paginated initiative listing.

Query-string filters are translated into a parameterised SQLAlchemy
statement; nothing from the request is ever interpolated into SQL text.
``immutable_filters`` (a JSON object pinned by the embedding page) wins over
the user-editable parameters.
"""

from __future__ import annotations

import json
import logging
import math
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Any

from sqlalchemy import case, exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from manageros.auth import UserContext, require_organization
from manageros.errors import DomainValidationError
from manageros.models.db import CheckIn, Initiative, InitiativeOwner, Objective, Task, Team

logger = logging.getLogger(__name__)

IMMUTABLE_KEYS = {
    "search": "search",
    "teamId": "team_id",
    "ownerId": "owner_id",
    "rag": "rag",
    "status": "status",
    "dateFrom": "date_from",
    "dateTo": "date_to",
}


@dataclass
class InitiativeListParams:
    page: int = 1
    limit: int = 20
    search: str = ""
    team_id: str = ""
    owner_id: str = ""
    rag: str = ""
    status: str = ""
    date_from: str = ""
    date_to: str = ""
    sort: str = ""
    immutable_filters: str | None = None

    def effective(self) -> dict[str, str]:
        """Merge the plain parameters with ``immutable_filters``.

        Raises:
            DomainValidationError: if ``immutable_filters`` is not a JSON object.
        """
        values = {field: getattr(self, field) or "" for field in IMMUTABLE_KEYS.values()}
        if not self.immutable_filters:
            return values
        try:
            pinned = json.loads(self.immutable_filters)
        except ValueError as exc:
            raise DomainValidationError("Invalid immutableFilters parameter") from exc
        if not isinstance(pinned, dict):
            raise DomainValidationError("Invalid immutableFilters parameter")
        for key, field in IMMUTABLE_KEYS.items():
            if pinned.get(key):
                values[field] = str(pinned[key])
        return values


def parse_values(param: str) -> list[str]:
    return [value.strip() for value in param.split(",") if value.strip()] if param else []


def _parse_uuid(value: str, name: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError as exc:
        raise DomainValidationError(f"Invalid {name} parameter") from exc


def _parse_date(value: str, name: str) -> date:
    try:
        return date.fromisoformat(value[:10])
    except ValueError as exc:
        raise DomainValidationError(f"Invalid {name} parameter") from exc


def _in_or_equal(column, values: list[str]):
    if len(values) == 1:
        return column == values[0]
    return column.in_(values)


def build_filters(params: InitiativeListParams, organization_id: uuid.UUID) -> list[Any]:
    """WHERE criteria for the listing, always scoped to ``organization_id``."""
    values = params.effective()
    criteria: list[Any] = [Initiative.organization_id == organization_id]

    if values["search"]:
        criteria.append(Initiative.title.ilike(f"%{values['search']}%"))

    team = values["team_id"]
    if team and team != "all":
        if team == "no-team":
            criteria.append(Initiative.team_id.is_(None))
        else:
            criteria.append(Initiative.team_id == _parse_uuid(team, "teamId"))

    for field, column in (("rag", Initiative.rag), ("status", Initiative.status)):
        selected = parse_values(values[field])
        if selected and "all" not in selected:
            criteria.append(_in_or_equal(column, selected))

    if values["date_from"]:
        criteria.append(Initiative.target_date >= _parse_date(values["date_from"], "dateFrom"))
    if values["date_to"]:
        criteria.append(Initiative.target_date <= _parse_date(values["date_to"], "dateTo"))

    owner = values["owner_id"]
    if owner and owner != "all":
        owner_id = _parse_uuid(owner, "ownerId")
        criteria.append(
            exists().where(
                InitiativeOwner.initiative_id == Initiative.id,
                InitiativeOwner.person_id == owner_id,
            )
        )
    return criteria


def build_order_by(sort: str) -> list[Any]:
    """ORDER BY clauses from ``field:dir,field:dir``; unknown fields are skipped."""
    clauses: list[Any] = []
    for part in parse_values(sort):
        name, _, direction = part.partition(":")
        descending = direction.strip().lower() == "desc"
        name = name.strip().lower()

        if name == "title":
            column, nulls_last = func.lower(Initiative.title), False
        elif name == "status":
            column, nulls_last = Initiative.status, False
        elif name == "rag":
            column = case(
                (Initiative.rag == "red", 1),
                (Initiative.rag == "amber", 2),
                (Initiative.rag == "green", 3),
                else_=4,
            )
            nulls_last = False
        elif name == "team":
            column, nulls_last = Team.name, True
        elif name in ("targetdate", "target_date"):
            column, nulls_last = Initiative.target_date, True
        elif name in ("createdat", "created_at"):
            column, nulls_last = Initiative.created_at, False
        elif name in ("updatedat", "updated_at"):
            column, nulls_last = Initiative.updated_at, False
        else:
            continue

        clause = column.desc() if descending else column.asc()
        clauses.append(clause.nulls_last() if nulls_last else clause)

    return clauses or [Initiative.updated_at.desc()]


def build_list_statements(params: InitiativeListParams, organization_id: uuid.UUID):
    """Return ``(page_stmt, count_stmt)`` for the given parameters."""
    criteria = build_filters(params, organization_id)
    page = max(params.page, 1)
    limit = max(params.limit, 1)

    page_stmt = (
        select(Initiative, Team.name)
        .outerjoin(Team, Team.id == Initiative.team_id)
        .where(*criteria)
        .order_by(*build_order_by(params.sort))
        .limit(limit)
        .offset((page - 1) * limit)
    )
    count_stmt = select(func.count()).select_from(Initiative).where(*criteria)
    return page_stmt, count_stmt


async def _enrich(session: AsyncSession, rows: list[tuple[Initiative, str | None]]) -> list[dict[str, Any]]:
    ids = [initiative.id for initiative, _ in rows]
    if not ids:
        return []

    result = await session.execute(
        select(Objective).where(Objective.initiative_id.in_(ids)).order_by(Objective.sort_index)
    )
    objectives: dict[uuid.UUID, list[dict[str, Any]]] = {}
    for objective in result.scalars().all():
        objectives.setdefault(objective.initiative_id, []).append(
            {
                "id": objective.id,
                "title": objective.title,
                "key_result": objective.key_result,
                "sort_index": objective.sort_index,
            }
        )

    result = await session.execute(
        select(InitiativeOwner)
        .where(InitiativeOwner.initiative_id.in_(ids))
        .options(selectinload(InitiativeOwner.person))
    )
    owners: dict[uuid.UUID, list[dict[str, Any]]] = {}
    for owner in result.scalars().all():
        owners.setdefault(owner.initiative_id, []).append(
            {
                "person_id": owner.person_id,
                "role": owner.role,
                "person": {"id": owner.person.id, "name": owner.person.name},
            }
        )

    result = await session.execute(
        select(
            Task.initiative_id,
            func.count(),
            func.sum(case((Task.status == "done", 1), else_=0)),
        )
        .where(Task.initiative_id.in_(ids))
        .group_by(Task.initiative_id)
    )
    task_counts = {row[0]: (int(row[1]), int(row[2] or 0)) for row in result.all()}

    result = await session.execute(
        select(CheckIn.initiative_id, func.count())
        .where(CheckIn.initiative_id.in_(ids))
        .group_by(CheckIn.initiative_id)
    )
    check_in_counts = {row[0]: int(row[1]) for row in result.all()}

    enriched = []
    for initiative, team_name in rows:
        tasks, completed = task_counts.get(initiative.id, (0, 0))
        enriched.append(
            {
                "id": initiative.id,
                "title": initiative.title,
                "summary": initiative.summary,
                "outcome": initiative.outcome,
                "status": initiative.status,
                "rag": initiative.rag,
                "confidence": initiative.confidence,
                "size": initiative.size,
                "start_date": initiative.start_date,
                "target_date": initiative.target_date,
                "created_at": initiative.created_at,
                "updated_at": initiative.updated_at,
                "team_id": initiative.team_id,
                "organization_id": initiative.organization_id,
                "team": {"id": initiative.team_id, "name": team_name} if initiative.team_id else None,
                "objectives": objectives.get(initiative.id, []),
                "owners": owners.get(initiative.id, []),
                "_count": {"tasks": tasks, "check_ins": check_in_counts.get(initiative.id, 0)},
                "completed_tasks": completed,
            }
        )
    return enriched


async def list_initiatives(
    session: AsyncSession, ctx: UserContext, params: InitiativeListParams
) -> dict[str, Any]:
    """One page of initiatives plus pagination metadata."""
    org_id = require_organization(ctx, "view initiatives")
    page_stmt, count_stmt = build_list_statements(params, org_id)

    total = int((await session.execute(count_stmt)).scalar_one())
    rows = [(row[0], row[1]) for row in (await session.execute(page_stmt)).all()]
    initiatives = await _enrich(session, rows)

    page = max(params.page, 1)
    limit = max(params.limit, 1)
    total_pages = math.ceil(total / limit)
    return {
        "initiatives": initiatives,
        "pagination": {
            "page": page,
            "limit": limit,
            "total_count": total,
            "total_pages": total_pages,
            "has_next_page": page < total_pages,
            "has_previous_page": page > 1,
        },
    }
