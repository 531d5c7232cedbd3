"""Tools exposed over the MCP endpoint.

Each tool is a pydantic parameter model plus an async handler that runs
with the caller's ``UserContext``. Input schemas advertised by
``tools/list`` are generated from the parameter models.
"""

from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from manageros.auth import UserContext, require_organization
from manageros.errors import IntegrationError, NotFoundError
from manageros.models.db import utcnow
from manageros.services import feedback, integrations, meetings, notes, people, tasks, teams
from manageros.services.initiative_query import InitiativeListParams, list_initiatives

logger = logging.getLogger(__name__)


class ToolParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ── Parameter models ──────────────────────────────────────────────────────────


class PeopleParams(ToolParams):
    query: str | None = Field(None, description="Search people by name or email")
    team_id: uuid.UUID | None = Field(None, alias="teamId", description="Filter by team ID")
    status: Literal["active", "inactive", "on_leave"] | None = Field(
        None, description="Filter by employment status"
    )


class TasksParams(ToolParams):
    status: Literal["todo", "doing", "blocked", "done", "dropped"] | None = Field(
        None, description="Filter by task status"
    )
    priority: int | None = Field(None, ge=1, le=5, description="Filter by task priority (1-5)")
    assignee_id: uuid.UUID | None = Field(None, alias="assigneeId", description="Filter by assigned person ID")
    initiative_id: uuid.UUID | None = Field(None, alias="initiativeId", description="Filter by initiative ID")
    query: str | None = Field(None, description="Search tasks by title or description")
    updated_after: datetime | None = Field(
        None, alias="updatedAfter", description="ISO date - only tasks updated after this date"
    )
    updated_before: datetime | None = Field(
        None, alias="updatedBefore", description="ISO date - only tasks updated before this date"
    )


class InitiativesParams(ToolParams):
    status: Literal["planned", "in_progress", "paused", "done", "canceled"] | None = Field(
        None, description="Filter by initiative status"
    )
    rag: Literal["green", "amber", "red"] | None = Field(None, description="Filter by RAG status")
    person_id: uuid.UUID | None = Field(
        None,
        alias="personId",
        description="Filter by an owner's person ID. Use currentUser first for 'my initiatives'.",
    )
    team_id: uuid.UUID | None = Field(None, alias="teamId", description="Filter by team ID")
    query: str | None = Field(None, description="Search initiatives by title")


class MeetingsParams(ToolParams):
    owner_id: uuid.UUID | None = Field(None, alias="ownerId", description="Filter by owner person ID")
    participant_id: uuid.UUID | None = Field(
        None, alias="participantId", description="Filter by participant person ID"
    )
    query: str | None = Field(None, description="Search meetings by title, description or notes")
    scheduled_after: datetime | None = Field(
        None, alias="scheduledAfter", description="ISO date - only meetings scheduled after this date"
    )
    scheduled_before: datetime | None = Field(
        None, alias="scheduledBefore", description="ISO date - only meetings scheduled before this date"
    )


class TeamsParams(ToolParams):
    query: str | None = Field(None, description="Search teams by name")


class FeedbackParams(ToolParams):
    person_id: uuid.UUID | None = Field(
        None, alias="personId", description="Filter feedback about a specific person by their ID"
    )
    kind: Literal["praise", "concern", "note"] | None = Field(None, description="Filter by feedback kind")
    limit: int = Field(50, ge=1, le=200, description="Maximum number of results")


class EmptyParams(ToolParams):
    pass


class GitHubParams(ToolParams):
    person_id: uuid.UUID | None = Field(
        None,
        alias="personId",
        description="Person whose linked GitHub account to search. Defaults to the current user.",
    )
    days_back: int = Field(30, alias="daysBack", ge=1, le=365, description="Look-back window in days")


class JiraParams(ToolParams):
    query: str | None = Field(None, description="Free-text search across ticket fields")
    project: str | None = Field(None, description="Filter by Jira project key")
    status_category: list[Literal["Open", "In Progress", "Done"]] | None = Field(
        None, alias="statusCategory", description="Filter by status category"
    )
    person_id: uuid.UUID | None = Field(
        None,
        alias="personId",
        description="Another person's ID to search their tickets. Omit for the current user.",
    )
    assignee: str | None = Field(None, description="Filter by assignee email or account ID")
    limit: int = Field(50, ge=1, le=100, description="Maximum number of results")


class EntityNotesParams(ToolParams):
    entity_type: Literal["initiative", "task", "meeting", "oneOnOne", "person"] = Field(
        ..., alias="entityType", description="Kind of entity the notes are attached to"
    )
    entity_id: uuid.UUID = Field(..., alias="entityId", description="ID of the entity")


class PersonLookupParams(ToolParams):
    query: str = Field(..., min_length=1, description="Name or email of the person to find")


class JobRoleLookupParams(ToolParams):
    query: list[str] = Field(
        ...,
        min_length=1,
        description="Variants of the job role title (e.g. 'Sr. Engineer' matches 'Senior Engineer')",
    )


# ── Handlers ──────────────────────────────────────────────────────────────────


def _person_brief(person) -> dict[str, Any]:
    return {
        "id": person.id,
        "name": person.name,
        "email": person.email,
        "role": person.role,
        "status": person.status,
        "team_id": person.team_id,
        "manager_id": person.manager_id,
    }


async def _people(session: AsyncSession, ctx: UserContext, params: PeopleParams) -> Any:
    found = await people.list_people(
        session, ctx, search=params.query, team_id=params.team_id, status=params.status
    )
    return {"people": [_person_brief(person) for person in found], "total": len(found)}


async def _tasks(session: AsyncSession, ctx: UserContext, params: TasksParams) -> Any:
    found = await tasks.list_tasks(
        session,
        ctx,
        status=[params.status] if params.status else None,
        priority=[params.priority] if params.priority else None,
        assignee_id=params.assignee_id,
        initiative_id=params.initiative_id,
        query=params.query,
        updated_after=params.updated_after,
        updated_before=params.updated_before,
        limit=100,
    )
    return {
        "tasks": [
            {
                "id": task.id,
                "title": task.title,
                "description": task.description,
                "status": task.status,
                "priority": task.priority,
                "priority_label": tasks.priority_label(task.priority),
                "assignee_id": task.assignee_id,
                "initiative_id": task.initiative_id,
                "due_date": task.due_date,
                "updated_at": task.updated_at,
            }
            for task in found
        ],
        "total": len(found),
    }


async def _initiatives(session: AsyncSession, ctx: UserContext, params: InitiativesParams) -> Any:
    list_params = InitiativeListParams(
        limit=100,
        search=params.query or "",
        team_id=str(params.team_id) if params.team_id else "",
        owner_id=str(params.person_id) if params.person_id else "",
        rag=params.rag or "",
        status=params.status or "",
    )
    result = await list_initiatives(session, ctx, list_params)
    return {"initiatives": result["initiatives"], "total": result["pagination"]["total_count"]}


async def _meetings(session: AsyncSession, ctx: UserContext, params: MeetingsParams) -> Any:
    filters = {
        "scheduled_from": params.scheduled_after,
        "scheduled_to": params.scheduled_before,
        "owner_id": params.owner_id,
        "participant_id": params.participant_id,
        "query": params.query,
    }
    found = await meetings.list_meetings(session, ctx, limit=50, **filters)
    total = await meetings.count_meetings(session, ctx, **filters)
    return {
        "meetings": [
            {
                "id": m.id,
                "title": m.title,
                "description": m.description,
                "notes": m.notes,
                "scheduled_at": m.scheduled_at,
                "duration": m.duration,
                "owner_id": m.owner_id,
                "participants": [{"person_id": p.person_id, "status": p.status} for p in m.participants],
            }
            for m in found
        ],
        "total": total,
    }


async def _teams(session: AsyncSession, ctx: UserContext, params: TeamsParams) -> Any:
    found = await teams.list_teams(session, ctx, search=params.query)
    return {
        "teams": [
            {"id": team.id, "name": team.name, "description": team.description, "parent_id": team.parent_id}
            for team in found
        ],
        "total": len(found),
    }


async def _feedback(session: AsyncSession, ctx: UserContext, params: FeedbackParams) -> Any:
    found = await feedback.list_feedback(
        session, ctx, about_id=params.person_id, kind=params.kind, limit=params.limit
    )
    return {
        "feedback": [
            {
                "id": item.id,
                "about_id": item.about_id,
                "from_id": item.from_id,
                "kind": item.kind,
                "is_private": item.is_private,
                "body": item.body,
                "created_at": item.created_at,
            }
            for item in found
        ],
        "total": len(found),
    }


async def _entity_notes(session: AsyncSession, ctx: UserContext, params: EntityNotesParams) -> Any:
    found_notes = await notes.get_notes_for_entity(session, ctx, params.entity_type, params.entity_id)
    found_links = await notes.get_links_for_entity(session, ctx, params.entity_type, params.entity_id)
    return {
        "notes": [
            {
                "id": note.id,
                "content": note.content,
                "author": note.created_by.name if note.created_by else None,
                "created_at": note.created_at,
            }
            for note in found_notes
        ],
        "links": [
            {"id": link.id, "url": link.url, "title": link.title, "description": link.description}
            for link in found_links
        ],
    }


async def _current_user(session: AsyncSession, ctx: UserContext, params: EmptyParams) -> Any:
    result: dict[str, Any] = {"user": ctx.as_dict(), "person": None}
    if ctx.person_id is not None and ctx.organization_id is not None:
        person = await people.get_person(session, ctx, ctx.person_id)
        result["person"] = _person_brief(person)
    return result


async def _linked_person(session: AsyncSession, ctx: UserContext, person_id: uuid.UUID | None):
    target = person_id or ctx.person_id
    if target is None:
        raise NotFoundError("Current user is not linked to a person")
    return await people.get_person(session, ctx, target)


async def _github(session: AsyncSession, ctx: UserContext, params: GitHubParams) -> Any:
    require_organization(ctx, "use the GitHub integration")
    client = await integrations.get_github_client_for(session, ctx)
    if client is None:
        raise IntegrationError("GitHub integration is not configured")
    person = await _linked_person(session, ctx, params.person_id)
    if not person.github_username:
        raise NotFoundError(f"{person.name} has no linked GitHub account")
    pull_requests = await client.get_recent_pull_requests(person.github_username, params.days_back)
    return {
        "person": {"id": person.id, "name": person.name, "github_username": person.github_username},
        "pull_requests": pull_requests,
        "total": len(pull_requests),
    }


async def _jira(session: AsyncSession, ctx: UserContext, params: JiraParams) -> Any:
    require_organization(ctx, "use the Jira integration")
    client = await integrations.get_jira_client_for(session, ctx)
    if client is None:
        raise IntegrationError("Jira integration is not configured")
    assignee = params.assignee
    if assignee is None:
        person = await _linked_person(session, ctx, params.person_id)
        if not person.jira_account_id:
            raise NotFoundError(f"{person.name} has no linked Jira account")
        assignee = person.jira_account_id
    return await client.search_tickets(
        query=params.query,
        project=params.project,
        status_category=params.status_category,
        assignee=assignee,
        limit=params.limit,
    )


async def _date_time(session: AsyncSession, ctx: UserContext, params: EmptyParams) -> Any:
    now = utcnow()
    return {
        "iso": now.isoformat(),
        "date": now.date().isoformat(),
        "time": now.strftime("%H:%M:%S"),
        "day_of_week": now.strftime("%A"),
        "timezone": "UTC",
        "timestamp": int(now.timestamp()),
        "start_of_week": (now - timedelta(days=now.weekday())).date().isoformat(),
    }


async def _person_lookup(session: AsyncSession, ctx: UserContext, params: PersonLookupParams) -> Any:
    org_id = require_organization(ctx, "look up people")
    found = await people.find_person_by_name_or_email(session, org_id, params.query.strip())
    return {"people": [_person_brief(person) for person in found], "total": len(found)}


ROLE_ABBREVIATIONS = {
    "sr": "senior",
    "jr": "junior",
    "eng": "engineer",
    "engr": "engineer",
    "mgr": "manager",
    "dir": "director",
    "vp": "vice president",
    "pm": "product manager",
    "swe": "software engineer",
}


def role_query_variations(query: str) -> set[str]:
    """The query, its abbreviations expanded, and its individual words."""
    base = query.strip().lower()
    words = [word for word in re.split(r"[\s.]+", base) if word]
    expanded = " ".join(ROLE_ABBREVIATIONS.get(word, word) for word in words)
    variations = {base, expanded}
    variations.update(word for word in expanded.split() if len(word) > 2)
    return {variation for variation in variations if variation}


async def _job_role_lookup(session: AsyncSession, ctx: UserContext, params: JobRoleLookupParams) -> Any:
    require_organization(ctx, "look up job roles")
    variations: set[str] = set()
    for query in params.query:
        variations |= role_query_variations(query)

    roles = await people.list_job_roles(session, ctx)
    scored = []
    for role in roles:
        title = role.title.lower()
        score = max((len(v) for v in variations if v in title), default=0)
        if score:
            scored.append((score, role))
    scored.sort(key=lambda pair: (-pair[0], pair[1].title))
    return {
        "job_roles": [
            {"id": role.id, "title": role.title, "description": role.description or None}
            for _, role in scored[:10]
        ],
        "total": len(scored),
    }


# ── Registry ──────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    params: type[ToolParams]
    handler: Callable[[AsyncSession, UserContext, Any], Awaitable[Any]]

    def definition(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.params.model_json_schema(by_alias=True),
        }


TOOLS: dict[str, Tool] = {
    tool.name: tool
    for tool in (
        Tool(
            "people",
            "Get information about people in the organization: names, roles, teams and managers.",
            PeopleParams,
            _people,
        ),
        Tool(
            "tasks",
            "Get information about tasks in the organization. Use this to find what tasks someone is working on or has worked on.",
            TasksParams,
            _tasks,
        ),
        Tool(
            "initiatives",
            "Get initiatives filtered by status, RAG, team, owner or title keywords. Each result includes its objectives, owners and task and check-in counts.",
            InitiativesParams,
            _initiatives,
        ),
        Tool(
            "meetings",
            "Get information about meetings the current user can see, including notes and participants.",
            MeetingsParams,
            _meetings,
        ),
        Tool("teams", "Get information about teams in the organization.", TeamsParams, _teams),
        Tool(
            "feedback",
            "Search feedback the current user has access to based on privacy settings.",
            FeedbackParams,
            _feedback,
        ),
        Tool(
            "entityNotes",
            "Get the notes and external links attached to an initiative, task, meeting, one-on-one or person.",
            EntityNotesParams,
            _entity_notes,
        ),
        Tool(
            "currentUser",
            "Get the current user and their linked person record. Use this first for questions about 'me' or 'my'.",
            EmptyParams,
            _current_user,
        ),
        Tool(
            "github",
            "List recent GitHub pull requests for a person's linked GitHub account.",
            GitHubParams,
            _github,
        ),
        Tool(
            "jira",
            "Search Jira tickets. Without personId or assignee the current user's linked Jira account is used.",
            JiraParams,
            _jira,
        ),
        Tool("dateTime", "Get the current date and time in UTC.", EmptyParams, _date_time),
        Tool(
            "personLookup",
            "Find a person by name or email and return their ID for use with other tools.",
            PersonLookupParams,
            _person_lookup,
        ),
        Tool(
            "jobRoleLookup",
            "Look up a job role by title. Handles common abbreviations (e.g. 'Sr.' matches 'Senior').",
            JobRoleLookupParams,
            _job_role_lookup,
        ),
    )
}


def tool_definitions() -> list[dict[str, Any]]:
    return [tool.definition() for tool in TOOLS.values()]


async def call_tool(session: AsyncSession, ctx: UserContext, name: str, arguments: dict[str, Any] | None) -> Any:
    """Validate ``arguments`` against the tool's parameter model and run it.

    Raises:
        KeyError: for an unknown tool name.
    """
    tool = TOOLS[name]
    params = tool.params.model_validate(arguments or {})
    logger.info("MCP tool %s called by user %s", name, ctx.user_id)
    return await tool.handler(session, ctx, params)
