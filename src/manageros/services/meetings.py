"""Meetings, participants, and ICS import."""

from __future__ import annotations

import logging
import re
import uuid
from datetime import date, datetime, time, timezone
from typing import Any

from icalendar import Calendar
from sqlalchemy import false, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from manageros.auth import UserContext, require_organization
from manageros.errors import ConflictError, DomainValidationError, NotFoundError
from manageros.models.db import Initiative, Meeting, MeetingParticipant, Person, Team
from manageros.models.schemas import EMAIL_RE, MeetingCreate, MeetingUpdate, ParticipantInput
from manageros.services.common import apply_updates, as_utc, count_rows, get_in_org

logger = logging.getLogger(__name__)


def _visibility_clause(ctx: UserContext) -> Any:
    participant_meetings = select(MeetingParticipant.meeting_id).where(
        MeetingParticipant.person_id == ctx.person_id
    )
    return or_(
        Meeting.is_private.is_(False),
        Meeting.created_by_id == ctx.user_id,
        Meeting.owner_id == ctx.person_id if ctx.person_id else false(),
        Meeting.id.in_(participant_meetings) if ctx.person_id else false(),
    )


async def _load(session: AsyncSession, ctx: UserContext, meeting_id: uuid.UUID) -> Meeting:
    org_id = require_organization(ctx, "view meetings")
    result = await session.execute(
        select(Meeting)
        .where(Meeting.id == meeting_id, Meeting.organization_id == org_id, _visibility_clause(ctx))
        .options(selectinload(Meeting.participants))
        .execution_options(populate_existing=True)
    )
    meeting = result.scalar_one_or_none()
    if meeting is None:
        raise NotFoundError("Meeting not found or access denied")
    return meeting


async def _check_references(session: AsyncSession, org_id: uuid.UUID, values: dict[str, Any]) -> None:
    if values.get("team_id"):
        await get_in_org(session, Team, values["team_id"], org_id, "Team not found or access denied")
    if values.get("initiative_id"):
        await get_in_org(
            session, Initiative, values["initiative_id"], org_id, "Initiative not found or access denied"
        )
    if values.get("owner_id"):
        await get_in_org(session, Person, values["owner_id"], org_id, "Owner not found or access denied")


async def _check_participants(
    session: AsyncSession, org_id: uuid.UUID, participants: list[ParticipantInput]
) -> None:
    person_ids = {participant.person_id for participant in participants}
    if not person_ids:
        return
    found = await count_rows(
        session, Person, Person.id.in_(person_ids), Person.organization_id == org_id
    )
    if found != len(person_ids):
        raise NotFoundError("One or more participants not found or access denied")


def _build_participants(participants: list[ParticipantInput]) -> list[MeetingParticipant]:
    statuses = {participant.person_id: participant.status for participant in participants}
    return [
        MeetingParticipant(person_id=person_id, status=status)
        for person_id, status in statuses.items()
    ]


async def create_meeting(session: AsyncSession, ctx: UserContext, data: MeetingCreate) -> Meeting:
    org_id = require_organization(ctx, "create meetings")
    values = data.model_dump(exclude={"participants"})
    await _check_references(session, org_id, values)
    await _check_participants(session, org_id, data.participants)
    values["scheduled_at"] = as_utc(values["scheduled_at"])

    meeting = Meeting(
        organization_id=org_id,
        created_by_id=ctx.user_id,
        participants=_build_participants(data.participants),
        **values,
    )
    session.add(meeting)
    await session.flush()
    return await _load(session, ctx, meeting.id)


async def update_meeting(
    session: AsyncSession, ctx: UserContext, meeting_id: uuid.UUID, data: MeetingUpdate
) -> Meeting:
    org_id = require_organization(ctx, "update meetings")
    meeting = await _load(session, ctx, meeting_id)

    values = data.model_dump(exclude_unset=True, exclude={"participants"})
    await _check_references(session, org_id, values)
    if values.get("scheduled_at") is not None:
        values["scheduled_at"] = as_utc(values["scheduled_at"])
    apply_updates(meeting, values)

    if data.participants is not None:
        await _check_participants(session, org_id, data.participants)
        meeting.participants = []
        await session.flush()
        meeting.participants = _build_participants(data.participants)

    await session.flush()
    return await _load(session, ctx, meeting.id)


async def delete_meeting(session: AsyncSession, ctx: UserContext, meeting_id: uuid.UUID) -> None:
    meeting = await _load(session, ctx, meeting_id)
    await session.delete(meeting)
    await session.flush()


async def get_meeting(session: AsyncSession, ctx: UserContext, meeting_id: uuid.UUID) -> Meeting:
    return await _load(session, ctx, meeting_id)


def _meeting_criteria(
    ctx: UserContext,
    org_id: uuid.UUID,
    team_id: uuid.UUID | None = None,
    initiative_id: uuid.UUID | None = None,
    scheduled_from: datetime | None = None,
    scheduled_to: datetime | None = None,
    owner_id: uuid.UUID | None = None,
    participant_id: uuid.UUID | None = None,
    query: str | None = None,
) -> list[Any]:
    criteria = [Meeting.organization_id == org_id, _visibility_clause(ctx)]
    if team_id:
        criteria.append(Meeting.team_id == team_id)
    if initiative_id:
        criteria.append(Meeting.initiative_id == initiative_id)
    if scheduled_from:
        criteria.append(Meeting.scheduled_at >= as_utc(scheduled_from))
    if scheduled_to:
        criteria.append(Meeting.scheduled_at <= as_utc(scheduled_to))
    if owner_id:
        criteria.append(Meeting.owner_id == owner_id)
    if participant_id:
        criteria.append(
            Meeting.id.in_(
                select(MeetingParticipant.meeting_id).where(MeetingParticipant.person_id == participant_id)
            )
        )
    if query:
        term = f"%{query}%"
        criteria.append(
            or_(Meeting.title.ilike(term), Meeting.description.ilike(term), Meeting.notes.ilike(term))
        )
    return criteria


async def list_meetings(
    session: AsyncSession,
    ctx: UserContext,
    limit: int | None = None,
    **filters: Any,
) -> list[Meeting]:
    """Visible meetings matching ``filters``, most recent first.

    ``filters`` accepts team_id, initiative_id, scheduled_from, scheduled_to,
    owner_id, participant_id and query; all of them are applied in SQL before
    the limit.
    """
    org_id = require_organization(ctx, "view meetings")
    stmt = (
        select(Meeting)
        .where(*_meeting_criteria(ctx, org_id, **filters))
        .options(selectinload(Meeting.participants))
        .order_by(Meeting.scheduled_at.desc())
    )
    if limit:
        stmt = stmt.limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def count_meetings(session: AsyncSession, ctx: UserContext, **filters: Any) -> int:
    org_id = require_organization(ctx, "view meetings")
    return await count_rows(session, Meeting, *_meeting_criteria(ctx, org_id, **filters))


# ── Participants ──────────────────────────────────────────────────────────────


async def add_participant(
    session: AsyncSession, ctx: UserContext, meeting_id: uuid.UUID, data: ParticipantInput
) -> MeetingParticipant:
    org_id = require_organization(ctx, "update meetings")
    meeting = await _load(session, ctx, meeting_id)
    await get_in_org(session, Person, data.person_id, org_id, "Person not found or access denied")
    if any(p.person_id == data.person_id for p in meeting.participants):
        raise ConflictError("Person is already a participant in this meeting")

    participant = MeetingParticipant(meeting_id=meeting.id, person_id=data.person_id, status=data.status)
    session.add(participant)
    await session.flush()
    return participant


async def _get_participant(
    session: AsyncSession, ctx: UserContext, meeting_id: uuid.UUID, person_id: uuid.UUID
) -> MeetingParticipant:
    meeting = await _load(session, ctx, meeting_id)
    for participant in meeting.participants:
        if participant.person_id == person_id:
            return participant
    raise NotFoundError("Participant not found in this meeting")


async def update_participant_status(
    session: AsyncSession, ctx: UserContext, meeting_id: uuid.UUID, person_id: uuid.UUID, status: str
) -> MeetingParticipant:
    participant = await _get_participant(session, ctx, meeting_id, person_id)
    participant.status = status
    await session.flush()
    return participant


async def remove_participant(
    session: AsyncSession, ctx: UserContext, meeting_id: uuid.UUID, person_id: uuid.UUID
) -> None:
    participant = await _get_participant(session, ctx, meeting_id, person_id)
    await session.delete(participant)
    await session.flush()


# ── ICS import ────────────────────────────────────────────────────────────────


def _extract_email(value: Any) -> str | None:
    if not value:
        return None
    cleaned = re.sub(r"^mailto:", "", str(value), flags=re.IGNORECASE).strip().lower()
    return cleaned if EMAIL_RE.match(cleaned) else None


def _as_datetime(value: date | datetime) -> datetime:
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_ics(text: str) -> dict[str, Any]:
    """Extract the first VEVENT of an ICS document.

    Returns:
        ``{title, description, scheduled_at, duration, location,
        attendee_emails, organizer_email}``.

    Raises:
        DomainValidationError: if the document is malformed or has no event.
    """
    try:
        calendar = Calendar.from_ical(text)
    except ValueError as exc:
        raise DomainValidationError("Invalid ICS file") from exc

    events = calendar.walk("VEVENT")
    if not events:
        raise DomainValidationError("No meeting event found in ICS file")
    event = events[0]
    if event.get("DTSTART") is None:
        raise DomainValidationError("Event start time not found in ICS file")

    start = _as_datetime(event.decoded("DTSTART"))
    duration = None
    if event.get("DTEND") is not None:
        duration = round((_as_datetime(event.decoded("DTEND")) - start).total_seconds() / 60)
    elif event.get("DURATION") is not None:
        duration = round(event.decoded("DURATION").total_seconds() / 60)

    attendees = event.get("ATTENDEE") or []
    if not isinstance(attendees, list):
        attendees = [attendees]
    emails: list[str] = []
    for attendee in attendees:
        email = _extract_email(attendee)
        if email and email not in emails:
            emails.append(email)

    return {
        "title": str(event.get("SUMMARY") or "Untitled Meeting"),
        "description": str(event["DESCRIPTION"]) if event.get("DESCRIPTION") else None,
        "scheduled_at": start,
        "duration": duration,
        "location": str(event["LOCATION"]) if event.get("LOCATION") else None,
        "attendee_emails": emails,
        "organizer_email": _extract_email(event.get("ORGANIZER")),
    }


def match_email(people: list[Person], email: str) -> uuid.UUID | None:
    """Exact email match first, then a loose match on the local part as a name."""
    for person in people:
        if person.email and person.email.lower() == email.lower():
            return person.id
    name_from_email = re.sub(r"[._-]", " ", email.split("@")[0]).lower().strip()
    for person in people:
        name = person.name.lower().strip()
        if name == name_from_email or name_from_email in name or name in name_from_email:
            return person.id
    return None


async def import_meeting_from_ics(session: AsyncSession, ctx: UserContext, text: str) -> dict[str, Any]:
    """Parse an ICS invite into meeting fields with attendees matched to people."""
    org_id = require_organization(ctx, "import meetings")
    parsed = parse_ics(text)

    result = await session.execute(
        select(Person).where(Person.organization_id == org_id, Person.status == "active")
    )
    people = list(result.scalars().all())

    owner_id = match_email(people, parsed["organizer_email"]) if parsed["organizer_email"] else None
    participants: list[dict[str, Any]] = []
    for email in parsed["attendee_emails"]:
        person_id = match_email(people, email)
        if person_id and all(p["person_id"] != person_id for p in participants):
            participants.append({"person_id": person_id, "status": "invited"})

    logger.debug(
        "ICS import matched %d of %d attendee(s)", len(participants), len(parsed["attendee_emails"])
    )
    return {
        "title": parsed["title"],
        "description": parsed["description"],
        "scheduled_at": parsed["scheduled_at"],
        "duration": parsed["duration"],
        "location": parsed["location"],
        "participants": participants,
        "owner_id": owner_id,
    }
