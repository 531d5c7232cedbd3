"""Tests for meetings and ICS import."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from manageros.errors import ConflictError, DomainValidationError, NotFoundError
from manageros.mcp.tools import call_tool
from manageros.models.db import Meeting
from manageros.models.schemas import MeetingCreate, MeetingUpdate, ParticipantInput
from manageros.services import meetings

INVITE = """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//Acme//Calendar//EN
BEGIN:VEVENT
UID:weekly-sync@acme.example
DTSTAMP:20261019T090000Z
DTSTART:20261020T150000Z
DTEND:20261020T153000Z
SUMMARY:Weekly sync
DESCRIPTION:Roadmap review
LOCATION:Room 4
ORGANIZER;CN=Morgan:mailto:Morgan@acme.example
ATTENDEE;CN=Riley:mailto:riley@acme.example
ATTENDEE;CN=Riley again:mailto:RILEY@acme.example
ATTENDEE;CN=Guest:mailto:guest@partner.example
END:VEVENT
END:VCALENDAR
"""


class TestParseIcs:
    """Tests for ICS invite parsing."""

    def test_extracts_event_fields(self):
        """Test parsing the event fields from an ICS invite."""
        parsed = meetings.parse_ics(INVITE)
        assert parsed["title"] == "Weekly sync"
        assert parsed["description"] == "Roadmap review"
        assert parsed["location"] == "Room 4"
        assert parsed["scheduled_at"] == datetime(2026, 10, 20, 15, 0, tzinfo=timezone.utc)
        assert parsed["duration"] == 30
        assert parsed["organizer_email"] == "morgan@acme.example"
        assert parsed["attendee_emails"] == ["riley@acme.example", "guest@partner.example"]

    def test_duration_property(self):
        """Test that DURATION is used when DTEND is absent."""
        text = INVITE.replace("DTEND:20261020T153000Z", "DURATION:PT45M")
        assert meetings.parse_ics(text)["duration"] == 45

    def test_missing_summary_gets_default_title(self):
        """Test the default title for events without SUMMARY."""
        text = INVITE.replace("SUMMARY:Weekly sync\n", "")
        assert meetings.parse_ics(text)["title"] == "Untitled Meeting"

    def test_no_event(self):
        """Test that a calendar without events is rejected."""
        text = "BEGIN:VCALENDAR\nVERSION:2.0\nPRODID:-//Acme//EN\nEND:VCALENDAR\n"
        with pytest.raises(DomainValidationError, match="No meeting event"):
            meetings.parse_ics(text)

    def test_garbage(self):
        """Test that non-ICS input is rejected."""
        with pytest.raises(DomainValidationError, match="Invalid ICS file"):
            meetings.parse_ics("this is not a calendar")


class TestMatchEmail:
    def test_exact_then_name_match(self):
        """Test matching attendees by email, then by name."""
        class _P:
            def __init__(self, name, email):
                self.id = uuid.uuid4()
                self.name = name
                self.email = email

        jo = _P("Jo Park", "jo@acme.example")
        sam = _P("Sam Lee", None)
        people = [jo, sam]

        assert meetings.match_email(people, "JO@acme.example") == jo.id
        assert meetings.match_email(people, "sam.lee@gmail.example") == sam.id
        assert meetings.match_email(people, "nobody@acme.example") is None


class TestMeetings:
    @pytest.mark.asyncio
    async def test_import_matches_participants(self, session, manager, report):
        """Test that ICS import maps attendees to people."""
        imported = await meetings.import_meeting_from_ics(session, manager, INVITE)
        assert imported["owner_id"] == manager.person_id
        assert imported["participants"] == [{"person_id": report.person_id, "status": "invited"}]
        assert imported["duration"] == 30

    @pytest.mark.asyncio
    async def test_private_meetings_hidden_from_non_participants(self, session, manager, report, admin):
        """Test that private meetings are hidden from non-participants."""
        meeting = await meetings.create_meeting(
            session,
            manager,
            MeetingCreate(
                title="1:1",
                scheduled_at=datetime(2026, 10, 20, 9, tzinfo=timezone.utc),
                participants=[ParticipantInput(person_id=report.person_id)],
            ),
        )
        assert (await meetings.get_meeting(session, report, meeting.id)).title == "1:1"
        with pytest.raises(NotFoundError):
            await meetings.get_meeting(session, admin, meeting.id)

    @pytest.mark.asyncio
    async def test_participant_must_be_in_org(self, session, manager):
        """Test that participants must belong to the organization."""
        with pytest.raises(NotFoundError):
            await meetings.create_meeting(
                session,
                manager,
                MeetingCreate(
                    title="Sync",
                    scheduled_at=datetime(2026, 10, 20, 9, tzinfo=timezone.utc),
                    participants=[ParticipantInput(person_id=uuid.uuid4())],
                ),
            )

    @pytest.mark.asyncio
    async def test_duplicate_participant(self, session, manager, report):
        """Test that a participant cannot be added twice."""
        meeting = await meetings.create_meeting(
            session,
            manager,
            MeetingCreate(title="Sync", scheduled_at=datetime(2026, 10, 20, 9, tzinfo=timezone.utc)),
        )
        await meetings.add_participant(session, manager, meeting.id, ParticipantInput(person_id=report.person_id))
        with pytest.raises(ConflictError):
            await meetings.add_participant(
                session, manager, meeting.id, ParticipantInput(person_id=report.person_id)
            )

    @pytest.mark.asyncio
    async def test_update_replaces_participants(self, session, manager, report, admin):
        """Test that updating participants replaces them."""
        meeting = await meetings.create_meeting(
            session,
            manager,
            MeetingCreate(
                title="Sync",
                scheduled_at=datetime(2026, 10, 20, 9, tzinfo=timezone.utc),
                participants=[ParticipantInput(person_id=report.person_id)],
            ),
        )
        updated = await meetings.update_meeting(
            session,
            manager,
            meeting.id,
            MeetingUpdate(location="Room 1", participants=[ParticipantInput(person_id=admin.person_id)]),
        )
        assert updated.location == "Room 1"
        assert [p.person_id for p in updated.participants] == [admin.person_id]


class TestMeetingFilters:
    """Tests for meeting list filters."""

    @pytest.mark.asyncio
    async def test_owner_filter_applies_before_limit(self, session, org, admin, manager):
        """An old meeting owned by the manager is still found behind 60 newer ones."""
        for day in range(60):
            session.add(
                Meeting(
                    organization_id=org.id,
                    title=f"Standup {day}",
                    scheduled_at=datetime(2026, 9, 1, 9, tzinfo=timezone.utc) + timedelta(days=day),
                    is_private=False,
                    owner_id=admin.person_id,
                )
            )
        session.add(
            Meeting(
                organization_id=org.id,
                title="Quarterly planning",
                scheduled_at=datetime(2026, 1, 5, 9, tzinfo=timezone.utc),
                is_private=False,
                owner_id=manager.person_id,
            )
        )
        await session.flush()

        result = await call_tool(session, admin, "meetings", {"ownerId": str(manager.person_id)})
        assert result["total"] == 1
        assert [m["title"] for m in result["meetings"]] == ["Quarterly planning"]

        unfiltered = await call_tool(session, admin, "meetings", {})
        assert unfiltered["total"] == 61
        assert len(unfiltered["meetings"]) == 50

    @pytest.mark.asyncio
    async def test_participant_and_text_filters(self, session, manager, report, admin):
        """Participant and keyword filters narrow the SQL query."""
        at = datetime(2026, 10, 20, 9, tzinfo=timezone.utc)
        await meetings.create_meeting(
            session,
            manager,
            MeetingCreate(
                title="Design review",
                notes="Discuss the caching layer",
                scheduled_at=at,
                participants=[ParticipantInput(person_id=report.person_id)],
            ),
        )
        await meetings.create_meeting(
            session,
            manager,
            MeetingCreate(
                title="Hiring sync",
                scheduled_at=at,
                participants=[ParticipantInput(person_id=admin.person_id)],
            ),
        )

        by_participant = await meetings.list_meetings(session, manager, participant_id=report.person_id)
        assert [m.title for m in by_participant] == ["Design review"]

        by_notes = await meetings.list_meetings(session, manager, query="CACHING")
        assert [m.title for m in by_notes] == ["Design review"]
        assert await meetings.count_meetings(session, manager, query="sync") == 1
