"""Tests for notes and links attached to entities."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from manageros.errors import AccessDeniedError, DomainValidationError, NotFoundError
from manageros.models.db import Organization
from manageros.models.schemas import (
    EntityLinkCreate,
    EntityLinkUpdate,
    InitiativeCreate,
    MeetingCreate,
    NoteCreate,
    NoteUpdate,
    TaskCreate,
)
from manageros.services import initiatives, meetings, notes, tasks
from manageros.services.entities import normalize_entity_type


class TestEntityTypes:
    def test_normalizes_spelling_variants(self):
        """Test entity type normalisation."""
        assert normalize_entity_type("One_On_One") == "oneonone"
        assert normalize_entity_type("one-on-one") == "oneonone"
        assert normalize_entity_type(" Task ") == "task"

    def test_unknown_type(self):
        """Test that unsupported entity types are rejected."""
        with pytest.raises(DomainValidationError, match="Unsupported entity type"):
            normalize_entity_type("payroll")


class TestNotes:
    @pytest.mark.asyncio
    async def test_create_list_update_delete(self, session, manager):
        """Test the note lifecycle on a task."""
        task = await tasks.create_task(session, manager, TaskCreate(title="Ship it"))
        first = await notes.create_note(
            session, manager, NoteCreate(entity_type="Task", entity_id=task.id, content="Kickoff")
        )
        second = await notes.create_note(
            session, manager, NoteCreate(entity_type="task", entity_id=task.id, content="Follow-up")
        )
        assert first.entity_type == "task"
        assert first.created_by.name == "Morgan Manager"

        listed = await notes.get_notes_for_entity(session, manager, "task", task.id)
        assert {n.id for n in listed} == {first.id, second.id}

        updated = await notes.update_note(session, manager, first.id, NoteUpdate(content="Kickoff (edited)"))
        assert updated.content == "Kickoff (edited)"

        await notes.delete_note(session, manager, second.id)
        assert [n.id for n in await notes.get_notes_for_entity(session, manager, "task", task.id)] == [first.id]

    @pytest.mark.asyncio
    async def test_unknown_entity(self, session, manager):
        """Test that notes need an existing entity."""
        with pytest.raises(NotFoundError):
            await notes.create_note(
                session, manager, NoteCreate(entity_type="initiative", entity_id=uuid.uuid4(), content="x")
            )

    @pytest.mark.asyncio
    async def test_private_meeting_notes_hidden(self, session, manager, admin):
        """Notes on a meeting follow the meeting's own visibility."""
        meeting = await meetings.create_meeting(
            session,
            manager,
            MeetingCreate(title="Skip-level prep", scheduled_at=datetime(2026, 10, 20, 9, tzinfo=timezone.utc)),
        )
        await notes.create_note(
            session, manager, NoteCreate(entity_type="meeting", entity_id=meeting.id, content="Agenda")
        )
        with pytest.raises(NotFoundError):
            await notes.get_notes_for_entity(session, admin, "meeting", meeting.id)

    @pytest.mark.asyncio
    async def test_other_organization_cannot_touch_note(self, session, manager, make_member):
        """Test that notes are scoped to their organization."""
        other_org = Organization(name="Globex", slug="globex")
        session.add(other_org)
        await session.commit()
        stranger = await make_member("Sam Stranger", organization=other_org)

        task = await tasks.create_task(session, manager, TaskCreate(title="Ship it"))
        note = await notes.create_note(
            session, manager, NoteCreate(entity_type="task", entity_id=task.id, content="Mine")
        )
        with pytest.raises(NotFoundError, match="Note not found or access denied"):
            await notes.update_note(session, stranger, note.id, NoteUpdate(content="Theirs"))

    @pytest.mark.asyncio
    async def test_outsider_needs_organization(self, session, outsider):
        """Test that users without an organization cannot read notes."""
        with pytest.raises(AccessDeniedError, match="to view notes"):
            await notes.get_notes_for_entity(session, outsider, "task", uuid.uuid4())


class TestLinks:
    """Tests for entity links."""

    @pytest.mark.asyncio
    async def test_assignee_can_add_links_to_task(self, session, manager, report):
        """Test that a task's assignee can manage its links."""
        initiative = await initiatives.create_initiative(session, manager, InitiativeCreate(title="X"))
        task = await tasks.create_task(
            session,
            manager,
            TaskCreate(title="Ship it", assignee_id=report.person_id, initiative_id=initiative.id),
        )
        link = await notes.create_link(
            session,
            report,
            EntityLinkCreate(
                url="https://docs.acme.example/spec", title="Spec", entity_type="task", entity_id=task.id
            ),
        )
        assert link.url == "https://docs.acme.example/spec"
        assert link.created_by.name == "Riley Report"

        updated = await notes.update_link(session, report, link.id, EntityLinkUpdate(title="Design doc"))
        assert updated.title == "Design doc"
        assert updated.url == "https://docs.acme.example/spec"

        listed = await notes.get_links_for_entity(session, manager, "task", task.id)
        assert [item.title for item in listed] == ["Design doc"]

    @pytest.mark.asyncio
    async def test_only_admins_link_initiatives(self, session, admin, manager):
        """Test that initiative links are admin managed."""
        initiative = await initiatives.create_initiative(session, manager, InitiativeCreate(title="X"))
        data = EntityLinkCreate(url="https://acme.example/roadmap", entity_type="initiative", entity_id=initiative.id)
        with pytest.raises(AccessDeniedError):
            await notes.create_link(session, manager, data)

        link = await notes.create_link(session, admin, data)
        with pytest.raises(AccessDeniedError, match="delete this link"):
            await notes.delete_link(session, manager, link.id)
        await notes.delete_link(session, admin, link.id)
        assert await notes.get_links_for_entity(session, admin, "initiative", initiative.id) == []

    def test_url_must_be_valid(self):
        """Test link URL validation."""
        with pytest.raises(ValidationError):
            EntityLinkCreate(url="not a url", entity_type="task", entity_id=uuid.uuid4())
