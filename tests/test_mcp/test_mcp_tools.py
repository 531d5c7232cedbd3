"""Tests for the MCP tool registry and handlers."""

from __future__ import annotations

import pytest

from manageros.errors import IntegrationError
from manageros.mcp.tools import TOOLS, call_tool, role_query_variations, tool_definitions
from manageros.models.db import JobRole
from manageros.models.schemas import EntityLinkCreate, InitiativeCreate, NoteCreate
from manageros.services import initiatives, notes


class TestRegistry:
    def test_definitions(self):
        """Test the advertised tool definitions."""
        definitions = tool_definitions()
        assert len(definitions) == len(TOOLS) == 13
        assert {d["name"] for d in definitions} >= {"currentUser", "jira", "github", "jobRoleLookup"}
        assert definitions[0]["inputSchema"]["type"] == "object"

    def test_role_query_variations(self):
        """Test expansion of job role abbreviations."""
        assert role_query_variations("Sr. Eng") == {"sr. eng", "senior engineer", "senior", "engineer"}
        assert role_query_variations("  ") == set()


class TestHandlers:
    """Tests for the MCP tool handlers."""

    @pytest.mark.asyncio
    async def test_unknown_tool(self, session, admin):
        """Test that call_tool raises for an unknown tool."""
        with pytest.raises(KeyError):
            await call_tool(session, admin, "payroll", {})

    @pytest.mark.asyncio
    async def test_current_user(self, session, manager):
        """Test the currentUser tool."""
        result = await call_tool(session, manager, "currentUser", None)
        assert result["person"]["id"] == manager.person_id
        assert result["person"]["name"] == "Morgan Manager"

    @pytest.mark.asyncio
    async def test_person_lookup(self, session, admin, manager, report):
        """Test the personLookup tool."""
        result = await call_tool(session, admin, "personLookup", {"query": " riley "})
        assert [p["id"] for p in result["people"]] == [report.person_id]

    @pytest.mark.asyncio
    async def test_job_role_lookup_ranks_longest_match(self, session, admin):
        """Test that job role lookup ranks the longest match first."""
        for title in ("Engineering Manager", "Senior Engineer", "Designer"):
            session.add(JobRole(organization_id=admin.organization_id, title=title))
        await session.flush()

        result = await call_tool(session, admin, "jobRoleLookup", {"query": ["Sr. Eng"]})
        assert [role["title"] for role in result["job_roles"]] == ["Senior Engineer", "Engineering Manager"]
        assert result["total"] == 2

    @pytest.mark.asyncio
    async def test_jira_requires_integration(self, session, admin):
        """Test that the jira tool needs a configured integration."""
        with pytest.raises(IntegrationError, match="Jira integration is not configured"):
            await call_tool(session, admin, "jira", {})

    @pytest.mark.asyncio
    async def test_date_time(self, session, admin):
        """Test the dateTime tool."""
        result = await call_tool(session, admin, "dateTime", {})
        assert result["timezone"] == "UTC"
        assert result["iso"].startswith(result["date"])

    @pytest.mark.asyncio
    async def test_initiatives_query_matches_title_only(self, session, manager):
        """Test that the initiatives tool searches titles, as its description says."""
        await initiatives.create_initiative(session, manager, InitiativeCreate(title="Payments revamp"))
        await initiatives.create_initiative(
            session, manager, InitiativeCreate(title="Hiring plan", summary="Grow the payments team")
        )

        result = await call_tool(session, manager, "initiatives", {"query": "payments"})
        assert [i["title"] for i in result["initiatives"]] == ["Payments revamp"]
        assert result["total"] == 1
        assert set(result["initiatives"][0]) >= {"objectives", "owners", "_count"}

        description = TOOLS["initiatives"].description
        assert "title" in description
        assert "summary" not in description
        assert "latest check-in" not in description

    @pytest.mark.asyncio
    async def test_entity_notes(self, session, manager, admin):
        """Notes and links on an entity come back together."""
        initiative = await initiatives.create_initiative(session, manager, InitiativeCreate(title="Roadmap"))
        await notes.create_note(
            session, manager, NoteCreate(entity_type="initiative", entity_id=initiative.id, content="Scope agreed")
        )
        await notes.create_link(
            session,
            admin,
            EntityLinkCreate(url="https://acme.example/plan", entity_type="initiative", entity_id=initiative.id),
        )

        result = await call_tool(
            session, manager, "entityNotes", {"entityType": "initiative", "entityId": str(initiative.id)}
        )
        assert [(n["content"], n["author"]) for n in result["notes"]] == [("Scope agreed", "Morgan Manager")]
        assert [link["url"] for link in result["links"]] == ["https://acme.example/plan"]
