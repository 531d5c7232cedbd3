"""Tests for initiatives, check-ins, sizes and the initiative listing query."""

from __future__ import annotations

import uuid
from datetime import date

import pytest
import pytest_asyncio
from sqlalchemy import select

from manageros.errors import AccessDeniedError, DomainValidationError, NotFoundError
from manageros.models.db import Task, Team, ToleranceException, ToleranceRule
from manageros.models.schemas import (
    CheckInCreate,
    InitiativeCreate,
    InitiativeUpdate,
    ObjectiveInput,
    OwnerInput,
    TaskCreate,
)
from manageros.services import initiatives, tasks
from manageros.services.initiative_query import (
    InitiativeListParams,
    build_order_by,
    list_initiatives,
    parse_values,
)


class TestSizes:
    def test_size_options_use_org_overrides(self):
        """Test that organization size descriptions override defaults."""
        options = initiatives.size_options({"m": "About a sprint"})
        by_value = {option["value"]: option for option in options}
        assert by_value["m"]["description"] == "About a sprint"
        assert by_value["xl"]["description"] == initiatives.SIZE_DEFAULT_DESCRIPTIONS["xl"]
        assert by_value["s"]["short_label"] == "S"

    def test_compare_sizes_puts_unknown_last(self):
        """Test size comparison with unknown sizes."""
        assert initiatives.compare_sizes("xs", "xl") < 0
        assert initiatives.compare_sizes(None, "xl") > 0
        assert initiatives.compare_sizes("m", "m") == 0

    def test_sort_by_size_descending_keeps_unknown_last(self):
        """Test that unsized items stay last when sorting descending."""
        items = [{"size": "s"}, {"size": None}, {"size": "xl"}, {"size": "m"}]
        ordered = initiatives.sort_by_size(items, key=lambda item: item["size"], descending=True)
        assert [item["size"] for item in ordered] == ["xl", "m", "s", None]

    def test_is_valid_size(self):
        """Test size validation."""
        assert initiatives.is_valid_size("l")
        assert not initiatives.is_valid_size("xxl")


class TestInitiativeCrud:
    @pytest.mark.asyncio
    async def test_create_with_objectives_and_owners(self, session, manager):
        """Test creating an initiative with objectives and owners."""
        initiative = await initiatives.create_initiative(
            session,
            manager,
            InitiativeCreate(
                title="Checkout reliability",
                objectives=[ObjectiveInput(title="Cut latency"), ObjectiveInput(title="Add retries")],
                owners=[OwnerInput(person_id=manager.person_id)],
            ),
        )
        assert [o.sort_index for o in initiative.objectives] == [0, 1]
        assert initiative.owners[0].person_id == manager.person_id
        assert initiative.status == "planned"
        assert initiative.rag == "green"

    @pytest.mark.asyncio
    async def test_owner_from_outside_org_rejected(self, session, manager):
        """Test that owners must belong to the organization."""
        with pytest.raises(NotFoundError):
            await initiatives.create_initiative(
                session,
                manager,
                InitiativeCreate(title="X", owners=[OwnerInput(person_id=uuid.uuid4())]),
            )

    @pytest.mark.asyncio
    async def test_update_replaces_objectives(self, session, manager):
        """Test that updating objectives replaces them."""
        initiative = await initiatives.create_initiative(
            session, manager, InitiativeCreate(title="X", objectives=[ObjectiveInput(title="Old")])
        )
        updated = await initiatives.update_initiative(
            session,
            manager,
            initiative.id,
            InitiativeUpdate(rag="red", objectives=[ObjectiveInput(title="New")]),
        )
        assert updated.rag == "red"
        assert [o.title for o in updated.objectives] == ["New"]

    @pytest.mark.asyncio
    async def test_delete_detaches_tasks(self, session, manager):
        """Test that deleting an initiative keeps its tasks."""
        initiative = await initiatives.create_initiative(session, manager, InitiativeCreate(title="X"))
        task = await tasks.create_task(
            session, manager, TaskCreate(title="Linked", initiative_id=initiative.id)
        )
        await initiatives.delete_initiative(session, manager, initiative.id)

        result = await session.execute(select(Task.initiative_id).where(Task.id == task.id))
        assert result.scalar_one() is None

    @pytest.mark.asyncio
    async def test_outsider_cannot_create(self, session, outsider):
        """Test that users without an organization cannot create initiatives."""
        with pytest.raises(AccessDeniedError):
            await initiatives.create_initiative(session, outsider, InitiativeCreate(title="X"))


class TestCheckIns:
    @pytest.mark.asyncio
    async def test_check_in_resolves_stale_exception(self, session, manager, org):
        """Test that a check-in resolves the stale check-in exception."""
        initiative = await initiatives.create_initiative(session, manager, InitiativeCreate(title="X"))
        rule = ToleranceRule(
            organization_id=org.id,
            rule_type="initiative_checkin",
            name="Check-ins",
            config={"warning_threshold_days": 14},
        )
        session.add(rule)
        await session.flush()
        session.add(
            ToleranceException(
                organization_id=org.id,
                rule_id=rule.id,
                entity_type="Initiative",
                entity_id=str(initiative.id),
                severity="warning",
                message="stale",
                status="active",
            )
        )
        await session.flush()

        check_in = await initiatives.create_check_in(
            session,
            manager,
            CheckInCreate(
                initiative_id=initiative.id, week_of=date(2026, 10, 12), summary="On track"
            ),
        )
        assert check_in.created_by_id == manager.person_id

        result = await session.execute(select(ToleranceException.status))
        assert result.scalars().all() == ["resolved"]

    @pytest.mark.asyncio
    async def test_check_in_requires_linked_person(self, session, make_member):
        """Test that check-ins need a linked person."""
        ctx = await make_member("Nora Noperson", with_person=False)
        initiative = await initiatives.create_initiative(session, ctx, InitiativeCreate(title="X"))
        with pytest.raises(AccessDeniedError):
            await initiatives.create_check_in(
                session,
                ctx,
                CheckInCreate(initiative_id=initiative.id, week_of=date(2026, 10, 12), summary="s"),
            )


class TestInitiativeQuery:
    """Tests for initiative list filtering and pagination."""

    def test_parse_values(self):
        """Test comma separated parameter parsing."""
        assert parse_values("red, amber,,") == ["red", "amber"]
        assert parse_values("") == []

    def test_immutable_filters_override_params(self):
        """Test that immutable filters win over parameters."""
        params = InitiativeListParams(rag="green", immutable_filters='{"rag": "red"}')
        assert params.effective()["rag"] == "red"

    def test_invalid_immutable_filters(self):
        """Test that immutable filters must be a JSON object."""
        with pytest.raises(DomainValidationError):
            InitiativeListParams(immutable_filters="[1, 2]").effective()
        with pytest.raises(DomainValidationError):
            InitiativeListParams(immutable_filters="{broken").effective()

    def test_unknown_sort_falls_back_to_updated_at(self):
        """Test the default ordering for unknown sort fields."""
        assert len(build_order_by("bogus:asc")) == 1

    @pytest_asyncio.fixture
    async def three_initiatives(self, session, manager):
        created = []
        for title, rag, status, target in (
            ("Alpha", "red", "in_progress", date(2026, 1, 31)),
            ("Bravo", "green", "planned", date(2026, 6, 30)),
            ("Charlie", "amber", "done", None),
        ):
            created.append(
                await initiatives.create_initiative(
                    session,
                    manager,
                    InitiativeCreate(
                        title=title,
                        rag=rag,
                        status=status,
                        target_date=target,
                        owners=[OwnerInput(person_id=manager.person_id)] if title == "Alpha" else [],
                    ),
                )
            )
        return created

    @pytest.mark.asyncio
    async def test_filters_by_rag_list(self, session, manager, three_initiatives):
        """Test filtering by several RAG values."""
        result = await list_initiatives(session, manager, InitiativeListParams(rag="red,amber", sort="title:asc"))
        assert [i["title"] for i in result["initiatives"]] == ["Alpha", "Charlie"]

    @pytest.mark.asyncio
    async def test_filters_by_owner(self, session, manager, three_initiatives):
        """Test filtering by owner."""
        result = await list_initiatives(
            session, manager, InitiativeListParams(owner_id=str(manager.person_id))
        )
        assert [i["title"] for i in result["initiatives"]] == ["Alpha"]
        assert result["initiatives"][0]["owners"][0]["person"]["name"] == "Morgan Manager"

    @pytest.mark.asyncio
    async def test_date_range(self, session, manager, three_initiatives):
        """Test filtering by target date range."""
        result = await list_initiatives(
            session, manager, InitiativeListParams(date_from="2026-03-01", date_to="2026-12-31")
        )
        assert [i["title"] for i in result["initiatives"]] == ["Bravo"]

    @pytest.mark.asyncio
    async def test_pagination(self, session, manager, three_initiatives):
        """Test pagination metadata."""
        result = await list_initiatives(
            session, manager, InitiativeListParams(page=2, limit=2, sort="title:asc")
        )
        assert [i["title"] for i in result["initiatives"]] == ["Charlie"]
        assert result["pagination"] == {
            "page": 2,
            "limit": 2,
            "total_count": 3,
            "total_pages": 2,
            "has_next_page": False,
            "has_previous_page": True,
        }

    @pytest.mark.asyncio
    async def test_invalid_team_id(self, session, manager):
        """Test that a malformed team id is rejected."""
        with pytest.raises(DomainValidationError, match="teamId"):
            await list_initiatives(session, manager, InitiativeListParams(team_id="not-a-uuid"))

    @pytest.mark.asyncio
    async def test_no_team_filter(self, session, manager, three_initiatives):
        """Test the no-team filter."""
        result = await list_initiatives(session, manager, InitiativeListParams(team_id="no-team"))
        assert result["pagination"]["total_count"] == 3


class TestInitiativeOrdering:
    """Tests for initiative list sorting."""

    @pytest_asyncio.fixture
    async def sortable(self, session, org, manager):
        zeta = Team(organization_id=org.id, name="Zeta")
        apollo = Team(organization_id=org.id, name="Apollo")
        session.add_all([zeta, apollo])
        await session.flush()
        for title, rag, team in (
            ("Alpha", "red", zeta),
            ("Bravo", "green", apollo),
            ("Charlie", "amber", None),
            ("apple", "green", None),
        ):
            await initiatives.create_initiative(
                session,
                manager,
                InitiativeCreate(title=title, rag=rag, team_id=team.id if team else None),
            )

    async def _titles(self, session, ctx, sort: str) -> list[str]:
        result = await list_initiatives(session, ctx, InitiativeListParams(sort=sort))
        return [i["title"] for i in result["initiatives"]]

    @pytest.mark.asyncio
    async def test_rag_orders_red_amber_green(self, session, manager, sortable):
        """RAG sorts by severity rather than alphabetically."""
        assert await self._titles(session, manager, "rag:asc,title:asc") == ["Alpha", "Charlie", "apple", "Bravo"]

    @pytest.mark.asyncio
    async def test_rag_descending(self, session, manager, sortable):
        """A :desc suffix reverses the severity order."""
        assert await self._titles(session, manager, "rag:desc,title:asc") == ["apple", "Bravo", "Charlie", "Alpha"]

    @pytest.mark.asyncio
    async def test_team_puts_unassigned_last_both_ways(self, session, manager, sortable):
        """Initiatives without a team sort after every named team."""
        assert await self._titles(session, manager, "team:asc,title:asc") == ["Bravo", "Alpha", "apple", "Charlie"]
        assert await self._titles(session, manager, "team:desc,title:asc") == ["Alpha", "Bravo", "apple", "Charlie"]

    @pytest.mark.asyncio
    async def test_title_ignores_case(self, session, manager, sortable):
        """Title ordering is case-insensitive."""
        assert await self._titles(session, manager, "title:asc") == ["Alpha", "apple", "Bravo", "Charlie"]
        assert await self._titles(session, manager, "TITLE:DESC") == ["Charlie", "Bravo", "apple", "Alpha"]
