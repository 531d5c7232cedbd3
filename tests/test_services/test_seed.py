"""Tests for the demo seed data."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select

from manageros.models.db import Person, Task, ToleranceRule
from manageros.seed import DEMO_SLUG, seed_demo_organization
from manageros.seed import main as seed_main


@pytest.mark.asyncio
async def test_seed_is_idempotent(session):
    """Seeding twice creates the demo organization once."""
    org = await seed_demo_organization(session)
    assert org is not None
    assert org.slug == DEMO_SLUG

    people_count = await session.scalar(
        select(func.count()).select_from(Person).where(Person.organization_id == org.id)
    )
    assert people_count == 5
    assert await session.scalar(select(func.count()).select_from(Task)) == 3
    assert await session.scalar(select(func.count()).select_from(ToleranceRule)) == 4

    assert await seed_demo_organization(session) is None


@pytest.mark.asyncio
async def test_main_creates_tables_before_seeding(session_factory, capsys):
    """The create_tables switch builds the schema and then loads the demo org."""
    with (
        patch("manageros.seed.init_db", new_callable=AsyncMock),
        patch("manageros.seed.create_all", new_callable=AsyncMock) as create_all,
        patch("manageros.seed.async_session_factory", session_factory),
    ):
        await seed_main(create_tables=True)

    create_all.assert_awaited_once()
    output = capsys.readouterr().out
    assert "Creating tables..." in output
    assert "Created organization" in output

    async with session_factory() as check:
        assert await check.scalar(select(func.count()).select_from(Person)) == 5
