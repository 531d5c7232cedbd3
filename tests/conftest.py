"""Shared test fixtures for the ManagerOS test suite."""

from __future__ import annotations

import os

# Settings are read at import time; point them at throwaway values first.
os.environ.setdefault("DATABASE_URL_OVERRIDE", "sqlite+aiosqlite://")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("MANAGEROS_DEBUG", "false")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("ENCRYPTION_KEY", "MDEyMzQ1Njc4OTAxMjM0NTY3ODkwMTIzNDU2Nzg5MDE=")

import uuid  # noqa: E402
from datetime import date  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from manageros.auth import UserContext  # noqa: E402
from manageros.models.db import Base, Organization, OrganizationMember, Person, User  # noqa: E402


@pytest_asyncio.fixture
async def engine():
    """In-memory SQLite engine with every table created."""
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def org(session):
    organization = Organization(name="Acme", slug="acme")
    session.add(organization)
    await session.commit()
    return organization


@pytest.fixture
def make_person(session, org):
    """Factory for Person rows without a login."""

    async def _make(
        name: str,
        manager_id: uuid.UUID | None = None,
        organization: Organization | None = None,
        **values,
    ) -> Person:
        values.setdefault("email", f"{name.split()[0].lower()}@acme.example")
        values.setdefault("employee_type", "full_time")
        person = Person(
            organization_id=(organization or org).id,
            name=name,
            manager_id=manager_id,
            started_at=date(2024, 1, 1),
            **values,
        )
        session.add(person)
        await session.commit()
        return person

    return _make


@pytest.fixture
def make_member(session, org, make_person):
    """Factory for a User with a linked Person and an organization membership."""

    async def _make(
        name: str,
        role: str = "user",
        manager_id: uuid.UUID | None = None,
        organization: Organization | None = None,
        with_person: bool = True,
    ) -> UserContext:
        organization = organization or org
        person = None
        if with_person:
            person = await make_person(name, manager_id=manager_id, organization=organization)
        email = f"{name.split()[0].lower()}.{uuid.uuid4().hex[:6]}@acme.example"
        user = User(email=email, name=name, person_id=person.id if person else None)
        session.add(user)
        await session.flush()
        session.add(OrganizationMember(organization_id=organization.id, user_id=user.id, role=role))
        await session.commit()
        return UserContext(
            user_id=user.id,
            email=email,
            name=name,
            organization_id=organization.id,
            person_id=person.id if person else None,
            role=role,
        )

    return _make


@pytest_asyncio.fixture
async def admin(make_member) -> UserContext:
    return await make_member("Avery Admin", role="admin")


@pytest_asyncio.fixture
async def manager(make_member, admin) -> UserContext:
    return await make_member("Morgan Manager", role="user", manager_id=admin.person_id)


@pytest_asyncio.fixture
async def report(make_member, manager) -> UserContext:
    return await make_member("Riley Report", role="user", manager_id=manager.person_id)


@pytest.fixture
def outsider() -> UserContext:
    """A user who belongs to no organization."""
    return UserContext(user_id=uuid.uuid4(), email="nobody@elsewhere.example", name="Nobody")


@pytest_asyncio.fixture
async def api_client(session_factory):
    """ASGI client whose requests share the in-memory test database."""
    from manageros.api.deps import get_db
    from manageros.main import app

    async def override_get_db():
        async with session_factory() as request_session:
            try:
                yield request_session
                await request_session.commit()
            except Exception:
                await request_session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    """Development-mode identity header for a user."""

    def _headers(ctx: UserContext) -> dict[str, str]:
        return {"X-User-Id": str(ctx.user_id)}

    return _headers
