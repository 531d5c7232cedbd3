"""Seed the database with a demo organization.

Usage: manageros seed  (or python -m manageros.seed)
"""

import asyncio
from datetime import date, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from manageros.db.session import async_session_factory, create_all, init_db
from manageros.models.db import (
    CheckIn,
    InitiativeOwner,
    Initiative,
    JobRole,
    Objective,
    Organization,
    OrganizationMember,
    Person,
    Task,
    Team,
    ToleranceRule,
    User,
    utcnow,
)

DEMO_SLUG = "acme-demo"
DEMO_OWNER_EMAIL = "owner@acme.example"

DEFAULT_RULES = [
    (
        "one_on_one_frequency",
        "1:1 frequency",
        {"warning_threshold_days": 14, "urgent_threshold_days": 21, "only_full_time_employees": True},
    ),
    ("initiative_checkin", "Initiative check-ins", {"warning_threshold_days": 14}),
    ("feedback_360", "360 feedback cadence", {"warning_threshold_months": 6}),
    ("manager_span", "Manager span of control", {"max_direct_reports": 8}),
]


async def seed_demo_organization(session: AsyncSession) -> Organization | None:
    """Create the demo organization unless it already exists.

    Returns:
        The new organization, or None when the demo data was already present.
    """
    result = await session.execute(select(Organization).where(Organization.slug == DEMO_SLUG))
    if result.scalar_one_or_none():
        return None

    org = Organization(name="Acme Demo", slug=DEMO_SLUG)
    session.add(org)
    await session.flush()

    platform = Team(organization_id=org.id, name="Platform", description="Core services and infrastructure")
    session.add(platform)
    await session.flush()
    payments = Team(organization_id=org.id, name="Payments", description="Checkout and billing", parent_id=platform.id)
    session.add(payments)

    engineer = JobRole(organization_id=org.id, title="Senior Software Engineer")
    manager_role = JobRole(organization_id=org.id, title="Engineering Manager")
    session.add_all([engineer, manager_role])
    await session.flush()

    director = Person(
        organization_id=org.id,
        name="Dana Director",
        email=DEMO_OWNER_EMAIL,
        role="Director of Engineering",
        team_id=platform.id,
        employee_type="full_time",
        started_at=date(2021, 3, 1),
    )
    session.add(director)
    await session.flush()

    manager = Person(
        organization_id=org.id,
        name="Morgan Manager",
        email="morgan@acme.example",
        role="Engineering Manager",
        team_id=payments.id,
        manager_id=director.id,
        job_role_id=manager_role.id,
        employee_type="full_time",
        started_at=date(2022, 1, 10),
    )
    session.add(manager)
    await session.flush()

    engineers = [
        Person(
            organization_id=org.id,
            name=name,
            email=email,
            role="Software Engineer",
            team_id=payments.id,
            manager_id=manager.id,
            job_role_id=engineer.id,
            employee_type="full_time",
            started_at=date(2023, 6, 1),
        )
        for name, email in (
            ("Riley Engineer", "riley@acme.example"),
            ("Sam Engineer", "sam@acme.example"),
            ("Jordan Engineer", "jordan@acme.example"),
        )
    ]
    session.add_all(engineers)
    await session.flush()

    owner = User(email=DEMO_OWNER_EMAIL, name=director.name, person_id=director.id)
    session.add(owner)
    await session.flush()
    session.add(OrganizationMember(organization_id=org.id, user_id=owner.id, role="owner"))

    today = date.today()
    initiative = Initiative(
        organization_id=org.id,
        title="Checkout reliability",
        summary="Reduce checkout failures and latency",
        outcome="99.95% checkout success rate",
        start_date=today - timedelta(days=30),
        target_date=today + timedelta(days=60),
        status="in_progress",
        rag="amber",
        confidence=70,
        size="l",
        team_id=payments.id,
        objectives=[
            Objective(title="Cut p95 latency below 400ms", sort_index=0),
            Objective(title="Add retries to payment provider calls", sort_index=1),
        ],
        owners=[
            InitiativeOwner(person_id=manager.id, role="owner"),
            InitiativeOwner(person_id=director.id, role="sponsor"),
        ],
    )
    session.add(initiative)
    await session.flush()

    session.add(
        CheckIn(
            initiative_id=initiative.id,
            week_of=today - timedelta(days=today.weekday() + 7),
            rag="amber",
            confidence=70,
            summary="Latency work on track; provider retries blocked on sandbox access.",
            blockers="Provider sandbox credentials",
            created_by_id=manager.id,
        )
    )

    now = utcnow()
    for index, (title, assignee, days) in enumerate(
        (
            ("Profile checkout endpoint", engineers[0], 3),
            ("Add retry middleware", engineers[1], -2),
            ("Write latency dashboard", engineers[2], 10),
        )
    ):
        session.add(
            Task(
                title=title,
                assignee_id=assignee.id,
                status="doing" if index == 0 else "todo",
                priority=index + 1,
                due_date=now + timedelta(days=days),
                initiative_id=initiative.id,
                objective_id=initiative.objectives[index % 2].id,
                created_by_id=owner.id,
            )
        )

    for rule_type, name, config in DEFAULT_RULES:
        session.add(ToleranceRule(organization_id=org.id, rule_type=rule_type, name=name, config=config))

    await session.flush()
    return org


async def main(create_tables: bool = False):
    """Run all seed operations."""
    print("Initializing database connection...")
    await init_db()
    if create_tables:
        print("Creating tables...")
        await create_all()

    print("Seeding demo organization...")
    async with async_session_factory() as session:
        org = await seed_demo_organization(session)
        await session.commit()

    if org is None:
        print("  Demo organization already exists, skipping.")
    else:
        print(f"  Created organization: {org.name} (ID: {org.id})")
        print(f"  Owner login: {DEMO_OWNER_EMAIL}")
    print("Done! Seed data loaded successfully.")


if __name__ == "__main__":
    asyncio.run(main())
