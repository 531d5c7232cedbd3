"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONB = postgresql.JSONB(astext_type=sa.Text())


def _id() -> sa.Column:
    return sa.Column("id", sa.Uuid(), primary_key=True)


def _org() -> sa.Column:
    return sa.Column(
        "organization_id",
        sa.Uuid(),
        sa.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )


def _timestamps(updated: bool = True) -> list[sa.Column]:
    columns = [sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now())]
    if updated:
        columns.append(sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()))
    return columns


def _fk(name: str, target: str, ondelete: str | None = None, nullable: bool = True, **kwargs) -> sa.Column:
    return sa.Column(name, sa.Uuid(), sa.ForeignKey(target, ondelete=ondelete), nullable=nullable, **kwargs)


def upgrade() -> None:
    rag = sa.Enum("green", "amber", "red", name="rag_status")

    op.create_table(
        "organizations",
        _id(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False, unique=True, index=True),
        sa.Column("clerk_organization_id", sa.String(length=255), nullable=True, unique=True),
        sa.Column("initiative_size_definitions", JSONB, nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "teams",
        _id(),
        _org(),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _fk("parent_id", "teams.id"),
        *_timestamps(),
    )
    op.create_table(
        "job_roles",
        _id(),
        _org(),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "people",
        _id(),
        _org(),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True, index=True),
        sa.Column("role", sa.String(length=255), nullable=True),
        sa.Column(
            "status",
            sa.Enum("active", "inactive", "on_leave", name="person_status"),
            nullable=False,
        ),
        sa.Column(
            "employee_type",
            sa.Enum("full_time", "part_time", "intern", "consultant", name="employee_type"),
            nullable=True,
        ),
        _fk("team_id", "teams.id", "SET NULL"),
        _fk("manager_id", "people.id"),
        _fk("job_role_id", "job_roles.id", "SET NULL"),
        sa.Column("started_at", sa.Date(), nullable=True),
        sa.Column("github_username", sa.String(length=255), nullable=True),
        sa.Column("jira_account_id", sa.String(length=255), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "users",
        _id(),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True, index=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("clerk_user_id", sa.String(length=255), nullable=True, unique=True, index=True),
        _fk("person_id", "people.id", "SET NULL", unique=True),
        *_timestamps(),
    )
    op.create_table(
        "organization_members",
        _id(),
        _fk("organization_id", "organizations.id", "CASCADE", nullable=False),
        _fk("user_id", "users.id", "CASCADE", nullable=False, unique=True),
        sa.Column("role", sa.Enum("admin", "owner", "user", name="member_role"), nullable=False),
        *_timestamps(updated=False),
    )

    # Initiatives
    op.create_table(
        "initiatives",
        _id(),
        _org(),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("outcome", sa.Text(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("target_date", sa.Date(), nullable=True),
        sa.Column(
            "status",
            sa.Enum("planned", "in_progress", "paused", "done", "canceled", name="initiative_status"),
            nullable=False,
        ),
        sa.Column("rag", rag, nullable=False),
        sa.Column("confidence", sa.Integer(), nullable=False),
        sa.Column("size", sa.Enum("xs", "s", "m", "l", "xl", name="initiative_size"), nullable=True),
        _fk("team_id", "teams.id", "SET NULL"),
        *_timestamps(),
    )
    op.create_table(
        "objectives",
        _id(),
        _fk("initiative_id", "initiatives.id", "CASCADE", nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("key_result", sa.Text(), nullable=True),
        sa.Column("sort_index", sa.Integer(), nullable=False),
    )
    op.create_table(
        "initiative_owners",
        _id(),
        _fk("initiative_id", "initiatives.id", "CASCADE", nullable=False),
        _fk("person_id", "people.id", "CASCADE", nullable=False),
        sa.Column(
            "role",
            sa.Enum("owner", "sponsor", "collaborator", name="initiative_owner_role"),
            nullable=False,
        ),
        sa.UniqueConstraint("initiative_id", "person_id", name="uq_initiative_owner"),
    )
    op.create_table(
        "check_ins",
        _id(),
        _fk("initiative_id", "initiatives.id", "CASCADE", nullable=False, index=True),
        sa.Column("week_of", sa.Date(), nullable=False),
        sa.Column("rag", rag, nullable=False),
        sa.Column("confidence", sa.Integer(), nullable=False),
        sa.Column("summary", sa.Text(), nullable=False),
        sa.Column("blockers", sa.Text(), nullable=True),
        sa.Column("next_steps", sa.Text(), nullable=True),
        _fk("created_by_id", "people.id", "SET NULL"),
        *_timestamps(),
    )

    # Tasks & reminders
    op.create_table(
        "tasks",
        _id(),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _fk("assignee_id", "people.id", "SET NULL", index=True),
        sa.Column(
            "status",
            sa.Enum("todo", "doing", "blocked", "done", "dropped", name="task_status"),
            nullable=False,
        ),
        sa.Column("priority", sa.Integer(), nullable=False),
        sa.Column("estimate", sa.Float(), nullable=True),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True, index=True),
        _fk("initiative_id", "initiatives.id", "SET NULL"),
        _fk("objective_id", "objectives.id", "SET NULL"),
        _fk("created_by_id", "users.id", "SET NULL"),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "task_reminder_preferences",
        _id(),
        _fk("task_id", "tasks.id", "CASCADE", nullable=False),
        _fk("user_id", "users.id", "CASCADE", nullable=False),
        sa.Column("reminder_minutes_before_due", sa.Integer(), nullable=False),
        sa.UniqueConstraint("task_id", "user_id", name="uq_task_reminder_preference"),
        *_timestamps(),
    )
    op.create_table(
        "task_reminder_deliveries",
        _id(),
        _fk("task_id", "tasks.id", "CASCADE", nullable=False, index=True),
        _fk("user_id", "users.id", "CASCADE", nullable=False, index=True),
        sa.Column("task_due_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("reminder_minutes_before_due", sa.Integer(), nullable=False),
        sa.Column("remind_at", sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column(
            "status",
            sa.Enum("PENDING", "ACKNOWLEDGED", "SNOOZED", name="task_reminder_status"),
            nullable=False,
        ),
        sa.Column("push_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("acknowledged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("snoozed_until", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    # Meetings & one-on-ones
    op.create_table(
        "meetings",
        _id(),
        _org(),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=True),
        sa.Column("location", sa.String(length=500), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("is_recurring", sa.Boolean(), nullable=False),
        sa.Column(
            "recurrence_type",
            sa.Enum("daily", "weekly", "monthly", "bi_weekly", name="recurrence_type"),
            nullable=True,
        ),
        sa.Column("is_private", sa.Boolean(), nullable=False),
        _fk("team_id", "teams.id", "SET NULL"),
        _fk("initiative_id", "initiatives.id", "SET NULL"),
        _fk("owner_id", "people.id", "SET NULL"),
        _fk("created_by_id", "users.id", "SET NULL"),
        *_timestamps(),
    )
    op.create_table(
        "meeting_participants",
        _id(),
        _fk("meeting_id", "meetings.id", "CASCADE", nullable=False),
        _fk("person_id", "people.id", "CASCADE", nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "invited", "accepted", "declined", "tentative", "attended", "absent",
                name="participant_status",
            ),
            nullable=False,
        ),
        sa.UniqueConstraint("meeting_id", "person_id", name="uq_meeting_participant"),
    )
    op.create_table(
        "one_on_ones",
        _id(),
        _fk("manager_id", "people.id", "CASCADE", nullable=False, index=True),
        _fk("report_id", "people.id", "CASCADE", nullable=False, index=True),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
    )

    # Feedback
    op.create_table(
        "feedback",
        _id(),
        _fk("about_id", "people.id", "CASCADE", nullable=False, index=True),
        _fk("from_id", "people.id", "CASCADE", nullable=False),
        sa.Column("kind", sa.Enum("praise", "concern", "note", name="feedback_kind"), nullable=False),
        sa.Column("is_private", sa.Boolean(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        *_timestamps(),
    )
    op.create_table(
        "feedback_templates",
        _id(),
        _org(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("questions", JSONB, nullable=True),
        sa.Column("is_default", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_table(
        "feedback_campaigns",
        _id(),
        _org(),
        _fk("user_id", "users.id", "SET NULL"),
        _fk("target_person_id", "people.id", "CASCADE", nullable=False, index=True),
        _fk("template_id", "feedback_templates.id", "SET NULL"),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("invite_emails", JSONB, nullable=True),
        sa.Column(
            "status",
            sa.Enum("draft", "active", "completed", "cancelled", name="feedback_campaign_status"),
            nullable=False,
        ),
        *_timestamps(),
    )
    op.create_table(
        "feedback_responses",
        _id(),
        _fk("campaign_id", "feedback_campaigns.id", "CASCADE", nullable=False),
        sa.Column("responder_email", sa.String(length=255), nullable=False),
        sa.Column("responses", JSONB, nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("campaign_id", "responder_email", name="uq_feedback_response_email"),
    )

    # Onboarding
    op.create_table(
        "onboarding_templates",
        _id(),
        _org(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_default", sa.Boolean(), nullable=False),
        _fk("team_id", "teams.id", "SET NULL"),
        _fk("job_role_id", "job_roles.id", "SET NULL"),
        *_timestamps(),
    )
    op.create_table(
        "onboarding_phases",
        _id(),
        _fk("template_id", "onboarding_templates.id", "CASCADE", nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False),
    )
    op.create_table(
        "onboarding_items",
        _id(),
        _fk("phase_id", "onboarding_phases.id", "CASCADE", nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "type",
            sa.Enum("TASK", "READING", "MEETING", "CHECKPOINT", "EXPENSE", name="onboarding_item_type"),
            nullable=False,
        ),
        sa.Column("is_required", sa.Boolean(), nullable=False),
        sa.Column(
            "owner_type",
            sa.Enum("onboardee", "manager", "mentor", "hr", name="onboarding_owner_type"),
            nullable=False,
        ),
        sa.Column("sort_order", sa.Integer(), nullable=False),
    )
    op.create_table(
        "onboarding_instances",
        _id(),
        _org(),
        _fk("template_id", "onboarding_templates.id", "CASCADE", nullable=False),
        _fk("person_id", "people.id", "CASCADE", nullable=False, index=True),
        _fk("manager_id", "people.id", "SET NULL"),
        _fk("mentor_id", "people.id", "SET NULL"),
        sa.Column(
            "status",
            sa.Enum("NOT_STARTED", "IN_PROGRESS", "COMPLETED", "CANCELLED", name="onboarding_status"),
            nullable=False,
        ),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "onboarding_item_progress",
        _id(),
        _fk("instance_id", "onboarding_instances.id", "CASCADE", nullable=False),
        _fk("item_id", "onboarding_items.id", "CASCADE", nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "PENDING", "IN_PROGRESS", "COMPLETED", "SKIPPED", "BLOCKED",
                name="onboarding_progress_status",
            ),
            nullable=False,
        ),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        _fk("completed_by_id", "users.id", "SET NULL"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("instance_id", "item_id", name="uq_onboarding_progress_item"),
    )

    # Notes & links
    op.create_table(
        "notes",
        _id(),
        _org(),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False, index=True),
        sa.Column("content", sa.Text(), nullable=False),
        _fk("created_by_id", "users.id", "SET NULL"),
        *_timestamps(),
    )
    op.create_table(
        "entity_links",
        _id(),
        _org(),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False, index=True),
        sa.Column("url", sa.String(length=2048), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        _fk("created_by_id", "users.id", "SET NULL"),
        *_timestamps(),
    )

    # Tolerance rules, notifications & integrations
    op.create_table(
        "tolerance_rules",
        _id(),
        _org(),
        sa.Column(
            "rule_type",
            sa.Enum(
                "one_on_one_frequency", "initiative_checkin", "feedback_360", "manager_span", "max_reports",
                name="tolerance_rule_type",
            ),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_enabled", sa.Boolean(), nullable=False),
        sa.Column("config", JSONB, nullable=False),
        *_timestamps(),
    )
    op.create_table(
        "notifications",
        _id(),
        _org(),
        _fk("user_id", "users.id", "CASCADE", index=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column(
            "type",
            sa.Enum("info", "warning", "success", "error", name="notification_type"),
            nullable=False,
        ),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("dismissed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("metadata", JSONB, nullable=True),
        *_timestamps(updated=False),
    )
    op.create_table(
        "exceptions",
        _id(),
        _org(),
        _fk("rule_id", "tolerance_rules.id", "CASCADE", nullable=False, index=True),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.String(length=255), nullable=False),
        sa.Column("severity", sa.Enum("warning", "urgent", name="exception_severity"), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("active", "acknowledged", "ignored", "resolved", name="exception_status"),
            nullable=False,
        ),
        sa.Column("acknowledged_at", sa.DateTime(timezone=True), nullable=True),
        _fk("acknowledged_by_id", "users.id", "SET NULL"),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        _fk("notification_id", "notifications.id", "SET NULL"),
        sa.Column("metadata", JSONB, nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "integrations",
        _id(),
        _org(),
        _fk("user_id", "users.id", "CASCADE"),
        sa.Column("integration_type", sa.Enum("jira", "github", name="integration_type"), nullable=False),
        sa.Column(
            "scope",
            sa.Enum("organization", "user", name="integration_scope"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("is_enabled", sa.Boolean(), nullable=False),
        sa.Column("encrypted_credentials", JSONB, nullable=False),
        sa.Column("metadata", JSONB, nullable=True),
        sa.Column("last_sync_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )


TABLES = [
    "integrations",
    "exceptions",
    "notifications",
    "tolerance_rules",
    "entity_links",
    "notes",
    "onboarding_item_progress",
    "onboarding_instances",
    "onboarding_items",
    "onboarding_phases",
    "onboarding_templates",
    "feedback_responses",
    "feedback_campaigns",
    "feedback_templates",
    "feedback",
    "one_on_ones",
    "meeting_participants",
    "meetings",
    "task_reminder_deliveries",
    "task_reminder_preferences",
    "tasks",
    "check_ins",
    "initiative_owners",
    "objectives",
    "initiatives",
    "organization_members",
    "users",
    "people",
    "job_roles",
    "teams",
    "organizations",
]

ENUMS = [
    "integration_scope",
    "integration_type",
    "exception_status",
    "exception_severity",
    "notification_type",
    "tolerance_rule_type",
    "onboarding_progress_status",
    "onboarding_status",
    "onboarding_owner_type",
    "onboarding_item_type",
    "feedback_campaign_status",
    "feedback_kind",
    "participant_status",
    "recurrence_type",
    "task_reminder_status",
    "task_status",
    "initiative_owner_role",
    "initiative_size",
    "initiative_status",
    "rag_status",
    "member_role",
    "employee_type",
    "person_status",
]


def downgrade() -> None:
    for table in TABLES:
        op.drop_table(table)
    for enum in ENUMS:
        op.execute(f"DROP TYPE IF EXISTS {enum}")
