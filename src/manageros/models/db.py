"""SQLAlchemy ORM models for ManagerOS.

Every tenant-owned row is scoped by ``organization_id`` either directly or
through its parent (objectives through initiatives, progress rows through
onboarding instances, and so on).
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, relationship

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

RAG_STATUS = Enum("green", "amber", "red", name="rag_status")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def _created_at():
    return Column(DateTime(timezone=True), default=utcnow, server_default=func.now())


def _updated_at():
    return Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )


# ── Tenancy ───────────────────────────────────────────────────────────────────


class Organization(Base):
    """Tenant boundary. All data hangs off an organization."""

    __tablename__ = "organizations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True, index=True)
    clerk_organization_id = Column(String(255), nullable=True, unique=True)
    initiative_size_definitions = Column(JSONType, nullable=True)
    created_at = _created_at()
    updated_at = _updated_at()

    members = relationship("OrganizationMember", back_populates="organization", cascade="all, delete-orphan")


class User(Base):
    """A login identity. May be linked to one Person record."""

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)
    clerk_user_id = Column(String(255), nullable=True, unique=True, index=True)
    person_id = Column(Uuid, ForeignKey("people.id", ondelete="SET NULL"), nullable=True, unique=True)
    created_at = _created_at()
    updated_at = _updated_at()

    person = relationship("Person", back_populates="user")
    membership = relationship("OrganizationMember", back_populates="user", uselist=False)


class OrganizationMember(Base):
    __tablename__ = "organization_members"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    role = Column(Enum("admin", "owner", "user", name="member_role"), nullable=False, default="user")
    created_at = _created_at()

    organization = relationship("Organization", back_populates="members")
    user = relationship("User", back_populates="membership")


# ── People & teams ────────────────────────────────────────────────────────────


class JobRole(Base):
    __tablename__ = "job_roles"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, default="")
    created_at = _created_at()
    updated_at = _updated_at()


class Team(Base):
    __tablename__ = "teams"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    parent_id = Column(Uuid, ForeignKey("teams.id"), nullable=True)
    created_at = _created_at()
    updated_at = _updated_at()

    parent = relationship("Team", remote_side="Team.id", back_populates="children")
    children = relationship("Team", back_populates="parent")
    people = relationship("Person", back_populates="team")
    initiatives = relationship("Initiative", back_populates="team")


class Person(Base):
    """An employee record, distinct from the User login identity."""

    __tablename__ = "people"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True, index=True)
    role = Column(String(255), nullable=True)
    status = Column(
        Enum("active", "inactive", "on_leave", name="person_status"),
        nullable=False,
        default="active",
    )
    employee_type = Column(
        Enum("full_time", "part_time", "intern", "consultant", name="employee_type"),
        nullable=True,
    )
    team_id = Column(Uuid, ForeignKey("teams.id", ondelete="SET NULL"), nullable=True)
    manager_id = Column(Uuid, ForeignKey("people.id"), nullable=True)
    job_role_id = Column(Uuid, ForeignKey("job_roles.id", ondelete="SET NULL"), nullable=True)
    started_at = Column(Date, nullable=True)
    github_username = Column(String(255), nullable=True)
    jira_account_id = Column(String(255), nullable=True)
    created_at = _created_at()
    updated_at = _updated_at()

    team = relationship("Team", back_populates="people")
    manager = relationship("Person", remote_side="Person.id", back_populates="reports")
    reports = relationship("Person", back_populates="manager")
    job_role = relationship("JobRole")
    user = relationship("User", back_populates="person", uselist=False)


# ── Initiatives ───────────────────────────────────────────────────────────────


class Initiative(Base):
    """A tracked work effort with objectives, owners and a RAG status."""

    __tablename__ = "initiatives"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    summary = Column(Text, nullable=True)
    outcome = Column(Text, nullable=True)
    start_date = Column(Date, nullable=True)
    target_date = Column(Date, nullable=True)
    status = Column(
        Enum("planned", "in_progress", "paused", "done", "canceled", name="initiative_status"),
        nullable=False,
        default="planned",
    )
    rag = Column(RAG_STATUS, nullable=False, default="green")
    confidence = Column(Integer, nullable=False, default=80)
    size = Column(Enum("xs", "s", "m", "l", "xl", name="initiative_size"), nullable=True)
    team_id = Column(Uuid, ForeignKey("teams.id", ondelete="SET NULL"), nullable=True)
    created_at = _created_at()
    updated_at = _updated_at()

    team = relationship("Team", back_populates="initiatives")
    objectives = relationship(
        "Objective",
        back_populates="initiative",
        cascade="all, delete-orphan",
        order_by="Objective.sort_index",
    )
    owners = relationship("InitiativeOwner", back_populates="initiative", cascade="all, delete-orphan")
    check_ins = relationship("CheckIn", back_populates="initiative", cascade="all, delete-orphan")
    tasks = relationship("Task", back_populates="initiative")


class Objective(Base):
    __tablename__ = "objectives"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    initiative_id = Column(Uuid, ForeignKey("initiatives.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=False)
    key_result = Column(Text, nullable=True)
    sort_index = Column(Integer, nullable=False, default=0)

    initiative = relationship("Initiative", back_populates="objectives")


class InitiativeOwner(Base):
    __tablename__ = "initiative_owners"
    __table_args__ = (UniqueConstraint("initiative_id", "person_id", name="uq_initiative_owner"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    initiative_id = Column(Uuid, ForeignKey("initiatives.id", ondelete="CASCADE"), nullable=False)
    person_id = Column(Uuid, ForeignKey("people.id", ondelete="CASCADE"), nullable=False)
    role = Column(
        Enum("owner", "sponsor", "collaborator", name="initiative_owner_role"),
        nullable=False,
        default="owner",
    )

    initiative = relationship("Initiative", back_populates="owners")
    person = relationship("Person")


class CheckIn(Base):
    __tablename__ = "check_ins"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    initiative_id = Column(Uuid, ForeignKey("initiatives.id", ondelete="CASCADE"), nullable=False, index=True)
    week_of = Column(Date, nullable=False)
    rag = Column(RAG_STATUS, nullable=False, default="green")
    confidence = Column(Integer, nullable=False, default=80)
    summary = Column(Text, nullable=False)
    blockers = Column(Text, nullable=True)
    next_steps = Column(Text, nullable=True)
    created_by_id = Column(Uuid, ForeignKey("people.id", ondelete="SET NULL"), nullable=True)
    created_at = _created_at()
    updated_at = _updated_at()

    initiative = relationship("Initiative", back_populates="check_ins")
    created_by = relationship("Person")


# ── Tasks & reminders ─────────────────────────────────────────────────────────


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    assignee_id = Column(Uuid, ForeignKey("people.id", ondelete="SET NULL"), nullable=True, index=True)
    status = Column(
        Enum("todo", "doing", "blocked", "done", "dropped", name="task_status"),
        nullable=False,
        default="todo",
    )
    priority = Column(Integer, nullable=False, default=2)
    estimate = Column(Float, nullable=True)
    due_date = Column(DateTime(timezone=True), nullable=True, index=True)
    initiative_id = Column(Uuid, ForeignKey("initiatives.id", ondelete="SET NULL"), nullable=True)
    objective_id = Column(Uuid, ForeignKey("objectives.id", ondelete="SET NULL"), nullable=True)
    created_by_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = _created_at()
    updated_at = _updated_at()

    assignee = relationship("Person")
    initiative = relationship("Initiative", back_populates="tasks")
    objective = relationship("Objective")
    reminder_preferences = relationship(
        "TaskReminderPreference", back_populates="task", cascade="all, delete-orphan"
    )
    reminder_deliveries = relationship(
        "TaskReminderDelivery", back_populates="task", cascade="all, delete-orphan"
    )


class TaskReminderPreference(Base):
    """How long before a task's due date a given user wants to be reminded."""

    __tablename__ = "task_reminder_preferences"
    __table_args__ = (UniqueConstraint("task_id", "user_id", name="uq_task_reminder_preference"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    task_id = Column(Uuid, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    reminder_minutes_before_due = Column(Integer, nullable=False)
    created_at = _created_at()
    updated_at = _updated_at()

    task = relationship("Task", back_populates="reminder_preferences")


class TaskReminderDelivery(Base):
    """One scheduled reminder for a (task, user, due date) triple."""

    __tablename__ = "task_reminder_deliveries"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    task_id = Column(Uuid, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    task_due_date = Column(DateTime(timezone=True), nullable=False)
    reminder_minutes_before_due = Column(Integer, nullable=False)
    remind_at = Column(DateTime(timezone=True), nullable=False, index=True)
    status = Column(
        Enum("PENDING", "ACKNOWLEDGED", "SNOOZED", name="task_reminder_status"),
        nullable=False,
        default="PENDING",
    )
    push_sent_at = Column(DateTime(timezone=True), nullable=True)
    acknowledged_at = Column(DateTime(timezone=True), nullable=True)
    snoozed_until = Column(DateTime(timezone=True), nullable=True)
    created_at = _created_at()
    updated_at = _updated_at()

    task = relationship("Task", back_populates="reminder_deliveries")


# ── Meetings & one-on-ones ────────────────────────────────────────────────────


class Meeting(Base):
    __tablename__ = "meetings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    scheduled_at = Column(DateTime(timezone=True), nullable=False)
    duration = Column(Integer, nullable=True)  # minutes
    location = Column(String(500), nullable=True)
    notes = Column(Text, nullable=True)
    is_recurring = Column(Boolean, nullable=False, default=False)
    recurrence_type = Column(
        Enum("daily", "weekly", "monthly", "bi_weekly", name="recurrence_type"),
        nullable=True,
    )
    is_private = Column(Boolean, nullable=False, default=True)
    team_id = Column(Uuid, ForeignKey("teams.id", ondelete="SET NULL"), nullable=True)
    initiative_id = Column(Uuid, ForeignKey("initiatives.id", ondelete="SET NULL"), nullable=True)
    owner_id = Column(Uuid, ForeignKey("people.id", ondelete="SET NULL"), nullable=True)
    created_by_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = _created_at()
    updated_at = _updated_at()

    participants = relationship("MeetingParticipant", back_populates="meeting", cascade="all, delete-orphan")
    team = relationship("Team")
    initiative = relationship("Initiative")
    owner = relationship("Person")


class MeetingParticipant(Base):
    __tablename__ = "meeting_participants"
    __table_args__ = (UniqueConstraint("meeting_id", "person_id", name="uq_meeting_participant"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    meeting_id = Column(Uuid, ForeignKey("meetings.id", ondelete="CASCADE"), nullable=False)
    person_id = Column(Uuid, ForeignKey("people.id", ondelete="CASCADE"), nullable=False)
    status = Column(
        Enum("invited", "accepted", "declined", "tentative", "attended", "absent", name="participant_status"),
        nullable=False,
        default="invited",
    )

    meeting = relationship("Meeting", back_populates="participants")
    person = relationship("Person")


class OneOnOne(Base):
    __tablename__ = "one_on_ones"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    manager_id = Column(Uuid, ForeignKey("people.id", ondelete="CASCADE"), nullable=False, index=True)
    report_id = Column(Uuid, ForeignKey("people.id", ondelete="CASCADE"), nullable=False, index=True)
    scheduled_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = _created_at()
    updated_at = _updated_at()

    manager = relationship("Person", foreign_keys=[manager_id])
    report = relationship("Person", foreign_keys=[report_id])


# ── Feedback ──────────────────────────────────────────────────────────────────


class Feedback(Base):
    __tablename__ = "feedback"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    about_id = Column(Uuid, ForeignKey("people.id", ondelete="CASCADE"), nullable=False, index=True)
    from_id = Column(Uuid, ForeignKey("people.id", ondelete="CASCADE"), nullable=False)
    kind = Column(Enum("praise", "concern", "note", name="feedback_kind"), nullable=False, default="note")
    is_private = Column(Boolean, nullable=False, default=True)
    body = Column(Text, nullable=False)
    created_at = _created_at()
    updated_at = _updated_at()

    about = relationship("Person", foreign_keys=[about_id])
    author = relationship("Person", foreign_keys=[from_id])


class FeedbackTemplate(Base):
    __tablename__ = "feedback_templates"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    questions = Column(JSONType, default=list)
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = _created_at()
    updated_at = _updated_at()


class FeedbackCampaign(Base):
    """A time-boxed 360-style feedback request about one person."""

    __tablename__ = "feedback_campaigns"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    target_person_id = Column(Uuid, ForeignKey("people.id", ondelete="CASCADE"), nullable=False, index=True)
    template_id = Column(Uuid, ForeignKey("feedback_templates.id", ondelete="SET NULL"), nullable=True)
    name = Column(String(255), nullable=True)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    invite_emails = Column(JSONType, default=list)
    status = Column(
        Enum("draft", "active", "completed", "cancelled", name="feedback_campaign_status"),
        nullable=False,
        default="draft",
    )
    created_at = _created_at()
    updated_at = _updated_at()

    target_person = relationship("Person")
    responses = relationship("FeedbackResponse", back_populates="campaign", cascade="all, delete-orphan")


class FeedbackResponse(Base):
    __tablename__ = "feedback_responses"
    __table_args__ = (UniqueConstraint("campaign_id", "responder_email", name="uq_feedback_response_email"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    campaign_id = Column(Uuid, ForeignKey("feedback_campaigns.id", ondelete="CASCADE"), nullable=False)
    responder_email = Column(String(255), nullable=False)
    responses = Column(JSONType, default=dict)
    submitted_at = _created_at()

    campaign = relationship("FeedbackCampaign", back_populates="responses")


# ── Onboarding ────────────────────────────────────────────────────────────────


class OnboardingTemplate(Base):
    __tablename__ = "onboarding_templates"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    is_default = Column(Boolean, nullable=False, default=False)
    team_id = Column(Uuid, ForeignKey("teams.id", ondelete="SET NULL"), nullable=True)
    job_role_id = Column(Uuid, ForeignKey("job_roles.id", ondelete="SET NULL"), nullable=True)
    created_at = _created_at()
    updated_at = _updated_at()

    phases = relationship(
        "OnboardingPhase",
        back_populates="template",
        cascade="all, delete-orphan",
        order_by="OnboardingPhase.sort_order",
    )


class OnboardingPhase(Base):
    __tablename__ = "onboarding_phases"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    template_id = Column(Uuid, ForeignKey("onboarding_templates.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)

    template = relationship("OnboardingTemplate", back_populates="phases")
    items = relationship(
        "OnboardingItem",
        back_populates="phase",
        cascade="all, delete-orphan",
        order_by="OnboardingItem.sort_order",
    )


class OnboardingItem(Base):
    __tablename__ = "onboarding_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    phase_id = Column(Uuid, ForeignKey("onboarding_phases.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(
        Enum("TASK", "READING", "MEETING", "CHECKPOINT", "EXPENSE", name="onboarding_item_type"),
        nullable=False,
        default="TASK",
    )
    is_required = Column(Boolean, nullable=False, default=True)
    owner_type = Column(
        Enum("onboardee", "manager", "mentor", "hr", name="onboarding_owner_type"),
        nullable=False,
        default="onboardee",
    )
    sort_order = Column(Integer, nullable=False, default=0)

    phase = relationship("OnboardingPhase", back_populates="items")


class OnboardingInstance(Base):
    """A per-person instantiation of an onboarding template."""

    __tablename__ = "onboarding_instances"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    template_id = Column(Uuid, ForeignKey("onboarding_templates.id", ondelete="CASCADE"), nullable=False)
    person_id = Column(Uuid, ForeignKey("people.id", ondelete="CASCADE"), nullable=False, index=True)
    manager_id = Column(Uuid, ForeignKey("people.id", ondelete="SET NULL"), nullable=True)
    mentor_id = Column(Uuid, ForeignKey("people.id", ondelete="SET NULL"), nullable=True)
    status = Column(
        Enum("NOT_STARTED", "IN_PROGRESS", "COMPLETED", "CANCELLED", name="onboarding_status"),
        nullable=False,
        default="NOT_STARTED",
    )
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = _created_at()
    updated_at = _updated_at()

    template = relationship("OnboardingTemplate")
    person = relationship("Person", foreign_keys=[person_id])
    progress = relationship("OnboardingItemProgress", back_populates="instance", cascade="all, delete-orphan")


class OnboardingItemProgress(Base):
    __tablename__ = "onboarding_item_progress"
    __table_args__ = (UniqueConstraint("instance_id", "item_id", name="uq_onboarding_progress_item"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    instance_id = Column(Uuid, ForeignKey("onboarding_instances.id", ondelete="CASCADE"), nullable=False)
    item_id = Column(Uuid, ForeignKey("onboarding_items.id", ondelete="CASCADE"), nullable=False)
    status = Column(
        Enum("PENDING", "IN_PROGRESS", "COMPLETED", "SKIPPED", "BLOCKED", name="onboarding_progress_status"),
        nullable=False,
        default="PENDING",
    )
    notes = Column(Text, nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    completed_by_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_at = _updated_at()

    instance = relationship("OnboardingInstance", back_populates="progress")
    item = relationship("OnboardingItem")


# ── Tolerance rules & exceptions ──────────────────────────────────────────────


class ToleranceRule(Base):
    __tablename__ = "tolerance_rules"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    rule_type = Column(
        Enum(
            "one_on_one_frequency",
            "initiative_checkin",
            "feedback_360",
            "manager_span",
            "max_reports",
            name="tolerance_rule_type",
        ),
        nullable=False,
    )
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_enabled = Column(Boolean, nullable=False, default=True)
    config = Column(JSONType, nullable=False, default=dict)
    created_at = _created_at()
    updated_at = _updated_at()


class ToleranceException(Base):
    """A violation of a tolerance rule by one entity."""

    __tablename__ = "exceptions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    rule_id = Column(Uuid, ForeignKey("tolerance_rules.id", ondelete="CASCADE"), nullable=False, index=True)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(255), nullable=False)
    severity = Column(Enum("warning", "urgent", name="exception_severity"), nullable=False, default="warning")
    message = Column(Text, nullable=False)
    status = Column(
        Enum("active", "acknowledged", "ignored", "resolved", name="exception_status"),
        nullable=False,
        default="active",
    )
    acknowledged_at = Column(DateTime(timezone=True), nullable=True)
    acknowledged_by_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    notification_id = Column(Uuid, ForeignKey("notifications.id", ondelete="SET NULL"), nullable=True)
    metadata_ = Column("metadata", JSONType, default=dict)
    created_at = _created_at()
    updated_at = _updated_at()

    rule = relationship("ToleranceRule")


# ── Notes & links ─────────────────────────────────────────────────────────────


class Note(Base):
    """Free-form note attached to an initiative, task, meeting, 1:1 or person."""

    __tablename__ = "notes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(Uuid, nullable=False, index=True)
    content = Column(Text, nullable=False)
    created_by_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = _created_at()
    updated_at = _updated_at()

    created_by = relationship("User")


class EntityLink(Base):
    """External URL attached to an entity."""

    __tablename__ = "entity_links"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(Uuid, nullable=False, index=True)
    url = Column(String(2048), nullable=False)
    title = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    created_by_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = _created_at()
    updated_at = _updated_at()

    created_by = relationship("User")


# ── Notifications & integrations ──────────────────────────────────────────────


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(
        Enum("info", "warning", "success", "error", name="notification_type"),
        nullable=False,
        default="info",
    )
    read_at = Column(DateTime(timezone=True), nullable=True)
    dismissed_at = Column(DateTime(timezone=True), nullable=True)
    metadata_ = Column("metadata", JSONType, default=dict)
    created_at = _created_at()


class Integration(Base):
    """Stored credentials for Jira / GitHub, org-wide or per user."""

    __tablename__ = "integrations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    integration_type = Column(Enum("jira", "github", name="integration_type"), nullable=False)
    scope = Column(Enum("organization", "user", name="integration_scope"), nullable=False, default="organization")
    name = Column(String(255), nullable=False)
    is_enabled = Column(Boolean, nullable=False, default=True)
    encrypted_credentials = Column(JSONType, nullable=False, default=dict)
    metadata_ = Column("metadata", JSONType, default=dict)
    last_sync_at = Column(DateTime(timezone=True), nullable=True)
    created_at = _created_at()
    updated_at = _updated_at()
