"""Pydantic schemas for API request/response validation."""

from __future__ import annotations

import re
import uuid
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field, HttpUrl, field_validator, model_validator

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and value.strip() == "":
        return None
    return value


def _normalise_email_list(value: list[str]) -> list[str]:
    cleaned: list[str] = []
    for email in value:
        email = email.strip().lower()
        if not EMAIL_RE.match(email):
            raise ValueError(f"Invalid email address: {email}")
        if email not in cleaned:
            cleaned.append(email)
    return cleaned


# ── Organization & users ──────────────────────────────────────────────────────


class UserContextResponse(BaseModel):
    user_id: uuid.UUID
    email: str
    name: str
    organization_id: uuid.UUID | None
    person_id: uuid.UUID | None
    role: str | None


class MemberResponse(BaseModel):
    user_id: uuid.UUID
    email: str
    name: str
    role: str
    person_id: uuid.UUID | None


class MemberRoleUpdate(BaseModel):
    role: str = Field(..., pattern="^(admin|user)$")


class LinkPersonRequest(BaseModel):
    person_id: uuid.UUID


# ── People ────────────────────────────────────────────────────────────────────


class PersonCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: str | None = None
    role: str | None = None
    status: str = Field("active", pattern="^(active|inactive|on_leave)$")
    employee_type: str | None = Field(None, pattern="^(full_time|part_time|intern|consultant)$")
    team_id: uuid.UUID | None = None
    manager_id: uuid.UUID | None = None
    job_role_id: uuid.UUID | None = None
    started_at: date | None = None
    github_username: str | None = None
    jira_account_id: str | None = None

    @field_validator("team_id", "manager_id", "job_role_id", "employee_type", mode="before")
    @classmethod
    def _empty_ids(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("email", mode="before")
    @classmethod
    def _check_email(cls, value: Any) -> Any:
        value = _blank_to_none(value)
        if value is not None and not EMAIL_RE.match(value):
            raise ValueError("Invalid email address")
        return value


class PersonUpdate(PersonCreate):
    name: str | None = Field(None, min_length=1, max_length=100)
    status: str | None = Field(None, pattern="^(active|inactive|on_leave)$")


class PersonResponse(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    name: str
    email: str | None
    role: str | None
    status: str
    employee_type: str | None
    team_id: uuid.UUID | None
    manager_id: uuid.UUID | None
    job_role_id: uuid.UUID | None
    started_at: date | None
    github_username: str | None
    jira_account_id: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PersonListResponse(BaseModel):
    people: list[PersonResponse]
    total: int


class JobRoleCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = ""


class JobRoleUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None


class JobRoleResponse(BaseModel):
    id: uuid.UUID
    title: str
    description: str | None

    model_config = {"from_attributes": True}


# ── Teams ─────────────────────────────────────────────────────────────────────


class TeamCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = None
    parent_id: uuid.UUID | None = None

    @field_validator("parent_id", mode="before")
    @classmethod
    def _empty_parent(cls, value: Any) -> Any:
        return _blank_to_none(value)


class TeamUpdate(TeamCreate):
    name: str | None = Field(None, min_length=1, max_length=100)


class TeamResponse(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    name: str
    description: str | None
    parent_id: uuid.UUID | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ── Initiatives ───────────────────────────────────────────────────────────────


class ObjectiveInput(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    key_result: str | None = None


class OwnerInput(BaseModel):
    person_id: uuid.UUID
    role: str = Field("owner", pattern="^(owner|sponsor|collaborator)$")


class InitiativeCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    summary: str | None = None
    outcome: str | None = None
    start_date: date | None = None
    target_date: date | None = None
    status: str = Field("planned", pattern="^(planned|in_progress|paused|done|canceled)$")
    rag: str = Field("green", pattern="^(green|amber|red)$")
    confidence: int = Field(80, ge=0, le=100)
    size: str | None = Field(None, pattern="^(xs|s|m|l|xl)$")
    team_id: uuid.UUID | None = None
    objectives: list[ObjectiveInput] = []
    owners: list[OwnerInput] = []

    @field_validator("team_id", "size", mode="before")
    @classmethod
    def _empty_values(cls, value: Any) -> Any:
        return _blank_to_none(value)


class InitiativeUpdate(InitiativeCreate):
    title: str | None = Field(None, min_length=1, max_length=200)
    status: str | None = Field(None, pattern="^(planned|in_progress|paused|done|canceled)$")
    rag: str | None = Field(None, pattern="^(green|amber|red)$")
    confidence: int | None = Field(None, ge=0, le=100)
    objectives: list[ObjectiveInput] | None = None
    owners: list[OwnerInput] | None = None


class ObjectiveResponse(BaseModel):
    id: uuid.UUID
    title: str
    key_result: str | None
    sort_index: int

    model_config = {"from_attributes": True}


class InitiativeOwnerResponse(BaseModel):
    person_id: uuid.UUID
    role: str

    model_config = {"from_attributes": True}


class InitiativeResponse(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    title: str
    summary: str | None
    outcome: str | None
    start_date: date | None
    target_date: date | None
    status: str
    rag: str
    confidence: int
    size: str | None
    team_id: uuid.UUID | None
    objectives: list[ObjectiveResponse] = []
    owners: list[InitiativeOwnerResponse] = []
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CheckInCreate(BaseModel):
    initiative_id: uuid.UUID
    week_of: date
    rag: str = Field("green", pattern="^(green|amber|red)$")
    confidence: int = Field(80, ge=0, le=100)
    summary: str = Field(..., min_length=1)
    blockers: str | None = None
    next_steps: str | None = None


class CheckInResponse(BaseModel):
    id: uuid.UUID
    initiative_id: uuid.UUID
    week_of: date
    rag: str
    confidence: int
    summary: str
    blockers: str | None
    next_steps: str | None
    created_by_id: uuid.UUID | None
    created_at: datetime

    model_config = {"from_attributes": True}


# ── Tasks & reminders ─────────────────────────────────────────────────────────


class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    assignee_id: uuid.UUID | None = None
    status: str = Field("todo", pattern="^(todo|doing|blocked|done|dropped)$")
    priority: int = Field(2, ge=1, le=5)
    estimate: float | None = Field(None, ge=0)
    due_date: datetime | None = None
    initiative_id: uuid.UUID | None = None
    objective_id: uuid.UUID | None = None
    reminder_minutes_before_due: int | None = Field(None, gt=0)

    @field_validator("assignee_id", "initiative_id", "objective_id", "due_date", mode="before")
    @classmethod
    def _empty_values(cls, value: Any) -> Any:
        return _blank_to_none(value)


class TaskUpdate(TaskCreate):
    title: str | None = Field(None, min_length=1, max_length=200)
    status: str | None = Field(None, pattern="^(todo|doing|blocked|done|dropped)$")
    priority: int | None = Field(None, ge=1, le=5)


class TaskStatusUpdate(BaseModel):
    status: str = Field(..., pattern="^(todo|doing|blocked|done|dropped)$")


class TaskResponse(BaseModel):
    id: uuid.UUID
    title: str
    description: str | None
    assignee_id: uuid.UUID | None
    status: str
    priority: int
    estimate: float | None
    due_date: datetime | None
    initiative_id: uuid.UUID | None
    objective_id: uuid.UUID | None
    created_by_id: uuid.UUID | None
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TaskListResponse(BaseModel):
    tasks: list[TaskResponse]
    total: int


class ReminderPreferenceUpdate(BaseModel):
    reminder_minutes_before_due: int | None = None


class ReminderPreferenceResponse(BaseModel):
    task_id: uuid.UUID
    reminder_minutes_before_due: int | None


class SnoozeRequest(BaseModel):
    minutes: int


class ReminderDeliveryResponse(BaseModel):
    id: uuid.UUID
    task_id: uuid.UUID
    user_id: uuid.UUID
    task_due_date: datetime
    reminder_minutes_before_due: int
    remind_at: datetime
    status: str
    push_sent_at: datetime | None
    acknowledged_at: datetime | None
    snoozed_until: datetime | None

    model_config = {"from_attributes": True}


class DueReminderResponse(ReminderDeliveryResponse):
    task_title: str


# ── Meetings & one-on-ones ────────────────────────────────────────────────────


class ParticipantInput(BaseModel):
    person_id: uuid.UUID
    status: str = Field(
        "invited", pattern="^(invited|accepted|declined|tentative|attended|absent)$"
    )


class MeetingCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    scheduled_at: datetime
    duration: int | None = Field(None, gt=0)
    location: str | None = None
    notes: str | None = None
    is_recurring: bool = False
    recurrence_type: str | None = Field(None, pattern="^(daily|weekly|monthly|bi_weekly)$")
    is_private: bool = True
    team_id: uuid.UUID | None = None
    initiative_id: uuid.UUID | None = None
    owner_id: uuid.UUID | None = None
    participants: list[ParticipantInput] = []

    @field_validator("team_id", "initiative_id", "owner_id", "recurrence_type", mode="before")
    @classmethod
    def _empty_values(cls, value: Any) -> Any:
        return _blank_to_none(value)


class MeetingUpdate(MeetingCreate):
    title: str | None = Field(None, min_length=1, max_length=200)
    scheduled_at: datetime | None = None
    is_recurring: bool | None = None
    is_private: bool | None = None
    participants: list[ParticipantInput] | None = None


class ParticipantResponse(BaseModel):
    person_id: uuid.UUID
    status: str

    model_config = {"from_attributes": True}


class MeetingResponse(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    title: str
    description: str | None
    scheduled_at: datetime
    duration: int | None
    location: str | None
    notes: str | None
    is_recurring: bool
    recurrence_type: str | None
    is_private: bool
    team_id: uuid.UUID | None
    initiative_id: uuid.UUID | None
    owner_id: uuid.UUID | None
    created_by_id: uuid.UUID | None
    participants: list[ParticipantResponse] = []
    created_at: datetime

    model_config = {"from_attributes": True}


class ParticipantStatusUpdate(BaseModel):
    status: str = Field(..., pattern="^(invited|accepted|declined|tentative|attended|absent)$")


class IcsImportRequest(BaseModel):
    ics: str = Field(..., min_length=1)


class OneOnOneCreate(BaseModel):
    manager_id: uuid.UUID
    report_id: uuid.UUID
    scheduled_at: datetime | None = None
    notes: str | None = None


class OneOnOneResponse(BaseModel):
    id: uuid.UUID
    manager_id: uuid.UUID
    report_id: uuid.UUID
    scheduled_at: datetime | None
    notes: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


# ── Feedback ──────────────────────────────────────────────────────────────────


class FeedbackCreate(BaseModel):
    about_id: uuid.UUID
    kind: str = Field("note", pattern="^(praise|concern|note)$")
    is_private: bool = True
    body: str = Field(..., min_length=1)


class FeedbackResponse(BaseModel):
    id: uuid.UUID
    about_id: uuid.UUID
    from_id: uuid.UUID
    kind: str
    is_private: bool
    body: str
    created_at: datetime

    model_config = {"from_attributes": True}


class FeedbackQuestion(BaseModel):
    text: str = Field(..., min_length=1)
    type: str = Field("text", pattern="^(text|rating|multiple_choice)$")
    required: bool = True
    options: list[str] = []


class FeedbackTemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    questions: list[FeedbackQuestion] = []
    is_default: bool = False


class FeedbackTemplateResponse(BaseModel):
    id: uuid.UUID
    name: str
    description: str | None
    questions: list[dict]
    is_default: bool

    model_config = {"from_attributes": True}


class FeedbackCampaignCreate(BaseModel):
    target_person_id: uuid.UUID
    name: str | None = None
    start_date: datetime
    end_date: datetime
    invite_emails: list[str] = Field(..., min_length=1)
    template_id: uuid.UUID | None = None

    @field_validator("invite_emails")
    @classmethod
    def _normalise_emails(cls, value: list[str]) -> list[str]:
        return _normalise_email_list(value)

    @model_validator(mode="after")
    def _check_dates(self) -> "FeedbackCampaignCreate":
        if self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        return self


class FeedbackCampaignUpdate(BaseModel):
    name: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    invite_emails: list[str] | None = None
    template_id: uuid.UUID | None = None

    @field_validator("invite_emails")
    @classmethod
    def _normalise_emails(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return value
        return _normalise_email_list(value)


class CampaignStatusUpdate(BaseModel):
    status: str = Field(..., pattern="^(draft|active|completed|cancelled)$")


class FeedbackCampaignResponse(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    user_id: uuid.UUID | None
    target_person_id: uuid.UUID
    template_id: uuid.UUID | None
    name: str | None
    start_date: datetime
    end_date: datetime
    invite_emails: list[str]
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class CampaignAnswerResponse(BaseModel):
    id: uuid.UUID
    responder_email: str
    responses: dict[str, Any]
    submitted_at: datetime

    model_config = {"from_attributes": True}


class FeedbackCampaignDetail(FeedbackCampaignResponse):
    responses: list[CampaignAnswerResponse] = []


class FeedbackResponseSubmit(BaseModel):
    email: str
    responses: dict[str, Any]


# ── Onboarding ────────────────────────────────────────────────────────────────


class OnboardingItemInput(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    type: str = Field("TASK", pattern="^(TASK|READING|MEETING|CHECKPOINT|EXPENSE)$")
    is_required: bool = True
    owner_type: str = Field("onboardee", pattern="^(onboardee|manager|mentor|hr)$")


class OnboardingPhaseInput(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    items: list[OnboardingItemInput] = []


class OnboardingTemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    is_active: bool = True
    is_default: bool = False
    team_id: uuid.UUID | None = None
    job_role_id: uuid.UUID | None = None
    phases: list[OnboardingPhaseInput] = []


class OnboardingTemplateUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    is_active: bool | None = None
    is_default: bool | None = None
    team_id: uuid.UUID | None = None
    job_role_id: uuid.UUID | None = None
    phases: list[OnboardingPhaseInput] | None = None


class OnboardingItemResponse(BaseModel):
    id: uuid.UUID
    title: str
    description: str | None
    type: str
    is_required: bool
    owner_type: str
    sort_order: int

    model_config = {"from_attributes": True}


class OnboardingPhaseResponse(BaseModel):
    id: uuid.UUID
    name: str
    description: str | None
    sort_order: int
    items: list[OnboardingItemResponse] = []

    model_config = {"from_attributes": True}


class OnboardingTemplateResponse(BaseModel):
    id: uuid.UUID
    name: str
    description: str | None
    is_active: bool
    is_default: bool
    team_id: uuid.UUID | None
    job_role_id: uuid.UUID | None
    phases: list[OnboardingPhaseResponse] = []

    model_config = {"from_attributes": True}


class AssignOnboardingRequest(BaseModel):
    person_id: uuid.UUID
    template_id: uuid.UUID
    manager_id: uuid.UUID | None = None
    mentor_id: uuid.UUID | None = None


class ItemProgressUpdate(BaseModel):
    status: str = Field(..., pattern="^(PENDING|IN_PROGRESS|COMPLETED|SKIPPED|BLOCKED)$")
    notes: str | None = None


class ItemProgressResponse(BaseModel):
    id: uuid.UUID
    item_id: uuid.UUID
    status: str
    notes: str | None
    completed_at: datetime | None
    completed_by_id: uuid.UUID | None

    model_config = {"from_attributes": True}


class OnboardingInstanceResponse(BaseModel):
    id: uuid.UUID
    template_id: uuid.UUID
    person_id: uuid.UUID
    manager_id: uuid.UUID | None
    mentor_id: uuid.UUID | None
    status: str
    started_at: datetime | None
    completed_at: datetime | None
    progress: list[ItemProgressResponse] = []

    model_config = {"from_attributes": True}


# ── Tolerance rules & exceptions ──────────────────────────────────────────────


class OneOnOneFrequencyConfig(BaseModel):
    warning_threshold_days: int = Field(..., gt=0)
    urgent_threshold_days: int = Field(..., gt=0)
    only_full_time_employees: bool = False

    @model_validator(mode="after")
    def _urgent_after_warning(self) -> "OneOnOneFrequencyConfig":
        if self.urgent_threshold_days <= self.warning_threshold_days:
            raise ValueError("Urgent threshold must be greater than warning threshold")
        return self


class InitiativeCheckInConfig(BaseModel):
    warning_threshold_days: int = Field(..., gt=0)


class Feedback360Config(BaseModel):
    warning_threshold_months: int = Field(..., gt=0)


class ManagerSpanConfig(BaseModel):
    max_direct_reports: int = Field(..., gt=0)


class MaxReportsConfig(BaseModel):
    max_reports: int = Field(..., gt=0)


RULE_TYPE_PATTERN = "^(one_on_one_frequency|initiative_checkin|feedback_360|manager_span|max_reports)$"


class ToleranceRuleCreate(BaseModel):
    rule_type: str = Field(..., pattern=RULE_TYPE_PATTERN)
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    is_enabled: bool = True
    config: dict[str, Any]


class ToleranceRuleUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    is_enabled: bool | None = None
    config: dict[str, Any] | None = None


class ToleranceRuleResponse(BaseModel):
    id: uuid.UUID
    rule_type: str
    name: str
    description: str | None
    is_enabled: bool
    config: dict[str, Any]
    created_at: datetime

    model_config = {"from_attributes": True}


class ToleranceExceptionResponse(BaseModel):
    id: uuid.UUID
    rule_id: uuid.UUID
    entity_type: str
    entity_id: str
    severity: str
    message: str
    status: str
    acknowledged_at: datetime | None
    acknowledged_by_id: uuid.UUID | None
    resolved_at: datetime | None
    notification_id: uuid.UUID | None
    created_at: datetime

    model_config = {"from_attributes": True}


# ── Notes & links ─────────────────────────────────────────────────────────────


class NoteCreate(BaseModel):
    entity_type: str = Field(..., min_length=1)
    entity_id: uuid.UUID
    content: str = Field(..., min_length=1)


class NoteUpdate(BaseModel):
    content: str = Field(..., min_length=1)


class AuthorResponse(BaseModel):
    id: uuid.UUID
    name: str
    email: str

    model_config = {"from_attributes": True}


class NoteResponse(BaseModel):
    id: uuid.UUID
    entity_type: str
    entity_id: uuid.UUID
    content: str
    created_by: AuthorResponse | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class EntityLinkCreate(BaseModel):
    url: HttpUrl
    title: str | None = Field(None, max_length=255)
    description: str | None = None
    entity_type: str = Field(..., min_length=1)
    entity_id: uuid.UUID


class EntityLinkUpdate(BaseModel):
    url: HttpUrl | None = None
    title: str | None = Field(None, max_length=255)
    description: str | None = None


class EntityLinkResponse(BaseModel):
    id: uuid.UUID
    entity_type: str
    entity_id: uuid.UUID
    url: str
    title: str | None
    description: str | None
    created_by: AuthorResponse | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


# ── People stats ──────────────────────────────────────────────────────────────


class StatusCount(BaseModel):
    status: str
    count: int


class TeamCount(BaseModel):
    team_name: str | None
    count: int


class JobRoleCount(BaseModel):
    job_role_title: str | None
    count: int


class PeopleStatsResponse(BaseModel):
    total_people: int
    direct_reports: int
    reports_without_recent_one_on_one: int
    reports_without_recent_feedback_360: int
    managers_exceeding_max_reports: int
    has_max_reports_rule: bool
    status_breakdown: list[StatusCount]
    team_breakdown: list[TeamCount]
    job_role_breakdown: list[JobRoleCount]


# ── Notifications ─────────────────────────────────────────────────────────────


class NotificationResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID | None
    title: str
    message: str
    type: str
    read_at: datetime | None
    dismissed_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class UnreadCountResponse(BaseModel):
    count: int


# ── Integrations ──────────────────────────────────────────────────────────────


class IntegrationCreate(BaseModel):
    integration_type: str = Field(..., pattern="^(jira|github)$")
    name: str = Field(..., min_length=1, max_length=255)
    credentials: dict[str, str]
    metadata: dict[str, Any] = {}


class IntegrationUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    is_enabled: bool | None = None
    credentials: dict[str, str] | None = None
    metadata: dict[str, Any] | None = None


class IntegrationResponse(BaseModel):
    id: uuid.UUID
    integration_type: str
    scope: str
    name: str
    is_enabled: bool
    last_sync_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class IntegrationTestResponse(BaseModel):
    success: bool
    error: str | None = None
