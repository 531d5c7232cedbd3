"""Data models - SQLAlchemy ORM and Pydantic schemas."""

from manageros.models.db import (
    Base,
    CheckIn,
    EntityLink,
    Feedback,
    FeedbackCampaign,
    FeedbackResponse,
    FeedbackTemplate,
    Initiative,
    InitiativeOwner,
    Integration,
    JobRole,
    Meeting,
    MeetingParticipant,
    Note,
    Notification,
    Objective,
    OnboardingInstance,
    OnboardingItem,
    OnboardingItemProgress,
    OnboardingPhase,
    OnboardingTemplate,
    OneOnOne,
    Organization,
    OrganizationMember,
    Person,
    Task,
    TaskReminderDelivery,
    TaskReminderPreference,
    Team,
    ToleranceException,
    ToleranceRule,
    User,
)

__all__ = [
    "Base",
    "CheckIn",
    "EntityLink",
    "Feedback",
    "FeedbackCampaign",
    "FeedbackResponse",
    "FeedbackTemplate",
    "Initiative",
    "InitiativeOwner",
    "Integration",
    "JobRole",
    "Meeting",
    "MeetingParticipant",
    "Note",
    "Notification",
    "Objective",
    "OnboardingInstance",
    "OnboardingItem",
    "OnboardingItemProgress",
    "OnboardingPhase",
    "OnboardingTemplate",
    "OneOnOne",
    "Organization",
    "OrganizationMember",
    "Person",
    "Task",
    "TaskReminderDelivery",
    "TaskReminderPreference",
    "Team",
    "ToleranceException",
    "ToleranceRule",
    "User",
]
