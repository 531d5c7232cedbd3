"""Tests for feedback notes, 360 campaigns and plan limits."""

from __future__ import annotations

from datetime import datetime, timezone

import httpx
import pytest

from manageros.errors import (
    AccessDeniedError,
    ConflictError,
    DomainValidationError,
    LimitExceededError,
    NotFoundError,
)
from manageros.integrations.clerk import ClerkClient
from manageros.models.schemas import (
    FeedbackCampaignCreate,
    FeedbackCreate,
    FeedbackQuestion,
    FeedbackTemplateCreate,
)
from manageros.services import feedback, feedback_campaigns, limits

START = datetime(2026, 10, 1, tzinfo=timezone.utc)
END = datetime(2026, 10, 31, tzinfo=timezone.utc)
NOW = datetime(2026, 10, 19, 12, tzinfo=timezone.utc)


def _campaign(target_id, **overrides) -> FeedbackCampaignCreate:
    values = {
        "target_person_id": target_id,
        "name": "H2 review",
        "start_date": START,
        "end_date": END,
        "invite_emails": ["Peer@Acme.example", "peer@acme.example", "lead@acme.example"],
    }
    values.update(overrides)
    return FeedbackCampaignCreate(**values)


class TestCampaignSchema:
    def test_emails_normalised_and_deduplicated(self):
        """Test invite email normalisation."""
        data = _campaign("00000000-0000-0000-0000-000000000001")
        assert data.invite_emails == ["peer@acme.example", "lead@acme.example"]

    def test_end_must_follow_start(self):
        """Test that a campaign must end after it starts."""
        with pytest.raises(ValueError):
            _campaign("00000000-0000-0000-0000-000000000001", end_date=START)


class TestCampaigns:
    @pytest.mark.asyncio
    async def test_manager_creates_draft(self, session, manager, report):
        """Test that a manager can start a campaign for a report."""
        campaign = await feedback_campaigns.create_campaign(session, manager, _campaign(report.person_id))
        assert campaign.status == "draft"
        assert campaign.user_id == manager.user_id

    @pytest.mark.asyncio
    async def test_skip_level_manager_allowed(self, session, admin, manager, report):
        """Test that skip-level managers may run campaigns."""
        campaign = await feedback_campaigns.create_campaign(session, admin, _campaign(report.person_id))
        assert campaign.target_person_id == report.person_id

    @pytest.mark.asyncio
    async def test_report_cannot_target_manager(self, session, manager, report):
        """Test that reports cannot run campaigns about their manager."""
        with pytest.raises(AccessDeniedError):
            await feedback_campaigns.create_campaign(session, report, _campaign(manager.person_id))

    @pytest.mark.asyncio
    async def test_response_lifecycle(self, session, manager, report):
        """Test submitting a response through the public invite."""
        campaign = await feedback_campaigns.create_campaign(session, manager, _campaign(report.person_id))

        with pytest.raises(DomainValidationError, match="not accepting responses"):
            await feedback_campaigns.submit_feedback_response(
                session, campaign.id, "peer@acme.example", {"q1": "Great"}, now=NOW
            )

        await feedback_campaigns.update_campaign_status(session, manager, campaign.id, "active")

        response = await feedback_campaigns.submit_feedback_response(
            session, campaign.id, " PEER@acme.example ", {"q1": "Great"}, now=NOW
        )
        assert response.responder_email == "peer@acme.example"

        with pytest.raises(ConflictError):
            await feedback_campaigns.submit_feedback_response(
                session, campaign.id, "peer@acme.example", {"q1": "Again"}, now=NOW
            )
        with pytest.raises(AccessDeniedError):
            await feedback_campaigns.submit_feedback_response(
                session, campaign.id, "stranger@acme.example", {"q1": "Hi"}, now=NOW
            )

    @pytest.mark.asyncio
    async def test_closed_window_rejects_responses(self, session, manager, report):
        """Test that responses outside the window are refused."""
        campaign = await feedback_campaigns.create_campaign(session, manager, _campaign(report.person_id))
        await feedback_campaigns.update_campaign_status(session, manager, campaign.id, "active")

        after = datetime(2026, 11, 2, tzinfo=timezone.utc)
        with pytest.raises(DomainValidationError):
            await feedback_campaigns.submit_feedback_response(
                session, campaign.id, "peer@acme.example", {}, now=after
            )

    @pytest.mark.asyncio
    async def test_only_owner_changes_status(self, session, admin, manager, report):
        """Test that only the campaign owner changes its status."""
        campaign = await feedback_campaigns.create_campaign(session, manager, _campaign(report.person_id))
        with pytest.raises(NotFoundError):
            await feedback_campaigns.update_campaign_status(session, admin, campaign.id, "active")


class TestTemplates:
    @pytest.mark.asyncio
    async def test_single_default(self, session, admin):
        """Test that only one template is the default."""
        first = await feedback_campaigns.create_template(
            session,
            admin,
            FeedbackTemplateCreate(name="Standard", questions=[FeedbackQuestion(text="Strengths?")], is_default=True),
        )
        second = await feedback_campaigns.create_template(
            session, admin, FeedbackTemplateCreate(name="Short", is_default=True)
        )
        await session.refresh(first)
        assert not first.is_default
        assert second.is_default
        assert first.questions[0]["text"] == "Strengths?"

    @pytest.mark.asyncio
    async def test_admin_only(self, session, manager):
        """Test that templates are admin managed."""
        with pytest.raises(AccessDeniedError):
            await feedback_campaigns.create_template(session, manager, FeedbackTemplateCreate(name="X"))

    @pytest.mark.asyncio
    async def test_template_in_use_cannot_be_deleted(self, session, admin, manager, report):
        """Test that templates used by campaigns are kept."""
        template = await feedback_campaigns.create_template(session, admin, FeedbackTemplateCreate(name="T"))
        await feedback_campaigns.create_campaign(
            session, manager, _campaign(report.person_id, template_id=template.id)
        )
        with pytest.raises(ConflictError):
            await feedback_campaigns.delete_template(session, admin, template.id)


class TestFeedbackNotes:
    @pytest.mark.asyncio
    async def test_private_notes_visible_to_author_only(self, session, admin, manager, report):
        """Test that private feedback is hidden from others."""
        await feedback.create_feedback(
            session, manager, FeedbackCreate(about_id=report.person_id, body="Private note")
        )
        await feedback.create_feedback(
            session,
            manager,
            FeedbackCreate(about_id=report.person_id, body="Shipped the migration", kind="praise", is_private=False),
        )

        seen_by_manager = await feedback.list_feedback_for_person(session, manager, report.person_id)
        seen_by_admin = await feedback.list_feedback_for_person(session, admin, report.person_id)
        assert len(seen_by_manager) == 2
        assert [item.body for item in seen_by_admin] == ["Shipped the migration"]

    @pytest.mark.asyncio
    async def test_only_author_edits(self, session, manager, report):
        """Test that only the author can delete feedback."""
        note = await feedback.create_feedback(
            session, manager, FeedbackCreate(about_id=report.person_id, body="Note")
        )
        with pytest.raises(NotFoundError):
            await feedback.delete_feedback(session, report, note.id)


def _clerk(subscription: dict) -> ClerkClient:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["Authorization"] == "Bearer sk_test"
        assert request.url.path == "/v1/organizations/org_123/billing/subscription"
        return httpx.Response(200, json=subscription)

    return ClerkClient(
        secret_key="sk_test",
        frontend_api_url="",
        api_base="https://clerk.test",
        transport=httpx.MockTransport(handler),
    )


class TestPlanLimits:
    """Tests for billing plan limits."""

    def test_free_plan_is_unlimited(self):
        """Test that free plans carry no limits."""
        plan = {"name": "free", "fee": {"amount": 0}, "public_metadata": {"max_people": "3"}}
        assert limits.limits_from_plan(plan) == limits.PlanLimits()

    def test_paid_plan_reads_metadata(self):
        """Test reading limits from plan metadata."""
        plan = {"name": "team", "fee": {"amount": 900}, "public_metadata": {"max_people": "25", "max_teams": "x"}}
        parsed = limits.limits_from_plan(plan)
        assert parsed.max_people == 25
        assert parsed.max_teams is None

    @pytest.mark.asyncio
    async def test_no_clerk_org_means_no_limit(self, session, org):
        """Test that organizations without billing are unlimited."""
        await limits.check_organization_limit(session, org.id, "max_people", 10_000)

    @pytest.mark.asyncio
    async def test_limit_exceeded(self, session, org):
        """Test that reaching the plan limit raises."""
        org.clerk_organization_id = "org_123"
        await session.commit()
        client = _clerk(
            {
                "subscription_items": [
                    {"plan": {"name": "team", "fee": {"amount": 900}, "public_metadata": {"max_teams": 2}}}
                ]
            }
        )
        await limits.check_organization_limit(session, org.id, "max_teams", 1, client)
        with pytest.raises(LimitExceededError, match="Teams limit exceeded"):
            await limits.check_organization_limit(session, org.id, "max_teams", 2, client)

    @pytest.mark.asyncio
    async def test_unreachable_clerk_means_no_limit(self, session, org):
        """A connection failure to Clerk is treated as having no plan limits."""
        org.clerk_organization_id = "org_123"
        await session.commit()

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = ClerkClient(
            secret_key="sk_test",
            frontend_api_url="",
            api_base="https://clerk.test",
            transport=httpx.MockTransport(handler),
        )
        assert await client.get_organization_subscription("org_123") is None
        await limits.check_organization_limit(session, org.id, "max_people", 10_000, client)
