"""Tests for stored integrations: credential handling, scopes and connection tests."""

from __future__ import annotations

import httpx
import pytest
from sqlalchemy import select

from manageros.errors import AccessDeniedError, DomainValidationError, IntegrationError
from manageros.integrations import crypto
from manageros.models.db import Integration
from manageros.models.schemas import IntegrationCreate, IntegrationUpdate
from manageros.services import integrations

JIRA_CREDENTIALS = {
    "base_url": "https://acme.atlassian.net",
    "email": "bot@acme.example",
    "api_key": "jira-token",
}


def _transport(status: int = 200) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json={"accountId": "bot", "login": "bot"})

    return httpx.MockTransport(handler)


def _jira(name: str = "Jira") -> IntegrationCreate:
    return IntegrationCreate(integration_type="jira", name=name, credentials=JIRA_CREDENTIALS)


class TestCredentials:
    def test_sensitive_values_are_renamed_and_encrypted(self):
        """Test that secrets are stored encrypted under renamed keys."""
        stored = integrations.prepare_credentials("jira", JIRA_CREDENTIALS)
        assert set(stored) == {"base_url", "email", "encrypted_api_key"}
        assert stored["email"] == "bot@acme.example"
        assert crypto.decrypt(stored["encrypted_api_key"]) == "jira-token"

    def test_missing_credentials(self):
        """Test that required credentials are enforced."""
        with pytest.raises(DomainValidationError, match="api_key"):
            integrations.prepare_credentials("jira", {"base_url": "x", "email": "y"})

    def test_github_token(self):
        """Test that GitHub tokens are encrypted."""
        stored = integrations.prepare_credentials("github", {"token": "ghp_x"})
        assert crypto.decrypt(stored["encrypted_token"]) == "ghp_x"


class TestStoredIntegrations:
    """Tests for integration scopes and connection checks."""

    @pytest.mark.asyncio
    async def test_admin_creates_org_integration(self, session, admin):
        """Test that an admin can create an organization integration."""
        integration = await integrations.create_integration(
            session, admin, _jira(), transport=_transport()
        )
        assert integration.scope == "organization"
        assert integration.user_id is None
        assert "api_key" not in integration.encrypted_credentials

    @pytest.mark.asyncio
    async def test_failed_connection_stores_nothing(self, session, admin):
        """Test that a failed connection test saves nothing."""
        with pytest.raises(IntegrationError):
            await integrations.create_integration(session, admin, _jira(), transport=_transport(401))
        result = await session.execute(select(Integration))
        assert result.scalars().all() == []

    @pytest.mark.asyncio
    async def test_org_scope_requires_admin(self, session, manager):
        """Test that organization scope is admin only."""
        with pytest.raises(AccessDeniedError):
            await integrations.create_integration(session, manager, _jira(), transport=_transport())

    @pytest.mark.asyncio
    async def test_user_integration_wins_over_org(self, session, admin, manager):
        """Test that a personal integration wins over the organization one."""
        await integrations.create_integration(session, admin, _jira("Org Jira"), transport=_transport())
        personal = IntegrationCreate(
            integration_type="jira",
            name="My Jira",
            credentials={**JIRA_CREDENTIALS, "email": "morgan@acme.example"},
        )
        await integrations.create_integration(
            session, manager, personal, scope="user", transport=_transport()
        )

        manager_client = await integrations.get_jira_client_for(session, manager)
        admin_client = await integrations.get_jira_client_for(session, admin)
        assert manager_client.email == "morgan@acme.example"
        assert admin_client.email == "bot@acme.example"
        assert await integrations.get_github_client_for(session, admin) is None

    @pytest.mark.asyncio
    async def test_disabled_integrations_are_ignored(self, session, admin):
        """Test that disabled integrations are skipped."""
        integration = await integrations.create_integration(
            session, admin, _jira(), transport=_transport()
        )
        await integrations.update_integration(session, admin, integration.id, IntegrationUpdate(is_enabled=False))
        assert await integrations.get_jira_client_for(session, admin) is None

    @pytest.mark.asyncio
    async def test_connection_test_reports_failure(self, session, admin):
        """Test that the connection check reports failures."""
        integration = await integrations.create_integration(
            session, admin, _jira(), transport=_transport()
        )
        ok = await integrations.test_integration(session, admin, integration.id, transport=_transport())
        assert ok == {"success": True}
        assert integration.last_sync_at is not None

        failed = await integrations.test_integration(
            session, admin, integration.id, transport=_transport(500)
        )
        assert failed["success"] is False
        assert "Jira API request failed" in failed["error"]
