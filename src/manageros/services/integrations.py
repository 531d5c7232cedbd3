"""Stored Jira / GitHub integrations and the clients built from them.

Credentials arrive in plain text (``{"base_url", "email", "api_key"}`` for
Jira, ``{"token"}`` for GitHub). Sensitive values are renamed with an
``encrypted_`` prefix and Fernet-encrypted before they reach the database.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from manageros.auth import UserContext, require_admin, require_organization
from manageros.errors import DomainValidationError, IntegrationError, NotFoundError
from manageros.integrations.crypto import encrypt_credentials, is_sensitive
from manageros.integrations.github import GitHubClient
from manageros.integrations.jira import JiraClient
from manageros.models.db import Integration, utcnow
from manageros.models.schemas import IntegrationCreate, IntegrationUpdate

logger = logging.getLogger(__name__)

ADMIN_MESSAGE = "Only administrators can manage organization integrations"

REQUIRED_CREDENTIALS = {
    "jira": ("base_url", "email", "api_key"),
    "github": ("token",),
}

CLIENTS = {"jira": JiraClient, "github": GitHubClient}


def prepare_credentials(integration_type: str, credentials: dict[str, str]) -> dict[str, str]:
    """Validate and encrypt a plain-text credentials mapping for storage."""
    missing = [name for name in REQUIRED_CREDENTIALS[integration_type] if not credentials.get(name)]
    if missing:
        raise DomainValidationError(f"Missing credentials: {', '.join(missing)}")
    renamed = {
        name if name.startswith("encrypted_") or not is_sensitive(name) else f"encrypted_{name}": value
        for name, value in credentials.items()
    }
    return encrypt_credentials(renamed)


def build_client(integration: Integration, **client_kwargs: Any) -> JiraClient | GitHubClient:
    client_class = CLIENTS[integration.integration_type]
    return client_class.from_encrypted_credentials(integration.encrypted_credentials, **client_kwargs)


async def check_connection(integration: Integration, **client_kwargs: Any) -> None:
    """Raise IntegrationError unless the upstream accepts the stored credentials."""
    client = build_client(integration, **client_kwargs)
    if not await client.test_connection():
        raise IntegrationError(f"Failed to connect to {integration.integration_type}")


async def _get_integration(
    session: AsyncSession, ctx: UserContext, integration_id: uuid.UUID, scope: str
) -> Integration:
    stmt = select(Integration).where(
        Integration.id == integration_id,
        Integration.organization_id == ctx.organization_id,
        Integration.scope == scope,
    )
    if scope == "user":
        stmt = stmt.where(Integration.user_id == ctx.user_id)
    integration = (await session.execute(stmt)).scalar_one_or_none()
    if integration is None:
        raise NotFoundError("Integration not found or access denied")
    return integration


def _require_scope(ctx: UserContext, scope: str, action: str) -> uuid.UUID:
    if scope == "organization":
        return require_admin(ctx, ADMIN_MESSAGE)
    return require_organization(ctx, f"{action} integrations")


async def create_integration(
    session: AsyncSession,
    ctx: UserContext,
    data: IntegrationCreate,
    scope: str = "organization",
    **client_kwargs: Any,
) -> Integration:
    """Store a new integration after a successful connection test.

    Raises:
        IntegrationError: when the connection test fails; nothing is stored.
    """
    org_id = _require_scope(ctx, scope, "create")
    integration = Integration(
        organization_id=org_id,
        user_id=ctx.user_id if scope == "user" else None,
        integration_type=data.integration_type,
        scope=scope,
        name=data.name,
        is_enabled=True,
        encrypted_credentials=prepare_credentials(data.integration_type, data.credentials),
        metadata_=data.metadata,
    )
    session.add(integration)
    await session.flush()

    try:
        await check_connection(integration, **client_kwargs)
    except IntegrationError:
        logger.warning("Connection test failed for new %s integration %s", data.integration_type, data.name)
        await session.delete(integration)
        await session.flush()
        raise

    logger.info("Created %s-level %s integration %s", scope, data.integration_type, integration.id)
    return integration


async def update_integration(
    session: AsyncSession,
    ctx: UserContext,
    integration_id: uuid.UUID,
    data: IntegrationUpdate,
    scope: str = "organization",
) -> Integration:
    _require_scope(ctx, scope, "update")
    integration = await _get_integration(session, ctx, integration_id, scope)
    if data.name is not None:
        integration.name = data.name
    if data.is_enabled is not None:
        integration.is_enabled = data.is_enabled
    if data.credentials is not None:
        integration.encrypted_credentials = prepare_credentials(
            integration.integration_type, data.credentials
        )
    if data.metadata is not None:
        integration.metadata_ = data.metadata
    await session.flush()
    return integration


async def delete_integration(
    session: AsyncSession, ctx: UserContext, integration_id: uuid.UUID, scope: str = "organization"
) -> None:
    _require_scope(ctx, scope, "delete")
    integration = await _get_integration(session, ctx, integration_id, scope)
    await session.delete(integration)
    await session.flush()


async def list_integrations(
    session: AsyncSession, ctx: UserContext, scope: str = "organization"
) -> list[Integration]:
    org_id = require_organization(ctx, "view integrations")
    stmt = select(Integration).where(Integration.organization_id == org_id, Integration.scope == scope)
    if scope == "user":
        stmt = stmt.where(Integration.user_id == ctx.user_id)
    result = await session.execute(stmt.order_by(Integration.created_at.desc()))
    return list(result.scalars().all())


async def test_integration(
    session: AsyncSession,
    ctx: UserContext,
    integration_id: uuid.UUID,
    scope: str = "organization",
    **client_kwargs: Any,
) -> dict[str, Any]:
    """Run a connection test; failures are reported, not raised."""
    _require_scope(ctx, scope, "test")
    integration = await _get_integration(session, ctx, integration_id, scope)
    try:
        await check_connection(integration, **client_kwargs)
    except IntegrationError as exc:
        return {"success": False, "error": exc.message}
    integration.last_sync_at = utcnow()
    await session.flush()
    return {"success": True}


async def _find_enabled(
    session: AsyncSession, ctx: UserContext, integration_type: str
) -> Integration | None:
    """User-level integration first, then the organization-level one."""
    if ctx.organization_id is None:
        return None
    base = select(Integration).where(
        Integration.organization_id == ctx.organization_id,
        Integration.integration_type == integration_type,
        Integration.is_enabled.is_(True),
    )
    result = await session.execute(
        base.where(Integration.scope == "user", Integration.user_id == ctx.user_id).limit(1)
    )
    integration = result.scalar_one_or_none()
    if integration is None:
        result = await session.execute(base.where(Integration.scope == "organization").limit(1))
        integration = result.scalar_one_or_none()
    return integration


async def get_jira_client_for(
    session: AsyncSession, ctx: UserContext, **client_kwargs: Any
) -> JiraClient | None:
    integration = await _find_enabled(session, ctx, "jira")
    return build_client(integration, **client_kwargs) if integration else None


async def get_github_client_for(
    session: AsyncSession, ctx: UserContext, **client_kwargs: Any
) -> GitHubClient | None:
    integration = await _find_enabled(session, ctx, "github")
    return build_client(integration, **client_kwargs) if integration else None
