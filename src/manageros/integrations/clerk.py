"""Clerk client: OAuth token introspection and billing plan lookups."""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from manageros.config import settings

logger = logging.getLogger(__name__)


class ClerkClient:
    """Client for the Clerk Frontend API (OAuth) and Backend API (billing)."""

    def __init__(
        self,
        secret_key: str | None = None,
        frontend_api_url: str | None = None,
        oauth_client_id: str | None = None,
        oauth_client_secret: str | None = None,
        api_base: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.secret_key = secret_key if secret_key is not None else settings.clerk_secret_key
        self.frontend_api_url = (
            frontend_api_url if frontend_api_url is not None else settings.clerk_frontend_api_url
        ).rstrip("/")
        self.oauth_client_id = (
            oauth_client_id if oauth_client_id is not None else settings.clerk_oauth_client_id
        )
        self.oauth_client_secret = (
            oauth_client_secret
            if oauth_client_secret is not None
            else settings.clerk_oauth_client_secret
        )
        self.api_base = (api_base or settings.clerk_api_base).rstrip("/")
        self.transport = transport

    def _client(self, headers: dict[str, str] | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(headers=headers, timeout=30, transport=self.transport)

    async def validate_token(self, token: str) -> dict[str, Any] | None:
        """Introspect an OAuth access token.

        Returns:
            The token info dict when the token is active and unexpired,
            otherwise None.
        """
        if not self.frontend_api_url or not self.oauth_client_id or not self.oauth_client_secret:
            logger.warning("Clerk OAuth client is not configured; cannot validate tokens")
            return None

        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self.frontend_api_url}/oauth/token_info",
                    auth=(self.oauth_client_id, self.oauth_client_secret),
                    data={"token": token},
                )
        except httpx.TransportError:
            logger.exception("Error validating Clerk token")
            return None

        if response.status_code in (401, 403):
            return None
        if not response.is_success:
            logger.error(
                "Failed to validate Clerk token: %s %s", response.status_code, response.text
            )
            return None

        info = response.json()
        if not info.get("active"):
            return None
        expires = info.get("exp")
        if expires and expires < time.time():
            return None
        return info

    async def list_plans(self) -> list[dict[str, Any]]:
        """Return every billing plan, or [] when billing is unavailable."""
        if not self.secret_key:
            return []
        try:
            async with self._client({"Authorization": f"Bearer {self.secret_key}"}) as client:
                response = await client.get(
                    f"{self.api_base}/v1/billing/plans", params={"limit": 100}
                )
        except httpx.TransportError:
            logger.exception("Error fetching Clerk plans")
            return []
        if not response.is_success:
            logger.error("Failed to fetch Clerk plans: %s", response.status_code)
            return []
        return response.json().get("data", [])

    async def get_organization_subscription(self, clerk_organization_id: str) -> dict[str, Any] | None:
        if not self.secret_key:
            return None
        try:
            async with self._client({"Authorization": f"Bearer {self.secret_key}"}) as client:
                response = await client.get(
                    f"{self.api_base}/v1/organizations/{clerk_organization_id}/billing/subscription"
                )
        except httpx.TransportError as exc:
            logger.warning("Clerk unreachable fetching subscription for %s: %s", clerk_organization_id, exc)
            return None
        if response.status_code == 404:
            return None
        if not response.is_success:
            logger.error(
                "Failed to fetch subscription for %s: %s",
                clerk_organization_id,
                response.status_code,
            )
            return None
        return response.json()


clerk_client = ClerkClient()
