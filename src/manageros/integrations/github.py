"""GitHub integration client for pull request activity."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

from manageros.config import settings
from manageros.errors import GitHubApiError
from manageros.integrations.crypto import decrypt

logger = logging.getLogger(__name__)


class GitHubClient:
    """Client for interacting with the GitHub REST API.

    Authenticates with a personal access token stored (encrypted) on an
    organization or user integration.
    """

    def __init__(
        self,
        token: str,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.token = token
        self.base_url = (base_url or settings.github_api_base).rstrip("/")
        self.transport = transport
        self.headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": "ManagerOS/1.0",
            "Authorization": f"token {self.token}",
        }

    @classmethod
    def from_encrypted_credentials(cls, credentials: dict[str, str], **kwargs: Any) -> "GitHubClient":
        return cls(decrypt(credentials["encrypted_token"]), **kwargs)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(headers=self.headers, timeout=30, transport=self.transport)

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.is_success:
            return
        if response.status_code == 401:
            raise GitHubApiError("Invalid GitHub credentials", 401, response.text)
        if response.status_code == 403:
            raise GitHubApiError(
                "GitHub API rate limit exceeded or insufficient permissions",
                403,
                response.text,
            )
        raise GitHubApiError(
            f"GitHub API error: {response.status_code} {response.reason_phrase}",
            response.status_code,
            response.text,
        )

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        url = path if path.startswith("http") else f"{self.base_url}/{path.lstrip('/')}"
        try:
            async with self._client() as client:
                response = await client.get(url, params=params)
        except httpx.TransportError as exc:
            raise GitHubApiError(f"Network error: {exc}") from exc
        self._raise_for_status(response)
        return response.json()

    async def test_connection(self) -> bool:
        """Return True when the token can read the authenticated user."""
        try:
            await self.get_current_user()
            return True
        except GitHubApiError:
            logger.warning("GitHub connection test failed", exc_info=True)
            return False

    async def get_current_user(self) -> dict[str, Any]:
        return await self._get("/user")

    async def get_user_by_username(self, username: str) -> dict[str, Any] | None:
        """Fetch a public user profile.

        Returns:
            The user dict, or None when the username does not exist.
        """
        try:
            return await self._get(f"/users/{username}")
        except GitHubApiError as exc:
            if exc.upstream_status == 404:
                return None
            raise

    async def get_recent_pull_requests(
        self, username: str, days_back: int = 30
    ) -> list[dict[str, Any]]:
        """List pull requests authored by ``username`` in the last ``days_back`` days.

        Args:
            username: GitHub login.
            days_back: Look-back window in days.

        Returns:
            Up to 20 PR summaries, most recently updated first. PRs whose
            details cannot be fetched are skipped.
        """
        since = (datetime.now(timezone.utc) - timedelta(days=days_back)).date().isoformat()
        search = await self._get(
            "/search/issues",
            params={
                "q": f"author:{username} type:pr created:>{since}",
                "sort": "updated",
                "order": "desc",
                "per_page": 20,
            },
        )

        pull_requests = []
        for item in search.get("items", []):
            pr_url = item.get("pull_request", {}).get("url")
            if not pr_url:
                continue
            try:
                details = await self._get(pr_url)
            except GitHubApiError:
                logger.warning("Skipping PR %s: details unavailable", pr_url)
                continue
            pull_requests.append(_map_pull_request(details))
        return pull_requests


def _map_pull_request(pr: dict[str, Any]) -> dict[str, Any]:
    repo = pr.get("base", {}).get("repo", {}) or {}
    return {
        "id": pr.get("id"),
        "number": pr.get("number"),
        "title": pr.get("title"),
        "state": pr.get("state"),
        "html_url": pr.get("html_url"),
        "repository": repo.get("full_name"),
        "created_at": pr.get("created_at"),
        "updated_at": pr.get("updated_at"),
        "merged_at": pr.get("merged_at"),
        "additions": pr.get("additions", 0),
        "deletions": pr.get("deletions", 0),
        "changed_files": pr.get("changed_files", 0),
    }
