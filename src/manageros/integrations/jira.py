"""Jira Cloud REST client (API v3, basic auth with an API token)."""

from __future__ import annotations

import asyncio
import base64
import logging
from typing import Any

import httpx

from manageros.errors import JiraApiError
from manageros.integrations.crypto import decrypt

logger = logging.getLogger(__name__)

ASSIGNED_TICKET_FIELDS = (
    "summary,issuetype,status,statuscategory,priority,project,assignee,updated,created"
)
BATCH_SIZE = 5


def build_assigned_tickets_jql(account_id: str, date_from: str, date_to: str) -> str:
    return (
        f'assignee = "{account_id}" '
        f'AND (updated >= "{date_from}" OR created >= "{date_from}") '
        f'AND (updated <= "{date_to}" OR created <= "{date_to}") '
        f"ORDER BY updated DESC"
    )


def build_search_jql(
    query: str | None = None,
    project: str | None = None,
    status: str | None = None,
    status_category: list[str] | None = None,
    assignee: str | None = None,
) -> str:
    """Join the given filters into a single JQL expression."""
    clauses: list[str] = []
    if query:
        clauses.append(query)
    if project:
        clauses.append(f'project = "{project}"')
    if status:
        clauses.append(f'status = "{status}"')
    if status_category:
        categories = ",".join(f'"{category}"' for category in status_category)
        clauses.append(f"statusCategory in ({categories})")
    if assignee:
        # Email addresses go through the user-picker function form
        if "@" in assignee:
            clauses.append(f"assignee in ({assignee})")
        else:
            clauses.append(f'assignee = "{assignee}"')
    return " AND ".join(clauses)


class JiraClient:
    """Thin async wrapper over the Jira REST API."""

    def __init__(
        self,
        base_url: str,
        email: str,
        api_key: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.email = email
        token = base64.b64encode(f"{email}:{api_key}".encode()).decode()
        self.headers = {
            "Authorization": f"Basic {token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        self.transport = transport

    @classmethod
    def from_encrypted_credentials(cls, credentials: dict[str, str], **kwargs: Any) -> "JiraClient":
        return cls(
            base_url=credentials["base_url"],
            email=credentials["email"],
            api_key=decrypt(credentials["encrypted_api_key"]),
            **kwargs,
        )

    async def _request(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        url = f"{self.base_url}/rest/api/3/{endpoint}"
        try:
            async with httpx.AsyncClient(
                headers=self.headers, timeout=30, transport=self.transport
            ) as client:
                response = await client.get(url, params=params)
        except httpx.TransportError as exc:
            raise JiraApiError(f"Network error: {exc}") from exc

        if not response.is_success:
            try:
                body = response.json()
            except ValueError:
                body = {}
            raise JiraApiError(
                f"Jira API request failed: {response.reason_phrase}",
                response.status_code,
                body,
            )
        return response.json()

    async def test_connection(self) -> bool:
        await self._request("myself")
        return True

    async def get_current_user(self) -> dict[str, Any]:
        return await self._request("myself")

    async def search_users_by_email(self, email: str) -> list[dict[str, Any]]:
        """Find active users whose email matches exactly (case-insensitive)."""
        users = await self._request("user/search", {"query": email, "maxResults": 50})
        wanted = email.lower()
        return [
            user
            for user in users
            if user.get("active") and (user.get("emailAddress") or "").lower() == wanted
        ]

    async def get_user_by_account_id(self, account_id: str) -> dict[str, Any]:
        return await self._request("user", {"accountId": account_id})

    async def get_user_assigned_tickets(
        self, account_id: str, date_from: str, date_to: str
    ) -> list[dict[str, Any]]:
        """Tickets assigned to ``account_id`` created or updated in the window.

        Args:
            account_id: Jira account id.
            date_from: Inclusive lower bound (``YYYY-MM-DD``).
            date_to: Inclusive upper bound (``YYYY-MM-DD``).
        """
        response = await self._request(
            "search/jql",
            {
                "jql": build_assigned_tickets_jql(account_id, date_from, date_to),
                "fields": ASSIGNED_TICKET_FIELDS,
                "maxResults": 100,
            },
        )
        return [
            {
                "issue": {"id": issue.get("id"), "key": issue.get("key"), "fields": issue.get("fields", {})},
                "last_updated": issue.get("fields", {}).get("updated"),
                "created": issue.get("fields", {}).get("created"),
            }
            for issue in response.get("issues", [])
        ]

    async def search_tickets(
        self,
        query: str | None = None,
        project: str | None = None,
        status_category: list[str] | None = None,
        status: str | None = None,
        assignee: str | None = None,
        limit: int = 50,
    ) -> dict[str, Any]:
        jql = build_search_jql(query, project, status, status_category, assignee)
        response = await self._request(
            "search/jql", {"jql": jql, "fields": "*all", "maxResults": limit}
        )
        results = [self._map_ticket(issue) for issue in response.get("issues", [])]
        return {
            "total_count": response.get("total", len(results)),
            "results": results,
            "jql_query": jql,
            "filters": {
                "project": project or "All projects",
                "status": status or "All statuses",
                "status_category": status_category or "All statuses",
                "assignee": assignee or "All assignees",
            },
        }

    async def get_multiple_users_assigned_tickets(
        self, account_ids: list[str], date_from: str, date_to: str
    ) -> dict[str, list[dict[str, Any]]]:
        """Fetch assigned tickets for several users, five at a time.

        A user whose lookup fails maps to an empty list.
        """
        results: dict[str, list[dict[str, Any]]] = {}

        async def fetch(account_id: str) -> None:
            try:
                results[account_id] = await self.get_user_assigned_tickets(
                    account_id, date_from, date_to
                )
            except JiraApiError:
                logger.exception("Failed to fetch assigned tickets for user %s", account_id)
                results[account_id] = []

        for start in range(0, len(account_ids), BATCH_SIZE):
            batch = account_ids[start : start + BATCH_SIZE]
            await asyncio.gather(*(fetch(account_id) for account_id in batch))
        return results

    def _map_ticket(self, issue: dict[str, Any]) -> dict[str, Any]:
        fields = issue.get("fields", {})
        status = fields.get("status") or {}
        assignee = fields.get("assignee")
        priority = fields.get("priority")
        project = fields.get("project") or {}
        return {
            "id": issue.get("id"),
            "key": issue.get("key"),
            "summary": fields.get("summary"),
            "status": status.get("name", "Unknown"),
            "status_category": (status.get("statusCategory") or {}).get("name"),
            "priority": priority.get("name") if priority else None,
            "issue_type": (fields.get("issuetype") or {}).get("name", "Unknown"),
            "assignee": (
                {
                    "account_id": assignee.get("accountId"),
                    "display_name": assignee.get("displayName"),
                    "email": assignee.get("emailAddress"),
                }
                if assignee
                else None
            ),
            "project": {"key": project.get("key", "Unknown"), "name": project.get("name", "Unknown")},
            "labels": fields.get("labels") or [],
            "created": fields.get("created"),
            "updated": fields.get("updated"),
            "web_url": f"{self.base_url}/browse/{issue.get('key')}",
        }
