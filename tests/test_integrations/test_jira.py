"""Tests for the Jira client, served by an in-process mock transport."""

from __future__ import annotations

import base64

import httpx
import pytest

from manageros.errors import JiraApiError
from manageros.integrations import crypto
from manageros.integrations.jira import JiraClient, build_assigned_tickets_jql, build_search_jql

ISSUE = {
    "id": "10001",
    "key": "PAY-7",
    "fields": {
        "summary": "Retry failed payouts",
        "status": {"name": "In Progress", "statusCategory": {"name": "In Progress"}},
        "priority": {"name": "High"},
        "issuetype": {"name": "Story"},
        "assignee": {"accountId": "acc-1", "displayName": "Riley", "emailAddress": "riley@acme.example"},
        "project": {"key": "PAY", "name": "Payments"},
        "labels": ["backend"],
        "created": "2026-10-01T10:00:00.000+0000",
        "updated": "2026-10-18T10:00:00.000+0000",
    },
}


def _client(handler) -> JiraClient:
    return JiraClient(
        "https://acme.atlassian.net/",
        "bot@acme.example",
        "api-token",
        transport=httpx.MockTransport(handler),
    )


class TestJql:
    def test_search_jql_joins_filters(self):
        """Test JQL built from several filters."""
        jql = build_search_jql(
            query="text ~ payouts",
            project="PAY",
            status_category=["To Do", "In Progress"],
            assignee="riley@acme.example",
        )
        assert jql == (
            'text ~ payouts AND project = "PAY" AND statusCategory in ("To Do","In Progress") '
            "AND assignee in (riley@acme.example)"
        )

    def test_account_id_assignee(self):
        """Test that account ids are used verbatim as assignee."""
        assert build_search_jql(assignee="acc-1") == 'assignee = "acc-1"'

    def test_assigned_tickets_window(self):
        """Test the assigned-tickets date window."""
        jql = build_assigned_tickets_jql("acc-1", "2026-10-01", "2026-10-19")
        assert jql.startswith('assignee = "acc-1" AND (updated >= "2026-10-01"')
        assert jql.endswith("ORDER BY updated DESC")


class TestJiraClient:
    """Tests for JiraClient."""

    @pytest.mark.asyncio
    async def test_basic_auth_header(self):
        """Test the basic auth header."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["Authorization"]
            seen["url"] = str(request.url)
            return httpx.Response(200, json={"accountId": "bot"})

        assert await _client(handler).test_connection() is True
        expected = base64.b64encode(b"bot@acme.example:api-token").decode()
        assert seen["auth"] == f"Basic {expected}"
        assert seen["url"] == "https://acme.atlassian.net/rest/api/3/myself"

    @pytest.mark.asyncio
    async def test_search_tickets_maps_issues(self):
        """Test mapping Jira issues to tickets."""
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/rest/api/3/search/jql"
            assert request.url.params["jql"] == 'project = "PAY"'
            assert request.url.params["maxResults"] == "10"
            return httpx.Response(200, json={"issues": [ISSUE], "total": 1})

        result = await _client(handler).search_tickets(project="PAY", limit=10)
        assert result["total_count"] == 1
        assert result["jql_query"] == 'project = "PAY"'
        assert result["filters"]["status"] == "All statuses"

        (ticket,) = result["results"]
        assert ticket["key"] == "PAY-7"
        assert ticket["status_category"] == "In Progress"
        assert ticket["assignee"]["display_name"] == "Riley"
        assert ticket["web_url"] == "https://acme.atlassian.net/browse/PAY-7"

    @pytest.mark.asyncio
    async def test_error_carries_upstream_status(self):
        """Test that API errors carry the upstream status."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"errorMessages": ["Unauthorized"]})

        with pytest.raises(JiraApiError) as excinfo:
            await _client(handler).get_current_user()
        assert excinfo.value.upstream_status == 401
        assert excinfo.value.response == {"errorMessages": ["Unauthorized"]}

    @pytest.mark.asyncio
    async def test_network_error(self):
        """Test that transport failures become JiraApiError."""
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(JiraApiError, match="Network error"):
            await _client(handler).get_current_user()

    @pytest.mark.asyncio
    async def test_user_search_filters_exact_active_email(self):
        """Test that user search keeps exact active email matches."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json=[
                    {"accountId": "a", "active": True, "emailAddress": "Riley@acme.example"},
                    {"accountId": "b", "active": False, "emailAddress": "riley@acme.example"},
                    {"accountId": "c", "active": True, "emailAddress": "riley.b@acme.example"},
                ],
            )

        users = await _client(handler).search_users_by_email("riley@acme.example")
        assert [user["accountId"] for user in users] == ["a"]

    @pytest.mark.asyncio
    async def test_multiple_users_tolerates_failures(self):
        """Test that one failing user does not sink the batch."""
        def handler(request: httpx.Request) -> httpx.Response:
            if 'assignee = "bad"' in request.url.params["jql"]:
                return httpx.Response(500, text="boom")
            return httpx.Response(200, json={"issues": [ISSUE]})

        results = await _client(handler).get_multiple_users_assigned_tickets(
            ["acc-1", "bad"], "2026-10-01", "2026-10-19"
        )
        assert results["bad"] == []
        assert results["acc-1"][0]["issue"]["key"] == "PAY-7"
        assert results["acc-1"][0]["last_updated"] == ISSUE["fields"]["updated"]

    def test_from_encrypted_credentials(self):
        """Test building a Jira client from stored credentials."""
        client = JiraClient.from_encrypted_credentials(
            {
                "base_url": "https://acme.atlassian.net",
                "email": "bot@acme.example",
                "encrypted_api_key": crypto.encrypt("api-token"),
            }
        )
        expected = base64.b64encode(b"bot@acme.example:api-token").decode()
        assert client.headers["Authorization"] == f"Basic {expected}"
