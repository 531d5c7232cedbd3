"""Tests for the GitHub client, served by an in-process mock transport."""

from __future__ import annotations

import httpx
import pytest

from manageros.errors import GitHubApiError
from manageros.integrations.github import GitHubClient

API = "https://api.github.test"


def _client(handler) -> GitHubClient:
    return GitHubClient("ghp_test", base_url=API, transport=httpx.MockTransport(handler))


def _pr(number: int) -> dict:
    return {
        "id": 900 + number,
        "number": number,
        "title": f"PR {number}",
        "state": "closed",
        "html_url": f"https://github.test/acme/api/pull/{number}",
        "base": {"repo": {"full_name": "acme/api"}},
        "created_at": "2026-10-10T10:00:00Z",
        "updated_at": "2026-10-12T10:00:00Z",
        "merged_at": "2026-10-12T10:00:00Z",
        "additions": 10,
        "deletions": 2,
        "changed_files": 3,
    }


class TestGitHubClient:
    """Tests for GitHubClient."""

    @pytest.mark.asyncio
    async def test_recent_pull_requests(self):
        """Test the pull request search query and mapping."""
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            assert request.headers["Authorization"] == "token ghp_test"
            if request.url.path == "/search/issues":
                assert request.url.params["q"].startswith("author:riley type:pr created:>")
                return httpx.Response(
                    200,
                    json={
                        "items": [
                            {"pull_request": {"url": f"{API}/repos/acme/api/pulls/1"}},
                            {"title": "an issue, not a PR"},
                            {"pull_request": {"url": f"{API}/repos/acme/api/pulls/2"}},
                        ]
                    },
                )
            if request.url.path.endswith("/pulls/1"):
                return httpx.Response(200, json=_pr(1))
            return httpx.Response(404, json={"message": "Not Found"})

        prs = await _client(handler).get_recent_pull_requests("riley", days_back=14)
        assert len(requests) == 3
        assert [pr["number"] for pr in prs] == [1]
        assert prs[0]["repository"] == "acme/api"
        assert prs[0]["changed_files"] == 3

    @pytest.mark.asyncio
    async def test_connection_failure_returns_false(self):
        """Test that bad credentials fail the connection test."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"message": "Bad credentials"})

        assert await _client(handler).test_connection() is False

    @pytest.mark.asyncio
    async def test_rate_limit(self):
        """Test that rate limiting raises GitHubApiError."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403, json={"message": "API rate limit exceeded"})

        with pytest.raises(GitHubApiError, match="rate limit") as excinfo:
            await _client(handler).get_current_user()
        assert excinfo.value.upstream_status == 403

    @pytest.mark.asyncio
    async def test_unknown_user_is_none(self):
        """Test that a 404 user lookup returns None."""
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/users/ghost":
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(200, json={"login": "riley"})

        client = _client(handler)
        assert await client.get_user_by_username("ghost") is None
        assert (await client.get_user_by_username("riley"))["login"] == "riley"

    @pytest.mark.asyncio
    async def test_server_error_propagates(self):
        """Test that upstream 5xx errors propagate."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="bad gateway")

        with pytest.raises(GitHubApiError) as excinfo:
            await _client(handler).get_user_by_username("riley")
        assert excinfo.value.upstream_status == 502
