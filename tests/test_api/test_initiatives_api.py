"""Tests for the initiative listing route and its error bodies."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from manageros.models.db import User
from manageros.models.schemas import InitiativeCreate
from manageros.services import initiatives


class TestListInitiativesRoute:
    """Tests for GET /api/initiatives."""

    @pytest.mark.asyncio
    async def test_sorted_page(self, api_client, auth_headers, session, manager):
        """The route passes sort and paging straight through to the query."""
        for title in ("beta", "Alpha", "Gamma"):
            await initiatives.create_initiative(session, manager, InitiativeCreate(title=title))
        await session.commit()

        response = await api_client.get(
            "/api/initiatives", params={"sort": "title:desc", "limit": 2}, headers=auth_headers(manager)
        )
        assert response.status_code == 200
        body = response.json()
        assert [i["title"] for i in body["initiatives"]] == ["Gamma", "beta"]
        assert body["pagination"]["total_count"] == 3
        assert body["pagination"]["has_next_page"] is True

    @pytest.mark.asyncio
    async def test_large_limit_is_accepted(self, api_client, auth_headers, manager):
        """Page sizes above 100 are not rejected."""
        response = await api_client.get(
            "/api/initiatives", params={"limit": 500}, headers=auth_headers(manager)
        )
        assert response.status_code == 200
        assert response.json()["pagination"]["limit"] == 500

    @pytest.mark.asyncio
    async def test_bad_filter_is_400_error_body(self, api_client, auth_headers, manager):
        """Invalid filter values come back as {"error": ...} with 400."""
        response = await api_client.get(
            "/api/initiatives", params={"teamId": "not-a-uuid"}, headers=auth_headers(manager)
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid teamId parameter"}

    @pytest.mark.asyncio
    async def test_no_organization_is_403_error_body(self, api_client, session):
        """A caller without an organization gets a 403 {"error": ...} body."""
        user = User(email="drifter@elsewhere.example", name="Drifter")
        session.add(user)
        await session.commit()

        response = await api_client.get("/api/initiatives", headers={"X-User-Id": str(user.id)})
        assert response.status_code == 403
        assert response.json() == {"error": "User must belong to an organization to view initiatives"}

    @pytest.mark.asyncio
    async def test_unexpected_failure_is_500_error_body(self, api_client, auth_headers, manager):
        """Any other failure is logged and reported as a generic 500."""
        with patch(
            "manageros.api.routes.initiatives.list_initiatives",
            AsyncMock(side_effect=RuntimeError("boom")),
        ):
            response = await api_client.get("/api/initiatives", headers=auth_headers(manager))
        assert response.status_code == 500
        assert response.json() == {"error": "Failed to fetch initiatives"}
