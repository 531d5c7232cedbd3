"""Tests for the MCP JSON-RPC endpoint."""

from __future__ import annotations

import json

import pytest

from manageros.config import settings
from manageros.mcp.tools import TOOLS, EmptyParams, Tool


def _rpc(method: str, params: dict | None = None, request_id: int = 1) -> dict:
    message = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        message["params"] = params
    return message


class TestProtocolErrors:
    """Tests for JSON-RPC error responses."""

    @pytest.mark.asyncio
    async def test_parse_error(self, api_client):
        """Test that malformed JSON is a parse error."""
        response = await api_client.post(
            "/api/mcp", content=b"{not json", headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == -32700

    @pytest.mark.asyncio
    async def test_missing_method(self, api_client):
        """Test that a message without method is an invalid request."""
        response = await api_client.post("/api/mcp", json={"jsonrpc": "2.0", "id": 7})
        assert response.status_code == 400
        body = response.json()
        assert body["id"] == 7
        assert body["error"]["code"] == -32600

    @pytest.mark.asyncio
    async def test_tool_call_requires_auth(self, api_client):
        """Test that tool calls need a bearer token."""
        response = await api_client.post("/api/mcp", json=_rpc("tools/call", {"name": "people"}))
        assert response.status_code == 401
        assert response.json()["error"]["code"] == 401
        assert response.headers["WWW-Authenticate"] == (
            f'Bearer resource_metadata="{settings.oauth_resource_metadata_url}"'
        )

    @pytest.mark.asyncio
    async def test_wrong_jsonrpc_version(self, api_client):
        """Test that only JSON-RPC 2.0 is accepted."""
        message = _rpc("initialize")
        message["jsonrpc"] = "1.0"
        response = await api_client.post("/api/mcp", json=message)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == -32600

    @pytest.mark.asyncio
    async def test_unknown_method(self, api_client, auth_headers, admin):
        """Test the method-not-found error."""
        response = await api_client.post(
            "/api/mcp", json=_rpc("resources/list"), headers=auth_headers(admin)
        )
        assert response.status_code == 200
        assert response.json()["error"] == {"code": -32601, "message": "Method not found: resources/list"}

    @pytest.mark.asyncio
    async def test_unknown_tool(self, api_client, auth_headers, admin):
        """Test the unknown tool error payload."""
        response = await api_client.post(
            "/api/mcp", json=_rpc("tools/call", {"name": "payroll"}), headers=auth_headers(admin)
        )
        assert response.status_code == 200
        error = response.json()["error"]
        assert error["code"] == -32603
        assert error["data"] == {"tool": "payroll", "error": "UnknownTool"}

    @pytest.mark.asyncio
    async def test_missing_tool_name(self, api_client, auth_headers, admin):
        """Test that tools/call needs a tool name."""
        response = await api_client.post(
            "/api/mcp", json=_rpc("tools/call", {}), headers=auth_headers(admin)
        )
        assert response.json()["error"]["code"] == -32602

    @pytest.mark.asyncio
    async def test_non_object_params_are_invalid(self, api_client, auth_headers, admin):
        """A params value that is not an object is rejected before dispatch."""
        message = _rpc("tools/call")
        message["params"] = ["people"]
        response = await api_client.post("/api/mcp", json=message, headers=auth_headers(admin))
        assert response.status_code == 200
        assert response.json()["error"] == {"code": -32602, "message": "Invalid params"}

    @pytest.mark.asyncio
    async def test_key_error_inside_tool_is_not_unknown_tool(self, api_client, auth_headers, admin, monkeypatch):
        """A KeyError raised by a known tool surfaces as an internal error, not UnknownTool."""

        async def broken(session, ctx, params):
            raise KeyError("missing")

        monkeypatch.setitem(TOOLS, "dateTime", Tool("dateTime", "Broken clock", EmptyParams, broken))
        response = await api_client.post(
            "/api/mcp", json=_rpc("tools/call", {"name": "dateTime"}), headers=auth_headers(admin)
        )
        error = response.json()["error"]
        assert error["code"] == -32603
        assert error["message"] == "Internal error"
        assert error["data"] == {"tool": "dateTime", "error": "KeyError"}

    @pytest.mark.asyncio
    async def test_invalid_arguments_are_internal_errors(self, api_client, auth_headers, admin):
        """Test that argument validation failures are internal errors."""
        response = await api_client.post(
            "/api/mcp",
            json=_rpc("tools/call", {"name": "personLookup", "arguments": {}}),
            headers=auth_headers(admin),
        )
        error = response.json()["error"]
        assert error["code"] == -32603
        assert error["data"] == {"tool": "personLookup", "error": "ValidationError"}


class TestMethods:
    @pytest.mark.asyncio
    async def test_initialize_without_auth(self, api_client):
        """Test that initialize works anonymously."""
        response = await api_client.post("/api/mcp", json=_rpc("initialize"))
        assert response.status_code == 200
        result = response.json()["result"]
        assert result["protocolVersion"] == "2024-11-05"
        assert result["serverInfo"]["name"] == "ManagerOS"

    @pytest.mark.asyncio
    async def test_tools_list_without_auth(self, api_client):
        """Test that tools/list works anonymously."""
        response = await api_client.post("/api/mcp", json=_rpc("tools/list"))
        tools = response.json()["result"]["tools"]
        assert len(tools) == 13
        by_name = {tool["name"]: tool for tool in tools}
        assert "teamId" in by_name["people"]["inputSchema"]["properties"]

    @pytest.mark.asyncio
    async def test_tool_call_returns_json_text(self, api_client, auth_headers, admin, manager, report):
        """Test that tool output is returned as JSON text content."""
        response = await api_client.post(
            "/api/mcp",
            json=_rpc("tools/call", {"name": "people", "arguments": {"query": "riley"}}, request_id=3),
            headers=auth_headers(manager),
        )
        assert response.status_code == 200
        body = response.json()
        assert body["id"] == 3
        content = body["result"]["content"][0]
        assert content["type"] == "text"
        payload = json.loads(content["text"])
        assert payload["total"] == 1
        assert payload["people"][0]["id"] == str(report.person_id)


class TestTransport:
    @pytest.mark.asyncio
    async def test_get_not_allowed(self, api_client):
        """Test that GET is refused with an Allow header."""
        response = await api_client.get("/api/mcp")
        assert response.status_code == 405
        assert response.headers["Allow"] == "POST, OPTIONS"

    @pytest.mark.asyncio
    async def test_options_preflight(self, api_client):
        """Test the CORS preflight response."""
        response = await api_client.options("/api/mcp")
        assert response.status_code == 204
        assert response.headers["Access-Control-Allow-Origin"] == "*"

    @pytest.mark.asyncio
    async def test_protected_resource_metadata(self, api_client):
        """Test the OAuth protected resource metadata document."""
        response = await api_client.get("/.well-known/oauth-protected-resource")
        assert response.status_code == 200
        body = response.json()
        assert body["resource"] == f"{settings.manageros_base_url}/api/mcp"
        assert body["bearer_methods_supported"] == ["header"]
