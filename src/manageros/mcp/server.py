"""Stateless MCP JSON-RPC endpoint and its OAuth discovery document."""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession

from manageros.api.deps import get_db, resolve_user
from manageros.config import APP_VERSION, settings
from manageros.mcp.tools import TOOLS, call_tool, tool_definitions

logger = logging.getLogger(__name__)

router = APIRouter()
well_known_router = APIRouter()

PROTOCOL_VERSION = "2024-11-05"
UNAUTHENTICATED_METHODS = ("initialize", "tools/list")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


def _error(request_id: Any, code: int, message: str, status_code: int = 200, **extra: Any) -> JSONResponse:
    error: dict[str, Any] = {"code": code, "message": message}
    if extra.get("data") is not None:
        error["data"] = extra["data"]
    return JSONResponse(
        status_code=status_code,
        content={"jsonrpc": "2.0", "id": request_id, "error": error},
        headers=extra.get("headers"),
    )


def _result(request_id: Any, result: dict[str, Any]) -> JSONResponse:
    return JSONResponse(content={"jsonrpc": "2.0", "id": request_id, "result": result})


def initialize_result() -> dict[str, Any]:
    result: dict[str, Any] = {
        "protocolVersion": PROTOCOL_VERSION,
        "capabilities": {"tools": {}},
        "serverInfo": {"name": "ManagerOS", "version": APP_VERSION},
    }
    if settings.clerk_frontend_api_url:
        result["oauth"] = {
            "resource_metadata": settings.oauth_resource_metadata_url,
            "authorization_servers": [
                f"{settings.clerk_frontend_api_url}/.well-known/oauth-authorization-server"
            ],
        }
    return result


@router.post("/mcp")
async def mcp_endpoint(
    request: Request,
    authorization: str | None = Header(None),
    x_user_id: str | None = Header(None),
    session: AsyncSession = Depends(get_db),
):
    """Handle one JSON-RPC request.

    Only ``initialize`` and ``tools/list`` may be called without a bearer
    token. Method-level errors are answered with HTTP 200.
    """
    try:
        message = json.loads(await request.body())
    except ValueError:
        return _error(None, -32700, "Parse error", status_code=400)

    if not isinstance(message, dict) or "method" not in message:
        request_id = message.get("id") if isinstance(message, dict) else None
        return _error(request_id, -32600, "Invalid Request - expected a request with method", status_code=400)

    request_id = message.get("id")
    method = message["method"]

    ctx = None
    if method not in UNAUTHENTICATED_METHODS:
        ctx = await resolve_user(session, authorization, x_user_id)
        if ctx is None:
            return _error(
                request_id,
                401,
                "Unauthorized - invalid or missing OAuth token",
                status_code=401,
                headers={
                    "WWW-Authenticate": f'Bearer resource_metadata="{settings.oauth_resource_metadata_url}"'
                },
            )

    if message.get("jsonrpc") != "2.0":
        return _error(request_id, -32600, "Invalid Request", status_code=400)

    if method == "initialize":
        return _result(request_id, initialize_result())
    if method == "tools/list":
        return _result(request_id, {"tools": tool_definitions()})
    if method != "tools/call":
        return _error(request_id, -32601, f"Method not found: {method}")

    if ctx is None:
        return _error(request_id, 401, "Unauthorized - authentication required for tool calls")
    params = message.get("params") or {}
    if not isinstance(params, dict):
        return _error(request_id, -32602, "Invalid params")
    name = params.get("name")
    if not name:
        return _error(request_id, -32602, "Invalid params - tool name is required")
    if not isinstance(name, str) or name not in TOOLS:
        return _error(
            request_id, -32603, f"Unknown tool: {name}", data={"tool": name, "error": "UnknownTool"}
        )

    try:
        output = await call_tool(session, ctx, name, params.get("arguments"))
    except Exception as exc:
        logger.exception("MCP tool %s failed", name)
        await session.rollback()
        return _error(
            request_id, -32603, "Internal error", data={"tool": name, "error": type(exc).__name__}
        )

    text = json.dumps(output, indent=2, default=str)
    return _result(request_id, {"content": [{"type": "text", "text": text}]})


@router.get("/mcp")
async def mcp_get():
    return JSONResponse(status_code=405, content={"detail": "Method not allowed"}, headers={"Allow": "POST, OPTIONS"})


@router.options("/mcp")
async def mcp_options():
    return Response(status_code=204, headers=CORS_HEADERS)


@well_known_router.get("/.well-known/oauth-protected-resource")
async def oauth_protected_resource():
    """OAuth protected-resource metadata for MCP clients."""
    authorization_servers = [settings.clerk_frontend_api_url] if settings.clerk_frontend_api_url else []
    return {
        "resource": f"{settings.manageros_base_url}/api/mcp",
        "authorization_servers": authorization_servers,
        "bearer_methods_supported": ["header"],
    }
