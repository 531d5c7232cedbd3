"""FastAPI dependency injection helpers."""

from __future__ import annotations

import hmac
import uuid
from collections.abc import AsyncGenerator

from fastapi import Depends, Header, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from manageros.auth import UserContext, build_user_context
from manageros.config import settings
from manageros.db.session import get_session
from manageros.integrations.clerk import clerk_client
from manageros.models.db import User


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session."""
    async for session in get_session():
        yield session


def bearer_token(authorization: str | None) -> str | None:
    if not authorization or not authorization.lower().startswith("bearer "):
        return None
    token = authorization[7:].strip()
    return token or None


async def resolve_user(
    session: AsyncSession,
    authorization: str | None,
    dev_user_id: str | None = None,
) -> UserContext | None:
    """Map a Clerk OAuth bearer token (or, in development, ``X-User-Id``) to a user."""
    user = None
    if dev_user_id and settings.is_development:
        try:
            user = await session.get(User, uuid.UUID(dev_user_id))
        except ValueError:
            user = None

    token = bearer_token(authorization)
    if user is None and token:
        info = await clerk_client.validate_token(token)
        if info and info.get("sub"):
            result = await session.execute(select(User).where(User.clerk_user_id == info["sub"]))
            user = result.scalar_one_or_none()

    if user is None:
        return None
    return await build_user_context(session, user)


async def get_current_user(
    authorization: str | None = Header(None),
    x_user_id: str | None = Header(None),
    session: AsyncSession = Depends(get_db),
) -> UserContext:
    """Authenticate the request.

    In development mode an ``X-User-Id`` header identifies the user directly.
    """
    ctx = await resolve_user(session, authorization, x_user_id)
    if ctx is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return ctx


async def verify_cron_secret(authorization: str | None = Header(None)) -> None:
    """Require ``Authorization: Bearer <CRON_SECRET>``."""
    token = bearer_token(authorization)
    if not settings.cron_secret or not token or not hmac.compare_digest(token, settings.cron_secret):
        raise HTTPException(status_code=401, detail="Unauthorized")
