"""FastAPI dependencies for the Reddit feeds API."""

from __future__ import annotations

import secrets
from typing import AsyncGenerator

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from reddit_feeds.shared.config import Settings
from reddit_feeds.shared.database import get_db_session_context
from reddit_feeds.web.crud import SubredditWatchOperations


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_watch_ops(request: Request) -> SubredditWatchOperations:
    return request.app.state.watch_ops


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    async with get_db_session_context() as session:
        yield session


async def verify_api_key(
    x_api_key: str | None = Header(default=None),
    settings: Settings = Depends(get_app_settings),
) -> str:
    """Check the ``X-API-Key`` header against the configured key.

    Raises:
        HTTPException: 401 if the key is missing, wrong or not configured
    """
    if not settings.api_key or not x_api_key or not secrets.compare_digest(x_api_key, settings.api_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
        )
    return x_api_key
