"""Shared Redis connection for the control panel."""

from __future__ import annotations

import logging
from typing import Optional

import redis.asyncio as redis

from reddit_feeds.shared.config import get_settings

logger = logging.getLogger(__name__)

_redis_client: Optional[redis.Redis] = None


async def get_redis_client() -> redis.Redis:
    """Get the shared Redis client, creating it on first use.

    Returns:
        redis.Redis: Client with string decoding enabled
    """
    global _redis_client

    if _redis_client is None:
        settings = get_settings()
        _redis_client = redis.from_url(settings.redis_url, decode_responses=True)
        logger.info("Redis client initialized")

    return _redis_client


async def close_redis_client() -> None:
    """Close the shared Redis client if it was opened."""
    global _redis_client

    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
        logger.info("Redis client closed")
