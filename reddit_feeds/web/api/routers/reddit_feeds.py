"""Read-only feed endpoints used by the feed poller.

The poller looks up every feed watching a subreddit through the
subreddit index, and the guild list mirrors what the control panel shows.
"""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from reddit_feeds.web.api.dependencies import get_db_session, get_watch_ops, verify_api_key
from reddit_feeds.web.api.schemas import (
    CPLogEntryResponse,
    RedditFeedListResponse,
    RedditFeedResponse,
    SubredditWatchersResponse,
)
from reddit_feeds.web.crud import CPLogOperations, SubredditWatchOperations

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_api_key)])


@router.get("/guilds/{guild_id}/reddit-feeds", response_model=RedditFeedListResponse)
async def list_guild_feeds(
    guild_id: str,
    watch_ops: SubredditWatchOperations = Depends(get_watch_ops),
) -> RedditFeedListResponse:
    """Get every feed configured in a guild."""
    items = await watch_ops.get_guild_items(guild_id)
    return RedditFeedListResponse(
        guild_id=guild_id,
        feeds=[RedditFeedResponse.model_validate(item, from_attributes=True) for item in items],
        total=len(items),
    )


@router.get("/subreddits/{subreddit}/watchers", response_model=SubredditWatchersResponse)
async def list_subreddit_watchers(
    subreddit: str,
    watch_ops: SubredditWatchOperations = Depends(get_watch_ops),
) -> SubredditWatchersResponse:
    """Get every feed, across guilds, watching a subreddit."""
    items = await watch_ops.get_subreddit_watchers(subreddit)
    return SubredditWatchersResponse(
        subreddit=subreddit.lower(),
        watchers=[RedditFeedResponse.model_validate(item, from_attributes=True) for item in items],
    )


@router.get("/guilds/{guild_id}/cp-logs", response_model=List[CPLogEntryResponse])
async def list_cp_logs(
    guild_id: str,
    limit: int = Query(default=50, ge=1, le=200),
    session: AsyncSession = Depends(get_db_session),
) -> List[CPLogEntryResponse]:
    """Get the most recent control panel actions in a guild."""
    entries = await CPLogOperations().get_guild_entries(session, guild_id, limit=limit)
    return [CPLogEntryResponse.model_validate(entry) for entry in entries]
