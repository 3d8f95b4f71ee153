"""Pydantic schemas for the Reddit feeds API."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str = Field(..., description="Human readable error message")
    type: str = Field(..., description="Error type identifier")
    timestamp: datetime
    request_id: Optional[str] = None


class RedditFeedResponse(BaseModel):
    """A subreddit feed as seen by the feed poller."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    subreddit: str
    channel: str
    guild: str


class RedditFeedListResponse(BaseModel):
    guild_id: str
    feeds: List[RedditFeedResponse]
    total: int


class SubredditWatchersResponse(BaseModel):
    subreddit: str
    watchers: List[RedditFeedResponse]


class CPLogEntryResponse(BaseModel):
    """A control panel audit log entry."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    guild_id: str
    user_id: str
    username: str
    action: str
    created_at: datetime
