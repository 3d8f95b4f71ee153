"""Per-request context for the subreddit feed views."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import wraps
from typing import Awaitable, Callable, List

from starlette.requests import Request
from starlette.responses import Response

from reddit_feeds.shared.config import Settings
from reddit_feeds.web.admin.auth import SessionUser, get_session_user, guild_access_required
from reddit_feeds.web.admin.discord import DiscordAPIError, GuildChannel, get_guild_channels
from reddit_feeds.web.admin.templating import TemplateData, render_error, templates
from reddit_feeds.web.audit import AuditEntry, AuditLog
from reddit_feeds.web.crud import DatabaseOperationError, SubredditWatchOperations
from reddit_feeds.web.models import SubredditWatchItem

logger = logging.getLogger(__name__)

FEEDS_TEMPLATE = "reddit_feeds.html"


@dataclass
class WatchContext:
    """Snapshot of one guild's feed configuration for a single request."""

    guild_id: str
    user: SessionUser
    channels: List[GuildChannel]
    items: List[SubredditWatchItem]
    data: TemplateData
    watch_ops: SubredditWatchOperations
    audit_log: AuditLog
    settings: Settings

    def audit_entry(self, action: str) -> AuditEntry:
        return AuditEntry(
            guild_id=self.guild_id,
            user_id=self.user.id,
            username=self.user.username,
            action=action
        )


async def load_watch_context(request: Request) -> WatchContext:
    """Load the active guild's channels and feed list.

    Raises:
        DiscordAPIError: If the guild's channels cannot be fetched
        DatabaseOperationError: If the feed list cannot be read
    """
    guild_id = request.path_params["guild_id"]
    state = request.app.state

    channels = await get_guild_channels(guild_id)
    items = await state.watch_ops.get_guild_items(guild_id)

    data = TemplateData(
        guild_id=guild_id,
        visible_url=f"/cp/{guild_id}/reddit/",
        channels=channels,
        max_feeds=state.settings.max_feeds_per_guild,
        feeds=items,
    )
    return WatchContext(
        guild_id=guild_id,
        user=get_session_user(request),
        channels=channels,
        items=items,
        data=data,
        watch_ops=state.watch_ops,
        audit_log=state.audit_log,
        settings=state.settings
    )


WatchHandler = Callable[[Request, WatchContext], Awaitable[TemplateData]]


def watch_view(handler: WatchHandler) -> Callable[[Request], Awaitable[Response]]:
    """Turn a feed handler into a guild-scoped endpoint rendering the feeds page.

    The feed list is loaded before the handler runs; if that fails the
    error page is rendered and the handler is skipped.
    """

    @guild_access_required
    @wraps(handler)
    async def endpoint(request: Request) -> Response:
        try:
            ctx = await load_watch_context(request)
        except (DiscordAPIError, DatabaseOperationError) as e:
            logger.error(f"Failed loading feed config for guild {request.path_params['guild_id']}: {e}")
            support_url = request.app.state.settings.support_server_url
            return render_error(
                request,
                f"Failed retrieving config, message support in the support server ({support_url})",
                500
            )

        data = await handler(request, ctx)
        return templates.TemplateResponse(request, FEEDS_TEMPLATE, data)

    return endpoint
