"""Subreddit feed view handlers."""

from __future__ import annotations

import logging

from starlette.requests import Request

from reddit_feeds.web.admin.context import WatchContext, watch_view
from reddit_feeds.web.admin.forms import decode_form, parse_item_id
from reddit_feeds.web.admin.templating import TemplateData, error_alert, success_alert
from reddit_feeds.web.crud import DatabaseOperationError
from reddit_feeds.web.metrics import FEED_MUTATIONS
from reddit_feeds.web.models import SubredditWatchItem

logger = logging.getLogger(__name__)


def find_watch_item(items: list[SubredditWatchItem], item_id: int) -> SubredditWatchItem | None:
    for item in items:
        if item.id == item_id:
            return item
    return None


def next_item_id(items: list[SubredditWatchItem]) -> int:
    return max((item.id for item in items), default=0) + 1


@watch_view
async def reddit_feeds(request: Request, ctx: WatchContext) -> TemplateData:
    """List the guild's subreddit feeds."""
    return ctx.data


@watch_view
async def reddit_feed_create(request: Request, ctx: WatchContext) -> TemplateData:
    """Add a subreddit feed to the guild."""
    data = ctx.data
    form, errors = decode_form(await request.form(), ctx.channels)
    if form is None:
        return data.add_alerts(error_alert("Invalid feed", *errors))

    max_feeds = ctx.settings.max_feeds_per_guild
    if len(ctx.items) >= max_feeds:
        return data.add_alerts(error_alert(f"Max {max_feeds} items allowed"))

    item = SubredditWatchItem(
        id=next_item_id(ctx.items),
        subreddit=form.subreddit.strip(),
        channel=form.channel,
        guild=ctx.guild_id
    )

    try:
        item = await ctx.watch_ops.create_item(item)
    except DatabaseOperationError as e:
        logger.error(f"Failed saving feed for guild {ctx.guild_id}: {e}")
        FEED_MUTATIONS.labels(action="create", outcome="error").inc()
        return data.add_alerts(error_alert("Failed saving item :'("))

    data["feeds"] = [*ctx.items, item]
    data.add_alerts(success_alert(f"Successfully added subreddit feed for /r/{item.subreddit}"))
    FEED_MUTATIONS.labels(action="create", outcome="success").inc()
    logger.info(f"User {ctx.user.id} added feed {item.id} (/r/{item.subreddit}) in guild {ctx.guild_id}")

    ctx.audit_log.submit(ctx.audit_entry(f"Added reddit feed from /r/{form.subreddit}"))
    return data


@watch_view
async def reddit_feed_update(request: Request, ctx: WatchContext) -> TemplateData:
    """Change the channel or subreddit of an existing feed."""
    data = ctx.data
    form, errors = decode_form(await request.form(), ctx.channels)
    if form is None:
        return data.add_alerts(error_alert("Invalid feed", *errors))

    item = find_watch_item(ctx.items, form.id)
    if item is None:
        return data.add_alerts(error_alert("Unknown id"))

    subreddit = form.subreddit.strip()
    sub_is_new = subreddit.lower() != item.subreddit.lower()

    updated = item.model_copy(update={"channel": form.channel})
    try:
        if not sub_is_new:
            await ctx.watch_ops.set_item(updated)
        else:
            updated = await ctx.watch_ops.rename_item(updated, subreddit.lower())
    except DatabaseOperationError as e:
        logger.error(f"Failed updating feed {item.id} for guild {ctx.guild_id}: {e}")
        FEED_MUTATIONS.labels(action="update", outcome="error").inc()
        return data.add_alerts(error_alert("Failed saving item :'("))

    # Applied only once the store accepted the change
    item.channel = updated.channel
    item.subreddit = updated.subreddit

    data.add_alerts(success_alert("Successfully updated reddit feed! :D"))
    FEED_MUTATIONS.labels(action="update", outcome="success").inc()
    logger.info(f"User {ctx.user.id} updated feed {item.id} in guild {ctx.guild_id}")

    await ctx.audit_log.record(ctx.audit_entry(f"Modified a feed to /r/{form.subreddit}"))
    return data


@watch_view
async def reddit_feed_delete(request: Request, ctx: WatchContext) -> TemplateData:
    """Remove a feed from the guild."""
    data = ctx.data

    try:
        item_id = parse_item_id(request.path_params["item"])
    except ValueError as e:
        return data.add_alerts(error_alert("Failed parsing id", e))

    item = find_watch_item(ctx.items, item_id)
    if item is None:
        return data.add_alerts(error_alert("Unknown id"))

    try:
        await ctx.watch_ops.remove_item(item)
    except DatabaseOperationError as e:
        logger.error(f"Failed removing feed {item.id} for guild {ctx.guild_id}: {e}")
        FEED_MUTATIONS.labels(action="delete", outcome="error").inc()
        return data.add_alerts(error_alert("Failed removing item :'("))

    data.add_alerts(success_alert(f"Successfully removed subreddit feed for /r/{item.subreddit} :')"))
    data["feeds"] = [feed for feed in ctx.items if feed.id != item_id]
    FEED_MUTATIONS.labels(action="delete", outcome="success").inc()
    logger.info(f"User {ctx.user.id} removed feed {item.id} in guild {ctx.guild_id}")

    ctx.audit_log.submit(ctx.audit_entry(f"Removed feed from /r/{item.subreddit}"))
    return data
