"""Storage operations for the Reddit feeds control panel.

Subreddit watch items live in Redis: one hash per guild keyed by item id,
plus one index hash per subreddit keyed by ``<guild>:<id>`` that the feed
poller reads. Control panel log entries live in SQL and are written
through SQLAlchemy.
"""

from __future__ import annotations

import logging
from typing import List

import redis.asyncio as redis
from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from reddit_feeds.web.models import CPLogEntry, SubredditWatchItem

logger = logging.getLogger(__name__)

GUILD_KEY_PREFIX = "guild_subreddit_watch:"
SUBREDDIT_KEY_PREFIX = "global_subreddit_watch:"

# Upper bound on ids probed when concurrent creates collide
MAX_ID_CLAIM_ATTEMPTS = 50


class DatabaseOperationError(Exception):
    """Base exception for storage operations."""
    pass


class StoreOperationError(DatabaseOperationError):
    """Raised when the key-value store rejects or fails an operation."""
    pass


class ConflictError(DatabaseOperationError):
    """Raised when a write collides with concurrent writes."""
    pass


def guild_key(guild_id: str) -> str:
    return GUILD_KEY_PREFIX + guild_id


def subreddit_key(subreddit: str) -> str:
    return SUBREDDIT_KEY_PREFIX + subreddit.lower()


class SubredditWatchOperations:
    """Redis operations for a guild's subreddit watch list.

    Every write keeps the guild hash and the subreddit index in step by
    issuing both commands inside one MULTI/EXEC transaction.
    """

    def __init__(self, redis_client: redis.Redis):
        self.redis = redis_client

    async def get_guild_items(self, guild_id: str) -> List[SubredditWatchItem]:
        """Get all watch items of a guild.

        Args:
            guild_id: Discord guild snowflake ID

        Returns:
            List[SubredditWatchItem]: Items in the order the store returns them

        Raises:
            StoreOperationError: If the read fails or a payload is malformed
        """
        try:
            raw_items = await self.redis.hgetall(guild_key(guild_id))
            return [
                SubredditWatchItem.model_validate_json(raw)
                for raw in raw_items.values()
            ]
        except Exception as e:
            raise StoreOperationError(f"Failed to get watch items for guild {guild_id}: {e}") from e

    async def get_subreddit_watchers(self, subreddit: str) -> List[SubredditWatchItem]:
        """Get every watch item, across guilds, following a subreddit.

        Raises:
            StoreOperationError: If the read fails or a payload is malformed
        """
        try:
            raw_items = await self.redis.hgetall(subreddit_key(subreddit))
            return [
                SubredditWatchItem.model_validate_json(raw)
                for raw in raw_items.values()
            ]
        except Exception as e:
            raise StoreOperationError(f"Failed to get watchers of /r/{subreddit}: {e}") from e

    async def create_item(self, item: SubredditWatchItem) -> SubredditWatchItem:
        """Persist a new item, claiming its id atomically.

        ``item.id`` is the preferred id. If another request claimed it in
        the meantime the next free id is taken instead, and ``item.id`` is
        updated to the id actually stored.

        Args:
            item: Item to create

        Returns:
            SubredditWatchItem: The stored item

        Raises:
            ConflictError: If no free id was found
            StoreOperationError: If the write fails
        """
        key = guild_key(item.guild)
        candidate = item.id

        try:
            for _ in range(MAX_ID_CLAIM_ATTEMPTS):
                payload = item.model_copy(update={"id": candidate}).model_dump_json()
                if await self.redis.hsetnx(key, str(candidate), payload):
                    break
                logger.info(f"Watch item id {candidate} already taken in guild {item.guild}, trying next")
                candidate += 1
            else:
                raise ConflictError(f"Could not claim a watch item id in guild {item.guild}")

            item.id = candidate
            try:
                await self.redis.hset(subreddit_key(item.subreddit), item.index_field, payload)
            except Exception:
                await self.redis.hdel(key, str(candidate))
                raise

            return item

        except ConflictError:
            raise
        except Exception as e:
            raise StoreOperationError(f"Failed to create watch item: {e}") from e

    async def set_item(self, item: SubredditWatchItem) -> None:
        """Overwrite an existing item in place.

        Raises:
            StoreOperationError: If the write fails
        """
        payload = item.model_dump_json()
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.hset(guild_key(item.guild), str(item.id), payload)
                pipe.hset(subreddit_key(item.subreddit), item.index_field, payload)
                await pipe.execute()
        except Exception as e:
            raise StoreOperationError(f"Failed to save watch item {item.id}: {e}") from e

    async def rename_item(
        self,
        item: SubredditWatchItem,
        subreddit: str
    ) -> SubredditWatchItem:
        """Move an item to another subreddit in one transaction.

        The item is written under its new subreddit and dropped from the
        old subreddit's index together, so an interrupted rename never
        leaves the guild without the item. ``item`` itself is not changed.

        Args:
            item: Item as currently stored
            subreddit: New subreddit name

        Returns:
            SubredditWatchItem: Copy of the item as now stored

        Raises:
            StoreOperationError: If the transaction fails
        """
        renamed = item.model_copy(update={"subreddit": subreddit})
        payload = renamed.model_dump_json()
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.hset(guild_key(item.guild), str(item.id), payload)
                if subreddit_key(item.subreddit) != subreddit_key(subreddit):
                    pipe.hdel(subreddit_key(item.subreddit), item.index_field)
                pipe.hset(subreddit_key(subreddit), renamed.index_field, payload)
                await pipe.execute()
        except Exception as e:
            raise StoreOperationError(f"Failed to rename watch item {item.id}: {e}") from e

        return renamed

    async def remove_item(self, item: SubredditWatchItem) -> None:
        """Delete an item from the guild hash and the subreddit index.

        Raises:
            StoreOperationError: If the delete fails
        """
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.hdel(guild_key(item.guild), str(item.id))
                pipe.hdel(subreddit_key(item.subreddit), item.index_field)
                await pipe.execute()
        except Exception as e:
            raise StoreOperationError(f"Failed to remove watch item {item.id}: {e}") from e


class CPLogOperations:
    """Database operations for the control panel audit log."""

    async def add_entry(
        self,
        session: AsyncSession,
        guild_id: str,
        user_id: str,
        username: str,
        action: str
    ) -> CPLogEntry:
        """Append an audit log entry.

        Raises:
            DatabaseOperationError: If the insert fails
        """
        try:
            entry = CPLogEntry(
                guild_id=guild_id,
                user_id=user_id,
                username=username,
                action=action[:500]
            )
            session.add(entry)
            await session.flush()
            return entry
        except Exception as e:
            raise DatabaseOperationError(f"Failed to add control panel log entry: {e}") from e

    async def get_guild_entries(
        self,
        session: AsyncSession,
        guild_id: str,
        limit: int = 50
    ) -> List[CPLogEntry]:
        """Get the most recent audit log entries of a guild, newest first.

        Raises:
            DatabaseOperationError: If the query fails
        """
        try:
            stmt = (
                select(CPLogEntry)
                .where(CPLogEntry.guild_id == guild_id)
                .order_by(desc(CPLogEntry.created_at))
                .limit(limit)
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())
        except Exception as e:
            raise DatabaseOperationError(f"Failed to get control panel log entries: {e}") from e
