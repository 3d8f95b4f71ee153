"""
Fixtures and test doubles for the Pytest suite.
"""

import json
import os
from base64 import b64encode
from typing import Dict, List, Optional

import pytest
from itsdangerous import TimestampSigner
from starlette.testclient import TestClient

# Keep a developer's .env from leaking into the tests
os.environ.setdefault("ENVIRONMENT", "test")

from reddit_feeds.shared.config import Settings
from reddit_feeds.web.admin import context as context_module
from reddit_feeds.web.admin.discord import GuildChannel
from reddit_feeds.web.app import create_app
from reddit_feeds.web.audit import AuditEntry, AuditLog
from reddit_feeds.web.crud import StoreOperationError
from reddit_feeds.web.models import SubredditWatchItem

SESSION_SECRET = "test-session-secret"
API_KEY = "test-api-key"
GUILD_ID = "1000"
OTHER_GUILD_ID = "2000"
USER = {"id": "42", "username": "modmin"}
CHANNELS = [
    GuildChannel(id="c1", name="general", type=0),
    GuildChannel(id="c2", name="memes", type=0),
]


class FakeWatchOps:
    """In-memory stand-in for SubredditWatchOperations.

    Operations named in ``failing`` raise StoreOperationError.
    """

    def __init__(self):
        self.guilds: Dict[str, List[SubredditWatchItem]] = {}
        self.failing: set = set()
        self.calls: List[str] = []

    def seed(self, *items: SubredditWatchItem) -> None:
        for item in items:
            self.guilds.setdefault(item.guild, []).append(item.model_copy())

    def stored(self, guild_id: str = GUILD_ID) -> List[SubredditWatchItem]:
        return self.guilds.get(guild_id, [])

    def find(self, item_id: int, guild_id: str = GUILD_ID) -> Optional[SubredditWatchItem]:
        return next((i for i in self.stored(guild_id) if i.id == item_id), None)

    def _enter(self, op: str) -> None:
        self.calls.append(op)
        if op in self.failing:
            raise StoreOperationError(f"{op} failed")

    def _replace(self, item: SubredditWatchItem) -> None:
        items = self.guilds.setdefault(item.guild, [])
        for index, existing in enumerate(items):
            if existing.id == item.id:
                items[index] = item.model_copy()
                return
        items.append(item.model_copy())

    async def get_guild_items(self, guild_id: str) -> List[SubredditWatchItem]:
        self._enter("get_guild_items")
        return [item.model_copy() for item in self.stored(guild_id)]

    async def get_subreddit_watchers(self, subreddit: str) -> List[SubredditWatchItem]:
        self._enter("get_subreddit_watchers")
        return [
            item.model_copy()
            for items in self.guilds.values()
            for item in items
            if item.subreddit.lower() == subreddit.lower()
        ]

    async def create_item(self, item: SubredditWatchItem) -> SubredditWatchItem:
        self._enter("create_item")
        self._replace(item)
        return item

    async def set_item(self, item: SubredditWatchItem) -> None:
        self._enter("set_item")
        self._replace(item)

    async def rename_item(self, item: SubredditWatchItem, subreddit: str) -> SubredditWatchItem:
        self._enter("rename_item")
        renamed = item.model_copy(update={"subreddit": subreddit})
        self._replace(renamed)
        return renamed

    async def remove_item(self, item: SubredditWatchItem) -> None:
        self._enter("remove_item")
        self.guilds[item.guild] = [i for i in self.stored(item.guild) if i.id != item.id]


class RecordingSink:
    """Audit sink that keeps entries in memory."""

    def __init__(self):
        self.entries: List[AuditEntry] = []
        self.fail = False

    async def __call__(self, entry: AuditEntry) -> None:
        if self.fail:
            raise RuntimeError("audit store down")
        self.entries.append(entry)


def session_cookie(data: dict, secret: str = SESSION_SECRET) -> str:
    """Sign session data the way Starlette's SessionMiddleware does."""
    payload = b64encode(json.dumps(data).encode("utf-8"))
    return TimestampSigner(secret).sign(payload).decode("utf-8")


def item(item_id: int, subreddit: str, channel: str = "c1", guild: str = GUILD_ID) -> SubredditWatchItem:
    return SubredditWatchItem(id=item_id, subreddit=subreddit, channel=channel, guild=guild)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        environment="test",
        session_secret=SESSION_SECRET,
        api_key=API_KEY,
        max_feeds_per_guild=25,
    )


@pytest.fixture
def store() -> FakeWatchOps:
    return FakeWatchOps()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def channels(monkeypatch):
    """Serve a fixed channel list instead of calling Discord."""
    calls = []

    async def fake_get_guild_channels(guild_id: str):
        calls.append(guild_id)
        return list(CHANNELS)

    monkeypatch.setattr(context_module, "get_guild_channels", fake_get_guild_channels)
    return calls


@pytest.fixture
def app(settings, store, sink, channels):
    return create_app(settings, watch_ops=store, audit_log=AuditLog(sink, maxsize=10))


@pytest.fixture
def client(app):
    """Client logged in as a user who manages GUILD_ID."""
    cookie = session_cookie({
        "user": USER,
        "guilds": [{"id": GUILD_ID, "name": "Test Guild"}],
    })
    with TestClient(app, cookies={"session": cookie}) as test_client:
        yield test_client


@pytest.fixture
def anon_client(app):
    with TestClient(app) as test_client:
        yield test_client
