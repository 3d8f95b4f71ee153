"""Tests for the Discord REST helpers."""

from unittest.mock import AsyncMock

import httpx
import pytest

from reddit_feeds.shared.config import Settings
from reddit_feeds.web.admin import discord as discord_module

pytestmark = pytest.mark.asyncio

RAW_CHANNELS = [
    {"id": 3, "name": "announcements", "type": 5, "position": 2},
    {"id": 1, "name": "general", "type": 0, "position": 0},
    {"id": 2, "name": "voice", "type": 2, "position": 1},
    {"id": 4, "name": "category", "type": 4, "position": 3},
]


@pytest.fixture(autouse=True)
def discord_settings(monkeypatch):
    settings = Settings(_env_file=None, discord_bot_token="bot-token", channel_cache_ttl=60)
    monkeypatch.setattr(discord_module, "get_settings", lambda: settings)
    discord_module.clear_channel_cache()
    yield settings
    discord_module.clear_channel_cache()


@pytest.fixture
def request_mock(monkeypatch):
    mock = AsyncMock()
    monkeypatch.setattr(discord_module, "_request", mock)
    return mock


async def test_guild_channels_keeps_text_channels_in_order(request_mock):
    request_mock.return_value = RAW_CHANNELS

    channels = await discord_module.get_guild_channels("1000")

    assert [(ch.id, ch.name) for ch in channels] == [("1", "general"), ("3", "announcements")]
    method, path, headers = request_mock.await_args.args
    assert (method, path) == ("GET", "/guilds/1000/channels")
    assert headers == {"Authorization": "Bot bot-token"}


async def test_guild_channels_are_cached(request_mock):
    request_mock.return_value = RAW_CHANNELS

    await discord_module.get_guild_channels("1000")
    await discord_module.get_guild_channels("1000")

    assert request_mock.await_count == 1

    discord_module.clear_channel_cache()
    await discord_module.get_guild_channels("1000")
    assert request_mock.await_count == 2


async def test_guild_channels_need_bot_token(monkeypatch, request_mock):
    monkeypatch.setattr(discord_module, "get_settings", lambda: Settings(_env_file=None))

    with pytest.raises(discord_module.DiscordAPIError):
        await discord_module.get_guild_channels("1000")

    request_mock.assert_not_awaited()


async def test_manageable_guilds_filters_by_permission(request_mock):
    request_mock.return_value = [
        {"id": 1, "name": "Owned", "owner": True, "permissions": "0"},
        {"id": 2, "name": "Managed", "owner": False, "permissions": str(0x20 | 0x8)},
        {"id": 3, "name": "Member", "owner": False, "permissions": "1024"},
    ]

    guilds = await discord_module.fetch_manageable_guilds("access-token")

    assert guilds == [{"id": "1", "name": "Owned"}, {"id": "2", "name": "Managed"}]


@pytest.fixture
def discord_transport(monkeypatch):
    """Route the module's httpx clients to an in-process handler."""
    responses = []
    real_client = httpx.AsyncClient

    def handler(request):
        return responses.pop(0)

    def client_factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(discord_module.httpx, "AsyncClient", client_factory)
    return responses


async def test_non_json_reply_raises_api_error(discord_transport):
    discord_transport.append(httpx.Response(200, text="<html>gateway hiccup</html>"))

    with pytest.raises(discord_module.DiscordAPIError, match="invalid JSON"):
        await discord_module.get_guild_channels("1000")


async def test_not_found_reply_raises_guild_not_found(discord_transport):
    discord_transport.append(httpx.Response(404, json={"message": "Unknown Guild"}))

    with pytest.raises(discord_module.GuildNotFoundError):
        await discord_module.get_guild_channels("1000")


async def test_channel_without_id_raises_api_error(request_mock):
    request_mock.return_value = [{"name": "general", "type": 0}]

    with pytest.raises(discord_module.DiscordAPIError, match="Unexpected channel payload"):
        await discord_module.get_guild_channels("1000")

    assert "1000" not in discord_module._channel_cache


async def test_malformed_guild_list_raises_api_error(request_mock):
    request_mock.return_value = [{"name": "No id", "owner": True}]

    with pytest.raises(discord_module.DiscordAPIError):
        await discord_module.fetch_manageable_guilds("access-token")


async def test_token_reply_without_token_raises_api_error(request_mock):
    request_mock.return_value = {"error": "invalid_grant"}

    with pytest.raises(discord_module.DiscordAPIError):
        await discord_module.exchange_code_for_token("code")


async def test_expired_cache_entries_are_evicted(monkeypatch, request_mock):
    settings = Settings(_env_file=None, discord_bot_token="bot-token", channel_cache_ttl=0)
    monkeypatch.setattr(discord_module, "get_settings", lambda: settings)
    request_mock.return_value = RAW_CHANNELS

    await discord_module.get_guild_channels("1000")
    await discord_module.get_guild_channels("2000")

    assert "1000" not in discord_module._channel_cache
    assert request_mock.await_count == 2
