"""Discord REST helpers for the control panel."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

import httpx

from reddit_feeds.shared.config import get_settings

logger = logging.getLogger(__name__)

# Channel types that can receive feed posts
TEXT_CHANNEL_TYPES = (0, 5)  # GUILD_TEXT and GUILD_ANNOUNCEMENT

MANAGE_GUILD = 0x20

_channel_cache: Dict[str, Tuple[float, List["GuildChannel"]]] = {}


class DiscordAPIError(Exception):
    """Raised when a Discord API call fails."""
    pass


class GuildNotFoundError(DiscordAPIError):
    """Raised when the bot is not in the guild or it does not exist."""
    pass


@dataclass
class GuildChannel:
    id: str
    name: str
    type: int
    position: int = 0


async def _request(method: str, path: str, headers: Dict[str, str], **kwargs) -> Any:
    settings = get_settings()
    url = f"{settings.discord_api_base}{path}"
    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.request(method, url, headers=headers, **kwargs)
    except httpx.HTTPError as e:
        raise DiscordAPIError(f"Request to {path} failed: {e}") from e

    if response.status_code == 404:
        raise GuildNotFoundError(f"Discord resource not found: {path}")
    if response.status_code >= 400:
        raise DiscordAPIError(f"Discord API returned {response.status_code} for {path}")

    try:
        return response.json()
    except ValueError as e:
        raise DiscordAPIError(f"Discord API returned invalid JSON for {path}: {e}") from e


def _bot_headers() -> Dict[str, str]:
    settings = get_settings()
    if not settings.discord_bot_token:
        raise DiscordAPIError("Discord bot token is not configured")
    return {"Authorization": f"Bot {settings.discord_bot_token}"}


async def get_guild_channels(guild_id: str) -> List[GuildChannel]:
    """Get the text channels of a guild, cached for a short time.

    Raises:
        GuildNotFoundError: If the bot cannot see the guild
        DiscordAPIError: If the request fails
    """
    settings = get_settings()
    now = time.monotonic()
    cached = _channel_cache.get(guild_id)
    if cached and cached[0] > now:
        return cached[1]
    _evict_expired(now)

    data = await _request("GET", f"/guilds/{guild_id}/channels", _bot_headers())
    try:
        channels = sorted(
            (
                GuildChannel(
                    id=str(ch["id"]),
                    name=ch.get("name", ""),
                    type=ch.get("type", 0),
                    position=ch.get("position", 0)
                )
                for ch in data
                if ch.get("type") in TEXT_CHANNEL_TYPES
            ),
            key=lambda ch: ch.position
        )
    except (KeyError, TypeError, AttributeError) as e:
        raise DiscordAPIError(f"Unexpected channel payload for guild {guild_id}: {e}") from e

    _channel_cache[guild_id] = (now + settings.channel_cache_ttl, channels)
    return channels


def _evict_expired(now: float) -> None:
    for guild_id in [g for g, (expires, _) in _channel_cache.items() if expires <= now]:
        del _channel_cache[guild_id]


def clear_channel_cache() -> None:
    _channel_cache.clear()


async def exchange_code_for_token(code: str) -> str:
    """Exchange an OAuth2 authorization code for a user access token."""
    settings = get_settings()
    data = await _request(
        "POST",
        "/oauth2/token",
        {"Content-Type": "application/x-www-form-urlencoded"},
        data={
            "client_id": settings.discord_client_id,
            "client_secret": settings.discord_client_secret,
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": settings.discord_redirect_uri,
        },
    )
    try:
        return data["access_token"]
    except (KeyError, TypeError) as e:
        raise DiscordAPIError(f"Token response without access token: {e}") from e


async def fetch_user(access_token: str) -> Dict[str, Any]:
    return await _request("GET", "/users/@me", {"Authorization": f"Bearer {access_token}"})


async def fetch_manageable_guilds(access_token: str) -> List[Dict[str, str]]:
    """Get the guilds the user owns or has Manage Server permission in."""
    guilds = await _request(
        "GET", "/users/@me/guilds", {"Authorization": f"Bearer {access_token}"}
    )
    manageable = []
    try:
        for guild in guilds:
            permissions = int(guild.get("permissions", 0))
            if guild.get("owner") or permissions & MANAGE_GUILD:
                manageable.append({"id": str(guild["id"]), "name": guild.get("name", "")})
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise DiscordAPIError(f"Unexpected guild list payload: {e}") from e
    return manageable
