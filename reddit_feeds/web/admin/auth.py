"""Session authentication for the control panel.

Users log in with Discord OAuth2. The session keeps the user and the
guilds they may manage; control panel views require the active guild to
be one of them.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from functools import wraps
from typing import Awaitable, Callable, Optional
from urllib.parse import urlencode

from starlette.requests import Request
from starlette.responses import RedirectResponse, Response
from starlette.routing import Route

from reddit_feeds.web.admin.discord import (
    DiscordAPIError,
    exchange_code_for_token,
    fetch_manageable_guilds,
    fetch_user,
)
from reddit_feeds.web.admin.templating import render_error

logger = logging.getLogger(__name__)

DISCORD_AUTHORIZE_URL = "https://discord.com/oauth2/authorize"


@dataclass(frozen=True)
class SessionUser:
    id: str
    username: str


def get_session_user(request: Request) -> Optional[SessionUser]:
    data = request.session.get("user")
    if not data:
        return None
    return SessionUser(id=str(data["id"]), username=data.get("username", ""))


def can_manage_guild(request: Request, guild_id: str) -> bool:
    return any(g["id"] == guild_id for g in request.session.get("guilds", []))


def guild_access_required(
    func: Callable[[Request], Awaitable[Response]]
) -> Callable[[Request], Awaitable[Response]]:
    """Require a logged-in user who can manage the guild in the path."""

    @wraps(func)
    async def wrapper(request: Request) -> Response:
        if get_session_user(request) is None:
            query = urlencode({"next": request.url.path})
            return RedirectResponse(url=f"/auth/login?{query}", status_code=302)

        guild_id = request.path_params["guild_id"]
        if not can_manage_guild(request, guild_id):
            return render_error(
                request,
                "You do not have access to this server's control panel.",
                403,
                title="Forbidden"
            )

        return await func(request)

    return wrapper


def _safe_next(url: Optional[str]) -> str:
    if url and url.startswith("/") and not url.startswith("//"):
        return url
    return "/"


async def login(request: Request) -> Response:
    """Redirect to Discord's OAuth2 consent screen."""
    settings = request.app.state.settings
    state = secrets.token_urlsafe(24)
    request.session["oauth_state"] = state
    request.session["next"] = _safe_next(request.query_params.get("next"))

    params = urlencode({
        "client_id": settings.discord_client_id or "",
        "redirect_uri": settings.discord_redirect_uri,
        "response_type": "code",
        "scope": "identify guilds",
        "state": state,
    })
    return RedirectResponse(url=f"{DISCORD_AUTHORIZE_URL}?{params}", status_code=302)


async def callback(request: Request) -> Response:
    """Finish the OAuth2 flow and store the user in the session."""
    code = request.query_params.get("code")
    state = request.query_params.get("state")
    expected_state = request.session.pop("oauth_state", None)

    if not code or not state or state != expected_state:
        return render_error(request, "Invalid login attempt, please try again.", 400, title="Login Failed")

    try:
        access_token = await exchange_code_for_token(code)
        user = await fetch_user(access_token)
        guilds = await fetch_manageable_guilds(access_token)
    except DiscordAPIError as e:
        logger.error(f"Discord login failed: {e}")
        return render_error(request, "Failed logging in with Discord.", 502, title="Login Failed")

    request.session["user"] = {"id": str(user["id"]), "username": user.get("username", "")}
    request.session["guilds"] = guilds
    logger.info(f"User {user['id']} logged in with {len(guilds)} manageable guilds")

    return RedirectResponse(url=_safe_next(request.session.pop("next", None)), status_code=302)


async def logout(request: Request) -> Response:
    request.session.clear()
    return RedirectResponse(url="/", status_code=302)


auth_routes = [
    Route("/auth/login", login, methods=["GET"]),
    Route("/auth/callback", callback, methods=["GET"]),
    Route("/auth/logout", logout, methods=["GET", "POST"]),
]
