"""Starlette application for the Reddit feeds control panel.

Serves the guild control panel under ``/cp/{guild_id}``, Discord login
under ``/auth``, the JSON API under ``/api`` and Prometheus metrics.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import uvicorn
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.sessions import SessionMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response
from starlette.routing import Mount, Route

from reddit_feeds.shared.config import Settings, get_settings
from reddit_feeds.shared.database import close_database, init_database
from reddit_feeds.shared.logging_conf import setup_logging
from reddit_feeds.shared.redis_client import close_redis_client, get_redis_client
from reddit_feeds.web.admin.auth import auth_routes, get_session_user
from reddit_feeds.web.admin.routes import cp_routes
from reddit_feeds.web.admin.templating import templates
from reddit_feeds.web.api.app import create_api
from reddit_feeds.web.audit import AuditLog, write_cp_log_entry
from reddit_feeds.web.crud import SubredditWatchOperations
from reddit_feeds.web.metrics import metrics

logger = logging.getLogger(__name__)


async def index(request: Request) -> Response:
    """List the guilds the logged-in user can manage."""
    if get_session_user(request) is None:
        return RedirectResponse(url="/auth/login", status_code=302)

    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "user": get_session_user(request),
            "guilds": request.session.get("guilds", [])
        }
    )


def create_app(
    settings: Optional[Settings] = None,
    *,
    watch_ops: Optional[SubredditWatchOperations] = None,
    audit_log: Optional[AuditLog] = None,
) -> Starlette:
    """Build the web application.

    Collaborators that are not passed in are created on startup and
    closed on shutdown: a Redis-backed feed store and an audit log
    writing to the database.

    Args:
        settings: Application settings, defaults to the environment
        watch_ops: Feed store operations
        audit_log: Audit log writer

    Returns:
        Starlette: Configured application
    """
    settings = settings or get_settings()
    owns_store = watch_ops is None
    owns_audit_log = audit_log is None
    if audit_log is None:
        audit_log = AuditLog(write_cp_log_entry, maxsize=settings.audit_queue_size)

    api = create_api(settings)

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncGenerator[None, None]:
        if owns_store:
            app.state.watch_ops = SubredditWatchOperations(await get_redis_client())
            api.state.watch_ops = app.state.watch_ops
        if owns_audit_log:
            await init_database()
        app.state.audit_log.start()

        logger.info("Reddit feeds control panel started")
        try:
            yield
        finally:
            await app.state.audit_log.stop()
            if owns_store:
                await close_redis_client()
            if owns_audit_log:
                await close_database()
            logger.info("Reddit feeds control panel stopped")

    app = Starlette(
        debug=settings.is_development,
        routes=[
            Route("/", index, methods=["GET"]),
            Route("/metrics", metrics, methods=["GET"]),
            *auth_routes,
            *cp_routes,
            Mount("/api", app=api),
        ],
        middleware=[
            Middleware(
                SessionMiddleware,
                secret_key=settings.session_secret,
                max_age=settings.session_max_age,
                https_only=settings.is_production,
            ),
        ],
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.watch_ops = watch_ops
    app.state.audit_log = audit_log
    api.state.watch_ops = watch_ops

    return app


def run() -> None:
    """Run the control panel with uvicorn."""
    setup_logging()
    settings = get_settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)
