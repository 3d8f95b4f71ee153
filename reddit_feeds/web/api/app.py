"""FastAPI application for the Reddit feeds API.

Mounted under ``/api`` by the web application. Storage collaborators are
shared with the control panel through ``app.state``.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from reddit_feeds import __version__
from reddit_feeds.shared.config import Settings
from reddit_feeds.web.api.routers.reddit_feeds import router as reddit_feeds_router
from reddit_feeds.web.api.schemas import ErrorResponse
from reddit_feeds.web.crud import DatabaseOperationError

logger = logging.getLogger(__name__)


def create_api(settings: Settings) -> FastAPI:
    """Build the API application.

    The feed store is attached to ``api.state.watch_ops`` by the caller.

    Args:
        settings: Application settings

    Returns:
        FastAPI: Configured API application
    """
    docs_url = "/docs" if settings.is_development else None
    api = FastAPI(
        title="Reddit Feeds API",
        description="Read access to guild subreddit feeds and control panel logs",
        version=__version__,
        docs_url=docs_url,
        redoc_url=None,
        openapi_url="/openapi.json" if docs_url else None,
    )
    api.state.settings = settings

    @api.middleware("http")
    async def add_request_id_middleware(request: Request, call_next):
        """Add request ID to request state for tracking."""
        request_id = request.headers.get("x-request-id", str(uuid.uuid4()))
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["x-request-id"] = request_id
        return response

    @api.exception_handler(DatabaseOperationError)
    async def database_exception_handler(request: Request, exc: DatabaseOperationError) -> JSONResponse:
        request_id = getattr(request.state, "request_id", None)
        logger.error(
            f"Storage operation error: {exc}",
            extra={"request_id": request_id, "url": str(request.url), "method": request.method},
        )

        # Don't expose storage errors outside development
        if settings.verbose_errors_enabled and settings.is_development:
            detail = f"Storage error: {exc}"
        else:
            detail = "Internal server error"

        response = ErrorResponse(
            detail=detail,
            type="database_error",
            timestamp=datetime.now(timezone.utc),
            request_id=request_id,
        )
        return JSONResponse(status_code=500, content=response.model_dump(mode="json"))

    api.include_router(reddit_feeds_router, tags=["Reddit Feeds"])

    @api.get("/health", tags=["Health"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint for monitoring."""
        return {"status": "healthy", "version": __version__}

    return api
