"""Leadcal API: FastAPI application factory.

The app factory creates a FastAPI instance with:
- CORS middleware (configurable origins)
- One shared ``httpx.AsyncClient`` and authenticated transport per app
- Lifespan handler that closes the shared client on shutdown
- Health endpoint at GET /api/health
- The calendar router under /api/calendar
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from leadcal import __version__
from leadcal.api.middleware import register_error_handlers
from leadcal.api.routers.calendar import router as calendar_router
from leadcal.calendar.factory import build_http_client, build_mapper, build_transport
from leadcal.config import LeadcalConfig, default_config

logger = logging.getLogger(__name__)


def create_app(
    config: LeadcalConfig | None = None,
    *,
    http_client: httpx.AsyncClient | None = None,
    cors_origins: list[str] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Parameters
    ----------
    config:
        Loaded configuration. Defaults to ``default_config()``.
    http_client:
        Shared HTTP client for Google API calls. When omitted the app builds
        one from *config* and closes it on shutdown; a caller-supplied client
        is left open.
    cors_origins:
        Allowed CORS origins. Defaults to ["http://localhost:5173"] for
        local Vite dev server.
    """
    if config is None:
        config = default_config()
    if cors_origins is None:
        cors_origins = ["http://localhost:5173"]

    owns_client = http_client is None
    client = http_client if http_client is not None else build_http_client(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Leadcal API starting (calendar=%s, timezone=%s)",
            config.google.calendar_id,
            config.timezone,
        )
        yield
        if owns_client:
            await client.aclose()

    app = FastAPI(
        title="Leadcal API",
        version=__version__,
        lifespan=lifespan,
    )
    app.router.redirect_slashes = False

    # Set eagerly so the app also works under transports that skip lifespan.
    app.state.config = config
    app.state.transport = build_transport(config, client)
    app.state.mapper = build_mapper(config)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    app.include_router(calendar_router)

    @app.get("/api/health")
    async def health():
        return {"status": "ok"}

    return app
