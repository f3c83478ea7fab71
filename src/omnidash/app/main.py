"""
Omnidash FastAPI Application

Read API and real-time socket for the agent observability dashboard.

Features:
- Aggregated agent metrics, actions, routing decisions, transformations and
  performance samples (/api/intelligence/...)
- Live -> historical -> synthetic fallback on every read
- Request/response bridge to the intelligence worker (/api/intelligence/analysis/patterns)
- WebSocket fanout of aggregator notifications (/ws)
- Service health checks (/api/intelligence/services/health)
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from omnidash import __version__
from omnidash.app.components import (
    AppComponents,
    build_components,
    start_components,
    stop_components,
)
from omnidash.app.routes import router, socket_router
from omnidash.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    components: AppComponents | None = None,
) -> FastAPI:
    """Build the application.

    Args:
        settings: Feature flags (default: the process-wide settings).
        components: Pre-built components. When omitted they are built from
            settings at startup.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Starting Omnidash application...")

        errors = settings.validate_required_services()
        for error in errors:
            logger.warning("Configuration problem: %s", error)

        app.state.components = components or build_components(settings)
        await start_components(app.state.components)

        logger.info(
            "Application started successfully",
            extra={"version": app.version},
        )

        yield

        logger.info("Shutting down Omnidash application...")
        await stop_components(app.state.components)
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Omnidash",
        description="Agent observability dashboard backend",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)
    app.include_router(socket_router)

    @app.exception_handler(Exception)
    async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled error serving request",
            extra={"path": request.url.path, "error": str(exc)},
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal Server Error",
                "message": str(exc) or "An unexpected error occurred",
            },
        )

    return app
