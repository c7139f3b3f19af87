"""FastAPI application entry-point.

Assembles routers, middleware, exception handlers, and lifecycle hooks.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from genhub.adapters.inbound.rest.routers import (
    cron_router,
    generate_router,
    health_router,
    jobs_router,
    providers_router,
)
from genhub.config import Settings, get_settings
from genhub.dependencies import Container, build_container
from genhub.shared.errors import register_exception_handlers
from genhub.shared.middleware import (
    LoggingMiddleware,
    MetricsMiddleware,
    RequestIdMiddleware,
)
from genhub.shared.observability import configure_logging

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifecycle — startup & shutdown hooks."""
    settings: Settings = app.state.settings
    container: Container = app.state.container
    configure_logging(
        log_level=settings.log_level,
        json_logs=settings.is_production,
    )
    logger.info(
        "application_starting",
        env=settings.app_env.value,
        providers=sorted(container.clients),
        queue_configured=container.queue is not None,
    )

    yield

    await container.aclose()
    logger.info("application_shutdown")


def create_app(settings: Settings | None = None, container: Container | None = None) -> FastAPI:
    """Application factory — creates a fully configured FastAPI instance."""
    settings = settings or (container.settings if container else get_settings())
    container = container or build_container(settings)

    app = FastAPI(
        title="genhub",
        description=(
            "Multi-provider AI generation orchestrator. Routes text, image, video "
            "and speech requests across external providers with health-aware "
            "fallback, and queues long-running generation jobs."
        ),
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.container = container

    # ── Middleware (order matters: first added = outermost) ───
    cors_origins = settings.cors_origins
    allow_all_origins = "*" in cors_origins

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[] if allow_all_origins else cors_origins,
        allow_origin_regex=".*" if allow_all_origins else None,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    # ── Exception handlers ───────────────────────────────────
    register_exception_handlers(app)

    # ── REST routers (versioned) ─────────────────────────────
    api_v1 = "/api/v1"
    app.include_router(health_router, prefix=api_v1)
    app.include_router(providers_router, prefix=api_v1)
    app.include_router(generate_router, prefix=api_v1)
    app.include_router(jobs_router, prefix=api_v1)
    app.include_router(cron_router, prefix=api_v1)

    return app


def run() -> None:
    """Serve the API with uvicorn using the configured host and port."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "genhub.main:create_app",
        factory=True,
        host=settings.app_host,
        port=settings.app_port,
        log_level=settings.log_level.lower(),
    )
