"""Application factory for FastAPI app.

Centralizes app construction (metadata, store, rate limiter, middleware,
handlers, routers) so tests can build isolated apps with their own store
and limiter.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.adapters.store.base import AbstractUserStore
from app.adapters.store.factory import create_user_store
from app.api.routes import health_router, users_router
from app.core.config import settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import (
    access_log_middleware,
    request_id_middleware,
    security_headers_middleware,
)
from app.core.openapi import apply_openapi_customizations
from app.core.rate_limit import build_rate_limiter, rate_limit_middleware

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create store indexes on startup and release the store on shutdown."""
    store: AbstractUserStore = app.state.user_store
    await store.ensure_indexes()
    logger.info(
        "app.started",
        extra={
            "env": settings.app_env,
            "store": type(store).__name__,
            "rate_limit_enabled": settings.app.rate_limit_enabled,
        },
    )
    try:
        yield
    finally:
        await store.close()
        logger.info("app.stopped")


def create_app(
    *,
    user_store: AbstractUserStore | None = None,
    rate_limiter: AbstractRateLimiter | None = None,
    configure_logs: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        user_store: Store to use; built from settings when omitted.
        rate_limiter: Limiter to use; built from settings when omitted.
        configure_logs: Install the root logging configuration.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    if configure_logs:
        configure_logging(settings.log)

    app = FastAPI(
        title="Referral Signup API",
        description=(
            "Anonymous registration with referral codes and a public, "
            "paginated listing of registered users. Every request is subject "
            "to a per-client fixed-window rate limit."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.user_store = user_store if user_store is not None else create_user_store(settings)
    app.state.rate_limiter = (
        rate_limiter if rate_limiter is not None else build_rate_limiter(settings.app)
    )

    # Middleware: the last registered runs first (outermost)
    app.middleware("http")(rate_limit_middleware)
    app.middleware("http")(security_headers_middleware)
    app.middleware("http")(access_log_middleware)
    app.middleware("http")(request_id_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.app.cors_allow_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["Content-Length", settings.log.request_id_header],
        allow_credentials=False,
        max_age=12 * 60 * 60,
    )

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(users_router)
    app.include_router(health_router)

    # OpenAPI customizations (tags, rate-limit responses)
    apply_openapi_customizations(app)

    return app
