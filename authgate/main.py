"""
FastAPI Main Application
"""

import sys
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncGenerator, Callable, Dict, List, Optional

import uvicorn
from fastapi import FastAPI
from loguru import logger
from starlette.middleware.gzip import GZipMiddleware

from authgate.api import api_router
from authgate.common.body_limit import BodySizeLimitMiddleware
from authgate.common.exceptions import ConfigurationError, register_exception_handlers
from authgate.common.logging import LoggingMiddleware, setup_logging
from authgate.common.rate_limit import (
    FixedWindowRateLimiter,
    RateLimitMiddleware,
    RateLimitRule,
    RedisRateLimitBackend,
)
from authgate.common.response import health_response
from authgate.common.security_headers import SecurityHeadersMiddleware, default_security_headers
from authgate.core.database import Database
from authgate.core.oauth import BaseOAuthProvider, OAuthConfigLoader, build_providers
from authgate.core.redis import RedisClient
from authgate.core.settings import Settings, load_environ, load_settings
from authgate.models.base import utc_now
from authgate.services.session_service import SessionService


def build_rate_limit_rules(settings: Settings) -> List[RateLimitRule]:
    """Limiter rules, evaluated in this order."""
    return [
        RateLimitRule(
            name="global",
            max_requests=settings.rate_limit_global_max,
            window_seconds=settings.rate_limit_global_window_seconds,
            message="Too many requests, try again later",
        ),
        RateLimitRule(
            name="auth",
            max_requests=settings.rate_limit_auth_max,
            window_seconds=settings.rate_limit_auth_window_seconds,
            path_prefix="/auth",
            message="Too many auth attempts, try again later",
        ),
        RateLimitRule(
            name="admin",
            max_requests=settings.rate_limit_admin_max,
            window_seconds=settings.rate_limit_admin_window_seconds,
            path_prefix="/admin",
            message="Too many admin requests, try again later",
        ),
    ]


async def _check_db_connection(database: Database) -> None:
    if await database.ping():
        logger.info("   Database connection check: OK")
    else:
        logger.error("   Database connection check failed")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application Lifecycle"""
    settings: Settings = app.state.settings
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info(f"   OAuth providers: {', '.join(app.state.providers) or 'none configured'}")

    database: Database = app.state.database
    database.connect()
    await database.create_all()
    await _check_db_connection(database)

    async with database.session() as db:
        purged = await SessionService(db, settings, clock=app.state.clock).purge_expired()
    if purged:
        logger.info(f"   Purged {purged} expired sessions")

    redis: RedisClient = app.state.redis
    if settings.redis_url:
        await redis.init()
        if redis.is_available():
            app.state.rate_limiter.use_backend(RedisRateLimitBackend(redis.client))
            logger.info(f"   Redis rate limiting enabled (pool_size={settings.redis_pool_size})")
    else:
        logger.info("   Redis not configured (rate limits are per-process)")

    yield

    await redis.close()
    await database.close()
    logger.info("Application shutdown")


def create_app(
    settings: Optional[Settings] = None,
    *,
    providers: Optional[Dict[str, BaseOAuthProvider]] = None,
    database: Optional[Database] = None,
    clock: Callable[[], datetime] = utc_now,
    rate_limit_clock: Callable[[], float] = time.time,
) -> FastAPI:
    """
    Build the gateway.

    Raises:
        ConfigurationError: settings are invalid (only when loaded here)
    """
    settings = settings or load_settings()
    setup_logging(settings.log_level, settings.log_dir)

    if providers is None:
        loader = OAuthConfigLoader(settings.oauth_config_path, environ=load_environ())
        providers = build_providers(loader, timeout=settings.oauth_http_timeout)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="OAuth authentication gateway",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.providers = providers
    app.state.database = database or Database(settings.database_url, echo=settings.database_echo)
    app.state.redis = RedisClient(settings.redis_url, pool_size=settings.redis_pool_size)
    app.state.clock = clock
    app.state.rate_limiter = FixedWindowRateLimiter(clock=rate_limit_clock)

    # Exception handling
    register_exception_handlers(app)

    # Middleware: the last one added runs first
    app.add_middleware(
        RateLimitMiddleware,
        limiter=app.state.rate_limiter,
        rules=build_rate_limit_rules(settings),
        trusted_proxy_hops=settings.trusted_proxy_hops,
    )
    app.add_middleware(
        SecurityHeadersMiddleware,
        headers=default_security_headers(
            settings.csp_directives,
            settings.permissions_policy,
            hsts_max_age_seconds=settings.hsts_max_age_seconds,
        ),
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(BodySizeLimitMiddleware, max_body_bytes=settings.max_body_bytes)
    app.add_middleware(LoggingMiddleware)

    app.include_router(api_router)

    @app.get("/health", tags=["Root"])
    async def health():
        """Liveness probe"""
        return health_response()

    return app


def run() -> None:
    """Console entry point: validate configuration, then serve."""
    try:
        settings = load_settings()
    except ConfigurationError as e:
        setup_logging()
        logger.error(f"Refusing to start: {e}")
        sys.exit(1)

    app = create_app(settings)
    # X-Forwarded-For is interpreted by the rate limiter, not by uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port, proxy_headers=False)


if __name__ == "__main__":
    run()
