"""
FastAPI application factory.
create_app() is the single entry point for building the app.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx
import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import AppSettings
from errors import register_error_handlers
from infrastructure.attempts.memory import InMemoryAttemptCounter
from infrastructure.attempts.redis_counter import RedisAttemptCounter
from infrastructure.database import create_engine, create_session_factory, create_tables
from infrastructure.email.resend import ResendEmailProvider
from infrastructure.redis_client import create_redis_client
from middleware.request_logging import RequestLoggingMiddleware
from middleware.session import SessionMiddleware
from routes.auth_routes import router as auth_router
from routes.health_routes import router as health_router
from services.token_service import TokenService
from shared.logging import get_logger, setup_logging


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if settings is None:
        settings = AppSettings()

    setup_logging(
        log_level=settings.logging.log_level,
        log_format=settings.logging.log_format,
        env=settings.env,
    )
    log = get_logger(__name__)

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            environment=settings.env,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
        )

    # Fails fast on a missing secret rather than at the first login
    token_service = TokenService(settings.session.jwt_secret)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        engine = create_engine(settings.db)
        if settings.db.database_auto_create:
            await create_tables(engine)
        app.state.engine = engine
        app.state.session_factory = create_session_factory(engine)
        app.state.settings = settings
        app.state.token_service = token_service

        # Redis is optional; without it failed attempts are counted in memory
        redis_client = await create_redis_client(settings.redis.redis_uri)
        app.state.redis = redis_client
        if redis_client is not None:
            app.state.attempt_counter = RedisAttemptCounter(redis_client)
        else:
            app.state.attempt_counter = InMemoryAttemptCounter()

        http_client = httpx.AsyncClient(timeout=settings.email.email_timeout_seconds)
        app.state.http_client = http_client
        app.state.email_provider = ResendEmailProvider(
            settings.email, http_client, app_name=settings.app_name
        )

        log.info(
            "app_started",
            env=settings.env,
            attempt_counter=type(app.state.attempt_counter).__name__,
        )

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        await http_client.aclose()
        if redis_client is not None:
            await redis_client.aclose()
        await engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )
    # Available before startup so tests can swap dependencies early
    app.state.settings = settings
    app.state.token_service = token_service

    # Added last-to-first: CORS wraps request logging, which wraps sessions
    app.add_middleware(
        SessionMiddleware,
        login_path=settings.login_path,
        cookie_secure=settings.session.cookie_secure,
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(auth_router)

    return app
