"""
FastAPI application factory.
create_app() is the single entry point for building the app.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.asynchronous.mongo_client import AsyncMongoClient

from config import AppSettings
from errors import register_error_handlers
from infrastructure.cache.issue_limiter import IssueRateLimiter
from infrastructure.cache.redis_client import create_redis_client
from infrastructure.email.brevo import BrevoEmailProvider
from infrastructure.http_client import HttpClient
from repositories.attempt_repository import AttemptRepository
from repositories.challenge_repository import ChallengeRepository
from repositories.user_repository import UserRepository
from routes.auth_routes import router as auth_router
from routes.health_routes import router as health_router
from services.attempt_throttle import AttemptThrottle
from services.auth_service import AuthService
from services.challenge_service import ChallengeService
from shared.generators import CodePolicy
from shared.logging import get_logger, setup_logging


def build_auth_service(
    settings: AppSettings, db, redis_client, http_client: HttpClient
) -> AuthService:
    """Wire repositories, throttle, engine and delivery into an AuthService."""
    users = UserRepository(db)
    throttle = AttemptThrottle(
        AttemptRepository(db),
        max_failures=settings.throttle.max_failed_attempts,
        cooldown_seconds=settings.throttle.lockout_cooldown_seconds,
    )
    engine = ChallengeService(
        challenges=ChallengeRepository(db),
        users=users,
        delivery=BrevoEmailProvider(
            settings.email, http_client, app_name=settings.app_name
        ),
        throttle=throttle,
        policy=CodePolicy(
            length=settings.challenge.otp_length,
            alphabet=settings.challenge.otp_alphabet,
            case_sensitive=settings.challenge.otp_case_sensitive,
        ),
        ttl_seconds=settings.challenge.otp_ttl_seconds,
        issue_limiter=IssueRateLimiter(
            redis_client,
            max_issues=settings.challenge.otp_max_issues_per_window,
            window_seconds=settings.challenge.otp_issue_window_seconds,
        ),
    )
    return AuthService(users, engine, throttle, settings.jwt)


async def ensure_indexes(db) -> None:
    await UserRepository(db).ensure_indexes()
    await ChallengeRepository(db).ensure_indexes()
    await AttemptRepository(db).ensure_indexes()


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if settings is None:
        settings = AppSettings()

    setup_logging(settings.logging.log_level, settings.logging.log_format)
    log = get_logger(__name__)

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
            environment=settings.env,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        mongo_client: AsyncMongoClient = AsyncMongoClient(
            settings.db.mongodb_uri, tz_aware=True
        )
        db = mongo_client[settings.db.db_name]
        redis_client = await create_redis_client(settings.redis.redis_uri)
        http_client = HttpClient(timeout=10.0)

        app.state.settings = settings
        app.state.mongo_client = mongo_client
        app.state.db = db
        app.state.redis = redis_client
        app.state.auth_service = build_auth_service(
            settings, db, redis_client, http_client
        )

        await ensure_indexes(db)
        log.info("app_started", env=settings.env, db_name=settings.db.db_name)

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        await http_client.aclose()
        if redis_client is not None:
            await redis_client.aclose()
        await mongo_client.close()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=None if settings.is_production else settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

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
