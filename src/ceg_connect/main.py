"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ceg_connect.api.auth import router as auth_router
from ceg_connect.api.communities import router as communities_router
from ceg_connect.api.deps import AppServices
from ceg_connect.api.groups import router as groups_router
from ceg_connect.api.users import router as users_router
from ceg_connect.config import Settings, settings
from ceg_connect.database.engine import async_session_factory, init_db
from ceg_connect.exceptions import Mismatch, OTPError
from ceg_connect.services.challenge_store import (
    ChallengeStore,
    InMemoryChallengeStore,
    RedisChallengeStore,
)
from ceg_connect.services.email_service import EmailService, LogOnlyNotifier
from ceg_connect.services.identity import LocalIdentityIssuer
from ceg_connect.services.otp_manager import OTPSessionManager
from ceg_connect.services.sweeper import ChallengeSweeper

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def build_services(config: Settings = settings) -> AppServices:
    """Wire the production collaborators from *config*.

    The store, manager and sweeper share one clock so every expiry decision
    uses the same time source.
    """
    clock = _utcnow
    store: ChallengeStore
    if config.redis_url:
        store = RedisChallengeStore.from_url(
            config.redis_url, key_prefix=config.redis_key_prefix, clock=clock
        )
        logger.info("Using Redis challenge store")
    else:
        store = InMemoryChallengeStore()

    notifier = EmailService() if config.smtp_username else LogOnlyNotifier()
    issuer = LocalIdentityIssuer(
        async_session_factory,
        config.jwt_secret,
        algorithm=config.jwt_algorithm,
        ttl_seconds=config.jwt_ttl_seconds,
    )
    manager = OTPSessionManager(
        store,
        issuer,
        notifier,
        ttl_seconds=config.otp_ttl_seconds,
        max_attempts=config.otp_max_attempts,
        delivery_mode=config.otp_delivery_mode,
        clock=clock,
    )
    return AppServices(
        session_factory=async_session_factory,
        otp_manager=manager,
        identity_issuer=issuer,
        sweeper=ChallengeSweeper(
            store, interval_seconds=config.otp_sweep_interval_seconds, clock=clock
        ),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle hook."""
    logger.info("Starting %s …", settings.app_name)
    await init_db()
    logger.info("Database initialised")
    services: AppServices = app.state.services
    services.sweeper.start()
    yield
    logger.info("Shutting down %s …", settings.app_name)
    await services.sweeper.stop()
    await services.otp_manager.wait_for_deliveries()
    store = services.otp_manager.store
    if isinstance(store, RedisChallengeStore):
        await store.close()


async def otp_error_handler(request: Request, exc: OTPError) -> JSONResponse:
    content = {"message": exc.message, "code": exc.code}
    if isinstance(exc, Mismatch):
        content["remainingAttempts"] = exc.remaining_attempts
    return JSONResponse(status_code=exc.status_code, content=content)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"message": exc.detail})


def create_app(services: AppServices | None = None) -> FastAPI:
    """Build the application; tests pass their own *services*."""
    app = FastAPI(
        title=settings.app_name,
        description="Backend-for-frontend for the CEG Connect college community app",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.services = services or build_services()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(OTPError, otp_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)

    app.include_router(auth_router)
    app.include_router(communities_router)
    app.include_router(groups_router)
    app.include_router(users_router)

    @app.get("/")
    async def root():
        return {
            "message": "CEG Connect Backend API",
            "status": "running",
            "timestamp": datetime.now(UTC).isoformat(),
        }

    @app.get("/api/health")
    async def health_check():
        """Simple liveness probe."""
        return {
            "status": "OK",
            "message": f"{settings.app_name} is running!",
            "timestamp": datetime.now(UTC).isoformat(),
        }

    @app.get("/api/test")
    async def smoke_test():
        return {
            "message": "Backend is working perfectly!",
            "timestamp": datetime.now(UTC).isoformat(),
        }

    return app


app = create_app()
