"""
Arrest Registry: FastAPI application factory.

Application lifecycle:
  startup  → configure logging, run DB migrations, bootstrap the owner account
  shutdown → dispose DB engine pool
"""

from __future__ import annotations

from pathlib import Path

import sqlalchemy as sa
import structlog
from alembic import command
from alembic.config import Config
from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from sqlalchemy.exc import SQLAlchemyError

from app.api.v1.router import router as v1_router
from app.config.logging_config import configure_logging
from app.config.settings import Environment, Settings, get_settings
from app.core.errors import AppError
from app.core.middleware import (
    CORRELATION_HEADER,
    CorrelationIDMiddleware,
    SecurityHeadersMiddleware,
    app_error_handler,
    rate_limit_handler,
    unhandled_exception_handler,
)
from app.db.session import dispose_engine, get_session_factory
from app.services.auth.service import AuthService

_log = structlog.get_logger(__name__)

_ALEMBIC_DIR = Path(__file__).resolve().parent.parent / "alembic"


def _create_limiter(settings: Settings) -> Limiter:
    return Limiter(
        key_func=get_remote_address,
        default_limits=[settings.rate_limit_default],
    )


def _run_migrations(settings: Settings) -> None:
    alembic_cfg = Config()
    alembic_cfg.set_main_option("script_location", str(_ALEMBIC_DIR))
    alembic_cfg.set_main_option("sqlalchemy.url", str(settings.database_url))
    command.upgrade(alembic_cfg, "head")
    _log.info("migrations_applied")


async def _bootstrap_owner(settings: Settings) -> None:
    """Ensure the configured owner account exists with the admin role."""
    factory = get_session_factory(settings)
    async with factory() as db:
        await AuthService(db).ensure_owner(
            settings.admin_username, settings.admin_password.get_secret_value()
        )
        await db.commit()


async def _startup(settings: Settings) -> None:
    configure_logging(log_level=settings.log_level.value, json_logs=settings.log_json)
    _log.info(
        "registry_starting",
        version=settings.app_version,
        environment=settings.environment.value,
    )

    if settings.run_migrations_on_startup:
        try:
            _run_migrations(settings)
        except Exception:
            _log.exception("migrations_failed")
            raise

    await _bootstrap_owner(settings)
    if settings.discord_webhook_url is None:
        _log.warning("webhook_not_configured")
    if settings.imgbb_api_key is None:
        _log.warning("image_host_not_configured")
    _log.info("registry_ready", host=settings.host, port=settings.port)


async def _shutdown() -> None:
    await dispose_engine()
    _log.info("registry_shutdown")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Application factory. Returns a configured FastAPI instance."""
    settings = settings or get_settings()
    expose_docs = settings.environment != Environment.PRODUCTION

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        description="Arrest record registry: accounts with approval, records, activity log, webhook notifications.",
        docs_url="/docs" if expose_docs else None,
        redoc_url="/redoc" if expose_docs else None,
        openapi_url="/openapi.json" if expose_docs else None,
    )

    # ── Startup / Shutdown ────────────────────────────────────────────── #
    @app.on_event("startup")
    async def on_startup() -> None:
        await _startup(settings)

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        await _shutdown()

    # ── Rate Limiting ─────────────────────────────────────────────────── #
    app.state.limiter = _create_limiter(settings)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)  # type: ignore[arg-type]
    app.add_middleware(SlowAPIMiddleware)

    # ── CORS ──────────────────────────────────────────────────────────── #
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[CORRELATION_HEADER],
    )

    # ── Custom Middleware (applied in reverse order) ───────────────────── #
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(CorrelationIDMiddleware)

    # ── Exception Handlers ────────────────────────────────────────────── #
    app.add_exception_handler(AppError, app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # ── Routes ────────────────────────────────────────────────────────── #
    app.include_router(v1_router)

    # ── Health ────────────────────────────────────────────────────────── #
    @app.get("/health", tags=["health"], summary="Health check")
    async def health() -> dict[str, object]:
        """Database reachability plus which outbound integrations are configured."""
        db_ok = False
        try:
            async with get_session_factory()() as db:
                await db.execute(sa.text("SELECT 1"))
            db_ok = True
        except SQLAlchemyError as exc:
            _log.warning("health_db_unavailable", error=str(exc))

        return {
            "status": "healthy" if db_ok else "degraded",
            "database": "ok" if db_ok else "unavailable",
            "webhook": "configured" if settings.discord_webhook_url else "disabled",
            "image_host": "configured" if settings.imgbb_api_key else "disabled",
            "version": settings.app_version,
        }

    # ── Metrics (Prometheus) ──────────────────────────────────────────── #
    @app.get("/metrics", tags=["observability"], summary="Prometheus metrics")
    async def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


# Entry point for uvicorn
app = create_app()
