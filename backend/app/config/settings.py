"""
Application configuration via Pydantic Settings.

All values are sourced from environment variables or an .env file.
Secrets (JWT key, webhook URL, image host key) have no literal defaults;
a missing webhook or image host key simply disables that side effect.
"""

from __future__ import annotations

from enum import StrEnum
from functools import lru_cache
from typing import Annotated

from pydantic import (
    AnyHttpUrl,
    BeforeValidator,
    Field,
    SecretStr,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    """Deployment environment identifiers."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"


class LogLevel(StrEnum):
    """Structured log level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class WebhookDeliveryMode(StrEnum):
    """How screenshots travel to the webhook."""

    EMBEDS = "embeds"            # text first, then hosted-image embeds
    ATTACHMENTS = "attachments"  # single multipart request with file parts


DEFAULT_MESSAGE_TEMPLATE = (
    "🚨 **REGISTRO DE PRISÃO - PMDF/BOPE**\n"
    "\n"
    "👤 **Nome do Indivíduo:** {individualName}\n"
    "📅 **Data e Hora:** {dateTime}\n"
    "📍 **Localização:** {location}\n"
    "⚖️ **Motivo:** {reason}\n"
    "📦 **Itens Apreendidos:** {seizedItems}\n"
    "👮 **Oficiais Responsáveis:** {responsibleOfficers}\n"
    "📝 **Registrado por:** {createdBy}"
)


def _parse_cors_origins(value: str | list[str]) -> list[str]:
    """Accept comma-separated string or list for CORS origins."""
    if isinstance(value, list):
        return value
    return [origin.strip() for origin in value.split(",") if origin.strip()]


class Settings(BaseSettings):
    """
    Centralised, type-validated application configuration.

    Reads from environment variables with an optional .env file.
    All secrets are Pydantic SecretStr to prevent accidental logging.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="forbid",
    )

    # ── Application ────────────────────────────────────────────────────── #
    app_name: str = Field(default="Arrest Registry", description="Human-readable application name")
    app_version: str = Field(default="1.0.0", description="Semantic version string")
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Deployment environment (development|testing|production)",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode. Must be False in production.",
    )

    # ── Server ─────────────────────────────────────────────────────────── #
    host: str = Field(default="127.0.0.1", description="Bind host. Default local-only.")
    port: int = Field(default=8000, ge=1024, le=65535, description="Bind port")

    # ── CORS ───────────────────────────────────────────────────────────── #
    cors_origins: Annotated[list[str], BeforeValidator(_parse_cors_origins)] = Field(
        default=["http://localhost:5173"],
        description="Comma-separated list of allowed CORS origins",
    )

    # ── Database ───────────────────────────────────────────────────────── #
    database_url: str = Field(
        default="sqlite+aiosqlite:///./registry.db",
        description=(
            "Async SQLAlchemy connection string. "
            "Use sqlite+aiosqlite:// for a single device or postgresql+asyncpg:// when shared."
        ),
    )
    db_pool_size: int = Field(default=5, ge=1, le=50, description="Connection pool size")
    db_max_overflow: int = Field(default=10, ge=0, le=100, description="Pool max overflow")
    db_echo: bool = Field(default=False, description="Log all SQL statements (debug only)")
    run_migrations_on_startup: bool = Field(
        default=True,
        description="Apply Alembic migrations when the application starts",
    )

    # ── Auth / JWT ─────────────────────────────────────────────────────── #
    jwt_secret_key: SecretStr = Field(
        ...,
        description="HS256 signing secret. Minimum 32 characters. Required.",
    )
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    jwt_access_token_expire_minutes: int = Field(
        default=60,
        ge=5,
        le=1440,
        description="Access token TTL in minutes",
    )
    jwt_refresh_token_expire_days: int = Field(
        default=7,
        ge=1,
        le=30,
        description="Refresh token TTL in days",
    )
    online_window_minutes: int = Field(
        default=5,
        ge=1,
        le=120,
        description="A user counts as online if active within this many minutes",
    )

    # ── Webhook ────────────────────────────────────────────────────────── #
    discord_webhook_url: SecretStr | None = Field(
        default=None,
        description="Outbound webhook URL. Overridden by the stored app settings.",
    )
    webhook_delivery_mode: WebhookDeliveryMode = Field(
        default=WebhookDeliveryMode.EMBEDS,
        description="embeds (hosted image links) or attachments (multipart upload)",
    )
    webhook_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        le=120,
        description="HTTP timeout for webhook and image host calls (seconds)",
    )
    image_followup_delay_seconds: float = Field(
        default=1.0,
        ge=0,
        le=30,
        description="Pause between the text message and the image follow-up",
    )
    max_webhook_embeds: int = Field(
        default=10,
        ge=1,
        le=10,
        description="Maximum image embeds in the follow-up message",
    )

    # ── Image host ─────────────────────────────────────────────────────── #
    imgbb_base_url: AnyHttpUrl = Field(
        default="https://api.imgbb.com",
        description="Image hosting API base URL",
    )
    imgbb_api_key: SecretStr | None = Field(
        default=None,
        description="Image hosting API key. Uploads are skipped when unset.",
    )

    # ── Records ────────────────────────────────────────────────────────── #
    max_screenshots_per_record: int = Field(
        default=10,
        ge=0,
        le=50,
        description="Maximum screenshots attached to a single record",
    )
    display_timezone: str = Field(
        default="America/Sao_Paulo",
        description="IANA timezone used when rendering dates in messages",
    )

    # ── Presentation defaults ──────────────────────────────────────────── #
    default_app_title: str = Field(default="PMDF/BOPE")
    default_app_subtitle: str = Field(default="Sistema de Registro de Prisões")
    default_brasilia_logo_url: str = Field(default="/assets/brasilia-logo.jpg")
    default_bope_logo_url: str = Field(default="/assets/bope-logo.png")
    default_message_template: str = Field(default=DEFAULT_MESSAGE_TEMPLATE)

    # ── Rate Limiting ──────────────────────────────────────────────────── #
    rate_limit_default: str = Field(
        default="100/minute",
        description="Default rate limit string (slowapi format)",
    )

    # ── Logging ────────────────────────────────────────────────────────── #
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Minimum log level")
    log_json: bool = Field(default=True, description="Emit logs as JSON (False for dev console)")

    # ── Owner Bootstrap ────────────────────────────────────────────────── #
    admin_username: str = Field(
        default="admin",
        description="Bootstrap owner username (created on first startup)",
    )
    admin_password: SecretStr = Field(
        ...,
        description="Bootstrap owner password. Required. Min 12 chars.",
    )

    # ── Validators ─────────────────────────────────────────────────────── #

    @field_validator("jwt_secret_key")
    @classmethod
    def jwt_secret_must_be_strong(cls, v: SecretStr) -> SecretStr:
        if len(v.get_secret_value()) < 32:
            raise ValueError("jwt_secret_key must be at least 32 characters")
        return v

    @field_validator("admin_password")
    @classmethod
    def admin_password_must_be_strong(cls, v: SecretStr) -> SecretStr:
        if len(v.get_secret_value()) < 12:
            raise ValueError("admin_password must be at least 12 characters")
        return v

    @field_validator("display_timezone")
    @classmethod
    def timezone_must_exist(cls, v: str) -> str:
        from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {v}") from exc
        return v

    @model_validator(mode="after")
    def production_safety_checks(self) -> Settings:
        if self.environment == Environment.PRODUCTION:
            if self.debug:
                raise ValueError("debug must be False in production")
            if self.db_echo:
                raise ValueError("db_echo must be False in production")
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Return the cached Settings singleton.

    Use dependency injection in FastAPI routes:
        settings: Settings = Depends(get_settings)
    """
    return Settings()
