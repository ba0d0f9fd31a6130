"""Runtime app settings: one stored row, falling back to configured defaults."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import Settings, get_settings
from app.db.models.app_settings import SINGLETON_ID, AppSettings

_log = structlog.get_logger(__name__)

FIELDS = (
    "webhook_url",
    "message_template",
    "app_title",
    "app_subtitle",
    "brasilia_logo_url",
    "bope_logo_url",
)


@dataclass(frozen=True)
class EffectiveSettings:
    """Settings as the rest of the app sees them, whether stored or defaulted."""

    webhook_url: str | None
    message_template: str
    app_title: str
    app_subtitle: str
    brasilia_logo_url: str
    bope_logo_url: str
    is_default: bool = True


def default_settings(settings: Settings | None = None) -> EffectiveSettings:
    cfg = settings or get_settings()
    webhook = cfg.discord_webhook_url.get_secret_value() if cfg.discord_webhook_url else None
    return EffectiveSettings(
        webhook_url=webhook,
        message_template=cfg.default_message_template,
        app_title=cfg.default_app_title,
        app_subtitle=cfg.default_app_subtitle,
        brasilia_logo_url=cfg.default_brasilia_logo_url,
        bope_logo_url=cfg.default_bope_logo_url,
    )


class AppSettingsStore:
    def __init__(self, db: AsyncSession, settings: Settings | None = None) -> None:
        self._db = db
        self._settings = settings

    async def get(self) -> EffectiveSettings:
        row = await self._db.get(AppSettings, SINGLETON_ID)
        defaults = default_settings(self._settings)
        if row is None:
            return defaults
        return EffectiveSettings(
            # an unset stored webhook still honours the configured one
            webhook_url=row.webhook_url or defaults.webhook_url,
            message_template=row.message_template,
            app_title=row.app_title,
            app_subtitle=row.app_subtitle,
            brasilia_logo_url=row.brasilia_logo_url,
            bope_logo_url=row.bope_logo_url,
            is_default=False,
        )

    async def save(self, changes: Mapping[str, Any], updated_by: str | None = None) -> EffectiveSettings:
        """Merge ``changes`` over the current values and persist the row."""
        current = await self.get()
        merged = replace(current, **{k: v for k, v in changes.items() if k in FIELDS})

        row = await self._db.get(AppSettings, SINGLETON_ID)
        if row is None:
            row = AppSettings(id=SINGLETON_ID, webhook_url=None)
            self._db.add(row)
        for field in FIELDS:
            if field == "webhook_url" and field not in changes:
                # keep the configured secret out of the table unless set explicitly
                continue
            setattr(row, field, getattr(merged, field))
        row.updated_by = updated_by
        await self._db.flush()

        _log.info(
            "app_settings_saved",
            updated_by=updated_by,
            fields=sorted(k for k in changes if k in FIELDS),
        )
        return await self.get()
