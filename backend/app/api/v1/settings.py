"""Runtime settings endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from app.api.deps import CurrentUser, DbSession, OwnerUser
from app.core.permissions import is_owner
from app.schemas.app_settings import AppSettingsOut, AppSettingsUpdate
from app.services.settings.store import AppSettingsStore, EffectiveSettings

router = APIRouter(prefix="/settings", tags=["settings"])


def _settings_out(values: EffectiveSettings, show_webhook: bool) -> AppSettingsOut:
    return AppSettingsOut(
        webhook_url=values.webhook_url if show_webhook else None,
        webhook_configured=bool(values.webhook_url),
        message_template=values.message_template,
        app_title=values.app_title,
        app_subtitle=values.app_subtitle,
        brasilia_logo_url=values.brasilia_logo_url,
        bope_logo_url=values.bope_logo_url,
        is_default=values.is_default,
    )


@router.get("", response_model=AppSettingsOut, summary="Current presentation and webhook settings")
async def get_app_settings(current_user: CurrentUser, db: DbSession) -> AppSettingsOut:
    """The webhook URL itself is only shown to the owner."""
    values = await AppSettingsStore(db).get()
    return _settings_out(values, show_webhook=is_owner(current_user))


@router.put("", response_model=AppSettingsOut, summary="Update settings")
async def update_app_settings(
    body: AppSettingsUpdate, current_user: OwnerUser, db: DbSession
) -> AppSettingsOut:
    values = await AppSettingsStore(db).save(body.changes(), updated_by=current_user.username)
    await db.commit()
    return _settings_out(values, show_webhook=True)
