"""Unit tests for app.services.settings.store."""
import pytest
from pydantic import SecretStr

from app.config.settings import get_settings
from app.db.models.app_settings import SINGLETON_ID, AppSettings
from app.services.settings.store import AppSettingsStore, default_settings

pytestmark = pytest.mark.asyncio

ENV_WEBHOOK = "https://discord.example/api/webhooks/env"


def _configured():
    return get_settings().model_copy(update={"discord_webhook_url": SecretStr(ENV_WEBHOOK)})


async def test_defaults_when_nothing_stored(db_session):
    values = await AppSettingsStore(db_session).get()
    assert values.is_default is True
    assert values.app_title == get_settings().default_app_title
    assert values.webhook_url is None


async def test_configured_webhook_used_as_default(db_session):
    values = await AppSettingsStore(db_session, _configured()).get()
    assert values.webhook_url == ENV_WEBHOOK


async def test_save_merges_and_persists(db_session):
    store = AppSettingsStore(db_session)
    saved = await store.save({"app_title": "BOPE"}, updated_by="owner")

    assert saved.is_default is False
    assert saved.app_title == "BOPE"
    assert saved.app_subtitle == default_settings().app_subtitle
    assert (await store.get()).app_title == "BOPE"


async def test_save_ignores_unknown_fields(db_session):
    saved = await AppSettingsStore(db_session).save({"nope": 1, "app_subtitle": "X"})
    assert saved.app_subtitle == "X"


async def test_configured_webhook_not_copied_into_table(db_session):
    store = AppSettingsStore(db_session, _configured())
    await store.save({"app_title": "BOPE"}, updated_by="owner")

    row = await db_session.get(AppSettings, SINGLETON_ID)
    assert row.webhook_url is None
    assert (await store.get()).webhook_url == ENV_WEBHOOK


async def test_stored_webhook_overrides_configured(db_session):
    store = AppSettingsStore(db_session, _configured())
    await store.save({"webhook_url": "https://discord.example/api/webhooks/db"})
    assert (await store.get()).webhook_url == "https://discord.example/api/webhooks/db"


async def test_cleared_webhook_falls_back_to_configured(db_session):
    store = AppSettingsStore(db_session, _configured())
    await store.save({"webhook_url": "https://discord.example/api/webhooks/db"})
    saved = await store.save({"webhook_url": None})
    assert saved.webhook_url == ENV_WEBHOOK
