"""
Webhook dispatcher for new arrest records.

Delivery is best effort: ``send`` reports success as a boolean and never
raises. In ``embeds`` mode the text message goes out first, then, after a
fixed pause that keeps the webhook provider's rate limiter happy, a second
message carrying up to ``max_webhook_embeds`` hosted images. In
``attachments`` mode a single multipart request carries the text as
``payload_json`` and the screenshots as file parts.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import json
import re
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import structlog
from prometheus_client import Counter

from app.config.settings import Settings, WebhookDeliveryMode, get_settings
from app.db.models.record import PrisonRecord
from app.services.notify.image_relay import ImageRelay
from app.services.notify.template import render_message
from app.services.settings.store import EffectiveSettings

_log = structlog.get_logger(__name__)

_DATA_URI = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.*)$", re.DOTALL)

EMBED_COLOR = 0xFF0000
EMBED_TITLE = "📸 Evidências Fotográficas"

WEBHOOK_DELIVERIES = Counter(
    "webhook_deliveries_total",
    "Record notifications sent to the webhook",
    ["outcome"],
)


def is_remote_url(value: str) -> bool:
    return value.startswith(("http://", "https://"))


def decode_data_uri(value: str) -> tuple[str, bytes] | None:
    """Return (mime type, bytes) for a base64 data URI, or None if malformed."""
    match = _DATA_URI.match(value)
    if match is None:
        return None
    try:
        return match["mime"], base64.b64decode(match["data"], validate=False)
    except (binascii.Error, ValueError):
        return None


def build_image_embeds(urls: list[str], footer_text: str, limit: int = 10) -> list[dict[str, Any]]:
    selected = urls[:limit]
    embeds: list[dict[str, Any]] = []
    for index, url in enumerate(selected):
        embed: dict[str, Any] = {"image": {"url": url}, "color": EMBED_COLOR}
        if index == 0:
            embed["title"] = EMBED_TITLE
        if index == len(selected) - 1:
            embed["footer"] = {"text": footer_text}
        embeds.append(embed)
    return embeds


class WebhookDispatcher:
    def __init__(
        self,
        settings: Settings | None = None,
        relay: ImageRelay | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._settings = settings or get_settings()
        self._transport = transport
        self._relay = relay or ImageRelay(self._settings, transport=transport)
        self._sleep = sleep

    async def send(self, record: PrisonRecord, app_settings: EffectiveSettings) -> bool:
        if not app_settings.webhook_url:
            _log.warning("webhook_skipped", record_id=record.id, reason="no webhook configured")
            WEBHOOK_DELIVERIES.labels(outcome="skipped").inc()
            return False

        message = render_message(
            app_settings.message_template, record, self._settings.display_timezone
        )
        try:
            async with httpx.AsyncClient(
                timeout=self._settings.webhook_timeout_seconds,
                transport=self._transport,
            ) as client:
                if self._settings.webhook_delivery_mode == WebhookDeliveryMode.ATTACHMENTS:
                    await self._send_with_attachments(client, app_settings, record, message)
                else:
                    await self._send_with_embeds(client, app_settings, record, message)
        except httpx.HTTPError as exc:
            WEBHOOK_DELIVERIES.labels(outcome="failed").inc()
            _log.warning("webhook_delivery_failed", record_id=record.id, error=str(exc))
            return False

        WEBHOOK_DELIVERIES.labels(outcome="ok").inc()
        _log.info("webhook_delivered", record_id=record.id, screenshots=len(record.screenshots or []))
        return True

    async def _send_with_embeds(
        self,
        client: httpx.AsyncClient,
        app_settings: EffectiveSettings,
        record: PrisonRecord,
        message: str,
    ) -> None:
        response = await client.post(app_settings.webhook_url, json={"content": message})
        response.raise_for_status()

        screenshots = list(record.screenshots or [])
        if not screenshots:
            return

        await self._sleep(self._settings.image_followup_delay_seconds)

        hosted = [s for s in screenshots if is_remote_url(s)]
        to_upload = [s for s in screenshots if not is_remote_url(s)]
        urls = hosted + await self._relay.upload_multiple(to_upload)
        if not urls:
            _log.warning("webhook_images_unavailable", record_id=record.id)
            return

        embeds = build_image_embeds(
            urls,
            footer_text=f"Sistema de Registro {app_settings.app_title}",
            limit=self._settings.max_webhook_embeds,
        )
        response = await client.post(app_settings.webhook_url, json={"embeds": embeds})
        response.raise_for_status()

    async def _send_with_attachments(
        self,
        client: httpx.AsyncClient,
        app_settings: EffectiveSettings,
        record: PrisonRecord,
        message: str,
    ) -> None:
        payload: dict[str, Any] = {"content": message}
        files: list[tuple[str, tuple[str | None, Any, str]]] = []
        remote: list[str] = []

        for index, screenshot in enumerate(record.screenshots or []):
            if is_remote_url(screenshot):
                remote.append(screenshot)
                continue
            decoded = decode_data_uri(screenshot)
            if decoded is None:
                _log.warning("screenshot_undecodable", record_id=record.id, index=index)
                continue
            mime, data = decoded
            extension = mime.split("/")[-1]
            files.append((f"file{index}", (f"evidencia_{index + 1}.{extension}", data, mime)))

        if remote:
            payload["embeds"] = build_image_embeds(
                remote,
                footer_text=f"Sistema de Registro {app_settings.app_title}",
                limit=self._settings.max_webhook_embeds,
            )

        parts: list[tuple[str, tuple[str | None, Any, str]]] = [
            ("payload_json", (None, json.dumps(payload), "application/json")),
            *files,
        ]
        response = await client.post(app_settings.webhook_url, files=parts)
        response.raise_for_status()
