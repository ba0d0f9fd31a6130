"""Unit tests for app.services.notify.dispatcher."""
import base64
import json
from datetime import UTC, datetime

import httpx
import pytest
from pydantic import SecretStr

from app.config.settings import WebhookDeliveryMode, get_settings
from app.db.models.record import PrisonRecord
from app.services.notify.dispatcher import (
    EMBED_TITLE,
    WebhookDispatcher,
    build_image_embeds,
    decode_data_uri,
)
from app.services.notify.image_relay import ImageRelay
from app.services.settings.store import EffectiveSettings

pytestmark = pytest.mark.asyncio

WEBHOOK = "https://discord.example/api/webhooks/1/abc"
PNG_URI = "data:image/png;base64," + base64.b64encode(b"\x89PNG fake").decode()


def _record(screenshots: list[str] | None = None) -> PrisonRecord:
    return PrisonRecord(
        id="rec-1",
        individual_name="João da Silva",
        fixed_id="",
        date_time=datetime(2024, 3, 10, 15, 30, tzinfo=UTC),
        location="Setor Comercial Sul",
        reason="Roubo",
        articles="",
        observations="",
        seized_items="",
        responsible_officers="Sgt. Souza",
        screenshots=screenshots or [],
        created_by="oficial",
    )


def _app_settings(webhook: str | None = WEBHOOK) -> EffectiveSettings:
    return EffectiveSettings(
        webhook_url=webhook,
        message_template="Preso: {individualName}",
        app_title="PMDF/BOPE",
        app_subtitle="",
        brasilia_logo_url="",
        bope_logo_url="",
    )


class Recorder:
    """Captures webhook and image-host traffic plus the pauses in between."""

    def __init__(self, webhook_status: int = 204) -> None:
        self.events: list[tuple[str, object]] = []
        self.webhook_status = webhook_status

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "api.imgbb.com":
            self.events.append(("upload", request.url.path))
            return httpx.Response(200, json={"success": True, "data": {"url": "https://i.ibb.co/up.png"}})
        self.events.append(("post", request))
        return httpx.Response(self.webhook_status)

    async def sleep(self, seconds: float) -> None:
        self.events.append(("sleep", seconds))

    @property
    def posts(self) -> list[httpx.Request]:
        return [r for kind, r in self.events if kind == "post"]


def _dispatcher(recorder: Recorder, **overrides) -> WebhookDispatcher:
    settings = get_settings().model_copy(update=overrides)
    transport = httpx.MockTransport(recorder.handler)
    return WebhookDispatcher(
        settings=settings,
        relay=ImageRelay(settings, transport=transport),
        transport=transport,
        sleep=recorder.sleep,
    )


# ─── Helpers ──────────────────────────────────────────────────────────────────

def test_build_image_embeds_title_and_footer():
    embeds = build_image_embeds(["u1", "u2", "u3"], footer_text="rodapé")
    assert [e["image"]["url"] for e in embeds] == ["u1", "u2", "u3"]
    assert embeds[0]["title"] == EMBED_TITLE
    assert "title" not in embeds[1]
    assert embeds[-1]["footer"] == {"text": "rodapé"}
    assert "footer" not in embeds[0]


def test_build_image_embeds_caps_at_limit():
    embeds = build_image_embeds([f"u{i}" for i in range(15)], footer_text="x", limit=10)
    assert len(embeds) == 10
    assert embeds[-1]["image"]["url"] == "u9"


def test_decode_data_uri():
    mime, data = decode_data_uri(PNG_URI)
    assert mime == "image/png"
    assert data == b"\x89PNG fake"
    assert decode_data_uri("https://example.com/x.png") is None


# ─── Skips and failures ───────────────────────────────────────────────────────

async def test_no_webhook_configured_returns_false():
    recorder = Recorder()
    ok = await _dispatcher(recorder).send(_record(), _app_settings(webhook=None))
    assert ok is False
    assert recorder.events == []


async def test_webhook_error_status_returns_false():
    recorder = Recorder(webhook_status=500)
    assert await _dispatcher(recorder).send(_record(), _app_settings()) is False


async def test_network_failure_returns_false():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("down", request=request)

    dispatcher = WebhookDispatcher(
        settings=get_settings(), transport=httpx.MockTransport(handler)
    )
    assert await dispatcher.send(_record(), _app_settings()) is False


# ─── Embeds mode ──────────────────────────────────────────────────────────────

async def test_text_only_record_sends_one_message():
    recorder = Recorder()
    ok = await _dispatcher(recorder).send(_record(), _app_settings())

    assert ok is True
    assert len(recorder.posts) == 1
    assert json.loads(recorder.posts[0].content) == {"content": "Preso: João da Silva"}
    assert not any(kind == "sleep" for kind, _ in recorder.events)


async def test_images_follow_text_after_delay():
    recorder = Recorder()
    record = _record(["https://cdn.example/a.png", "https://cdn.example/b.png"])
    ok = await _dispatcher(recorder).send(record, _app_settings())

    assert ok is True
    kinds = [kind for kind, _ in recorder.events]
    assert kinds == ["post", "sleep", "post"]
    assert recorder.events[1] == ("sleep", 1.0)

    first, second = (json.loads(r.content) for r in recorder.posts)
    assert "content" in first and "embeds" not in first
    urls = [e["image"]["url"] for e in second["embeds"]]
    assert urls == ["https://cdn.example/a.png", "https://cdn.example/b.png"]
    assert second["embeds"][-1]["footer"]["text"] == "Sistema de Registro PMDF/BOPE"


async def test_inline_images_uploaded_when_host_configured():
    recorder = Recorder()
    dispatcher = _dispatcher(recorder, imgbb_api_key=SecretStr("k"))
    ok = await dispatcher.send(_record([PNG_URI]), _app_settings())

    assert ok is True
    assert ("upload", "/1/upload") in recorder.events
    second = json.loads(recorder.posts[1].content)
    assert second["embeds"][0]["image"]["url"] == "https://i.ibb.co/up.png"


async def test_inline_images_without_host_send_text_only():
    recorder = Recorder()
    ok = await _dispatcher(recorder).send(_record([PNG_URI]), _app_settings())

    assert ok is True
    assert len(recorder.posts) == 1


async def test_follow_up_capped_at_ten_embeds():
    recorder = Recorder()
    record = _record([f"https://cdn.example/{i}.png" for i in range(12)])
    await _dispatcher(recorder).send(record, _app_settings())

    second = json.loads(recorder.posts[1].content)
    assert len(second["embeds"]) == 10


# ─── Attachments mode ─────────────────────────────────────────────────────────

async def test_attachments_mode_sends_single_multipart_request():
    recorder = Recorder()
    dispatcher = _dispatcher(recorder, webhook_delivery_mode=WebhookDeliveryMode.ATTACHMENTS)
    record = _record([PNG_URI, "https://cdn.example/a.png"])
    ok = await dispatcher.send(record, _app_settings())

    assert ok is True
    assert len(recorder.posts) == 1
    request = recorder.posts[0]
    assert request.headers["content-type"].startswith("multipart/form-data")
    body = request.content
    assert b'name="payload_json"' in body
    assert b'name="file0"; filename="evidencia_1.png"' in body
    assert b"\x89PNG fake" in body
    assert b"https://cdn.example/a.png" in body
    assert not any(kind == "sleep" for kind, _ in recorder.events)
