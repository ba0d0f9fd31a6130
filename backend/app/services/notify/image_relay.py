"""
Image relay: pushes base64 screenshots to the image host and returns
public URLs that the webhook can embed.

Failures never propagate. A single upload answers None; a batch returns
whichever uploads succeeded, in input order.
"""

from __future__ import annotations

import asyncio
import re

import httpx
import structlog
from prometheus_client import Counter

from app.config.settings import Settings, get_settings

_log = structlog.get_logger(__name__)

_DATA_URI_PREFIX = re.compile(r"^data:image/[\w.+-]+;base64,")

IMAGE_UPLOADS = Counter(
    "image_uploads_total",
    "Screenshot uploads to the image host",
    ["outcome"],
)


def strip_data_uri(value: str) -> str:
    return _DATA_URI_PREFIX.sub("", value, count=1)


class ImageRelay:
    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._transport = transport
        self._endpoint = f"{str(self._settings.imgbb_base_url).rstrip('/')}/1/upload"

    @property
    def enabled(self) -> bool:
        return self._settings.imgbb_api_key is not None

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._settings.webhook_timeout_seconds,
            transport=self._transport,
        )

    async def upload_image(self, image_b64: str, client: httpx.AsyncClient | None = None) -> str | None:
        if not self.enabled:
            _log.warning("image_upload_skipped", reason="imgbb_api_key not configured")
            return None
        if client is None:
            async with self._client() as own_client:
                return await self._upload(own_client, image_b64)
        return await self._upload(client, image_b64)

    async def upload_multiple(self, images_b64: list[str]) -> list[str]:
        if not images_b64:
            return []
        if not self.enabled:
            _log.warning("image_upload_skipped", reason="imgbb_api_key not configured")
            return []
        async with self._client() as client:
            results = await asyncio.gather(
                *(self._upload(client, image) for image in images_b64),
                return_exceptions=True,
            )
        urls: list[str] = []
        for index, result in enumerate(results):
            if isinstance(result, str):
                urls.append(result)
            else:
                _log.warning("image_upload_dropped", index=index)
        return urls

    async def _upload(self, client: httpx.AsyncClient, image_b64: str) -> str | None:
        key = self._settings.imgbb_api_key
        if key is None:
            return None
        try:
            response = await client.post(
                self._endpoint,
                params={"key": key.get_secret_value()},
                files={"image": (None, strip_data_uri(image_b64))},
            )
            response.raise_for_status()
            body = response.json()
            if not isinstance(body, dict):
                raise ValueError("unexpected image host response")
        except (httpx.HTTPError, ValueError) as exc:
            IMAGE_UPLOADS.labels(outcome="failed").inc()
            _log.warning("image_upload_failed", error=str(exc))
            return None

        url = (body.get("data") or {}).get("url") if body.get("success") else None
        if not url:
            IMAGE_UPLOADS.labels(outcome="failed").inc()
            _log.warning("image_upload_rejected", status=body.get("status"))
            return None

        IMAGE_UPLOADS.labels(outcome="ok").inc()
        return str(url)
