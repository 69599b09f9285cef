from __future__ import annotations

import asyncio
import base64
import logging
from typing import Optional

import httpx

from ..models.results import ProviderResult, ProviderSuccess, ProviderUnavailable
from ..utils.http import HttpClient
from .base import Provider, ProviderError, Sleep, fetch_json

logger = logging.getLogger(__name__)

NAME = "screenshot"
SCAN_URL = "https://urlscan.io/api/v1/scan/"
RESULT_URL = "https://urlscan.io/api/v1/result/{uuid}/"


def screenshot_url_from(result: dict) -> Optional[str]:
    task = result.get("task") if isinstance(result.get("task"), dict) else {}
    for candidate in (result.get("screenshot"), task.get("screenshotURL"), result.get("screenshotURL")):
        if isinstance(candidate, str) and candidate:
            return candidate
    return None


def decode_screenshot(payload: dict) -> Optional[bytes]:
    encoded = payload.get("base64")
    if not isinstance(encoded, str) or not encoded:
        return None
    try:
        return base64.b64decode(encoded)
    except ValueError:
        return None


class ScreenshotProvider(Provider):
    """Rendered page snapshot via urlscan.io.

    A missing screenshot is never an error: every failure path yields
    ``ProviderUnavailable``.
    """

    name = NAME
    timeout = 15.0
    image_timeout = 12.0

    def __init__(
        self,
        api_key: Optional[str],
        http: HttpClient,
        sleep: Sleep = asyncio.sleep,
        poll_attempts: int = 3,
        poll_delay: float = 3.0,
    ) -> None:
        super().__init__(http, sleep)
        self.api_key = api_key
        self.poll_attempts = poll_attempts
        self.poll_delay = poll_delay

    def is_available(self) -> bool:
        return bool(self.api_key)

    async def _wait_for_screenshot(self, uuid: str) -> Optional[str]:
        headers = {"API-Key": self.api_key or ""}
        for attempt in range(self.poll_attempts):
            await self.sleep(self.poll_delay)
            try:
                result = await fetch_json(
                    self.http, "GET", RESULT_URL.format(uuid=uuid), timeout=self.timeout, headers=headers
                )
            except (ProviderError, httpx.HTTPError, asyncio.TimeoutError) as exc:
                # urlscan answers 404 until the scan has finished
                logger.debug("screenshot not ready", extra={"uuid": uuid, "attempt": attempt, "error": str(exc)})
                continue
            found = screenshot_url_from(result) if isinstance(result, dict) else None
            if found:
                return found
        return None

    async def _fetch_image(self, url: str) -> Optional[bytes]:
        resp = await asyncio.wait_for(self.http.get(url, timeout=self.image_timeout), self.image_timeout)
        if not 200 <= resp.status_code < 300 or not resp.content:
            return None
        return resp.content

    async def check(self, target: str) -> ProviderResult:
        try:
            submit = await fetch_json(
                self.http,
                "POST",
                SCAN_URL,
                timeout=self.timeout,
                json={"url": target, "visibility": "private"},
                headers={"API-Key": self.api_key or "", "Content-Type": "application/json"},
            )
            uuid = submit.get("uuid") if isinstance(submit, dict) else None
            if not uuid:
                return ProviderUnavailable(reason="scan not accepted")
            screenshot_url = await self._wait_for_screenshot(uuid)
            if not screenshot_url:
                return ProviderUnavailable(reason="screenshot not ready")
            image = await self._fetch_image(screenshot_url)
        except Exception as exc:
            logger.info("screenshot unavailable", extra={"url": target, "error": str(exc) or type(exc).__name__})
            return ProviderUnavailable(reason="screenshot failed")
        if not image:
            return ProviderUnavailable(reason="screenshot fetch failed")
        return ProviderSuccess(
            payload={
                "base64": base64.b64encode(image).decode("ascii"),
                "meta": {"source": "urlscan", "url": screenshot_url, "uuid": uuid, "bytes": len(image)},
            }
        )
