"""VirusTotal URL reputation with submit-and-poll.

VirusTotal only holds verdicts for URLs it has already seen. The adapter walks
a small state machine:

    lookup --404--> submit --> polling --stats--> resolved
       |                          |
       +--2xx--> resolved         +--budget spent--> pending

Each poll waits ``poll_delay`` seconds, then asks the analysis endpoint and
the canonical URL endpoint in turn; the first answer carrying a numeric
``malicious`` count wins.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from enum import Enum
from typing import Optional
from urllib.parse import quote

import httpx

from ..models.results import ProviderPending, ProviderResult, ProviderSuccess, ReputationStats
from ..utils.http import HttpClient
from .base import Provider, ProviderError, ProviderNotFound, Sleep, fetch_json

logger = logging.getLogger(__name__)

NAME = "virusTotal"
API_BASE = "https://www.virustotal.com/api/v3"


class PollState(str, Enum):
    lookup = "lookup"
    submit = "submit"
    polling = "polling"
    resolved = "resolved"
    pending = "pending"


def url_identifier(url: str) -> str:
    """VirusTotal's URL id: unpadded urlsafe base64 of the URL."""
    return base64.urlsafe_b64encode(url.encode("utf-8")).decode("ascii").rstrip("=")


class VirusTotalProvider(Provider):
    name = NAME
    timeout = 12.0
    submit_timeout = 15.0

    def __init__(
        self,
        api_key: Optional[str],
        http: HttpClient,
        sleep: Sleep = asyncio.sleep,
        poll_attempts: int = 3,
        poll_delay: float = 2.5,
    ) -> None:
        super().__init__(http, sleep)
        self.api_key = api_key
        self.poll_attempts = poll_attempts
        self.poll_delay = poll_delay

    def is_available(self) -> bool:
        return bool(self.api_key)

    @property
    def _headers(self) -> dict:
        return {"x-apikey": self.api_key or ""}

    async def _get(self, path: str) -> object:
        return await fetch_json(self.http, "GET", f"{API_BASE}{path}", timeout=self.timeout, headers=self._headers)

    async def _lookup(self, url_id: str) -> Optional[dict]:
        try:
            data = await self._get(f"/urls/{url_id}")
        except ProviderNotFound:
            return None
        return data if isinstance(data, dict) else {}

    async def _submit(self, url: str) -> Optional[str]:
        data = await fetch_json(
            self.http,
            "POST",
            f"{API_BASE}/urls",
            timeout=self.submit_timeout,
            data={"url": url},
            headers={**self._headers, "content-type": "application/x-www-form-urlencoded"},
        )
        analysis = data.get("data") if isinstance(data, dict) else None
        return analysis.get("id") if isinstance(analysis, dict) else None

    async def _poll_analysis(self, analysis_id: str) -> Optional[dict]:
        try:
            analysis = await self._get(f"/analyses/{quote(analysis_id, safe='')}")
            attributes = (analysis.get("data") or {}).get("attributes") if isinstance(analysis, dict) else None
            stats = attributes.get("stats") if isinstance(attributes, dict) else None
            if isinstance(stats, dict) and isinstance(stats.get("malicious"), int):
                return {"data": {"attributes": {"last_analysis_stats": stats}}}
        except (ProviderError, httpx.HTTPError, asyncio.TimeoutError) as exc:
            logger.debug("virustotal analysis poll failed", extra={"error": str(exc)})
        return None

    async def _poll_once(self, analysis_id: Optional[str], url_id: str) -> Optional[dict]:
        if analysis_id:
            verdict = await self._poll_analysis(analysis_id)
            if verdict is not None:
                return verdict

        try:
            url_data = await self._get(f"/urls/{url_id}")
            if isinstance(url_data, dict) and ReputationStats.stats_from(url_data):
                return url_data
        except (ProviderError, httpx.HTTPError, asyncio.TimeoutError) as exc:
            logger.debug("virustotal url poll failed", extra={"error": str(exc)})
        return None

    async def check(self, target: str) -> ProviderResult:
        url_id = url_identifier(target)
        state = PollState.lookup
        analysis_id: Optional[str] = None
        attempts = 0

        while True:
            if state == PollState.lookup:
                found = await self._lookup(url_id)
                if found is not None:
                    return ProviderSuccess(payload=found)
                state = PollState.submit
            elif state == PollState.submit:
                analysis_id = await self._submit(target)
                logger.info("submitted url to virustotal", extra={"analysis_id": analysis_id})
                state = PollState.polling
            elif state == PollState.polling:
                if attempts >= self.poll_attempts:
                    return ProviderPending(analysis_id=analysis_id)
                attempts += 1
                await self.sleep(self.poll_delay)
                verdict = await self._poll_once(analysis_id, url_id)
                if verdict is not None:
                    return ProviderSuccess(payload=verdict)
            else:
                raise RuntimeError(f"unexpected poll state {state}")
