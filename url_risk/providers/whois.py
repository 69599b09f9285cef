from __future__ import annotations

import asyncio
import logging
import re
from typing import Optional
from urllib.parse import urlencode

from ..models.results import ProviderResult, ProviderSuccess
from ..utils.http import HttpClient
from .base import Provider, ProviderHTTPError, Sleep, fetch_json

logger = logging.getLogger(__name__)

NAME = "whois"
API_URL = "https://www.whoisxmlapi.com/whoisserver/WhoisService"
ABORTED_RE = re.compile(r"aborted", re.IGNORECASE)


def is_aborted(data: dict) -> bool:
    """WhoisXML reports upstream registry timeouts as an 'aborted' message."""
    error = data.get("error")
    if isinstance(error, str) and ABORTED_RE.search(error):
        return True
    record = data.get("WhoisRecord")
    if isinstance(record, dict):
        data_error = record.get("dataError")
        return isinstance(data_error, str) and bool(ABORTED_RE.search(data_error))
    return False


class WhoisProvider(Provider):
    """Domain registration metadata from WhoisXML API."""

    name = NAME
    target_kind = "domain"
    timeout = 20.0
    retry_timeout = 22.0

    def __init__(
        self,
        api_key: Optional[str],
        http: HttpClient,
        sleep: Sleep = asyncio.sleep,
        retry_delay: float = 1.2,
    ) -> None:
        super().__init__(http, sleep)
        self.api_key = api_key
        self.retry_delay = retry_delay

    def is_available(self) -> bool:
        return bool(self.api_key)

    async def _lookup(self, domain: str, timeout: float) -> dict:
        query = urlencode({"apiKey": self.api_key or "", "domainName": domain, "outputFormat": "JSON"})
        data = await fetch_json(self.http, "GET", f"{API_URL}?{query}", timeout=timeout)
        if not isinstance(data, dict):
            raise ProviderHTTPError(None, "unexpected response shape")
        return data

    async def check(self, target: str) -> ProviderResult:
        data = await self._lookup(target, self.timeout)
        if is_aborted(data):
            logger.info("whois lookup aborted upstream, retrying once", extra={"domain": target})
            await self.sleep(self.retry_delay)
            data = await self._lookup(target, self.retry_timeout)
            if is_aborted(data):
                raise ProviderHTTPError(None, "whois lookup aborted")
        return ProviderSuccess(payload=data)
