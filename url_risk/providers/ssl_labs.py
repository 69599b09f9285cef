from __future__ import annotations

import asyncio
from urllib.parse import quote

from ..models.results import ProviderResult, ProviderSuccess
from ..utils.http import HttpClient
from .base import Provider, ProviderHTTPError, Sleep, fetch_json

NAME = "sslLabs"
API_URL = "https://api.ssllabs.com/api/v3/analyze"


class SslLabsProvider(Provider):
    """Certificate/endpoint grades from SSL Labs, served from its cache when possible."""

    name = NAME
    target_kind = "domain"
    timeout = 15.0

    def __init__(self, enabled: bool, http: HttpClient, sleep: Sleep = asyncio.sleep) -> None:
        super().__init__(http, sleep)
        self.enabled = enabled

    def is_available(self) -> bool:
        return self.enabled

    async def check(self, target: str) -> ProviderResult:
        url = f"{API_URL}?host={quote(target, safe='')}&fromCache=on&all=done"
        data = await fetch_json(self.http, "GET", url, timeout=self.timeout)
        if not isinstance(data, dict):
            raise ProviderHTTPError(None, "unexpected response shape")
        return ProviderSuccess(payload=data)
