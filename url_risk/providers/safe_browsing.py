from __future__ import annotations

import asyncio
from typing import Optional
from urllib.parse import quote

from ..models.results import ProviderResult, ProviderSuccess
from ..utils.http import HttpClient
from .base import Provider, Sleep, fetch_json

NAME = "googleSafeBrowsing"
API_URL = "https://safebrowsing.googleapis.com/v4/threatMatches:find"

THREAT_TYPES = ["MALWARE", "SOCIAL_ENGINEERING", "UNWANTED_SOFTWARE", "POTENTIALLY_HARMFUL_APPLICATION"]


def build_request(url: str) -> dict:
    return {
        "client": {"clientId": "url-risk", "clientVersion": "0.3.0"},
        "threatInfo": {
            "threatTypes": THREAT_TYPES,
            "platformTypes": ["ANY_PLATFORM"],
            "threatEntryTypes": ["URL"],
            "threatEntries": [{"url": url}],
        },
    }


class SafeBrowsingProvider(Provider):
    """Malware/phishing URL list lookup (Google Safe Browsing v4)."""

    name = NAME
    timeout = 12.0

    def __init__(self, api_key: Optional[str], http: HttpClient, sleep: Sleep = asyncio.sleep) -> None:
        super().__init__(http, sleep)
        self.api_key = api_key

    def is_available(self) -> bool:
        return bool(self.api_key)

    async def check(self, target: str) -> ProviderResult:
        data = await fetch_json(
            self.http,
            "POST",
            f"{API_URL}?key={quote(self.api_key or '', safe='')}",
            timeout=self.timeout,
            json=build_request(target),
        )
        # An empty object means no match.
        return ProviderSuccess(payload=data if isinstance(data, dict) else {})
