from __future__ import annotations

import asyncio

from ..models.config import AnalyzerConfig
from ..utils.http import HttpClient
from .base import Provider, Sleep
from .safe_browsing import SafeBrowsingProvider
from .screenshot import ScreenshotProvider
from .ssl_labs import SslLabsProvider
from .virustotal import VirusTotalProvider
from .whois import WhoisProvider

__all__ = ["Provider", "build_providers"]


def build_providers(config: AnalyzerConfig, http: HttpClient, sleep: Sleep = asyncio.sleep) -> list[Provider]:
    return [
        VirusTotalProvider(
            config.virustotal_api_key,
            http,
            sleep,
            poll_attempts=config.reputation_poll_attempts,
            poll_delay=config.reputation_poll_delay_seconds,
        ),
        SafeBrowsingProvider(config.google_safe_browsing_api_key, http, sleep),
        WhoisProvider(config.whoisxml_api_key, http, sleep, retry_delay=config.whois_retry_delay_seconds),
        SslLabsProvider(config.enable_ssl_labs, http, sleep),
        ScreenshotProvider(
            config.urlscan_api_key,
            http,
            sleep,
            poll_attempts=config.snapshot_poll_attempts,
            poll_delay=config.snapshot_poll_delay_seconds,
        ),
    ]
