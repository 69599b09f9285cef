from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Optional

from ..models.config import AnalyzerConfig
from ..modules.narrative import NarrativeGenerator
from ..providers import build_providers
from ..providers.base import Provider, Sleep
from ..utils.cache import build_cache
from ..utils.http import HttpClient
from ..utils.rate_limit import AsyncRateLimiter, RateLimiter
from .result_cache import Clock, ResultCache, utc_now


@dataclass
class AnalysisContext:
    config: AnalyzerConfig
    http_client: HttpClient
    providers: list[Provider]
    narrator: NarrativeGenerator
    cache: Optional[ResultCache] = None
    request_limiter: Optional[RateLimiter] = None
    clock: Clock = field(default=utc_now)

    async def close(self) -> None:
        await self.http_client.close()


def build_context(
    config: AnalyzerConfig,
    request_limiter: Optional[RateLimiter] = None,
    sleep: Sleep = asyncio.sleep,
    clock: Clock = utc_now,
) -> AnalysisContext:
    limiter = AsyncRateLimiter(config.max_requests_per_minute)
    http = HttpClient(timeout_seconds=config.timeout_seconds, retries=config.retries, rate_limiter=limiter)
    backend = build_cache(config.cache.value, config.cache_path)
    cache = ResultCache(backend, ttl_days=config.cache_ttl_days, clock=clock) if backend else None
    narrator = NarrativeGenerator(
        config.gemini_api_key,
        model=config.gemini_model,
        timeout=config.narrative_timeout_seconds,
    )
    return AnalysisContext(
        config=config,
        http_client=http,
        providers=build_providers(config, http, sleep),
        narrator=narrator,
        cache=cache,
        request_limiter=request_limiter,
        clock=clock,
    )
