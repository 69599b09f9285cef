from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Optional

from ..errors import AnalysisFailedError, RateLimitExceeded, UrlRiskError
from ..models.config import AnalyzerConfig
from ..models.results import AnalysisResult, ProviderSuccess
from ..modules import consistency, scoring
from ..modules.narrative import build_context as build_narrative_context
from ..providers.screenshot import NAME as SCREENSHOT
from ..providers.screenshot import decode_screenshot
from ..utils.normalize import derive_domain, normalize_url
from .context import AnalysisContext, build_context
from .fanout import fan_out

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    normalizing = "normalizing"
    cache_check = "cache_check"
    hit_fresh = "hit_fresh"
    hit_healed = "hit_healed"
    miss = "miss"
    fan_out = "fan_out"
    scoring = "scoring"
    generating = "generating"
    enforcing = "enforcing"
    caching = "caching"
    done = "done"


def _stage(stage: Stage, url: Optional[str]) -> None:
    logger.debug("analysis stage", extra={"stage": stage.value, "url": url})


def heal(cached: AnalysisResult) -> Optional[AnalysisResult]:
    """Re-enforce a cached result; returns the corrected copy, or None if already consistent."""
    enforced = consistency.enforce(cached.narrative, cached.score)
    if enforced.narrative == cached.narrative and enforced.score == cached.score:
        return None
    return cached.model_copy(update={"narrative": enforced.narrative, "score": enforced.score})


def _screenshot_bytes(raw_results: dict) -> Optional[bytes]:
    result = raw_results.get(SCREENSHOT)
    if isinstance(result, ProviderSuccess):
        return decode_screenshot(result.payload)
    return None


async def _analyze(url: str, context: AnalysisContext) -> AnalysisResult:
    _stage(Stage.cache_check, url)
    if context.cache is not None:
        cached = context.cache.lookup(url)
        if cached is not None:
            healed = heal(cached)
            if healed is None:
                _stage(Stage.hit_fresh, url)
                _stage(Stage.done, url)
                return cached
            _stage(Stage.hit_healed, url)
            context.cache.touch(url, healed)
            _stage(Stage.done, url)
            return healed
    _stage(Stage.miss, url)

    domain = derive_domain(url)
    _stage(Stage.fan_out, url)
    raw_results = await fan_out(url, domain, context.providers)

    _stage(Stage.scoring, url)
    computed = scoring.score(raw_results, now=context.clock())
    tier = scoring.severity_tier(computed)

    _stage(Stage.generating, url)
    narrative_context = build_narrative_context(url, domain, raw_results, tier, computed)
    narrative = await context.narrator.generate(narrative_context, _screenshot_bytes(raw_results))

    _stage(Stage.enforcing, url)
    enforced = consistency.enforce(narrative, computed)
    if enforced.score != computed:
        logger.info(
            "score raised by narrative floor",
            extra={"url": url, "computed": computed, "floor": enforced.floor, "final": enforced.score},
        )
    result = AnalysisResult(narrative=enforced.narrative, score=enforced.score, raw_results=raw_results)

    _stage(Stage.caching, url)
    if context.cache is not None:
        context.cache.put(url, result)
    _stage(Stage.done, url)
    return result


async def analyze(raw_url: str, context: AnalysisContext, client_id: Optional[str] = None) -> AnalysisResult:
    """Analyze one URL end to end.

    Raises ``MalformedUrlError`` before any provider is contacted,
    ``RateLimitExceeded`` when the context's request limiter refuses
    ``client_id``, and ``AnalysisFailedError`` for anything unexpected.
    Provider failures never raise; they are recorded in ``raw_results``.
    """
    if client_id is not None and context.request_limiter is not None:
        if not context.request_limiter.allow(client_id):
            logger.warning("analysis rate limited", extra={"client_id": client_id})
            raise RateLimitExceeded(client_id)

    _stage(Stage.normalizing, None)
    url = normalize_url(raw_url)
    try:
        return await _analyze(url, context)
    except UrlRiskError:
        raise
    except Exception as exc:
        logger.exception("analysis failed", extra={"url": url})
        raise AnalysisFailedError(f"analysis of {url} failed: {exc}") from exc


async def run_analysis(config: AnalyzerConfig, raw_url: str) -> AnalysisResult:
    context = build_context(config)
    try:
        return await analyze(raw_url, context)
    finally:
        await context.close()


def run_analysis_sync(config: AnalyzerConfig, raw_url: str) -> AnalysisResult:
    return asyncio.run(run_analysis(config, raw_url))
