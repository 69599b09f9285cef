import asyncio
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from url_risk.errors import AnalysisFailedError, MalformedUrlError, RateLimitExceeded
from url_risk.models.config import AnalyzerConfig, CacheMode
from url_risk.models.results import AnalysisResult, ProviderFailed, ProviderSuccess, ProviderUnavailable
from url_risk.modules.consistency import HIGH_DISCLAIMER
from url_risk.modules.narrative import UNAVAILABLE_TEXT, NarrativeGenerator
from url_risk.modules.scoring import severity_tier
from url_risk.pipeline.context import AnalysisContext, build_context
from url_risk.pipeline.result_cache import ResultCache
from url_risk.pipeline.runner import analyze, heal
from url_risk.providers.base import Provider
from url_risk.providers.virustotal import VirusTotalProvider
from url_risk.utils.cache import MemoryCache
from url_risk.utils.http import HttpClient
from url_risk.utils.rate_limit import InMemoryRateLimiter

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)
CLEAN_VT = {"data": {"attributes": {"last_analysis_stats": {"malicious": 0, "suspicious": 0}}}}
OLD_WHOIS = {"WhoisRecord": {"createdDate": "2001-03-04T00:00:00Z"}}
GRADE_A = {"endpoints": [{"grade": "A"}]}


class _Static(Provider):
    def __init__(self, name, payload=None, target_kind="url", result=None):
        super().__init__(http=None)
        self.name = name
        self.target_kind = target_kind
        self.result = result or ProviderSuccess(payload=payload or {})
        self.calls = 0

    async def check(self, target):
        self.calls += 1
        return self.result


class _Narrator:
    def __init__(self, text="No threats were found. The site appears safe.", error=None):
        self.text = text
        self.error = error
        self.contexts = []

    async def generate(self, context, screenshot=None):
        self.contexts.append(context)
        if self.error:
            raise self.error
        return self.text


class _Http:
    async def close(self):
        pass


def _providers(safe_browsing=None, whois=None, extra=()):
    return [
        _Static("virusTotal", CLEAN_VT),
        _Static("googleSafeBrowsing", safe_browsing or {}),
        _Static("whois", whois or OLD_WHOIS, target_kind="domain"),
        _Static("sslLabs", GRADE_A, target_kind="domain"),
        _Static("screenshot", result=ProviderUnavailable(reason="not configured")),
        *extra,
    ]


def _context(providers=None, narrator=None, cache=True, limiter=None, clock=None):
    clock = clock or (lambda: NOW)
    return AnalysisContext(
        config=AnalyzerConfig(),
        http_client=_Http(),
        providers=providers if providers is not None else _providers(),
        narrator=narrator or _Narrator(),
        cache=ResultCache(MemoryCache(), clock=clock) if cache else None,
        request_limiter=limiter,
        clock=clock,
    )


def test_clean_site():
    context = _context()
    result = asyncio.run(analyze("example.com", context))
    wire = result.to_wire()

    assert wire["risk_score"] == 10
    assert wire["ai_summary"] == "No threats were found. The site appears safe."
    assert set(wire["technical_details"]) == {"virusTotal", "googleSafeBrowsing", "whois", "sslLabs", "screenshot"}
    assert wire["technical_details"]["screenshot"] == {"unavailable": True, "reason": "not configured"}
    assert wire["technical_details"]["sslLabs"] == GRADE_A
    assert context.narrator.contexts[0]["severity_hint"] == "low"
    assert "screenshot" not in context.narrator.contexts[0]


def test_blocklisted_site_with_reassuring_narrative():
    context = _context(
        providers=_providers(safe_browsing={"matches": [{"threatType": "SOCIAL_ENGINEERING"}]}),
        narrator=_Narrator("It seems safe to use."),
    )
    result = asyncio.run(analyze("https://phish.example/", context))

    assert result.score == 80
    assert result.narrative == HIGH_DISCLAIMER
    assert context.narrator.contexts[0]["severity_hint"] == "high"


def test_alarming_narrative_raises_low_score():
    context = _context(narrator=_Narrator("This download page offers cracked software; avoid it."))
    result = asyncio.run(analyze("https://example.com/", context))

    assert result.score == 70
    assert result.narrative == "This download page offers cracked software; avoid it."


def test_repeat_within_ttl_is_served_from_cache():
    context = _context()
    first = asyncio.run(analyze("https://example.com/", context))
    second = asyncio.run(analyze("HTTP://EXAMPLE.com", context))

    assert second.to_wire() == first.to_wire()
    assert all(p.calls == 1 for p in context.providers)
    assert len(context.narrator.contexts) == 1


def test_stale_entry_is_recomputed():
    times = [NOW]
    context = _context(clock=lambda: times[0])
    asyncio.run(analyze("https://example.com/", context))

    times[0] = NOW + timedelta(days=31)
    asyncio.run(analyze("https://example.com/", context))
    assert all(p.calls == 2 for p in context.providers)


def test_inconsistent_cached_entry_is_healed_and_touched():
    times = [NOW - timedelta(days=10)]
    context = _context(clock=lambda: times[0])
    stale_view = AnalysisResult(narrative="This page spreads malware.", score=10, raw_results={})
    context.cache.put("https://example.com/", stale_view)

    times[0] = NOW
    result = asyncio.run(analyze("https://example.com/", context))

    assert result.score == 70
    assert result.narrative == "This page spreads malware."
    assert all(p.calls == 0 for p in context.providers)
    entry = context.cache.backend.get("https://example.com/")
    assert entry.result.score == 70
    assert entry.created_at == NOW


def test_heal_leaves_consistent_entries_alone():
    consistent = AnalysisResult(narrative="Nothing stands out.", score=10, raw_results={})
    assert heal(consistent) is None


def test_malformed_url_never_reaches_providers():
    context = _context()
    with pytest.raises(MalformedUrlError):
        asyncio.run(analyze("ftp://example.com", context))
    assert all(p.calls == 0 for p in context.providers)


def test_failed_provider_is_reported_without_failing_the_analysis():
    providers = _providers()
    providers[0] = _Static("virusTotal", result=ProviderFailed(reason="HTTP 500"))
    result = asyncio.run(analyze("https://example.com/", _context(providers=providers)))

    assert result.to_wire()["technical_details"]["virusTotal"] == {"error": "HTTP 500"}
    assert result.score == 10


def test_ip_host_skips_domain_providers():
    result = asyncio.run(analyze("http://192.168.0.1/", _context()))
    assert set(result.raw_results) == {"virusTotal", "googleSafeBrowsing", "screenshot"}


def test_young_domain_scores_from_registration_age():
    whois = {"WhoisRecord": {"createdDate": (NOW - timedelta(days=2)).isoformat()}}
    result = asyncio.run(analyze("https://new.example/", _context(providers=_providers(whois=whois))))
    assert result.score == 35


def test_rate_limited_client():
    context = _context(limiter=InMemoryRateLimiter(max_requests=1, clock=lambda: 0.0))
    asyncio.run(analyze("https://example.com/", context, client_id="10.0.0.1"))
    with pytest.raises(RateLimitExceeded):
        asyncio.run(analyze("https://example.com/", context, client_id="10.0.0.1"))
    asyncio.run(analyze("https://example.com/", context, client_id="10.0.0.2"))


def test_unexpected_error_is_wrapped():
    context = _context(narrator=_Narrator(error=RuntimeError("boom")))
    with pytest.raises(AnalysisFailedError) as info:
        asyncio.run(analyze("https://example.com/", context))
    assert isinstance(info.value.__cause__, RuntimeError)


def test_analysis_without_cache():
    context = _context(cache=False)
    asyncio.run(analyze("https://example.com/", context))
    asyncio.run(analyze("https://example.com/", context))
    assert all(p.calls == 2 for p in context.providers)


def test_first_analysis_with_nothing_configured(monkeypatch):
    requests = []

    async def no_network(self, method, url, **kwargs):
        requests.append(url)
        raise AssertionError(f"unexpected request to {url}")

    monkeypatch.setattr(HttpClient, "request", no_network)
    context = build_context(AnalyzerConfig(cache=CacheMode.memory, enable_ssl_labs=False), clock=lambda: NOW)

    async def _run():
        try:
            return await analyze("example.com", context)
        finally:
            await context.close()

    result = asyncio.run(_run())
    assert requests == []
    assert set(result.raw_results) == {"virusTotal", "googleSafeBrowsing", "whois", "sslLabs", "screenshot"}
    assert all(r.status == "unavailable" for r in result.raw_results.values())
    assert result.score == 0
    assert severity_tier(result.score).value == "low"
    assert result.narrative == UNAVAILABLE_TEXT
    assert context.cache.lookup("https://example.com/") == result


class _VirusTotalHttp:
    """Lookup 404s, submit succeeds, the second poll reports a clean verdict."""

    def __init__(self):
        self.analysis_polls = 0

    async def get(self, url, headers=None, timeout=None):
        if "/analyses/an-9" in url:
            self.analysis_polls += 1
            stats = {"malicious": 0, "suspicious": 0} if self.analysis_polls == 2 else {}
            return httpx.Response(200, json={"data": {"attributes": {"stats": stats}}})
        return httpx.Response(404, json={})

    async def post(self, url, json=None, data=None, headers=None, timeout=None):
        return httpx.Response(200, json={"data": {"id": "an-9"}})

    async def close(self):
        pass


def test_new_domain_with_submitted_reputation_lookup():
    sleeps = []

    async def fake_sleep(delay):
        sleeps.append(delay)

    http = _VirusTotalHttp()
    whois = {"WhoisRecord": {"createdDate": (NOW - timedelta(days=2)).isoformat()}}
    unavailable = ProviderUnavailable(reason="not configured")
    providers = [
        VirusTotalProvider("vt-key", http, fake_sleep),
        _Static("googleSafeBrowsing", result=unavailable),
        _Static("whois", whois, target_kind="domain"),
        _Static("sslLabs", result=unavailable, target_kind="domain"),
        _Static("screenshot", result=unavailable),
    ]
    context = _context(providers=providers, narrator=NarrativeGenerator(None))

    result = asyncio.run(analyze("https://fresh.example/", context))

    assert http.analysis_polls == 2
    assert sleeps == [2.5, 2.5]
    assert result.raw_results["virusTotal"].status == "ok"
    assert result.score == 25
    assert severity_tier(result.score).value == "low"
