from __future__ import annotations


class UrlRiskError(Exception):
    pass


class MalformedUrlError(UrlRiskError, ValueError):
    def __init__(self, raw: str, reason: str) -> None:
        super().__init__(f"malformed url {raw!r}: {reason}")
        self.raw = raw
        self.reason = reason


class RateLimitExceeded(UrlRiskError):
    def __init__(self, client_id: str) -> None:
        super().__init__(f"rate limit exceeded for {client_id}")
        self.client_id = client_id


class AnalysisFailedError(UrlRiskError):
    """Unexpected internal failure; provider errors never end up here."""
