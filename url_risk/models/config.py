from __future__ import annotations

import os
from enum import Enum
from typing import Optional

from pydantic import BaseModel

SECRET_FIELDS = (
    "virustotal_api_key",
    "google_safe_browsing_api_key",
    "whoisxml_api_key",
    "urlscan_api_key",
    "gemini_api_key",
)

ENV_VARS = {
    "virustotal_api_key": "VIRUSTOTAL_API_KEY",
    "google_safe_browsing_api_key": "GOOGLE_SAFE_BROWSING_API_KEY",
    "whoisxml_api_key": "WHOISXML_API_KEY",
    "urlscan_api_key": "URLSCAN_API_KEY",
    "gemini_api_key": "GEMINI_API_KEY",
    "gemini_model": "GEMINI_MODEL",
}


class CacheMode(str, Enum):
    sqlite = "sqlite"
    files = "files"
    memory = "memory"
    none = "none"


class AnalyzerConfig(BaseModel):
    virustotal_api_key: Optional[str] = None
    google_safe_browsing_api_key: Optional[str] = None
    whoisxml_api_key: Optional[str] = None
    urlscan_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-1.5-flash-latest"
    enable_ssl_labs: bool = True

    cache: CacheMode = CacheMode.sqlite
    cache_path: str = "./.url_risk_cache"
    cache_ttl_days: int = 30

    timeout_seconds: float = 20.0
    retries: int = 0
    max_requests_per_minute: int = 120

    reputation_poll_attempts: int = 3
    reputation_poll_delay_seconds: float = 2.5
    snapshot_poll_attempts: int = 3
    snapshot_poll_delay_seconds: float = 3.0
    whois_retry_delay_seconds: float = 1.2
    narrative_timeout_seconds: float = 20.0

    @classmethod
    def from_env(cls, **overrides) -> "AnalyzerConfig":
        values = {}
        for field, env_name in ENV_VARS.items():
            value = os.environ.get(env_name)
            if value:
                values[field] = value
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def redacted(self) -> dict:
        data = self.model_dump(mode="json")
        for secret in SECRET_FIELDS:
            if data.get(secret):
                data[secret] = "***"
        return data
