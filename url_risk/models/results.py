from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


class SeverityTier(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class ProviderSuccess(BaseModel):
    status: Literal["ok"] = "ok"
    payload: dict = Field(default_factory=dict)

    def to_wire(self) -> dict:
        return self.payload


class ProviderUnavailable(BaseModel):
    status: Literal["unavailable"] = "unavailable"
    reason: Optional[str] = None

    def to_wire(self) -> dict:
        wire: dict = {"unavailable": True}
        if self.reason:
            wire["reason"] = self.reason
        return wire


class ProviderFailed(BaseModel):
    status: Literal["failed"] = "failed"
    reason: str

    def to_wire(self) -> dict:
        return {"error": self.reason}


class ProviderPending(BaseModel):
    status: Literal["pending"] = "pending"
    analysis_id: Optional[str] = None

    def to_wire(self) -> dict:
        wire: dict = {"pending": True}
        if self.analysis_id:
            wire["analysis_id"] = self.analysis_id
        return wire


ProviderResult = Annotated[
    Union[ProviderSuccess, ProviderUnavailable, ProviderFailed, ProviderPending],
    Field(discriminator="status"),
]


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


# Typed views over the payload fields the scorer reads. Everything else in a
# provider payload is passed through untouched.


class SafeBrowsingMatches(BaseModel):
    matches: list[dict] = Field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: dict) -> "SafeBrowsingMatches":
        matches = payload.get("matches")
        return cls(matches=[m for m in matches if isinstance(m, dict)] if isinstance(matches, list) else [])


class ReputationStats(BaseModel):
    malicious: int
    suspicious: int = 0
    harmless: int = 0
    undetected: int = 0

    @staticmethod
    def stats_from(payload: dict) -> Optional[dict]:
        data = payload.get("data") if isinstance(payload, dict) else None
        attributes = data.get("attributes") if isinstance(data, dict) else None
        if not isinstance(attributes, dict):
            return None
        stats = attributes.get("last_analysis_stats") or attributes.get("stats")
        if isinstance(stats, dict) and _is_number(stats.get("malicious")):
            return stats
        return None

    @classmethod
    def from_payload(cls, payload: dict) -> Optional["ReputationStats"]:
        stats = cls.stats_from(payload)
        if stats is None:
            return None
        return cls(**{k: int(stats[k]) for k in ("malicious", "suspicious", "harmless", "undetected") if _is_number(stats.get(k))})


class RegistrationInfo(BaseModel):
    created_date: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: dict) -> "RegistrationInfo":
        record = payload.get("WhoisRecord")
        if not isinstance(record, dict):
            return cls()
        registry = record.get("registryData") if isinstance(record.get("registryData"), dict) else {}
        # dataError is an error message, never a creation date.
        for candidate in (record.get("createdDate"), registry.get("createdDate")):
            if isinstance(candidate, str) and candidate.strip():
                return cls(created_date=candidate.strip())
        return cls()


class CertificateGrades(BaseModel):
    grades: list[str] = Field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: dict) -> "CertificateGrades":
        endpoints = payload.get("endpoints")
        if not isinstance(endpoints, list):
            return cls()
        grades = [e.get("grade") for e in endpoints if isinstance(e, dict)]
        return cls(grades=[g for g in grades if isinstance(g, str) and g])

    @property
    def worst(self) -> Optional[str]:
        return sorted(self.grades)[0] if self.grades else None


class AnalysisResult(BaseModel):
    narrative: str
    score: int = Field(ge=0, le=100)
    raw_results: dict[str, ProviderResult] = Field(default_factory=dict)

    def to_wire(self) -> dict:
        return {
            "ai_summary": self.narrative,
            "risk_score": self.score,
            "technical_details": {name: result.to_wire() for name, result in self.raw_results.items()},
        }


class CacheEntry(BaseModel):
    key: str
    result: AnalysisResult
    created_at: datetime


class HeuristicsResult(BaseModel):
    url: str
    is_suspicious: bool
    reasons: list[str] = Field(default_factory=list)
