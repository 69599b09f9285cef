from __future__ import annotations

from datetime import datetime, timezone
from typing import Mapping, Optional

from ..models.results import (
    CertificateGrades,
    ProviderResult,
    ProviderSuccess,
    RegistrationInfo,
    ReputationStats,
    SafeBrowsingMatches,
    SeverityTier,
)
from ..providers.safe_browsing import NAME as SAFE_BROWSING
from ..providers.ssl_labs import NAME as SSL_LABS
from ..providers.virustotal import NAME as VIRUSTOTAL
from ..providers.whois import NAME as WHOIS

MAX_SCORE = 100

SCORING_RUBRIC = [
    {"id": "blocklist.match", "label": "Listed by malware/phishing URL list", "points": 70},
    {"id": "reputation.malicious", "label": "Reputation engines flag as malicious", "points": 60},
    {"id": "reputation.suspicious", "label": "Reputation engines flag as suspicious", "points": 30},
    {"id": "registration.age_3d", "label": "Domain registered within 3 days", "points": 25},
    {"id": "registration.age_7d", "label": "Domain registered within 7 days", "points": 20},
    {"id": "registration.age_30d", "label": "Domain registered within 30 days", "points": 10},
    {"id": "certificate.grade_b_or_better", "label": "Worst certificate grade sorts at or before B", "points": 10},
    {"id": "certificate.grade_failing", "label": "Certificate grade F or T", "points": 20},
]

_DATE_FORMATS = ("%Y-%m-%dT%H:%M:%S%z", "%Y-%m-%d %H:%M:%S%z", "%Y-%m-%d %H:%M:%S", "%Y-%m-%d")


def _payload(raw_results: Mapping[str, ProviderResult], name: str) -> Optional[dict]:
    result = raw_results.get(name)
    if isinstance(result, ProviderSuccess):
        return result.payload
    return None


def parse_date(value: str) -> Optional[datetime]:
    text = value.strip()
    if text.endswith(" UTC"):
        text = text[:-4] + "+0000"
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed: Optional[datetime] = None
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        for fmt in _DATE_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def domain_age_days(raw_results: Mapping[str, ProviderResult], now: datetime) -> Optional[int]:
    payload = _payload(raw_results, WHOIS)
    if payload is None:
        return None
    info = RegistrationInfo.from_payload(payload)
    created = parse_date(info.created_date) if info.created_date else None
    if created is None:
        return None
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return max(0, (now - created).days)


def score_rules(raw_results: Mapping[str, ProviderResult], now: datetime) -> list[dict]:
    """Rules from ``SCORING_RUBRIC`` that fire for this result bag."""
    by_id = {rule["id"]: rule for rule in SCORING_RUBRIC}
    fired: list[str] = []

    blocklist = _payload(raw_results, SAFE_BROWSING)
    if blocklist is not None and SafeBrowsingMatches.from_payload(blocklist).matches:
        fired.append("blocklist.match")

    reputation = _payload(raw_results, VIRUSTOTAL)
    stats = ReputationStats.from_payload(reputation) if reputation is not None else None
    if stats is not None:
        if stats.malicious > 0:
            fired.append("reputation.malicious")
        elif stats.suspicious > 0:
            fired.append("reputation.suspicious")

    age = domain_age_days(raw_results, now)
    if age is not None:
        if age <= 3:
            fired.append("registration.age_3d")
        elif age <= 7:
            fired.append("registration.age_7d")
        elif age <= 30:
            fired.append("registration.age_30d")

    certificate = _payload(raw_results, SSL_LABS)
    worst = CertificateGrades.from_payload(certificate).worst if certificate is not None else None
    if worst is not None:
        # Plain string ordering: "A" < "A+" < "B" < "F" < "T".
        if worst <= "B":
            fired.append("certificate.grade_b_or_better")
        if worst in ("F", "T"):
            fired.append("certificate.grade_failing")

    return [by_id[rule_id] for rule_id in fired]


def clamp(value: int) -> int:
    return max(0, min(MAX_SCORE, value))


def score(raw_results: Mapping[str, ProviderResult], now: Optional[datetime] = None) -> int:
    now = now or datetime.now(timezone.utc)
    return clamp(sum(int(rule["points"]) for rule in score_rules(raw_results, now)))


def severity_tier(risk_score: int) -> SeverityTier:
    if risk_score >= 70:
        return SeverityTier.high
    if risk_score >= 40:
        return SeverityTier.medium
    return SeverityTier.low


def final_score(computed: int, floor: int) -> int:
    return clamp(max(computed, floor))
