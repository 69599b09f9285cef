"""Lexical red flags in the URL text itself. Reported alongside, never scored."""

from __future__ import annotations

import ipaddress
from urllib.parse import urlsplit

from .models.results import HeuristicsResult

PHISHING_KEYWORDS = ("login", "verify", "secure", "update")
MAX_HOST_LENGTH = 60
MAX_HOST_LABELS = 4
MAX_QUERY_LENGTH = 100


def _is_ip_literal(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
        return True
    except ValueError:
        return False


def evaluate_heuristics(url: str) -> HeuristicsResult:
    reasons: list[str] = []
    lower = (url or "").lower()

    if "@" in lower:
        reasons.append('URL contains "@" which can be used to obscure the real destination')
    if "xn--" in lower:
        reasons.append("URL contains punycode which can be used for lookalike domains")
    if any(word in lower for word in PHISHING_KEYWORDS):
        reasons.append("URL contains sensitive keywords often used in phishing (login/verify/secure/update)")

    target = lower if "://" in lower else f"https://{lower}"
    try:
        parts = urlsplit(target)
        host = parts.hostname or ""
    except ValueError:
        parts, host = None, ""

    if host:
        if len(host) > MAX_HOST_LENGTH:
            reasons.append("Domain name is unusually long")
        if len(host.split(".")) > MAX_HOST_LABELS:
            reasons.append("Domain has many subdomains, which can be used to mimic trusted sites")
        if _is_ip_literal(host):
            reasons.append("Domain looks like an IP address, which is often used in malicious links")
    if parts is not None and len(parts.query) > MAX_QUERY_LENGTH:
        reasons.append("URL has a very long query string, which may hide tracking or malicious parameters")

    return HeuristicsResult(url=url, is_suspicious=bool(reasons), reasons=reasons)
