from __future__ import annotations

import ipaddress
import re
from urllib.parse import urlsplit, urlunsplit

from ..errors import MalformedUrlError

SCHEME_RE = re.compile(r"^([a-zA-Z][a-zA-Z0-9+.-]*)://")
HOST_RE = re.compile(r"^(?!-)[a-z0-9_.-]{1,253}(?<!-)$")
ALLOWED_SCHEMES = {"http", "https"}


def _to_punycode(host: str) -> str:
    try:
        return host.encode("idna").decode("ascii")
    except UnicodeError:
        return host


def _is_ip(host: str) -> bool:
    try:
        ipaddress.ip_address(host.strip("[]"))
        return True
    except ValueError:
        return False


def normalize_url(raw: str) -> str:
    """Canonical https form of ``raw`` used as cache key and provider identity.

    Root path is ``/``; any other path loses its trailing slashes. Query,
    fragment and userinfo are dropped.
    """
    value = (raw or "").strip()
    if not value:
        raise MalformedUrlError(raw, "empty input")
    if any(ch.isspace() for ch in value):
        raise MalformedUrlError(raw, "whitespace inside url")

    match = SCHEME_RE.match(value)
    if match:
        input_scheme = match.group(1).lower()
        if input_scheme not in ALLOWED_SCHEMES:
            raise MalformedUrlError(raw, f"unsupported scheme {input_scheme}")
    else:
        input_scheme = "https"
        value = f"https://{value}"

    try:
        parts = urlsplit(value)
        port = parts.port
    except ValueError as exc:
        raise MalformedUrlError(raw, str(exc)) from exc

    host = (parts.hostname or "").rstrip(".")
    if not host:
        raise MalformedUrlError(raw, "missing host")
    if _is_ip(host):
        if ":" in host:
            host = f"[{host}]"
    else:
        host = _to_punycode(host.lower())
        if "." not in host or ".." in host or not HOST_RE.match(host):
            raise MalformedUrlError(raw, f"invalid host {host}")

    if port is not None and not (port == 443 or (port == 80 and input_scheme == "http")):
        host = f"{host}:{port}"

    path = re.sub(r"/{2,}", "/", parts.path or "")
    path = path.rstrip("/") or "/"
    if not path.startswith("/"):
        path = "/" + path

    return urlunsplit(("https", host, path, "", ""))


def derive_domain(normalized_url: str) -> str | None:
    """Registrable lookup target for domain-based providers; ``None`` for IP hosts."""
    host = urlsplit(normalized_url).hostname
    if not host or _is_ip(host):
        return None
    return host
