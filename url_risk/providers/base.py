"""Provider adapter contract.

An adapter wraps one external intelligence source. ``analyze`` never raises:
missing configuration becomes ``ProviderUnavailable`` and any transport,
status or decoding problem becomes ``ProviderFailed``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

import httpx

from ..models.results import ProviderFailed, ProviderResult, ProviderUnavailable
from ..utils.http import HttpClient

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class ProviderError(Exception):
    pass


class ProviderHTTPError(ProviderError):
    def __init__(self, status_code: int | None, message: str | None = None) -> None:
        super().__init__(message or f"HTTP {status_code}")
        self.status_code = status_code


class ProviderNotFound(ProviderHTTPError):
    def __init__(self) -> None:
        super().__init__(404)


async def fetch_json(
    http: HttpClient,
    method: str,
    url: str,
    *,
    timeout: float,
    headers: Optional[dict] = None,
    json: Optional[dict] = None,
    data: Optional[dict] = None,
) -> Any:
    if method.upper() == "GET":
        call = http.get(url, headers=headers, timeout=timeout)
    else:
        call = http.post(url, json=json, data=data, headers=headers, timeout=timeout)
    resp = await asyncio.wait_for(call, timeout)
    if resp.status_code == 404:
        raise ProviderNotFound()
    if not 200 <= resp.status_code < 300:
        raise ProviderHTTPError(resp.status_code)
    try:
        return resp.json()
    except ValueError as exc:
        raise ProviderHTTPError(resp.status_code, "malformed JSON") from exc


class Provider:
    # Key in the raw-result bag and in technical_details.
    name: str
    # "url" providers receive the normalized URL, "domain" providers the host.
    target_kind: str = "url"
    timeout: float = 15.0

    def __init__(self, http: HttpClient, sleep: Sleep = asyncio.sleep) -> None:
        self.http = http
        self.sleep = sleep

    def is_available(self) -> bool:
        return True

    async def check(self, target: str) -> ProviderResult:
        raise NotImplementedError

    async def analyze(self, target: str) -> ProviderResult:
        if not self.is_available():
            return ProviderUnavailable(reason="not configured")
        try:
            return await self.check(target)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning("provider timed out", extra={"provider": self.name})
            return ProviderFailed(reason="timeout")
        except ProviderError as exc:
            logger.warning("provider failed", extra={"provider": self.name, "error": str(exc)})
            return ProviderFailed(reason=str(exc))
        except Exception as exc:
            logger.warning("provider error", extra={"provider": self.name, "error": repr(exc)})
            return ProviderFailed(reason=str(exc) or type(exc).__name__)
