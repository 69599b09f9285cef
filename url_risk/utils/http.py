from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

import httpx

from .rate_limit import AsyncRateLimiter

logger = logging.getLogger(__name__)

USER_AGENT = "url-risk/0.3"


class HttpClient:
    def __init__(
        self,
        timeout_seconds: float = 20.0,
        retries: int = 0,
        rate_limiter: Optional[AsyncRateLimiter] = None,
        max_bytes_per_response: int = 8 * 1024 * 1024,
    ) -> None:
        self.timeout = httpx.Timeout(timeout_seconds)
        self.retries = retries
        self.rate_limiter = rate_limiter
        self.max_bytes_per_response = max_bytes_per_response
        self.follow_redirects = True
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=self.follow_redirects,
            headers={"User-Agent": USER_AGENT},
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def get(self, url: str, headers: Optional[dict] = None, timeout: Optional[float] = None) -> httpx.Response:
        return await self.request("GET", url, headers=headers, timeout=timeout)

    async def post(
        self,
        url: str,
        json: Optional[dict] = None,
        data: Optional[dict] = None,
        headers: Optional[dict] = None,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        return await self.request("POST", url, json=json, data=data, headers=headers, timeout=timeout)

    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[dict] = None,
        json: Optional[dict] = None,
        data: Optional[dict] = None,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        method = method.upper()
        request_timeout = httpx.Timeout(timeout) if timeout is not None else self.timeout

        last_exc: Optional[Exception] = None
        for attempt in range(self.retries + 1):
            if self.rate_limiter:
                await self.rate_limiter.wait()

            start = time.monotonic()
            try:
                async with self._client.stream(
                    method, url, headers=headers, json=json, data=data, timeout=request_timeout
                ) as resp:
                    content = bytearray()
                    async for chunk in resp.aiter_bytes():
                        content.extend(chunk)
                        if len(content) > self.max_bytes_per_response:
                            raise httpx.DecodingError("response byte cap exceeded", request=resp.request)
                    logger.debug(
                        "http response",
                        extra={
                            "method": method,
                            "host": resp.request.url.host,
                            "status": resp.status_code,
                            "bytes_in": len(content),
                            "duration_ms": int((time.monotonic() - start) * 1000),
                        },
                    )
                    # aiter_bytes already decoded the body
                    headers = [
                        (k, v) for k, v in resp.headers.items() if k.lower() not in ("content-encoding", "content-length")
                    ]
                    return httpx.Response(
                        status_code=resp.status_code,
                        headers=headers,
                        content=bytes(content),
                        request=resp.request,
                    )
            except httpx.TransportError as exc:
                last_exc = exc
                logger.debug("http error", extra={"host": httpx.URL(url).host, "error": str(exc), "attempt": attempt})
                if attempt < self.retries:
                    await asyncio.sleep(0.2 * (attempt + 1))
        if last_exc:
            raise last_exc
        raise RuntimeError("http request failed")
