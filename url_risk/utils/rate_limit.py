from __future__ import annotations

import asyncio
import time
from typing import Callable


class AsyncRateLimiter:
    """Paces outbound provider requests to ``max_per_minute``."""

    def __init__(self, max_per_minute: int) -> None:
        self.max_per_minute = max(1, max_per_minute)
        self.interval = 60.0 / self.max_per_minute
        self._lock = asyncio.Lock()
        self._next_time = time.monotonic()

    async def wait(self) -> None:
        async with self._lock:
            now = time.monotonic()
            if now < self._next_time:
                await asyncio.sleep(self._next_time - now)
            self._next_time = max(now, self._next_time) + self.interval


class RateLimiter:
    """Admission check for inbound analysis requests, keyed by client."""

    def allow(self, key: str) -> bool:
        raise NotImplementedError


class InMemoryRateLimiter(RateLimiter):
    """Fixed-window counter per key; suitable for a single process only."""

    def __init__(
        self,
        max_requests: int = 30,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max(1, max_requests)
        self.window_seconds = window_seconds
        self.clock = clock
        self._windows: dict[str, tuple[float, int]] = {}

    def allow(self, key: str) -> bool:
        now = self.clock()
        window_start, count = self._windows.get(key, (now, 0))
        if now - window_start > self.window_seconds:
            window_start, count = now, 0
        if count >= self.max_requests:
            return False
        self._windows[key] = (window_start, count + 1)
        return True

    def reset(self, key: str | None = None) -> None:
        if key is None:
            self._windows.clear()
        else:
            self._windows.pop(key, None)
