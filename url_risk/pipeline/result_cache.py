from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from ..models.results import AnalysisResult, CacheEntry
from ..utils.cache import CacheBase

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ResultCache:
    """Freshness policy over a storage backend.

    Entries are valid for ``ttl_days`` from ``created_at``; expiry is decided
    at read time and stale entries are simply ignored.
    """

    def __init__(self, backend: CacheBase, ttl_days: int = 30, clock: Clock = utc_now) -> None:
        self.backend = backend
        self.ttl = timedelta(days=ttl_days)
        self.clock = clock

    def is_fresh(self, entry: CacheEntry) -> bool:
        created = entry.created_at
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        age = self.clock() - created
        return timedelta(0) <= age < self.ttl

    def lookup(self, key: str) -> Optional[AnalysisResult]:
        try:
            entry = self.backend.get(key)
        except Exception as exc:
            logger.warning("cache read failed", extra={"key": key, "error": repr(exc)})
            return None
        if entry is None or not self.is_fresh(entry):
            return None
        return entry.result

    def put(self, key: str, result: AnalysisResult) -> None:
        try:
            self.backend.put(key, result, self.clock())
        except Exception as exc:
            logger.warning("cache write failed", extra={"key": key, "error": repr(exc)})

    def touch(self, key: str, result: AnalysisResult) -> None:
        """Rewrite a healed entry; its freshness window starts over."""
        self.put(key, result)
