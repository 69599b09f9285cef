from __future__ import annotations

import hashlib
import json
import os
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from ..models.results import AnalysisResult, CacheEntry


class CacheBase:
    """Storage for analysis results keyed by normalized URL.

    Backends store and return whatever they are given; freshness is decided
    by the caller.
    """

    def get(self, key: str) -> Optional[CacheEntry]:
        raise NotImplementedError

    def put(self, key: str, result: AnalysisResult, created_at: datetime) -> None:
        raise NotImplementedError


def _to_timestamp(value: datetime) -> float:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


class SqliteCache(CacheBase):
    def __init__(self, path: str) -> None:
        self.path = path
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self) -> None:
        with sqlite3.connect(self.path) as conn:
            conn.execute(
                "CREATE TABLE IF NOT EXISTS scan_results (url TEXT PRIMARY KEY, risk_score INTEGER, data TEXT, created_at REAL)"
            )
            conn.commit()

    def get(self, key: str) -> Optional[CacheEntry]:
        with sqlite3.connect(self.path) as conn:
            row = conn.execute("SELECT data, created_at FROM scan_results WHERE url=?", (key,)).fetchone()
        if not row:
            return None
        return CacheEntry(
            key=key,
            result=AnalysisResult.model_validate_json(row[0]),
            created_at=datetime.fromtimestamp(row[1], tz=timezone.utc),
        )

    def put(self, key: str, result: AnalysisResult, created_at: datetime) -> None:
        with sqlite3.connect(self.path) as conn:
            conn.execute(
                "INSERT OR REPLACE INTO scan_results (url, risk_score, data, created_at) VALUES (?, ?, ?, ?)",
                (key, result.score, result.model_dump_json(), _to_timestamp(created_at)),
            )
            conn.commit()


class FileCache(CacheBase):
    def __init__(self, path: str) -> None:
        self.path = path
        Path(path).mkdir(parents=True, exist_ok=True)

    def _file_path(self, key: str) -> str:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return os.path.join(self.path, f"{digest}.json")

    def get(self, key: str) -> Optional[CacheEntry]:
        fp = self._file_path(key)
        if not os.path.exists(fp):
            return None
        with open(fp, "r", encoding="utf-8") as f:
            return CacheEntry.model_validate(json.load(f))

    def put(self, key: str, result: AnalysisResult, created_at: datetime) -> None:
        entry = CacheEntry(key=key, result=result, created_at=created_at)
        with open(self._file_path(key), "w", encoding="utf-8") as f:
            json.dump(entry.model_dump(mode="json"), f, indent=2)


class MemoryCache(CacheBase):
    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        return entry.model_copy(deep=True) if entry else None

    def put(self, key: str, result: AnalysisResult, created_at: datetime) -> None:
        self._entries[key] = CacheEntry(key=key, result=result.model_copy(deep=True), created_at=created_at)


def build_cache(cache_mode: str, base_path: str) -> Optional[CacheBase]:
    if cache_mode == "sqlite":
        return SqliteCache(os.path.join(base_path, "cache.db"))
    if cache_mode == "files":
        return FileCache(os.path.join(base_path, "cache"))
    if cache_mode == "memory":
        return MemoryCache()
    return None
