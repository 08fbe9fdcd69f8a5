"""In-memory TTL cache for registry lookups.

Entries expire lazily: a lookup past the TTL drops the entry and counts as a
miss. There is no background sweep.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import datetime

from .models import CacheEntry, CacheStats


class PublishDateCache:
    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.time) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is not None and self._clock() - entry.timestamp >= self.ttl_seconds:
            del self._entries[key]
            entry = None
        if entry is None:
            self._misses += 1
        else:
            self._hits += 1
        return entry

    def set(self, key: str, publish_date: datetime | None, error: str | None = None) -> CacheEntry:
        entry = CacheEntry(publish_date=publish_date, timestamp=self._clock(), error=error)
        self._entries[key] = entry
        return entry

    def clear(self) -> None:
        self._entries.clear()
        self._hits = 0
        self._misses = 0

    def stats(self) -> CacheStats:
        return CacheStats(keys=len(self._entries), hits=self._hits, misses=self._misses)

    def __len__(self) -> int:
        return len(self._entries)
