"""Cache entry model for registry lookups."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class CacheEntry:
    """Outcome of one ``name@version`` lookup.

    A ``publish_date`` of ``None`` together with ``error`` records a fetch that
    exhausted its retries. ``None`` without ``error`` means the registry had no
    date for the version.
    """

    publish_date: datetime | None
    timestamp: float
    error: str | None = None


@dataclass(frozen=True)
class CacheStats:
    keys: int
    hits: int
    misses: int

    def to_dict(self) -> dict[str, int]:
        return {"keys": self.keys, "hits": self.hits, "misses": self.misses}
