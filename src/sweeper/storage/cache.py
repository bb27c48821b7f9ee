"""Process-local TTL cache.

Shields the durable store from read amplification. Nothing here is shared
across processes: a write on one instance does not invalidate another
instance's entries, so staleness across instances is bounded only by TTL.
Correctness depends on explicit invalidation of keys this process wrote.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

CLEANUP_EVERY_N_SETS = 100


def cache_key(namespace: str, key: str) -> str:
    """Derive the cache key for a logical key within a namespace.

    Every call site that caches or invalidates goes through this function,
    so one logical key always maps to the same cache key per namespace.
    """
    return f"{namespace}:{key}"


@dataclass
class CacheEntry:
    data: Any
    expiry: float
    created: float = field(default_factory=time.monotonic)
    last_accessed: float = field(default_factory=time.monotonic)


class TTLCache:
    """In-memory key/value cache with per-entry expiry and hit statistics."""

    def __init__(self, default_ttl: float = 60.0) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self.default_ttl = default_ttl
        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._evictions = 0

    def get(self, key: str) -> Any:  # noqa: ANN401
        """Return cached data, or None when missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None

        now = time.monotonic()
        if now > entry.expiry:
            del self._entries[key]
            self._evictions += 1
            self._misses += 1
            return None

        self._hits += 1
        entry.last_accessed = now
        return entry.data

    def set(self, key: str, data: Any, ttl: float | None = None) -> None:  # noqa: ANN401
        """Store data for ``ttl`` seconds (default TTL when not given)."""
        now = time.monotonic()
        self._entries[key] = CacheEntry(
            data=data,
            expiry=now + (ttl or self.default_ttl),
            created=now,
            last_accessed=now,
        )
        self._sets += 1

        if self._sets % CLEANUP_EVERY_N_SETS == 0:
            self.cleanup()

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def cleanup(self) -> int:
        """Drop expired entries. Returns the number removed."""
        now = time.monotonic()
        expired = [k for k, entry in self._entries.items() if now > entry.expiry]
        for k in expired:
            del self._entries[k]
        self._evictions += len(expired)
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()
        self._hits = self._misses = self._sets = self._evictions = 0

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> dict[str, Any]:
        total = self._hits + self._misses
        hit_rate = f"{self._hits / total * 100:.2f}%" if total > 0 else "0%"
        return {
            "hits": self._hits,
            "misses": self._misses,
            "sets": self._sets,
            "evictions": self._evictions,
            "hit_rate": hit_rate,
            "size": len(self._entries),
        }
