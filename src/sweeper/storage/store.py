"""Durable store adapter over Redis with a local read cache.

The store is treated as an eventually-consistent key/value service. Every
operation is individually fallible: a failure is logged with a short
correlation id and the caller's default is returned instead of raising, so a
degraded Redis degrades features rather than request handling.
"""

from __future__ import annotations

import asyncio
import copy
import json
import uuid
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, TypeVar

import redis.asyncio as aioredis
import structlog

from sweeper.storage.cache import TTLCache, cache_key

logger = structlog.get_logger()

T = TypeVar("T")

KV_NAMESPACE = "kv"

# Returned by get(..., strict=True) when Redis could not be read
UNREADABLE: Any = object()


def generate_error_id() -> str:
    """Short id printed next to a failure so log lines can be correlated."""
    return uuid.uuid4().hex[:9]


def make_key(prefix: str, *parts: object) -> str:
    """Build a colon-separated store key, e.g. ``security:user_stats:bob:expert``."""
    return ":".join([prefix, *(str(p) for p in parts)])


class DurableStore:
    """get/put/increment over Redis, each returning a safe default on failure."""

    def __init__(
        self,
        redis: aioredis.Redis,
        cache: TTLCache | None = None,
        *,
        max_put_cache_ttl: float = 300.0,
    ) -> None:
        self.redis = redis
        self.cache = cache
        self.max_put_cache_ttl = max_put_cache_ttl

    async def _guarded(
        self,
        operation: str,
        key: str,
        call: Callable[[], Awaitable[T]],
        default: T,
    ) -> T:
        try:
            return await call()
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "store_operation_failed",
                error_id=generate_error_id(),
                operation=operation,
                key=key,
                error=str(exc),
                exc_info=exc,
            )
            return default

    # --- single-key operations ---

    async def get(
        self,
        key: str,
        default: Any = None,  # noqa: ANN401
        *,
        cache_ttl: float | None = None,
        bypass_cache: bool = False,
        strict: bool = False,
    ) -> Any:  # noqa: ANN401
        """Read a JSON value, consulting the local cache first.

        Absent keys return ``default`` and are never cached, since a
        concurrent writer may be in flight. ``bypass_cache`` reads straight
        from Redis without touching the cache (write paths use this). With
        ``strict`` a failed read returns ``UNREADABLE`` rather than
        ``default``, so read-modify-write callers can tell "absent" from
        "unknown".
        """
        use_cache = self.cache is not None and not bypass_cache
        ck = cache_key(KV_NAMESPACE, key)

        async def _get() -> Any:  # noqa: ANN401
            if use_cache:
                cached = self.cache.get(ck)
                if cached is not None:
                    return copy.deepcopy(cached)

            raw = await self.redis.get(key)
            if raw is None:
                return default

            value = json.loads(raw)
            if use_cache:
                self.cache.set(ck, copy.deepcopy(value), cache_ttl)
            return value

        return await self._guarded("get", key, _get, UNREADABLE if strict else default)

    async def put(self, key: str, value: Any, ttl: int | None = None) -> bool:  # noqa: ANN401
        """Write through to Redis, then refresh (not drop) the cached copy."""

        async def _put() -> bool:
            await self.redis.set(key, json.dumps(value), ex=ttl)
            if self.cache is not None:
                cache_ttl = min(ttl, self.max_put_cache_ttl) if ttl else None
                self.cache.set(cache_key(KV_NAMESPACE, key), copy.deepcopy(value), cache_ttl)
            return True

        return await self._guarded("put", key, _put, False)

    async def increment(self, key: str, delta: int = 1, ttl: int | None = None) -> int:
        """Add ``delta`` to an integer counter and return the new value (0 on failure)."""

        async def _incr() -> int:
            value = await self.redis.incrby(key, delta)
            if ttl:
                await self.redis.expire(key, ttl)
            if self.cache is not None:
                self.cache.delete(cache_key(KV_NAMESPACE, key))
            return int(value)

        return await self._guarded("increment", key, _incr, 0)

    async def delete(self, key: str) -> bool:
        async def _delete() -> bool:
            await self.redis.delete(key)
            if self.cache is not None:
                self.cache.delete(cache_key(KV_NAMESPACE, key))
            return True

        return await self._guarded("delete", key, _delete, False)

    async def put_if_absent(
        self,
        key: str,
        value: Any,  # noqa: ANN401
        ttl: int,
        default: Any = None,  # noqa: ANN401
    ) -> Any:  # noqa: ANN401
        """SET NX: True when written, False when the key already existed."""

        async def _setnx() -> bool:
            written = await self.redis.set(key, json.dumps(value), ex=ttl, nx=True)
            return bool(written)

        return await self._guarded("put_if_absent", key, _setnx, default)

    # --- batch operations ---

    async def batch_get(self, keys: Iterable[str]) -> dict[str, Any]:
        """Fetch many keys concurrently. Missing keys map to None; {} on failure."""
        keys = list(keys)

        async def _batch() -> dict[str, Any]:
            raws = await asyncio.gather(*(self.redis.get(k) for k in keys))
            return {k: (json.loads(raw) if raw is not None else None) for k, raw in zip(keys, raws)}

        return await self._guarded("batch_get", ",".join(keys), _batch, {})

    async def batch_put(self, operations: Iterable[tuple[str, Any, int | None]]) -> bool:
        """Write many (key, value, ttl) triples concurrently."""
        operations = list(operations)

        async def _batch() -> bool:
            await asyncio.gather(
                *(self.redis.set(k, json.dumps(v), ex=ttl) for k, v, ttl in operations)
            )
            if self.cache is not None:
                for k, v, ttl in operations:
                    cache_ttl = min(ttl, self.max_put_cache_ttl) if ttl else None
                    self.cache.set(cache_key(KV_NAMESPACE, k), copy.deepcopy(v), cache_ttl)
            return True

        return await self._guarded("batch_put", ",".join(k for k, _, _ in operations), _batch, False)

    # --- capped lists ---

    async def append_capped(self, key: str, value: Any, max_len: int, ttl: int | None = None) -> bool:  # noqa: ANN401
        """Push to the head of a list and keep only the newest ``max_len`` items."""

        async def _append() -> bool:
            await self.redis.lpush(key, json.dumps(value))
            await self.redis.ltrim(key, 0, max_len - 1)
            if ttl:
                await self.redis.expire(key, ttl)
            return True

        return await self._guarded("append_capped", key, _append, False)

    async def get_list(self, key: str, limit: int = 100) -> list[Any]:
        """Newest-first list items, or [] on failure."""

        async def _lrange() -> list[Any]:
            raws = await self.redis.lrange(key, 0, limit - 1)
            return [json.loads(raw) for raw in raws]

        return await self._guarded("get_list", key, _lrange, [])
