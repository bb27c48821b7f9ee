"""Shared FastAPI dependencies and process-wide singletons.

The Redis pool, the local cache and the concurrency limiter live for the
whole process. Everything built on top of them is cheap and created per call.
"""

from __future__ import annotations

import redis.asyncio as redis

from sweeper.concurrency import ConcurrencyLimiter
from sweeper.config import get_settings
from sweeper.leaderboard.service import LeaderboardStore
from sweeper.security.admin_tokens import AdminTokenAuthenticator
from sweeper.security.behavior import BehaviorAnalyzer
from sweeper.security.events import SecurityEventLog
from sweeper.security.rate_limiter import MultiScopeRateLimiter
from sweeper.storage.cache import TTLCache
from sweeper.storage.store import DurableStore
from sweeper.validation.session import ClaimValidator

_pool: redis.Redis | None = None
_cache: TTLCache | None = None
_limiter: ConcurrencyLimiter | None = None


# --- Redis pool ---


async def init_redis(url: str) -> None:
    """Initialize the Redis connection pool."""
    global _pool  # noqa: PLW0603
    _pool = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=50,
    )


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _pool  # noqa: PLW0603
    if _pool:
        await _pool.aclose()
        _pool = None


def set_redis(client: redis.Redis | None) -> None:
    """Install an already-built client in place of the pool."""
    global _pool  # noqa: PLW0603
    _pool = client


def get_redis() -> redis.Redis:
    """Get the Redis client."""
    if _pool is None:
        msg = "Redis not initialized. Call init_redis() first."
        raise RuntimeError(msg)
    return _pool


# --- process-local state ---


def get_cache() -> TTLCache:
    global _cache  # noqa: PLW0603
    if _cache is None:
        _cache = TTLCache(default_ttl=get_settings().cache_default_ttl_seconds)
    return _cache


def get_limiter() -> ConcurrencyLimiter:
    global _limiter  # noqa: PLW0603
    if _limiter is None:
        _limiter = ConcurrencyLimiter(get_settings().validation_concurrency)
    return _limiter


def reset_local_state() -> None:
    """Forget the cache and limiter (settings changed, or between tests)."""
    global _cache, _limiter  # noqa: PLW0603
    _cache = None
    _limiter = None


# --- per-call services ---


def get_store() -> DurableStore:
    """Store adapter with the local read cache."""
    return DurableStore(
        get_redis(),
        get_cache(),
        max_put_cache_ttl=get_settings().cache_max_put_ttl_seconds,
    )


def get_uncached_store() -> DurableStore:
    """Store adapter for counters and markers, which must never be read from cache."""
    return DurableStore(get_redis())


def get_security_events() -> SecurityEventLog:
    settings = get_settings()
    return SecurityEventLog(
        get_uncached_store(),
        max_items=settings.security_event_max_items,
        ttl=settings.security_event_ttl_seconds,
    )


def get_rate_limiter() -> MultiScopeRateLimiter:
    return MultiScopeRateLimiter.from_settings(get_uncached_store(), get_settings(), get_security_events())


def get_leaderboard_store() -> LeaderboardStore:
    settings = get_settings()
    return LeaderboardStore(
        get_store(),
        get_cache(),
        size=settings.leaderboard_size,
        read_cache_ttl=settings.leaderboard_cache_ttl_seconds,
    )


def get_behavior_analyzer() -> BehaviorAnalyzer:
    return BehaviorAnalyzer.from_settings(get_store(), get_settings())


def get_claim_validator() -> ClaimValidator:
    settings = get_settings()
    return ClaimValidator(
        get_limiter(),
        max_session_age_seconds=settings.session_max_age_seconds,
        duration_tolerance_seconds=settings.duration_tolerance_seconds,
    )


def get_admin_authenticator() -> AdminTokenAuthenticator:
    """Raises AdminKeyMisconfigured when the admin key is missing or short."""
    settings = get_settings()
    return AdminTokenAuthenticator(
        get_uncached_store(),
        settings.admin_key,
        min_key_length=settings.admin_key_min_length,
        max_age_ms=settings.admin_token_max_age_ms,
        replay_ttl_seconds=settings.admin_token_replay_ttl_seconds,
    )
