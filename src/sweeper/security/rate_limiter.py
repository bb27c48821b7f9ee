"""Multi-scope fixed-window rate limiting.

Each request is counted against three independent scopes for the current
one-minute window: the client IP, a client fingerprint and a global scope.
Counters live in the durable store and expire on their own after roughly two
windows. Reads are joined before deciding; increments are concurrent and not
atomic across scopes, so a burst can overshoot a ceiling by a few requests.
"""

from __future__ import annotations

import asyncio
import hashlib
import time
from dataclasses import dataclass

from sweeper.config import Settings
from sweeper.security.events import SecurityEventLog, Severity
from sweeper.storage.store import DurableStore, make_key


def client_fingerprint(ip: str, user_agent: str, accept_language: str, accept_encoding: str) -> str:
    """Low-entropy client identifier used only for rate-limit granularity."""
    data = f"{ip}:{user_agent}:{accept_language}:{accept_encoding}"
    return hashlib.sha256(data.encode()).hexdigest()[:16]


@dataclass(frozen=True)
class ScopeLimit:
    scope: str
    key: str
    limit: int


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    limit: int
    scope: str | None = None


class MultiScopeRateLimiter:
    """Per-IP, per-fingerprint and global counters over the durable store."""

    def __init__(
        self,
        store: DurableStore,
        *,
        ip_limit: int = 20,
        fingerprint_limit: int = 15,
        global_limit: int = 1000,
        window_seconds: int = 60,
        counter_ttl: int = 120,
        events: SecurityEventLog | None = None,
    ) -> None:
        self.store = store
        self.ip_limit = ip_limit
        self.fingerprint_limit = fingerprint_limit
        self.global_limit = global_limit
        self.window_seconds = window_seconds
        self.counter_ttl = counter_ttl
        self.events = events

    @classmethod
    def from_settings(
        cls,
        store: DurableStore,
        settings: Settings,
        events: SecurityEventLog | None = None,
    ) -> MultiScopeRateLimiter:
        return cls(
            store,
            ip_limit=settings.rate_limit_ip,
            fingerprint_limit=settings.rate_limit_fingerprint,
            global_limit=settings.rate_limit_global,
            window_seconds=settings.rate_limit_window_seconds,
            counter_ttl=settings.rate_limit_counter_ttl_seconds,
            events=events,
        )

    def scopes(self, ip: str, fingerprint: str, now: float | None = None) -> list[ScopeLimit]:
        window = int(time.time() if now is None else now) // self.window_seconds
        return [
            ScopeLimit("ip", make_key("security", "rate_limit", "ip", ip, window), self.ip_limit),
            ScopeLimit(
                "fingerprint",
                make_key("security", "rate_limit", "fingerprint", fingerprint, window),
                self.fingerprint_limit,
            ),
            ScopeLimit("global", make_key("security", "rate_limit", "global", window), self.global_limit),
        ]

    async def check(self, ip: str, fingerprint: str, now: float | None = None) -> RateLimitDecision:
        """Count this request, or reject it without counting when any scope is full.

        An unreadable store rejects the request (remaining 0).
        """
        scopes = self.scopes(ip, fingerprint, now)
        counts = await self.store.batch_get(s.key for s in scopes)
        if len(counts) != len(scopes):
            return RateLimitDecision(allowed=False, remaining=0, limit=self.fingerprint_limit)

        current = {s.scope: int(counts.get(s.key) or 0) for s in scopes}

        for s in scopes:
            if current[s.scope] >= s.limit:
                if self.events is not None:
                    await self.events.record(
                        "rate_limit_exceeded",
                        Severity.MEDIUM,
                        scope=s.scope,
                        count=current[s.scope],
                        limit=s.limit,
                    )
                return RateLimitDecision(allowed=False, remaining=0, limit=self.fingerprint_limit, scope=s.scope)

        await asyncio.gather(*(self.store.increment(s.key, 1, self.counter_ttl) for s in scopes))

        return RateLimitDecision(
            allowed=True,
            remaining=self.fingerprint_limit - current["fingerprint"] - 1,
            limit=self.fingerprint_limit,
        )
