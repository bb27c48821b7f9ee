"""Security event log and daily request counters."""

from __future__ import annotations

import pytest

from sweeper.admin.stats import classify_action, daily_key, load_daily_stats, record_request
from sweeper.security.events import SECURITY_EVENTS_KEY, SecurityEventLog, Severity
from sweeper.storage.store import DurableStore

DAY = "2026-10-01"


@pytest.fixture
def plain_store(fake_redis) -> DurableStore:
    return DurableStore(fake_redis)


class TestSecurityEventLog:
    @pytest.mark.asyncio
    async def test_record_and_recent(self, plain_store: DurableStore) -> None:
        log = SecurityEventLog(plain_store)
        await log.record("duplicate_game", Severity.HIGH, username="alice")
        (event,) = await log.recent()
        assert event["type"] == "duplicate_game"
        assert event["severity"] == "high"
        assert event["details"] == {"username": "alice"}
        assert "timestamp" in event

    @pytest.mark.asyncio
    async def test_capped(self, plain_store: DurableStore) -> None:
        log = SecurityEventLog(plain_store, max_items=3)
        for i in range(5):
            await log.record("probe", n=i)
        recent = await log.recent()
        assert [e["details"]["n"] for e in recent] == [4, 3, 2]

    @pytest.mark.asyncio
    async def test_events_expire(self, plain_store: DurableStore, fake_redis) -> None:
        await SecurityEventLog(plain_store, ttl=3600).record("probe")
        assert 0 < fake_redis.ttl_of(SECURITY_EVENTS_KEY) <= 3600

    @pytest.mark.asyncio
    async def test_store_failure_is_silent(self, plain_store: DurableStore, fake_redis) -> None:
        fake_redis.fail = True
        await SecurityEventLog(plain_store).record("probe")


class TestClassifyAction:
    @pytest.mark.parametrize(
        ("method", "path", "expected"),
        [
            ("GET", "/api/leaderboard/expert", "leaderboard_read"),
            ("POST", "/api/leaderboard/expert", "score_submit"),
            ("GET", "/api/admin/stats", "admin"),
            ("GET", "/health", None),
        ],
    )
    def test_mapping(self, method: str, path: str, expected: str | None) -> None:
        assert classify_action(method, path) == expected


class TestDailyStats:
    @pytest.mark.asyncio
    async def test_nothing_recorded(self, plain_store: DurableStore) -> None:
        assert await load_daily_stats(plain_store, DAY) is None

    @pytest.mark.asyncio
    async def test_totals(self, plain_store: DurableStore) -> None:
        await record_request(plain_store, "leaderboard_read", failed=False, day=DAY)
        await record_request(plain_store, "leaderboard_read", failed=False, day=DAY)
        await record_request(plain_store, "score_submit", failed=True, day=DAY)
        await record_request(plain_store, "admin", failed=False, day=DAY)

        stats = await load_daily_stats(plain_store, DAY)
        assert stats == {
            "date": DAY,
            "totalRequests": 4,
            "errors": 1,
            "actions": {"leaderboard_read": 2, "score_submit": 1, "admin": 1},
            "errorRate": 25.0,
        }

    @pytest.mark.asyncio
    async def test_counters_expire(self, plain_store: DurableStore, fake_redis) -> None:
        await record_request(plain_store, "admin", failed=False, ttl=172_800, day=DAY)
        assert 0 < fake_redis.ttl_of(daily_key(DAY, "requests")) <= 172_800
