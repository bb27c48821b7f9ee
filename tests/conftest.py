"""Shared test fixtures."""

from __future__ import annotations

import os
import time
import uuid
from collections.abc import AsyncGenerator, Callable, Iterator
from datetime import datetime, timedelta, timezone
from typing import Any

# Settings are read when sweeper.main is imported
os.environ.setdefault("SWEEPER_ADMIN_KEY", "test-admin-key-0123456789abcdefghijkl")
os.environ.setdefault("SWEEPER_LOG_FORMAT", "console")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from sweeper.config import get_settings
from sweeper.dependencies import reset_local_state, set_redis
from sweeper.main import create_app
from sweeper.storage.cache import TTLCache
from sweeper.storage.store import DurableStore
from sweeper.validation.rules import BOARD_CONFIGS

ADMIN_KEY = os.environ["SWEEPER_ADMIN_KEY"]


class FakeRedis:
    """In-memory stand-in for the handful of redis.asyncio commands the store uses."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}
        self._expiry: dict[str, float] = {}
        self.fail = False
        self.failing: set[str] = set()
        self.commands: list[str] = []

    def _enter(self, command: str) -> None:
        self.commands.append(command)
        if self.fail or command in self.failing:
            raise RedisConnectionError("redis unavailable")

    def _alive(self, key: str) -> bool:
        expiry = self._expiry.get(key)
        if expiry is not None and time.monotonic() >= expiry:
            self._data.pop(key, None)
            self._expiry.pop(key, None)
        return key in self._data

    def _write(self, key: str, value: Any, ex: int | None) -> None:  # noqa: ANN401
        self._data[key] = value
        if ex:
            self._expiry[key] = time.monotonic() + ex
        else:
            self._expiry.pop(key, None)

    def ttl_of(self, key: str) -> float | None:
        expiry = self._expiry.get(key)
        return None if expiry is None else expiry - time.monotonic()

    async def get(self, key: str) -> str | None:
        self._enter("get")
        if not self._alive(key):
            return None
        return self._data[key]

    async def set(self, key: str, value: str, ex: int | None = None, nx: bool = False) -> bool | None:
        self._enter("set")
        if nx and self._alive(key):
            return None
        self._write(key, value, ex)
        return True

    async def incrby(self, key: str, amount: int = 1) -> int:
        self._enter("incrby")
        current = int(self._data[key]) if self._alive(key) else 0
        self._data[key] = str(current + amount)
        return current + amount

    async def expire(self, key: str, seconds: int) -> bool:
        self._enter("expire")
        if not self._alive(key):
            return False
        self._expiry[key] = time.monotonic() + seconds
        return True

    async def delete(self, *keys: str) -> int:
        self._enter("delete")
        removed = 0
        for key in keys:
            if self._alive(key):
                removed += 1
            self._data.pop(key, None)
            self._expiry.pop(key, None)
        return removed

    async def lpush(self, key: str, *values: str) -> int:
        self._enter("lpush")
        items = self._data[key] if self._alive(key) else []
        for value in values:
            items.insert(0, value)
        self._data[key] = items
        return len(items)

    async def ltrim(self, key: str, start: int, end: int) -> bool:
        self._enter("ltrim")
        if self._alive(key):
            self._data[key] = self._data[key][start:end + 1 if end != -1 else None]
        return True

    async def lrange(self, key: str, start: int, end: int) -> list[str]:
        self._enter("lrange")
        if not self._alive(key):
            return []
        return list(self._data[key][start:end + 1 if end != -1 else None])

    async def ping(self) -> bool:
        self._enter("ping")
        return True

    async def aclose(self) -> None:
        pass

    def keys_matching(self, prefix: str) -> list[str]:
        return [k for k in list(self._data) if k.startswith(prefix) and self._alive(k)]


@pytest.fixture
def fake_redis() -> Iterator[FakeRedis]:
    """Install a fresh in-memory Redis and fresh process-local state."""
    get_settings.cache_clear()
    reset_local_state()
    fake = FakeRedis()
    set_redis(fake)
    yield fake
    set_redis(None)
    reset_local_state()
    get_settings.cache_clear()


@pytest.fixture
def cache() -> TTLCache:
    return TTLCache()


@pytest.fixture
def store(fake_redis: FakeRedis, cache: TTLCache) -> DurableStore:
    """Cached store adapter over the fake Redis."""
    return DurableStore(fake_redis, cache)


@pytest_asyncio.fixture
async def client(fake_redis: FakeRedis) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client wired to the fake Redis."""
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def _make_claim(
    difficulty: str = "beginner",
    time: int = 45,
    moves: int = 12,
    **overrides: Any,  # noqa: ANN401
) -> dict[str, Any]:
    """A won game that passes every check for ``difficulty``."""
    board = BOARD_CONFIGS[difficulty]
    started = datetime.now(timezone.utc) - timedelta(seconds=time + 30)
    game_end = (started + timedelta(seconds=time + 10)).timestamp() * 1000
    claim: dict[str, Any] = {
        "difficulty": difficulty,
        "time": time,
        "moves": moves,
        "gameId": f"game-{uuid.uuid4().hex[:12]}",
        "timestamp": started.isoformat(),
        "boardSize": {"width": board.width, "height": board.height},
        "mineCount": board.mines,
        "gameEndTime": game_end,
        "firstClickTime": game_end - time * 1000,
        "gameState": "won",
    }
    claim.update(overrides)
    return claim


@pytest.fixture
def make_claim() -> Callable[..., dict[str, Any]]:
    return _make_claim
