"""Leaderboard service: bounded top-N lists per difficulty tier.

Each tier is one JSON list under ``leaderboard:{difficulty}``, sorted by
time ascending and truncated to the top 20. Writes are a plain
read-modify-write with no version check: two concurrent accepted
submissions to the same tier can race and the last writer wins.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

from sweeper.storage.cache import TTLCache, cache_key
from sweeper.storage.store import KV_NAMESPACE, UNREADABLE, DurableStore
from sweeper.validation.rules import DIFFICULTIES

logger = structlog.get_logger()

VIEW_NAMESPACE = "leaderboard"


class DuplicateGameError(ValueError):
    """The game id already has a record in this tier."""


class LeaderboardUnavailableError(RuntimeError):
    """The tier could not be read or written, so nothing was merged."""


class ScoreRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: str
    time: int
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    game_id: str = Field(alias="gameId")
    moves: int
    verified: bool = True

    def to_store(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


@dataclass(frozen=True)
class SubmitOutcome:
    leaderboard: list[dict[str, Any]]
    improved: bool
    rank: int | None
    current_best: int | None = None


def build_leaderboard_key(difficulty: str) -> str:
    """Store key for a difficulty tier."""
    if difficulty not in DIFFICULTIES:
        raise ValueError(f"Unknown difficulty: {difficulty}")
    return f"leaderboard:{difficulty}"


def compute_etag(data: Any) -> str:  # noqa: ANN401
    payload = json.dumps(data, sort_keys=True, separators=(",", ":"))
    return hashlib.sha1(payload.encode(), usedforsecurity=False).hexdigest()[:16]


def rank_of(leaderboard: list[dict[str, Any]], username: str) -> int | None:
    """1-based position of ``username``, or None when not listed."""
    for position, record in enumerate(leaderboard, start=1):
        if record.get("username") == username:
            return position
    return None


class LeaderboardStore:
    def __init__(
        self,
        store: DurableStore,
        cache: TTLCache,
        *,
        size: int = 20,
        read_cache_ttl: float = 30.0,
    ) -> None:
        self.store = store
        self.cache = cache
        self.size = size
        self.read_cache_ttl = read_cache_ttl

    # --- read path ---

    async def get_tier(self, difficulty: str) -> list[dict[str, Any]]:
        """Current top-N for a tier; [] when absent or the store is unavailable."""
        key = build_leaderboard_key(difficulty)
        return await self.store.get(key, [], cache_ttl=self.read_cache_ttl)

    def cached_view(self, difficulty: str) -> list[dict[str, Any]] | None:
        return self.cache.get(cache_key(VIEW_NAMESPACE, difficulty))

    def remember_view(self, difficulty: str, leaderboard: list[dict[str, Any]]) -> None:
        self.cache.set(cache_key(VIEW_NAMESPACE, difficulty), leaderboard, self.read_cache_ttl)

    def invalidate(self, difficulty: str) -> None:
        """Drop both cached copies of a tier: the response view and the store read."""
        self.cache.delete(cache_key(VIEW_NAMESPACE, difficulty))
        self.cache.delete(cache_key(KV_NAMESPACE, build_leaderboard_key(difficulty)))

    # --- accept path ---

    async def submit(self, difficulty: str, record: ScoreRecord) -> SubmitOutcome:
        """Merge a verified record into the tier.

        Raises:
            DuplicateGameError: if the game id is already on the tier.
            LeaderboardUnavailableError: if the tier could not be read or
                the merged tier could not be saved. A failed read never
                leads to a write.
        """
        key = build_leaderboard_key(difficulty)
        leaderboard = await self.store.get(key, [], bypass_cache=True, strict=True)
        if leaderboard is UNREADABLE:
            logger.error("leaderboard_read_failed", difficulty=difficulty, username=record.username)
            raise LeaderboardUnavailableError(difficulty)

        if any(entry.get("gameId") == record.game_id for entry in leaderboard):
            raise DuplicateGameError(record.game_id)

        existing = next(
            (i for i, entry in enumerate(leaderboard) if entry.get("username") == record.username),
            None,
        )
        if existing is not None:
            current_best = leaderboard[existing]["time"]
            if record.time >= current_best:
                top = leaderboard[: self.size]
                return SubmitOutcome(
                    leaderboard=top,
                    improved=False,
                    rank=rank_of(top, record.username),
                    current_best=current_best,
                )
            leaderboard[existing] = record.to_store()
        else:
            leaderboard.append(record.to_store())

        leaderboard.sort(key=lambda entry: entry["time"])
        top = leaderboard[: self.size]

        saved = await self.store.put(key, top)
        self.invalidate(difficulty)
        if not saved:
            logger.error("leaderboard_write_failed", difficulty=difficulty, username=record.username)
            raise LeaderboardUnavailableError(difficulty)

        logger.info(
            "score_accepted",
            difficulty=difficulty,
            username=record.username,
            time=record.time,
            rank=rank_of(top, record.username),
        )
        return SubmitOutcome(leaderboard=top, improved=True, rank=rank_of(top, record.username))
