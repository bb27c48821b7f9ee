"""Per-user submission history and abuse heuristics.

Individual claims can look fine while the pattern across them does not. The
analyzer keeps rolling stats per (username, difficulty) and flags users who
keep submitting inside a short cooldown window.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

import structlog
from pydantic import BaseModel, ValidationError

from sweeper.config import Settings
from sweeper.storage.store import UNREADABLE, DurableStore, make_key

logger = structlog.get_logger()

TEMPORARY_BLOCK = "temporary_block"
REVIEW_REQUIRED = "review_required"


class UserBehaviorStats(BaseModel):
    submissions: int = 0
    best_time: float | None = None
    average_time: float = 0.0
    total_time: float = 0.0
    last_submission: datetime | None = None
    suspicious_count: int = 0


@dataclass(frozen=True)
class BehaviorVerdict:
    suspicious: bool
    reason: str | None = None
    action: str | None = None
    stats: UserBehaviorStats | None = None
    saved: bool = False


def stats_key(username: str, difficulty: str) -> str:
    return make_key("security", "user_stats", username, difficulty)


class BehaviorAnalyzer:
    """Cooldown-based suspicion counter plus rolling stats.

    The "sudden improvement" rule (new time under ``sudden_improvement_ratio``
    of the personal best) is off unless ``sudden_improvement_check`` is set.
    """

    def __init__(
        self,
        store: DurableStore,
        *,
        cooldown_seconds: float = 300,
        max_suspicious: int = 3,
        stats_ttl: int = 604_800,
        sudden_improvement_check: bool = False,
        sudden_improvement_ratio: float = 0.5,
    ) -> None:
        self.store = store
        self.cooldown_seconds = cooldown_seconds
        self.max_suspicious = max_suspicious
        self.stats_ttl = stats_ttl
        self.sudden_improvement_check = sudden_improvement_check
        self.sudden_improvement_ratio = sudden_improvement_ratio

    @classmethod
    def from_settings(cls, store: DurableStore, settings: Settings) -> BehaviorAnalyzer:
        return cls(
            store,
            cooldown_seconds=settings.behavior_cooldown_seconds,
            max_suspicious=settings.behavior_max_suspicious,
            stats_ttl=settings.behavior_stats_ttl_seconds,
            sudden_improvement_check=settings.sudden_improvement_check,
            sudden_improvement_ratio=settings.sudden_improvement_ratio,
        )

    async def load(self, username: str, difficulty: str) -> UserBehaviorStats:
        stats = await self._read(username, difficulty)
        return UserBehaviorStats() if stats is None else stats

    async def _read(self, username: str, difficulty: str) -> UserBehaviorStats | None:
        """Stored stats, fresh stats when absent or corrupt, None when Redis failed."""
        raw = await self.store.get(stats_key(username, difficulty), strict=True)
        if raw is UNREADABLE:
            return None
        if raw is None:
            return UserBehaviorStats()
        try:
            return UserBehaviorStats.model_validate(raw)
        except ValidationError:
            logger.warning("behavior_stats_unreadable", username=username, difficulty=difficulty)
            return UserBehaviorStats()

    async def analyze(
        self,
        username: str,
        time: float,
        difficulty: str,
        now: datetime | None = None,
    ) -> BehaviorVerdict:
        """Update the user's stats, or return a suspicious verdict without saving.

        When the stats cannot be read the verdict is "not suspicious" and
        nothing is written, so an active block is never overwritten.
        """
        now = now or datetime.now(timezone.utc)
        stats = await self._read(username, difficulty)
        if stats is None:
            logger.warning("behavior_stats_unavailable", username=username, difficulty=difficulty)
            return BehaviorVerdict(suspicious=False)

        if stats.last_submission is not None:
            since_last = (now - stats.last_submission).total_seconds()
        else:
            since_last = float("inf")

        if since_last < self.cooldown_seconds:
            stats.suspicious_count += 1
            if stats.suspicious_count > self.max_suspicious:
                logger.info(
                    "behavior_blocked",
                    username=username,
                    difficulty=difficulty,
                    suspicious_count=stats.suspicious_count,
                )
                return BehaviorVerdict(
                    suspicious=True,
                    reason="Too many submissions in a short time, please take a break",
                    action=TEMPORARY_BLOCK,
                    stats=stats,
                )
        else:
            stats.suspicious_count = max(0, stats.suspicious_count - 1)

        if (
            self.sudden_improvement_check
            and stats.best_time is not None
            and time < stats.best_time * self.sudden_improvement_ratio
        ):
            return BehaviorVerdict(
                suspicious=True,
                reason="Improvement is unusually large, please check your game environment",
                action=REVIEW_REQUIRED,
                stats=stats,
            )

        stats.submissions += 1
        stats.total_time += time
        stats.average_time = stats.total_time / stats.submissions
        stats.best_time = time if stats.best_time is None else min(stats.best_time, time)
        stats.last_submission = now

        saved = await self.store.put(
            stats_key(username, difficulty),
            stats.model_dump(mode="json"),
            ttl=self.stats_ttl,
        )
        return BehaviorVerdict(suspicious=False, stats=stats, saved=saved)
