"""Daily request counters for the admin stats view.

Counters are plain store increments under ``stats:daily:{date}:{field}`` and
expire after two days. They are best-effort: a failed increment is logged by
the store and otherwise ignored.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from sweeper.storage.store import DurableStore, make_key

ACTIONS: tuple[str, ...] = ("leaderboard_read", "score_submit", "admin")


def today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def daily_key(day: str, field: str) -> str:
    return make_key("stats", "daily", day, field)


def classify_action(method: str, path: str) -> str | None:
    """Map a request to a stats action, or None for paths that are not counted."""
    if path.startswith("/api/leaderboard/"):
        return "score_submit" if method == "POST" else "leaderboard_read"
    if path.startswith("/api/admin/"):
        return "admin"
    return None


async def record_request(
    store: DurableStore,
    action: str,
    failed: bool,
    ttl: int = 172_800,
    day: str | None = None,
) -> None:
    day = day or today()
    fields = ["requests", f"action:{action}"]
    if failed:
        fields.append("errors")
    await asyncio.gather(*(store.increment(daily_key(day, f), 1, ttl) for f in fields))


async def load_daily_stats(store: DurableStore, day: str | None = None) -> dict | None:
    """Totals for ``day`` (default today), or None when nothing was recorded."""
    day = day or today()
    fields = ["requests", "errors", *(f"action:{a}" for a in ACTIONS)]
    values = await store.batch_get(daily_key(day, f) for f in fields)

    total = int(values.get(daily_key(day, "requests")) or 0)
    if total == 0:
        return None

    errors = int(values.get(daily_key(day, "errors")) or 0)
    return {
        "date": day,
        "totalRequests": total,
        "errors": errors,
        "actions": {a: int(values.get(daily_key(day, f"action:{a}")) or 0) for a in ACTIONS},
        "errorRate": round(errors / total * 100, 2),
    }
