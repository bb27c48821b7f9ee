"""Security event recording.

Events are advisory: they feed the admin security view and the logs, and a
failure to persist one never affects the request that triggered it.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

import structlog

from sweeper.storage.store import DurableStore

logger = structlog.get_logger()

SECURITY_EVENTS_KEY = "security:events"


class Severity(str, Enum):
    """Triage label on a rejection. Never changes the accept/reject outcome."""

    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class SecurityEventLog:
    def __init__(self, store: DurableStore, max_items: int = 100, ttl: int = 604_800) -> None:
        self.store = store
        self.max_items = max_items
        self.ttl = ttl

    async def record(self, event_type: str, severity: Severity = Severity.MEDIUM, **details: Any) -> None:  # noqa: ANN401
        event = {
            "type": event_type,
            "severity": severity.value,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "details": details,
        }
        logger.warning("security_event", event_type=event_type, severity=severity.value, **details)
        await self.store.append_capped(SECURITY_EVENTS_KEY, event, self.max_items, self.ttl)

    async def recent(self, limit: int = 50) -> list[dict[str, Any]]:
        return await self.store.get_list(SECURITY_EVENTS_KEY, limit)
