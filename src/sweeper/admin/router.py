"""Admin API: daily stats, security events and cache status.

Every action requires a fresh single-use token in ``Authorization: Bearer``.
"""

from __future__ import annotations

from collections import Counter

import structlog
from fastapi import APIRouter, Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.responses import JSONResponse

from sweeper.admin.stats import load_daily_stats, today
from sweeper.dependencies import (
    get_admin_authenticator,
    get_cache,
    get_limiter,
    get_security_events,
    get_uncached_store,
)
from sweeper.errors import ApiError, success_response
from sweeper.security.admin_tokens import AdminKeyMisconfigured
from sweeper.security.events import SecurityEventLog, Severity

logger = structlog.get_logger()

router = APIRouter(prefix="/api/admin", tags=["Admin"])

_bearer = HTTPBearer(auto_error=False)


async def require_admin(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),  # noqa: B008
    events: SecurityEventLog = Depends(get_security_events),  # noqa: B008
) -> None:
    """Reject the request unless it carries a valid, unused admin token."""
    if credentials is None or not credentials.credentials:
        raise ApiError("UNAUTHORIZED", "Authentication required", 401)

    try:
        authenticator = get_admin_authenticator()
    except AdminKeyMisconfigured:
        logger.error("admin_key_misconfigured")
        raise ApiError("SERVER_ERROR", "Service misconfigured", 500) from None

    check = await authenticator.validate(credentials.credentials)
    if not check.valid:
        await events.record("admin_auth_failed", Severity.HIGH, reason=check.reason)
        raise ApiError("UNAUTHORIZED", "Invalid or expired admin token", 401, severity=Severity.HIGH)


async def _stats_view() -> dict[str, object]:
    stats = await load_daily_stats(get_uncached_store())
    if stats is None:
        return {"date": today(), "message": "No statistics recorded today"}
    return stats


async def _security_view(events: SecurityEventLog) -> dict[str, object]:
    recent = await events.recent(50)
    return {
        "events": recent,
        "summary": {
            "total": len(recent),
            "bySeverity": dict(Counter(e.get("severity", "none") for e in recent)),
            "byType": dict(Counter(e.get("type", "unknown") for e in recent)),
        },
    }


def _cache_view() -> dict[str, object]:
    cache = get_cache()
    removed = cache.cleanup()
    return {
        "cache": cache.stats(),
        "concurrency": get_limiter().status(),
        "cleanedEntries": removed,
    }


@router.get("/{action}", dependencies=[Depends(require_admin)])
async def admin_action(
    action: str,
    request: Request,
    events: SecurityEventLog = Depends(get_security_events),  # noqa: B008
) -> JSONResponse:
    if action == "stats":
        data = await _stats_view()
    elif action == "security":
        data = await _security_view(events)
    elif action == "cache":
        data = _cache_view()
    else:
        raise ApiError("NOT_FOUND", f"Unknown admin action: {action}", 404)

    logger.info("admin_action", action=action, path=request.url.path)
    return success_response(data, meta={"action": action})
