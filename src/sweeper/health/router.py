"""Health, readiness, and version endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter

from sweeper.config import get_settings
from sweeper.dependencies import get_redis

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe — returns 200 if the process is alive."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": get_settings().app_version,
    }


@router.get("/ready")
async def readiness() -> dict[str, object]:
    """Readiness probe — checks Redis connectivity."""
    checks: dict[str, object] = {}

    try:
        redis = get_redis()
        await redis.ping()
        checks["redis"] = "ok"
    except Exception as exc:
        checks["redis"] = f"error: {exc}"

    all_ok = all(v == "ok" for v in checks.values())
    return {"status": "ready" if all_ok else "degraded", "checks": checks}


@router.get("/version")
async def version() -> dict[str, str]:
    """Return API version and environment."""
    settings = get_settings()
    return {
        "version": settings.app_version,
        "environment": settings.environment,
    }
