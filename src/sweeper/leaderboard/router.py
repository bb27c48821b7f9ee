"""Leaderboard API endpoints."""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, Request
from starlette.responses import JSONResponse, Response

from sweeper.concurrency import ConcurrencyLimiter
from sweeper.dependencies import (
    get_behavior_analyzer,
    get_cache,
    get_claim_validator,
    get_leaderboard_store,
    get_limiter,
    get_security_events,
)
from sweeper.errors import ApiError, request_id_of, success_response
from sweeper.leaderboard.schemas import ScoreSubmission
from sweeper.leaderboard.service import (
    DuplicateGameError,
    LeaderboardStore,
    LeaderboardUnavailableError,
    ScoreRecord,
    compute_etag,
)
from sweeper.security.behavior import BehaviorAnalyzer
from sweeper.security.events import SecurityEventLog, Severity
from sweeper.validation.fields import FieldCheck, validate_difficulty, validate_time, validate_username
from sweeper.validation.rules import DIFFICULTIES
from sweeper.validation.session import ClaimValidator

logger = structlog.get_logger()

router = APIRouter(prefix="/api/leaderboard", tags=["Leaderboard"])


def _require_difficulty(difficulty: str) -> str:
    if difficulty not in DIFFICULTIES:
        raise ApiError("INVALID_DIFFICULTY", "Unknown difficulty", 400)
    return difficulty


def _rate_limit_meta(request: Request) -> dict[str, int | None]:
    return {"remaining": getattr(request.state, "rate_limit_remaining", None)}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/{difficulty}")
async def read_leaderboard(
    difficulty: str,
    request: Request,
    leaderboards: LeaderboardStore = Depends(get_leaderboard_store),  # noqa: B008
) -> Response:
    """Top scores for a tier, with ETag support for conditional refreshes."""
    _require_difficulty(difficulty)

    cached = leaderboards.cached_view(difficulty)
    if cached is not None:
        etag = f'"{compute_etag(cached)}"'
        if etag in request.headers.get("If-None-Match", ""):
            logger.debug("leaderboard_not_modified", difficulty=difficulty)
            return Response(status_code=304, headers={"ETag": etag})

    leaderboard = await leaderboards.get_tier(difficulty)
    leaderboards.remember_view(difficulty, leaderboard)

    return success_response(
        leaderboard,
        meta={
            "count": len(leaderboard),
            "difficulty": difficulty,
            "rateLimit": _rate_limit_meta(request),
            "serverTime": _now_iso(),
            "cacheStats": get_cache().stats(),
        },
        headers={
            "Cache-Control": "public, max-age=30",
            "ETag": f'"{compute_etag(leaderboard)}"',
        },
    )


@router.post("/{difficulty}")
async def submit_score(
    difficulty: str,
    body: ScoreSubmission,
    request: Request,
    leaderboards: LeaderboardStore = Depends(get_leaderboard_store),  # noqa: B008
    validator: ClaimValidator = Depends(get_claim_validator),  # noqa: B008
    behavior: BehaviorAnalyzer = Depends(get_behavior_analyzer),  # noqa: B008
    events: SecurityEventLog = Depends(get_security_events),  # noqa: B008
    limiter: ConcurrencyLimiter = Depends(get_limiter),  # noqa: B008
) -> JSONResponse:
    """Validate a game-completion claim and merge it into the tier."""
    _require_difficulty(difficulty)

    if not body.game_data:
        await events.record("missing_game_data", Severity.CRITICAL, difficulty=difficulty)
        raise ApiError(
            "MISSING_GAME_DATA",
            "Game data is missing, please start a new game",
            400,
            severity=Severity.CRITICAL,
        )

    username_check, time_check, difficulty_check = (
        outcome.value if outcome.ok else FieldCheck(False, reason="Validation failed")
        for outcome in await limiter.gather([
            lambda: validate_username(body.username),
            lambda: validate_time(body.time),
            lambda: validate_difficulty(difficulty),
        ])
    )
    if not username_check.valid:
        raise ApiError("INVALID_USERNAME", username_check.reason, 400)
    if not time_check.valid:
        raise ApiError("INVALID_TIME", time_check.reason, 400)
    if not difficulty_check.valid:
        raise ApiError("INVALID_DIFFICULTY", difficulty_check.reason, 400)

    username: str = username_check.value
    time: int = time_check.value

    verdict = await validator.validate(body.game_data, difficulty, time)
    if not verdict.valid:
        await events.record(
            "claim_rejected",
            verdict.severity,
            reason=verdict.reason,
            difficulty=difficulty,
            username=username,
        )
        raise ApiError(verdict.code, verdict.message, 400, severity=verdict.severity)

    behavior_verdict = await behavior.analyze(username, time, difficulty)
    if behavior_verdict.suspicious:
        await events.record(
            "suspicious_behavior",
            Severity.HIGH,
            action=behavior_verdict.action,
            difficulty=difficulty,
            username=username,
        )
        raise ApiError("SUSPICIOUS_BEHAVIOR", behavior_verdict.reason, 429, severity=Severity.HIGH)

    record = ScoreRecord(
        username=username,
        time=time,
        game_id=body.game_data["gameId"],
        moves=body.game_data["moves"],
    )
    try:
        outcome = await leaderboards.submit(difficulty, record)
    except DuplicateGameError:
        await events.record("duplicate_game", Severity.HIGH, difficulty=difficulty, username=username)
        raise ApiError(
            "DUPLICATE_GAME",
            "This game has already been submitted, please start a new game",
            400,
            severity=Severity.HIGH,
        ) from None
    except LeaderboardUnavailableError:
        raise ApiError(
            "SERVICE_UNAVAILABLE",
            "Leaderboard is temporarily unavailable, please try again later",
            503,
        ) from None

    submitted = {
        "username": username,
        "time": time,
        "difficulty": difficulty,
        "timestamp": _now_iso(),
        "improved": outcome.improved,
        "rank": outcome.rank,
    }
    meta: dict[str, object] = {"submitted": submitted, "rateLimit": _rate_limit_meta(request)}
    if outcome.improved:
        meta["security"] = {
            "scoreValidated": True,
            "behaviorAnalyzed": True,
            "requestId": request_id_of(request),
        }
    else:
        submitted["currentBest"] = outcome.current_best

    return success_response(outcome.leaderboard, meta=meta)
