"""Game-session claim validation pipeline.

A claim passes through five stateless checks in a fixed order:

1. structure  -- every claim field present and well-typed, game won, claim
   matches the tier and time it is submitted with
2. temporal   -- session not older than a week, measured duration agrees with
   the claimed time
3. board      -- board size and mine count match the difficulty
4. moves      -- move count within bounds, plausible seconds per move
5. score      -- time within the tier's range and not beating the record

The structure check runs first since the others read parsed fields. Checks
2-5 are dispatched concurrently through the concurrency limiter; the reported
failure is always the earliest one in the order above. Severity is advisory
only and never changes whether a claim is rejected.
"""

from __future__ import annotations

import time as _time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from sweeper.concurrency import ConcurrencyLimiter
from sweeper.security.events import Severity
from sweeper.validation.rules import (
    BOARD_CONFIGS,
    MAX_MOVES_PER_CELL,
    MAX_SECONDS_PER_MOVE,
    MAX_TIMES,
    MIN_MOVES,
    MIN_SECONDS_PER_MOVE,
    MIN_TIMES,
    ROUND_TIME_RECORD_MULTIPLIER,
    WORLD_RECORDS,
)

REQUIRED_CLAIM_FIELDS: tuple[str, ...] = (
    "difficulty",
    "time",
    "moves",
    "gameId",
    "timestamp",
    "boardSize",
    "mineCount",
    "gameEndTime",
    "firstClickTime",
    "gameState",
)

INVALID_GAME_DATA = "INVALID_GAME_DATA"
UNREASONABLE_SCORE = "UNREASONABLE_SCORE"


@dataclass(frozen=True)
class CheckResult:
    valid: bool
    reason: str | None = None
    severity: Severity = Severity.NONE
    message: str = ""
    code: str = UNREASONABLE_SCORE


PASSED = CheckResult(valid=True)


def _fail(reason: str, severity: Severity, message: str, code: str = UNREASONABLE_SCORE) -> CheckResult:
    return CheckResult(valid=False, reason=reason, severity=severity, message=message, code=code)


class BoardSize(BaseModel):
    width: int
    height: int


class GameClaim(BaseModel):
    """Parsed client claim. Timestamps other than ``timestamp`` are epoch milliseconds.

    NaN and Infinity are rejected: the JSON parser accepts them and they
    compare false against every bound.
    """

    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    difficulty: str
    time: float
    moves: int
    game_id: str = Field(alias="gameId", min_length=1)
    timestamp: datetime
    board_size: BoardSize = Field(alias="boardSize")
    mine_count: int = Field(alias="mineCount")
    game_end_time: float = Field(alias="gameEndTime")
    first_click_time: float = Field(alias="firstClickTime")
    game_state: str = Field(alias="gameState")

    @property
    def started_at_ms(self) -> float:
        ts = self.timestamp
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        return ts.timestamp() * 1000


# ---------------------------------------------------------------------------
# Individual checks
# ---------------------------------------------------------------------------


def check_structure(data: object, difficulty: str, submitted_time: int) -> tuple[CheckResult, GameClaim | None]:
    if not isinstance(data, dict):
        return _fail("malformed_claim", Severity.CRITICAL, "Game data is malformed", INVALID_GAME_DATA), None

    for name in REQUIRED_CLAIM_FIELDS:
        if data.get(name) in (None, ""):
            return _fail(
                "missing_fields", Severity.CRITICAL, f"Missing required field: {name}", INVALID_GAME_DATA
            ), None

    try:
        claim = GameClaim.model_validate(data)
    except ValidationError:
        return _fail("malformed_claim", Severity.CRITICAL, "Game data is malformed", INVALID_GAME_DATA), None

    if claim.game_state != "won":
        return _fail("game_not_won", Severity.HIGH, "Only won games can be submitted"), None
    if claim.difficulty != difficulty:
        return _fail("difficulty_mismatch", Severity.CRITICAL, "Game difficulty does not match the leaderboard"), None
    if claim.time != submitted_time:
        return _fail("time_mismatch", Severity.HIGH, "Submitted time does not match the game record"), None
    return PASSED, claim


def check_temporal(
    claim: GameClaim,
    now_ms: float,
    max_age_seconds: float = 604_800,
    tolerance_seconds: float = 60.0,
) -> CheckResult:
    if now_ms - claim.started_at_ms > max_age_seconds * 1000:
        return _fail("session_expired", Severity.MEDIUM, "Game session has expired")

    measured = (claim.game_end_time - claim.first_click_time) / 1000
    if abs(measured - claim.time) > tolerance_seconds:
        return _fail("duration_mismatch", Severity.HIGH, "Game duration is inconsistent, please start a new game")
    return PASSED


def check_board(claim: GameClaim, difficulty: str) -> CheckResult:
    expected = BOARD_CONFIGS.get(difficulty)
    if (
        expected is None
        or claim.board_size.width != expected.width
        or claim.board_size.height != expected.height
        or claim.mine_count != expected.mines
    ):
        return _fail("board_mismatch", Severity.CRITICAL, "Board configuration does not match the difficulty")
    return PASSED


def check_moves(claim: GameClaim, difficulty: str) -> CheckResult:
    if claim.moves < MIN_MOVES[difficulty]:
        return _fail("too_few_moves", Severity.CRITICAL, "Too few moves for this board")

    max_moves = claim.board_size.width * claim.board_size.height * MAX_MOVES_PER_CELL
    if claim.moves > max_moves:
        return _fail("too_many_moves", Severity.MEDIUM, "Too many moves for this board")

    per_move = claim.time / claim.moves
    if per_move < MIN_SECONDS_PER_MOVE:
        return _fail("inhuman_speed", Severity.CRITICAL, "Moves are faster than humanly possible")
    if per_move > MAX_SECONDS_PER_MOVE:
        return _fail("too_slow", Severity.LOW, "Moves are implausibly slow")
    return PASSED


def check_score(time: float, difficulty: str) -> CheckResult:
    if time < MIN_TIMES[difficulty]:
        return _fail("time_below_minimum", Severity.HIGH, "Time is implausibly fast")
    if time > MAX_TIMES[difficulty]:
        return _fail("time_above_maximum", Severity.LOW, "Time is out of range")

    record = WORLD_RECORDS[difficulty]
    if time < record:
        return _fail("beats_world_record", Severity.CRITICAL, "Time beats the world record")
    if float(time).is_integer() and time < record * ROUND_TIME_RECORD_MULTIPLIER:
        return _fail("suspicious_round_time", Severity.MEDIUM, "Suspiciously perfect time, please play again")
    return PASSED


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class ClaimValidator:
    """Runs the checks above through a shared concurrency limiter."""

    def __init__(
        self,
        limiter: ConcurrencyLimiter,
        *,
        max_session_age_seconds: float = 604_800,
        duration_tolerance_seconds: float = 60.0,
    ) -> None:
        self.limiter = limiter
        self.max_session_age_seconds = max_session_age_seconds
        self.duration_tolerance_seconds = duration_tolerance_seconds

    async def validate(
        self,
        game_data: Any,  # noqa: ANN401
        difficulty: str,
        time: int,
        now_ms: float | None = None,
    ) -> CheckResult:
        result, claim = check_structure(game_data, difficulty, time)
        if claim is None:
            return result

        now = _time.time() * 1000 if now_ms is None else now_ms
        outcomes = await self.limiter.gather([
            lambda: check_temporal(claim, now, self.max_session_age_seconds, self.duration_tolerance_seconds),
            lambda: check_board(claim, difficulty),
            lambda: check_moves(claim, difficulty),
            lambda: check_score(time, difficulty),
        ])

        for outcome in outcomes:
            if not outcome.ok:
                return _fail("validation_error", Severity.CRITICAL, "Game data could not be validated")
            if not outcome.value.valid:
                return outcome.value
        return PASSED
