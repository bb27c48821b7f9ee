"""Per-difficulty game constants used by claim validation."""

from __future__ import annotations

from typing import NamedTuple

DIFFICULTIES: tuple[str, ...] = ("beginner", "intermediate", "expert")


class BoardConfig(NamedTuple):
    width: int
    height: int
    mines: int


BOARD_CONFIGS: dict[str, BoardConfig] = {
    "beginner": BoardConfig(9, 9, 10),
    "intermediate": BoardConfig(16, 16, 40),
    "expert": BoardConfig(30, 16, 99),
}

# Fewest clicks that can clear each board
MIN_MOVES: dict[str, int] = {"beginner": 8, "intermediate": 15, "expert": 25}

# Each cell clicked at most twice
MAX_MOVES_PER_CELL = 2

# Seconds per move: below is faster than human reaction, above is idle padding
MIN_SECONDS_PER_MOVE = 0.05
MAX_SECONDS_PER_MOVE = 60.0

MIN_TIMES: dict[str, int] = {"beginner": 1, "intermediate": 3, "expert": 5}
MAX_TIMES: dict[str, int] = {"beginner": 999, "intermediate": 1999, "expert": 2999}

# Reference world records in seconds; anything faster is impossible
WORLD_RECORDS: dict[str, float] = {"beginner": 0.49, "intermediate": 7.03, "expert": 31.133}

# Whole-second times under this multiple of the record must be replayed
ROUND_TIME_RECORD_MULTIPLIER = 2

MAX_USERNAME_LENGTH = 16
MAX_TIME_SECONDS = 9999
