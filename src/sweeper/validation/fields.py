"""Top-level submission field checks (username, time, difficulty)."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any

from sweeper.validation.rules import DIFFICULTIES, MAX_TIME_SECONDS, MAX_USERNAME_LENGTH

# Letters, digits, CJK ideographs, underscore, hyphen, whitespace
_USERNAME_ALLOWED = re.compile(r"^[a-zA-Z0-9\u4e00-\u9fa5_\-\s]+$")
_SEPARATORS_ONLY = re.compile(r"^[_\-\s]+$")
_HTML_TAG = re.compile(r"<[^>]*>")


@dataclass(frozen=True)
class FieldCheck:
    valid: bool
    value: Any = None
    reason: str | None = None


def validate_username(username: object) -> FieldCheck:
    """Trim and check a display name. The trimmed value is returned on success."""
    if not isinstance(username, str):
        return FieldCheck(False, reason="Username must be a string")

    trimmed = username.strip()
    if not trimmed:
        return FieldCheck(False, reason="Username must not be empty")
    if len(trimmed) > MAX_USERNAME_LENGTH:
        return FieldCheck(False, reason=f"Username must be at most {MAX_USERNAME_LENGTH} characters")
    if _HTML_TAG.search(trimmed):
        return FieldCheck(False, reason="Username must not contain HTML")
    if not _USERNAME_ALLOWED.match(trimmed):
        return FieldCheck(False, reason="Username contains invalid characters")
    if _SEPARATORS_ONLY.match(trimmed):
        return FieldCheck(False, reason="Username must not be only separators")
    return FieldCheck(True, value=trimmed)


def validate_time(value: object) -> FieldCheck:
    """Accept a whole number of seconds in [1, 9999], given as a number or numeric string."""
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return FieldCheck(False, reason="Time must be a number")

    try:
        number = float(value)
    except (ValueError, OverflowError):
        return FieldCheck(False, reason="Time must be a valid number")

    if not math.isfinite(number):
        return FieldCheck(False, reason="Time must be a valid number")
    if not number.is_integer() or number < 1:
        return FieldCheck(False, reason="Time must be a positive whole number of seconds")
    if number > MAX_TIME_SECONDS:
        return FieldCheck(False, reason=f"Time must not exceed {MAX_TIME_SECONDS} seconds")
    return FieldCheck(True, value=int(number))


def validate_difficulty(difficulty: object) -> FieldCheck:
    if difficulty not in DIFFICULTIES:
        return FieldCheck(False, reason="Unknown difficulty")
    return FieldCheck(True, value=difficulty)
