"""
Single-use admin tokens.

Token format: base64(``"<timestamp_ms>:<signature>"``), where the signature is
the hex HMAC-SHA256 of the timestamp keyed by the server's admin key. A token
is valid for five minutes and only once: the first successful validation
writes a replay marker keyed by the full token string, and any later
presentation of the same token fails even inside its validity window.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import time
from dataclasses import dataclass

from sweeper.storage.store import DurableStore, make_key

# Epoch milliseconds fit in 13 digits until the year 2286
MAX_TIMESTAMP_DIGITS = 16


class AdminKeyMisconfigured(Exception):
    """The admin key is missing or too short. Surfaced as a 500, never as a 401."""


@dataclass(frozen=True)
class TokenCheck:
    valid: bool
    reason: str | None = None


def now_ms() -> int:
    return int(time.time() * 1000)


def sign_timestamp(timestamp: str, admin_key: str) -> str:
    return hmac.new(admin_key.encode(), timestamp.encode(), hashlib.sha256).hexdigest()


def secure_compare(a: object, b: object) -> bool:
    """Compare two strings in time independent of where they differ.

    Unequal lengths return early; equal-length inputs are always scanned to
    the end before the single boolean is produced.
    """
    if not isinstance(a, str) or not isinstance(b, str):
        return False
    if len(a) != len(b):
        return False

    result = 0
    for x, y in zip(a.encode(), b.encode()):
        result |= x ^ y
    return result == 0


def issue_admin_token(admin_key: str, timestamp_ms: int | None = None) -> str:
    """Mint a token for ``timestamp_ms`` (defaults to now)."""
    timestamp = str(now_ms() if timestamp_ms is None else timestamp_ms)
    raw = f"{timestamp}:{sign_timestamp(timestamp, admin_key)}"
    return base64.b64encode(raw.encode()).decode()


class AdminTokenAuthenticator:
    """Stateless signature check plus a stateful replay guard."""

    def __init__(
        self,
        store: DurableStore,
        admin_key: str,
        *,
        min_key_length: int = 32,
        max_age_ms: int = 300_000,
        replay_ttl_seconds: int = 600,
    ) -> None:
        if not admin_key or len(admin_key) < min_key_length:
            msg = f"admin key must be set and at least {min_key_length} characters"
            raise AdminKeyMisconfigured(msg)
        self.store = store
        self._admin_key = admin_key
        self.max_age_ms = max_age_ms
        self.replay_ttl_seconds = replay_ttl_seconds

    async def validate(self, token: str, current_ms: int | None = None) -> TokenCheck:
        """Run the checks in order and stop at the first failure."""
        try:
            decoded = base64.b64decode(token, validate=True).decode()
        except (binascii.Error, UnicodeDecodeError, ValueError):
            return TokenCheck(False, "invalid_token_format")

        parts = decoded.split(":")
        if len(parts) != 2:
            return TokenCheck(False, "invalid_token_structure")
        timestamp_str, signature = parts

        if (
            not (timestamp_str.isascii() and timestamp_str.isdecimal())
            or len(timestamp_str) > MAX_TIMESTAMP_DIGITS
        ):
            return TokenCheck(False, "token_expired")
        age = (now_ms() if current_ms is None else current_ms) - int(timestamp_str)
        if age < 0 or age > self.max_age_ms:
            return TokenCheck(False, "token_expired")

        expected = sign_timestamp(timestamp_str, self._admin_key)
        if not secure_compare(signature, expected):
            return TokenCheck(False, "invalid_signature")

        marked = await self.store.put_if_absent(
            make_key("security", "used_token", token),
            "used",
            self.replay_ttl_seconds,
            default=None,
        )
        if marked is None:
            return TokenCheck(False, "validation_error")
        if not marked:
            return TokenCheck(False, "token_already_used")
        return TokenCheck(True)
