"""Mint a single-use admin token from the configured admin key.

Usage::

    SWEEPER_ADMIN_KEY=... python -m sweeper.admin.mint_token
"""

import argparse
import sys

from sweeper.config import get_settings
from sweeper.security.admin_tokens import issue_admin_token


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Mint an admin token (valid five minutes, usable once)")
    parser.add_argument(
        "--timestamp-ms", type=int, default=None,
        help="Token timestamp in epoch milliseconds (default: now)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    if len(settings.admin_key) < settings.admin_key_min_length:
        print(
            f"SWEEPER_ADMIN_KEY must be set and at least {settings.admin_key_min_length} characters",
            file=sys.stderr,
        )
        return 1
    print(issue_admin_token(settings.admin_key, args.timestamp_ms))
    return 0


if __name__ == "__main__":
    sys.exit(main())
