"""Redis-backed multi-scope rate limiting middleware for the leaderboard API."""

from typing import Any

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from sweeper.dependencies import get_rate_limiter
from sweeper.errors import error_response
from sweeper.security.rate_limiter import client_fingerprint

logger = structlog.get_logger()

# Only these path prefixes are counted
_LIMITED_PREFIXES = ("/api/leaderboard/",)


def client_ip(request: Request, header: str) -> str:
    """Client address from the edge proxy header, falling back to the socket peer."""
    forwarded = request.headers.get(header)
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Count leaderboard requests per IP, fingerprint and globally; 429 when any scope is full."""

    def __init__(self, app: Any, client_ip_header: str = "CF-Connecting-IP", window_seconds: int = 60) -> None:  # noqa: ANN401
        super().__init__(app)
        self.client_ip_header = client_ip_header
        self.window_seconds = window_seconds

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Check limits before the route runs and expose the remaining quota."""
        if request.method == "OPTIONS" or not request.url.path.startswith(_LIMITED_PREFIXES):
            return await call_next(request)

        try:
            limiter = get_rate_limiter()
        except RuntimeError:
            # Redis not initialized, let the request through unlimited
            logger.warning("rate_limit_unavailable", path=request.url.path)
            return await call_next(request)

        ip = client_ip(request, self.client_ip_header)
        fingerprint = client_fingerprint(
            ip,
            request.headers.get("User-Agent", ""),
            request.headers.get("Accept-Language", ""),
            request.headers.get("Accept-Encoding", ""),
        )
        decision = await limiter.check(ip, fingerprint)

        if not decision.allowed:
            return error_response(
                request,
                "RATE_LIMIT_EXCEEDED",
                "Too many requests, please try again later",
                429,
                headers={
                    "Retry-After": str(self.window_seconds),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Limit": str(decision.limit),
                },
            )

        request.state.rate_limit_remaining = decision.remaining
        response = await call_next(request)
        response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
        response.headers["X-RateLimit-Limit"] = str(decision.limit)
        return response
