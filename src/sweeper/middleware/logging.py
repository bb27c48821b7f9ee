"""Structured logging configuration with structlog, plus the access log."""

import logging
import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from sweeper.admin.stats import classify_action, record_request
from sweeper.config import Settings, get_settings
from sweeper.dependencies import get_uncached_store

logger = structlog.get_logger()


def setup_logging(settings: Settings) -> None:
    """Configure structlog for JSON or console output."""
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if settings.log_format == "json" else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Log one line per request and count API traffic for the daily stats."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = round((time.perf_counter() - started) * 1000, 2)

        logger.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=duration_ms,
        )

        action = classify_action(request.method, request.url.path)
        if action is not None and request.method != "OPTIONS":
            try:
                store = get_uncached_store()
            except RuntimeError:
                return response
            await record_request(
                store,
                action,
                failed=response.status_code >= 400,
                ttl=get_settings().daily_stats_ttl_seconds,
            )
        return response
