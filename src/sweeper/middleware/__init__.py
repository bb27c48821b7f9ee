"""Middleware registration."""

from fastapi import FastAPI

from sweeper.config import Settings
from sweeper.middleware.cors import setup_cors
from sweeper.middleware.error_handler import setup_error_handlers
from sweeper.middleware.logging import AccessLogMiddleware, setup_logging
from sweeper.middleware.rate_limit import RateLimitMiddleware
from sweeper.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register all middleware in the correct order.

    FastAPI/Starlette executes middleware in reverse-add order (last added = outermost).
    Request ID wraps the access log and rate limiting so log lines and 429
    bodies carry the correlation id, the access log wraps rate limiting so
    rejected requests are counted, and CORS is outermost.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        client_ip_header=settings.client_ip_header,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)  # added last → outermost → wraps 429 responses
