"""CORS middleware configuration."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sweeper.config import Settings


def setup_cors(app: FastAPI, settings: Settings) -> None:
    """Answer with the single matching origin: one from the allow-list, or a local dev host."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_origin_regex=settings.cors_dev_origin_regex or None,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Requested-With", "Authorization", "If-None-Match"],
        expose_headers=["X-Request-Id", "X-RateLimit-Remaining", "X-RateLimit-Limit", "ETag"],
        max_age=86400,
    )
