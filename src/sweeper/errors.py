"""API error type and JSON envelopes.

Success: ``{"success": true, "data": ..., "meta": {...}}``
Failure: ``{"success": false, "error": {"code", "message", "timestamp", "requestId"}}``
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from starlette.requests import Request
from starlette.responses import JSONResponse

from sweeper.security.events import Severity

BASE_HEADERS = {"X-Content-Type-Options": "nosniff"}


class ApiError(Exception):
    """A failure rendered to the caller with a stable machine-readable code."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 400,
        *,
        severity: Severity = Severity.NONE,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.severity = severity
        self.headers = headers or {}


def request_id_of(request: Request) -> str:
    """The correlation id assigned by RequestIdMiddleware (or a fresh one)."""
    request_id = getattr(request.state, "request_id", None)
    if request_id is None:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
    return request_id


def error_response(
    request: Request,
    code: str,
    message: str,
    status_code: int,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": {
                "code": code,
                "message": message,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "requestId": request_id_of(request),
            },
        },
        headers={**BASE_HEADERS, **(headers or {})},
    )


def success_response(
    data: Any,  # noqa: ANN401
    meta: dict[str, Any] | None = None,
    status_code: int = 200,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    content: dict[str, Any] = {"success": True, "data": data}
    if meta is not None:
        content["meta"] = meta
    return JSONResponse(status_code=status_code, content=content, headers={**BASE_HEADERS, **(headers or {})})
