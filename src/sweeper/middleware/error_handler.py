"""Global error handlers. Every failure leaves as the JSON error envelope."""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from sweeper.errors import ApiError, error_response

logger = structlog.get_logger()

_HTTP_CODES = {
    400: "INVALID_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    429: "RATE_LIMIT_EXCEEDED",
}


def setup_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
        """Domain errors raised by routers and dependencies."""
        if exc.status_code >= 500:
            logger.error("api_error", code=exc.code, path=request.url.path)
        else:
            logger.info(
                "request_rejected",
                code=exc.code,
                status=exc.status_code,
                severity=exc.severity.value,
                path=request.url.path,
            )
        return error_response(request, exc.code, exc.message, exc.status_code, exc.headers)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Routing and method errors in the same envelope."""
        code = _HTTP_CODES.get(exc.status_code, "SERVER_ERROR" if exc.status_code >= 500 else "HTTP_ERROR")
        return error_response(request, code, str(exc.detail), exc.status_code, getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Malformed bodies and parameters."""
        return error_response(request, "INVALID_REQUEST", "Request body is invalid", 400)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions; never leaks internals."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return error_response(request, "SERVER_ERROR", "Internal server error", 500)
