"""
Request middleware and exception handlers.

Every response carries an ``X-Correlation-ID``; every error, whether a
domain ``AppError``, a rate-limit rejection or an unexpected exception,
is rendered in the same ``{"error": {code, message, detail}}`` envelope.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Awaitable, Callable

import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import Histogram
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.errors import AppError, ErrorCode

_log = structlog.get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "route", "status"],
)


def _route_template(request: Request) -> str:
    # the matched template keeps record ids out of metric labels
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Binds a correlation ID (from the request header, or a fresh UUID4) into
    the structlog context for the lifetime of the request, then logs and
    times the completed request.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            correlation_id=correlation_id,
            method=request.method,
            path=request.url.path,
        )
        request.state.correlation_id = correlation_id

        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start

        response.headers[CORRELATION_HEADER] = correlation_id
        REQUEST_DURATION.labels(
            method=request.method,
            route=_route_template(request),
            status=str(response.status_code),
        ).observe(elapsed)
        _log.info(
            "request_completed",
            status_code=response.status_code,
            duration_ms=int(elapsed * 1000),
        )
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds security-relevant HTTP response headers to every response."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Cache-Control"] = "no-store"
        return response


# ── Exception handlers ────────────────────────────────────────────────── #


def _error_response(request: Request, status_code: int, content: dict[str, object]) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=content,
        headers={CORRELATION_HEADER: getattr(request.state, "correlation_id", "")},
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    _log.warning(
        "application_error",
        error_code=exc.code.value,
        message=exc.message,
        http_status=exc.http_status,
    )
    return _error_response(request, exc.http_status, exc.to_dict())


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    _log.warning("rate_limited", limit=str(exc.detail))
    return _error_response(
        request,
        429,
        {
            "error": {
                "code": ErrorCode.RATE_LIMITED.value,
                "message": "Too many requests.",
                "detail": {"limit": str(exc.detail)},
            }
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler; never leaks internal detail to the client."""
    _log.exception("unhandled_exception", exc_info=exc)
    return _error_response(
        request,
        500,
        {
            "error": {
                "code": ErrorCode.INTERNAL_ERROR.value,
                "message": "An unexpected internal error occurred.",
                "detail": {},
            }
        },
    )
