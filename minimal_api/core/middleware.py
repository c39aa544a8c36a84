"""HTTP middleware for request correlation and request logging.

Middlewares are built by factories taking the logging settings, so the app
factory decides the header names instead of a module-level global.

- Request ID: accepts an incoming X-Request-ID header or generates a UUID,
  stores it in contextvars for log correlation, echoes it back together
  with the request duration.
- Request logging: logs method, path and (redacted) headers of every
  request, then the response status.

Usage:
    app.middleware("http")(build_request_id_middleware(settings.log))
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Awaitable, Callable

from fastapi import Request, Response

from minimal_api.core.config import LogSettings
from minimal_api.core.logging import clear_request_id, redact_headers, set_request_id

logger = logging.getLogger(__name__)

CallNext = Callable[[Request], Awaitable[Response]]
Middleware = Callable[[Request, CallNext], Awaitable[Response]]


def build_request_id_middleware(log_settings: LogSettings) -> Middleware:
    """Create the middleware propagating the request correlation id.

    Args:
        log_settings: Logging settings (``request_id_header``).

    Returns:
        An ``http`` middleware function.
    """

    header_name = log_settings.request_id_header

    async def request_id_middleware(request: Request, call_next: CallNext) -> Response:
        request_id = request.headers.get(header_name) or str(uuid.uuid4())
        set_request_id(request_id)
        start = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            clear_request_id()

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers[header_name] = request_id
        response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
        return response

    return request_id_middleware


def build_request_logging_middleware(log_settings: LogSettings) -> Middleware:
    """Create the middleware logging each request and its outcome.

    Must be registered before the request id middleware so it runs inside
    it and its records carry the request id.
    """

    async def request_logging_middleware(request: Request, call_next: CallNext) -> Response:
        extra: dict[str, object] = {
            "method": request.method,
            "path": request.url.path,
        }
        if log_settings.log_request_headers:
            extra["headers"] = redact_headers(request.headers.items())
        logger.info("http.request", extra=extra)

        start = time.perf_counter()
        response = await call_next(request)

        logger.info(
            "http.response",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )
        return response

    return request_logging_middleware
