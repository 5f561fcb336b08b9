# lead_intake/middleware/logging.py
from __future__ import annotations

import time
from typing import Mapping

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from lead_intake.core.logging import get_structlog_logger

logger = get_structlog_logger(__name__)

QUIET_PATHS = ("/health", "/health/ready", "/metrics")

SENSITIVE_HEADERS = (
    "authorization",
    "cookie",
    "apikey",
    "x-api-key",
    "token",
    "secret",
)


def filter_headers(headers: Mapping[str, str]) -> dict:
    """Redact sensitive headers for logs."""
    filtered = {}
    for key, value in headers.items():
        if any(sensitive in key.lower() for sensitive in SENSITIVE_HEADERS):
            filtered[key] = "[REDACTED]"
        else:
            filtered[key] = value
    return filtered


class LoggingMiddleware(BaseHTTPMiddleware):
    """Request/response logging with timing."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()
        quiet = request.url.path in QUIET_PATHS

        if not quiet:
            logger.info(
                "request.received",
                method=request.method,
                path=request.url.path,
                client_ip=request.client.host if request.client else "unknown",
                user_agent=request.headers.get("user-agent", "unknown"),
                content_length=request.headers.get("content-length", "0"),
                headers=filter_headers(request.headers),
            )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request.exception",
                method=request.method,
                path=request.url.path,
                response_time_ms=(time.perf_counter() - start_time) * 1000,
                exception_type=type(e).__name__,
                exception_message=str(e),
            )
            raise

        response_time = time.perf_counter() - start_time
        response.headers["X-Response-Time"] = f"{response_time:.3f}"

        if not quiet:
            log_data = {
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "response_time_ms": response_time * 1000,
            }
            if response.status_code >= 500:
                logger.warning("response.sent", error_type="server_error", **log_data)
            elif response.status_code >= 400:
                logger.warning("response.sent", error_type="client_error", **log_data)
            else:
                logger.info("response.sent", **log_data)

        return response
