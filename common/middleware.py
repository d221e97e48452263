"""
common.middleware
~~~~~~~~~~~~~~~~~
Structured JSON request-logging middleware powered by structlog.

Logs: method, path, status_code, duration_ms on every request/response cycle,
with a ``request_id`` bound to every log line emitted while the request runs.
Preview tokens in the query string are masked before the path is logged.
"""
import time
import uuid
from urllib.parse import urlencode

import structlog

logger = structlog.get_logger(__name__)

#: Query parameters whose values never reach the logs.
REDACTED_QUERY_PARAMS = frozenset({"token"})


class StructuredLoggingMiddleware:
    """
    WSGI middleware that emits one structured log record per HTTP request.

    Log record fields:
        event       – "http_request"
        request_id  – ``X-Request-ID`` header, or a fresh UUID
        method      – HTTP verb (GET, POST, …)
        path        – URL path, sensitive query values replaced by ``***``
        status      – HTTP response status code (int)
        duration_ms – Round-trip duration in milliseconds (float, 2 dp)
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start = time.monotonic()
        try:
            response = self.get_response(request)
            duration_ms = round((time.monotonic() - start) * 1000, 2)

            logger.info(
                "http_request",
                method=request.method,
                path=safe_path(request),
                status=response.status_code,
                duration_ms=duration_ms,
            )
            response["X-Request-ID"] = request_id
            return response
        finally:
            structlog.contextvars.clear_contextvars()


def safe_path(request) -> str:
    """Return the request path with redacted query values masked."""
    if not request.GET:
        return request.path
    pairs = [
        (key, "***" if key in REDACTED_QUERY_PARAMS else value)
        for key, values in request.GET.lists()
        for value in values
    ]
    return f"{request.path}?{urlencode(pairs, safe='*')}"
