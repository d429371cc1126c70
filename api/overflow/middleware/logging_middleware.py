"""Per-request log context, access log line and HTTP metrics.

Each request gets a request id (the caller's X-Request-ID when present) bound
into structlog's context so every service log line carries it. The health
and metrics routes are logged at debug level only.
"""

import re
import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from overflow.metrics import http_request_duration, http_requests

log = structlog.get_logger()

QUIET_PATHS = frozenset({"/health", "/metrics"})

_UUID_SEGMENT = re.compile(
    r"/[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"
)
# Profiles are keyed by the identity provider's user id, not a UUID
_PROFILE_SEGMENT = re.compile(r"^(/(?:api/v1/users|profile))/[^/]+")


def normalize_path(path: str) -> str:
    """Collapse id segments to ":id" so metric label cardinality stays bounded."""
    path = _UUID_SEGMENT.sub("/:id", path)
    return _PROFILE_SEGMENT.sub(r"\1/:id", path)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        path = request.url.path

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            path=path,
            method=request.method,
        )

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            log.exception(
                "request_failed",
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )
            raise
        duration = time.perf_counter() - start

        route = normalize_path(path)
        http_requests.labels(
            method=request.method, path=route, status_code=str(response.status_code)
        ).inc()
        http_request_duration.labels(method=request.method, path=route).observe(duration)

        emit = log.debug if path in QUIET_PATHS else log.info
        emit(
            "request_completed",
            status_code=response.status_code,
            duration_ms=round(duration * 1000, 2),
        )

        response.headers["X-Request-ID"] = request_id
        return response
