"""FastAPI middleware stack — request ID, access logging, HTTP metrics."""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable, Awaitable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from genhub.shared.observability.metrics import HTTP_REQUEST_DURATION, HTTP_REQUESTS_TOTAL

logger = structlog.get_logger(__name__)

Next = Callable[[Request], Awaitable[Response]]


def _route_template(request: Request) -> str:
    """``/api/v1/jobs/{job_id}`` instead of the concrete path."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Propagates X-Request-ID and binds it into the structlog context."""

    async def dispatch(self, request: Request, call_next: Next) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        structlog.contextvars.bind_contextvars(request_id=request_id)
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id")
        response.headers["X-Request-ID"] = request_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """One access-log event per request."""

    async def dispatch(self, request: Request, call_next: Next) -> Response:
        start = time.monotonic()
        response = await call_next(request)
        logger.info(
            "http_request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round((time.monotonic() - start) * 1000, 2),
        )
        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    """Prometheus request counters, labelled by route template."""

    async def dispatch(self, request: Request, call_next: Next) -> Response:
        start = time.monotonic()
        response = await call_next(request)
        endpoint = _route_template(request)
        HTTP_REQUESTS_TOTAL.labels(
            method=request.method, endpoint=endpoint, status_code=response.status_code
        ).inc()
        HTTP_REQUEST_DURATION.labels(method=request.method, endpoint=endpoint).observe(
            time.monotonic() - start
        )
        return response
