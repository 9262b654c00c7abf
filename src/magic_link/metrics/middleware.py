"""Prometheus HTTP request metrics middleware for FastAPI.

Tracks:
- ``http_request_total`` (counter): requests by method, route, status
- ``http_request_duration_seconds`` (histogram): duration by method, route
- ``http_requests_in_progress`` (gauge): requests currently being served

Paths are labelled with the matched route template so claim tokens never
end up in label values.  A request whose handler raises is counted with
status ``500`` before the exception continues up the stack.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from prometheus_client import Counter, Gauge, Histogram
from starlette.middleware.base import BaseHTTPMiddleware

if TYPE_CHECKING:
    from collections.abc import Callable

    from prometheus_client import CollectorRegistry
    from starlette.requests import Request
    from starlette.responses import Response

_APP_LABEL = "magic-link"
_UNMATCHED = "unmatched"


def _route_path(request: Request) -> str:
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    return path if isinstance(path, str) else _UNMATCHED


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Starlette middleware that records request count, duration and concurrency."""

    def __init__(self, app: object, *, registry: CollectorRegistry) -> None:
        super().__init__(app)  # type: ignore[arg-type]
        self._requests = Counter(
            "http_request_total",
            "Total HTTP requests",
            ("method", "path", "status_code", "app"),
            registry=registry,
        )
        self._duration = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ("method", "path", "app"),
            registry=registry,
        )
        self._in_progress = Gauge(
            "http_requests_in_progress",
            "HTTP requests currently being served",
            ("method", "app"),
            registry=registry,
        )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:  # type: ignore[type-arg]
        """Time the request and record it under its route template."""
        in_progress = self._in_progress.labels(method=request.method, app=_APP_LABEL)
        in_progress.inc()
        start = time.monotonic()
        status = 500
        try:
            response: Response = await call_next(request)
            status = response.status_code
            return response
        finally:
            in_progress.dec()
            self._observe(request, status, time.monotonic() - start)

    def _observe(self, request: Request, status: int, elapsed: float) -> None:
        path = _route_path(request)
        self._requests.labels(
            method=request.method,
            path=path,
            status_code=str(status),
            app=_APP_LABEL,
        ).inc()
        self._duration.labels(method=request.method, path=path, app=_APP_LABEL).observe(elapsed)
