from __future__ import annotations

import time
from collections.abc import Callable

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_COUNTER = Counter(
    "certissuer_request_total",
    "Total HTTP requests",
    ["method", "path", "status_code"],
)
REQUEST_LATENCY = Histogram(
    "certissuer_request_duration_seconds",
    "HTTP request latency",
    ["method", "path"],
)
CERTIFICATES_ISSUED = Counter(
    "certissuer_certificates_issued_total",
    "Certificates issued, by request channel",
    ["channel"],
)
VERIFICATIONS = Counter(
    "certissuer_verifications_total",
    "Public verification lookups, by outcome",
    ["outcome"],
)


def route_template(request: Request) -> str:
    """Label a request by its mounted route template, e.g.
    ``/api/certificates/verify/{verification_token}``.

    Verification tokens and ids never reach label values. Routers included
    with a prefix may report only their own part of the template, so the
    mount prefix is recovered from the concrete request path.
    """
    route = request.scope.get("route")
    path_format = getattr(route, "path_format", None) or getattr(route, "path", None)
    if path_format is None:
        return "unmatched"
    path = request.url.path
    params = {key: str(value) for key, value in request.path_params.items()}
    try:
        concrete = path_format.format(**params)
    except (KeyError, IndexError, ValueError):
        return path_format
    if path != concrete and path.endswith(concrete):
        return path[: len(path) - len(concrete)] + path_format
    return path_format


class MetricsMiddleware(BaseHTTPMiddleware):
    """Collect Prometheus metrics for each request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start
        path_template = route_template(request)
        REQUEST_COUNTER.labels(
            request.method, path_template, response.status_code
        ).inc()
        REQUEST_LATENCY.labels(request.method, path_template).observe(duration)
        return response


def metrics_response() -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
