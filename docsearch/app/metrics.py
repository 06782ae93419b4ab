from __future__ import annotations

import time

from fastapi import Request
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.responses import Response

from docsearch.app.settings import settings

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)
SEARCH_REQUESTS = Counter(
    "search_requests_total",
    "Search requests by the algorithm that produced the result",
    ["algorithm"],
)
SEARCH_FALLBACKS = Counter(
    "search_fallbacks_total",
    "Semantic searches answered by the lexical fallback",
    ["operation"],
)


def record_search(algorithm: str, operation: str) -> None:
    """Count a completed search and whether it degraded to lexical."""
    if not settings.metrics_enabled:
        return
    SEARCH_REQUESTS.labels(algorithm).inc()
    if algorithm == "text-fallback":
        SEARCH_FALLBACKS.labels(operation).inc()


async def metrics_middleware(request: Request, call_next):
    if not settings.metrics_enabled:
        return await call_next(request)
    path = request.url.path
    if path == "/metrics":
        return await call_next(request)
    start = time.monotonic()
    status = 500
    try:
        response = await call_next(request)
        status = response.status_code
        return response
    finally:
        duration = time.monotonic() - start
        REQUEST_COUNT.labels(request.method, path, str(status)).inc()
        REQUEST_LATENCY.labels(request.method, path).observe(duration)


def metrics_response() -> Response:
    if not settings.metrics_enabled:
        return Response(status_code=404)
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
