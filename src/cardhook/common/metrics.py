"""Prometheus metrics for webhook signature observability."""

import os
import time

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
    multiprocess,
)
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Match
from starlette.types import ASGIApp

UNMATCHED_ROUTE = "unmatched"

# === Counters ===

SIGNATURE_VERIFICATIONS_TOTAL = Counter(
    "cardhook_signature_verifications_total",
    "Inbound request signature verifications",
    ["outcome", "reason"],  # outcome: verified, rejected
)

SIGNED_RESPONSES_TOTAL = Counter(
    "cardhook_signed_responses_total",
    "Outbound responses signed",
    ["endpoint"],
)

SIGNING_FAILURES_TOTAL = Counter(
    "cardhook_signing_failures_total",
    "Responses that could not be signed",
)

HTTP_REQUESTS_TOTAL = Counter(
    "cardhook_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

# === Histograms ===

HTTP_REQUEST_LATENCY = Histogram(
    "cardhook_http_request_latency_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)


# === Helper Functions ===


def record_verification(outcome: str, reason: str = "ok") -> None:
    """Record a signature verification outcome."""
    SIGNATURE_VERIFICATIONS_TOTAL.labels(outcome=outcome, reason=reason).inc()


def record_signed_response(endpoint: str) -> None:
    """Record a signed outbound response."""
    SIGNED_RESPONSES_TOTAL.labels(endpoint=endpoint).inc()


def record_signing_failure() -> None:
    """Record a response that could not be signed."""
    SIGNING_FAILURES_TOTAL.inc()


def record_http_request(
    method: str,
    endpoint: str,
    status: int,
    latency: float,
) -> None:
    """Record an HTTP request."""
    HTTP_REQUESTS_TOTAL.labels(
        method=method,
        endpoint=endpoint,
        status=str(status),
    ).inc()
    HTTP_REQUEST_LATENCY.labels(
        method=method,
        endpoint=endpoint,
    ).observe(latency)


# === HTTP Endpoint ===


def route_label(request: Request) -> str:
    """Path template of the route serving a request.

    Paths no route matches share one label so arbitrary URLs cannot grow
    the series count.
    """
    for route in request.app.routes:
        match, _ = route.matches(request.scope)
        if match != Match.NONE:
            return getattr(route, "path", UNMATCHED_ROUTE)
    return UNMATCHED_ROUTE


class MetricsMiddleware(BaseHTTPMiddleware):
    """HTTP request metrics middleware."""

    def __init__(self, app: ASGIApp, exclude_paths: list[str] | None = None) -> None:
        super().__init__(app)
        self._exclude_paths = set(exclude_paths or [])

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in self._exclude_paths:
            return await call_next(request)

        endpoint = route_label(request)
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            duration = time.perf_counter() - start
            record_http_request(
                method=request.method,
                endpoint=endpoint,
                status=500,
                latency=duration,
            )
            raise

        duration = time.perf_counter() - start
        record_http_request(
            method=request.method,
            endpoint=endpoint,
            status=response.status_code,
            latency=duration,
        )
        return response


async def metrics_endpoint(_request: Request) -> Response:
    """
    Prometheus metrics endpoint.

    Returns metrics in Prometheus text format.
    """
    multiproc_dir = os.environ.get("PROMETHEUS_MULTIPROC_DIR")
    if multiproc_dir:
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)  # type: ignore[no-untyped-call]
        return Response(
            generate_latest(registry),
            media_type="text/plain; version=0.0.4; charset=utf-8",
        )

    return Response(
        generate_latest(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
