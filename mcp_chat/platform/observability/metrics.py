"""Prometheus metrics collection and HTTP middleware.

This module provides the HTTP request duration histogram, the shared
histogram buckets used by the agent metrics and the /metrics exposition.
"""

from time import monotonic
from typing import NamedTuple

import prometheus_client


class HTTPLabels(NamedTuple):
    method: str
    path: str
    http_status: str


_NXX_LUT = ["1XX", "2XX", "3XX", "4XX", "5XX"]


def http_status_nxx(status: int) -> str:
    """A coarser 2XX, 4XX, 5XX"""
    return _NXX_LUT[status // 100 - 1]


BUCKETS = (
    # log spaced with 1 sig-fig rounding, 3 per decade
    0.0002,  # 200 μs
    0.0005,
    0.001,  # 1 ms
    0.002,
    0.005,
    0.01,
    0.02,
    0.05,
    0.1,
    0.2,
    0.5,
    1,
    2,
    5,
    10,
    20,
    float("inf"),
)


def get_path(routes, scope) -> str:
    """Extract the matched route path template from a request scope.

    Streaming chat responses and websocket channels are labelled with their
    route template too, so provider ids and query strings never become labels.
    """
    for route in routes:
        _, matches = route.matches(scope)
        if matches:
            return route.path
    return "path-not-found"


async def prometheus_middleware(request, call_next):
    """HTTP middleware that records request duration metrics.

    For SSE responses this measures time to first byte, not stream duration.
    """
    start_time = monotonic()
    response = await call_next(request)
    elapsed_sec = monotonic() - start_time

    labels = HTTPLabels(
        method=request.method,
        path=get_path(request.app.routes, request.scope),
        http_status=http_status_nxx(response.status_code),
    )
    http_histogram.labels(*labels).observe(elapsed_sec)

    return response


def setup_http_metrics(registry) -> prometheus_client.Histogram:
    """Create the HTTP request duration histogram."""
    return prometheus_client.Histogram(
        name="http_request_duration_seconds",
        documentation="Request duration (seconds)",
        labelnames=HTTPLabels._fields,
        registry=registry,
        buckets=BUCKETS,
    )


http_histogram = setup_http_metrics(registry=prometheus_client.REGISTRY)


def metrics() -> tuple[bytes, str]:
    """Generate Prometheus metrics output for the /metrics endpoint.

    Returns:
        Tuple of (metrics_body, content_type) for the HTTP response
    """
    return (
        prometheus_client.generate_latest(prometheus_client.REGISTRY),
        prometheus_client.CONTENT_TYPE_LATEST,
    )
