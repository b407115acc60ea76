"""Observability infrastructure module.

This module provides monitoring and error tracking:
- Structured logging with correlation IDs
- Prometheus metrics
- OpenTelemetry tracing
- Bugsnag error reporting
"""

from mcp_chat.platform.observability.logging import (
    configure_logging,
    conversation_id_ctx,
    correlation_id_ctx,
)
from mcp_chat.platform.observability.metrics import (
    BUCKETS,
    prometheus_middleware,
)

__all__ = [
    "BUCKETS",
    "configure_logging",
    "conversation_id_ctx",
    "correlation_id_ctx",
    "prometheus_middleware",
]
