"""Prometheus metrics for the tool-use loop and tool providers."""

from time import monotonic
from typing import NamedTuple, Self

import prometheus_client

from mcp_chat.platform.agent.tools import ToolDefinition
from mcp_chat.platform.observability.metrics import BUCKETS

UNKNOWN_LABEL = "unknown"


class RunMetricsLabels(NamedTuple):
    provider: str
    model: str


class ToolMetricsLabels(NamedTuple):
    provider_id: str
    tool_name: str
    caller: str = "orchestrator"

    @classmethod
    def for_tool(cls, tool: ToolDefinition | None, caller: str = "orchestrator") -> Self:
        """Labels for a call to a catalog tool. Names the catalog does not know share one series."""
        if tool is None:
            return cls(provider_id=UNKNOWN_LABEL, tool_name=UNKNOWN_LABEL, caller=caller)
        return cls(provider_id=tool.provider_id, tool_name=tool.local_name, caller=caller)


chat_runs_total = prometheus_client.Counter(
    name="chat_runs_total",
    documentation="Tool-use loop runs by outcome",
    labelnames=(*RunMetricsLabels._fields, "outcome"),
)

chat_run_duration_seconds = prometheus_client.Histogram(
    name="chat_run_duration_seconds",
    documentation="Tool-use loop run duration (seconds)",
    labelnames=RunMetricsLabels._fields,
    buckets=(*BUCKETS[:-1], 60, 120, 300, float("inf")),
)

model_turns_total = prometheus_client.Counter(
    name="model_turns_total",
    documentation="Model turns streamed, by stop reason",
    labelnames=(*RunMetricsLabels._fields, "stop_reason"),
)

tool_calls_total = prometheus_client.Counter(
    name="tool_calls_total",
    documentation="Tool calls by provider, tool and status",
    labelnames=(*ToolMetricsLabels._fields, "status"),
)

tool_call_duration_seconds = prometheus_client.Histogram(
    name="tool_call_duration_seconds",
    documentation="Tool call duration (seconds)",
    labelnames=ToolMetricsLabels._fields,
    buckets=BUCKETS,
)

provider_reconnects_total = prometheus_client.Counter(
    name="tool_provider_reconnects_total",
    documentation="Tool provider reconnect cycles",
    labelnames=("provider_id",),
)


def record_run(labels: RunMetricsLabels, duration: float, outcome: str) -> None:
    """Record a finished run; outcome is one of done, error, iteration_limit."""
    chat_runs_total.labels(*labels, outcome).inc()
    chat_run_duration_seconds.labels(*labels).observe(duration)


def record_model_turn(labels: RunMetricsLabels, stop_reason: str | None) -> None:
    model_turns_total.labels(*labels, stop_reason or "none").inc()


def record_tool_call(labels: ToolMetricsLabels, duration: float, error: bool = False) -> None:
    status = "error" if error else "success"
    tool_calls_total.labels(*labels, status).inc()
    tool_call_duration_seconds.labels(*labels).observe(duration)


def record_provider_reconnect(provider_id: str) -> None:
    provider_reconnects_total.labels(provider_id).inc()


class collect_tool_metrics:
    """Async context manager timing one tool call.

    A call counts as an error when the block raises or when ``error`` is set
    inside it (e.g. for an ``isError`` tool result).

    Usage:
        async with collect_tool_metrics(labels) as tool_metrics:
            result = await registry.call_tool(...)
            tool_metrics.error = result.get("isError", False)
    """

    def __init__(self, labels: ToolMetricsLabels) -> None:
        self.labels = labels
        self.error = False
        self._start = 0.0

    async def __aenter__(self) -> Self:
        self._start = monotonic()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        record_tool_call(self.labels, monotonic() - self._start, error=self.error or exc_type is not None)
        return False
