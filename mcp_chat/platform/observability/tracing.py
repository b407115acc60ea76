"""OpenTelemetry tracing setup.

Spans are exported over OTLP/gRPC to the configured collector. The FastAPI
app and stdlib logging are instrumented so request spans and log records
carry the same trace ids.
"""

import logging

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME as RESOURCE_SERVICE_NAME
from opentelemetry.sdk.resources import SERVICE_VERSION as RESOURCE_SERVICE_VERSION
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from mcp_chat.platform.constants import SERVICE_NAME, SERVICE_VERSION
from mcp_chat.platform.settings import OpenTelemetrySettings

logger = logging.getLogger(__name__)


def configure_tracing(settings: OpenTelemetrySettings) -> TracerProvider:
    """Install a global tracer provider exporting to the OTLP collector."""
    resource = Resource.create(
        {
            RESOURCE_SERVICE_NAME: SERVICE_NAME,
            RESOURCE_SERVICE_VERSION: SERVICE_VERSION,
        }
    )
    provider = TracerProvider(resource=resource)
    exporter = OTLPSpanExporter(endpoint=f"{settings.host}:{settings.port}", insecure=True)
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)
    LoggingInstrumentor().instrument()
    logger.info("Tracing enabled, exporting to %s:%s", settings.host, settings.port)
    return provider


def instrument_app(app: FastAPI, settings: OpenTelemetrySettings) -> None:
    FastAPIInstrumentor.instrument_app(app, excluded_urls=settings.excluded_urls)
