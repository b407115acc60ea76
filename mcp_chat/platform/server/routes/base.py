"""Platform endpoints: health, service info and Prometheus metrics.

``/health`` is what load balancers poll; it flips to 404 while the service
drains chat runs on shutdown.
"""

import logging
from enum import Enum

from fastapi import APIRouter, Request, Response

from mcp_chat.platform.observability.metrics import metrics as prom_metrics
from mcp_chat.platform.server.health import HealthCheck, metadata

logger = logging.getLogger(__name__)

base_router = APIRouter()
base_tags: list[Enum | str] = ["base"]


@base_router.get("/health", tags=base_tags)
async def health():
    if not HealthCheck.status():
        logger.info("health-check: fail. disabled")
        return Response(status_code=404)
    return {"status": "OK"}


@base_router.get("/info", tags=base_tags)
async def info(request: Request):
    """Static service metadata plus a summary of the chat runtime."""
    state = request.app.state
    runtime = {}
    if (provider := getattr(state, "model_provider", None)) is not None:
        runtime["model_provider"] = {"name": provider.name, "model": provider.model}
    if (registry := getattr(state, "registry", None)) is not None:
        runtime["tool_providers"] = {summary["id"]: summary["status"] for summary in registry.list_providers()}
    if (chat_runs := getattr(state, "chat_runs", None)) is not None:
        runtime["active_chat_runs"] = len(chat_runs)
    return metadata.info() | runtime


@base_router.get("/metrics", tags=base_tags)
async def metrics():
    body, media_type = prom_metrics()
    return Response(body, media_type=media_type)
