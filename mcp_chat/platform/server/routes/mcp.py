"""Tool-provider (MCP server) management endpoints.

Lets clients register, remove and reconnect tool providers at runtime, and
call a provider's tools directly (the same path rendered tool UIs use).
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from mcp_chat.platform.agent.config import ToolProviderConfig, TransportKind
from mcp_chat.platform.agent.exceptions import (
    ProviderAlreadyRegisteredError,
    ProviderNotFoundError,
    ToolProviderError,
)
from mcp_chat.platform.agent.registry import ToolProviderRegistry
from mcp_chat.platform.server.dependencies.chat import get_registry
from mcp_chat.platform.server.responses import error_response

logger = logging.getLogger(__name__)

mcp_router = APIRouter(prefix="/api/mcp", tags=["mcp"])


def parse_env(value: dict[str, str] | str | None) -> dict[str, str]:
    """Accept env either as a mapping or as a ``KEY=val KEY2=val2`` string."""
    if value is None:
        return {}
    if isinstance(value, dict):
        return dict(value)
    env: dict[str, str] = {}
    for pair in value.split():
        key, separator, val = pair.partition("=")
        if separator and key:
            env[key] = val
    return env


def parse_args(value: list[str] | str | None) -> tuple[str, ...]:
    """Accept args either as a list or as a whitespace-separated string."""
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(value.split())
    return tuple(value)


class ServerPayload(BaseModel):
    """Request payload for registering a tool provider.

    Attributes:
        id: Provider id, used as the tool name namespace
        type: stdio (alias subprocess) or http (alias httpStream)
        url: Endpoint of an http provider
        command: Executable of a stdio provider
        args: Arguments, as a list or a whitespace-separated string
        env: Extra environment, as a mapping or a ``K=V K2=V2`` string
        headers: Extra HTTP headers for an http provider
    """

    id: str | None = None
    type: str = TransportKind.SUBPROCESS.value
    url: str | None = None
    command: str | None = None
    args: list[str] | str | None = None
    env: dict[str, str] | str | None = None
    headers: dict[str, str] | None = None

    def to_config(self) -> ToolProviderConfig:
        """Raises ValueError when the payload does not describe a valid provider."""
        transport = TransportKind.parse(self.type)
        if transport is TransportKind.HTTP_STREAM:
            return ToolProviderConfig(transport=transport, url=self.url, headers=self.headers)
        return ToolProviderConfig(
            transport=transport,
            command=self.command,
            args=parse_args(self.args),
            env=parse_env(self.env),
        )


class ToolCallPayload(BaseModel):
    serverId: str | None = None
    name: str | None = None
    arguments: dict[str, Any] | None = None


@mcp_router.get("/servers")
async def list_servers(registry: ToolProviderRegistry = Depends(get_registry)):
    return {"servers": registry.list_providers()}


@mcp_router.post("/servers")
async def add_server(payload: ServerPayload, registry: ToolProviderRegistry = Depends(get_registry)):
    """Register and connect a tool provider."""
    if not payload.id:
        return error_response(400, "id is required")
    try:
        config = payload.to_config()
    except ValueError as e:
        return error_response(400, str(e))

    try:
        await registry.register(payload.id, config)
    except ProviderAlreadyRegisteredError as e:
        return error_response(409, str(e))
    except ToolProviderError as e:
        logger.warning("Failed to add MCP server '%s': %s", payload.id, e)
        return error_response(500, str(e))
    except ValueError as e:
        return error_response(400, str(e))
    return {"status": "connected", "servers": registry.list_providers()}


@mcp_router.delete("/servers/{server_id}")
async def remove_server(server_id: str, registry: ToolProviderRegistry = Depends(get_registry)):
    try:
        await registry.remove(server_id)
    except ProviderNotFoundError as e:
        return error_response(404, str(e))
    return {"status": "removed", "servers": registry.list_providers()}


@mcp_router.post("/servers/{server_id}/reconnect")
async def reconnect_server(server_id: str, registry: ToolProviderRegistry = Depends(get_registry)):
    try:
        await registry.reconnect(server_id)
    except ProviderNotFoundError as e:
        return error_response(404, str(e))
    except ToolProviderError as e:
        logger.warning("Failed to reconnect MCP server '%s': %s", server_id, e)
        return error_response(500, str(e))
    return {"status": "reconnected", "servers": registry.list_providers()}


@mcp_router.post("/tool-call")
async def call_tool(payload: ToolCallPayload, registry: ToolProviderRegistry = Depends(get_registry)):
    """Call a tool on a provider and return the raw MCP result."""
    if not payload.serverId or not payload.name:
        return error_response(400, "serverId and name are required")
    try:
        return await registry.call_tool(payload.serverId, payload.name, payload.arguments or {})
    except ProviderNotFoundError as e:
        return error_response(404, str(e))
    except ToolProviderError as e:
        return error_response(500, str(e))
