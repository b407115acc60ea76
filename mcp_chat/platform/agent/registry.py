"""Process-wide registry of tool-provider connections.

The registry owns every ``ToolProviderConnection``, merges their catalogs
into one namespaced tool list and routes qualified tool calls back to the
owning provider, reconnecting once when a connection has gone stale.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from mcp_chat.platform.agent.config import ToolProviderConfig
from mcp_chat.platform.agent.exceptions import (
    ProviderAlreadyRegisteredError,
    ProviderConnectionError,
    ProviderNotFoundError,
    ToolDispatchError,
    ToolProviderError,
)
from mcp_chat.platform.agent.mcp import ToolProviderConnection, open_connection
from mcp_chat.platform.agent.metrics import record_provider_reconnect
from mcp_chat.platform.agent.tools import ToolDefinition, split_qualified_name
from mcp_chat.platform.constants import TOOL_NAME_SEPARATOR, UI_RESOURCE_SCHEME

logger = logging.getLogger(__name__)

type ConnectionFactory = Callable[[str, ToolProviderConfig], Awaitable[ToolProviderConnection]]


def provider_id_from_resource_uri(uri: str) -> str:
    """Extract the provider id from a ``ui://<provider_id>/...`` resource URI.

    Raises:
        ValueError: If the URI is not a UI resource or names no provider
    """
    if not uri.startswith(UI_RESOURCE_SCHEME):
        raise ValueError(f"Only {UI_RESOURCE_SCHEME} resources are supported")
    provider_id = uri[len(UI_RESOURCE_SCHEME) :].split("/", 1)[0]
    if not provider_id:
        raise ValueError(f"Resource URI names no server: {uri}")
    return provider_id


class ToolProviderRegistry:
    """Registry of tool providers keyed by provider id.

    Register, remove and reconnect are serialized by one lock; reads of the
    catalog never wait on it.
    """

    def __init__(self, connection_factory: ConnectionFactory = open_connection) -> None:
        self._connection_factory = connection_factory
        self._connections: dict[str, ToolProviderConnection] = {}
        self._lock = asyncio.Lock()

    def __contains__(self, provider_id: str) -> bool:
        return provider_id in self._connections

    async def register(self, provider_id: str, config: ToolProviderConfig) -> ToolProviderConnection:
        """Connect to a provider and add it to the registry.

        Raises:
            ValueError: If the provider id is empty or contains the name separator
            ProviderAlreadyRegisteredError: If the id is already registered
            ProviderConnectionError: If the provider cannot be reached
        """
        if not provider_id or TOOL_NAME_SEPARATOR in provider_id:
            raise ValueError(f'Server id must be non-empty and must not contain "{TOOL_NAME_SEPARATOR}"')
        async with self._lock:
            if provider_id in self._connections:
                raise ProviderAlreadyRegisteredError(provider_id)
            connection = await self._connection_factory(provider_id, config)
            self._connections[provider_id] = connection
        return connection

    async def remove(self, provider_id: str) -> None:
        """Close a provider's connection and drop it from the registry."""
        async with self._lock:
            connection = self._connections.pop(provider_id, None)
            if connection is None:
                raise ProviderNotFoundError(provider_id)
        await self._close_quietly(connection)

    async def reconnect(self, provider_id: str) -> ToolProviderConnection:
        """Close a provider's connection and recreate it from its original config."""
        async with self._lock:
            return await self._reconnect_locked(provider_id)

    async def _reconnect_locked(self, provider_id: str) -> ToolProviderConnection:
        old = self._connections.get(provider_id)
        if old is None:
            raise ProviderNotFoundError(provider_id)
        logger.info("Reconnecting MCP server '%s'", provider_id)
        await self._close_quietly(old)
        record_provider_reconnect(provider_id)
        # On failure the closed entry stays registered and is listed as disconnected
        connection = await self._connection_factory(provider_id, old.config)
        self._connections[provider_id] = connection
        return connection

    async def close(self) -> None:
        """Close every connection. Used on shutdown."""
        async with self._lock:
            connections = list(self._connections.values())
            self._connections.clear()
        for connection in connections:
            await self._close_quietly(connection)

    def get(self, provider_id: str) -> ToolProviderConnection:
        try:
            return self._connections[provider_id]
        except KeyError:
            raise ProviderNotFoundError(provider_id) from None

    def list_providers(self) -> list[dict[str, Any]]:
        """Summaries of every registered provider, connected or not."""
        return [
            {
                "id": provider_id,
                "type": connection.config.transport.value,
                "command": connection.config.command,
                "args": list(connection.config.args),
                "url": connection.config.url,
                "status": connection.status.value,
                "tools": [tool.local_name for tool in connection.tools],
                "resourceCount": len(connection.resources),
            }
            for provider_id, connection in self._connections.items()
        ]

    def list_tools(self) -> list[ToolDefinition]:
        """Merged catalog of every connected provider's tools."""
        return [
            tool
            for connection in self._connections.values()
            if connection.connected
            for tool in connection.tools
        ]

    def find_tool(self, qualified_name: str) -> ToolDefinition | None:
        """Look up a tool by its qualified name, or None if unknown."""
        try:
            provider_id, local_name = split_qualified_name(qualified_name)
        except ToolDispatchError:
            return None
        connection = self._connections.get(provider_id)
        if connection is None:
            return None
        return next((tool for tool in connection.tools if tool.local_name == local_name), None)

    async def dispatch(self, qualified_name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        """Route a qualified tool call to its provider."""
        provider_id, local_name = split_qualified_name(qualified_name)
        return await self.call_tool(provider_id, local_name, arguments)

    async def call_tool(self, provider_id: str, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        """Call a tool on a provider, reconnecting at most once.

        A disconnected provider is reconnected before the call. A call that
        fails with a connection-class error triggers one reconnect and one
        retry, unless a reconnect already happened for this call.

        Raises:
            ProviderNotFoundError: If the provider is not registered
            ToolDispatchError: If the call cannot be completed
        """
        connection = self.get(provider_id)
        reconnected = False

        if not connection.connected:
            connection = await self._reconnect_for_dispatch(provider_id, "is disconnected and reconnection failed")
            reconnected = True

        try:
            return await connection.call_tool(name, arguments)
        except ProviderConnectionError as e:
            if reconnected:
                raise ToolDispatchError(str(e), provider_id=provider_id) from e
            logger.warning("Reconnecting MCP server '%s' after session error: %s", provider_id, e)

        connection = await self._reconnect_for_dispatch(provider_id, "reconnection failed")
        try:
            return await connection.call_tool(name, arguments)
        except ProviderConnectionError as e:
            raise ToolDispatchError(f"Reconnection failed: {e}", provider_id=provider_id) from e

    async def read_resource(self, uri: str, provider_id: str | None = None) -> dict[str, Any]:
        """Read a UI resource, by default from the provider named in its URI.

        Raises:
            ValueError: If no provider is given and the URI is not a ``ui://`` resource URI
            ProviderNotFoundError: If the provider is not registered
            ToolProviderError: If the provider fails to serve the resource
        """
        connection = self.get(provider_id or provider_id_from_resource_uri(uri))
        return await connection.read_resource(uri)

    async def _reconnect_for_dispatch(self, provider_id: str, reason: str) -> ToolProviderConnection:
        try:
            return await self.reconnect(provider_id)
        except ToolProviderError as e:
            raise ToolDispatchError(f'Server "{provider_id}" {reason}: {e}', provider_id=provider_id) from e

    async def _close_quietly(self, connection: ToolProviderConnection) -> None:
        try:
            await connection.close()
        except Exception:
            logger.exception("Error closing MCP server '%s'", connection.provider_id)
