"""MCP tool-provider connections.

A ``ToolProviderConnection`` owns one live MCP client session, over either a
subprocess (stdio) or a streamable HTTP transport. The transport and session
context managers are entered and exited by a single background task, so the
connection can be opened by one request and closed by another.

Usage:
    connection = await open_connection("weather", config)
    result = await connection.call_tool("forecast", {"city": "Paris"})
    await connection.close()
"""

import asyncio
import logging
import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import AsyncExitStack, asynccontextmanager
from datetime import timedelta
from enum import StrEnum
from typing import Any

import anyio
import httpx
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from mcp import McpError, StdioServerParameters
from mcp.client.session import ClientSession
from mcp.client.stdio import stdio_client
from mcp.client.streamable_http import streamable_http_client
from mcp.shared.message import SessionMessage
from mcp.shared.session import RequestResponder
from mcp.types import Implementation, Resource, ServerNotification, ToolListChangedNotification
from pydantic import AnyUrl

from mcp_chat.platform.agent.config import ToolProviderConfig, TransportKind
from mcp_chat.platform.agent.exceptions import ProviderConnectionError, ToolDispatchError
from mcp_chat.platform.agent.tools import ToolDefinition
from mcp_chat.platform.constants import SERVICE_NAME, SERVICE_VERSION, USER_AGENT

logger = logging.getLogger(__name__)

# Transport-level failures that mean the session is gone
CLOSED_TRANSPORT_ERRORS = (
    anyio.ClosedResourceError,
    anyio.BrokenResourceError,
    anyio.EndOfStream,
    httpx.TransportError,
)

SESSION_ERROR_MARKERS = ("not initialized", "session")

type ReadStream = MemoryObjectReceiveStream[SessionMessage | Exception]


class ConnectionStatus(StrEnum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


def is_session_error(error: Exception) -> bool:
    """Whether an MCP error reports a lost or uninitialized session."""
    message = str(error).lower()
    return any(marker in message for marker in SESSION_ERROR_MARKERS)


class ToolProviderConnection:
    """A live connection to one MCP server.

    Attributes:
        provider_id: Registry id of the provider
        config: Configuration the connection was created from
        status: Connected until the transport closes or the connection is closed
        tools: Tool catalog, replaced whenever the server reports a change
        resources: Resources listed at connection time
    """

    def __init__(self, provider_id: str, config: ToolProviderConfig) -> None:
        self.provider_id = provider_id
        self.config = config
        self.status = ConnectionStatus.DISCONNECTED
        self.tools: list[ToolDefinition] = []
        self.resources: list[Resource] = []
        self._session: ClientSession | None = None
        self._task: asyncio.Task | None = None
        self._closing = asyncio.Event()
        self._background: set[asyncio.Task] = set()

    def __repr__(self) -> str:
        return (
            f"ToolProviderConnection(provider_id={self.provider_id!r}, "
            f"status={self.status.value!r}, config={self.config!r})"
        )

    @property
    def connected(self) -> bool:
        return self.status is ConnectionStatus.CONNECTED

    async def connect(self) -> None:
        """Open the transport, run the MCP handshake and load the catalogs.

        Raises:
            ProviderConnectionError: If the server cannot be reached or initialized
        """
        ready: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._task = asyncio.create_task(self._run(ready), name=f"mcp-provider-{self.provider_id}")
        try:
            await ready
        except Exception as e:
            raise ProviderConnectionError(
                f'Failed to connect to server "{self.provider_id}": {e}',
                provider_id=self.provider_id,
            ) from e

    async def close(self) -> None:
        """Shut the session and transport down. Safe to call more than once."""
        self._closing.set()
        for task in list(self._background):
            task.cancel()
        if self._task is None or self._task.done():
            return
        done, _ = await asyncio.wait({self._task}, timeout=self.config.timeout)
        if not done:
            logger.warning("MCP server '%s' did not shut down in time, cancelling", self.provider_id)
            self._task.cancel()

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        """Call a tool and return the raw MCP result (content, structuredContent, isError, _meta).

        Raises:
            ProviderConnectionError: If the session is closed or reports itself invalid
            ToolDispatchError: If the server rejects the call
        """
        result = await self._request(f"call tool '{name}'", lambda session: session.call_tool(name, arguments))
        return result.model_dump(by_alias=True, exclude_none=True, mode="json")

    async def read_resource(self, uri: str) -> dict[str, Any]:
        """Read a resource and return the raw MCP result ({contents: [...]})."""
        result = await self._request(f"read resource '{uri}'", lambda session: session.read_resource(AnyUrl(uri)))
        return result.model_dump(by_alias=True, exclude_none=True, mode="json")

    async def refresh_tools(self) -> None:
        """Replace the cached tool catalog with the server's current listing."""
        result = await self._request("list tools", lambda session: session.list_tools())
        self.tools = [ToolDefinition.from_mcp(self.provider_id, tool) for tool in result.tools]
        logger.info(
            "Tools updated for server '%s': %s",
            self.provider_id,
            ", ".join(tool.local_name for tool in self.tools) or "none",
        )

    async def _request[T](self, operation: str, call: Callable[[ClientSession], Awaitable[T]]) -> T:
        session = self._session
        if session is None or not self.connected:
            raise ProviderConnectionError(
                f'Server "{self.provider_id}" is disconnected', provider_id=self.provider_id
            )
        try:
            return await call(session)
        except CLOSED_TRANSPORT_ERRORS as e:
            self.status = ConnectionStatus.DISCONNECTED
            raise ProviderConnectionError(
                f'Connection to server "{self.provider_id}" closed: {e}', provider_id=self.provider_id
            ) from e
        except McpError as e:
            if is_session_error(e):
                raise ProviderConnectionError(
                    f'Session error on server "{self.provider_id}": {e}', provider_id=self.provider_id
                ) from e
            raise ToolDispatchError(f"Failed to {operation}: {e}", provider_id=self.provider_id) from e

    async def _run(self, ready: asyncio.Future[None]) -> None:
        try:
            async with self._open_session() as session:
                init = await session.initialize()
                self._session = session
                self.tools = await self._initial_tools(session, init.capabilities.tools is not None)
                self.resources = await self._initial_resources(session, init.capabilities.resources is not None)
                self.status = ConnectionStatus.CONNECTED
                ready.set_result(None)
                logger.info(
                    "MCP server '%s' connected. Tools: %s",
                    self.provider_id,
                    ", ".join(tool.local_name for tool in self.tools) or "none",
                )
                await self._closing.wait()
        except Exception as e:
            if not ready.done():
                ready.set_exception(e)
            else:
                logger.warning("MCP server '%s' transport closed with error: %s", self.provider_id, e)
        finally:
            self._session = None
            self.status = ConnectionStatus.DISCONNECTED
            logger.info("MCP server '%s' disconnected", self.provider_id)

    @asynccontextmanager
    async def _open_session(self) -> AsyncGenerator[ClientSession]:
        async with AsyncExitStack() as stack:
            if self.config.transport is TransportKind.SUBPROCESS:
                params = StdioServerParameters(
                    command=self.config.command,
                    args=list(self.config.args),
                    env=os.environ.copy() | self.config.env,
                )
                read_stream, write_stream = await stack.enter_async_context(stdio_client(params))
            else:
                http_client = await stack.enter_async_context(
                    httpx.AsyncClient(
                        headers=(self.config.headers or {}) | {"user-agent": USER_AGENT},
                        timeout=httpx.Timeout(
                            connect=self.config.timeout,
                            read=self.config.sse_read_timeout,
                            write=self.config.timeout,
                            pool=self.config.timeout,
                        ),
                    )
                )
                read_stream, write_stream, _ = await stack.enter_async_context(
                    streamable_http_client(url=self.config.url, http_client=http_client)
                )
            read_stream = await stack.enter_async_context(self._watch_transport(read_stream))
            session = await stack.enter_async_context(
                ClientSession(
                    read_stream,
                    write_stream,
                    read_timeout_seconds=timedelta(seconds=self.config.read_timeout),
                    message_handler=self._handle_message,
                    client_info=Implementation(name=SERVICE_NAME, version=SERVICE_VERSION),
                )
            )
            yield session

    @asynccontextmanager
    async def _watch_transport(self, read_stream: ReadStream) -> AsyncGenerator[ReadStream]:
        """Hand the session a relay of the transport's read side.

        ClientSession stops quietly when the server ends the stream, so the
        relay is what marks the connection disconnected.
        """
        send_stream, receive_stream = anyio.create_memory_object_stream[SessionMessage | Exception](0)
        async with anyio.create_task_group() as task_group:
            task_group.start_soon(self._relay, read_stream, send_stream)
            try:
                yield receive_stream
            finally:
                task_group.cancel_scope.cancel()

    async def _relay(
        self,
        read_stream: ReadStream,
        send_stream: MemoryObjectSendStream[SessionMessage | Exception],
    ) -> None:
        async with read_stream, send_stream:
            try:
                async for message in read_stream:
                    await send_stream.send(message)
            except (anyio.ClosedResourceError, anyio.BrokenResourceError) as e:
                logger.debug("MCP server '%s' relay stopped: %r", self.provider_id, e)
        if not self._closing.is_set():
            logger.warning("MCP server '%s' closed the connection", self.provider_id)
            self.status = ConnectionStatus.DISCONNECTED
            self._closing.set()

    async def _initial_tools(self, session: ClientSession, supported: bool) -> list[ToolDefinition]:
        if not supported:
            return []
        try:
            result = await session.list_tools()
        except McpError as e:
            logger.warning("MCP server '%s' failed to list tools: %s", self.provider_id, e)
            return []
        return [ToolDefinition.from_mcp(self.provider_id, tool) for tool in result.tools]

    async def _initial_resources(self, session: ClientSession, supported: bool) -> list[Resource]:
        if not supported:
            return []
        try:
            result = await session.list_resources()
        except McpError as e:
            logger.warning("MCP server '%s' failed to list resources: %s", self.provider_id, e)
            return []
        return list(result.resources)

    async def _handle_message(
        self,
        message: RequestResponder | ServerNotification | Exception,
    ) -> None:
        if isinstance(message, Exception):
            logger.warning("MCP server '%s' sent an error: %s", self.provider_id, message)
            return
        if isinstance(message, ServerNotification) and isinstance(message.root, ToolListChangedNotification):
            # Runs inside the session's receive loop; awaiting a request here would deadlock
            task = asyncio.create_task(self._refresh_after_change())
            self._background.add(task)
            task.add_done_callback(self._background.discard)

    async def _refresh_after_change(self) -> None:
        try:
            await self.refresh_tools()
        except (ProviderConnectionError, ToolDispatchError) as e:
            logger.warning("Failed to refresh tools for server '%s': %s", self.provider_id, e)


async def open_connection(provider_id: str, config: ToolProviderConfig) -> ToolProviderConnection:
    """Create and connect a tool-provider connection."""
    connection = ToolProviderConnection(provider_id, config)
    await connection.connect()
    return connection
