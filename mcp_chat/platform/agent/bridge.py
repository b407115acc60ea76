"""JSON-RPC 2.0 bridge between rendered tool UIs and the host.

Every UI resource streamed to a chat client gets a ``BridgeSession``. The
rendered UI opens a channel (a websocket) and binds it to its session with
the ``ui/initialize`` handshake, which carries the session id. From then on
the UI can call tools on the provider that produced it, ask the host to open
links, report its size and inject user messages into the conversation.

Method names follow MCP Apps; the ``ui/`` prefix is optional on inbound
messages. Anything that is not valid JSON-RPC, an unknown method or a
message sent before the handshake is logged and ignored.
"""

import asyncio
import itertools
import json
import logging
import uuid
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlparse

from mcp_chat.platform.agent.exceptions import BridgeProtocolViolation, UnknownBridgeSession
from mcp_chat.platform.agent.messages import ToolUseBlock
from mcp_chat.platform.agent.metrics import ToolMetricsLabels, collect_tool_metrics
from mcp_chat.platform.agent.registry import ToolProviderRegistry
from mcp_chat.platform.agent.tools import ToolDefinition, qualify
from mcp_chat.platform.constants import SERVICE_NAME, SERVICE_VERSION

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2026-01-26"
JSONRPC_VERSION = "2.0"
TOOL_CALL_ERROR_CODE = -32000
INVALID_PARAMS_CODE = -32602

MAX_UI_HEIGHT = 800
UI_HEIGHT_PADDING = 20
MAX_SESSIONS = 1000

OPENABLE_LINK_SCHEMES = ("http", "https")


def jsonrpc_response(request_id: Any, result: Any) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def jsonrpc_error(request_id: Any, code: int, message: str) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": {"code": code, "message": message}}


def jsonrpc_notification(method: str, params: dict[str, Any]) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "method": method, "params": params}


def jsonrpc_request(request_id: int, method: str, params: dict[str, Any]) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "method": method, "params": params}


def parse_message(raw: str | bytes | dict[str, Any]) -> dict[str, Any]:
    """Decode and validate a JSON-RPC 2.0 message.

    Raises:
        BridgeProtocolViolation: If the payload is not a JSON-RPC 2.0 object or
            its method, id or params have the wrong type
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise BridgeProtocolViolation(f"Message is not JSON: {e}") from e
    if not isinstance(raw, dict) or raw.get("jsonrpc") != JSONRPC_VERSION:
        raise BridgeProtocolViolation("Message is not a JSON-RPC 2.0 object")
    if "method" in raw and not isinstance(raw["method"], str):
        raise BridgeProtocolViolation("Message method must be a string")
    request_id = raw.get("id")
    if request_id is not None and (isinstance(request_id, bool) or not isinstance(request_id, (str, int))):
        raise BridgeProtocolViolation("Message id must be a string, an integer or null")
    if "params" in raw and not isinstance(raw["params"], dict):
        raise BridgeProtocolViolation("Message params must be an object")
    return raw


def extract_text(content: Any) -> list[str] | None:
    """Text of the ``text`` blocks in a ui/message payload, or None if the payload is invalid."""
    if not isinstance(content, list):
        return None
    texts = [
        block["text"]
        for block in content
        if isinstance(block, dict) and block.get("type") == "text" and isinstance(block.get("text"), str)
    ]
    return [text for text in texts if text.strip()] or None


class BridgeConnection:
    """One UI channel. Bound to a session by the ``ui/initialize`` handshake."""

    def __init__(self, send: Callable[[dict[str, Any]], Awaitable[None]]) -> None:
        self._send = send
        self.session: "BridgeSession | None" = None
        self.closed = False

    async def send(self, message: dict[str, Any]) -> None:
        if self.closed:
            return
        try:
            await self._send(message)
        except Exception as e:
            logger.warning("Bridge channel send failed, closing: %s", e)
            self.closed = True


@dataclass
class BridgeSession:
    """State of one rendered UI resource."""

    session_id: str
    tool_use_id: str
    tool_name: str
    provider_id: str
    tool_input: dict[str, Any]
    tool_result: dict[str, Any]
    tool_def: dict[str, Any]
    conversation_id: str | None = None
    channel: BridgeConnection | None = None
    initialized: bool = False
    tool_data_sent: bool = False
    height: int | None = None
    pending_requests: set[int] = field(default_factory=set)

    async def send(self, message: dict[str, Any]) -> bool:
        """Send over the bound channel; False when no channel is bound."""
        if self.channel is None or self.channel.closed:
            return False
        await self.channel.send(message)
        return True


type UserMessageHandler = Callable[[BridgeSession, str], Awaitable[None]]


class UIBridge:
    """Owns bridge sessions and answers the JSON-RPC traffic of their channels.

    Args:
        registry: Tool providers that bridge tool calls are proxied to
        user_message_handler: Receives text injected by a UI via ui/message
        tool_data_delay: Seconds after initialize before tool data is pushed
            if the UI never sends ui/notifications/initialized
        link_confirm_timeout: Seconds to wait for the host to confirm a link
    """

    def __init__(
        self,
        registry: ToolProviderRegistry,
        user_message_handler: UserMessageHandler | None = None,
        tool_data_delay: float = 0.05,
        link_confirm_timeout: float = 60.0,
    ) -> None:
        self._registry = registry
        self.user_message_handler = user_message_handler
        self._tool_data_delay = tool_data_delay
        self._link_confirm_timeout = link_confirm_timeout
        self._sessions: OrderedDict[str, BridgeSession] = OrderedDict()
        self._pending: dict[int, asyncio.Future[dict[str, Any]]] = {}
        self._request_ids = itertools.count(1)
        self._background: set[asyncio.Task] = set()
        self._handlers: dict[str, Callable[[BridgeSession, dict[str, Any]], Awaitable[None]]] = {
            "ui/notifications/initialized": self._on_initialized,
            "tools/call": self._on_tool_call,
            "ui/open-link": self._on_open_link,
            "ui/notifications/size-changed": self._on_size_changed,
            "ui/message": self._on_message,
        }

    def open_session(
        self,
        tool: ToolDefinition,
        tool_use: ToolUseBlock,
        tool_result: dict[str, Any],
        conversation_id: str | None = None,
    ) -> BridgeSession:
        """Create the session a rendered UI resource will bind to."""
        session = BridgeSession(
            session_id=uuid.uuid4().hex,
            tool_use_id=tool_use.id,
            tool_name=tool_use.name,
            provider_id=tool.provider_id,
            tool_input=tool_use.input,
            tool_result=tool_result,
            tool_def=tool.to_tool_def(),
            conversation_id=conversation_id,
        )
        self._sessions[session.session_id] = session
        while len(self._sessions) > MAX_SESSIONS:
            _, evicted = self._sessions.popitem(last=False)
            logger.info("Evicting bridge session %s", evicted.session_id)
            self._drop_pending(evicted)
        return session

    def get_session(self, session_id: str) -> BridgeSession | None:
        return self._sessions.get(session_id)

    def close_session(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is not None:
            self._drop_pending(session)

    async def disconnect(self, connection: BridgeConnection) -> None:
        """Tear down a closed channel and the session bound to it."""
        connection.closed = True
        if connection.session is not None:
            self.close_session(connection.session.session_id)
            connection.session.channel = None

    async def close(self) -> None:
        """Cancel background work. Used on shutdown."""
        for task in list(self._background):
            task.cancel()
        for future in self._pending.values():
            future.cancel()
        self._pending.clear()
        self._sessions.clear()

    async def handle_message(self, connection: BridgeConnection, raw: str | bytes | dict[str, Any]) -> None:
        """Process one inbound channel message."""
        try:
            message = parse_message(raw)
        except BridgeProtocolViolation as e:
            logger.warning("Ignoring bridge message: %s", e)
            return

        method = message.get("method")
        if method is None:
            if "id" in message:
                self._resolve_pending(message)
            else:
                logger.warning("Ignoring bridge message without method or id")
            return

        method = self._canonical_method(method)
        if method == "ui/initialize":
            try:
                await self._on_initialize(connection, message)
            except Exception:
                logger.exception("Bridge handshake failed")
            return

        session = connection.session
        if session is None:
            logger.warning("Ignoring bridge message '%s' sent before the handshake", method)
            return

        handler = self._handlers.get(method)
        if handler is None:
            logger.info("Unhandled bridge method: %s", method)
            return
        try:
            await handler(session, message)
        except Exception:
            logger.exception("Bridge handler for '%s' failed in session %s", method, session.session_id)

    async def request(self, session: BridgeSession, method: str, params: dict[str, Any], timeout: float) -> dict[str, Any]:
        """Send a server-to-host request over a session's channel and await the response.

        Raises:
            BridgeProtocolViolation: If no channel is bound or the host answers with an error
            TimeoutError: If the host does not answer in time
        """
        request_id = next(self._request_ids)
        future: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        session.pending_requests.add(request_id)
        try:
            if not await session.send(jsonrpc_request(request_id, method, params)):
                raise BridgeProtocolViolation(f"Session {session.session_id} has no channel")
            response = await asyncio.wait_for(future, timeout)
        finally:
            self._pending.pop(request_id, None)
            session.pending_requests.discard(request_id)
        if "error" in response:
            raise BridgeProtocolViolation(f"Host rejected {method}: {response['error']}")
        return response.get("result") or {}

    async def send_tool_data(self, session: BridgeSession) -> None:
        """Push the tool input and result to the UI, at most once per session."""
        if session.tool_data_sent or session.channel is None:
            return
        session.tool_data_sent = True
        await session.send(jsonrpc_notification("ui/notifications/tool-input", {"arguments": session.tool_input}))
        await session.send(jsonrpc_notification("ui/notifications/tool-result", session.tool_result))

    async def post_user_message(self, session: BridgeSession, text: str) -> None:
        """Hand UI-injected text to the host, which submits it as a new user turn."""
        delivered = await session.send(
            jsonrpc_notification(
                "host/user-message",
                {"text": text, "conversationId": session.conversation_id, "toolUseId": session.tool_use_id},
            )
        )
        if not delivered:
            logger.warning("Dropping user message for closed bridge session %s", session.session_id)

    def _canonical_method(self, method: str) -> str:
        if method in self._handlers or method == "ui/initialize":
            return method
        prefixed = f"ui/{method}"
        if prefixed in self._handlers or prefixed == "ui/initialize":
            return prefixed
        return method

    def _spawn(self, coro: Awaitable[None]) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _resolve_pending(self, message: dict[str, Any]) -> None:
        future = self._pending.get(message["id"])
        if future is None or future.done():
            logger.debug("Ignoring response to unknown request %s", message["id"])
            return
        future.set_result(message)

    def _drop_pending(self, session: BridgeSession) -> None:
        for request_id in session.pending_requests:
            future = self._pending.pop(request_id, None)
            if future is not None:
                future.cancel()
        session.pending_requests.clear()

    async def _on_initialize(self, connection: BridgeConnection, message: dict[str, Any]) -> None:
        session_id = (message.get("params") or {}).get("sessionId")
        session = self._sessions.get(session_id) if isinstance(session_id, str) else None
        if session is None:
            logger.warning("Ignoring bridge handshake: %s", UnknownBridgeSession(session_id))
            return

        connection.session = session
        session.channel = connection
        await connection.send(
            jsonrpc_response(
                message.get("id"),
                {
                    "protocolVersion": PROTOCOL_VERSION,
                    "hostInfo": {"name": SERVICE_NAME, "version": SERVICE_VERSION},
                    "hostCapabilities": {
                        "serverTools": {"callTool": True},
                        "message": {},
                        "openLinks": {},
                    },
                    "hostContext": {
                        "toolInfo": {"id": session.tool_use_id, "tool": session.tool_def},
                    },
                },
            )
        )
        session.initialized = True
        self._spawn(self._send_tool_data_later(session))

    async def _send_tool_data_later(self, session: BridgeSession) -> None:
        await asyncio.sleep(self._tool_data_delay)
        await self.send_tool_data(session)

    async def _on_initialized(self, session: BridgeSession, message: dict[str, Any]) -> None:
        await self.send_tool_data(session)

    async def _on_tool_call(self, session: BridgeSession, message: dict[str, Any]) -> None:
        # Off the receive loop, so the channel keeps answering while the tool runs
        self._spawn(self._proxy_tool_call(session, message))

    async def _proxy_tool_call(self, session: BridgeSession, message: dict[str, Any]) -> None:
        params = message.get("params") or {}
        name = params.get("name")
        arguments = params.get("arguments") or {}
        request_id = message.get("id")
        if not isinstance(name, str) or not name or not isinstance(arguments, dict):
            logger.warning("Ignoring malformed bridge tool call in session %s", session.session_id)
            if request_id is not None:
                await session.send(jsonrpc_error(request_id, INVALID_PARAMS_CODE, "Invalid tool call params"))
            return

        tool = self._registry.find_tool(qualify(session.provider_id, name))
        labels = ToolMetricsLabels.for_tool(tool, caller="bridge")
        async with collect_tool_metrics(labels) as tool_metrics:
            try:
                result = await self._registry.call_tool(session.provider_id, name, arguments)
            except Exception as e:
                tool_metrics.error = True
                logger.warning("Bridge tool call '%s' on '%s' failed: %s", name, session.provider_id, e)
                if request_id is not None:
                    await session.send(jsonrpc_error(request_id, TOOL_CALL_ERROR_CODE, str(e)))
                return
            tool_metrics.error = bool(result.get("isError", False))

        if request_id is not None:
            await session.send(jsonrpc_response(request_id, result))

    async def _on_open_link(self, session: BridgeSession, message: dict[str, Any]) -> None:
        params = message.get("params") or {}
        url = params.get("url") or params.get("uri")
        if message.get("id") is not None:
            await session.send(jsonrpc_response(message["id"], {}))
        if not isinstance(url, str) or urlparse(url).scheme not in OPENABLE_LINK_SCHEMES:
            logger.warning("Ignoring open-link request for %r", url)
            return
        self._spawn(self._confirm_and_open(session, url))

    async def _confirm_and_open(self, session: BridgeSession, url: str) -> None:
        try:
            result = await self.request(
                session, "host/confirm-open-link", {"url": url}, timeout=self._link_confirm_timeout
            )
        except (BridgeProtocolViolation, TimeoutError) as e:
            logger.info("Link not opened for session %s: %s", session.session_id, e)
            return
        if result.get("confirmed") is True:
            await session.send(jsonrpc_notification("host/open-link", {"url": url}))

    async def _on_size_changed(self, session: BridgeSession, message: dict[str, Any]) -> None:
        height = (message.get("params") or {}).get("height")
        if isinstance(height, bool) or not isinstance(height, (int, float)) or height <= 0:
            return
        session.height = min(int(height) + UI_HEIGHT_PADDING, MAX_UI_HEIGHT)
        await session.send(jsonrpc_notification("host/size-changed", {"height": session.height}))

    async def _on_message(self, session: BridgeSession, message: dict[str, Any]) -> None:
        texts = extract_text((message.get("params") or {}).get("content"))
        if texts and self.user_message_handler is not None:
            await self.user_message_handler(session, "\n".join(texts))
        if message.get("id") is not None:
            await session.send(jsonrpc_response(message["id"], {"isError": texts is None}))
