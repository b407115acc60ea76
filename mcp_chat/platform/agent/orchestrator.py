"""Tool-use orchestration loop.

The orchestrator alternates model turns and tool dispatch until the model
stops asking for tools, streaming wire events to the caller as it goes:

    Requesting -> Streaming -> ToolDispatch -> Requesting -> ... -> Done | Error

One instance drives one conversation run at a time.
"""

import json
import logging
from collections.abc import AsyncIterator, Sequence
from enum import StrEnum
from time import monotonic
from typing import Any

from opentelemetry import trace

from mcp_chat.platform.agent.assembly import TurnAssembler
from mcp_chat.platform.agent.bridge import UIBridge
from mcp_chat.platform.agent.events import (
    TERMINAL_STOP_REASONS,
    BlockDelta,
    BlockKind,
    BlockStart,
    CanonicalEvent,
    DeltaKind,
)
from mcp_chat.platform.agent.exceptions import IterationLimitExceeded, ProviderStreamError
from mcp_chat.platform.agent.messages import (
    Message,
    Role,
    StreamEvent,
    ThinkingBlock,
    ToolResultBlock,
    ToolUseBlock,
    WireEventType,
)
from mcp_chat.platform.agent.metrics import (
    RunMetricsLabels,
    ToolMetricsLabels,
    collect_tool_metrics,
    record_model_turn,
    record_run,
)
from mcp_chat.platform.agent.protocol import ModelProvider
from mcp_chat.platform.agent.registry import ToolProviderRegistry

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_MAX_ITERATIONS = 10
EMPTY_RESULT_TEXT = "No output"


class RunState(StrEnum):
    IDLE = "idle"
    REQUESTING = "requesting"
    STREAMING = "streaming"
    TOOL_DISPATCH = "tool_dispatch"
    DONE = "done"
    ERROR = "error"


def tool_error_result(message: str) -> dict[str, Any]:
    """A tool result in MCP shape reporting a failed call."""
    return {"content": [{"type": "text", "text": f"Error: {message}"}], "isError": True}


def format_result_item(item: dict[str, Any]) -> dict[str, Any]:
    """Render one MCP result content item as a model-facing content block."""
    if item.get("type") == "text":
        return {"type": "text", "text": item.get("text", "")}
    if item.get("type") == "image":
        return {
            "type": "image",
            "source": {"type": "base64", "media_type": item.get("mimeType"), "data": item.get("data")},
        }
    return {"type": "text", "text": json.dumps(item)}


def to_tool_result_block(tool_use_id: str, result: dict[str, Any]) -> ToolResultBlock:
    content = tuple(format_result_item(item) for item in result.get("content") or [])
    return ToolResultBlock(
        tool_use_id=tool_use_id,
        content=content or ({"type": "text", "text": EMPTY_RESULT_TEXT},),
        is_error=bool(result.get("isError", False)),
    )


class ToolUseOrchestrator:
    """Drives the model/tool loop for one conversation run.

    Args:
        provider: Model backend turns are streamed from
        registry: Tool providers the model's tool calls are routed to
        bridge: Optional UI bridge; when set, every UI resource gets a bridge session
        max_iterations: Cap on model turns per run
    """

    def __init__(
        self,
        provider: ModelProvider,
        registry: ToolProviderRegistry,
        bridge: UIBridge | None = None,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
    ) -> None:
        self._provider = provider
        self._registry = registry
        self._bridge = bridge
        self._max_iterations = max_iterations
        self.state = RunState.IDLE

    async def run(
        self,
        messages: Sequence[Message],
        system: str | None = None,
        conversation_id: str | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Run the loop over a copy of the caller's history, yielding wire events.

        Always ends with exactly one ``done`` or ``error`` event.
        """
        conversation = list(messages)
        labels = RunMetricsLabels(provider=self._provider.name, model=self._provider.model)
        start = monotonic()
        outcome = "error"

        try:
            for _ in range(self._max_iterations):
                self.state = RunState.REQUESTING
                tools = [tool.to_model_tool() for tool in self._registry.list_tools()]
                assembler = TurnAssembler()

                self.state = RunState.STREAMING
                async for event in self._provider.stream_turn(conversation, tools, system):
                    for wire_event in self._translate(event, assembler):
                        yield wire_event
                record_model_turn(labels, assembler.stop_reason)

                tool_uses = assembler.tool_uses
                if assembler.stop_reason in TERMINAL_STOP_REASONS or not tool_uses:
                    self.state = RunState.DONE
                    outcome = "done"
                    yield StreamEvent(WireEventType.DONE, {"stop_reason": assembler.stop_reason})
                    return

                conversation.append(Message(role=Role.ASSISTANT, content=tuple(assembler.blocks)))

                self.state = RunState.TOOL_DISPATCH
                results: list[ToolResultBlock] = []
                for tool_use in tool_uses:
                    result = await self._dispatch(tool_use)
                    yield StreamEvent(
                        WireEventType.TOOL_RESULT,
                        {
                            "tool_use_id": tool_use.id,
                            "content": result.get("content", []),
                            "isError": bool(result.get("isError", False)),
                        },
                    )
                    ui_event = await self._ui_resource_event(tool_use, result, conversation_id)
                    if ui_event is not None:
                        yield ui_event
                    results.append(to_tool_result_block(tool_use.id, result))

                conversation.append(Message(role=Role.USER, content=tuple(results)))

            raise IterationLimitExceeded(self._max_iterations)

        except IterationLimitExceeded as e:
            self.state = RunState.ERROR
            outcome = "iteration_limit"
            logger.warning("Tool-use loop stopped after %s iterations", e.max_iterations)
            yield StreamEvent(WireEventType.ERROR, {"message": str(e)})
        except ProviderStreamError as e:
            self.state = RunState.ERROR
            logger.error("Model stream failed: %s", e)
            yield StreamEvent(WireEventType.ERROR, {"message": str(e)})
        except Exception as e:
            self.state = RunState.ERROR
            logger.exception("Chat run failed")
            yield StreamEvent(WireEventType.ERROR, {"message": str(e) or "Unknown error"})
        finally:
            record_run(labels, monotonic() - start, outcome)

    def _translate(self, event: CanonicalEvent, assembler: TurnAssembler) -> list[StreamEvent]:
        """Fold an event into the turn and return the wire events it produces."""
        wire_events: list[StreamEvent] = []
        match event:
            case BlockStart(kind=BlockKind.THINKING):
                wire_events.append(StreamEvent(WireEventType.THINKING_START))
            case BlockStart(kind=BlockKind.TOOL_USE):
                wire_events.append(StreamEvent(WireEventType.TOOL_START, {"id": event.id, "name": event.name}))
            case BlockDelta(kind=DeltaKind.TEXT):
                wire_events.append(StreamEvent(WireEventType.TEXT_DELTA, {"text": event.fragment}))
            case BlockDelta(kind=DeltaKind.THINKING):
                wire_events.append(StreamEvent(WireEventType.THINKING_DELTA, {"text": event.fragment}))

        block = assembler.apply(event)
        if isinstance(block, ThinkingBlock):
            wire_events.append(StreamEvent(WireEventType.THINKING_END))
        elif isinstance(block, ToolUseBlock):
            wire_events.append(
                StreamEvent(WireEventType.TOOL_CALL, {"id": block.id, "name": block.name, "input": block.input})
            )
        return wire_events

    async def _dispatch(self, tool_use: ToolUseBlock) -> dict[str, Any]:
        labels = ToolMetricsLabels.for_tool(self._registry.find_tool(tool_use.name))
        with tracer.start_as_current_span("tool_call", attributes={"tool.name": tool_use.name}) as span:
            async with collect_tool_metrics(labels) as tool_metrics:
                try:
                    result = await self._registry.dispatch(tool_use.name, tool_use.input)
                except Exception as e:
                    logger.warning("Tool call '%s' failed: %s", tool_use.name, e)
                    result = tool_error_result(str(e))
                tool_metrics.error = bool(result.get("isError", False))
            span.set_attribute("tool.is_error", tool_metrics.error)
        return result

    async def _ui_resource_event(
        self,
        tool_use: ToolUseBlock,
        result: dict[str, Any],
        conversation_id: str | None,
    ) -> StreamEvent | None:
        tool = self._registry.find_tool(tool_use.name)
        if tool is None or not tool.ui_resource_uri:
            return None

        try:
            resource = await self._registry.read_resource(tool.ui_resource_uri, provider_id=tool.provider_id)
        except Exception as e:
            logger.warning("UI resource fetch failed for '%s': %s", tool.ui_resource_uri, e)
            return None

        contents = resource.get("contents") or []
        tool_result = {
            "content": result.get("content", []),
            "structuredContent": result.get("structuredContent"),
            "_meta": result.get("_meta"),
            "isError": bool(result.get("isError", False)),
        }
        data = {
            "toolName": tool_use.name,
            "toolUseId": tool_use.id,
            "toolInput": tool_use.input,
            "resourceUri": tool.ui_resource_uri,
            "html": contents[0].get("text", "") if contents else "",
            "toolDef": tool.to_tool_def(),
            "toolResult": tool_result,
        }
        if self._bridge is not None:
            session = self._bridge.open_session(
                tool=tool,
                tool_use=tool_use,
                tool_result=tool_result,
                conversation_id=conversation_id,
            )
            data["bridgeSessionId"] = session.session_id
        return StreamEvent(WireEventType.UI_RESOURCE, data)
