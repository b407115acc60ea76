"""Incremental-chunk model provider (OpenAI chat completions via LiteLLM)."""

import json
from collections.abc import AsyncIterator, Sequence
from typing import Any

import litellm

from mcp_chat.platform.agent.events import CanonicalEvent
from mcp_chat.platform.agent.exceptions import ProviderStreamError
from mcp_chat.platform.agent.messages import (
    Message,
    Role,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
)
from mcp_chat.platform.agent.normalizer import normalize_chunk_stream
from mcp_chat.platform.agent.tools import DEFAULT_INPUT_SCHEMA

EMPTY_TOOL_RESULT = "No output"


def to_openai_tools(tools: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
    """Convert {name, description, input_schema} tool schemas to function tools."""
    return [
        {
            "type": "function",
            "function": {
                "name": tool["name"],
                "description": tool.get("description") or "",
                "parameters": tool.get("input_schema") or dict(DEFAULT_INPUT_SCHEMA),
            },
        }
        for tool in tools
    ]


def tool_result_text(block: ToolResultBlock) -> str:
    """Flatten tool result content to text; non-text items are JSON-encoded."""
    parts = [
        item.get("text", "") if item.get("type") == "text" else json.dumps(item)
        for item in block.content
    ]
    return "\n".join(parts) or EMPTY_TOOL_RESULT


def to_openai_messages(messages: Sequence[Message], system: str | None = None) -> list[dict[str, Any]]:
    """Convert canonical messages to the chat-completions shape.

    An assistant turn becomes one message carrying its text and tool calls.
    Each tool result becomes a separate ``tool`` message. Thinking is dropped.
    """
    converted: list[dict[str, Any]] = []
    if system:
        converted.append({"role": "system", "content": system})

    for message in messages:
        if isinstance(message.content, str):
            converted.append({"role": message.role.value, "content": message.content})
            continue

        if message.role is Role.ASSISTANT:
            text = "".join(block.text for block in message.content if isinstance(block, TextBlock))
            tool_calls = [
                {
                    "id": block.id,
                    "type": "function",
                    "function": {"name": block.name, "arguments": json.dumps(block.input)},
                }
                for block in message.content
                if isinstance(block, ToolUseBlock)
            ]
            assistant: dict[str, Any] = {"role": "assistant", "content": text or None}
            if tool_calls:
                assistant["tool_calls"] = tool_calls
            converted.append(assistant)
            continue

        user_text = ""
        for block in message.content:
            if isinstance(block, ToolResultBlock):
                converted.append(
                    {"role": "tool", "tool_call_id": block.tool_use_id, "content": tool_result_text(block)}
                )
            elif isinstance(block, TextBlock):
                user_text += block.text
        if user_text:
            converted.append({"role": "user", "content": user_text})

    return converted


class LiteLLMProvider:
    """Streams turns from any OpenAI-shaped backend LiteLLM can reach."""

    def __init__(
        self,
        model: str,
        max_tokens: int = 16384,
        api_key: str | None = None,
        api_base: str | None = None,
        name: str = "openai",
    ) -> None:
        self._model = model
        self._max_tokens = max_tokens
        self._api_key = api_key
        self._api_base = api_base
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @property
    def model(self) -> str:
        return self._model

    def build_params(
        self,
        messages: Sequence[Message],
        tools: Sequence[dict[str, Any]],
        system: str | None = None,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "messages": to_openai_messages(messages, system),
            "stream": True,
        }
        if tools:
            params["tools"] = to_openai_tools(tools)
        if self._api_key:
            params["api_key"] = self._api_key
        if self._api_base:
            params["api_base"] = self._api_base
        return params

    async def stream_turn(
        self,
        messages: Sequence[Message],
        tools: Sequence[dict[str, Any]],
        system: str | None = None,
    ) -> AsyncIterator[CanonicalEvent]:
        params = self.build_params(messages, tools, system)
        try:
            response = await litellm.acompletion(**params)
            async for event in normalize_chunk_stream(response):
                yield event
        except Exception as e:
            raise ProviderStreamError(str(e), provider=self._name) from e
