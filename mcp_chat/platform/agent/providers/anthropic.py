"""Segmented-event model provider (Anthropic Messages API, incl. Vertex)."""

import logging
from collections.abc import AsyncIterator, Sequence
from typing import Any

from anthropic import AsyncAnthropic, AsyncAnthropicVertex

from mcp_chat.platform.agent.events import CanonicalEvent
from mcp_chat.platform.agent.exceptions import ProviderStreamError
from mcp_chat.platform.agent.messages import Message, ThinkingBlock
from mcp_chat.platform.agent.normalizer import normalize_segmented_stream

logger = logging.getLogger(__name__)


def to_anthropic_messages(messages: Sequence[Message]) -> list[dict[str, Any]]:
    """Render messages in the Messages API shape.

    Thinking blocks without a signature cannot be replayed and are dropped.
    """
    rendered = []
    for message in messages:
        if isinstance(message.content, str):
            rendered.append(message.to_dict())
            continue
        blocks = [
            block.to_dict()
            for block in message.content
            if not (isinstance(block, ThinkingBlock) and not block.signature)
        ]
        rendered.append({"role": message.role.value, "content": blocks})
    return rendered


class AnthropicProvider:
    """Streams turns from the Anthropic Messages API with extended thinking."""

    def __init__(
        self,
        client: AsyncAnthropic | AsyncAnthropicVertex,
        model: str,
        max_tokens: int = 16384,
        thinking_budget: int = 4096,
        name: str = "anthropic",
    ) -> None:
        self._client = client
        self._model = model
        self._max_tokens = max_tokens
        self._thinking_budget = thinking_budget
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
            "messages": to_anthropic_messages(messages),
            "stream": True,
        }
        if self._thinking_budget:
            params["thinking"] = {"type": "enabled", "budget_tokens": self._thinking_budget}
        if tools:
            params["tools"] = list(tools)
        if system:
            params["system"] = system
        return params

    async def stream_turn(
        self,
        messages: Sequence[Message],
        tools: Sequence[dict[str, Any]],
        system: str | None = None,
    ) -> AsyncIterator[CanonicalEvent]:
        params = self.build_params(messages, tools, system)
        try:
            stream = await self._client.messages.create(**params)
            async for event in normalize_segmented_stream(stream):
                yield event
        except Exception as e:
            raise ProviderStreamError(str(e), provider=self._name) from e
