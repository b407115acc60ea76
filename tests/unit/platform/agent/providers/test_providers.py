"""Unit tests for model provider adapters.

Native streams are scripted as plain dicts, which the normalizers read the
same way as SDK objects.
"""

from types import SimpleNamespace
from typing import Any

import pytest

from mcp_chat.platform.agent.config import LlmConfig, ProviderKind
from mcp_chat.platform.agent.events import BlockDelta, BlockStart, MessageDelta, MessageStart, MessageStop
from mcp_chat.platform.agent.exceptions import ConfigurationError, ProviderStreamError
from mcp_chat.platform.agent.messages import (
    Message,
    Role,
    TextBlock,
    ThinkingBlock,
    ToolResultBlock,
    ToolUseBlock,
)
from mcp_chat.platform.agent.providers import AnthropicProvider, LiteLLMProvider, create_provider
from mcp_chat.platform.agent.providers import litellm as litellm_provider
from mcp_chat.platform.agent.providers.anthropic import to_anthropic_messages
from mcp_chat.platform.agent.providers.litellm import to_openai_messages, to_openai_tools, tool_result_text

TOOLS = [{"name": "weather__get_forecast", "description": "Forecast", "input_schema": {"type": "object"}}]

TOOL_CONVERSATION = [
    Message(role=Role.USER, content="Weather in Paris?"),
    Message(
        role=Role.ASSISTANT,
        content=(
            ThinkingBlock(thinking="Need the tool", signature="sig"),
            TextBlock("Checking"),
            ToolUseBlock(id="toolu_1", name="weather__get_forecast", input={"city": "Paris"}),
        ),
    ),
    Message(
        role=Role.USER,
        content=(ToolResultBlock(tool_use_id="toolu_1", content=({"type": "text", "text": "Sunny"},)),),
    ),
]


async def agen(items: list[Any]):
    for item in items:
        yield item


class FakeMessages:
    def __init__(self, events: list[dict[str, Any]] | Exception) -> None:
        self.events = events
        self.params: dict[str, Any] = {}

    async def create(self, **params):
        self.params = params
        if isinstance(self.events, Exception):
            raise self.events
        return agen(self.events)


class TestAnthropicMessages:
    """Tests for Messages API rendering."""

    def test_blocks_rendered(self):
        rendered = to_anthropic_messages(TOOL_CONVERSATION)

        assert rendered[0] == {"role": "user", "content": "Weather in Paris?"}
        assert [block["type"] for block in rendered[1]["content"]] == ["thinking", "text", "tool_use"]
        assert rendered[2]["content"][0]["tool_use_id"] == "toolu_1"

    def test_unsigned_thinking_dropped(self):
        message = Message(role=Role.ASSISTANT, content=(ThinkingBlock("hm"), TextBlock("Hi")))

        assert to_anthropic_messages([message])[0]["content"] == [{"type": "text", "text": "Hi"}]


class TestAnthropicProvider:
    """Tests for AnthropicProvider."""

    def test_build_params(self):
        provider = AnthropicProvider(client=None, model="claude-opus-4-6", max_tokens=1000, thinking_budget=512)

        params = provider.build_params(TOOL_CONVERSATION, TOOLS, system="Be brief")

        assert params["model"] == "claude-opus-4-6"
        assert params["stream"] is True
        assert params["thinking"] == {"type": "enabled", "budget_tokens": 512}
        assert params["tools"] == TOOLS
        assert params["system"] == "Be brief"

    def test_build_params_without_thinking_tools_or_system(self):
        provider = AnthropicProvider(client=None, model="claude-opus-4-6", thinking_budget=0)

        params = provider.build_params([Message(role=Role.USER, content="hi")], [])

        assert "thinking" not in params
        assert "tools" not in params
        assert "system" not in params

    async def test_stream_turn(self):
        messages = FakeMessages(
            [
                {"type": "message_start"},
                {"type": "content_block_start", "index": 0, "content_block": {"type": "text"}},
                {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "Hi"}},
                {"type": "content_block_stop", "index": 0},
                {"type": "message_delta", "delta": {"stop_reason": "end_turn"}},
                {"type": "message_stop"},
            ]
        )
        provider = AnthropicProvider(client=SimpleNamespace(messages=messages), model="claude-opus-4-6")

        events = [event async for event in provider.stream_turn([Message(role=Role.USER, content="hi")], [])]

        assert events[0] == MessageStart()
        assert events[-2:] == [MessageDelta(stop_reason="end_turn"), MessageStop()]
        assert messages.params["stream"] is True

    async def test_stream_failure_wrapped(self):
        messages = FakeMessages(RuntimeError("overloaded"))
        provider = AnthropicProvider(client=SimpleNamespace(messages=messages), model="m", name="vertex")

        with pytest.raises(ProviderStreamError, match=r"Model stream failed \[vertex\]: overloaded"):
            [event async for event in provider.stream_turn([Message(role=Role.USER, content="hi")], [])]


class TestOpenAIConversion:
    """Tests for chat-completions conversion."""

    def test_tools(self):
        [tool] = to_openai_tools(TOOLS)

        assert tool == {
            "type": "function",
            "function": {
                "name": "weather__get_forecast",
                "description": "Forecast",
                "parameters": {"type": "object"},
            },
        }

    def test_messages(self):
        converted = to_openai_messages(TOOL_CONVERSATION, system="Be brief")

        assert converted[0] == {"role": "system", "content": "Be brief"}
        assert converted[1] == {"role": "user", "content": "Weather in Paris?"}
        assistant = converted[2]
        assert assistant["content"] == "Checking"
        assert assistant["tool_calls"] == [
            {
                "id": "toolu_1",
                "type": "function",
                "function": {"name": "weather__get_forecast", "arguments": '{"city": "Paris"}'},
            }
        ]
        assert converted[3] == {"role": "tool", "tool_call_id": "toolu_1", "content": "Sunny"}

    def test_assistant_without_text(self):
        message = Message(role=Role.ASSISTANT, content=(ToolUseBlock(id="t", name="a__b"),))

        assert to_openai_messages([message])[0]["content"] is None

    def test_tool_result_text(self):
        block = ToolResultBlock(
            tool_use_id="t",
            content=({"type": "text", "text": "a"}, {"type": "image", "data": "x"}),
        )

        assert tool_result_text(block) == 'a\n{"type": "image", "data": "x"}'
        assert tool_result_text(ToolResultBlock(tool_use_id="t")) == "No output"


class TestLiteLLMProvider:
    """Tests for LiteLLMProvider."""

    def test_build_params(self):
        provider = LiteLLMProvider("openai/llama3", api_key="k", api_base="http://localhost:8080/v1")

        params = provider.build_params([Message(role=Role.USER, content="hi")], TOOLS)

        assert params["api_base"] == "http://localhost:8080/v1"
        assert params["api_key"] == "k"
        assert params["tools"][0]["type"] == "function"

    async def test_stream_turn(self, monkeypatch):
        captured: dict[str, Any] = {}

        async def acompletion(**params):
            captured.update(params)
            return agen(
                [
                    {"choices": [{"delta": {"content": "Hi"}, "finish_reason": None}]},
                    {"choices": [{"delta": {}, "finish_reason": "stop"}]},
                ]
            )

        monkeypatch.setattr(litellm_provider.litellm, "acompletion", acompletion)
        provider = LiteLLMProvider("gpt-4o")

        events = [event async for event in provider.stream_turn([Message(role=Role.USER, content="hi")], [])]

        assert captured["stream"] is True
        assert isinstance(events[1], BlockStart)
        assert events[2] == BlockDelta(index=0, kind="text", fragment="Hi")
        assert events[-1] == MessageStop()

    async def test_stream_failure_wrapped(self, monkeypatch):
        async def acompletion(**params):
            raise RuntimeError("rate limited")

        monkeypatch.setattr(litellm_provider.litellm, "acompletion", acompletion)

        with pytest.raises(ProviderStreamError, match="rate limited"):
            [event async for event in LiteLLMProvider("gpt-4o").stream_turn([], [])]


class TestCreateProvider:
    """Tests for create_provider."""

    def test_anthropic(self):
        provider = create_provider(LlmConfig(provider=ProviderKind.ANTHROPIC, model="claude-opus-4-6", api_key="k"))

        assert isinstance(provider, AnthropicProvider)
        assert provider.name == "anthropic"

    def test_openai(self):
        provider = create_provider(LlmConfig(provider=ProviderKind.OPENAI, model="gpt-4o", api_key="k"))

        assert isinstance(provider, LiteLLMProvider)
        assert provider.model == "gpt-4o"

    def test_openai_compatible_prefixes_model(self):
        provider = create_provider(
            LlmConfig(
                provider=ProviderKind.OPENAI_COMPATIBLE,
                model="llama3",
                base_url="http://localhost:11434/v1",
            )
        )

        assert provider.model == "openai/llama3"

    def test_openai_compatible_requires_base_url(self):
        with pytest.raises(ConfigurationError):
            create_provider(LlmConfig(provider=ProviderKind.OPENAI_COMPATIBLE, model="llama3"))

    def test_vertex_requires_project(self):
        with pytest.raises(ConfigurationError):
            create_provider(LlmConfig(provider=ProviderKind.VERTEX, model="claude-opus-4-6"))
