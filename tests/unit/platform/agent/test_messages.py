"""Unit tests for message and wire event types."""

import json

import pytest

from mcp_chat.platform.agent.messages import (
    Message,
    Role,
    StreamEvent,
    TextBlock,
    ThinkingBlock,
    ToolResultBlock,
    ToolUseBlock,
    WireEventType,
    content_block_from_dict,
)


class TestContentBlockFromDict:
    """Tests for content block parsing."""

    def test_tool_result_string_content(self):
        """String tool result content is wrapped in a text item."""
        block = content_block_from_dict({"type": "tool_result", "tool_use_id": "t1", "content": "ok"})

        assert block == ToolResultBlock(tool_use_id="t1", content=({"type": "text", "text": "ok"},))

    def test_tool_use(self):
        block = content_block_from_dict({"type": "tool_use", "id": "t1", "name": "a__b", "input": {"x": 1}})

        assert block == ToolUseBlock(id="t1", name="a__b", input={"x": 1})

    def test_thinking(self):
        block = content_block_from_dict({"type": "thinking", "thinking": "hm", "signature": "s"})

        assert block == ThinkingBlock(thinking="hm", signature="s")

    def test_unsupported_type(self):
        with pytest.raises(ValueError, match="Unsupported content block type"):
            content_block_from_dict({"type": "video"})

    @pytest.mark.parametrize(
        "data",
        [
            "hi",
            ["text"],
            None,
            {"type": "tool_use", "id": "t1", "name": "a__b", "input": ["x"]},
            {"type": "tool_use", "id": "t1", "name": "a__b", "input": "x"},
            {"type": "tool_result", "tool_use_id": "t1", "content": ["ok"]},
            {"type": "tool_result", "tool_use_id": "t1", "content": 3},
        ],
    )
    def test_malformed_block(self, data):
        """Blocks of the wrong shape are rejected as invalid input."""
        with pytest.raises(ValueError):
            content_block_from_dict(data)


class TestMessage:
    """Tests for Message."""

    def test_plain_text_blocks(self):
        message = Message(role=Role.USER, content="Hello")

        assert message.blocks == (TextBlock("Hello"),)

    def test_from_dict_with_blocks(self):
        message = Message.from_dict(
            {
                "role": "assistant",
                "content": [
                    {"type": "text", "text": "Checking"},
                    {"type": "tool_use", "id": "t1", "name": "a__b", "input": {}},
                ],
            }
        )

        assert message.role is Role.ASSISTANT
        assert message.blocks == (TextBlock("Checking"), ToolUseBlock(id="t1", name="a__b"))

    def test_to_dict_preserves_shape(self):
        data = {"role": "user", "content": [{"type": "text", "text": "hi"}]}

        assert Message.from_dict(data).to_dict() == data

    def test_rejects_unknown_role(self):
        with pytest.raises(ValueError):
            Message.from_dict({"role": "system", "content": "You are helpful"})


class TestStreamEvent:
    """Tests for StreamEvent SSE encoding."""

    def test_encode(self):
        event = StreamEvent(WireEventType.TEXT_DELTA, {"text": "Hi"})

        frame = event.encode()

        assert frame.startswith("event: text_delta\n")
        assert frame.endswith("\n\n")
        assert json.loads(frame.split("data: ", 1)[1]) == {"text": "Hi"}

    def test_encode_defaults_to_empty_object(self):
        assert StreamEvent(WireEventType.THINKING_END).encode() == "event: thinking_end\ndata: {}\n\n"
