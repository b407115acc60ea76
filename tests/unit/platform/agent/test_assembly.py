"""Unit tests for turn assembly."""

from mcp_chat.platform.agent.assembly import TurnAssembler, parse_tool_arguments
from mcp_chat.platform.agent.events import (
    BlockDelta,
    BlockKind,
    BlockStart,
    BlockStop,
    DeltaKind,
    MessageDelta,
)
from mcp_chat.platform.agent.messages import TextBlock, ThinkingBlock, ToolUseBlock


class TestParseToolArguments:
    """Tests for tool-argument parsing."""

    def test_valid_object(self):
        assert parse_tool_arguments('{"city": "Paris"}') == {"city": "Paris"}

    def test_blank_is_empty_object(self):
        assert parse_tool_arguments("") == {}
        assert parse_tool_arguments("   ") == {}

    def test_malformed_is_empty_object(self):
        assert parse_tool_arguments('{"city": ') == {}

    def test_non_object_is_empty_object(self):
        assert parse_tool_arguments("[1, 2]") == {}


class TestTurnAssembler:
    """Tests for TurnAssembler."""

    def test_text_block_materialized_on_stop(self):
        assembler = TurnAssembler()
        assembler.apply(BlockStart(index=0, kind=BlockKind.TEXT))
        assert assembler.apply(BlockDelta(index=0, kind=DeltaKind.TEXT, fragment="Hel")) is None
        assembler.apply(BlockDelta(index=0, kind=DeltaKind.TEXT, fragment="lo"))

        block = assembler.apply(BlockStop(index=0))

        assert block == TextBlock(text="Hello")

    def test_tool_use_arguments_parsed(self):
        assembler = TurnAssembler()
        assembler.apply(BlockStart(index=0, kind=BlockKind.TOOL_USE, id="toolu_1", name="fs__read"))
        assembler.apply(BlockDelta(index=0, kind=DeltaKind.INPUT_JSON, fragment='{"path":'))
        assembler.apply(BlockDelta(index=0, kind=DeltaKind.INPUT_JSON, fragment=' "/tmp"}'))

        block = assembler.apply(BlockStop(index=0))

        assert block == ToolUseBlock(id="toolu_1", name="fs__read", input={"path": "/tmp"})

    def test_missing_tool_id_is_generated(self):
        assembler = TurnAssembler()
        assembler.apply(BlockStart(index=0, kind=BlockKind.TOOL_USE, name="fs__read"))

        block = assembler.apply(BlockStop(index=0))

        assert isinstance(block, ToolUseBlock)
        assert block.id.startswith("toolu_")

    def test_thinking_keeps_signature(self):
        assembler = TurnAssembler()
        assembler.apply(BlockStart(index=0, kind=BlockKind.THINKING))
        assembler.apply(BlockDelta(index=0, kind=DeltaKind.THINKING, fragment="Let me think"))
        assembler.apply(BlockDelta(index=0, kind=DeltaKind.SIGNATURE, fragment="abc"))

        block = assembler.apply(BlockStop(index=0))

        assert block == ThinkingBlock(thinking="Let me think", signature="abc")

    def test_blocks_in_index_order(self):
        """Blocks closing out of order are still reported by index."""
        assembler = TurnAssembler()
        assembler.apply(BlockStart(index=0, kind=BlockKind.TOOL_USE, id="a", name="p__a"))
        assembler.apply(BlockStart(index=1, kind=BlockKind.TOOL_USE, id="b", name="p__b"))
        assembler.apply(BlockStop(index=1))
        assembler.apply(BlockStop(index=0))

        assert [block.id for block in assembler.tool_uses] == ["a", "b"]

    def test_empty_text_blocks_dropped(self):
        assembler = TurnAssembler()
        assembler.apply(BlockStart(index=0, kind=BlockKind.TEXT))
        assembler.apply(BlockStop(index=0))

        assert assembler.blocks == []

    def test_stop_reason_from_message_delta(self):
        assembler = TurnAssembler()
        assembler.apply(MessageDelta(stop_reason="tool_use"))

        assert assembler.stop_reason == "tool_use"

    def test_unknown_indices_ignored(self):
        assembler = TurnAssembler()

        assert assembler.apply(BlockDelta(index=5, kind=DeltaKind.TEXT, fragment="x")) is None
        assert assembler.apply(BlockStop(index=5)) is None
        assert assembler.blocks == []
