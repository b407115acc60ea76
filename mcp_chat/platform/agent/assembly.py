"""Materialization of canonical events into content blocks."""

import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from mcp_chat.platform.agent.events import (
    BlockDelta,
    BlockKind,
    BlockStart,
    BlockStop,
    CanonicalEvent,
    DeltaKind,
    MessageDelta,
)
from mcp_chat.platform.agent.messages import ContentBlock, TextBlock, ThinkingBlock, ToolUseBlock

logger = logging.getLogger(__name__)


def parse_tool_arguments(raw: str) -> dict[str, Any]:
    """Parse accumulated tool-argument JSON, degrading to an empty object."""
    if not raw.strip():
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Discarding malformed tool arguments: %.200s", raw)
        return {}
    if not isinstance(parsed, dict):
        logger.warning("Discarding non-object tool arguments: %.200s", raw)
        return {}
    return parsed


@dataclass
class _PendingBlock:
    kind: BlockKind
    id: str | None = None
    name: str | None = None
    parts: list[str] = field(default_factory=list)
    signature_parts: list[str] = field(default_factory=list)

    def materialize(self) -> ContentBlock:
        body = "".join(self.parts)
        match self.kind:
            case BlockKind.TEXT:
                return TextBlock(text=body)
            case BlockKind.THINKING:
                return ThinkingBlock(thinking=body, signature="".join(self.signature_parts))
            case BlockKind.TOOL_USE:
                return ToolUseBlock(
                    id=self.id or f"toolu_{uuid.uuid4().hex[:24]}",
                    name=self.name or "",
                    input=parse_tool_arguments(body),
                )


class TurnAssembler:
    """Accumulates one model turn's canonical events into content blocks.

    Blocks are materialized when their stop event arrives and are reported
    back in canonical index order, regardless of the order they closed in.
    """

    def __init__(self) -> None:
        self._pending: dict[int, _PendingBlock] = {}
        self._completed: dict[int, ContentBlock] = {}
        self.stop_reason: str | None = None

    def apply(self, event: CanonicalEvent) -> ContentBlock | None:
        """Fold one event into the turn; returns the block a stop event completed."""
        match event:
            case BlockStart():
                self._pending[event.index] = _PendingBlock(kind=event.kind, id=event.id, name=event.name)
            case BlockDelta():
                self._on_delta(event)
            case BlockStop():
                pending = self._pending.pop(event.index, None)
                if pending is None:
                    logger.warning("Stop for unknown block index %s", event.index)
                    return None
                block = pending.materialize()
                self._completed[event.index] = block
                return block
            case MessageDelta():
                if event.stop_reason is not None:
                    self.stop_reason = event.stop_reason
        return None

    def _on_delta(self, event: BlockDelta) -> None:
        pending = self._pending.get(event.index)
        if pending is None:
            logger.warning("Delta for unknown block index %s", event.index)
            return
        if event.kind is DeltaKind.SIGNATURE:
            pending.signature_parts.append(event.fragment)
        else:
            pending.parts.append(event.fragment)

    @property
    def blocks(self) -> list[ContentBlock]:
        """Completed blocks in index order, without empty text blocks."""
        return [
            block
            for _, block in sorted(self._completed.items())
            if not (isinstance(block, TextBlock) and not block.text)
        ]

    @property
    def tool_uses(self) -> list[ToolUseBlock]:
        return [block for block in self.blocks if isinstance(block, ToolUseBlock)]
