"""Framework-agnostic message and wire event types.

These types define the common vocabulary shared by the model providers, the
tool-use orchestrator and the HTTP layer. Messages serialize to the
Anthropic Messages wire shape, which is also what clients send as history.
"""

import json
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class Role(StrEnum):
    """Conversation roles."""

    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class TextBlock:
    """A contiguous run of assistant or user text."""

    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": "text", "text": self.text}


@dataclass(frozen=True)
class ToolUseBlock:
    """A tool invocation requested by the model.

    Attributes:
        id: Provider-assigned id used to correlate the result
        name: Provider-qualified tool name
        input: Parsed tool arguments
    """

    id: str
    name: str
    input: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"type": "tool_use", "id": self.id, "name": self.name, "input": self.input}


@dataclass(frozen=True)
class ToolResultBlock:
    """The result of one tool invocation, fed back to the model.

    Attributes:
        tool_use_id: Id of the ToolUseBlock this result answers
        content: Ordered content items ({"type": "text", ...} or structured)
        is_error: True when the tool call failed
    """

    tool_use_id: str
    content: tuple[dict[str, Any], ...] = ()
    is_error: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "tool_result",
            "tool_use_id": self.tool_use_id,
            "content": list(self.content),
            "is_error": self.is_error,
        }


@dataclass(frozen=True)
class ThinkingBlock:
    """An internal reasoning trace with its opaque provider signature."""

    thinking: str
    signature: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"type": "thinking", "thinking": self.thinking, "signature": self.signature}


type ContentBlock = TextBlock | ToolUseBlock | ToolResultBlock | ThinkingBlock


def content_block_from_dict(data: dict[str, Any]) -> ContentBlock:
    """Build a content block from its wire representation.

    Raises:
        ValueError: If the block is not an object or its type is not supported
    """
    if not isinstance(data, dict):
        raise ValueError(f"Content block must be an object, got {type(data).__name__}")
    block_type = data.get("type")
    if block_type == "text":
        return TextBlock(text=data.get("text", ""))
    if block_type == "tool_use":
        tool_input = data.get("input") or {}
        if not isinstance(tool_input, dict):
            raise ValueError("tool_use input must be an object")
        return ToolUseBlock(id=data["id"], name=data["name"], input=tool_input)
    if block_type == "tool_result":
        content = data.get("content", [])
        if isinstance(content, str):
            content = [{"type": "text", "text": content}]
        if not isinstance(content, list) or not all(isinstance(item, dict) for item in content):
            raise ValueError("tool_result content must be a string or a list of objects")
        return ToolResultBlock(
            tool_use_id=data["tool_use_id"],
            content=tuple(content),
            is_error=bool(data.get("is_error", False)),
        )
    if block_type == "thinking":
        return ThinkingBlock(thinking=data.get("thinking", ""), signature=data.get("signature", ""))
    raise ValueError(f"Unsupported content block type: {block_type!r}")


@dataclass(frozen=True)
class Message:
    """One conversation turn.

    Attributes:
        role: Who produced the turn
        content: Plain text, or an ordered sequence of content blocks
    """

    role: Role
    content: str | tuple[ContentBlock, ...]

    @property
    def blocks(self) -> tuple[ContentBlock, ...]:
        """Content as blocks, with plain text wrapped in a single TextBlock."""
        if isinstance(self.content, str):
            return (TextBlock(self.content),)
        return self.content

    def to_dict(self) -> dict[str, Any]:
        if isinstance(self.content, str):
            return {"role": self.role.value, "content": self.content}
        return {"role": self.role.value, "content": [block.to_dict() for block in self.content]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        """Build a message from its wire representation.

        Raises:
            ValueError: If the role or any content block is not supported
        """
        role = Role(data["role"])
        content = data.get("content", "")
        if isinstance(content, str):
            return cls(role=role, content=content)
        return cls(role=role, content=tuple(content_block_from_dict(block) for block in content))


class WireEventType(StrEnum):
    """Event types streamed to chat clients."""

    THINKING_START = "thinking_start"
    THINKING_DELTA = "thinking_delta"
    THINKING_END = "thinking_end"
    TOOL_START = "tool_start"
    TEXT_DELTA = "text_delta"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    UI_RESOURCE = "ui_resource"
    ERROR = "error"
    DONE = "done"


@dataclass(frozen=True)
class StreamEvent:
    """Streaming execution event.

    Attributes:
        event_type: Type of event (see WireEventType)
        data: Event-specific data payload
    """

    event_type: WireEventType
    data: dict[str, Any] = field(default_factory=dict)

    def encode(self) -> str:
        """Render as one Server-Sent Events frame."""
        return f"event: {self.event_type.value}\ndata: {json.dumps(self.data)}\n\n"
