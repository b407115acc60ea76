"""Canonical model-turn events.

Every model provider is normalized into this one event vocabulary. Within a
turn, block indices are unique, every block is opened before any delta or
stop references it, and every opened block is stopped exactly once.
"""

from dataclasses import dataclass
from enum import StrEnum


class BlockKind(StrEnum):
    TEXT = "text"
    TOOL_USE = "tool_use"
    THINKING = "thinking"


class DeltaKind(StrEnum):
    TEXT = "text"
    INPUT_JSON = "input_json"
    THINKING = "thinking"
    SIGNATURE = "signature"


class StopReason(StrEnum):
    END_TURN = "end_turn"
    TOOL_USE = "tool_use"
    MAX_TOKENS = "max_tokens"


# Stop reasons after which the orchestrator must not re-enter the model
TERMINAL_STOP_REASONS = frozenset({StopReason.END_TURN, StopReason.MAX_TOKENS})


@dataclass(frozen=True)
class MessageStart:
    pass


@dataclass(frozen=True)
class BlockStart:
    index: int
    kind: BlockKind
    id: str | None = None
    name: str | None = None


@dataclass(frozen=True)
class BlockDelta:
    index: int
    kind: DeltaKind
    fragment: str


@dataclass(frozen=True)
class BlockStop:
    index: int


@dataclass(frozen=True)
class MessageDelta:
    stop_reason: str | None = None


@dataclass(frozen=True)
class MessageStop:
    pass


type CanonicalEvent = MessageStart | BlockStart | BlockDelta | BlockStop | MessageDelta | MessageStop
