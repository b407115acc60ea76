"""Streaming normalization from provider-native events to canonical events.

Two provider protocol shapes are supported:

- Segmented-event streams (Anthropic Messages API) already carry explicit
  block start/delta/stop boundaries. ``SegmentedEventAdapter`` reshapes them.
- Incremental-chunk streams (OpenAI chat completions, as produced by LiteLLM)
  only carry raw deltas. ``ChunkBlockSynthesizer`` is an explicit state
  machine that synthesizes the block boundaries.

Both adapters are synchronous and take one native item at a time, so they can
be driven from scripted fixtures; the ``normalize_*`` helpers wrap them
around an async stream.
"""

from collections.abc import AsyncIterable, AsyncIterator
from typing import Any

from mcp_chat.platform.agent.events import (
    BlockDelta,
    BlockKind,
    BlockStart,
    BlockStop,
    CanonicalEvent,
    DeltaKind,
    MessageDelta,
    MessageStart,
    MessageStop,
    StopReason,
)

FINISH_REASON_MAP: dict[str, StopReason] = {
    "stop": StopReason.END_TURN,
    "tool_calls": StopReason.TOOL_USE,
    "length": StopReason.MAX_TOKENS,
}

SEGMENTED_DELTA_KINDS: dict[str, tuple[DeltaKind, str]] = {
    "text_delta": (DeltaKind.TEXT, "text"),
    "input_json_delta": (DeltaKind.INPUT_JSON, "partial_json"),
    "thinking_delta": (DeltaKind.THINKING, "thinking"),
    "signature_delta": (DeltaKind.SIGNATURE, "signature"),
}


def map_finish_reason(finish_reason: str) -> StopReason:
    """Map an OpenAI-style finish reason onto the canonical stop reasons."""
    return FINISH_REASON_MAP.get(finish_reason, StopReason.END_TURN)


def _field(obj: Any, name: str, default: Any = None) -> Any:
    """Read a field from an SDK object or a plain dict."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


class ChunkBlockSynthesizer:
    """Synthesizes canonical block boundaries from an incremental chunk stream.

    State:
        text_index: canonical index of the open text block, or None
        tool_blocks: chunk tool-call index -> canonical block index, in
            first-seen order; every entry is an open block until finish

    Canonical indices are handed out in opening order and never reused
    within a turn.
    """

    def __init__(self) -> None:
        self._started = False
        self._finished = False
        self._next_index = 0
        self.text_index: int | None = None
        self.tool_blocks: dict[Any, int] = {}

    @property
    def finished(self) -> bool:
        return self._finished

    def feed(self, chunk: Any) -> list[CanonicalEvent]:
        """Consume one chunk and return the canonical events it produces."""
        if self._finished:
            return []

        events = self._ensure_started()
        choices = _field(chunk, "choices") or []
        if not choices:
            return events

        choice = choices[0]
        delta = _field(choice, "delta")

        text = _field(delta, "content")
        if text:
            events.extend(self._on_text(text))

        for tool_call in _field(delta, "tool_calls") or []:
            events.extend(self._on_tool_call(tool_call))

        finish_reason = _field(choice, "finish_reason")
        if finish_reason:
            events.extend(self._close_all())
            events.append(MessageDelta(stop_reason=map_finish_reason(finish_reason)))
            events.append(MessageStop())
            self._finished = True

        return events

    def close(self) -> list[CanonicalEvent]:
        """Terminate a stream that ended without a finish reason."""
        if self._finished:
            return []
        events = self._ensure_started()
        events.extend(self._close_all())
        events.append(MessageStop())
        self._finished = True
        return events

    def _ensure_started(self) -> list[CanonicalEvent]:
        if self._started:
            return []
        self._started = True
        return [MessageStart()]

    def _allocate_index(self) -> int:
        index = self._next_index
        self._next_index += 1
        return index

    def _on_text(self, text: str) -> list[CanonicalEvent]:
        events: list[CanonicalEvent] = []
        if self.text_index is None:
            self.text_index = self._allocate_index()
            events.append(BlockStart(index=self.text_index, kind=BlockKind.TEXT))
        events.append(BlockDelta(index=self.text_index, kind=DeltaKind.TEXT, fragment=text))
        return events

    def _on_tool_call(self, tool_call: Any) -> list[CanonicalEvent]:
        events: list[CanonicalEvent] = []
        key = _field(tool_call, "index")
        if key is None:
            key = _field(tool_call, "id")
        function = _field(tool_call, "function")
        arguments = _field(function, "arguments") or ""

        if key not in self.tool_blocks:
            events.extend(self._close_text())
            index = self._allocate_index()
            self.tool_blocks[key] = index
            events.append(
                BlockStart(
                    index=index,
                    kind=BlockKind.TOOL_USE,
                    id=_field(tool_call, "id"),
                    name=_field(function, "name") or "",
                )
            )
        if arguments:
            events.append(
                BlockDelta(index=self.tool_blocks[key], kind=DeltaKind.INPUT_JSON, fragment=arguments)
            )
        return events

    def _close_text(self) -> list[CanonicalEvent]:
        if self.text_index is None:
            return []
        index, self.text_index = self.text_index, None
        return [BlockStop(index=index)]

    def _close_all(self) -> list[CanonicalEvent]:
        events = self._close_text()
        events.extend(BlockStop(index=index) for index in self.tool_blocks.values())
        self.tool_blocks.clear()
        return events


class SegmentedEventAdapter:
    """Reshapes Anthropic-style stream events into canonical events.

    Content blocks of kinds the service does not model (e.g. redacted
    thinking, server tool use) are dropped together with their deltas and
    stop events.
    """

    def __init__(self) -> None:
        self._ignored: set[int] = set()

    def feed(self, event: Any) -> list[CanonicalEvent]:
        event_type = _field(event, "type")

        if event_type == "message_start":
            return [MessageStart()]

        if event_type == "content_block_start":
            index = _field(event, "index")
            block = _field(event, "content_block")
            try:
                kind = BlockKind(_field(block, "type"))
            except ValueError:
                self._ignored.add(index)
                return []
            self._ignored.discard(index)
            return [BlockStart(index=index, kind=kind, id=_field(block, "id"), name=_field(block, "name"))]

        if event_type == "content_block_delta":
            index = _field(event, "index")
            delta = _field(event, "delta")
            mapping = SEGMENTED_DELTA_KINDS.get(_field(delta, "type"))
            if index in self._ignored or mapping is None:
                return []
            kind, attribute = mapping
            return [BlockDelta(index=index, kind=kind, fragment=_field(delta, attribute) or "")]

        if event_type == "content_block_stop":
            index = _field(event, "index")
            if index in self._ignored:
                return []
            return [BlockStop(index=index)]

        if event_type == "message_delta":
            return [MessageDelta(stop_reason=_field(_field(event, "delta"), "stop_reason"))]

        if event_type == "message_stop":
            return [MessageStop()]

        return []


async def normalize_chunk_stream(chunks: AsyncIterable[Any]) -> AsyncIterator[CanonicalEvent]:
    """Normalize an incremental-chunk stream into canonical events."""
    synthesizer = ChunkBlockSynthesizer()
    async for chunk in chunks:
        for event in synthesizer.feed(chunk):
            yield event
    for event in synthesizer.close():
        yield event


async def normalize_segmented_stream(events: AsyncIterable[Any]) -> AsyncIterator[CanonicalEvent]:
    """Normalize a segmented-event stream into canonical events."""
    adapter = SegmentedEventAdapter()
    async for native in events:
        for event in adapter.feed(native):
            yield event
