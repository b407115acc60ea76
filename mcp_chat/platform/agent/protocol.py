"""Model provider protocol definitions.

This module defines the framework-agnostic ModelProvider protocol that all
model backends must satisfy, enabling interchangeable providers behind the
tool-use orchestrator.
"""

from collections.abc import AsyncIterator, Sequence
from typing import Any, Protocol

from mcp_chat.platform.agent.events import CanonicalEvent
from mcp_chat.platform.agent.messages import Message


class ModelProvider(Protocol):
    """Protocol for a streaming model backend."""

    @property
    def name(self) -> str:
        """Short provider name used in logs and metrics (e.g., "anthropic")."""
        ...

    @property
    def model(self) -> str:
        """The model identifier requests are sent to."""
        ...

    def stream_turn(
        self,
        messages: Sequence[Message],
        tools: Sequence[dict[str, Any]],
        system: str | None = None,
    ) -> AsyncIterator[CanonicalEvent]:
        """Stream one model turn as canonical events.

        Args:
            messages: Conversation so far, in order
            tools: Tool schemas ({name, description, input_schema}) the model may call
            system: Optional system prompt
        Yields:
            CanonicalEvent objects, one MessageStart through one MessageStop
        Raises:
            ProviderStreamError: On network or protocol failures mid-stream
        """
        ...
