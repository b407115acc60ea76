"""Serialization of UI-injected user messages against running chat turns.

A rendered UI may inject a user message while the model is still answering
in the same conversation. Such messages wait in a single slot per
conversation (the latest one wins) and are delivered once the turn settles.
"""

import logging
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager

from mcp_chat.platform.agent.bridge import BridgeSession

logger = logging.getLogger(__name__)

type Deliver = Callable[[BridgeSession, str], Awaitable[None]]


class ConversationTurns:
    """Tracks which conversations have a turn in progress.

    Args:
        deliver: Called with (session, text) when a message may go through
    """

    def __init__(self, deliver: Deliver) -> None:
        self._deliver = deliver
        self._active: dict[str, int] = {}
        self._queued: dict[str, tuple[BridgeSession, str]] = {}

    def is_active(self, conversation_id: str) -> bool:
        return conversation_id in self._active

    def queued(self, conversation_id: str) -> str | None:
        entry = self._queued.get(conversation_id)
        return entry[1] if entry else None

    @asynccontextmanager
    async def turn(self, conversation_id: str | None) -> AsyncGenerator[None]:
        """Mark a conversation busy for the duration of the block.

        On exit of the last overlapping turn, a queued message is delivered.
        """
        if conversation_id is None:
            yield
            return

        self._active[conversation_id] = self._active.get(conversation_id, 0) + 1
        try:
            yield
        finally:
            remaining = self._active[conversation_id] - 1
            if remaining:
                self._active[conversation_id] = remaining
            else:
                del self._active[conversation_id]
                queued = self._queued.pop(conversation_id, None)
                if queued is not None:
                    logger.info("Flushing queued UI message for conversation %s", conversation_id)
                    await self._deliver(*queued)

    async def submit(self, session: BridgeSession, text: str) -> None:
        """Deliver UI-injected text now, or hold it until the running turn settles."""
        conversation_id = session.conversation_id
        if conversation_id is not None and conversation_id in self._active:
            if conversation_id in self._queued:
                logger.info("Replacing queued UI message for conversation %s", conversation_id)
            self._queued[conversation_id] = (session, text)
            return
        await self._deliver(session, text)
