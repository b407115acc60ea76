"""Decoupling of chat runs from the client connection that started them.

A run is driven by a background task that writes encoded SSE frames into an
``EventChannel``; the HTTP response only reads from the channel. When the
client goes away the channel drops further frames, while the run goes on to
completion so tool calls already under way are not cut short.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Coroutine
from typing import Any

from mcp_chat.platform.agent.messages import StreamEvent

logger = logging.getLogger(__name__)


class EventChannel:
    """Single-consumer queue of encoded SSE frames."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, event: StreamEvent) -> None:
        """Queue an event for the client; a no-op once the client is gone."""
        if self._closed:
            return
        self._queue.put_nowait(event.encode())

    def finish(self) -> None:
        """Signal the end of the stream."""
        self._queue.put_nowait(None)

    def close(self) -> None:
        self._closed = True

    async def frames(self) -> AsyncIterator[str]:
        """Yield frames until the stream finishes; closing the iterator closes the channel."""
        try:
            while (frame := await self._queue.get()) is not None:
                yield frame
        finally:
            self.close()


async def pump(events: AsyncIterator[StreamEvent], channel: EventChannel) -> None:
    """Forward every event of a run into a channel, then finish it."""
    try:
        async for event in events:
            channel.send(event)
    finally:
        channel.finish()


class BackgroundRuns:
    """Keeps references to in-flight runs and drains them on shutdown."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, None], name: str | None = None) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Background chat run failed", exc_info=task.exception())

    async def drain(self, timeout: float) -> None:
        """Wait for in-flight runs, cancelling whatever is left after the timeout."""
        if not self._tasks:
            return
        logger.info("Draining %s in-flight chat run(s)", len(self._tasks))
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.wait(pending)
