"""Chat endpoint streaming the tool-use loop as Server-Sent Events."""

import logging
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from mcp_chat.platform.agent.messages import Message
from mcp_chat.platform.agent.orchestrator import ToolUseOrchestrator
from mcp_chat.platform.agent.streaming import BackgroundRuns, EventChannel, pump
from mcp_chat.platform.agent.turns import ConversationTurns
from mcp_chat.platform.observability.logging import conversation_id_ctx
from mcp_chat.platform.server.dependencies.chat import get_chat_runs, get_orchestrator, get_turns
from mcp_chat.platform.server.dependencies.settings import get_settings
from mcp_chat.platform.server.responses import SSE_HEADERS, error_response
from mcp_chat.platform.settings import Settings

logger = logging.getLogger(__name__)

chat_router = APIRouter(prefix="/api", tags=["chat"])


class ChatPayload(BaseModel):
    """Request payload for a chat run.

    Attributes:
        messages: Conversation history in the Anthropic Messages shape
        system: Optional system prompt, overriding the configured one
        conversation_id: Optional id grouping runs of one conversation
    """

    messages: list[dict[str, Any]] = Field(min_length=1)
    system: str | None = None
    conversation_id: str | None = None


@chat_router.post("/chat")
async def chat_handler(
    payload: ChatPayload,
    orchestrator: ToolUseOrchestrator = Depends(get_orchestrator),
    turns: ConversationTurns = Depends(get_turns),
    chat_runs: BackgroundRuns = Depends(get_chat_runs),
    settings: Settings = Depends(get_settings),
):
    """Run the tool-use loop and stream its events.

    The run continues in the background if the client disconnects; events
    produced after that are dropped.

    Returns:
        StreamingResponse of ``event: <type>\\ndata: <json>`` frames
    """
    try:
        messages = [Message.from_dict(message) for message in payload.messages]
    except (KeyError, TypeError, ValueError) as e:
        return error_response(400, f"Invalid messages: {e}")

    system = payload.system or settings.chat.system_prompt
    channel = EventChannel()

    async def run() -> None:
        conversation_id_ctx.set(payload.conversation_id)
        async with turns.turn(payload.conversation_id):
            await pump(
                orchestrator.run(messages, system=system, conversation_id=payload.conversation_id),
                channel,
            )

    chat_runs.spawn(run(), name=f"chat-run-{payload.conversation_id or 'anonymous'}")

    return StreamingResponse(
        channel.frames(),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
