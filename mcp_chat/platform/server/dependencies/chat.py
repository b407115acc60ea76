"""Chat dependencies for FastAPI routes.

Dependencies take an ``HTTPConnection`` so the same providers serve both
HTTP routes and the bridge websocket.
"""

from fastapi import Depends
from starlette.requests import HTTPConnection

from mcp_chat.platform.agent.bridge import UIBridge
from mcp_chat.platform.agent.orchestrator import ToolUseOrchestrator
from mcp_chat.platform.agent.protocol import ModelProvider
from mcp_chat.platform.agent.registry import ToolProviderRegistry
from mcp_chat.platform.agent.streaming import BackgroundRuns
from mcp_chat.platform.agent.turns import ConversationTurns
from mcp_chat.platform.server.dependencies.settings import get_settings
from mcp_chat.platform.settings import Settings


def get_registry(connection: HTTPConnection) -> ToolProviderRegistry:
    return connection.app.state.registry


def get_model_provider(connection: HTTPConnection) -> ModelProvider:
    return connection.app.state.model_provider


def get_bridge(connection: HTTPConnection) -> UIBridge:
    return connection.app.state.bridge


def get_turns(connection: HTTPConnection) -> ConversationTurns:
    return connection.app.state.turns


def get_chat_runs(connection: HTTPConnection) -> BackgroundRuns:
    return connection.app.state.chat_runs


def get_orchestrator(
    provider: ModelProvider = Depends(get_model_provider),
    registry: ToolProviderRegistry = Depends(get_registry),
    bridge: UIBridge = Depends(get_bridge),
    settings: Settings = Depends(get_settings),
) -> ToolUseOrchestrator:
    """Build a fresh orchestrator for one chat run."""
    return ToolUseOrchestrator(
        provider=provider,
        registry=registry,
        bridge=bridge,
        max_iterations=settings.chat.max_iterations,
    )
