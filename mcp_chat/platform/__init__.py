"""Chat service infrastructure module.

This module provides the core infrastructure of the service:
- Model provider protocol and adapters
- MCP (Model Context Protocol) tool-provider registry
- Tool-use orchestration and the UI bridge
- FastAPI server configuration
- Observability utilities
"""

from mcp_chat.platform.agent.config import LlmConfig, ToolProviderConfig
from mcp_chat.platform.agent.messages import Message, StreamEvent
from mcp_chat.platform.agent.orchestrator import ToolUseOrchestrator
from mcp_chat.platform.agent.protocol import ModelProvider
from mcp_chat.platform.agent.registry import ToolProviderRegistry
from mcp_chat.platform.settings import Settings

__all__ = [
    # Core protocols
    "ModelProvider",
    # Configuration
    "LlmConfig",
    "ToolProviderConfig",
    "Settings",
    # Orchestration
    "ToolProviderRegistry",
    "ToolUseOrchestrator",
    # Message types
    "Message",
    "StreamEvent",
]
