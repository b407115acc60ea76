"""Agent infrastructure module.

This module provides the core of the chat service:
- Model provider protocol and stream normalization
- Tool-provider (MCP server) connections and registry
- The tool-use orchestrator
- The UI bridge for rendered tool interfaces
- Agent-specific metrics
"""

from mcp_chat.platform.agent.bridge import UIBridge
from mcp_chat.platform.agent.config import LlmConfig, ProviderKind, ToolProviderConfig, TransportKind
from mcp_chat.platform.agent.messages import Message, StreamEvent
from mcp_chat.platform.agent.orchestrator import ToolUseOrchestrator
from mcp_chat.platform.agent.protocol import ModelProvider
from mcp_chat.platform.agent.registry import ToolProviderRegistry

__all__ = [
    "LlmConfig",
    "ProviderKind",
    "ToolProviderConfig",
    "TransportKind",
    "Message",
    "StreamEvent",
    "ModelProvider",
    "ToolProviderRegistry",
    "ToolUseOrchestrator",
    "UIBridge",
]
