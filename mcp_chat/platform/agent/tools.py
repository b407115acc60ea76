"""Tool definitions and provider-qualified tool names.

Every tool exposed to the model is namespaced by the id of the provider that
owns it: ``<provider_id>__<local_name>``. Provider ids may not contain the
separator, so splitting on its first occurrence always recovers the provider
id, and the remainder is the local name even when it contains the separator.
"""

from dataclasses import dataclass, field
from typing import Any

from mcp.types import Tool as MCPTool

from mcp_chat.platform.agent.exceptions import ToolDispatchError
from mcp_chat.platform.constants import TOOL_NAME_SEPARATOR

DEFAULT_INPUT_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}}


def qualify(provider_id: str, local_name: str) -> str:
    """Build the provider-qualified name for a tool."""
    return f"{provider_id}{TOOL_NAME_SEPARATOR}{local_name}"


def split_qualified_name(qualified_name: str) -> tuple[str, str]:
    """Split a qualified tool name into (provider_id, local_name).

    Raises:
        ToolDispatchError: If the name carries no provider id or no local name
    """
    provider_id, separator, local_name = qualified_name.partition(TOOL_NAME_SEPARATOR)
    if not separator or not provider_id or not local_name:
        raise ToolDispatchError(f'"{qualified_name}" is not a provider-qualified tool name')
    return provider_id, local_name


def ui_resource_uri(meta: dict[str, Any] | None) -> str | None:
    """Read the UI resource reference from a tool's ``_meta`` block.

    Supports both the nested ``{"ui": {"resourceUri": ...}}`` form and the
    flat legacy ``{"ui/resourceUri": ...}`` key.
    """
    if not meta:
        return None
    ui = meta.get("ui")
    if isinstance(ui, dict) and ui.get("resourceUri"):
        return ui["resourceUri"]
    return meta.get("ui/resourceUri") or None


@dataclass(frozen=True)
class ToolDefinition:
    """A tool offered by a tool provider.

    Attributes:
        provider_id: Id of the owning provider
        local_name: Name of the tool on the provider
        description: Human-readable description shown to the model
        input_schema: JSON Schema for the tool arguments
        ui_resource_uri: Optional ``ui://`` resource rendered next to results
    """

    provider_id: str
    local_name: str
    description: str = ""
    input_schema: dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_INPUT_SCHEMA))
    ui_resource_uri: str | None = None

    @property
    def qualified_name(self) -> str:
        return qualify(self.provider_id, self.local_name)

    @classmethod
    def from_mcp(cls, provider_id: str, tool: MCPTool) -> "ToolDefinition":
        """Convert an MCP tool listing entry."""
        return cls(
            provider_id=provider_id,
            local_name=tool.name,
            description=tool.description or "",
            input_schema=tool.inputSchema or dict(DEFAULT_INPUT_SCHEMA),
            ui_resource_uri=ui_resource_uri(tool.meta),
        )

    def to_model_tool(self) -> dict[str, Any]:
        """Tool schema in the shape model providers are given (Anthropic style)."""
        return {
            "name": self.qualified_name,
            "description": self.description,
            "input_schema": self.input_schema,
        }

    def to_tool_def(self) -> dict[str, Any]:
        """Tool description handed to rendered UI (local name, MCP casing)."""
        return {
            "name": self.local_name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }
