"""Service-wide constants."""

SERVICE_NAME = "mcp-chat"
SERVICE_VERSION = "0.1.0"
USER_AGENT = f"{SERVICE_NAME}/{SERVICE_VERSION}"

# Separator between provider id and local tool name in qualified tool names
TOOL_NAME_SEPARATOR = "__"

# URI scheme used by tool providers for UI resources
UI_RESOURCE_SCHEME = "ui://"
