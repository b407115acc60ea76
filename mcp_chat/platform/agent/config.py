"""Configuration dataclasses for agent components.

This module provides immutable configuration objects for model providers
and tool-provider (MCP server) connections.
"""

from dataclasses import dataclass, field
from enum import StrEnum


class ProviderKind(StrEnum):
    """Supported model provider backends."""

    ANTHROPIC = "anthropic"
    VERTEX = "vertex"
    OPENAI = "openai"
    OPENAI_COMPATIBLE = "openai-compatible"


class TransportKind(StrEnum):
    """How the service talks to a tool provider."""

    SUBPROCESS = "stdio"
    HTTP_STREAM = "http"

    @classmethod
    def parse(cls, value: "str | TransportKind") -> "TransportKind":
        """Parse a transport name, accepting the subprocess/httpStream aliases."""
        return cls(TRANSPORT_ALIASES.get(value, value))


TRANSPORT_ALIASES = {"subprocess": "stdio", "httpStream": "http"}


@dataclass(frozen=True)
class LlmConfig:
    """Configuration for model provider clients.

    Attributes:
        provider: Which backend to stream turns from
        model: Model identifier (e.g., "claude-opus-4-6", "gpt-4o")
        max_tokens: Output token cap per model turn
        api_key: API key for the provider (None lets the SDK read its env var)
        base_url: Base URL for OpenAI-compatible endpoints
        project_id: Google Cloud project for Vertex
        region: Google Cloud region for Vertex
        thinking_budget: Extended thinking token budget (Anthropic only, 0 disables)
    """

    provider: ProviderKind
    model: str
    max_tokens: int = 16384
    api_key: str | None = None
    base_url: str | None = None
    project_id: str | None = None
    region: str = "us-east5"
    thinking_budget: int = 4096


@dataclass(frozen=True)
class ToolProviderConfig:
    """Configuration for one tool-provider connection.

    Subprocess providers need a command; HTTP providers need a URL. The
    same config is reused verbatim when the registry reconnects.

    Attributes:
        transport: Subprocess (stdio) or streamable HTTP
        command: Executable to launch (subprocess only)
        args: Arguments for the executable (subprocess only)
        env: Extra environment variables, merged over the service env (subprocess only)
        url: Endpoint of the MCP server (HTTP only)
        headers: Optional HTTP headers to include in requests (HTTP only)
        timeout: Connection timeout in seconds (default: 60.0)
        sse_read_timeout: SSE stream read timeout in seconds (default: 300.0)
        read_timeout: Per-request read timeout in seconds (default: 120.0)
    """

    transport: TransportKind
    command: str | None = None
    args: tuple[str, ...] = ()
    env: dict[str, str] = field(default_factory=dict)
    url: str | None = None
    headers: dict[str, str] | None = None
    timeout: float = 60.0
    sse_read_timeout: float = 300.0
    read_timeout: float = 120.0

    def __post_init__(self) -> None:
        if self.transport is TransportKind.HTTP_STREAM and not self.url:
            raise ValueError("url is required for http type")
        if self.transport is TransportKind.SUBPROCESS and not self.command:
            raise ValueError("command is required for stdio type")

    def __repr__(self) -> str:
        """Obfuscate env and headers, which routinely carry credentials."""
        return (
            f"ToolProviderConfig(transport={self.transport.value!r}, "
            f"command={self.command!r}, args={self.args!r}, url={self.url!r}, "
            f"env={'<obfuscated>' if self.env else 'None'}, "
            f"headers={'<obfuscated>' if self.headers else 'None'})"
        )
