"""Exception hierarchy for the chat service.

Errors are grouped by the layer that raises them:
- Model streaming (ProviderStreamError)
- Tool providers (ProviderConnectionError, ToolDispatchError and friends)
- Orchestration (IterationLimitExceeded)
- UI bridge (BridgeProtocolViolation)
"""


class ChatServiceError(Exception):
    """Base exception for all chat service errors."""


class ConfigurationError(ChatServiceError):
    """Raised when the service configuration is incomplete or inconsistent."""


class ProviderStreamError(ChatServiceError):
    """Raised when a model provider stream fails mid-turn."""

    def __init__(self, message: str, provider: str | None = None):
        self.provider = provider
        provider_info = f" [{provider}]" if provider else ""
        super().__init__(f"Model stream failed{provider_info}: {message}")


class ToolProviderError(ChatServiceError):
    """Base exception for tool-provider registry errors."""

    def __init__(self, message: str, provider_id: str | None = None):
        self.provider_id = provider_id
        super().__init__(message)


class ProviderNotFoundError(ToolProviderError):
    """Raised when a provider id is not registered."""

    def __init__(self, provider_id: str):
        super().__init__(f'Server "{provider_id}" not found', provider_id=provider_id)


class ProviderAlreadyRegisteredError(ToolProviderError):
    """Raised when registering a provider id that is already taken."""

    def __init__(self, provider_id: str):
        super().__init__(f'Server "{provider_id}" already exists', provider_id=provider_id)


class ProviderConnectionError(ToolProviderError):
    """Raised when a provider connection is closed or its session is invalid.

    The registry treats this as recoverable: one reconnect cycle, one retry.
    """


class ToolDispatchError(ToolProviderError):
    """Raised when a tool call cannot be completed."""


class IterationLimitExceeded(ChatServiceError):
    """Raised when the tool-use loop hits its turn cap without terminating."""

    def __init__(self, max_iterations: int):
        self.max_iterations = max_iterations
        super().__init__("Maximum tool use iterations reached")


class BridgeProtocolViolation(ChatServiceError):
    """Raised when a bridge channel sends something that is not valid JSON-RPC."""


class UnknownBridgeSession(BridgeProtocolViolation):
    """Raised when a handshake references a session id the bridge does not own."""

    def __init__(self, session_id: str | None):
        self.session_id = session_id
        super().__init__(f"Unknown bridge session: {session_id!r}")
