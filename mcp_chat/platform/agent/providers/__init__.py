"""Model provider backends.

Segmented-event backends (Anthropic, Vertex) go through the Anthropic SDK;
incremental-chunk backends (OpenAI, OpenAI-compatible) go through LiteLLM.
"""

from anthropic import AsyncAnthropic, AsyncAnthropicVertex

from mcp_chat.platform.agent.config import LlmConfig, ProviderKind
from mcp_chat.platform.agent.exceptions import ConfigurationError
from mcp_chat.platform.agent.protocol import ModelProvider
from mcp_chat.platform.agent.providers.anthropic import AnthropicProvider
from mcp_chat.platform.agent.providers.litellm import LiteLLMProvider


def create_provider(config: LlmConfig) -> ModelProvider:
    """Build the model provider described by the config.

    Raises:
        ConfigurationError: If required credentials for the provider are missing
    """
    match config.provider:
        case ProviderKind.VERTEX:
            if not config.project_id:
                raise ConfigurationError("A Vertex project id is required for the vertex provider")
            client = AsyncAnthropicVertex(project_id=config.project_id, region=config.region)
            return AnthropicProvider(
                client,
                config.model,
                max_tokens=config.max_tokens,
                thinking_budget=config.thinking_budget,
                name=config.provider.value,
            )
        case ProviderKind.ANTHROPIC:
            return AnthropicProvider(
                AsyncAnthropic(api_key=config.api_key),
                config.model,
                max_tokens=config.max_tokens,
                thinking_budget=config.thinking_budget,
                name=config.provider.value,
            )
        case ProviderKind.OPENAI:
            return LiteLLMProvider(
                config.model,
                max_tokens=config.max_tokens,
                api_key=config.api_key,
                name=config.provider.value,
            )
        case ProviderKind.OPENAI_COMPATIBLE:
            if not config.base_url:
                raise ConfigurationError("A base URL is required for the openai-compatible provider")
            model = config.model if config.model.startswith("openai/") else f"openai/{config.model}"
            return LiteLLMProvider(
                model,
                max_tokens=config.max_tokens,
                api_key=config.api_key,
                api_base=config.base_url,
                name=config.provider.value,
            )
    raise ConfigurationError(f"Unknown model provider: {config.provider!r}")


__all__ = ["AnthropicProvider", "LiteLLMProvider", "create_provider"]
