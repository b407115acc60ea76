"""Application settings and configuration.

This module provides Pydantic settings classes for application configuration,
loaded from environment variables with support for nested configuration.
"""

import logging

import pydantic_settings
from pydantic import BaseModel, Field, field_validator

from mcp_chat.platform.agent.config import LlmConfig, ProviderKind, ToolProviderConfig, TransportKind
from mcp_chat.platform.agent.exceptions import ConfigurationError

DEFAULT_MODELS: dict[ProviderKind, str] = {
    ProviderKind.VERTEX: "claude-opus-4-6",
    ProviderKind.ANTHROPIC: "claude-opus-4-6",
    ProviderKind.OPENAI: "gpt-4o",
    ProviderKind.OPENAI_COMPATIBLE: "gpt-4o",
}


class AppHTTPSettings(BaseModel):
    host: str = Field("0.0.0.0")
    port: int = Field(8000)
    log_level: str = Field("INFO")
    log_json: bool | None = Field(
        None, description="Override log format: True=JSON, False=console, None=auto"
    )

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, v):
        v_upper = v.upper()
        if v_upper not in logging._nameToLevel:
            raise ValueError(f'invalid value "{v}"')
        return v_upper


class OpenTelemetrySettings(BaseModel):
    host: str = Field("")
    port: int = Field(4317)
    enabled: bool = Field(False)
    excluded_urls: str = Field("metrics,health,info")


class BugsnagSettings(BaseModel):
    api_key: str = Field("", description="Empty disables error reporting")
    release_stage: str = Field("development")

    @field_validator("release_stage")
    @classmethod
    def _validate_bugsnag_release_stage(cls, v):
        if v not in ["development", "production", "local"]:
            raise ValueError(f'invalid bugsnag release stage "{v}"')
        return v


class LlmSettings(BaseModel):
    """Model provider configuration.

    When ``provider`` is unset it is detected from the credentials present,
    in order: Vertex project id, Anthropic key, OpenAI key with a base URL
    (openai-compatible), OpenAI key.
    """

    provider: ProviderKind | None = None
    model: str | None = None
    max_tokens: int = Field(16384, gt=0)
    thinking_budget: int = Field(4096, ge=0)
    anthropic_api_key: str | None = None
    openai_api_key: str | None = None
    openai_base_url: str | None = None
    vertex_project_id: str | None = None
    vertex_region: str = Field("us-east5")

    def detect_provider(self) -> ProviderKind:
        """Resolve which provider to use.

        Raises:
            ConfigurationError: If no provider is set and no credentials are present
        """
        if self.provider is not None:
            return self.provider
        if self.vertex_project_id:
            return ProviderKind.VERTEX
        if self.anthropic_api_key:
            return ProviderKind.ANTHROPIC
        if self.openai_api_key and self.openai_base_url:
            return ProviderKind.OPENAI_COMPATIBLE
        if self.openai_api_key:
            return ProviderKind.OPENAI
        raise ConfigurationError(
            "No model provider credentials found. Set one of: LLM__VERTEX_PROJECT_ID, "
            "LLM__ANTHROPIC_API_KEY, LLM__OPENAI_API_KEY"
        )

    def to_config(self) -> LlmConfig:
        provider = self.detect_provider()
        match provider:
            case ProviderKind.ANTHROPIC | ProviderKind.VERTEX:
                api_key = self.anthropic_api_key
            case _:
                api_key = self.openai_api_key
        return LlmConfig(
            provider=provider,
            model=self.model or DEFAULT_MODELS[provider],
            max_tokens=self.max_tokens,
            api_key=api_key,
            base_url=self.openai_base_url,
            project_id=self.vertex_project_id,
            region=self.vertex_region,
            thinking_budget=self.thinking_budget,
        )


class ChatSettings(BaseModel):
    max_iterations: int = Field(10, gt=0)
    system_prompt: str | None = None
    bridge_tool_data_delay: float = Field(0.05, ge=0)
    link_confirm_timeout: float = Field(60.0, gt=0)
    drain_timeout: float = Field(30.0, ge=0)


class ToolProviderSettings(BaseModel):
    """Configuration for a tool provider registered at startup.

    Example:
        TOOL_PROVIDERS='[{"id":"weather","type":"http","url":"http://localhost:9000/mcp"}]'
    """

    id: str
    type: TransportKind = TransportKind.SUBPROCESS
    command: str | None = None
    args: list[str] = []
    env: dict[str, str] = {}
    url: str | None = None
    headers: dict[str, str] | None = None
    timeout: float = 60.0
    sse_read_timeout: float = 300.0
    read_timeout: float = 120.0

    @field_validator("type", mode="before")
    @classmethod
    def _parse_type(cls, v):
        return TransportKind.parse(v)

    def to_config(self) -> ToolProviderConfig:
        return ToolProviderConfig(
            transport=self.type,
            command=self.command,
            args=tuple(self.args),
            env=dict(self.env),
            url=self.url,
            headers=self.headers,
            timeout=self.timeout,
            sse_read_timeout=self.sse_read_timeout,
            read_timeout=self.read_timeout,
        )


class Settings(pydantic_settings.BaseSettings):
    model_config = pydantic_settings.SettingsConfigDict(env_nested_delimiter="__")

    app_http: AppHTTPSettings = AppHTTPSettings()
    opentelemetry: OpenTelemetrySettings = OpenTelemetrySettings()
    bugsnag: BugsnagSettings = BugsnagSettings()

    # Model provider configuration
    llm: LlmSettings = LlmSettings()

    # Tool-use loop and UI bridge
    chat: ChatSettings = ChatSettings()

    # Tool providers connected at startup
    tool_providers: list[ToolProviderSettings] = []
