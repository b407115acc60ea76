"""Shared test fixtures."""

import pytest

from fakes import FakeToolProviders, ScriptedModelProvider, stdio_config
from mcp_chat.platform.agent.config import ToolProviderConfig
from mcp_chat.platform.agent.registry import ToolProviderRegistry


@pytest.fixture
def fake_tool_providers() -> FakeToolProviders:
    return FakeToolProviders()


@pytest.fixture
def registry(fake_tool_providers: FakeToolProviders) -> ToolProviderRegistry:
    """A registry whose connections are in-memory fakes."""
    return ToolProviderRegistry(connection_factory=fake_tool_providers)


@pytest.fixture
def provider_config() -> ToolProviderConfig:
    return stdio_config()


@pytest.fixture
def scripted_provider() -> ScriptedModelProvider:
    return ScriptedModelProvider()
