"""Integration test fixtures.

This module provides a shallow FastAPI app for route/handler tests: the real
routers, registry, bridge and turn tracking, with the model provider and the
tool-provider connections replaced by in-memory fakes.
"""

from collections.abc import Generator

import pytest
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.testclient import TestClient

from fakes import FakeToolProviders, ScriptedModelProvider
from mcp_chat.platform.agent.bridge import UIBridge
from mcp_chat.platform.agent.registry import ToolProviderRegistry
from mcp_chat.platform.agent.streaming import BackgroundRuns
from mcp_chat.platform.agent.turns import ConversationTurns
from mcp_chat.platform.server.health import HealthCheck
from mcp_chat.platform.server.responses import validation_error_handler
from mcp_chat.platform.server.routes import root as root_router
from mcp_chat.platform.settings import ChatSettings, Settings

SYSTEM_PROMPT = "You are a helpful assistant."


@pytest.fixture
def stub_settings() -> Settings:
    """Create settings with canned configuration values."""
    return Settings(chat=ChatSettings(system_prompt=SYSTEM_PROMPT, bridge_tool_data_delay=0))


# =============================================================================
# FastAPI App Fixtures (Shallow - no middleware, minimal lifespan)
# =============================================================================


@pytest.fixture
def test_app(
    stub_settings: Settings,
    registry: ToolProviderRegistry,
    scripted_provider: ScriptedModelProvider,
) -> FastAPI:
    """Create a minimal test FastAPI app for integration tests.

    This is intentionally SHALLOW - no middleware, no full lifespan.
    Tests route handlers and their interaction with dependencies.
    """
    app = FastAPI()
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    bridge = UIBridge(registry, tool_data_delay=stub_settings.chat.bridge_tool_data_delay)
    turns = ConversationTurns(deliver=bridge.post_user_message)
    bridge.user_message_handler = turns.submit

    # Register stubs directly in app.state
    app.state.settings = stub_settings
    app.state.model_provider = scripted_provider
    app.state.registry = registry
    app.state.bridge = bridge
    app.state.turns = turns
    app.state.chat_runs = BackgroundRuns()

    app.include_router(root_router)

    return app


@pytest.fixture
def client(test_app: FastAPI) -> Generator[TestClient]:
    """Create a test client for the test app.

    Used as a context manager so every request and websocket of a test
    shares one event loop with the registry and bridge state.
    """
    with TestClient(test_app) as test_client:
        yield test_client


@pytest.fixture
def client_with_health_enabled(client: TestClient) -> Generator[TestClient]:
    """Create a test client with health checks enabled."""
    HealthCheck.enable()
    yield client
    HealthCheck.disable()


@pytest.fixture
def client_with_health_disabled(client: TestClient) -> Generator[TestClient]:
    """Create a test client with health checks disabled."""
    HealthCheck.disable()
    yield client


@pytest.fixture
def weather_provider(client: TestClient, fake_tool_providers: FakeToolProviders) -> FakeToolProviders:
    """Register a "weather" provider with a UI-enabled forecast tool."""
    fake_tool_providers.add_tool("weather", "get_forecast", ui_resource_uri="ui://weather/forecast")
    fake_tool_providers.resources["ui://weather/forecast"] = "<div>forecast</div>"
    response = client.post("/api/mcp/servers", json={"id": "weather", "type": "stdio", "command": "weather-mcp"})
    assert response.status_code == 200
    return fake_tool_providers
