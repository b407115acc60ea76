"""Unit tests for the tool-provider registry.

Connections are in-memory fakes handed out by FakeToolProviders.
"""

import pytest

from fakes import FakeToolProviders, stdio_config
from mcp_chat.platform.agent.exceptions import (
    ProviderAlreadyRegisteredError,
    ProviderConnectionError,
    ProviderNotFoundError,
    ToolDispatchError,
)
from mcp_chat.platform.agent.mcp import ConnectionStatus
from mcp_chat.platform.agent.registry import ToolProviderRegistry, provider_id_from_resource_uri


class TestProviderIdFromResourceUri:
    """Tests for resource URI parsing."""

    def test_extracts_provider_id(self):
        assert provider_id_from_resource_uri("ui://weather/forecast.html") == "weather"

    def test_rejects_other_schemes(self):
        with pytest.raises(ValueError, match="Only ui://"):
            provider_id_from_resource_uri("https://example.com/page")

    def test_rejects_missing_provider(self):
        with pytest.raises(ValueError):
            provider_id_from_resource_uri("ui:///page")


class TestRegistration:
    """Tests for register / remove / reconnect."""

    async def test_register_lists_provider(self, registry: ToolProviderRegistry, fake_tool_providers):
        fake_tool_providers.add_tool("weather", "get_forecast")

        await registry.register("weather", stdio_config())

        [summary] = registry.list_providers()
        assert summary["id"] == "weather"
        assert summary["type"] == "stdio"
        assert summary["status"] == "connected"
        assert summary["tools"] == ["get_forecast"]

    async def test_duplicate_id_rejected(self, registry: ToolProviderRegistry):
        await registry.register("weather", stdio_config())

        with pytest.raises(ProviderAlreadyRegisteredError, match='Server "weather" already exists'):
            await registry.register("weather", stdio_config())

    @pytest.mark.parametrize("provider_id", ["", "my__server"])
    async def test_invalid_id_rejected(self, registry: ToolProviderRegistry, provider_id):
        with pytest.raises(ValueError):
            await registry.register(provider_id, stdio_config())

    async def test_failed_connection_not_registered(self, registry: ToolProviderRegistry, fake_tool_providers):
        fake_tool_providers.refuse.add("weather")

        with pytest.raises(ProviderConnectionError):
            await registry.register("weather", stdio_config())

        assert "weather" not in registry

    async def test_remove_closes_connection(self, registry: ToolProviderRegistry, fake_tool_providers):
        await registry.register("weather", stdio_config())

        await registry.remove("weather")

        assert registry.list_providers() == []
        assert fake_tool_providers.created[0].status is ConnectionStatus.DISCONNECTED

    async def test_remove_unknown(self, registry: ToolProviderRegistry):
        with pytest.raises(ProviderNotFoundError, match='Server "nope" not found'):
            await registry.remove("nope")

    async def test_reconnect_reuses_config(self, registry: ToolProviderRegistry, fake_tool_providers):
        config = stdio_config("weather-server")
        await registry.register("weather", config)

        await registry.reconnect("weather")

        assert len(fake_tool_providers.created) == 2
        assert fake_tool_providers.created[1].config is config
        assert registry.get("weather") is fake_tool_providers.created[1]

    async def test_close_clears_registry(self, registry: ToolProviderRegistry, fake_tool_providers):
        await registry.register("a", stdio_config())
        await registry.register("b", stdio_config())

        await registry.close()

        assert registry.list_providers() == []
        assert all(not connection.connected for connection in fake_tool_providers.created)


class TestCatalog:
    """Tests for the merged tool catalog."""

    async def test_tools_are_namespaced(self, registry: ToolProviderRegistry, fake_tool_providers):
        fake_tool_providers.add_tool("weather", "search")
        fake_tool_providers.add_tool("docs", "search")
        await registry.register("weather", stdio_config())
        await registry.register("docs", stdio_config())

        names = {tool.qualified_name for tool in registry.list_tools()}

        assert names == {"weather__search", "docs__search"}

    async def test_disconnected_providers_excluded(self, registry: ToolProviderRegistry, fake_tool_providers):
        fake_tool_providers.add_tool("weather", "search")
        await registry.register("weather", stdio_config())
        fake_tool_providers.created[0].status = ConnectionStatus.DISCONNECTED

        assert registry.list_tools() == []
        assert registry.list_providers()[0]["status"] == "disconnected"

    async def test_find_tool(self, registry: ToolProviderRegistry, fake_tool_providers):
        tool = fake_tool_providers.add_tool("weather", "get_forecast")
        await registry.register("weather", stdio_config())

        assert registry.find_tool("weather__get_forecast") == tool
        assert registry.find_tool("weather__missing") is None
        assert registry.find_tool("unqualified") is None


class TestDispatch:
    """Tests for tool dispatch and the reconnect-once policy."""

    async def test_dispatch_routes_to_provider(self, registry: ToolProviderRegistry, fake_tool_providers):
        await registry.register("weather", stdio_config())

        result = await registry.dispatch("weather__get_forecast", {"city": "Paris"})

        assert result["content"][0]["text"] == "get_forecast ok"
        assert fake_tool_providers.calls == [("weather", "get_forecast", {"city": "Paris"})]

    async def test_local_name_may_contain_separator(self, registry: ToolProviderRegistry, fake_tool_providers):
        await registry.register("fs", stdio_config())

        await registry.dispatch("fs__read__raw", {})

        assert fake_tool_providers.calls == [("fs", "read__raw", {})]

    async def test_unknown_provider(self, registry: ToolProviderRegistry):
        with pytest.raises(ProviderNotFoundError):
            await registry.dispatch("nope__tool", {})

    async def test_session_error_reconnects_once(self, registry: ToolProviderRegistry, fake_tool_providers):
        await registry.register("weather", stdio_config())
        fake_tool_providers.call_failures["weather"] = [ProviderConnectionError("session closed")]

        result = await registry.call_tool("weather", "get_forecast", {})

        assert result["content"][0]["text"] == "get_forecast ok"
        assert len(fake_tool_providers.created) == 2
        assert len(fake_tool_providers.calls) == 2

    async def test_second_failure_surfaces(self, registry: ToolProviderRegistry, fake_tool_providers):
        await registry.register("weather", stdio_config())
        fake_tool_providers.call_failures["weather"] = [
            ProviderConnectionError("session closed"),
            ProviderConnectionError("still closed"),
        ]

        with pytest.raises(ToolDispatchError, match="Reconnection failed"):
            await registry.call_tool("weather", "get_forecast", {})

        assert len(fake_tool_providers.created) == 2

    async def test_disconnected_provider_reconnected_before_call(
        self, registry: ToolProviderRegistry, fake_tool_providers: FakeToolProviders
    ):
        await registry.register("weather", stdio_config())
        fake_tool_providers.created[0].status = ConnectionStatus.DISCONNECTED

        await registry.call_tool("weather", "get_forecast", {})

        assert len(fake_tool_providers.created) == 2
        assert fake_tool_providers.created[1].calls == [("get_forecast", {})]

    async def test_no_second_reconnect_after_upfront_reconnect(
        self, registry: ToolProviderRegistry, fake_tool_providers: FakeToolProviders
    ):
        await registry.register("weather", stdio_config())
        fake_tool_providers.created[0].status = ConnectionStatus.DISCONNECTED
        fake_tool_providers.call_failures["weather"] = [ProviderConnectionError("session closed")]

        with pytest.raises(ToolDispatchError):
            await registry.call_tool("weather", "get_forecast", {})

        assert len(fake_tool_providers.created) == 2

    async def test_failed_reconnect(self, registry: ToolProviderRegistry, fake_tool_providers):
        await registry.register("weather", stdio_config())
        fake_tool_providers.created[0].status = ConnectionStatus.DISCONNECTED
        fake_tool_providers.refuse.add("weather")

        with pytest.raises(ToolDispatchError, match="reconnection failed"):
            await registry.call_tool("weather", "get_forecast", {})

        # The stale entry stays registered and visible as disconnected
        assert registry.list_providers()[0]["status"] == "disconnected"


class TestReadResource:
    """Tests for UI resource reads."""

    async def test_routes_by_uri(self, registry: ToolProviderRegistry, fake_tool_providers):
        fake_tool_providers.resources["ui://weather/card"] = "<div>card</div>"
        await registry.register("weather", stdio_config())

        result = await registry.read_resource("ui://weather/card")

        assert result["contents"][0]["text"] == "<div>card</div>"

    async def test_explicit_provider(self, registry: ToolProviderRegistry, fake_tool_providers):
        fake_tool_providers.resources["ui://shared/card"] = "<div>shared</div>"
        await registry.register("weather", stdio_config())

        result = await registry.read_resource("ui://shared/card", provider_id="weather")

        assert result["contents"][0]["text"] == "<div>shared</div>"

    async def test_unknown_provider(self, registry: ToolProviderRegistry):
        with pytest.raises(ProviderNotFoundError):
            await registry.read_resource("ui://nope/card")
