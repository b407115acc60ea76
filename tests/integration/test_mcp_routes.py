"""Integration tests for tool-provider management endpoints.

Tests the /api/mcp/servers and /api/mcp/tool-call endpoints.
"""

from fastapi.testclient import TestClient

from fakes import FakeToolProviders
from mcp_chat.platform.agent.exceptions import ProviderConnectionError


class TestListServers:
    """Tests for GET /api/mcp/servers."""

    def test_empty(self, client: TestClient):
        response = client.get("/api/mcp/servers")

        assert response.status_code == 200
        assert response.json() == {"servers": []}

    def test_lists_registered(self, client: TestClient, weather_provider: FakeToolProviders):
        [server] = client.get("/api/mcp/servers").json()["servers"]

        assert server["id"] == "weather"
        assert server["status"] == "connected"
        assert server["tools"] == ["get_forecast"]
        assert server["resourceCount"] == 1


class TestAddServer:
    """Tests for POST /api/mcp/servers."""

    def test_stdio_with_string_args_and_env(self, client: TestClient, fake_tool_providers: FakeToolProviders):
        response = client.post(
            "/api/mcp/servers",
            json={
                "id": "fs",
                "type": "subprocess",
                "command": "npx",
                "args": "-y @modelcontextprotocol/server-filesystem /tmp",
                "env": "LOG_LEVEL=debug ROOT=/tmp",
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "connected"
        assert body["servers"][0]["args"] == ["-y", "@modelcontextprotocol/server-filesystem", "/tmp"]
        config = fake_tool_providers.created[0].config
        assert config.env == {"LOG_LEVEL": "debug", "ROOT": "/tmp"}

    def test_http(self, client: TestClient, fake_tool_providers: FakeToolProviders):
        response = client.post(
            "/api/mcp/servers",
            json={"id": "remote", "type": "httpStream", "url": "http://localhost:9000/mcp"},
        )

        assert response.status_code == 200
        assert response.json()["servers"][0]["type"] == "http"

    def test_missing_id(self, client: TestClient):
        response = client.post("/api/mcp/servers", json={"type": "stdio", "command": "npx"})

        assert response.status_code == 400
        assert response.json() == {"error": "id is required"}

    def test_http_requires_url(self, client: TestClient):
        response = client.post("/api/mcp/servers", json={"id": "remote", "type": "http"})

        assert response.status_code == 400
        assert response.json() == {"error": "url is required for http type"}

    def test_stdio_requires_command(self, client: TestClient):
        response = client.post("/api/mcp/servers", json={"id": "fs"})

        assert response.status_code == 400
        assert response.json() == {"error": "command is required for stdio type"}

    def test_unknown_type(self, client: TestClient):
        response = client.post("/api/mcp/servers", json={"id": "x", "type": "carrier-pigeon", "command": "c"})

        assert response.status_code == 400

    def test_separator_in_id(self, client: TestClient):
        response = client.post("/api/mcp/servers", json={"id": "my__server", "command": "c"})

        assert response.status_code == 400

    def test_duplicate(self, client: TestClient, weather_provider: FakeToolProviders):
        response = client.post("/api/mcp/servers", json={"id": "weather", "command": "weather-mcp"})

        assert response.status_code == 409
        assert response.json() == {"error": 'Server "weather" already exists'}

    def test_connection_failure(self, client: TestClient, fake_tool_providers: FakeToolProviders):
        fake_tool_providers.refuse.add("broken")

        response = client.post("/api/mcp/servers", json={"id": "broken", "command": "nope"})

        assert response.status_code == 500
        assert "broken" in response.json()["error"]
        assert client.get("/api/mcp/servers").json() == {"servers": []}


class TestRemoveServer:
    """Tests for DELETE /api/mcp/servers/{id}."""

    def test_remove(self, client: TestClient, weather_provider: FakeToolProviders):
        response = client.delete("/api/mcp/servers/weather")

        assert response.status_code == 200
        assert response.json() == {"status": "removed", "servers": []}

    def test_unknown(self, client: TestClient):
        response = client.delete("/api/mcp/servers/nope")

        assert response.status_code == 404
        assert response.json() == {"error": 'Server "nope" not found'}


class TestReconnectServer:
    """Tests for POST /api/mcp/servers/{id}/reconnect."""

    def test_reconnect(self, client: TestClient, weather_provider: FakeToolProviders):
        response = client.post("/api/mcp/servers/weather/reconnect")

        assert response.status_code == 200
        assert response.json()["status"] == "reconnected"
        assert len(weather_provider.created) == 2

    def test_unknown(self, client: TestClient):
        response = client.post("/api/mcp/servers/nope/reconnect")

        assert response.status_code == 404

    def test_failure(self, client: TestClient, weather_provider: FakeToolProviders):
        weather_provider.refuse.add("weather")

        response = client.post("/api/mcp/servers/weather/reconnect")

        assert response.status_code == 500
        [server] = client.get("/api/mcp/servers").json()["servers"]
        assert server["status"] == "disconnected"


class TestToolCall:
    """Tests for POST /api/mcp/tool-call."""

    def test_returns_raw_result(self, client: TestClient, weather_provider: FakeToolProviders):
        weather_provider.results["get_forecast"] = {
            "content": [{"type": "text", "text": "Sunny"}],
            "structuredContent": {"temp": 21},
            "isError": False,
        }

        response = client.post(
            "/api/mcp/tool-call",
            json={"serverId": "weather", "name": "get_forecast", "arguments": {"city": "Paris"}},
        )

        assert response.status_code == 200
        assert response.json()["structuredContent"] == {"temp": 21}
        assert weather_provider.calls == [("weather", "get_forecast", {"city": "Paris"})]

    def test_missing_fields(self, client: TestClient):
        response = client.post("/api/mcp/tool-call", json={"serverId": "weather"})

        assert response.status_code == 400
        assert response.json() == {"error": "serverId and name are required"}

    def test_unknown_server(self, client: TestClient):
        response = client.post("/api/mcp/tool-call", json={"serverId": "nope", "name": "x"})

        assert response.status_code == 404

    def test_failure(self, client: TestClient, weather_provider: FakeToolProviders):
        weather_provider.call_failures["weather"] = [
            ProviderConnectionError("gone"),
            ProviderConnectionError("still gone"),
        ]

        response = client.post("/api/mcp/tool-call", json={"serverId": "weather", "name": "get_forecast"})

        assert response.status_code == 500
        assert "Reconnection failed" in response.json()["error"]
