"""mcp-chat - A chat service running a model tool-use loop over MCP tool providers."""

from .platform.server.app import create_app
from .platform.settings import Settings


def app():
    """Create the FastAPI application instance."""
    settings = Settings()
    return create_app(settings)
