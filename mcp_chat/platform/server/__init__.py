"""HTTP server infrastructure module.

This module provides the FastAPI application factory and HTTP-related utilities:
- Application factory
- Chat, tool-provider, resource and bridge routes
- FastAPI dependencies
- Health checks
"""

from mcp_chat.platform.server.app import create_app
from mcp_chat.platform.server.health import HealthCheck

__all__ = [
    "create_app",
    "HealthCheck",
]
