from starlette.requests import HTTPConnection

from mcp_chat.platform.settings import Settings


def get_settings(connection: HTTPConnection) -> Settings:
    return connection.app.state.settings
