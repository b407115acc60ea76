from fastapi import APIRouter

from mcp_chat.platform.server.routes.base import base_router
from mcp_chat.platform.server.routes.bridge import bridge_router
from mcp_chat.platform.server.routes.chat import chat_router
from mcp_chat.platform.server.routes.mcp import mcp_router
from mcp_chat.platform.server.routes.resources import resources_router

root = APIRouter()
root.include_router(base_router)
root.include_router(chat_router)
root.include_router(mcp_router)
root.include_router(resources_router)
root.include_router(bridge_router)
