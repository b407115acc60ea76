"""Websocket channel for rendered tool UIs."""

import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from mcp_chat.platform.agent.bridge import BridgeConnection, UIBridge
from mcp_chat.platform.server.dependencies.chat import get_bridge

logger = logging.getLogger(__name__)

bridge_router = APIRouter(prefix="/api", tags=["bridge"])


@bridge_router.websocket("/bridge")
async def bridge_channel(websocket: WebSocket, bridge: UIBridge = Depends(get_bridge)):
    """Relay JSON-RPC messages between one rendered UI and the bridge.

    The UI binds the channel to its session with ``ui/initialize``.
    """
    await websocket.accept()
    connection = BridgeConnection(websocket.send_json)
    try:
        while True:
            await bridge.handle_message(connection, await websocket.receive_text())
    except WebSocketDisconnect:
        logger.debug("Bridge channel closed")
    finally:
        await bridge.disconnect(connection)
