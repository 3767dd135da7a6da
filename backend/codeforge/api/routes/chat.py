"""
Room chat WebSocket endpoint.

Frames are JSON objects: {"event": "send_message", "data": {...}}.
"""

import json
import logging

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect

from codeforge.api.deps import get_chat_gateway
from codeforge.services.chat_gateway import ChatGateway

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


@router.websocket("/ws/rooms")
async def room_chat(
    websocket: WebSocket,
    user_id: str = Query(..., alias="userId", min_length=1),
    gateway: ChatGateway = Depends(get_chat_gateway),
):
    await websocket.accept()
    connection_id = gateway.connect(user_id, websocket.send_json)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                frame = json.loads(raw)
            except ValueError:
                frame = None

            if not isinstance(frame, dict):
                await websocket.send_json({"event": "error", "error": "Invalid frame"})
                continue

            await gateway.handle(connection_id, frame.get("event"), frame.get("data"))
    except WebSocketDisconnect:
        logger.debug("Chat client %s disconnected", user_id)
    finally:
        gateway.disconnect(connection_id)
