"""
Realtime push channel.

Clients connect to /ws/rides and receive every ride event. Passing
?rideId=<id> narrows the stream to one ride. Text frames "ping" (or a JSON
{"type": "ping"}) are answered with a pong; anything else is ignored.
"""

import json
import logging
from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from backend.config import config
from backend.models import ALL_RIDES_TOPIC
from backend.websocket import (
    build_connected_message,
    build_pong_message,
    manager,
    ride_topic,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


def _is_ping(text: str) -> bool:
    text = text.strip()
    if text.lower() == "ping":
        return True
    try:
        message = json.loads(text)
    except ValueError:
        return False
    return isinstance(message, dict) and message.get("type") == "ping"


@router.websocket("/ws/rides")
async def rides_websocket(websocket: WebSocket, ride_id: Optional[str] = Query(default=None, alias="rideId")):
    topic = ride_topic(ride_id) if ride_id else ALL_RIDES_TOPIC
    if not await manager.connect(websocket, topic):
        return

    await manager.send_to_client(websocket, build_connected_message(topic, config.WS_HEARTBEAT_INTERVAL))
    try:
        while True:
            text = await websocket.receive_text()
            if _is_ping(text):
                await manager.send_to_client(websocket, build_pong_message())
    except WebSocketDisconnect:
        logger.debug(f"WebSocket client left ({topic})")
    finally:
        await manager.disconnect(websocket)
