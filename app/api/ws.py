"""
WebSocket manager delivering outbox messages to connected users
"""

import json
import logging
from typing import Dict, List
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.schemas.message import MessageBatch
from app.utils.time import utcnow

logger = logging.getLogger(__name__)

class WebSocketManager:
    """Manages per-user WebSocket connections"""

    def __init__(self):
        # user_id -> list of websockets
        self.active_connections: Dict[int, List[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, user_id: int):
        """Accept WebSocket connection and register it for the user"""
        await websocket.accept()
        self.active_connections.setdefault(user_id, []).append(websocket)
        logger.info(f"WebSocket connected for user {user_id}. Total connections: {len(self.active_connections[user_id])}")

    def disconnect(self, websocket: WebSocket, user_id: int):
        """Remove WebSocket connection of a user"""
        connections = self.active_connections.get(user_id)
        if not connections or websocket not in connections:
            return
        connections.remove(websocket)
        logger.info(f"WebSocket disconnected for user {user_id}. Remaining connections: {len(connections)}")
        if not connections:
            del self.active_connections[user_id]

    async def send_personal_message(self, message: dict, websocket: WebSocket):
        """Send message to specific WebSocket"""
        try:
            await websocket.send_text(json.dumps(message))
        except Exception as e:
            logger.error(f"Error sending personal message: {e}")

    async def send_to_user(self, user_id: int, message: dict) -> bool:
        """Send to every connection of a user; True if at least one got it"""
        connections = list(self.active_connections.get(user_id, []))
        if not connections:
            return False

        delivered = False
        disconnected = []
        for websocket in connections:
            try:
                await websocket.send_text(json.dumps(message))
                delivered = True
            except Exception as e:
                logger.error(f"Error delivering to user {user_id}: {e}")
                disconnected.append(websocket)

        for websocket in disconnected:
            self.disconnect(websocket, user_id)
        return delivered

    async def deliver(self, user_id: int, batch: MessageBatch) -> bool:
        """Outbox delivery hook used by the dispatcher"""
        return await self.send_to_user(user_id, {
            "type": batch.message_type.name.lower(),
            "event_id": batch.event_id,
            "sender": batch.sender,
            "text": batch.text,
            "timestamp": utcnow().isoformat(),
        })

    def get_connection_count(self, user_id: int) -> int:
        return len(self.active_connections.get(user_id, []))

# Global WebSocket manager instance
websocket_manager = WebSocketManager()

# Router for WebSocket endpoints
router = APIRouter()

@router.websocket("/users/{user_id}")
async def websocket_endpoint(websocket: WebSocket, user_id: int):
    """WebSocket endpoint receiving notifications for a user"""
    await websocket_manager.connect(websocket, user_id)

    try:
        await websocket_manager.send_personal_message({
            "type": "connection",
            "user_id": user_id,
            "connection_count": websocket_manager.get_connection_count(user_id)
        }, websocket)

        while True:
            data = await websocket.receive_text()
            try:
                client_message = json.loads(data)
            except json.JSONDecodeError:
                logger.warning(f"Invalid JSON received from WebSocket: {data}")
                continue

            # Handle heartbeat/ping
            if client_message.get("type") == "ping":
                await websocket_manager.send_personal_message({
                    "type": "pong",
                    "timestamp": client_message.get("timestamp")
                }, websocket)

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
    finally:
        websocket_manager.disconnect(websocket, user_id)
