"""
WebSocket manager for real-time match and message notifications
"""

import json
import logging
from typing import Dict, List
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Depends
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from hooked.core.db import get_db
from hooked.schemas.notification import NotificationTick
from hooked.services.event_service import EventService
from hooked.services.notification_service import NotificationPoller
from hooked.services.repositories import get_record_store
from hooked.services.session_context import SessionContext

logger = logging.getLogger(__name__)

def room_key(event_id: str, session_id: str) -> str:
    return f"{event_id}:{session_id}"

class WebSocketManager:
    """Manages WebSocket connections, one room per attendee session"""

    def __init__(self):
        # "event_id:session_id" -> list of websockets (one per open tab)
        self.active_connections: Dict[str, List[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, event_id: str, session_id: str):
        """Accept WebSocket connection and add to the session's room"""
        await websocket.accept()
        key = room_key(event_id, session_id)
        self.active_connections.setdefault(key, []).append(websocket)
        logger.info(f"WebSocket connected for {key}. Total connections: {len(self.active_connections[key])}")

    def disconnect(self, websocket: WebSocket, event_id: str, session_id: str):
        """Remove WebSocket connection from the session's room"""
        key = room_key(event_id, session_id)
        connections = self.active_connections.get(key)
        if not connections or websocket not in connections:
            return
        connections.remove(websocket)
        logger.info(f"WebSocket disconnected for {key}. Remaining connections: {len(connections)}")

        # Clean up empty rooms
        if not connections:
            del self.active_connections[key]

    async def send_personal_message(self, message: dict, websocket: WebSocket):
        """Send message to specific WebSocket"""
        try:
            await websocket.send_text(json.dumps(jsonable_encoder(message)))
        except (RuntimeError, WebSocketDisconnect) as e:
            logger.error(f"Error sending personal message: {e}")

    async def send_to_session(self, event_id: str, session_id: str, message: dict) -> int:
        """Send a message to every connection of one session; returns how many got it"""
        key = room_key(event_id, session_id)
        connections = list(self.active_connections.get(key, []))
        if not connections:
            logger.debug(f"No active connections for {key}")
            return 0

        payload = json.dumps(jsonable_encoder(message))
        delivered = 0
        disconnected = []
        for websocket in connections:
            try:
                await websocket.send_text(payload)
                delivered += 1
            except (RuntimeError, WebSocketDisconnect) as e:
                logger.error(f"Error pushing to websocket for {key}: {e}")
                disconnected.append(websocket)

        # Clean up disconnected websockets
        for websocket in disconnected:
            self.disconnect(websocket, event_id, session_id)
        return delivered

    def get_connection_count(self, event_id: str, session_id: str) -> int:
        return len(self.active_connections.get(room_key(event_id, session_id), []))

    def get_all_connection_counts(self) -> Dict[str, int]:
        """Get connection counts for all sessions"""
        return {
            key: len(connections)
            for key, connections in self.active_connections.items()
        }

# Global WebSocket manager instance
websocket_manager = WebSocketManager()

def tick_message(tick: NotificationTick) -> dict:
    return {"type": "notification", **tick.model_dump()}

# Router for WebSocket endpoints
router = APIRouter()

@router.websocket("/events/{event_id}/sessions/{session_id}")
async def websocket_endpoint(
    websocket: WebSocket,
    event_id: str,
    session_id: str,
    db: Session = Depends(get_db)
):
    """Push match and message toasts to one attendee while the socket is open.

    Clients may send {"type": "visibility", "visible": bool} to pause polling
    while hidden, and {"type": "ping"} as a heartbeat.
    """
    store = get_record_store(db)
    ctx = SessionContext.from_ids(event_id, session_id)

    if not EventService(store).check_active(ctx):
        await websocket.close(code=4004, reason="Event not active")
        return

    await websocket_manager.connect(websocket, event_id, session_id)

    # Each connection has its own poller, so it only feeds its own socket
    async def push(tick: NotificationTick):
        await websocket_manager.send_personal_message(tick_message(tick), websocket)

    poller = NotificationPoller(store, ctx)
    poller.start(on_tick=push)

    try:
        await websocket_manager.send_personal_message({
            "type": "connection",
            "event_id": event_id,
            "session_id": session_id,
            "connection_count": websocket_manager.get_connection_count(event_id, session_id)
        }, websocket)

        while True:
            data = await websocket.receive_text()
            try:
                client_message = json.loads(data)
            except json.JSONDecodeError:
                logger.warning(f"Invalid JSON received from WebSocket: {data}")
                continue

            message_type = client_message.get("type")
            if message_type == "ping":
                await websocket_manager.send_personal_message({
                    "type": "pong",
                    "timestamp": client_message.get("timestamp")
                }, websocket)
            elif message_type == "visibility":
                poller.set_visible(bool(client_message.get("visible", True)))

    except WebSocketDisconnect:
        pass
    finally:
        poller.stop()
        websocket_manager.disconnect(websocket, event_id, session_id)

@router.get("/stats")
async def websocket_stats():
    """Get WebSocket connection statistics (for debugging)"""
    counts = websocket_manager.get_all_connection_counts()
    return {
        "total_sessions_with_connections": len(counts),
        "connection_counts": counts,
        "total_connections": sum(counts.values())
    }
