import logging
from typing import Dict, List

from fastapi import WebSocket, WebSocketDisconnect


logger = logging.getLogger(__name__)


class ConnectionManager:
    """Live websockets per participant; one participant may have several tabs open."""

    def __init__(self) -> None:
        self.active_connections: Dict[str, List[WebSocket]] = {}

    async def connect(self, participant_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        self.active_connections.setdefault(participant_id, []).append(websocket)

    def disconnect(self, participant_id: str, websocket: WebSocket) -> None:
        connections = self.active_connections.get(participant_id)
        if connections is None:
            return
        if websocket in connections:
            connections.remove(websocket)
        if not connections:
            del self.active_connections[participant_id]

    async def send_personal_message(self, participant_id: str, message: str) -> int:
        """Send to every connection of ``participant_id``; returns how many got it.

        A connection that fails is dropped and the rest still receive the message.
        """
        delivered = 0
        for conn in list(self.active_connections.get(participant_id, [])):
            try:
                await conn.send_text(message)
            except (RuntimeError, WebSocketDisconnect) as exc:
                logger.info("Dropping stale connection of %s: %s", participant_id, exc)
                self.disconnect(participant_id, conn)
                continue
            delivered += 1
        return delivered


manager = ConnectionManager()
