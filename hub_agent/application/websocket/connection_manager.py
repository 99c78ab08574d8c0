from typing import Dict
from fastapi import WebSocket
import asyncio
from datetime import datetime
import structlog

from .schema.events import StreamEvent

logger = structlog.get_logger(__name__)


class ConnectionManager:
    """Manages stream WebSocket connections"""

    def __init__(self):
        self.active_connections: Dict[str, WebSocket] = {}
        self.connection_metadata: Dict[str, Dict] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, connection_id: str, thread_id: str):
        """Accept a new WebSocket connection"""
        await websocket.accept()

        async with self._lock:
            self.active_connections[connection_id] = websocket
            self.connection_metadata[connection_id] = {
                "thread_id": thread_id,
                "connected_at": datetime.utcnow(),
                "last_activity": datetime.utcnow()
            }

        await self.send_event(connection_id, StreamEvent.connected(thread_id))

        logger.info("WebSocket connected", connection_id=connection_id, thread_id=thread_id)

    async def disconnect(self, connection_id: str):
        """Forget a connection; the socket is closed by its endpoint"""
        async with self._lock:
            self.active_connections.pop(connection_id, None)
            metadata = self.connection_metadata.pop(connection_id, None)

        logger.info(
            "WebSocket disconnected",
            connection_id=connection_id,
            thread_id=metadata.get("thread_id") if metadata else None
        )

    async def send_event(self, connection_id: str, event: StreamEvent) -> bool:
        """Send an event to a specific connection"""
        websocket = self.active_connections.get(connection_id)
        if websocket is None:
            logger.warning("Attempted to send to disconnected connection", connection_id=connection_id)
            return False

        try:
            await websocket.send_json(event.to_wire())

            if connection_id in self.connection_metadata:
                self.connection_metadata[connection_id]["last_activity"] = datetime.utcnow()

            return True

        except Exception as e:
            logger.error("Failed to send event", connection_id=connection_id, error=str(e))
            await self.disconnect(connection_id)
            return False
