from fastapi import APIRouter, WebSocket, WebSocketDisconnect
import asyncio
import uuid
import structlog

from hub_agent.domain.streaming.event_bus import StreamSubscription
from .connection_manager import ConnectionManager

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["stream"])

# Global connection manager
connection_manager = ConnectionManager()


async def forward_events(connection_id: str, subscription: StreamSubscription):
    """Push a thread's events to one connection until either side goes away"""

    async for event in subscription:
        if not await connection_manager.send_event(connection_id, event):
            break


@router.websocket("/ws/stream/{thread_id}")
async def stream_websocket(websocket: WebSocket, thread_id: str):
    """Token and status stream for a conversation thread"""

    container = websocket.app.state.container
    connection_id = str(uuid.uuid4())

    # Subscribe before accepting so nothing published after "connected" is missed
    subscription = container.event_bus.subscribe(thread_id)
    forwarder = None

    try:
        await connection_manager.connect(websocket, connection_id, thread_id)
        forwarder = asyncio.create_task(forward_events(connection_id, subscription))

        # The client never sends anything meaningful; this only detects disconnects
        while True:
            await websocket.receive_text()

    except WebSocketDisconnect:
        logger.info("Client disconnected", connection_id=connection_id, thread_id=thread_id)
    except Exception as e:
        logger.error("WebSocket error", error=str(e), connection_id=connection_id, thread_id=thread_id)
    finally:
        subscription.close()
        if forwarder is not None:
            forwarder.cancel()
        await connection_manager.disconnect(connection_id)
