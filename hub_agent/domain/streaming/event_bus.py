"""
In-process publish/subscribe channel for stream events, keyed by thread id.

Publishing never blocks: every subscriber owns an unbounded queue and events
for a thread with no subscribers are dropped.
"""

from typing import AsyncIterator, Dict, Optional, Set
import asyncio
import structlog

from hub_agent.application.websocket.schema.events import StreamEvent

logger = structlog.get_logger(__name__)

_CLOSED = object()


class StreamSubscription:
    """One subscriber's view of a thread's events"""

    def __init__(self, bus: "StreamEventBus", thread_id: str):
        self.bus = bus
        self.thread_id = thread_id
        self.queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def deliver(self, event: StreamEvent) -> None:
        if not self.closed:
            self.queue.put_nowait(event)

    async def get(self, timeout: Optional[float] = None) -> Optional[StreamEvent]:
        """Next event, or None once closed"""

        item = await asyncio.wait_for(self.queue.get(), timeout) if timeout else await self.queue.get()
        return None if item is _CLOSED else item

    def close(self) -> None:
        """Stop receiving events; idempotent"""

        if self.closed:
            return
        self.closed = True
        self.queue.put_nowait(_CLOSED)
        self.bus.unsubscribe(self)

    def __aiter__(self) -> AsyncIterator[StreamEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[StreamEvent]:
        while True:
            event = await self.get()
            if event is None:
                return
            yield event


class StreamEventBus:
    """Per-thread fan-out of stream events"""

    def __init__(self):
        self.subscribers: Dict[str, Set[StreamSubscription]] = {}

    def subscribe(self, thread_id: str) -> StreamSubscription:
        subscription = StreamSubscription(self, thread_id)
        self.subscribers.setdefault(thread_id, set()).add(subscription)
        logger.debug("Stream subscribed", thread_id=thread_id, subscribers=len(self.subscribers[thread_id]))
        return subscription

    def unsubscribe(self, subscription: StreamSubscription) -> None:
        thread_subscribers = self.subscribers.get(subscription.thread_id)
        if not thread_subscribers:
            return

        thread_subscribers.discard(subscription)
        if not thread_subscribers:
            del self.subscribers[subscription.thread_id]
        logger.debug("Stream unsubscribed", thread_id=subscription.thread_id)

    def publish(self, thread_id: str, event: StreamEvent) -> int:
        """Deliver to every current subscriber; returns how many received it"""

        subscribers = list(self.subscribers.get(thread_id, ()))
        for subscription in subscribers:
            subscription.deliver(event)
        return len(subscribers)

    def subscriber_count(self, thread_id: str) -> int:
        return len(self.subscribers.get(thread_id, ()))
