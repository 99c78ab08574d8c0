from typing import Dict, List, Sequence
from langchain_core.messages import BaseMessage, HumanMessage
import asyncio
from collections import defaultdict
import structlog

logger = structlog.get_logger(__name__)


class ConversationMemory:
    """Thread-keyed message log for active conversations"""

    def __init__(self, max_messages: int = 100):
        self.max_messages = max_messages
        self.threads: Dict[str, List[BaseMessage]] = defaultdict(list)
        self._lock = asyncio.Lock()

    async def load(self, thread_id: str) -> List[BaseMessage]:
        """Get a copy of the thread's messages, oldest first"""

        async with self._lock:
            return [message.model_copy() for message in self.threads.get(thread_id, [])]

    async def append(self, thread_id: str, messages: Sequence[BaseMessage]) -> int:
        """Append the messages of a completed turn; returns the thread length"""

        async with self._lock:
            thread = self.threads[thread_id]
            thread.extend(message.model_copy() for message in messages)

            if len(thread) > self.max_messages:
                self.threads[thread_id] = self._trim(thread)

            return len(self.threads[thread_id])

    def _trim(self, thread: List[BaseMessage]) -> List[BaseMessage]:
        """Drop the oldest messages, restarting at a user message so tool results keep their calls"""

        start = len(thread) - self.max_messages
        for index in range(start, len(thread)):
            if isinstance(thread[index], HumanMessage):
                logger.debug("Trimmed conversation", dropped=index)
                return thread[index:]

        # No safe boundary inside the window; keep everything
        return thread

    async def has_thread(self, thread_id: str) -> bool:
        async with self._lock:
            return thread_id in self.threads

    async def clear_thread(self, thread_id: str):
        """Clear all messages for a thread"""

        async with self._lock:
            self.threads.pop(thread_id, None)
