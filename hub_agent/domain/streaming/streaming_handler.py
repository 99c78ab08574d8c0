from typing import Any, Dict, List, Optional, Set
from uuid import UUID
from langchain_core.callbacks import AsyncCallbackHandler
from langchain_core.outputs import LLMResult
import structlog

from hub_agent.application.websocket.schema.events import StreamEvent
from .event_bus import StreamEventBus

logger = structlog.get_logger(__name__)

# Runs carrying this tag stream tokens to the client
STREAM_TAG = "hub_agent:stream"

TOOL_DISPLAY_NAMES: Dict[str, str] = {
    "get_posts": "Fetching posts",
    "get_current_post": "Loading post details",
    "generate_caption": "Generating caption",
    "grade_caption": "Evaluating caption",
    "get_brand_rules": "Loading brand rules",
    "navigate_to_calendar": "Navigating to calendar",
    "apply_caption_to_open_post": "Applying caption",
    "create_post": "Creating post",
    "open_post": "Opening post",
}


def tool_display_name(tool_name: str) -> str:
    return TOOL_DISPLAY_NAMES.get(tool_name) or tool_name.replace("_", " ").title()


class StreamingCallbackHandler(AsyncCallbackHandler):
    """Bridges LangChain run callbacks to stream events for one thread"""

    def __init__(self, bus: StreamEventBus, thread_id: str, stream_tag: str = STREAM_TAG):
        self.bus = bus
        self.thread_id = thread_id
        self.stream_tag = stream_tag
        self.streaming_runs: Set[UUID] = set()
        self.tool_runs: Dict[UUID, str] = {}

    def _emit(self, event: StreamEvent) -> None:
        self.bus.publish(self.thread_id, event)

    async def on_chat_model_start(
        self,
        serialized: Dict[str, Any],
        messages: List[List[Any]],
        *,
        run_id: UUID,
        parent_run_id: Optional[UUID] = None,
        tags: Optional[List[str]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        **kwargs: Any
    ) -> None:
        if self.stream_tag not in (tags or []):
            return
        self.streaming_runs.add(run_id)
        self._emit(StreamEvent.status_start("Thinking..."))

    async def on_llm_new_token(
        self,
        token: str,
        *,
        run_id: UUID,
        parent_run_id: Optional[UUID] = None,
        tags: Optional[List[str]] = None,
        **kwargs: Any
    ) -> None:
        if run_id in self.streaming_runs and token:
            self._emit(StreamEvent.token(token))

    async def on_llm_end(
        self,
        response: LLMResult,
        *,
        run_id: UUID,
        parent_run_id: Optional[UUID] = None,
        tags: Optional[List[str]] = None,
        **kwargs: Any
    ) -> None:
        if run_id in self.streaming_runs:
            self.streaming_runs.discard(run_id)
            self._emit(StreamEvent.status_end())

    async def on_llm_error(
        self,
        error: BaseException,
        *,
        run_id: UUID,
        parent_run_id: Optional[UUID] = None,
        tags: Optional[List[str]] = None,
        **kwargs: Any
    ) -> None:
        if run_id in self.streaming_runs:
            self.streaming_runs.discard(run_id)
            self._emit(StreamEvent.status_end())

    async def on_tool_start(
        self,
        serialized: Dict[str, Any],
        input_str: str,
        *,
        run_id: UUID,
        parent_run_id: Optional[UUID] = None,
        tags: Optional[List[str]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        **kwargs: Any
    ) -> None:
        tool_name = (serialized or {}).get("name") or kwargs.get("name") or "tool"
        self.tool_runs[run_id] = tool_name
        self._emit(StreamEvent.status_start(tool_display_name(tool_name), tool_name=tool_name))

    async def on_tool_end(
        self,
        output: Any,
        *,
        run_id: UUID,
        parent_run_id: Optional[UUID] = None,
        tags: Optional[List[str]] = None,
        **kwargs: Any
    ) -> None:
        tool_name = self.tool_runs.pop(run_id, None)
        self._emit(StreamEvent.status_end(tool_name=tool_name))

    async def on_tool_error(
        self,
        error: BaseException,
        *,
        run_id: UUID,
        parent_run_id: Optional[UUID] = None,
        tags: Optional[List[str]] = None,
        **kwargs: Any
    ) -> None:
        tool_name = self.tool_runs.pop(run_id, None)
        logger.warning("Tool run failed", tool_name=tool_name, error=str(error))
        self._emit(StreamEvent.status_end(tool_name=tool_name))

    def publish_done(self) -> None:
        self._emit(StreamEvent.done())

    def publish_error(self, message: str) -> None:
        self._emit(StreamEvent.error(message))
