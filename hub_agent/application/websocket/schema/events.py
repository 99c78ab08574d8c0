from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum
import time


def epoch_ms() -> int:
    return int(time.time() * 1000)


class StreamEventType(str, Enum):
    """Stream event types"""
    TOKEN = "token"
    STATUS_START = "status_start"
    STATUS_END = "status_end"
    CONNECTED = "connected"
    ERROR = "error"
    DONE = "done"


class StreamEvent(BaseModel):
    """Event pushed to stream subscribers of a thread"""
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    type: StreamEventType
    content: Optional[str] = None
    tool_name: Optional[str] = Field(None, alias="toolName")
    timestamp: int = Field(default_factory=epoch_ms)

    def to_wire(self) -> Dict[str, Any]:
        """JSON payload sent over the WebSocket"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def token(cls, content: str) -> "StreamEvent":
        return cls(type=StreamEventType.TOKEN, content=content)

    @classmethod
    def status_start(cls, content: str, tool_name: Optional[str] = None) -> "StreamEvent":
        return cls(type=StreamEventType.STATUS_START, content=content, tool_name=tool_name)

    @classmethod
    def status_end(cls, tool_name: Optional[str] = None) -> "StreamEvent":
        return cls(type=StreamEventType.STATUS_END, tool_name=tool_name)

    @classmethod
    def connected(cls, thread_id: str) -> "StreamEvent":
        return cls(type=StreamEventType.CONNECTED, content=thread_id)

    @classmethod
    def error(cls, message: str) -> "StreamEvent":
        return cls(type=StreamEventType.ERROR, content=message)

    @classmethod
    def done(cls) -> "StreamEvent":
        return cls(type=StreamEventType.DONE)
