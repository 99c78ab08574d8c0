from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field
from enum import Enum

from .content import CamelModel


class TurnStatus(str, Enum):
    """Turn state machine positions"""
    IDLE = "idle"
    GUARDRAIL_CHECK = "guardrail_check"
    BLOCKED = "blocked"
    TOOL_RESOLUTION = "tool_resolution"
    MODEL_INVOKE = "model_invoke"
    TERMINAL_RESPONSE = "terminal_response"
    PENDING_CLIENT_TOOL = "pending_client_tool"
    FAILED = "failed"


class ContextSnapshot(CamelModel):
    """Client-reported UI state for the current turn"""
    page: Optional[str] = None
    component: Optional[str] = None
    post_id: Optional[str] = None
    note_id: Optional[str] = None
    page_state: Dict[str, Any] = Field(default_factory=dict)

    @property
    def open_post_id(self) -> Optional[str]:
        """Post id from the snapshot, falling back to page state"""
        return self.post_id or self.page_state.get("postId") or self.page_state.get("post_id")

    @property
    def open_note_id(self) -> Optional[str]:
        """Note id from the snapshot, falling back to page state"""
        return self.note_id or self.page_state.get("noteId") or self.page_state.get("note_id")


class ToolContext(BaseModel):
    """Caller identity every tool runs under"""
    user_id: str
    calendar_id: str


class ToolCallRecord(BaseModel):
    """A tool call emitted by the model"""
    id: str
    name: str
    args: Dict[str, Any] = Field(default_factory=dict)


class GuardrailDecision(BaseModel):
    """Whether the latest user message is in scope for the product"""
    is_allowed: bool = Field(description="True when the message is about social media content, scheduling, brand voice or this app.")
    refusal_message: Optional[str] = Field(None, description="A short, polite refusal shown to the user when the message is not allowed.")


class SearchQueries(BaseModel):
    """Search strings formulated from the conversation"""
    queries: List[str] = Field(default_factory=list, description="Short, general search strings. Empty when no search is needed.")


class ChatTurnResult(BaseModel):
    """Outcome of a single chat turn"""
    response: str = ""
    tool_calls: Optional[List[ToolCallRecord]] = None
    thread_id: str
    status: TurnStatus = TurnStatus.TERMINAL_RESPONSE
