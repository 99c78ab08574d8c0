from typing import List, Optional
from pydantic import Field

from hub_agent.domain.models.agent_state import ContextSnapshot, ToolCallRecord
from hub_agent.domain.models.content import CamelModel, CaptionGenerationRequest, ExtractedRule


class CalendarScopedRequest(CamelModel):
    """Requests that act on one calendar on behalf of one user"""
    calendar_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)


class ChatRequest(CalendarScopedRequest):
    input: str
    thread_id: Optional[str] = None
    client_context: Optional[ContextSnapshot] = None


class ChatResponse(CamelModel):
    response: str
    tool_calls: Optional[List[ToolCallRecord]] = None
    thread_id: str


class GradeCaptionRequest(CalendarScopedRequest):
    caption: str


class GenerateCaptionRequest(CalendarScopedRequest):
    request: CaptionGenerationRequest


class ApplySuggestionsRequest(CalendarScopedRequest):
    caption: str
    suggestions: List[str]


class ApplySuggestionsResponse(CamelModel):
    new_caption: str


class ExtractBrandRulesRequest(CamelModel):
    text: str = Field(min_length=1)


class ExtractBrandRulesResponse(CamelModel):
    rules: List[ExtractedRule]


class ErrorResponse(CamelModel):
    error: str
    details: Optional[str] = None
