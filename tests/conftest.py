"""Pytest configuration and shared fixtures."""
from typing import Any, Dict, List, Optional
from datetime import date, datetime
import asyncio

import pytest
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage
from langchain_core.outputs import ChatGeneration, ChatResult
from langchain_core.runnables import RunnableLambda
from pydantic import Field

from hub_agent.domain.context.context_manager import ContextManager
from hub_agent.domain.context.memory.conversation_memory import ConversationMemory
from hub_agent.domain.generation.caption_generator import CaptionGenerator
from hub_agent.domain.generation.grading import BrandGrader
from hub_agent.domain.guardrail.guardrail_validator import GuardrailValidator
from hub_agent.domain.models.agent_state import GuardrailDecision, ToolContext
from hub_agent.domain.models.content import BrandRule, BrandScore, Note, Post
from hub_agent.domain.orchestration.core.main_agent import AgentOrchestrator
from hub_agent.domain.streaming.event_bus import StreamEventBus
from hub_agent.domain.tool.calendar_tools import build_tool_registry
from hub_agent.infrastructure.config.settings import Settings
from hub_agent.infrastructure.repository.calendar_repository import (
    InMemoryCalendarRepository, InMemoryCalendarStore
)
from hub_agent.infrastructure.security.calendar_access import CalendarAccessPolicy

USER_ID = "user-1"
CALENDAR_ID = "cal-1"
OTHER_CALENDAR_ID = "cal-2"
TODAY = date(2025, 11, 25)


class ScriptedChatModel(BaseChatModel):
    """Chat model that replays queued responses and records every prompt"""

    responses: List[BaseMessage] = Field(default_factory=list)
    structured: Dict[str, Any] = Field(default_factory=dict)
    seen: List[List[BaseMessage]] = Field(default_factory=list)
    delay: float = 0.0
    error: Optional[str] = None

    @property
    def _llm_type(self) -> str:
        return "scripted"

    def _next(self, messages: List[BaseMessage]) -> ChatResult:
        self.seen.append(list(messages))
        if self.error:
            raise RuntimeError(self.error)
        if not self.responses:
            raise RuntimeError("No scripted response left")
        return ChatResult(generations=[ChatGeneration(message=self.responses.pop(0))])

    def _generate(self, messages, stop=None, run_manager=None, **kwargs) -> ChatResult:
        return self._next(messages)

    async def _agenerate(self, messages, stop=None, run_manager=None, **kwargs) -> ChatResult:
        if self.delay:
            await asyncio.sleep(self.delay)
        return self._next(messages)

    def bind_tools(self, tools, **kwargs):
        return self

    def with_structured_output(self, schema, **kwargs):
        def respond(inputs):
            value = self.structured[schema.__name__]
            if isinstance(value, list):
                value = value.pop(0)
            if callable(value):
                value = value(inputs)
            return value

        return RunnableLambda(respond)


def ai(content: str = "", tool_calls: Optional[List[Dict[str, Any]]] = None) -> AIMessage:
    """Assistant message with optional tool calls given as (name, args, id) dicts"""
    return AIMessage(content=content, tool_calls=tool_calls or [])


def call(name: str, args: Optional[Dict[str, Any]] = None, call_id: Optional[str] = None) -> Dict[str, Any]:
    return {"name": name, "args": args or {}, "id": call_id or f"call_{name}", "type": "tool_call"}


def score(overall: float, suggestions: Optional[List[str]] = None) -> BrandScore:
    return BrandScore(overall=overall, rules=[], suggestions=suggestions or [])


def allow_all() -> GuardrailValidator:
    return GuardrailValidator(RunnableLambda(lambda _: GuardrailDecision(is_allowed=True)))


@pytest.fixture
def access() -> CalendarAccessPolicy:
    return CalendarAccessPolicy([(USER_ID, CALENDAR_ID)])


@pytest.fixture
def store() -> InMemoryCalendarStore:
    store = InMemoryCalendarStore()
    store.brand_rules = {
        "rule-1": BrandRule(id="rule-1", calendar_id=CALENDAR_ID, title="Friendly tone", description="Sound warm and upbeat."),
        "rule-2": BrandRule(id="rule-2", calendar_id=CALENDAR_ID, title="Hashtags", description="End with two hashtags."),
        "rule-3": BrandRule(id="rule-3", calendar_id=CALENDAR_ID, title="Old rule", description="No longer used.", enabled=False),
    }
    store.posts = {
        "post-1": Post(id="post-1", calendar_id=CALENDAR_ID, date=datetime(2025, 11, 20, 9, 0), caption="Old caption", images=["a.png"]),
        "post-2": Post(id="post-2", calendar_id=CALENDAR_ID, date=datetime(2025, 11, 18, 9, 0), caption=""),
        "post-x": Post(id="post-x", calendar_id=OTHER_CALENDAR_ID, date=datetime(2025, 11, 21, 9, 0), caption="Not yours"),
    }
    store.notes = {
        "note-1": Note(
            id="note-1",
            calendar_id=CALENDAR_ID,
            title="Summer sale",
            content=[{"type": "paragraph", "children": [{"text": "Everything 30% off in July."}]}],
        ),
    }
    return store


@pytest.fixture
def repository(store, access) -> InMemoryCalendarRepository:
    return InMemoryCalendarRepository(store, access, USER_ID, CALENDAR_ID)


@pytest.fixture
def tool_context() -> ToolContext:
    return ToolContext(user_id=USER_ID, calendar_id=CALENDAR_ID)


@pytest.fixture
def settings() -> Settings:
    return Settings(agent_timeout_seconds=5, recursion_limit=25)


@pytest.fixture
def chat_model() -> ScriptedChatModel:
    return ScriptedChatModel()


@pytest.fixture
def grader() -> BrandGrader:
    return BrandGrader(RunnableLambda(lambda _: score(92, ["Add an emoji."])))


@pytest.fixture
def caption_generator(grader) -> CaptionGenerator:
    return CaptionGenerator(
        generation_chain=RunnableLambda(lambda inputs: f"Caption about {inputs['topic']} #sale #summer"),
        refinement_chain=RunnableLambda(lambda inputs: f"Refined {inputs['failed_caption']}"),
        grader=grader,
        suggestions_chain=RunnableLambda(lambda inputs: "Rewritten caption"),
        extraction_chain=RunnableLambda(lambda inputs: {"rules": [{"title": "Be brief", "description": "Keep it short."}]}),
    )


@pytest.fixture
def event_bus() -> StreamEventBus:
    return StreamEventBus()


@pytest.fixture
def make_orchestrator(chat_model, caption_generator, grader, event_bus, settings, store, access):
    """Factory for orchestrators wired to scripted collaborators"""

    def factory(
        guardrail: Optional[GuardrailValidator] = None,
        context_manager: Optional[ContextManager] = None,
        memory: Optional[ConversationMemory] = None,
        settings_override: Optional[Settings] = None,
        model: Optional[BaseChatModel] = None
    ) -> AgentOrchestrator:
        return AgentOrchestrator(
            chat_model=model or chat_model,
            tool_registry=build_tool_registry(),
            context_manager=context_manager or ContextManager(today=lambda: TODAY),
            guardrail=guardrail or allow_all(),
            memory=memory or ConversationMemory(),
            caption_generator=caption_generator,
            grader=grader,
            event_bus=event_bus,
            settings=settings_override or settings,
            repository_factory=lambda user_id, calendar_id: InMemoryCalendarRepository(store, access, user_id, calendar_id),
        )

    return factory


def collect(subscription) -> List[Any]:
    """Drain events already queued on a subscription"""

    events = []
    while not subscription.queue.empty():
        item = subscription.queue.get_nowait()
        if hasattr(item, "type"):
            events.append(item)
    return events


