"""
Wiring of the agent runtime.

``build_container`` assembles every collaborator once per process. Models and
embeddings default to OpenAI but can be injected, which is how tests run the
whole stack against scripted models.
"""

from typing import Callable, Optional
from datetime import date
from langchain_core.embeddings import Embeddings
from langchain_core.language_models import BaseChatModel
import structlog

from hub_agent.domain.context.context_manager import ContextManager, utc_today
from hub_agent.domain.context.context_retriever import ContextRetriever
from hub_agent.domain.context.formatting import rich_text_to_plain
from hub_agent.domain.context.memory.conversation_memory import ConversationMemory
from hub_agent.domain.context.memory.vector_memory_store import DocType, DocumentIndex
from hub_agent.domain.generation.caption_generator import CaptionGenerator
from hub_agent.domain.generation.grading import BrandGrader
from hub_agent.domain.guardrail.guardrail_validator import GuardrailValidator
from hub_agent.domain.models.content import Note
from hub_agent.domain.orchestration.core.main_agent import AgentOrchestrator
from hub_agent.domain.streaming.event_bus import StreamEventBus
from hub_agent.domain.tool.calendar_tools import build_tool_registry
from hub_agent.infrastructure.config.settings import Settings, get_settings
from hub_agent.infrastructure.llm.models import build_chat_model, build_creative_model, build_embeddings
from hub_agent.infrastructure.observability.langfuse_tracing import LangfuseTracing
from hub_agent.infrastructure.repository.calendar_repository import (
    InMemoryCalendarRepository, InMemoryCalendarStore
)
from hub_agent.infrastructure.security.calendar_access import CalendarAccessPolicy

logger = structlog.get_logger(__name__)


class AgentContainer:
    """Process-wide collaborators shared by the HTTP and WebSocket surfaces"""

    def __init__(
        self,
        settings: Settings,
        store: InMemoryCalendarStore,
        access: CalendarAccessPolicy,
        index: DocumentIndex,
        event_bus: StreamEventBus,
        grader: BrandGrader,
        caption_generator: CaptionGenerator,
        orchestrator: AgentOrchestrator,
        tracing: LangfuseTracing
    ):
        self.settings = settings
        self.store = store
        self.access = access
        self.index = index
        self.event_bus = event_bus
        self.grader = grader
        self.caption_generator = caption_generator
        self.orchestrator = orchestrator
        self.tracing = tracing

    def repository_for(self, user_id: str, calendar_id: str) -> InMemoryCalendarRepository:
        """Repository scoped to one caller and calendar"""
        return InMemoryCalendarRepository(self.store, self.access, user_id, calendar_id)

    async def index_note(self, note: Note) -> int:
        """Make a note searchable by the relevance search"""

        text = "\n".join(part for part in [note.title, rich_text_to_plain(note.content)] if part)
        return await self.index.upsert_document(DocType.NOTE.value, note.id, note.calendar_id, text)


def build_container(
    settings: Optional[Settings] = None,
    chat_model: Optional[BaseChatModel] = None,
    creative_model: Optional[BaseChatModel] = None,
    embeddings: Optional[Embeddings] = None,
    store: Optional[InMemoryCalendarStore] = None,
    access: Optional[CalendarAccessPolicy] = None,
    today: Callable[[], date] = utc_today
) -> AgentContainer:
    """Assemble the runtime from settings"""

    settings = settings or get_settings()
    chat_model = chat_model or build_chat_model(settings)
    creative_model = creative_model or build_creative_model(settings)
    embeddings = embeddings or build_embeddings(settings)

    store = store or InMemoryCalendarStore()
    access = access or CalendarAccessPolicy()
    index = DocumentIndex(embeddings)
    event_bus = StreamEventBus()
    tracing = LangfuseTracing(settings)

    grader = BrandGrader.from_model(chat_model)
    caption_generator = CaptionGenerator.from_models(creative_model, chat_model, grader)
    retriever = ContextRetriever.from_model(
        chat_model,
        index,
        top_k=settings.search_top_k,
        history_window=settings.search_history_window
    )

    container = AgentContainer(
        settings=settings,
        store=store,
        access=access,
        index=index,
        event_bus=event_bus,
        grader=grader,
        caption_generator=caption_generator,
        orchestrator=None,
        tracing=tracing
    )

    container.orchestrator = AgentOrchestrator(
        chat_model=chat_model,
        tool_registry=build_tool_registry(),
        context_manager=ContextManager(retriever=retriever, today=today),
        guardrail=GuardrailValidator.from_model(chat_model, history_window=settings.guardrail_history_window),
        memory=ConversationMemory(max_messages=settings.memory_max_messages),
        caption_generator=caption_generator,
        grader=grader,
        event_bus=event_bus,
        tracing=tracing,
        settings=settings,
        repository_factory=container.repository_for
    )

    logger.info(
        "Agent container built",
        chat_model=settings.chat_model,
        tracing=tracing.enabled,
        timeout_seconds=settings.agent_timeout_seconds
    )
    return container
