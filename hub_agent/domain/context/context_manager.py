from typing import Any, Callable, Dict, List, Optional, Sequence
from langchain_core.messages import BaseMessage
from langchain_core.runnables import RunnableConfig
import structlog
from datetime import date, datetime, timedelta, timezone

from hub_agent.domain.models.agent_state import ContextSnapshot
from hub_agent.infrastructure.observability.logging import agent_logger
from .context_retriever import ContextRetriever
from .formatting import rich_text_to_plain

logger = structlog.get_logger(__name__)

CONTEXT_HEADER = "--- Contextual Information ---"
CONTEXT_FOOTER = "--- End of Context ---"
NO_RULES_BLOCK = "**Brand Voice Rules:**\nNo active brand voice rules are currently configured for this calendar."


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


class ContextManager:
    """Assembles the per-turn context block appended to the system prompt"""

    def __init__(
        self,
        retriever: Optional[ContextRetriever] = None,
        today: Callable[[], date] = utc_today
    ):
        self.retriever = retriever
        self.today = today

    async def build_context(
        self,
        snapshot: Optional[ContextSnapshot],
        repository: Any,
        history: Sequence[BaseMessage],
        user_input: str,
        calendar_id: str,
        thread_id: Optional[str] = None,
        config: Optional[RunnableConfig] = None
    ) -> str:
        """Render every available block; a block that fails to load is left out"""

        parts: List[str] = []

        if snapshot is not None and snapshot.open_post_id:
            block = await self._load("post", thread_id, self.post_block(repository, snapshot.open_post_id))
            if block:
                parts.append(block)

        if snapshot is not None and snapshot.open_note_id:
            block = await self._load("note", thread_id, self.note_block(repository, snapshot.open_note_id))
            if block:
                parts.append(block)

        block = await self._load("brand_rules", thread_id, self.brand_rules_block(repository))
        if block:
            parts.append(block)

        parts.append(self.date_block())

        if self.retriever is not None:
            block = await self._load(
                "documents",
                thread_id,
                self.documents_block(repository, history, user_input, calendar_id, config)
            )
            if block:
                parts.append(block)

        return f"\n\n{CONTEXT_HEADER}\n" + "\n\n".join(parts) + f"\n{CONTEXT_FOOTER}"

    async def _load(self, context_type: str, thread_id: Optional[str], pending) -> Optional[str]:
        try:
            block = await pending
        except Exception as e:
            logger.warning("Context block failed to load", context_type=context_type, error=str(e))
            agent_logger.log_context_update(thread_id, context_type, "skipped", {"error": str(e)})
            return None

        agent_logger.log_context_update(thread_id, context_type, "loaded" if block else "empty")
        return block

    async def post_block(self, repository: Any, post_id: str) -> Optional[str]:
        post = await repository.get_post(post_id)
        if post is None:
            return None

        return (
            "**Current Post:**\n"
            "The user is currently viewing/editing a post:\n"
            f"- Post ID: {post.id}\n"
            f"- Caption: {post.caption or '(No caption yet)'}\n"
            f"- Platform: {post.platform}\n"
            f"- Status: {post.status}\n"
            f"- Date: {post.date.date().isoformat()}\n"
            f"- Images: {len(post.images)} image(s)\n\n"
            "When the user asks about \"this post\" or \"the current post\", they are referring to this post. "
            "When using the apply_caption_to_open_post tool or any other tool that needs a post id, "
            f"you MUST use Post ID: {post.id} as the post_id parameter."
        )

    async def note_block(self, repository: Any, note_id: str) -> Optional[str]:
        note = await repository.get_note(note_id)
        if note is None:
            return None

        return (
            "**Current Note:**\n"
            "The user is currently viewing/editing a note:\n"
            f"- Note ID: {note.id}\n"
            f"- Title: {note.title}\n"
            f"- Content: {rich_text_to_plain(note.content) or '(Empty note)'}\n\n"
            "When the user asks about \"this note\" or \"the current note\", they are referring to this note."
        )

    async def brand_rules_block(self, repository: Any) -> str:
        rules = [rule for rule in await repository.get_brand_rules() if rule.enabled]
        if not rules:
            return NO_RULES_BLOCK

        rules_text = "\n".join(f"- **{rule.title}:** {rule.description}" for rule in rules)
        return (
            "**Brand Voice Rules:**\n"
            "The following brand voice rules are active for this calendar:\n"
            f"{rules_text}\n\n"
            "Always follow these rules when generating or suggesting content. "
            "When grading content, evaluate it against these rules."
        )

    def date_block(self) -> str:
        today = self.today()
        tomorrow = today + timedelta(days=1)
        long_form = f"{today:%A}, {today:%B} {today.day}, {today.year}"

        return (
            f"**Current Date:** {today.isoformat()} ({long_form})\n"
            f"When users say \"today\", they mean {today.isoformat()}. "
            f"When they say \"tomorrow\", they mean {tomorrow.isoformat()}."
        )

    async def documents_block(
        self,
        repository: Any,
        history: Sequence[BaseMessage],
        user_input: str,
        calendar_id: str,
        config: Optional[RunnableConfig] = None
    ) -> Optional[str]:
        documents: List[Dict[str, str]] = await self.retriever.retrieve_relevant_context(
            user_input, history, calendar_id, repository, config
        )
        if not documents:
            return None

        labels = {"note": "Note", "knowledgebase": "Knowledgebase Article"}
        rendered = [
            f"{labels.get(doc['document_type'], doc['document_type'])}: {doc['title']}\n{doc['content']}"
            for doc in documents
        ]
        return "Relevant Documents:\n" + "\n\n".join(rendered)
