from typing import Any, Dict, List, Optional, Sequence
from langchain_core.documents import Document
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage
from langchain_core.prompts import PromptTemplate
from langchain_core.runnables import Runnable, RunnableConfig
import structlog

from hub_agent.domain.models.agent_state import SearchQueries
from .formatting import format_history, rich_text_to_plain
from .memory.vector_memory_store import DocType, DocumentIndex

logger = structlog.get_logger(__name__)

SEARCH_QUERY_PROMPT = PromptTemplate.from_template(
    """You are an expert at creating search terms to find relevant information based on a chat. Create search terms from the chat history to use for searching relevant topics in the user's notes.
If no search is needed, don't return any queries. Be concise, searches are done using a vector DB using similarity search. Return general concepts and ideas without repeating.

<Chat History>
{history}
</Chat History>

<User Message>
{input}
</User Message>
"""
)


class ContextRetriever:
    """Retrieves calendar documents relevant to the conversation"""

    def __init__(
        self,
        query_chain: Runnable,
        index: DocumentIndex,
        top_k: int = 5,
        history_window: int = 4
    ):
        self.query_chain = query_chain
        self.index = index
        self.top_k = top_k
        self.history_window = history_window

    @classmethod
    def from_model(cls, model: BaseChatModel, index: DocumentIndex, top_k: int = 5, history_window: int = 4) -> "ContextRetriever":
        return cls(SEARCH_QUERY_PROMPT | model.with_structured_output(SearchQueries), index, top_k, history_window)

    async def formulate_queries(
        self,
        user_input: str,
        history: Sequence[BaseMessage],
        config: Optional[RunnableConfig] = None
    ) -> List[str]:
        """Search strings for this turn; may be empty"""

        result: Any = await self.query_chain.ainvoke(
            {"history": format_history(history, self.history_window), "input": user_input},
            config
        )
        queries = result if isinstance(result, SearchQueries) else SearchQueries.model_validate(result)
        return [q.strip() for q in queries.queries if q and q.strip()]

    async def search(
        self,
        user_input: str,
        history: Sequence[BaseMessage],
        calendar_id: str,
        config: Optional[RunnableConfig] = None
    ) -> List[Document]:
        """Note chunks matching the formulated queries, one per document"""

        queries = await self.formulate_queries(user_input, history, config)
        if not queries:
            logger.debug("No search needed", calendar_id=calendar_id)
            return []

        hits = await self.index.search(queries, calendar_id=calendar_id, doc_type=DocType.NOTE.value, k=self.top_k)
        logger.info("Relevance search", queries=queries, hits=len(hits))
        return hits

    async def retrieve_relevant_context(
        self,
        user_input: str,
        history: Sequence[BaseMessage],
        calendar_id: str,
        repository: Any,
        config: Optional[RunnableConfig] = None
    ) -> List[Dict[str, str]]:
        """Hits resolved to displayable documents; notes are re-read through the repository"""

        documents: List[Dict[str, str]] = []

        for hit in await self.search(user_input, history, calendar_id, config):
            doc_type = hit.metadata.get("document_type")
            doc_id = hit.metadata.get("document_id")

            if doc_type == DocType.NOTE.value:
                note = await repository.get_note(doc_id)
                if note is None:
                    continue
                documents.append({
                    "document_type": doc_type,
                    "document_id": doc_id,
                    "title": note.title or "Untitled note",
                    "content": rich_text_to_plain(note.content),
                })
            else:
                documents.append({
                    "document_type": doc_type,
                    "document_id": doc_id,
                    "title": doc_id,
                    "content": hit.page_content,
                })

        return documents
