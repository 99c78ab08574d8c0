"""Tests for the note index and relevance retrieval."""
import pytest
from langchain_core.embeddings import DeterministicFakeEmbedding
from langchain_core.messages import HumanMessage
from langchain_core.runnables import RunnableLambda

from hub_agent.domain.context.context_retriever import ContextRetriever
from hub_agent.domain.context.memory.vector_memory_store import DocType, DocumentIndex
from hub_agent.domain.models.agent_state import SearchQueries
from tests.conftest import CALENDAR_ID, OTHER_CALENDAR_ID


@pytest.fixture
def index():
    return DocumentIndex(DeterministicFakeEmbedding(size=16), chunk_size=40, chunk_overlap=5)


class TestDocumentIndex:

    @pytest.mark.asyncio
    async def test_long_document_is_chunked(self, index):
        content = " ".join(f"word{i}" for i in range(60))

        chunks = await index.upsert_document("note", "note-1", CALENDAR_ID, content)

        assert chunks > 1
        assert index.chunk_count("note") == chunks
        assert index.has_document("note", "note-1")

    @pytest.mark.asyncio
    async def test_empty_document_indexes_nothing(self, index):
        assert await index.upsert_document("note", "note-1", CALENDAR_ID, "") == 0
        assert not index.has_document("note", "note-1")

    @pytest.mark.asyncio
    async def test_reindex_replaces_chunks(self, index):
        await index.upsert_document("note", "note-1", CALENDAR_ID, " ".join(["alpha"] * 40))
        await index.upsert_document("note", "note-1", CALENDAR_ID, "short")

        assert index.chunk_count() == 1

    @pytest.mark.asyncio
    async def test_search_is_scoped_to_calendar_and_type(self, index):
        await index.upsert_document("note", "mine", CALENDAR_ID, "summer sale ideas")
        await index.upsert_document("note", "theirs", OTHER_CALENDAR_ID, "summer sale ideas")
        await index.upsert_document("knowledgebase", "kb-1", CALENDAR_ID, "summer sale ideas")

        hits = await index.search(["summer sale"], calendar_id=CALENDAR_ID, doc_type="note")

        assert [hit.metadata["document_id"] for hit in hits] == ["mine"]

    @pytest.mark.asyncio
    async def test_search_dedupes_documents_across_queries_and_chunks(self, index):
        await index.upsert_document("note", "note-1", CALENDAR_ID, " ".join(f"term{i}" for i in range(60)))

        hits = await index.search(["term1", "term30", "term59"], calendar_id=CALENDAR_ID)

        assert len(hits) == 1
        assert hits[0].metadata["document_type"] == DocType.NOTE.value

    @pytest.mark.asyncio
    async def test_delete_document(self, index):
        await index.upsert_document("note", "note-1", CALENDAR_ID, "content")
        await index.delete_document("note", "note-1")

        assert await index.search(["content"], calendar_id=CALENDAR_ID) == []
        assert index.chunk_count() == 0

    @pytest.mark.asyncio
    async def test_unknown_document_type_is_rejected(self, index):
        with pytest.raises(ValueError):
            await index.upsert_document("tweet", "t-1", CALENDAR_ID, "content")


class TestContextRetriever:

    @pytest.mark.asyncio
    async def test_no_queries_means_no_search(self, index, repository):
        retriever = ContextRetriever(RunnableLambda(lambda _: SearchQueries(queries=[])), index)

        assert await retriever.retrieve_relevant_context("hello", [], CALENDAR_ID, repository) == []

    @pytest.mark.asyncio
    async def test_hits_resolve_to_current_note_content(self, index, repository):
        await index.upsert_document("note", "note-1", CALENDAR_ID, "stale indexed text")
        seen = []

        def formulate(inputs):
            seen.append(inputs)
            return {"queries": ["  july discount  ", ""]}

        retriever = ContextRetriever(RunnableLambda(formulate), index, history_window=1)

        documents = await retriever.retrieve_relevant_context(
            "What's on sale?", [HumanMessage(content="earlier")], CALENDAR_ID, repository
        )

        assert seen[0]["history"] == "human: earlier"
        assert documents == [{
            "document_type": "note",
            "document_id": "note-1",
            "title": "Summer sale",
            "content": "Everything 30% off in July.",
        }]

    @pytest.mark.asyncio
    async def test_deleted_notes_are_skipped(self, index, repository):
        await index.upsert_document("note", "gone", CALENDAR_ID, "orphaned chunk")
        retriever = ContextRetriever(RunnableLambda(lambda _: SearchQueries(queries=["orphaned"])), index)

        assert await retriever.retrieve_relevant_context("x", [], CALENDAR_ID, repository) == []
