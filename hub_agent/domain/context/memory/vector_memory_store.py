from typing import Dict, List, Optional, Sequence, Tuple
from enum import Enum
from langchain_core.documents import Document
from langchain_core.embeddings import Embeddings
from langchain_core.vectorstores import InMemoryVectorStore
from langchain_text_splitters import RecursiveCharacterTextSplitter
import asyncio
import structlog

logger = structlog.get_logger(__name__)

CHUNK_SIZE = 512
CHUNK_OVERLAP = 100


class DocType(str, Enum):
    """Kinds of indexed documents"""
    NOTE = "note"
    KNOWLEDGEBASE = "knowledgebase"


class DocumentIndex:
    """Chunked semantic index over calendar documents"""

    def __init__(
        self,
        embeddings: Embeddings,
        chunk_size: int = CHUNK_SIZE,
        chunk_overlap: int = CHUNK_OVERLAP
    ):
        self.store = InMemoryVectorStore(embeddings)
        self.splitter = RecursiveCharacterTextSplitter(chunk_size=chunk_size, chunk_overlap=chunk_overlap)
        self._chunk_ids: Dict[Tuple[str, str], List[str]] = {}
        self._lock = asyncio.Lock()

    async def upsert_document(self, doc_type: str, doc_id: str, calendar_id: str, content: str) -> int:
        """Replace a document's chunks; returns the number of chunks indexed"""

        doc_type = DocType(doc_type).value
        await self.delete_document(doc_type, doc_id)

        texts = self.splitter.split_text(content or "")
        if not texts:
            return 0

        metadata = {"document_id": doc_id, "document_type": doc_type, "calendar_id": calendar_id}
        docs = [Document(page_content=text, metadata=dict(metadata)) for text in texts]

        async with self._lock:
            ids = await self.store.aadd_documents(docs)
            self._chunk_ids[(doc_type, doc_id)] = list(ids)

        logger.info("Document indexed", document_type=doc_type, document_id=doc_id, chunks=len(ids))
        return len(ids)

    async def delete_document(self, doc_type: str, doc_id: str) -> None:
        """Remove every chunk of a document"""

        async with self._lock:
            ids = self._chunk_ids.pop((DocType(doc_type).value, doc_id), None)
            if ids:
                await self.store.adelete(ids)

    async def search(
        self,
        queries: Sequence[str],
        calendar_id: str,
        doc_type: str = DocType.NOTE.value,
        k: int = 5
    ) -> List[Document]:
        """Top-k chunks per query within one calendar, one hit per document"""

        doc_type = DocType(doc_type).value

        def in_scope(doc: Document) -> bool:
            return doc.metadata.get("calendar_id") == calendar_id and doc.metadata.get("document_type") == doc_type

        batches = await asyncio.gather(*[
            self.store.asimilarity_search(query, k=k, filter=in_scope) for query in queries
        ])

        unique: Dict[Tuple[str, str], Document] = {}
        for batch in batches:
            for doc in batch:
                key = (doc.metadata.get("document_type"), doc.metadata.get("document_id"))
                unique.setdefault(key, doc)

        return list(unique.values())

    def has_document(self, doc_type: str, doc_id: str) -> bool:
        return (DocType(doc_type).value, doc_id) in self._chunk_ids

    def chunk_count(self, doc_type: Optional[str] = None) -> int:
        return sum(
            len(ids) for (kind, _), ids in self._chunk_ids.items()
            if doc_type is None or kind == DocType(doc_type).value
        )
