"""
Indexing boundary: the document store chunks are handed to after chunking.

Results coming back from an index are decoded into explicit types with
optional fields, so nothing downstream depends on the raw payload shape.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from .chunker import DocumentChunk

logger = logging.getLogger(__name__)

PASSAGE_CHARS = 400


class DocumentNotFoundError(KeyError):
    pass


class IndexedDocument(BaseModel):
    document_id: str
    filename: Optional[str] = None
    title: Optional[str] = None
    text: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SearchPassage(BaseModel):
    passage_text: Optional[str] = None
    document_id: Optional[str] = None
    start_offset: Optional[int] = None
    end_offset: Optional[int] = None
    field: Optional[str] = None


class SearchResult(BaseModel):
    matching_results: int = 0
    results: List[IndexedDocument] = Field(default_factory=list)
    passages: List[SearchPassage] = Field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Any) -> "SearchResult":
        """Decode an untyped search response, dropping anything malformed."""
        if not isinstance(payload, dict):
            return cls()
        results = [
            doc for doc in (_decode(IndexedDocument, r) for r in _as_list(payload.get("results")))
            if doc is not None
        ]
        passages = [
            p for p in (_decode(SearchPassage, r) for r in _as_list(payload.get("passages")))
            if p is not None
        ]
        matching = payload.get("matching_results")
        if not isinstance(matching, int) or isinstance(matching, bool):
            matching = len(results)
        return cls(matching_results=matching, results=results, passages=passages)


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _decode(model, raw: Any):
    if not isinstance(raw, dict):
        return None
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        logger.debug(f"Dropping malformed {model.__name__}: {e}")
        return None


class DocumentIndex(ABC):
    @abstractmethod
    def add_document(self, chunk: DocumentChunk) -> str:
        """Store one chunk and return the index's id for it."""
        ...

    @abstractmethod
    def search(self, query: str, count: int = 10, passages: bool = True) -> SearchResult:
        ...

    @abstractmethod
    def delete_document(self, document_id: str) -> None:
        ...

    @abstractmethod
    def list_documents(self) -> List[IndexedDocument]:
        ...

    @abstractmethod
    def clear(self) -> int:
        ...


class InMemoryIndex(DocumentIndex):
    """Dict-backed index, one document per chunk."""

    def __init__(self):
        self._docs: Dict[str, IndexedDocument] = {}

    def __len__(self) -> int:
        return len(self._docs)

    def add_document(self, chunk: DocumentChunk) -> str:
        document_id = uuid.uuid4().hex
        self._docs[document_id] = IndexedDocument(
            document_id=document_id,
            filename=f"{chunk.id}.txt",
            title=chunk.id,
            text=chunk.content,
            metadata={
                "filename": chunk.metadata.filename,
                "page": chunk.metadata.page,
                "chunk_index": chunk.metadata.chunk_index,
                "total_chunks": chunk.metadata.total_chunks,
                "chunk_id": chunk.id,
            },
        )
        return document_id

    def search(self, query: str, count: int = 10, passages: bool = True) -> SearchResult:
        terms = [t.lower() for t in query.split()]
        if not terms:
            return SearchResult()
        hits = []
        for doc in self._docs.values():
            haystack = (doc.text or "").lower()
            if all(t in haystack for t in terms):
                hits.append((sum(haystack.count(t) for t in terms), doc))
        # stable sort keeps insertion order between equal scores
        hits.sort(key=lambda h: h[0], reverse=True)
        top = [doc for _, doc in hits[:count]]
        found = [_passage(doc, terms) for doc in top] if passages else []
        return SearchResult(matching_results=len(hits), results=top, passages=found)

    def delete_document(self, document_id: str) -> None:
        if document_id not in self._docs:
            raise DocumentNotFoundError(document_id)
        del self._docs[document_id]

    def list_documents(self) -> List[IndexedDocument]:
        return list(self._docs.values())

    def clear(self) -> int:
        n = len(self._docs)
        self._docs.clear()
        return n


def _passage(doc: IndexedDocument, terms: List[str]) -> SearchPassage:
    text = doc.text or ""
    lowered = text.lower()
    first = min(lowered.find(t) for t in terms)
    start = max(0, first - PASSAGE_CHARS // 2)
    end = min(len(text), start + PASSAGE_CHARS)
    start = max(0, end - PASSAGE_CHARS)
    return SearchPassage(
        passage_text=text[start:end],
        document_id=doc.document_id,
        start_offset=start,
        end_offset=end,
        field="text",
    )


class IndexReport(BaseModel):
    document_ids: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)


def index_chunks(index: DocumentIndex, chunks: List[DocumentChunk]) -> IndexReport:
    """Add every chunk, carrying on past individual failures."""
    report = IndexReport()
    for chunk in chunks:
        try:
            report.document_ids.append(index.add_document(chunk))
        except Exception as e:
            logger.warning(f"Failed to index chunk {chunk.id}: {e}")
            report.failed.append(chunk.id)
    logger.info(f"Indexed {len(report.document_ids)}/{len(chunks)} chunks")
    return report
