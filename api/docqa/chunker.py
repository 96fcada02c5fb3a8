import logging
import re
from dataclasses import dataclass
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

# chunks = [
#   DocumentChunk(id="report.txt-chunk-0", content="Chapter 1. Introduction. This chapter explains... (up to ~1000 chars)",
#                 metadata=ChunkMetadata(filename="report.txt", chunk_index=0, total_chunks=3)),
#   DocumentChunk(id="report.txt-chunk-1", content="...", metadata=ChunkMetadata(..., chunk_index=1, total_chunks=3)),
# ]
# by pages: ids look like "doc.pdf-page2-chunk-0" and metadata.page == 2

_SENTENCE_END = re.compile(r"[.!?]+")


class ChunkingConfigError(ValueError):
    pass


@dataclass(frozen=True)
class ChunkingOptions:
    chunk_size: int = 1000
    chunk_overlap: int = 200
    min_chunk_size: int = 100

    def __post_init__(self):
        if self.chunk_size <= 0:
            raise ChunkingConfigError(
                f"chunk_size must be positive, got {self.chunk_size}")
        if self.min_chunk_size <= 0:
            raise ChunkingConfigError(
                f"min_chunk_size must be positive, got {self.min_chunk_size}")
        if self.chunk_overlap < 0:
            raise ChunkingConfigError(
                f"chunk_overlap must not be negative, got {self.chunk_overlap}")
        if self.chunk_overlap >= self.chunk_size:
            raise ChunkingConfigError(
                f"chunk_overlap ({self.chunk_overlap}) must be smaller than chunk_size ({self.chunk_size})")
        if self.min_chunk_size > self.chunk_size:
            raise ChunkingConfigError(
                f"min_chunk_size ({self.min_chunk_size}) must not exceed chunk_size ({self.chunk_size})")


DEFAULT_OPTIONS = ChunkingOptions()


class ChunkMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    filename: str
    page: Optional[int] = Field(default=None, ge=1)
    chunk_index: int = Field(ge=0)
    total_chunks: int = 0


class DocumentChunk(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    content: str = Field(min_length=1)
    metadata: ChunkMetadata


def split_sentences(text: str) -> List[str]:
    """Split on runs of . ! ? and drop blank pieces.

    Naive on purpose: "3.14" or "e.g." are split like any other full stop.
    """
    return [s for s in _SENTENCE_END.split(text or "") if s.strip()]


def get_overlap_text(text: str, overlap_size: int) -> str:
    """Tail of a flushed chunk used to seed the next one.

    Character based, so the suffix may start mid-word; when a full stop
    falls inside the suffix, only what follows it is carried over.
    """
    if overlap_size <= 0:
        return ""
    if len(text) <= overlap_size:
        return text
    end_text = text[-overlap_size:]
    last_stop = end_text.rfind(".")
    if last_stop > 0:
        return end_text[last_stop + 1:].strip()
    return end_text


def _make_chunk(content: str, filename: str, chunk_index: int) -> DocumentChunk:
    return DocumentChunk(
        id=f"{filename}-chunk-{chunk_index}",
        content=content.strip(),
        metadata=ChunkMetadata(
            filename=filename, chunk_index=chunk_index, total_chunks=0),
    )


def chunk_text(text: str, filename: str,
               options: Optional[ChunkingOptions] = None) -> List[DocumentChunk]:
    options = options or DEFAULT_OPTIONS
    if not text or not text.strip():
        return []
    sentences = split_sentences(text)
    if not sentences:
        return []

    chunks: List[DocumentChunk] = []
    current = ""
    chunk_index = 0

    for sentence in sentences:
        sentence_text = sentence.strip() + "."
        # a single oversized sentence is never cut; it becomes its own chunk
        if (current
                and len(current) + len(sentence_text) > options.chunk_size
                and len(current) >= options.min_chunk_size):
            chunks.append(_make_chunk(current, filename, chunk_index))
            overlap = get_overlap_text(current, options.chunk_overlap)
            current = overlap + " " + sentence_text
            chunk_index += 1
        else:
            current += (" " if current else "") + sentence_text

    if current.strip():
        chunks.append(_make_chunk(current, filename, chunk_index))

    total = len(chunks)
    chunks = [
        c.model_copy(update={"metadata": c.metadata.model_copy(update={"total_chunks": total})})
        for c in chunks
    ]
    logger.debug(f"Chunked {filename}: {len(sentences)} sentences -> {total} chunks")
    return chunks


def chunk_by_pages(pages: List[str], filename: str,
                   options: Optional[ChunkingOptions] = None) -> List[DocumentChunk]:
    # overlap and total_chunks never cross a page boundary
    all_chunks: List[DocumentChunk] = []
    for page_index, page_text in enumerate(pages):
        page_number = page_index + 1
        for i, chunk in enumerate(chunk_text(page_text, filename, options)):
            all_chunks.append(chunk.model_copy(update={
                "id": f"{filename}-page{page_number}-chunk-{i}",
                "metadata": chunk.metadata.model_copy(update={"page": page_number}),
            }))
    logger.debug(f"Chunked {filename} by pages: {len(pages)} pages -> {len(all_chunks)} chunks")
    return all_chunks


def merge_small_chunks(chunks: List[DocumentChunk], min_size: int = 100) -> List[DocumentChunk]:
    """Coalesce undersized chunks with their successors from the same file.

    The merged chunk keeps the first chunk's id, page and chunk_index and
    its total_chunks drops by one per absorbed chunk.
    """
    merged: List[DocumentChunk] = []
    i = 0
    n = len(chunks)
    while i < n:
        current = chunks[i]
        while (i + 1 < n
               and len(current.content) < min_size
               and chunks[i + 1].metadata.filename == current.metadata.filename):
            nxt = chunks[i + 1]
            current = current.model_copy(update={
                "content": current.content + " " + nxt.content,
                "metadata": current.metadata.model_copy(
                    update={"total_chunks": current.metadata.total_chunks - 1}),
            })
            i += 1
        merged.append(current)
        i += 1
    if len(merged) != n:
        logger.debug(f"Merged {n - len(merged)} small chunks (min_size={min_size})")
    return merged


def chunk_document(filename: str, text: Optional[str] = None,
                   pages: Optional[List[str]] = None,
                   options: Optional[ChunkingOptions] = None,
                   merge: bool = True) -> List[DocumentChunk]:
    options = options or DEFAULT_OPTIONS
    if pages is not None:
        chunks = chunk_by_pages(pages, filename, options)
    else:
        chunks = chunk_text(text or "", filename, options)
    if merge:
        chunks = merge_small_chunks(chunks, options.min_chunk_size)
    return chunks
