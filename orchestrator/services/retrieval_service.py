"""
Retrieval: chunk documents into the vector index and search it.

Index path: document -> chunks -> one embedding per chunk -> batched upserts.
Query path: embed query -> nearest neighbours -> optional relevance filter.
Embedding and index failures propagate as CollaboratorError.
"""

import asyncio
import logging
from dataclasses import dataclass

from orchestrator.core.config import (
    CHUNK_OVERLAP,
    CHUNK_SIZE,
    MIN_CHUNK_LENGTH,
    RELEVANCE_THRESHOLD,
    UPSERT_BATCH_SIZE,
    UPSERT_PACING_SECONDS,
)
from orchestrator.services.embeddings import EmbeddingService
from orchestrator.services.text_processing import chunk_text
from orchestrator.services.vector_store import VectorIndex, VectorItem

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceDocument:
    source: str
    content: str
    title: str = ""


@dataclass(frozen=True)
class DocumentChunk:
    source: str
    index: int
    total: int
    content: str
    title: str = ""

    @property
    def chunk_id(self) -> str:
        return f"{self.source}_chunk_{self.index}"


@dataclass(frozen=True)
class RetrievalMatch:
    content: str
    score: float
    source: str
    title: str = ""
    chunk_index: int = 0
    total_chunks: int = 0


def filter_relevant(
    matches: list[RetrievalMatch],
    min_score: float = RELEVANCE_THRESHOLD,
) -> list[RetrievalMatch]:
    """Keep matches scoring at least min_score, preserving order."""
    return [m for m in matches if m.score >= min_score]


def unique_sources(matches: list[RetrievalMatch]) -> list[str]:
    seen: dict[str, None] = {}
    for m in matches:
        if m.source:
            seen.setdefault(m.source, None)
    return list(seen)


class Retriever:
    def __init__(
        self,
        embedder: EmbeddingService,
        index: VectorIndex,
        chunk_size: int = CHUNK_SIZE,
        chunk_overlap: int = CHUNK_OVERLAP,
        min_chunk_length: int = MIN_CHUNK_LENGTH,
        batch_size: int = UPSERT_BATCH_SIZE,
        pacing_seconds: float = UPSERT_PACING_SECONDS,
    ) -> None:
        self.embedder = embedder
        self.index = index
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.min_chunk_length = min_chunk_length
        self.batch_size = batch_size
        self.pacing_seconds = pacing_seconds

    def chunk_document(self, document: SourceDocument) -> list[DocumentChunk]:
        pieces = chunk_text(
            document.content,
            max_size=self.chunk_size,
            overlap=self.chunk_overlap,
            min_length=self.min_chunk_length,
        )
        return [
            DocumentChunk(
                source=document.source,
                index=i,
                total=len(pieces),
                content=piece,
                title=document.title,
            )
            for i, piece in enumerate(pieces)
        ]

    async def index_documents(self, documents: list[SourceDocument]) -> int:
        """Chunk, embed and upsert every document. Returns the number of chunks stored."""
        items: list[VectorItem] = []
        for document in documents:
            chunks = self.chunk_document(document)
            logger.info("[retriever:index] source=%s -> %d chunks", document.source, len(chunks))
            for chunk in chunks:
                vector = await self.embedder.embed(chunk.content)
                items.append(VectorItem(
                    id=chunk.chunk_id,
                    vector=vector,
                    metadata={
                        "text": chunk.content,
                        "source": chunk.source,
                        "title": chunk.title,
                        "chunk_index": chunk.index,
                        "total_chunks": chunk.total,
                        "length": len(chunk.content),
                    },
                ))

        for start in range(0, len(items), self.batch_size):
            if start > 0 and self.pacing_seconds > 0:
                await asyncio.sleep(self.pacing_seconds)
            batch = items[start : start + self.batch_size]
            await self.index.upsert(batch)
            logger.info(
                "[retriever:index] upserted batch %d (%d items)",
                start // self.batch_size + 1, len(batch),
            )
        logger.info("[retriever:index] OUT documents=%d chunks=%d", len(documents), len(items))
        return len(items)

    async def search(self, query: str, top_k: int) -> list[RetrievalMatch]:
        """Top-k matches in index order. No relevance filtering here."""
        logger.info("[retriever:search] IN  query=%r top_k=%d", query[:200], top_k)
        vector = await self.embedder.embed(query)
        hits = await self.index.query(vector, top_k)
        matches = []
        for hit in hits:
            meta = hit.metadata or {}
            matches.append(RetrievalMatch(
                content=meta.get("text") or "",
                score=hit.score,
                source=meta.get("source") or "",
                title=meta.get("title") or "",
                chunk_index=int(meta.get("chunk_index") or 0),
                total_chunks=int(meta.get("total_chunks") or 0),
            ))
        logger.info(
            "[retriever:search] OUT matches=%d scores=%s",
            len(matches), [round(m.score, 3) for m in matches],
        )
        return matches
