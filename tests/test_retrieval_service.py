"""
Unit tests for the Retriever, relevance filtering and the in-memory index.
"""

import asyncio

import pytest

from fakes import FakeEmbedder
from orchestrator.core.errors import CollaboratorError
from orchestrator.services.retrieval_service import (
    DocumentChunk,
    RetrievalMatch,
    Retriever,
    SourceDocument,
    filter_relevant,
    unique_sources,
)
from orchestrator.services.vector_store import InMemoryVectorIndex, VectorItem

LONG_DOC = " ".join(f"Paragraph {i} explains one more detail about the system." for i in range(30))


class RecordingIndex(InMemoryVectorIndex):
    def __init__(self) -> None:
        super().__init__(dimension=3)
        self.batches: list[list[VectorItem]] = []

    async def upsert(self, items: list[VectorItem]) -> None:
        self.batches.append(list(items))
        await super().upsert(items)


def match(score: float, source: str = "doc.md") -> RetrievalMatch:
    return RetrievalMatch(content=f"content {score}", score=score, source=source)


class TestChunkDocument:
    def test_chunk_ids_and_totals(self, embedder: FakeEmbedder) -> None:
        retriever = Retriever(embedder, InMemoryVectorIndex(), chunk_size=200, chunk_overlap=40, min_chunk_length=10)
        chunks = retriever.chunk_document(SourceDocument(source="guide.md", content=LONG_DOC, title="Guide"))
        assert len(chunks) > 1
        assert [c.index for c in chunks] == list(range(len(chunks)))
        assert all(c.total == len(chunks) for c in chunks)
        assert chunks[0].chunk_id == "guide.md_chunk_0"
        assert chunks[0].title == "Guide"

    def test_chunk_id_format(self) -> None:
        assert DocumentChunk(source="a.md", index=7, total=9, content="x").chunk_id == "a.md_chunk_7"


class TestIndexDocuments:
    def test_batches_upserts_and_stores_metadata(self, embedder: FakeEmbedder) -> None:
        index = RecordingIndex()
        retriever = Retriever(
            embedder, index,
            chunk_size=200, chunk_overlap=40, min_chunk_length=10,
            batch_size=2, pacing_seconds=0,
        )
        document = SourceDocument(source="guide.md", content=LONG_DOC, title="Guide")
        expected = len(retriever.chunk_document(document))

        count = asyncio.run(retriever.index_documents([document]))

        assert count == expected
        assert [len(b) for b in index.batches] == [2] * (expected // 2) + ([1] if expected % 2 else [])
        first = index.batches[0][0]
        assert first.id == "guide.md_chunk_0"
        assert first.metadata["source"] == "guide.md"
        assert first.metadata["title"] == "Guide"
        assert first.metadata["chunk_index"] == 0
        assert first.metadata["total_chunks"] == expected
        assert first.metadata["length"] == len(first.metadata["text"])
        assert len(embedder.calls) == expected
        assert asyncio.run(index.stats()).total_vectors == expected

    def test_reindexing_same_document_overwrites(self, embedder: FakeEmbedder, index: InMemoryVectorIndex) -> None:
        retriever = Retriever(embedder, index, chunk_size=200, chunk_overlap=40, min_chunk_length=10, pacing_seconds=0)
        document = SourceDocument(source="guide.md", content=LONG_DOC)
        first = asyncio.run(retriever.index_documents([document]))
        asyncio.run(retriever.index_documents([document]))
        assert asyncio.run(index.stats()).total_vectors == first

    def test_embedding_failure_propagates(self, embedder: FakeEmbedder, index: InMemoryVectorIndex) -> None:
        embedder.error = CollaboratorError("embeddings down", provider="fake")
        retriever = Retriever(embedder, index, min_chunk_length=10, pacing_seconds=0)
        with pytest.raises(CollaboratorError):
            asyncio.run(retriever.index_documents([SourceDocument(source="a.md", content=LONG_DOC)]))


class TestSearch:
    def test_returns_matches_in_score_order(self, index: InMemoryVectorIndex) -> None:
        asyncio.run(index.upsert([
            VectorItem(id="a", vector=[1.0, 0.0, 0.0], metadata={"text": "exact", "source": "a.md", "chunk_index": 0, "total_chunks": 1}),
            VectorItem(id="b", vector=[0.6, 0.8, 0.0], metadata={"text": "close", "source": "b.md", "chunk_index": 2, "total_chunks": 3}),
            VectorItem(id="c", vector=[0.0, 0.0, 1.0], metadata={"text": "far", "source": "c.md"}),
        ]))
        embedder = FakeEmbedder(vectors={"query": [1.0, 0.0, 0.0]})
        matches = asyncio.run(Retriever(embedder, index).search("query", 2))
        assert [m.content for m in matches] == ["exact", "close"]
        assert matches[0].score == pytest.approx(1.0)
        assert matches[1].score == pytest.approx(0.6)
        assert matches[1].chunk_index == 2 and matches[1].total_chunks == 3

    def test_search_on_empty_index(self, embedder: FakeEmbedder, index: InMemoryVectorIndex) -> None:
        assert asyncio.run(Retriever(embedder, index).search("anything", 3)) == []


class TestFilterRelevant:
    def test_threshold_is_inclusive_and_order_preserved(self) -> None:
        matches = [match(0.9), match(0.5), match(0.7), match(0.71)]
        assert [m.score for m in filter_relevant(matches, 0.7)] == [0.9, 0.7, 0.71]

    def test_default_threshold(self) -> None:
        assert filter_relevant([match(0.69), match(0.95)]) == [match(0.95)]

    def test_unique_sources(self) -> None:
        matches = [match(0.9, "a.md"), match(0.8, "b.md"), match(0.75, "a.md")]
        assert unique_sources(matches) == ["a.md", "b.md"]
