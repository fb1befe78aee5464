"""
Vector index: Milvus Cloud connection (or an in-process index) and chunk storage.

Responsibility: upsert vectors with metadata, nearest-neighbour search by cosine
similarity, and collection stats. pymilvus is blocking, so its calls run in a
worker thread.
"""

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from orchestrator.core.config import (
    COLLECTION_NAME,
    MILVUS_TOKEN,
    MILVUS_URI,
    VECTOR_DIM,
)
from orchestrator.core.errors import CollaboratorError

logger = logging.getLogger(__name__)

METADATA_FIELDS = ("text", "source", "title", "chunk_index", "total_chunks", "length")


@dataclass(frozen=True)
class VectorItem:
    id: str
    vector: list[float]
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class VectorMatch:
    id: str
    score: float
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class IndexStats:
    name: str
    total_vectors: int
    dimension: int


class VectorIndex(ABC):
    provider: str = ""

    @abstractmethod
    async def upsert(self, items: list[VectorItem]) -> None:
        ...

    @abstractmethod
    async def query(self, vector: list[float], top_k: int) -> list[VectorMatch]:
        """Nearest neighbours, highest score first."""

    @abstractmethod
    async def stats(self) -> IndexStats:
        ...

    @abstractmethod
    async def clear(self) -> None:
        ...


def cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    na = sum(x * x for x in a) ** 0.5
    nb = sum(y * y for y in b) ** 0.5
    if na == 0 or nb == 0:
        return 0.0
    return dot / (na * nb)


class InMemoryVectorIndex(VectorIndex):
    """Process-local index for development and tests. Brute-force cosine search."""

    provider = "memory"

    def __init__(self, name: str = COLLECTION_NAME, dimension: int = VECTOR_DIM) -> None:
        self.name = name
        self.dimension = dimension
        self._items: dict[str, VectorItem] = {}
        self._lock = threading.Lock()

    async def upsert(self, items: list[VectorItem]) -> None:
        with self._lock:
            for item in items:
                self._items[item.id] = item

    async def query(self, vector: list[float], top_k: int) -> list[VectorMatch]:
        with self._lock:
            items = list(self._items.values())
        scored = [
            VectorMatch(id=item.id, score=cosine(vector, item.vector), metadata=dict(item.metadata))
            for item in items
        ]
        scored.sort(key=lambda m: m.score, reverse=True)
        return scored[: max(top_k, 0)]

    async def stats(self) -> IndexStats:
        with self._lock:
            total = len(self._items)
        return IndexStats(name=self.name, total_vectors=total, dimension=self.dimension)

    async def clear(self) -> None:
        with self._lock:
            self._items.clear()


class MilvusVectorIndex(VectorIndex):
    """Milvus collection with a string primary key and COSINE metric."""

    provider = "milvus"

    def __init__(
        self,
        uri: str = MILVUS_URI,
        token: str = MILVUS_TOKEN,
        name: str = COLLECTION_NAME,
        dimension: int = VECTOR_DIM,
        client: Any = None,
    ) -> None:
        self.uri = uri
        self.token = token
        self.name = name
        self.dimension = dimension
        self._client = client

    def _get_client(self) -> Any:
        """Connect lazily and create the collection if it does not exist."""
        if self._client is None:
            if not self.uri:
                raise CollaboratorError("MILVUS_URI must be set in .env", provider=self.provider)
            from pymilvus import MilvusClient

            self._client = MilvusClient(uri=self.uri, token=self.token)
            logger.info("Milvus connection established")
        self._ensure_collection()
        return self._client

    def _ensure_collection(self) -> None:
        if self._client.has_collection(self.name):
            return
        self._client.create_collection(
            collection_name=self.name,
            dimension=self.dimension,
            primary_field_name="id",
            id_type="string",
            max_length=512,
            vector_field_name="vector",
            metric_type="COSINE",
            auto_id=False,
        )
        logger.info("Collection %s created (dim=%s)", self.name, self.dimension)

    async def _call(self, label: str, fn, *args, **kwargs):
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except CollaboratorError:
            raise
        except Exception as e:
            logger.warning("[vector_store:milvus] %s failed: %s", label, e)
            raise CollaboratorError(
                f"Vector index {label} failed", provider=self.provider, details=str(e),
            ) from e

    def _upsert_sync(self, items: list[VectorItem]) -> None:
        client = self._get_client()
        rows = []
        for item in items:
            row = {"id": item.id, "vector": item.vector}
            row.update({k: item.metadata[k] for k in METADATA_FIELDS if k in item.metadata})
            rows.append(row)
        client.upsert(collection_name=self.name, data=rows)

    def _query_sync(self, vector: list[float], top_k: int) -> list[VectorMatch]:
        client = self._get_client()
        results = client.search(
            collection_name=self.name,
            data=[vector],
            limit=top_k,
            output_fields=list(METADATA_FIELDS),
            search_params={"metric_type": "COSINE"},
        )
        hits = results[0] if results else []
        matches = []
        for hit in hits:
            entity = hit.get("entity") or {}
            matches.append(VectorMatch(
                id=str(hit.get("id", "")),
                score=float(hit.get("distance", 0.0)),
                metadata={k: entity.get(k) for k in METADATA_FIELDS if k in entity},
            ))
        return matches

    def _stats_sync(self) -> IndexStats:
        client = self._get_client()
        stats = client.get_collection_stats(collection_name=self.name)
        return IndexStats(
            name=self.name,
            total_vectors=int(stats.get("row_count", 0)),
            dimension=self.dimension,
        )

    def _clear_sync(self) -> None:
        client = self._get_client()
        client.drop_collection(collection_name=self.name)
        logger.info("Knowledge base cleared: collection %s dropped", self.name)
        self._ensure_collection()

    async def upsert(self, items: list[VectorItem]) -> None:
        if items:
            await self._call("upsert", self._upsert_sync, items)

    async def query(self, vector: list[float], top_k: int) -> list[VectorMatch]:
        return await self._call("search", self._query_sync, vector, top_k)

    async def stats(self) -> IndexStats:
        return await self._call("stats", self._stats_sync)

    async def clear(self) -> None:
        await self._call("clear", self._clear_sync)


def build_vector_index() -> VectorIndex:
    """Milvus when MILVUS_URI is configured, else the in-process index."""
    if MILVUS_URI:
        return MilvusVectorIndex()
    logger.info("MILVUS_URI not set; using in-memory vector index")
    return InMemoryVectorIndex()
