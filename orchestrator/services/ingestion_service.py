"""
Knowledge-base ingestion: load documents from disk and index them.

Responsibility: decide when to index (empty index at startup, explicit refresh)
and report status. File parsing lives in ingest.loader; chunking and upserts in
the Retriever. No HTTP or FastAPI here.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from orchestrator.core.config import DATA_DIR
from orchestrator.ingest.loader import load_directory
from orchestrator.services.retrieval_service import Retriever, SourceDocument

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexStatus:
    initialized: bool
    total_vectors: int
    index_name: str
    provider: str


class IngestionService:
    def __init__(self, retriever: Retriever, data_dir: str | Path = DATA_DIR) -> None:
        self.retriever = retriever
        self.data_dir = Path(data_dir)
        self._initialized = False
        self._lock = asyncio.Lock()

    async def _load(self) -> list[SourceDocument]:
        return await asyncio.to_thread(load_directory, self.data_dir)

    async def initialize(self) -> int:
        """Index the data directory if the index is empty. Returns chunks indexed (0 if skipped)."""
        async with self._lock:
            stats = await self.retriever.index.stats()
            if stats.total_vectors > 0:
                logger.info("[ingestion:initialize] index has %d vectors; skipping load", stats.total_vectors)
                self._initialized = True
                return 0
            documents = await self._load()
            count = await self.retriever.index_documents(documents)
            self._initialized = True
            logger.info("[ingestion:initialize] OUT documents=%d chunks=%d", len(documents), count)
            return count

    async def refresh(self) -> int:
        """Clear the index and re-index the data directory. Returns chunks indexed."""
        async with self._lock:
            await self.retriever.index.clear()
            documents = await self._load()
            count = await self.retriever.index_documents(documents)
            self._initialized = True
            logger.info("[ingestion:refresh] OUT documents=%d chunks=%d", len(documents), count)
            return count

    async def add_document(self, document: SourceDocument) -> int:
        return await self.retriever.index_documents([document])

    async def status(self) -> IndexStatus:
        stats = await self.retriever.index.stats()
        return IndexStatus(
            initialized=self._initialized,
            total_vectors=stats.total_vectors,
            index_name=stats.name,
            provider=self.retriever.index.provider,
        )
