#!/usr/bin/env python3
"""
Index the knowledge-base documents into the vector index.

Loads every supported file under DATA_DIR (default data/), chunks, embeds and
upserts it. Without --reset the run is skipped when the index already has
vectors. Requires HF_API_KEY or OPENAI_API_KEY, and MILVUS_URI for a persistent index.

Run from project root:

    python scripts/index_documents.py
    python scripts/index_documents.py --reset
    python scripts/index_documents.py --data-dir docs/
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Project root on path so "orchestrator" resolves
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from orchestrator.core.config import DATA_DIR
from orchestrator.core.errors import CollaboratorError
from orchestrator.services.embeddings import build_embedding_service
from orchestrator.services.ingestion_service import IngestionService
from orchestrator.services.retrieval_service import Retriever
from orchestrator.services.vector_store import build_vector_index


async def run(data_dir: str, reset: bool) -> int:
    retriever = Retriever(build_embedding_service(), build_vector_index())
    ingestion = IngestionService(retriever, data_dir=data_dir)
    if reset:
        return await ingestion.refresh()
    return await ingestion.initialize()


def main() -> None:
    parser = argparse.ArgumentParser(description="Index knowledge-base documents.")
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Clear the index before loading documents.",
    )
    parser.add_argument("--data-dir", default=DATA_DIR, help="Directory with .md/.txt/.pdf/.xlsx files.")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    try:
        count = asyncio.run(run(args.data_dir, args.reset))
    except CollaboratorError as e:
        print(f"Indexing failed: {e.message}", file=sys.stderr)
        sys.exit(1)
    print(f"Done. Indexed {count} chunks from {args.data_dir}.")


if __name__ == "__main__":
    main()
