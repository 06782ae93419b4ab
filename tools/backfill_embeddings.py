from __future__ import annotations

"""CLI utility to embed every stored document of an organization."""

import argparse
import asyncio

from docsearch.app.dependencies import get_document_store, get_indexer
from docsearch.app.settings import settings
from docsearch.embeddings.types import DimensionMismatchError, EmbeddingError
from docsearch.search.types import VectorIndexError


async def backfill(organization_id: str, limit: int | None) -> tuple[int, int, int]:
    """Index documents one by one; returns (indexed, skipped, failed)."""
    store = get_document_store()
    indexer = get_indexer()
    document_ids = await asyncio.to_thread(store.list_document_ids, organization_id, limit)
    indexed = skipped = failed = 0
    for document_id in document_ids:
        try:
            result = await indexer.index_document(document_id, organization_id=organization_id)
        except (EmbeddingError, DimensionMismatchError, VectorIndexError) as exc:
            failed += 1
            print(f"FAILED {document_id}: {type(exc).__name__}: {exc}")
            continue
        if result.skipped:
            skipped += 1
            print(f"skipped {document_id}: {result.reason}")
        else:
            indexed += 1
            print(f"indexed {document_id}: {result.chunk_count} chunks, {result.tokens_used} tokens")
    return indexed, skipped, failed


def main() -> None:
    """Embed stored documents using app settings."""
    parser = argparse.ArgumentParser(description="Embed stored documents into the vector index.")
    parser.add_argument(
        "--organization",
        default=settings.default_organization_id,
        help="Organization whose documents are embedded.",
    )
    parser.add_argument("--limit", type=int, default=None, help="Maximum documents to process.")
    args = parser.parse_args()

    if settings.vector_index_backend.lower().strip() != "pgvector":
        print("SEARCH_VECTOR_INDEX is not pgvector; vectors will not outlive this process.")

    indexed, skipped, failed = asyncio.run(backfill(args.organization, args.limit))
    print(f"Indexed {indexed}, skipped {skipped}, failed {failed}")
    if failed:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
