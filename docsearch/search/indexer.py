from __future__ import annotations

"""Embed stored documents and keep the vector index in sync."""

import asyncio
import logging
from dataclasses import dataclass

from docsearch.embeddings.document import DocumentEmbedder
from docsearch.embeddings.types import DimensionMismatchError
from docsearch.search.types import DocumentNotFoundError
from docsearch.search.vector import VectorIndex
from docsearch.store.documents import DocumentRow, DocumentStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexResult:
    """Outcome of embedding one document."""
    document_id: str
    dimensions: int = 0
    tokens_used: int = 0
    chunk_count: int = 0
    skipped: bool = False
    reason: str | None = None


@dataclass(frozen=True)
class EmbeddingStats:
    total_documents: int
    documents_with_embeddings: int
    coverage_percent: float


@dataclass
class EmbeddingIndexer:
    store: DocumentStore
    index: VectorIndex
    embedder: DocumentEmbedder
    dimension: int

    async def index_document(
        self,
        document_id: str,
        organization_id: str | None = None,
    ) -> IndexResult:
        """Embed a document's extracted text and upsert the vector."""
        document = await self._load(document_id, organization_id)
        if not self.embedder.client.is_available():
            return self._skip(document_id, "embeddings_unavailable")
        if not document.extracted_text or not document.extracted_text.strip():
            return self._skip(document_id, "no_extracted_text")

        result = await self.embedder.embed_document(document.extracted_text)
        if result.vector.dimensions != self.dimension:
            raise DimensionMismatchError(
                f"Embedding dimension mismatch: expected {self.dimension}, "
                f"got {result.vector.dimensions}"
            )
        await asyncio.to_thread(
            self.index.upsert,
            document.id,
            document.organization_id,
            result.vector.values,
        )
        logger.info(
            "document_indexed",
            extra={
                "document_id": document_id,
                "chunks": result.chunk_count,
                "tokens": result.tokens_used,
            },
        )
        return IndexResult(
            document_id=document_id,
            dimensions=result.vector.dimensions,
            tokens_used=result.tokens_used,
            chunk_count=result.chunk_count,
        )

    async def _load(self, document_id: str, organization_id: str | None) -> DocumentRow:
        document = await asyncio.to_thread(self.store.get_document, document_id)
        if document is None or (
            organization_id is not None and document.organization_id != organization_id
        ):
            raise DocumentNotFoundError(f"Document not found: {document_id}")
        return document

    def _skip(self, document_id: str, reason: str) -> IndexResult:
        logger.info("embedding_skipped", extra={"document_id": document_id, "reason": reason})
        return IndexResult(document_id=document_id, skipped=True, reason=reason)

    async def delete_document(self, document_id: str, organization_id: str | None = None) -> bool:
        """Remove a document's vector; returns False if none was stored."""
        if organization_id is not None:
            await self._load(document_id, organization_id)
        removed = await asyncio.to_thread(self.index.delete, document_id)
        logger.info("document_vector_deleted", extra={"document_id": document_id, "removed": removed})
        return removed

    async def embedding_stats(self, organization_id: str) -> EmbeddingStats:
        total = await asyncio.to_thread(self.store.count_documents, organization_id)
        embedded = await asyncio.to_thread(self.index.count, organization_id)
        coverage = round(embedded / total * 100, 2) if total else 0.0
        return EmbeddingStats(
            total_documents=total,
            documents_with_embeddings=embedded,
            coverage_percent=coverage,
        )
