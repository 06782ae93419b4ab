from __future__ import annotations

"""Whole-document embedding: chunk, batch embed, combine."""

import logging
from dataclasses import dataclass, field

from docsearch.embeddings.chunking import TextChunker
from docsearch.embeddings.client import EmbeddingClient
from docsearch.embeddings.combiner import VectorCombiner
from docsearch.embeddings.types import EmbeddingResult, EmptyInputError

logger = logging.getLogger(__name__)


@dataclass
class DocumentEmbedder:
    """Produce one unit-length embedding for arbitrarily long text."""
    client: EmbeddingClient
    chunker: TextChunker = field(default_factory=TextChunker)
    combiner: VectorCombiner = field(default_factory=VectorCombiner)

    async def embed_document(
        self,
        text: str,
        max_chunk_tokens: int | None = None,
    ) -> EmbeddingResult:
        """Embed a document, weighting chunks by their token counts."""
        if not text or not text.strip():
            raise EmptyInputError("Cannot embed an empty document")
        chunks = self.chunker.chunk(text, max_tokens=max_chunk_tokens)
        if len(chunks) == 1:
            return await self.client.embed(chunks[0].text)

        batch = await self.client.embed_batch([chunk.text for chunk in chunks])
        combined = self.combiner.combine(
            batch.vectors,
            weights=[chunk.token_count for chunk in chunks],
        )
        logger.info(
            "document_embedded",
            extra={"chunks": len(chunks), "tokens": batch.total_tokens},
        )
        return EmbeddingResult(
            vector=combined,
            tokens_used=batch.total_tokens,
            chunk_count=len(chunks),
        )
