from __future__ import annotations

import math
from dataclasses import dataclass, field

import pytest

from docsearch.embeddings.chunking import TextChunker
from docsearch.embeddings.client import EmbeddingClient
from docsearch.embeddings.document import DocumentEmbedder
from docsearch.embeddings.providers import HashEmbeddingProvider, ProviderResponse
from docsearch.embeddings.types import EmptyInputError

pytestmark = pytest.mark.anyio


@dataclass
class CountingProvider:
    """Hash provider that records every request it receives."""
    dimension: int = 64
    requests: list[list[str]] = field(default_factory=list)

    @property
    def available(self) -> bool:
        return True

    async def embed(self, inputs: list[str]) -> ProviderResponse:
        self.requests.append(list(inputs))
        return await HashEmbeddingProvider(dimension=self.dimension).embed(inputs)


def build_embedder(provider: CountingProvider) -> DocumentEmbedder:
    return DocumentEmbedder(
        client=EmbeddingClient(provider=provider),
        chunker=TextChunker(max_tokens=20, overlap_tokens=5),
    )


async def test_short_document_is_embedded_directly() -> None:
    provider = CountingProvider()
    embedder = build_embedder(provider)

    result = await embedder.embed_document("Invoice totals for March.")
    direct = await EmbeddingClient(provider=HashEmbeddingProvider(dimension=64)).embed(
        "Invoice totals for March."
    )

    assert result.chunk_count == 1
    assert provider.requests == [["Invoice totals for March."]]
    assert result.vector.values == direct.vector.values


async def test_long_document_is_chunked_and_combined() -> None:
    provider = CountingProvider()
    embedder = build_embedder(provider)
    text = " ".join(f"Paragraph {i} covers vendor payments and invoices." for i in range(12))

    result = await embedder.embed_document(text)

    assert result.chunk_count > 1
    assert len(provider.requests) == 1
    assert len(provider.requests[0]) == result.chunk_count
    assert result.vector.dimensions == 64
    norm = math.sqrt(sum(value * value for value in result.vector.values))
    assert abs(norm - 1.0) < 1e-6
    assert result.tokens_used > 0


async def test_chunk_size_override_changes_chunk_count() -> None:
    embedder = build_embedder(CountingProvider())
    text = " ".join(f"Paragraph {i} covers vendor payments and invoices." for i in range(12))

    small = await embedder.embed_document(text, max_chunk_tokens=20)
    large = await embedder.embed_document(text, max_chunk_tokens=1000)

    assert small.chunk_count > 1
    assert large.chunk_count == 1


async def test_blank_document_is_rejected() -> None:
    embedder = build_embedder(CountingProvider())
    with pytest.raises(EmptyInputError):
        await embedder.embed_document("  \n ")
