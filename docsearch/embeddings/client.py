from __future__ import annotations

"""Single and batched embedding calls with request-size guards."""

import logging
from dataclasses import dataclass, field

from docsearch.embeddings.providers import (
    EmbeddingProvider,
    ProviderResponse,
    validate_vector,
)
from docsearch.embeddings.tokens import (
    HeuristicTokenEstimator,
    TokenEstimator,
    truncate_to_token_limit,
)
from docsearch.embeddings.types import (
    BatchEmbeddingResult,
    EmbeddingConfigError,
    EmbeddingProviderError,
    EmbeddingResult,
    EmbeddingVector,
    EmptyInputError,
)

logger = logging.getLogger(__name__)

EMPTY_PLACEHOLDER = "[empty]"


@dataclass
class EmbeddingClient:
    """Embed text through a provider, splitting large batches and restoring order."""
    provider: EmbeddingProvider
    estimator: TokenEstimator = field(default_factory=HeuristicTokenEstimator)
    max_tokens_per_request: int = 8191
    max_batch_size: int = 2048

    @property
    def dimension(self) -> int:
        return self.provider.dimension

    def is_available(self) -> bool:
        """Return True when the provider is configured."""
        return self.provider.available

    async def embed(self, text: str) -> EmbeddingResult:
        """Embed a single text."""
        cleaned = text.strip() if text else ""
        if not cleaned:
            raise EmptyInputError("Cannot embed empty text")
        self._require_available()
        prepared = self._fit_to_limit(cleaned)
        response = await self.provider.embed([prepared])
        if not response.data:
            raise EmbeddingProviderError("Embedding response contained no vectors")
        vector = validate_vector(response.data[0].embedding, self.dimension)
        return EmbeddingResult(
            vector=EmbeddingVector(values=vector),
            tokens_used=response.prompt_tokens,
        )

    async def embed_batch(self, texts: list[str]) -> BatchEmbeddingResult:
        """Embed many texts; vectors come back in submission order."""
        if not texts:
            return BatchEmbeddingResult(vectors=[], total_tokens=0)
        self._require_available()
        prepared = [
            self._fit_to_limit(text.strip()) if text and text.strip() else EMPTY_PLACEHOLDER
            for text in texts
        ]

        vectors: list[EmbeddingVector] = []
        total_tokens = 0
        for start in range(0, len(prepared), self.max_batch_size):
            batch = prepared[start : start + self.max_batch_size]
            response = await self.provider.embed(batch)
            vectors.extend(self._ordered_vectors(response, len(batch)))
            total_tokens += response.total_tokens
        logger.debug(
            "embedding_batch_complete",
            extra={"inputs": len(texts), "tokens": total_tokens},
        )
        return BatchEmbeddingResult(vectors=vectors, total_tokens=total_tokens)

    def _require_available(self) -> None:
        if not self.is_available():
            raise EmbeddingConfigError("Embedding provider is not configured")

    def _fit_to_limit(self, text: str) -> str:
        """Truncate text that would exceed the per-request token ceiling."""
        if self.estimator.estimate_tokens(text) <= self.max_tokens_per_request:
            return text
        logger.warning(
            "embedding_input_truncated",
            extra={"chars": len(text), "max_tokens": self.max_tokens_per_request},
        )
        return truncate_to_token_limit(text, self.max_tokens_per_request)

    def _ordered_vectors(self, response: ProviderResponse, expected: int) -> list[EmbeddingVector]:
        """Sort one sub-batch by provider index and validate every vector."""
        items = sorted(response.data, key=lambda item: item.index)
        if [item.index for item in items] != list(range(expected)):
            raise EmbeddingProviderError(
                f"Embedding response returned {len(items)} vectors for {expected} inputs"
            )
        return [
            EmbeddingVector(values=validate_vector(item.embedding, self.dimension))
            for item in items
        ]
