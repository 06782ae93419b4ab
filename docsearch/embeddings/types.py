from __future__ import annotations

"""Core data types and errors for the embedding pipeline."""

from dataclasses import dataclass, field


class EmptyInputError(ValueError):
    """Raised when blank text or an empty vector list is embedded or combined."""
    pass


class DimensionMismatchError(ValueError):
    """Raised when vectors of unequal or unexpected length are combined or stored."""
    pass


class EmbeddingError(RuntimeError):
    """Raised when embeddings fail or are invalid."""
    pass


class EmbeddingConfigError(EmbeddingError):
    """Raised when embedding configuration is invalid."""
    pass


class EmbeddingProviderError(EmbeddingError):
    """Raised when the embedding provider rejects a request or returns garbage."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


@dataclass(frozen=True)
class Chunk:
    """Token-bounded slice of a source text."""
    text: str
    start_offset: int
    end_offset: int
    token_count: int


@dataclass(frozen=True)
class EmbeddingVector:
    """Embedding values with their dimensionality."""
    values: list[float]
    dimensions: int = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "dimensions", len(self.values))


@dataclass(frozen=True)
class EmbeddingResult:
    """Embedding for a single text or document with billed token usage."""
    vector: EmbeddingVector
    tokens_used: int
    chunk_count: int = 1


@dataclass(frozen=True)
class BatchEmbeddingResult:
    """Embeddings for a batch of texts in submission order."""
    vectors: list[EmbeddingVector]
    total_tokens: int
