from __future__ import annotations

"""Weighted combination of chunk embeddings into one document vector."""

import math
from typing import Sequence

from docsearch.embeddings.types import (
    DimensionMismatchError,
    EmbeddingVector,
    EmptyInputError,
)


class VectorCombiner:
    """Weighted average of vectors followed by L2 normalization."""

    def combine(
        self,
        vectors: Sequence[EmbeddingVector],
        weights: Sequence[float] | None = None,
    ) -> EmbeddingVector:
        if not vectors:
            raise EmptyInputError("Cannot combine an empty list of vectors")
        if len(vectors) == 1:
            return vectors[0]

        dimension = vectors[0].dimensions
        for vector in vectors[1:]:
            if vector.dimensions != dimension:
                raise DimensionMismatchError(
                    f"All vectors must have the same dimension: {dimension} != {vector.dimensions}"
                )

        normalized_weights = self._normalize_weights(len(vectors), weights)
        combined = [0.0] * dimension
        for vector, weight in zip(vectors, normalized_weights):
            for idx, value in enumerate(vector.values):
                combined[idx] += value * weight
        return EmbeddingVector(values=l2_normalize(combined))

    @staticmethod
    def _normalize_weights(count: int, weights: Sequence[float] | None) -> list[float]:
        if weights is None:
            return [1.0 / count] * count
        if len(weights) != count:
            raise ValueError(f"Expected {count} weights, got {len(weights)}")
        total = float(sum(weights))
        if total <= 0.0:
            raise ValueError("Weights must sum to a positive value")
        return [weight / total for weight in weights]


def l2_normalize(values: list[float]) -> list[float]:
    """Scale values to unit Euclidean length."""
    norm = math.sqrt(sum(value * value for value in values))
    if norm == 0.0:
        raise ValueError("Cannot normalize a zero-magnitude vector")
    return [value / norm for value in values]
