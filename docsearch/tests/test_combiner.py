from __future__ import annotations

import math

import pytest

from docsearch.embeddings.combiner import VectorCombiner, l2_normalize
from docsearch.embeddings.types import DimensionMismatchError, EmbeddingVector, EmptyInputError


def _norm(values: list[float]) -> float:
    return math.sqrt(sum(value * value for value in values))


def test_combined_vector_is_unit_length() -> None:
    combiner = VectorCombiner()
    vectors = [
        EmbeddingVector(values=[1.0, 2.0, 3.0]),
        EmbeddingVector(values=[-4.0, 0.5, 2.0]),
        EmbeddingVector(values=[0.1, 0.1, 9.0]),
    ]
    combined = combiner.combine(vectors)
    assert combined.dimensions == 3
    assert abs(_norm(combined.values) - 1.0) < 1e-6


def test_single_vector_is_returned_unchanged() -> None:
    vector = EmbeddingVector(values=[3.0, 4.0])
    assert VectorCombiner().combine([vector]) is vector


def test_weights_are_normalized_before_averaging() -> None:
    combined = VectorCombiner().combine(
        [EmbeddingVector(values=[1.0, 0.0]), EmbeddingVector(values=[0.0, 1.0])],
        weights=[30, 10],
    )
    expected = l2_normalize([0.75, 0.25])
    assert combined.values == pytest.approx(expected)


def test_empty_input_is_rejected() -> None:
    with pytest.raises(EmptyInputError):
        VectorCombiner().combine([])


def test_dimension_mismatch_is_rejected() -> None:
    with pytest.raises(DimensionMismatchError):
        VectorCombiner().combine(
            [EmbeddingVector(values=[1.0, 0.0]), EmbeddingVector(values=[1.0, 0.0, 0.0])]
        )


def test_invalid_weights_are_rejected() -> None:
    vectors = [EmbeddingVector(values=[1.0, 0.0]), EmbeddingVector(values=[0.0, 1.0])]
    with pytest.raises(ValueError):
        VectorCombiner().combine(vectors, weights=[1.0])
    with pytest.raises(ValueError):
        VectorCombiner().combine(vectors, weights=[0.0, 0.0])


def test_cancelling_vectors_cannot_be_normalized() -> None:
    with pytest.raises(ValueError):
        VectorCombiner().combine(
            [EmbeddingVector(values=[1.0, 0.0]), EmbeddingVector(values=[-1.0, 0.0])]
        )
