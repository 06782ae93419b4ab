from __future__ import annotations

import pytest

from docsearch.embeddings.tokens import (
    HeuristicTokenEstimator,
    build_token_estimator,
    truncate_to_token_limit,
)
from docsearch.embeddings.types import EmbeddingConfigError


def test_heuristic_estimate_uses_larger_of_char_and_word_counts() -> None:
    estimator = HeuristicTokenEstimator()
    assert estimator.estimate_tokens("") == 0
    assert estimator.estimate_tokens("hello world") == 3
    assert estimator.estimate_tokens("a b c d") == 6


def test_heuristic_estimate_is_monotonic_in_length() -> None:
    estimator = HeuristicTokenEstimator()
    text = "The quick brown fox jumps over the lazy dog. " * 20
    previous = 0
    for end in range(0, len(text), 7):
        current = estimator.estimate_tokens(text[:end])
        assert current >= previous
        previous = current


def test_truncate_snaps_to_late_word_boundary() -> None:
    text = "word " * 100
    result = truncate_to_token_limit(text, 10)
    assert result.endswith("...")
    assert result == ("word " * 8).rstrip() + "..."


def test_truncate_hard_cuts_without_late_space() -> None:
    result = truncate_to_token_limit("x" * 100, 10)
    assert result == "x" * 40 + "..."


def test_truncate_leaves_short_text_alone() -> None:
    assert truncate_to_token_limit("short text", 10) == "short text"


def test_build_token_estimator_rejects_unknown_name() -> None:
    assert isinstance(build_token_estimator("heuristic"), HeuristicTokenEstimator)
    with pytest.raises(EmbeddingConfigError):
        build_token_estimator("sentencepiece")
