from __future__ import annotations

"""Token estimation and truncation helpers."""

import math
from dataclasses import dataclass, field
from typing import Any, Protocol

from docsearch.embeddings.types import EmbeddingConfigError

CHARS_PER_TOKEN = 4
TOKENS_PER_WORD = 1.3
TRUNCATION_MARKER = "..."


class TokenEstimator(Protocol):
    """Protocol for token counters used by chunking and request-size guards."""

    def estimate_tokens(self, text: str) -> int:
        """Return the number of tokens the text is expected to use."""
        raise NotImplementedError


@dataclass(frozen=True)
class HeuristicTokenEstimator:
    """Character and word based estimate, close to cl100k_base on English text."""

    def estimate_tokens(self, text: str) -> int:
        if not text:
            return 0
        char_estimate = math.ceil(len(text) / CHARS_PER_TOKEN)
        word_estimate = math.ceil(len(text.split()) * TOKENS_PER_WORD)
        return max(char_estimate, word_estimate)


@dataclass
class TiktokenEstimator:
    """Exact counts using a tiktoken byte-pair encoding."""
    encoding_name: str = "cl100k_base"
    encoding: Any = field(init=False, repr=False)

    def __post_init__(self) -> None:
        """Load the configured encoding."""
        try:
            import tiktoken
        except ImportError as exc:
            raise EmbeddingConfigError("tiktoken package is required for TiktokenEstimator") from exc
        try:
            self.encoding = tiktoken.get_encoding(self.encoding_name)
        except ValueError as exc:
            raise EmbeddingConfigError(f"Unknown tiktoken encoding: {self.encoding_name}") from exc

    def estimate_tokens(self, text: str) -> int:
        if not text:
            return 0
        return len(self.encoding.encode(text))


def build_token_estimator(name: str, encoding_name: str = "cl100k_base") -> TokenEstimator:
    """Factory for token estimators based on configuration."""
    normalized = name.strip().lower()
    if normalized in {"", "heuristic"}:
        return HeuristicTokenEstimator()
    if normalized == "tiktoken":
        return TiktokenEstimator(encoding_name=encoding_name)
    raise EmbeddingConfigError(f"Unsupported token estimator: {name}")


def truncate_to_token_limit(text: str, max_tokens: int) -> str:
    """Cut text to roughly max_tokens, preferring a late word boundary."""
    target_chars = max_tokens * CHARS_PER_TOKEN
    if len(text) <= target_chars:
        return text
    truncated = text[:target_chars]
    last_space = truncated.rfind(" ")
    if last_space > target_chars * 0.8:
        truncated = truncated[:last_space]
    return truncated + TRUNCATION_MARKER
