from __future__ import annotations

"""Sentence-aware, token-bounded text chunking with overlap."""

import re
from dataclasses import dataclass, field

from docsearch.embeddings.tokens import HeuristicTokenEstimator, TokenEstimator
from docsearch.embeddings.types import Chunk

_WHITESPACE_RE = re.compile(r"\s+")
_SENTENCE_END_RE = re.compile(r"[.!?]+\s+")
_WORD_RE = re.compile(r"\S+")


def normalize_text(text: str) -> str:
    """Normalize whitespace and line endings in text."""
    return _WHITESPACE_RE.sub(" ", text.replace("\r\n", "\n")).strip()


def split_sentences(text: str) -> list[tuple[int, int]]:
    """Return (start, end) spans of sentences; trailing whitespace stays with each sentence."""
    spans: list[tuple[int, int]] = []
    start = 0
    for match in _SENTENCE_END_RE.finditer(text):
        spans.append((start, match.end()))
        start = match.end()
    if start < len(text) and text[start:].strip():
        spans.append((start, len(text)))
    return spans


@dataclass
class TextChunker:
    """Split long text into overlapping chunks that fit an embedding budget.

    Sentences are packed greedily until the next one would exceed
    ``max_tokens``. Each new chunk is seeded with up to ``1.5 * overlap_tokens``
    of the preceding sentences. Sentences that are too long on their own are
    split on word boundaries; those sub-chunks carry no overlap.
    """
    estimator: TokenEstimator = field(default_factory=HeuristicTokenEstimator)
    max_tokens: int = 500
    overlap_tokens: int = 50

    def chunk(
        self,
        text: str,
        max_tokens: int | None = None,
        overlap_tokens: int | None = None,
    ) -> list[Chunk]:
        """Chunk text; offsets index into the stripped text."""
        limit = self.max_tokens if max_tokens is None else max_tokens
        overlap = self.overlap_tokens if overlap_tokens is None else overlap_tokens
        if limit <= 0:
            raise ValueError("max_tokens must be positive")
        if overlap < 0:
            raise ValueError("overlap_tokens must not be negative")

        source = text.strip() if text else ""
        if not source:
            return []
        if self._tokens(source) <= limit:
            return [self._make_chunk(source, 0, len(source))]

        sentences = split_sentences(source)
        chunks: list[Chunk] = []
        chunk_start: int | None = None
        chunk_end = 0

        for idx, (start, end) in enumerate(sentences):
            if self._tokens(source[start:end]) > limit:
                if chunk_start is not None:
                    chunks.append(self._make_chunk(source, chunk_start, chunk_end))
                chunks.extend(self._split_long_sentence(source, start, end, limit))
                chunk_start = None
                continue

            if chunk_start is None:
                chunk_start, chunk_end = start, end
                continue

            if self._tokens(source[chunk_start:end]) <= limit:
                chunk_end = end
                continue

            chunks.append(self._make_chunk(source, chunk_start, chunk_end))
            seeded_start = self._overlap_start(source, sentences, idx, overlap)
            if seeded_start is None or self._tokens(source[seeded_start:end]) > limit:
                seeded_start = start
            chunk_start, chunk_end = seeded_start, end

        if chunk_start is not None:
            chunks.append(self._make_chunk(source, chunk_start, chunk_end))
        return [chunk for chunk in chunks if chunk.text]

    def _tokens(self, text: str) -> int:
        return self.estimator.estimate_tokens(text)

    def _make_chunk(self, source: str, start: int, end: int) -> Chunk:
        """Build a chunk from a span, trimming surrounding whitespace."""
        raw = source[start:end]
        text = raw.strip()
        leading = len(raw) - len(raw.lstrip())
        begin = start + leading
        return Chunk(
            text=text,
            start_offset=begin,
            end_offset=begin + len(text),
            token_count=self._tokens(text),
        )

    def _overlap_start(
        self,
        source: str,
        sentences: list[tuple[int, int]],
        current: int,
        target_tokens: int,
    ) -> int | None:
        """Walk back from the current sentence to find where the overlap prefix begins."""
        overlap_start: int | None = None
        collected = 0
        ceiling = target_tokens * 1.5
        idx = current - 1
        while idx >= 0 and collected < target_tokens:
            start, end = sentences[idx]
            tokens = self._tokens(source[start:end])
            if collected + tokens > ceiling:
                break
            overlap_start = start
            collected += tokens
            idx -= 1
        return overlap_start

    def _split_long_sentence(
        self,
        source: str,
        start: int,
        end: int,
        limit: int,
    ) -> list[Chunk]:
        """Split one oversized sentence on whitespace; no overlap is applied."""
        chunks: list[Chunk] = []
        piece_start: int | None = None
        piece_end = start
        for word in _WORD_RE.finditer(source, start, end):
            if piece_start is None:
                piece_start, piece_end = word.start(), word.end()
                continue
            if self._tokens(source[piece_start:word.end()]) > limit:
                chunks.append(self._make_chunk(source, piece_start, piece_end))
                piece_start = word.start()
            piece_end = word.end()
        if piece_start is not None:
            chunks.append(self._make_chunk(source, piece_start, piece_end))
        return chunks
