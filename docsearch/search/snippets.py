from __future__ import annotations

"""Snippet extraction and autocomplete match scoring."""

ELLIPSIS = "..."


def generate_snippet(text: str | None, max_length: int = 200) -> str | None:
    """Return a short preview of text, cut at a late word boundary when possible."""
    if not text:
        return None
    cleaned = text.strip()
    if not cleaned:
        return None
    if len(cleaned) <= max_length:
        return cleaned
    truncated = cleaned[:max_length]
    last_space = truncated.rfind(" ")
    if last_space > max_length * 0.7:
        truncated = truncated[:last_space]
    return truncated + ELLIPSIS


def match_score(text: str, query: str) -> float:
    """Score how well a name matches an autocomplete prefix."""
    lowered = text.lower()
    needle = query.lower()
    if lowered.startswith(needle):
        return 1.0
    if f" {needle}" in lowered:
        return 0.8
    if needle in lowered:
        return 0.6
    return 0.4
