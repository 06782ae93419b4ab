from __future__ import annotations

"""Core data types and errors for search and ranking."""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

SortField = Literal["relevance", "name", "createdAt", "updatedAt", "size"]
SortOrder = Literal["asc", "desc"]
SearchType = Literal["all", "documents", "folders"]

SORT_FIELDS = ("relevance", "name", "createdAt", "updatedAt", "size")
SORT_ORDERS = ("asc", "desc")
SEARCH_TYPES = ("all", "documents", "folders")
MAX_PAGE_SIZE = 100


class ValidationError(ValueError):
    """Raised when filters, pagination or search parameters are malformed."""
    pass


class VectorIndexError(RuntimeError):
    """Raised when a similarity query fails or times out."""
    pass


class DocumentNotFoundError(LookupError):
    """Raised when a document id does not exist."""
    pass


@dataclass(frozen=True)
class DateRange:
    """Inclusive datetime range; either bound may be open."""
    date_from: datetime | None = None
    date_to: datetime | None = None


@dataclass(frozen=True)
class SizeRange:
    """Inclusive size range in bytes; either bound may be open."""
    min_bytes: int | None = None
    max_bytes: int | None = None


@dataclass(frozen=True)
class SearchFilters:
    """Optional predicates shared by lexical and vector search."""
    folder_id: str | None = None
    include_subfolders: bool = True
    mime_types: tuple[str, ...] = ()
    statuses: tuple[str, ...] = ()
    created_at: DateRange | None = None
    updated_at: DateRange | None = None
    size_range: SizeRange | None = None
    created_by_id: str | None = None
    category: str | None = None
    tags: tuple[str, ...] = ()

    def validate(self) -> None:
        """Reject inverted ranges and negative sizes."""
        for label, date_range in (("created_at", self.created_at), ("updated_at", self.updated_at)):
            if date_range is None:
                continue
            if (
                date_range.date_from is not None
                and date_range.date_to is not None
                and date_range.date_from > date_range.date_to
            ):
                raise ValidationError(f"{label} range starts after it ends")
        if self.size_range is not None:
            low, high = self.size_range.min_bytes, self.size_range.max_bytes
            if (low is not None and low < 0) or (high is not None and high < 0):
                raise ValidationError("size_range bounds must not be negative")
            if low is not None and high is not None and low > high:
                raise ValidationError("size_range minimum exceeds maximum")


@dataclass(frozen=True)
class Pagination:
    """Page-based pagination.

    Requests are capped at ``MAX_PAGE_SIZE`` by ``validate``; internal
    over-fetching for fusion may build larger pages directly.
    """
    page: int = 1
    limit: int = 20

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValidationError("page must be at least 1")
        if self.limit < 1:
            raise ValidationError("limit must be at least 1")

    def validate(self) -> None:
        if self.limit > MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class FolderRef:
    """Folder a document lives in."""
    id: str
    name: str
    path: str


@dataclass(frozen=True)
class ScoredResult:
    """A ranked document with per-source score provenance."""
    id: str
    name: str
    score: float
    text_score: float | None = None
    semantic_score: float | None = None
    rerank_score: float | None = None
    snippet: str | None = None
    original_name: str | None = None
    mime_type: str | None = None
    size_bytes: int | None = None
    status: str | None = None
    processing_status: str | None = None
    folder: FolderRef | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


RankedList = list[ScoredResult]


@dataclass(frozen=True)
class FolderResult:
    """Folder matched by name."""
    id: str
    name: str
    path: str
    parent_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class LexicalPage:
    items: list[ScoredResult]
    total: int


@dataclass(frozen=True)
class FolderPage:
    items: list[FolderResult]
    total: int


@dataclass(frozen=True)
class TextSearchData:
    """Lexical search payload tagged by which result kinds it carries."""
    kind: Literal["documents", "folders", "both"]
    documents: list[ScoredResult] | None = None
    folders: list[FolderResult] | None = None


@dataclass(frozen=True)
class SuggestCandidate:
    """Name-matching record returned by the store for autocomplete."""
    id: str
    name: str
    type: Literal["document", "folder"]


@dataclass(frozen=True)
class Suggestion:
    text: str
    type: Literal["document", "folder"]
    id: str
    match_score: float


@dataclass(frozen=True)
class SearchMeta:
    """Response metadata describing how a result was produced."""
    query: str
    algorithm: Literal["text", "text-fallback", "semantic", "hybrid"]
    total: int
    page: int
    limit: int
    took_ms: int
    total_pages: int = field(init=False)
    threshold: float | None = None
    reranked: bool | None = None
    text_weight: float | None = None
    semantic_weight: float | None = None

    def __post_init__(self) -> None:
        pages = math.ceil(self.total / self.limit) if self.limit > 0 else 0
        object.__setattr__(self, "total_pages", pages)


@dataclass(frozen=True)
class SearchResponse:
    data: TextSearchData | list[ScoredResult]
    meta: SearchMeta


@dataclass(frozen=True)
class SuggestResponse:
    suggestions: list[Suggestion]
    query: str
