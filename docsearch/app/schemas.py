from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from docsearch.search.types import (
    DateRange,
    SearchFilters,
    SearchResponse,
    SizeRange,
    SuggestResponse,
    TextSearchData,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class DateRangeModel(CamelModel):
    date_from: datetime | None = Field(default=None, alias="from")
    date_to: datetime | None = Field(default=None, alias="to")


class SizeRangeModel(CamelModel):
    min: int | None = Field(default=None, ge=0)
    max: int | None = Field(default=None, ge=0)


class FiltersModel(CamelModel):
    folder_id: str | None = None
    include_subfolders: bool = True
    mime_types: list[str] | None = None
    statuses: list[str] | None = None
    created_at: DateRangeModel | None = None
    updated_at: DateRangeModel | None = None
    size_range: SizeRangeModel | None = None
    created_by_id: str | None = None
    category: str | None = None
    tags: list[str] | None = None

    def to_filters(self) -> SearchFilters:
        return SearchFilters(
            folder_id=self.folder_id,
            include_subfolders=self.include_subfolders,
            mime_types=tuple(self.mime_types or ()),
            statuses=tuple(self.statuses or ()),
            created_at=_date_range(self.created_at),
            updated_at=_date_range(self.updated_at),
            size_range=(
                SizeRange(min_bytes=self.size_range.min, max_bytes=self.size_range.max)
                if self.size_range
                else None
            ),
            created_by_id=self.created_by_id,
            category=self.category,
            tags=tuple(self.tags or ()),
        )


def _date_range(model: DateRangeModel | None) -> DateRange | None:
    if model is None:
        return None
    return DateRange(date_from=model.date_from, date_to=model.date_to)


class SemanticSearchRequest(CamelModel):
    query: str = Field(min_length=1)
    limit: int = Field(default=10, ge=1, le=50)
    threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    filters: FiltersModel | None = None
    enable_reranking: bool = False


class HybridSearchRequest(CamelModel):
    query: str = Field(min_length=1)
    limit: int = Field(default=20, ge=1, le=100)
    text_weight: float = Field(default=0.3, ge=0.0, le=1.0)
    semantic_weight: float = Field(default=0.7, ge=0.0, le=1.0)
    threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    filters: FiltersModel | None = None
    enable_reranking: bool = True


class FolderRefModel(CamelModel):
    id: str
    name: str
    path: str


class SearchResultModel(CamelModel):
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
    folder: FolderRefModel | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class FolderResultModel(CamelModel):
    id: str
    name: str
    path: str
    parent_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class TextSearchDataModel(CamelModel):
    kind: Literal["documents", "folders", "both"]
    documents: list[SearchResultModel] | None = None
    folders: list[FolderResultModel] | None = None


class SearchMetaModel(CamelModel):
    query: str
    algorithm: str
    total: int
    page: int
    limit: int
    total_pages: int
    took_ms: int = Field(alias="took_ms")
    threshold: float | None = None
    reranked: bool | None = None
    text_weight: float | None = None
    semantic_weight: float | None = None


class SuggestionModel(CamelModel):
    text: str
    type: Literal["document", "folder"]
    id: str
    match_score: float


class IndexResultModel(CamelModel):
    document_id: str
    dimensions: int
    tokens_used: int
    chunk_count: int
    skipped: bool
    reason: str | None = None


class EmbeddingCoverageResponse(CamelModel):
    organization_id: str
    total_documents: int
    documents_with_embeddings: int
    coverage_percent: float


class EmbeddingHealthResponse(BaseModel):
    provider: str
    model: str | None
    configured_dimension: int
    expected_dimension: int | None = None
    ok: bool
    status: str
    available: bool = False
    detail: str | None = None
    action: str | None = None


def _dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


def serialize_search_response(response: SearchResponse) -> dict[str, Any]:
    """Render a search response with camelCase keys and absent fields omitted."""
    if isinstance(response.data, TextSearchData):
        data: Any = _dump(TextSearchDataModel.model_validate(response.data))
    else:
        data = [_dump(SearchResultModel.model_validate(item)) for item in response.data]
    return {"data": data, "meta": _dump(SearchMetaModel.model_validate(response.meta))}


def serialize_suggest_response(response: SuggestResponse) -> dict[str, Any]:
    return {
        "suggestions": [_dump(SuggestionModel.model_validate(item)) for item in response.suggestions],
        "query": response.query,
    }
