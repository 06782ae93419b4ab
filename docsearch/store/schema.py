from __future__ import annotations

"""SQLAlchemy Core schema for documents, folders and tags."""

from sqlalchemy import (
    JSON,
    BigInteger,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    and_,
    exists,
    func,
    or_,
    select,
)
from sqlalchemy.sql.elements import ColumnElement

from docsearch.search.types import SearchFilters

DELETED_STATUS = "DELETED"

metadata = MetaData()

folders = Table(
    "folders",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("organization_id", String(64), nullable=False, index=True),
    Column("parent_id", String(36), ForeignKey("folders.id"), nullable=True),
    Column("name", String(255), nullable=False),
    Column("path", Text, nullable=False),
    Column("depth", Integer, nullable=False, default=0),
    Column("created_by_id", String(64), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

documents = Table(
    "documents",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("organization_id", String(64), nullable=False, index=True),
    Column("folder_id", String(36), ForeignKey("folders.id"), nullable=True),
    Column("name", String(255), nullable=False),
    Column("original_name", String(255), nullable=False),
    Column("mime_type", String(127), nullable=False),
    Column("size_bytes", BigInteger, nullable=False, default=0),
    Column("status", String(32), nullable=False),
    Column("processing_status", String(32), nullable=False),
    Column("category", String(127), nullable=True),
    Column("metadata", JSON, nullable=True, key="doc_metadata"),
    Column("extracted_text", Text, nullable=True),
    Column("created_by_id", String(64), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    Column("deleted_at", DateTime(timezone=True), nullable=True),
)

document_tags = Table(
    "document_tags",
    metadata,
    Column("document_id", String(36), ForeignKey("documents.id"), primary_key=True),
    Column("tag", String(127), primary_key=True),
)


def text_match_condition(query: str) -> ColumnElement[bool]:
    """Case-insensitive substring match on names, body text and metadata title."""
    d = documents.c
    return or_(
        d.name.icontains(query, autoescape=True),
        d.original_name.icontains(query, autoescape=True),
        d.extracted_text.icontains(query, autoescape=True),
        d.doc_metadata["title"].as_string().icontains(query, autoescape=True),
    )


def document_filter_conditions(
    organization_id: str,
    filters: SearchFilters | None,
) -> list[ColumnElement[bool]]:
    """Build WHERE conditions for an organization scope and optional filters.

    Soft-deleted documents are excluded even when ``filters.statuses`` names
    them. Subfolder inclusion compares folder paths against the selected
    folder's path with a correlated sub-select.
    """
    d = documents.c
    conditions: list[ColumnElement[bool]] = [
        d.organization_id == organization_id,
        d.status != DELETED_STATUS,
        d.deleted_at.is_(None),
    ]
    if filters is None:
        return conditions

    if filters.folder_id:
        if filters.include_subfolders:
            conditions.append(
                or_(
                    d.folder_id == filters.folder_id,
                    d.folder_id.in_(_descendant_folder_ids(organization_id, filters.folder_id)),
                )
            )
        else:
            conditions.append(d.folder_id == filters.folder_id)
    if filters.mime_types:
        conditions.append(d.mime_type.in_(list(filters.mime_types)))
    if filters.statuses:
        conditions.append(d.status.in_(list(filters.statuses)))
    if filters.created_at is not None:
        created = filters.created_at
        conditions.extend(_range_conditions(d.created_at, created.date_from, created.date_to))
    if filters.updated_at is not None:
        updated = filters.updated_at
        conditions.extend(_range_conditions(d.updated_at, updated.date_from, updated.date_to))
    if filters.size_range is not None:
        size = filters.size_range
        conditions.extend(_range_conditions(d.size_bytes, size.min_bytes, size.max_bytes))
    if filters.created_by_id:
        conditions.append(d.created_by_id == filters.created_by_id)
    if filters.category:
        conditions.append(d.category == filters.category)
    if filters.tags:
        conditions.append(
            exists().where(
                and_(
                    document_tags.c.document_id == d.id,
                    document_tags.c.tag.in_(list(filters.tags)),
                )
            )
        )
    return conditions


def _descendant_folder_ids(organization_id: str, folder_id: str):
    """Select ids of folders nested anywhere below folder_id."""
    parent_path = (
        select(folders.c.path)
        .where(folders.c.id == folder_id, folders.c.organization_id == organization_id)
        .scalar_subquery()
    )
    prefix = parent_path.concat("/")
    return select(folders.c.id).where(
        folders.c.organization_id == organization_id,
        func.substr(folders.c.path, 1, func.length(prefix)) == prefix,
    )


def _range_conditions(column, low, high) -> list[ColumnElement[bool]]:
    conditions: list[ColumnElement[bool]] = []
    if low is not None:
        conditions.append(column >= low)
    if high is not None:
        conditions.append(column <= high)
    return conditions
