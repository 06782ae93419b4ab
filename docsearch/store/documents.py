from __future__ import annotations

"""Document and folder persistence backed by SQLAlchemy Core."""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable

from sqlalchemy import and_, create_engine, func, select
from sqlalchemy.engine import Engine, RowMapping
from sqlalchemy.sql import Select

from docsearch.search.types import FolderRef, SearchFilters
from docsearch.store.schema import (
    document_filter_conditions,
    document_tags,
    documents,
    folders,
    metadata,
)


class DocumentStoreError(RuntimeError):
    """Raised when document persistence fails."""
    pass


@dataclass(frozen=True)
class DocumentRow:
    """Stored document joined with its folder."""
    id: str
    organization_id: str
    name: str
    original_name: str
    mime_type: str
    size_bytes: int
    status: str
    processing_status: str
    extracted_text: str | None
    folder: FolderRef | None
    created_at: datetime
    updated_at: datetime
    category: str | None = None
    metadata: dict[str, Any] | None = None


@dataclass(frozen=True)
class FolderRow:
    id: str
    organization_id: str
    name: str
    path: str
    depth: int
    parent_id: str | None
    created_at: datetime
    updated_at: datetime


def document_select() -> Select:
    """Select documents with their folder name and path."""
    return select(
        documents,
        folders.c.name.label("folder_name"),
        folders.c.path.label("folder_path"),
    ).select_from(documents.outerjoin(folders, documents.c.folder_id == folders.c.id))


def row_to_document(row: RowMapping) -> DocumentRow:
    """Map a row produced by ``document_select`` to a DocumentRow."""
    d = documents.c
    folder_id = row[d.folder_id]
    folder = None
    if folder_id and row["folder_name"] is not None:
        folder = FolderRef(id=folder_id, name=row["folder_name"], path=row["folder_path"])
    return DocumentRow(
        id=row[d.id],
        organization_id=row[d.organization_id],
        name=row[d.name],
        original_name=row[d.original_name],
        mime_type=row[d.mime_type],
        size_bytes=row[d.size_bytes],
        status=row[d.status],
        processing_status=row[d.processing_status],
        extracted_text=row[d.extracted_text],
        folder=folder,
        created_at=row[d.created_at],
        updated_at=row[d.updated_at],
        category=row[d.category],
        metadata=row[d.doc_metadata],
    )


class DocumentStore:
    """Store documents, folders and tags in a SQL database."""

    def __init__(self, connection_uri: str) -> None:
        """Initialize the store and ensure tables exist."""
        self._engine = create_engine(connection_uri)
        metadata.create_all(self._engine)

    @property
    def engine(self) -> Engine:
        return self._engine

    def add_folder(
        self,
        organization_id: str,
        name: str,
        parent_id: str | None = None,
        created_by_id: str | None = None,
        folder_id: str | None = None,
    ) -> FolderRow:
        """Create a folder; its path and depth derive from the parent."""
        if "/" in name:
            raise DocumentStoreError("Folder names must not contain '/'")
        now = datetime.now(timezone.utc)
        path = f"/{name}"
        depth = 0
        with self._engine.begin() as conn:
            if parent_id:
                parent = conn.execute(
                    select(folders.c.path, folders.c.depth).where(
                        folders.c.id == parent_id,
                        folders.c.organization_id == organization_id,
                    )
                ).first()
                if parent is None:
                    raise DocumentStoreError(f"Parent folder not found: {parent_id}")
                path = f"{parent.path}/{name}"
                depth = parent.depth + 1
            record = FolderRow(
                id=folder_id or str(uuid.uuid4()),
                organization_id=organization_id,
                name=name,
                path=path,
                depth=depth,
                parent_id=parent_id,
                created_at=now,
                updated_at=now,
            )
            conn.execute(
                folders.insert().values(
                    id=record.id,
                    organization_id=organization_id,
                    parent_id=parent_id,
                    name=name,
                    path=path,
                    depth=depth,
                    created_by_id=created_by_id,
                    created_at=now,
                    updated_at=now,
                )
            )
        return record

    def add_document(
        self,
        organization_id: str,
        name: str,
        extracted_text: str | None = None,
        folder_id: str | None = None,
        mime_type: str = "application/pdf",
        size_bytes: int = 0,
        status: str = "ACTIVE",
        processing_status: str = "COMPLETED",
        category: str | None = None,
        tags: Iterable[str] = (),
        doc_metadata: dict[str, Any] | None = None,
        created_by_id: str | None = None,
        original_name: str | None = None,
        document_id: str | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
        deleted_at: datetime | None = None,
    ) -> str:
        """Insert a document and its tags, returning the document id."""
        now = datetime.now(timezone.utc)
        record_id = document_id or str(uuid.uuid4())
        with self._engine.begin() as conn:
            conn.execute(
                documents.insert().values(
                    id=record_id,
                    organization_id=organization_id,
                    folder_id=folder_id,
                    name=name,
                    original_name=original_name or name,
                    mime_type=mime_type,
                    size_bytes=size_bytes,
                    status=status,
                    processing_status=processing_status,
                    category=category,
                    doc_metadata=doc_metadata,
                    extracted_text=extracted_text,
                    created_by_id=created_by_id,
                    created_at=created_at or now,
                    updated_at=updated_at or created_at or now,
                    deleted_at=deleted_at,
                )
            )
            tag_rows = [{"document_id": record_id, "tag": tag} for tag in dict.fromkeys(tags)]
            if tag_rows:
                conn.execute(document_tags.insert(), tag_rows)
        return record_id

    def get_document(self, document_id: str) -> DocumentRow | None:
        """Return a document by id, or None if it does not exist."""
        stmt = document_select().where(documents.c.id == document_id)
        with self._engine.connect() as conn:
            row = conn.execute(stmt).mappings().first()
        return row_to_document(row) if row is not None else None

    def list_document_ids(self, organization_id: str, limit: int | None = None) -> list[str]:
        """Return ids of live documents, oldest first."""
        stmt = (
            select(documents.c.id)
            .where(*document_filter_conditions(organization_id, None))
            .order_by(documents.c.created_at.asc(), documents.c.id.asc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._engine.connect() as conn:
            return list(conn.execute(stmt).scalars())

    def count_documents(self, organization_id: str) -> int:
        """Count live documents in an organization."""
        stmt = (
            select(func.count())
            .select_from(documents)
            .where(*document_filter_conditions(organization_id, None))
        )
        with self._engine.connect() as conn:
            return int(conn.execute(stmt).scalar_one())

    def fetch_documents(
        self,
        organization_id: str,
        document_ids: list[str],
        filters: SearchFilters | None = None,
    ) -> dict[str, DocumentRow]:
        """Load the listed documents that pass the organization scope and filters."""
        if not document_ids:
            return {}
        conditions = document_filter_conditions(organization_id, filters)
        stmt = document_select().where(and_(documents.c.id.in_(document_ids), *conditions))
        with self._engine.connect() as conn:
            rows = conn.execute(stmt).mappings().all()
        return {row[documents.c.id]: row_to_document(row) for row in rows}
