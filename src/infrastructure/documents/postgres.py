import json
from contextlib import closing
from importlib.util import find_spec
from typing import Optional

from src.core.documents.models import (
    DocumentListFilters,
    DocumentRecord,
    DocumentSortField,
    DocumentStatus,
    Principal,
    SortDirection,
)
from src.core.documents.queries import is_pending_for, matches_filters, paginate, sort_documents
from src.infrastructure.postgres_migrations import apply_postgres_migrations


class PostgresDocumentRepository:
    def __init__(self, *, dsn: str) -> None:
        if not dsn:
            raise RuntimeError("DOCUMENT_POSTGRES_DSN_REQUIRED")
        if find_spec("psycopg") is None:
            raise RuntimeError("DOCUMENT_POSTGRES_DRIVER_MISSING")
        self._dsn = dsn
        self._init_db()

    def create_document(self, document: DocumentRecord) -> None:
        query = """
            INSERT INTO document_records (
                document_id,
                title,
                document_type,
                department,
                status,
                created_by,
                created_at,
                updated_at,
                current_step,
                revision,
                aggregate_json
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        """
        with closing(self._connect()) as connection:
            connection.execute(
                query,
                (
                    document.document_id,
                    document.title,
                    document.document_type.value,
                    document.department,
                    document.status.value,
                    document.created_by,
                    document.created_at.isoformat(),
                    document.updated_at.isoformat(),
                    document.current_step,
                    document.revision,
                    _json_dump(document.model_dump(mode="json")),
                ),
            )
            connection.commit()

    def get_document(self, *, document_id: str) -> Optional[DocumentRecord]:
        query = """
            SELECT
                document_id,
                revision,
                aggregate_json
            FROM document_records
            WHERE document_id = %s
        """
        with closing(self._connect()) as connection:
            row = connection.execute(query, (document_id,)).fetchone()
        return _to_document(row)

    def save_document(self, document: DocumentRecord, *, expected_revision: int) -> bool:
        query = """
            UPDATE document_records SET
                title = %s,
                document_type = %s,
                department = %s,
                status = %s,
                updated_at = %s,
                current_step = %s,
                revision = %s,
                aggregate_json = %s
            WHERE document_id = %s AND revision = %s
        """
        with closing(self._connect()) as connection:
            cursor = connection.execute(
                query,
                (
                    document.title,
                    document.document_type.value,
                    document.department,
                    document.status.value,
                    document.updated_at.isoformat(),
                    document.current_step,
                    document.revision,
                    _json_dump(document.model_dump(mode="json")),
                    document.document_id,
                    expected_revision,
                ),
            )
            updated = cursor.rowcount == 1
            if updated:
                connection.commit()
            else:
                connection.rollback()
        return updated

    def list_documents(
        self,
        *,
        filters: DocumentListFilters,
        page: int,
        limit: int,
        sort_by: DocumentSortField,
        sort_direction: SortDirection,
    ) -> tuple[list[DocumentRecord], int]:
        where_clauses = []
        args: list[str] = []
        if filters.status is not None:
            where_clauses.append("status = %s")
            args.append(filters.status.value)
        if filters.document_type is not None:
            where_clauses.append("document_type = %s")
            args.append(filters.document_type.value)
        if filters.department is not None:
            where_clauses.append("department = %s")
            args.append(filters.department)
        if filters.created_by is not None:
            where_clauses.append("created_by = %s")
            args.append(filters.created_by)
        documents = [
            document
            for document in self._select_documents(where_clauses=where_clauses, args=args)
            if matches_filters(document, filters)
        ]
        ordered = sort_documents(documents, sort_by=sort_by, sort_direction=sort_direction)
        return paginate(ordered, page=page, limit=limit)

    def list_pending_for(
        self, *, principal: Principal, page: int, limit: int
    ) -> tuple[list[DocumentRecord], int]:
        documents = [
            document
            for document in self._select_documents(
                where_clauses=["status = %s"],
                args=[DocumentStatus.PENDING_REVIEW.value],
            )
            if is_pending_for(principal, document)
        ]
        return paginate(sort_documents(documents), page=page, limit=limit)

    def _select_documents(self, *, where_clauses: list[str], args: list[str]) -> list[DocumentRecord]:
        where_sql = f"WHERE {' AND '.join(where_clauses)}" if where_clauses else ""
        query = f"""
            SELECT
                document_id,
                revision,
                aggregate_json
            FROM document_records
            {where_sql}
            ORDER BY created_at DESC, document_id DESC
        """
        with closing(self._connect()) as connection:
            rows = connection.execute(query, tuple(args)).fetchall()
        documents = [_to_document(row) for row in rows]
        return [document for document in documents if document is not None]

    def _connect(self):
        psycopg, dict_row = _import_psycopg()
        return psycopg.connect(self._dsn, row_factory=dict_row)

    def _init_db(self) -> None:
        with closing(self._connect()) as connection:
            apply_postgres_migrations(connection=connection, namespace="documents")


def _import_psycopg():
    import psycopg
    from psycopg.rows import dict_row

    return psycopg, dict_row


def _json_dump(value: dict) -> str:
    return json.dumps(value, separators=(",", ":"), sort_keys=True)


def _to_document(row) -> Optional[DocumentRecord]:
    if row is None:
        return None
    payload = json.loads(row["aggregate_json"])
    payload["revision"] = int(row["revision"])
    return DocumentRecord.model_validate(payload)
