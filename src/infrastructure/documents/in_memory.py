from copy import deepcopy
from threading import Lock
from typing import Optional

from src.core.documents.models import (
    DocumentListFilters,
    DocumentRecord,
    DocumentSortField,
    Principal,
    SortDirection,
)
from src.core.documents.queries import is_pending_for, matches_filters, paginate, sort_documents
from src.core.documents.repository import DocumentRepository


class InMemoryDocumentRepository(DocumentRepository):
    def __init__(self) -> None:
        self._lock = Lock()
        self._documents: dict[str, DocumentRecord] = {}

    def create_document(self, document: DocumentRecord) -> None:
        with self._lock:
            if document.document_id in self._documents:
                raise RuntimeError("DOCUMENT_ALREADY_EXISTS")
            self._documents[document.document_id] = deepcopy(document)

    def get_document(self, *, document_id: str) -> Optional[DocumentRecord]:
        with self._lock:
            document = self._documents.get(document_id)
            return deepcopy(document) if document is not None else None

    def save_document(self, document: DocumentRecord, *, expected_revision: int) -> bool:
        with self._lock:
            stored = self._documents.get(document.document_id)
            if stored is None or stored.revision != expected_revision:
                return False
            self._documents[document.document_id] = deepcopy(document)
            return True

    def list_documents(
        self,
        *,
        filters: DocumentListFilters,
        page: int,
        limit: int,
        sort_by: DocumentSortField,
        sort_direction: SortDirection,
    ) -> tuple[list[DocumentRecord], int]:
        with self._lock:
            rows = [
                deepcopy(document)
                for document in self._documents.values()
                if matches_filters(document, filters)
            ]
        ordered = sort_documents(rows, sort_by=sort_by, sort_direction=sort_direction)
        return paginate(ordered, page=page, limit=limit)

    def list_pending_for(
        self, *, principal: Principal, page: int, limit: int
    ) -> tuple[list[DocumentRecord], int]:
        with self._lock:
            rows = [
                deepcopy(document)
                for document in self._documents.values()
                if is_pending_for(principal, document)
            ]
        return paginate(sort_documents(rows), page=page, limit=limit)
