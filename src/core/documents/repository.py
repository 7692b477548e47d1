from typing import Optional, Protocol

from src.core.documents.models import (
    DocumentListFilters,
    DocumentRecord,
    DocumentSortField,
    Principal,
    SortDirection,
)


class DocumentRepository(Protocol):
    def create_document(self, document: DocumentRecord) -> None: ...

    def get_document(self, *, document_id: str) -> Optional[DocumentRecord]: ...

    def save_document(self, document: DocumentRecord, *, expected_revision: int) -> bool:
        """Commit the aggregate only if the stored revision equals `expected_revision`."""
        ...

    def list_documents(
        self,
        *,
        filters: DocumentListFilters,
        page: int,
        limit: int,
        sort_by: DocumentSortField,
        sort_direction: SortDirection,
    ) -> tuple[list[DocumentRecord], int]: ...

    def list_pending_for(
        self, *, principal: Principal, page: int, limit: int
    ) -> tuple[list[DocumentRecord], int]: ...
