from datetime import datetime, timezone
from typing import Any, Iterable

from src.core.documents.evaluator import can_act, has_acted
from src.core.documents.models import (
    DocumentListFilters,
    DocumentRecord,
    DocumentSortField,
    DocumentStatus,
    Principal,
    SortDirection,
)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def is_pending_for(principal: Principal, document: DocumentRecord) -> bool:
    if document.status != DocumentStatus.PENDING_REVIEW:
        return False
    step = next(
        (item for item in document.approval_steps if item.position == document.current_step),
        None,
    )
    if step is None:
        return False
    return can_act(principal, step) and not has_acted(principal, step)


def matches_filters(document: DocumentRecord, filters: DocumentListFilters) -> bool:
    if filters.status is not None and document.status != filters.status:
        return False
    if filters.document_type is not None and document.document_type != filters.document_type:
        return False
    if filters.department is not None and document.department != filters.department:
        return False
    if filters.created_by is not None and document.created_by != filters.created_by:
        return False
    if filters.tags and not set(filters.tags) & set(document.tags):
        return False
    if filters.search:
        needle = filters.search.strip().lower()
        haystack = " ".join(
            [document.title, document.description or "", *document.tags]
        ).lower()
        if needle and needle not in haystack:
            return False
    return True


def sort_documents(
    documents: Iterable[DocumentRecord],
    *,
    sort_by: DocumentSortField = "created_at",
    sort_direction: SortDirection = "desc",
) -> list[DocumentRecord]:
    return sorted(
        documents,
        key=lambda document: (_sort_value(document, sort_by), document.document_id),
        reverse=sort_direction == "desc",
    )


def normalize_page(page: int, limit: int) -> tuple[int, int]:
    return max(1, page), min(max(1, limit), MAX_PAGE_SIZE)


def paginate(
    documents: list[DocumentRecord], *, page: int, limit: int
) -> tuple[list[DocumentRecord], int]:
    page, limit = normalize_page(page, limit)
    start = (page - 1) * limit
    return documents[start : start + limit], len(documents)


def _sort_value(document: DocumentRecord, sort_by: DocumentSortField) -> Any:
    value = getattr(document, sort_by)
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if hasattr(value, "value"):
        return value.value
    return value
