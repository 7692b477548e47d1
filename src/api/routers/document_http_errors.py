from typing import NoReturn

from fastapi import HTTPException, status

from src.core.documents import (
    DocumentAuthorizationError,
    DocumentConcurrencyError,
    DocumentDuplicateActionError,
    DocumentInvalidStateError,
    DocumentNotFoundError,
    DocumentValidationError,
)

# Starlette renamed the 422 constant; prefer the current name when present.
HTTP_422_UNPROCESSABLE = getattr(
    status,
    "HTTP_422_UNPROCESSABLE_CONTENT",
    status.HTTP_422_UNPROCESSABLE_ENTITY,
)


def raise_document_http_exception(exc: Exception) -> NoReturn:
    if isinstance(exc, DocumentNotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, DocumentAuthorizationError):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    if isinstance(
        exc,
        (DocumentInvalidStateError, DocumentDuplicateActionError, DocumentConcurrencyError),
    ):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, DocumentValidationError):
        raise HTTPException(
            status_code=HTTP_422_UNPROCESSABLE,
            detail=str(exc),
        ) from exc
    raise exc
