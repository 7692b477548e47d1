import pytest
from fastapi import HTTPException

from src.api.routers.document_http_errors import (
    HTTP_422_UNPROCESSABLE,
    raise_document_http_exception,
)
from src.core.documents import (
    DocumentAuthorizationError,
    DocumentConcurrencyError,
    DocumentDuplicateActionError,
    DocumentInvalidStateError,
    DocumentNotFoundError,
    DocumentValidationError,
)


@pytest.mark.parametrize(
    ("error", "expected_status"),
    [
        (DocumentNotFoundError("DOCUMENT_NOT_FOUND"), 404),
        (DocumentAuthorizationError("APPROVAL_STEP_NOT_ENTITLED"), 403),
        (DocumentInvalidStateError("DOCUMENT_NOT_PENDING_REVIEW"), 409),
        (DocumentDuplicateActionError("APPROVAL_STEP_ALREADY_ACTED"), 409),
        (DocumentConcurrencyError("DOCUMENT_CONCURRENT_UPDATE_CONFLICT"), 409),
        (DocumentValidationError("REJECTION_COMMENT_REQUIRED"), HTTP_422_UNPROCESSABLE),
    ],
)
def test_document_errors_map_to_http_status(error, expected_status):
    with pytest.raises(HTTPException) as exc:
        raise_document_http_exception(error)
    assert exc.value.status_code == expected_status
    assert exc.value.detail == str(error)
    assert exc.value.__cause__ is error


def test_unknown_errors_are_reraised_unchanged():
    error = RuntimeError("unexpected")
    try:
        raise_document_http_exception(error)
    except RuntimeError as exc:
        assert exc is error
    else:
        raise AssertionError("Expected RuntimeError")
