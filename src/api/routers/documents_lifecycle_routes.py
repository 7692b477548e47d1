from typing import Annotated, Optional

from fastapi import Depends, Path, status

from src.api.request_models import (
    DocumentCommentRequest,
    DocumentDecisionRequest,
    DocumentVersionUploadRequest,
)
from src.api.routers import documents as shared
from src.api.routers.document_http_errors import raise_document_http_exception
from src.core.documents import (
    BlobStorage,
    DocumentRecord,
    DocumentWorkflowError,
    DocumentWorkflowService,
    Principal,
)

DocumentIdPath = Annotated[
    str, Path(description="Document identifier.", examples=["doc_0a1b2c3d4e5f"])
]


@shared.router.post(
    "/documents/{document_id}/submit",
    response_model=DocumentRecord,
    status_code=status.HTTP_200_OK,
    summary="Submit Document For Approval",
    description="Moves a draft into `pending_review` at step 1. Only the creator may submit.",
)
def submit_document(
    document_id: DocumentIdPath,
    principal: Annotated[Principal, Depends(shared.get_current_principal)],
    service: Annotated[DocumentWorkflowService, Depends(shared.get_document_workflow_service)],
) -> DocumentRecord:
    shared.assert_workflow_enabled()
    try:
        return service.submit_for_approval(principal=principal, document_id=document_id)
    except DocumentWorkflowError as exc:
        raise_document_http_exception(exc)


@shared.router.post(
    "/documents/{document_id}/approve",
    response_model=DocumentRecord,
    status_code=status.HTTP_200_OK,
    summary="Approve Active Step",
    description=(
        "Records the caller's approval on the active step. The step resolves once its quorum "
        "rule is met; resolving the last step approves the document."
    ),
)
def approve_document(
    document_id: DocumentIdPath,
    principal: Annotated[Principal, Depends(shared.get_current_principal)],
    service: Annotated[DocumentWorkflowService, Depends(shared.get_document_workflow_service)],
    payload: Optional[DocumentDecisionRequest] = None,
) -> DocumentRecord:
    shared.assert_workflow_enabled()
    try:
        return service.approve(
            principal=principal,
            document_id=document_id,
            comment=payload.comment if payload is not None else None,
        )
    except DocumentWorkflowError as exc:
        raise_document_http_exception(exc)


@shared.router.post(
    "/documents/{document_id}/reject",
    response_model=DocumentRecord,
    status_code=status.HTTP_200_OK,
    summary="Reject Active Step",
    description="Records the caller's rejection; any single rejection rejects the document.",
)
def reject_document(
    document_id: DocumentIdPath,
    payload: DocumentDecisionRequest,
    principal: Annotated[Principal, Depends(shared.get_current_principal)],
    service: Annotated[DocumentWorkflowService, Depends(shared.get_document_workflow_service)],
) -> DocumentRecord:
    shared.assert_workflow_enabled()
    try:
        return service.reject(
            principal=principal, document_id=document_id, comment=payload.comment or ""
        )
    except DocumentWorkflowError as exc:
        raise_document_http_exception(exc)


@shared.router.post(
    "/documents/{document_id}/versions",
    response_model=DocumentRecord,
    status_code=status.HTTP_200_OK,
    summary="Upload New Document Version",
    description=(
        "Stores the uploaded file and appends it as the next version. A rejected document "
        "returns to `draft` with every approval step reset."
    ),
)
def add_document_version(
    document_id: DocumentIdPath,
    payload: DocumentVersionUploadRequest,
    principal: Annotated[Principal, Depends(shared.get_current_principal)],
    service: Annotated[DocumentWorkflowService, Depends(shared.get_document_workflow_service)],
    blob_storage: Annotated[BlobStorage, Depends(shared.get_blob_storage)],
) -> DocumentRecord:
    shared.assert_workflow_enabled()
    data = shared.decode_file_content(payload.content_base64)
    file_url = blob_storage.put(
        data, directory=shared.BLOB_DIRECTORY, file_name=payload.file_name
    )
    try:
        return service.add_new_version(
            principal=principal,
            document_id=document_id,
            file_url=file_url,
            comment=payload.comment,
        )
    except DocumentWorkflowError as exc:
        blob_storage.delete(file_url)
        raise_document_http_exception(exc)
    except Exception:
        blob_storage.delete(file_url)
        raise


@shared.router.post(
    "/documents/{document_id}/comments",
    response_model=DocumentRecord,
    status_code=status.HTTP_200_OK,
    summary="Comment On Document",
    description="Appends a comment to the document thread in any status.",
)
def add_document_comment(
    document_id: DocumentIdPath,
    payload: DocumentCommentRequest,
    principal: Annotated[Principal, Depends(shared.get_current_principal)],
    service: Annotated[DocumentWorkflowService, Depends(shared.get_document_workflow_service)],
) -> DocumentRecord:
    shared.assert_workflow_enabled()
    try:
        return service.add_comment(principal=principal, document_id=document_id, text=payload.text)
    except DocumentWorkflowError as exc:
        raise_document_http_exception(exc)


@shared.router.post(
    "/documents/{document_id}/archive",
    response_model=DocumentRecord,
    status_code=status.HTTP_200_OK,
    summary="Archive Document",
    description=(
        "Archives the document unless it is under review. Only the creator or a privileged "
        "role may archive."
    ),
)
def archive_document(
    document_id: DocumentIdPath,
    principal: Annotated[Principal, Depends(shared.get_current_principal)],
    service: Annotated[DocumentWorkflowService, Depends(shared.get_document_workflow_service)],
) -> DocumentRecord:
    shared.assert_workflow_enabled()
    try:
        return service.archive(principal=principal, document_id=document_id)
    except DocumentWorkflowError as exc:
        raise_document_http_exception(exc)
