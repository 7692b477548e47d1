import base64
import binascii
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Path, Query, status

from src.api.request_models import DocumentUploadRequest
from src.api.routers import documents_config
from src.api.routers.document_http_errors import (
    HTTP_422_UNPROCESSABLE,
    raise_document_http_exception,
)
from src.api.routers.runtime_utils import normalize_backend_init_error
from src.core.documents import (
    BlobStorage,
    DocumentListFilters,
    DocumentListResponse,
    DocumentRecord,
    DocumentRepository,
    DocumentStatus,
    DocumentSupportabilityConfigResponse,
    DocumentType,
    DocumentWorkflowError,
    DocumentWorkflowService,
    IdentityProvider,
    Principal,
)
from src.core.documents.models import DocumentSortField, SortDirection

router = APIRouter(tags=["Document Workflow"])

BLOB_DIRECTORY = "documents"

_REPOSITORY: Optional[DocumentRepository] = None
_BLOB_STORAGE: Optional[BlobStorage] = None
_IDENTITY_PROVIDER: Optional[IdentityProvider] = None
_SERVICE: Optional[DocumentWorkflowService] = None


def get_document_workflow_service() -> DocumentWorkflowService:
    global _REPOSITORY
    global _SERVICE
    if _SERVICE is None:
        if _REPOSITORY is None:
            try:
                _REPOSITORY = documents_config.build_repository()
            except RuntimeError as exc:
                raise HTTPException(
                    status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                    detail=normalize_backend_init_error(
                        detail=str(exc),
                        required_detail="DOCUMENT_POSTGRES_DSN_REQUIRED",
                        fallback_detail="DOCUMENT_POSTGRES_CONNECTION_FAILED",
                    ),
                ) from exc
        _SERVICE = DocumentWorkflowService(
            repository=_REPOSITORY,
            privileged_roles=documents_config.document_privileged_roles(),
            allow_submit_without_steps=documents_config.document_allow_submit_without_steps(),
            max_commit_attempts=documents_config.document_max_commit_attempts(),
        )
    return _SERVICE


def get_blob_storage() -> BlobStorage:
    global _BLOB_STORAGE
    if _BLOB_STORAGE is None:
        try:
            _BLOB_STORAGE = documents_config.build_blob_storage()
        except RuntimeError as exc:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)
            ) from exc
    return _BLOB_STORAGE


def get_identity_provider() -> IdentityProvider:
    global _IDENTITY_PROVIDER
    if _IDENTITY_PROVIDER is None:
        _IDENTITY_PROVIDER = documents_config.build_identity_provider()
    return _IDENTITY_PROVIDER


def reset_document_workflow_service_for_tests() -> None:
    global _REPOSITORY
    global _BLOB_STORAGE
    global _IDENTITY_PROVIDER
    global _SERVICE
    _REPOSITORY = None
    _BLOB_STORAGE = None
    _IDENTITY_PROVIDER = None
    _SERVICE = None


def get_current_principal(
    authorization: Annotated[
        Optional[str],
        Header(
            alias="Authorization",
            description="Bearer token resolved to the acting principal.",
            examples=["Bearer tok_employee_001"],
        ),
    ] = None,
    identity_provider: Annotated[IdentityProvider, Depends(get_identity_provider)] = None,
) -> Principal:
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="DOCUMENT_AUTHENTICATION_REQUIRED",
            headers={"WWW-Authenticate": "Bearer"},
        )
    principal = identity_provider.resolve(token.strip())
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="DOCUMENT_AUTHENTICATION_INVALID",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return principal


def assert_workflow_enabled() -> None:
    if not documents_config.document_workflow_enabled():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="DOCUMENT_WORKFLOW_DISABLED",
        )


def decode_file_content(content_base64: str) -> bytes:
    try:
        data = base64.b64decode(content_base64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise HTTPException(
            status_code=HTTP_422_UNPROCESSABLE, detail="DOCUMENT_FILE_CONTENT_INVALID"
        ) from exc
    if not data:
        raise HTTPException(
            status_code=HTTP_422_UNPROCESSABLE, detail="DOCUMENT_FILE_CONTENT_REQUIRED"
        )
    return data


@router.post(
    "/documents",
    response_model=DocumentRecord,
    status_code=status.HTTP_201_CREATED,
    summary="Create Document",
    description=(
        "Stores the uploaded file as version 1 and creates the document. Documents created "
        "with approval steps start in `pending_review`, otherwise in `draft`. The stored file "
        "is removed again when creation is rejected."
    ),
)
def create_document(
    payload: DocumentUploadRequest,
    principal: Annotated[Principal, Depends(get_current_principal)],
    service: Annotated[DocumentWorkflowService, Depends(get_document_workflow_service)],
    blob_storage: Annotated[BlobStorage, Depends(get_blob_storage)],
) -> DocumentRecord:
    assert_workflow_enabled()
    data = decode_file_content(payload.content_base64)
    file_url = blob_storage.put(data, directory=BLOB_DIRECTORY, file_name=payload.file_name)
    try:
        return service.create_document(
            principal=principal,
            payload=payload.to_create_request(),
            file_url=file_url,
        )
    except DocumentWorkflowError as exc:
        blob_storage.delete(file_url)
        raise_document_http_exception(exc)
    except Exception:
        blob_storage.delete(file_url)
        raise


@router.get(
    "/documents",
    response_model=DocumentListResponse,
    status_code=status.HTTP_200_OK,
    summary="List Documents",
    description="Lists documents with optional filters, free-text search, sorting and paging.",
)
def list_documents(
    _principal: Annotated[Principal, Depends(get_current_principal)],
    service: Annotated[DocumentWorkflowService, Depends(get_document_workflow_service)],
    document_status: Annotated[
        Optional[DocumentStatus],
        Query(alias="status", description="Lifecycle status filter.", examples=["draft"]),
    ] = None,
    document_type: Annotated[
        Optional[DocumentType],
        Query(description="Document type filter.", examples=["contract"]),
    ] = None,
    department: Annotated[
        Optional[str], Query(description="Department filter.", examples=["legal"])
    ] = None,
    created_by: Annotated[
        Optional[str], Query(description="Creator actor id filter.", examples=["usr_001"])
    ] = None,
    search: Annotated[
        Optional[str],
        Query(description="Case-insensitive match on title, description and tags."),
    ] = None,
    tags: Annotated[
        Optional[List[str]],
        Query(description="Matches documents carrying any of the tags.", examples=[["q1"]]),
    ] = None,
    page: Annotated[int, Query(description="1-based page.", ge=1, examples=[1])] = 1,
    limit: Annotated[int, Query(description="Page size.", ge=1, le=100, examples=[10])] = 10,
    sort_by: Annotated[
        DocumentSortField, Query(description="Sort field.", examples=["created_at"])
    ] = "created_at",
    sort_direction: Annotated[
        SortDirection, Query(description="Sort direction.", examples=["desc"])
    ] = "desc",
) -> DocumentListResponse:
    assert_workflow_enabled()
    filters = DocumentListFilters(
        status=document_status,
        document_type=document_type,
        department=department,
        created_by=created_by,
        search=search,
        tags=tags or [],
    )
    return service.list_documents(
        filters=filters,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_direction=sort_direction,
    )


@router.get(
    "/documents/pending-approval",
    response_model=DocumentListResponse,
    status_code=status.HTTP_200_OK,
    summary="List Documents Awaiting My Decision",
    description=(
        "Lists documents whose active approval step the caller may act on and has not acted on."
    ),
)
def list_pending_documents(
    principal: Annotated[Principal, Depends(get_current_principal)],
    service: Annotated[DocumentWorkflowService, Depends(get_document_workflow_service)],
    page: Annotated[int, Query(description="1-based page.", ge=1, examples=[1])] = 1,
    limit: Annotated[int, Query(description="Page size.", ge=1, le=100, examples=[10])] = 10,
) -> DocumentListResponse:
    assert_workflow_enabled()
    return service.find_pending_for(principal=principal, page=page, limit=limit)


@router.get(
    "/documents/supportability/config",
    response_model=DocumentSupportabilityConfigResponse,
    status_code=status.HTTP_200_OK,
    summary="Get Document Supportability Configuration",
    description=(
        "Returns document workflow runtime configuration and backend initialization status "
        "for operational diagnostics without direct database access."
    ),
)
def get_document_supportability_config() -> DocumentSupportabilityConfigResponse:
    backend_error: Optional[str] = None
    backend_ready = True
    try:
        documents_config.build_repository()
    except RuntimeError as exc:
        backend_ready = False
        backend_error = str(exc)

    return DocumentSupportabilityConfigResponse(
        store_backend=documents_config.document_store_backend_name(),
        backend_ready=backend_ready,
        backend_init_error=backend_error,
        blob_backend=documents_config.document_blob_backend_name(),
        workflow_enabled=documents_config.document_workflow_enabled(),
        allow_submit_without_steps=documents_config.document_allow_submit_without_steps(),
        max_commit_attempts=documents_config.document_max_commit_attempts(),
        privileged_roles=sorted(documents_config.document_privileged_roles()),
    )


@router.get(
    "/documents/{document_id}",
    response_model=DocumentRecord,
    status_code=status.HTTP_200_OK,
    summary="Get Document",
    description="Returns the full document aggregate with versions, steps and comments.",
)
def get_document(
    document_id: Annotated[
        str, Path(description="Document identifier.", examples=["doc_0a1b2c3d4e5f"])
    ],
    _principal: Annotated[Principal, Depends(get_current_principal)],
    service: Annotated[DocumentWorkflowService, Depends(get_document_workflow_service)],
) -> DocumentRecord:
    assert_workflow_enabled()
    try:
        return service.get_document(document_id=document_id)
    except DocumentWorkflowError as exc:
        raise_document_http_exception(exc)
