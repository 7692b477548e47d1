from src.core.documents.collaborators import BlobStorage, IdentityProvider
from src.core.documents.models import (
    ApprovalStepRecord,
    ApprovalStepRequest,
    ApproverStatusRecord,
    DocumentCommentRecord,
    DocumentCreateRequest,
    DocumentInvariantError,
    DocumentListFilters,
    DocumentListResponse,
    DocumentRecord,
    DocumentStatus,
    DocumentSupportabilityConfigResponse,
    DocumentType,
    DocumentVersionRecord,
    Principal,
    StepStatus,
)
from src.core.documents.repository import DocumentRepository
from src.core.documents.service import (
    DocumentAuthorizationError,
    DocumentConcurrencyError,
    DocumentDuplicateActionError,
    DocumentInvalidStateError,
    DocumentNotFoundError,
    DocumentValidationError,
    DocumentWorkflowError,
    DocumentWorkflowService,
)

__all__ = [
    "ApprovalStepRecord",
    "ApprovalStepRequest",
    "ApproverStatusRecord",
    "BlobStorage",
    "DocumentAuthorizationError",
    "DocumentCommentRecord",
    "DocumentConcurrencyError",
    "DocumentCreateRequest",
    "DocumentDuplicateActionError",
    "DocumentInvalidStateError",
    "DocumentInvariantError",
    "DocumentListFilters",
    "DocumentListResponse",
    "DocumentNotFoundError",
    "DocumentRecord",
    "DocumentRepository",
    "DocumentStatus",
    "DocumentSupportabilityConfigResponse",
    "DocumentType",
    "DocumentValidationError",
    "DocumentVersionRecord",
    "DocumentWorkflowError",
    "DocumentWorkflowService",
    "IdentityProvider",
    "Principal",
    "StepStatus",
]
