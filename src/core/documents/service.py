import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from pydantic import ValidationError

from src.core.documents.evaluator import can_act, evaluate_step, has_acted
from src.core.documents.models import (
    ApprovalStepRecord,
    ApprovalStepRequest,
    ApproverDecision,
    ApproverStatusRecord,
    DocumentCommentRecord,
    DocumentCreateRequest,
    DocumentInvariantError,
    DocumentListFilters,
    DocumentListResponse,
    DocumentRecord,
    DocumentSortField,
    DocumentStatus,
    DocumentVersionRecord,
    ExplicitUsersTarget,
    Principal,
    RoleDepartmentTarget,
    SortDirection,
    StepResolution,
    StepStatus,
    StepTarget,
    UsersOrRoleTarget,
)
from src.core.documents.queries import DEFAULT_PAGE_SIZE, normalize_page
from src.core.documents.repository import DocumentRepository

logger = logging.getLogger(__name__)

DEFAULT_PRIVILEGED_ROLES = frozenset({"admin", "director"})
DEFAULT_MAX_COMMIT_ATTEMPTS = 3

DocumentMutation = Callable[[DocumentRecord, datetime], None]


class DocumentWorkflowError(Exception):
    pass


class DocumentValidationError(DocumentWorkflowError):
    pass


class DocumentNotFoundError(DocumentWorkflowError):
    pass


class DocumentAuthorizationError(DocumentWorkflowError):
    pass


class DocumentInvalidStateError(DocumentWorkflowError):
    pass


class DocumentDuplicateActionError(DocumentWorkflowError):
    pass


class DocumentConcurrencyError(DocumentWorkflowError):
    pass


class DocumentWorkflowService:
    def __init__(
        self,
        *,
        repository: DocumentRepository,
        privileged_roles: Optional[Iterable[str]] = None,
        allow_submit_without_steps: bool = True,
        max_commit_attempts: int = DEFAULT_MAX_COMMIT_ATTEMPTS,
    ) -> None:
        self._repository = repository
        self._privileged_roles = frozenset(
            role.strip()
            for role in (
                DEFAULT_PRIVILEGED_ROLES if privileged_roles is None else privileged_roles
            )
            if role.strip()
        )
        self._allow_submit_without_steps = allow_submit_without_steps
        self._max_commit_attempts = max(1, max_commit_attempts)

    @property
    def privileged_roles(self) -> frozenset[str]:
        return self._privileged_roles

    @property
    def allow_submit_without_steps(self) -> bool:
        return self._allow_submit_without_steps

    @property
    def max_commit_attempts(self) -> int:
        return self._max_commit_attempts

    def create_document(
        self,
        *,
        principal: Principal,
        payload: Union[DocumentCreateRequest, Mapping[str, Any]],
        file_url: str,
    ) -> DocumentRecord:
        request = _parse_create_request(payload)
        if not request.title.strip():
            raise DocumentValidationError("DOCUMENT_TITLE_REQUIRED")
        if not request.department.strip():
            raise DocumentValidationError("DOCUMENT_DEPARTMENT_REQUIRED")
        if not file_url or not file_url.strip():
            raise DocumentValidationError("DOCUMENT_FILE_URL_REQUIRED")
        steps = _normalize_steps(request.approval_steps)

        now = _utc_now()
        document = DocumentRecord(
            document_id=f"doc_{uuid.uuid4().hex[:12]}",
            title=request.title.strip(),
            description=request.description,
            document_type=request.document_type,
            department=request.department.strip(),
            status=DocumentStatus.PENDING_REVIEW if steps else DocumentStatus.DRAFT,
            created_by=principal.user_id,
            created_at=now,
            updated_at=now,
            current_version_no=1,
            versions=[
                DocumentVersionRecord(
                    version_no=1,
                    file_url=file_url,
                    created_at=now,
                    created_by=principal.user_id,
                )
            ],
            current_step=1 if steps else 0,
            approval_steps=steps,
            tags=request.tags,
            metadata=request.metadata,
            expires_at=request.expires_at,
        )
        self._repository.create_document(document)
        _log_transition(
            document=document,
            action="CREATED",
            principal=principal,
            from_status=None,
        )
        return document

    def get_document(self, *, document_id: str) -> DocumentRecord:
        document = self._repository.get_document(document_id=document_id)
        if document is None:
            raise DocumentNotFoundError("DOCUMENT_NOT_FOUND")
        return document

    def list_documents(
        self,
        *,
        filters: Optional[DocumentListFilters] = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        sort_by: DocumentSortField = "created_at",
        sort_direction: SortDirection = "desc",
    ) -> DocumentListResponse:
        page, limit = normalize_page(page, limit)
        items, total = self._repository.list_documents(
            filters=filters or DocumentListFilters(),
            page=page,
            limit=limit,
            sort_by=sort_by,
            sort_direction=sort_direction,
        )
        return DocumentListResponse(items=items, total=total, page=page, limit=limit)

    def find_pending_for(
        self,
        *,
        principal: Principal,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> DocumentListResponse:
        page, limit = normalize_page(page, limit)
        items, total = self._repository.list_pending_for(
            principal=principal, page=page, limit=limit
        )
        return DocumentListResponse(items=items, total=total, page=page, limit=limit)

    def submit_for_approval(self, *, principal: Principal, document_id: str) -> DocumentRecord:
        def _submit(document: DocumentRecord, _now: datetime) -> None:
            if document.created_by != principal.user_id:
                raise DocumentAuthorizationError("DOCUMENT_SUBMIT_CREATOR_ONLY")
            if document.status != DocumentStatus.DRAFT:
                raise DocumentInvalidStateError("DOCUMENT_NOT_DRAFT")
            if not document.approval_steps and not self._allow_submit_without_steps:
                raise DocumentInvalidStateError("APPROVAL_STEPS_REQUIRED")
            document.status = DocumentStatus.PENDING_REVIEW
            document.current_step = 1

        return self._commit(
            document_id=document_id, principal=principal, action="SUBMITTED", mutate=_submit
        )

    def approve(
        self,
        *,
        principal: Principal,
        document_id: str,
        comment: Optional[str] = None,
    ) -> DocumentRecord:
        normalized_comment = _optional_text(comment)

        def _approve(document: DocumentRecord, now: datetime) -> None:
            step = _resolve_actionable_step(document=document, principal=principal)
            step.approvers.append(
                ApproverStatusRecord(
                    user_id=principal.user_id,
                    decision=ApproverDecision.APPROVED,
                    comment=normalized_comment,
                    approved_at=now,
                )
            )
            if evaluate_step(step) != StepResolution.APPROVED:
                return
            step.status = StepStatus.APPROVED
            step.approved_at = now
            if document.is_last_step(step):
                document.status = DocumentStatus.APPROVED
            else:
                document.current_step += 1

        return self._commit(
            document_id=document_id, principal=principal, action="APPROVED", mutate=_approve
        )

    def reject(self, *, principal: Principal, document_id: str, comment: str) -> DocumentRecord:
        normalized_comment = _optional_text(comment)
        if normalized_comment is None:
            raise DocumentValidationError("REJECTION_COMMENT_REQUIRED")

        def _reject(document: DocumentRecord, now: datetime) -> None:
            step = _resolve_actionable_step(document=document, principal=principal)
            step.approvers.append(
                ApproverStatusRecord(
                    user_id=principal.user_id,
                    decision=ApproverDecision.REJECTED,
                    comment=normalized_comment,
                    rejected_at=now,
                )
            )
            if evaluate_step(step) == StepResolution.REJECTED:
                step.status = StepStatus.REJECTED
                step.rejected_at = now
                step.comment = normalized_comment
                document.status = DocumentStatus.REJECTED

        return self._commit(
            document_id=document_id, principal=principal, action="REJECTED", mutate=_reject
        )

    def add_new_version(
        self,
        *,
        principal: Principal,
        document_id: str,
        file_url: str,
        comment: Optional[str] = None,
    ) -> DocumentRecord:
        if not file_url or not file_url.strip():
            raise DocumentValidationError("DOCUMENT_FILE_URL_REQUIRED")
        normalized_comment = _optional_text(comment)

        def _add_version(document: DocumentRecord, now: datetime) -> None:
            self._require_owner_or_privileged(
                document=document, principal=principal, code="DOCUMENT_VERSION_FORBIDDEN"
            )
            if document.status == DocumentStatus.REJECTED:
                document.restart_workflow()
            document.append_version(
                file_url=file_url,
                created_by=principal.user_id,
                created_at=now,
                comment=normalized_comment,
            )

        return self._commit(
            document_id=document_id,
            principal=principal,
            action="NEW_VERSION_CREATED",
            mutate=_add_version,
        )

    def archive(self, *, principal: Principal, document_id: str) -> DocumentRecord:
        def _archive(document: DocumentRecord, _now: datetime) -> None:
            self._require_owner_or_privileged(
                document=document, principal=principal, code="DOCUMENT_ARCHIVE_FORBIDDEN"
            )
            if document.status == DocumentStatus.PENDING_REVIEW:
                raise DocumentInvalidStateError("DOCUMENT_IN_REVIEW_CANNOT_BE_ARCHIVED")
            document.status = DocumentStatus.ARCHIVED

        return self._commit(
            document_id=document_id, principal=principal, action="ARCHIVED", mutate=_archive
        )

    def add_comment(self, *, principal: Principal, document_id: str, text: str) -> DocumentRecord:
        normalized_text = _optional_text(text)
        if normalized_text is None:
            raise DocumentValidationError("COMMENT_TEXT_REQUIRED")

        def _add_comment(document: DocumentRecord, now: datetime) -> None:
            document.comments.append(
                DocumentCommentRecord(
                    comment_id=f"dcm_{uuid.uuid4().hex[:12]}",
                    document_id=document.document_id,
                    text=normalized_text,
                    created_by=principal.user_id,
                    created_at=now,
                )
            )

        return self._commit(
            document_id=document_id,
            principal=principal,
            action="COMMENT_ADDED",
            mutate=_add_comment,
        )

    def _commit(
        self,
        *,
        document_id: str,
        principal: Principal,
        action: str,
        mutate: DocumentMutation,
    ) -> DocumentRecord:
        for attempt in range(1, self._max_commit_attempts + 1):
            current = self._repository.get_document(document_id=document_id)
            if current is None:
                raise DocumentNotFoundError("DOCUMENT_NOT_FOUND")

            candidate = current.model_copy(deep=True)
            now = _utc_now()
            mutate(candidate, now)
            candidate.updated_at = now
            candidate.revision = current.revision + 1
            try:
                candidate.check_invariants()
            except DocumentInvariantError as exc:
                raise DocumentInvalidStateError(str(exc)) from exc

            if self._repository.save_document(candidate, expected_revision=current.revision):
                _log_transition(
                    document=candidate,
                    action=action,
                    principal=principal,
                    from_status=current.status,
                )
                return candidate

            logger.warning(
                "document.commit_conflict",
                extra={
                    "extra_fields": {
                        "document_id": document_id,
                        "action": action,
                        "attempt": attempt,
                        "expected_revision": current.revision,
                    }
                },
            )
        raise DocumentConcurrencyError("DOCUMENT_CONCURRENT_UPDATE_CONFLICT")

    def _require_owner_or_privileged(
        self, *, document: DocumentRecord, principal: Principal, code: str
    ) -> None:
        if document.created_by == principal.user_id:
            return
        if principal.role in self._privileged_roles:
            return
        raise DocumentAuthorizationError(code)


def _resolve_actionable_step(
    *, document: DocumentRecord, principal: Principal
) -> ApprovalStepRecord:
    if document.status != DocumentStatus.PENDING_REVIEW:
        raise DocumentInvalidStateError("DOCUMENT_NOT_PENDING_REVIEW")
    step = document.active_step()
    if step is None:
        raise DocumentInvalidStateError("APPROVAL_STEP_OUT_OF_RANGE")
    if not can_act(principal, step):
        raise DocumentAuthorizationError("APPROVAL_STEP_NOT_ENTITLED")
    if has_acted(principal, step):
        raise DocumentDuplicateActionError("APPROVAL_STEP_ALREADY_ACTED")
    return step


def _parse_create_request(
    payload: Union[DocumentCreateRequest, Mapping[str, Any]],
) -> DocumentCreateRequest:
    if isinstance(payload, DocumentCreateRequest):
        return payload
    try:
        return DocumentCreateRequest.model_validate(payload)
    except ValidationError as exc:
        raise DocumentValidationError(_to_invalid_metadata_error(exc)) from exc


def _to_invalid_metadata_error(exc: ValidationError) -> str:
    first_error = exc.errors()[0]
    location = ".".join(str(part) for part in first_error.get("loc", ()))
    message = first_error.get("msg", "validation failed")
    return f"DOCUMENT_METADATA_INVALID: {location}: {message}" if location else (
        f"DOCUMENT_METADATA_INVALID: {message}"
    )


def _normalize_steps(requests: list[ApprovalStepRequest]) -> list[ApprovalStepRecord]:
    ordered = sorted(requests, key=lambda item: item.position)
    positions = [item.position for item in ordered]
    if len(set(positions)) != len(positions):
        raise DocumentValidationError("APPROVAL_STEP_POSITION_DUPLICATE")
    if positions != list(range(1, len(positions) + 1)):
        raise DocumentValidationError("APPROVAL_STEP_POSITIONS_NOT_CONTIGUOUS")
    return [
        ApprovalStepRecord(
            position=item.position,
            target=_to_step_target(item),
            all_approvers_required=(
                True if item.all_approvers_required is None else item.all_approvers_required
            ),
        )
        for item in ordered
    ]


def _to_step_target(step: ApprovalStepRequest) -> StepTarget:
    user_ids = list(dict.fromkeys(user_id.strip() for user_id in step.assigned_to if user_id.strip()))
    role = _optional_text(step.role)
    department = _optional_text(step.department)
    if user_ids and role:
        return UsersOrRoleTarget(user_ids=user_ids, role=role, department=department)
    if user_ids:
        if department:
            raise DocumentValidationError("APPROVAL_STEP_DEPARTMENT_REQUIRES_ROLE")
        return ExplicitUsersTarget(user_ids=user_ids)
    if role:
        return RoleDepartmentTarget(role=role, department=department)
    raise DocumentValidationError("APPROVAL_STEP_TARGET_REQUIRED")


def _optional_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    normalized = value.strip()
    return normalized or None


def _log_transition(
    *,
    document: DocumentRecord,
    action: str,
    principal: Principal,
    from_status: Optional[DocumentStatus],
) -> None:
    logger.info(
        "document.transition",
        extra={
            "extra_fields": {
                "document_id": document.document_id,
                "action": action,
                "actor_id": principal.user_id,
                "from_status": from_status.value if from_status is not None else None,
                "to_status": document.status.value,
                "current_step": document.current_step,
                "revision": document.revision,
            }
        },
    )


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)
