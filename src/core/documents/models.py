import json
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator


class DocumentStatus(str, Enum):
    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    ARCHIVED = "archived"


class StepStatus(str, Enum):
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApproverDecision(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


class StepResolution(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class DocumentType(str, Enum):
    CONTRACT = "contract"
    INVOICE = "invoice"
    REPORT = "report"
    PROPOSAL = "proposal"
    POLICY = "policy"
    MEMO = "memo"
    OTHER = "other"


DocumentSortField = Literal[
    "created_at",
    "updated_at",
    "title",
    "status",
    "document_type",
    "department",
]
SortDirection = Literal["asc", "desc"]


class DocumentInvariantError(ValueError):
    pass


class Principal(BaseModel):
    model_config = {"frozen": True}

    user_id: str = Field(description="Authenticated actor identifier.", examples=["usr_001"])
    role: str = Field(description="Organizational role of the actor.", examples=["employee"])
    department: Optional[str] = Field(
        default=None,
        description="Organizational unit of the actor.",
        examples=["finance"],
    )


class ExplicitUsersTarget(BaseModel):
    kind: Literal["EXPLICIT_USERS"] = "EXPLICIT_USERS"
    user_ids: List[str] = Field(
        min_length=1,
        description="Closed set of principals who must (or may) act on the step.",
        examples=[["usr_001", "usr_002"]],
    )


class RoleDepartmentTarget(BaseModel):
    kind: Literal["ROLE_DEPARTMENT"] = "ROLE_DEPARTMENT"
    role: str = Field(description="Role qualifying an actor for the step.", examples=["head"])
    department: Optional[str] = Field(
        default=None,
        description="Optional department restriction on top of the role.",
        examples=["legal"],
    )


class UsersOrRoleTarget(BaseModel):
    kind: Literal["USERS_OR_ROLE"] = "USERS_OR_ROLE"
    user_ids: List[str] = Field(
        min_length=1,
        description="Explicitly assigned principals.",
        examples=[["usr_001"]],
    )
    role: str = Field(description="Role also qualifying an actor.", examples=["head"])
    department: Optional[str] = Field(
        default=None,
        description="Optional department restriction for role-qualified actors.",
        examples=["legal"],
    )


StepTarget = Annotated[
    Union[ExplicitUsersTarget, RoleDepartmentTarget, UsersOrRoleTarget],
    Field(discriminator="kind"),
]


class ApproverStatusRecord(BaseModel):
    user_id: str = Field(description="Actor who recorded the decision.", examples=["usr_001"])
    decision: ApproverDecision = Field(description="Recorded decision.", examples=["approved"])
    comment: Optional[str] = Field(default=None, description="Optional decision comment.")
    approved_at: Optional[datetime] = Field(default=None, description="Approval timestamp.")
    rejected_at: Optional[datetime] = Field(default=None, description="Rejection timestamp.")


class ApprovalStepRecord(BaseModel):
    position: int = Field(ge=1, description="1-based rank of the step.", examples=[1])
    target: StepTarget = Field(description="Selector deciding who may act on the step.")
    approvers: List[ApproverStatusRecord] = Field(
        default_factory=list,
        description="One entry per distinct actor who approved or rejected the step.",
    )
    status: StepStatus = Field(default=StepStatus.PENDING_REVIEW, description="Step status.")
    all_approvers_required: bool = Field(
        default=True,
        description="Quorum rule: every explicitly assigned actor must approve.",
    )
    comment: Optional[str] = Field(default=None, description="Resolution comment.")
    approved_at: Optional[datetime] = Field(default=None, description="Step approval time.")
    rejected_at: Optional[datetime] = Field(default=None, description="Step rejection time.")

    def entry_for(self, user_id: str) -> Optional[ApproverStatusRecord]:
        return next((entry for entry in self.approvers if entry.user_id == user_id), None)

    def reset(self) -> None:
        self.status = StepStatus.PENDING_REVIEW
        self.approvers = []
        self.approved_at = None
        self.rejected_at = None
        self.comment = None


class DocumentVersionRecord(BaseModel):
    version_no: int = Field(ge=1, description="Monotonic version number.", examples=[1])
    file_url: str = Field(
        description="Stable blob storage URL of the version file.",
        examples=["memory://documents/blob_0a1b2c3d4e5f.pdf"],
    )
    created_at: datetime = Field(description="Version creation timestamp.")
    created_by: str = Field(description="Actor who uploaded the version.", examples=["usr_001"])
    comment: Optional[str] = Field(default=None, description="Optional version comment.")


class DocumentCommentRecord(BaseModel):
    comment_id: str = Field(description="Comment identifier.", examples=["dcm_001"])
    document_id: str = Field(description="Owning document identifier.", examples=["doc_001"])
    text: str = Field(description="Comment text.", examples=["Please attach annex B."])
    created_by: str = Field(description="Comment author.", examples=["usr_002"])
    created_at: datetime = Field(description="Comment timestamp.")


class DocumentRecord(BaseModel):
    document_id: str = Field(description="Document identifier.", examples=["doc_001"])
    title: str = Field(description="Document title.", examples=["Supplier contract 2026"])
    description: Optional[str] = Field(default=None, description="Optional description.")
    document_type: DocumentType = Field(description="Document type.", examples=["contract"])
    department: str = Field(description="Owning organizational unit.", examples=["legal"])
    status: DocumentStatus = Field(description="Lifecycle status.", examples=["draft"])
    created_by: str = Field(description="Creator actor id.", examples=["usr_001"])
    created_at: datetime = Field(description="Creation timestamp.")
    updated_at: datetime = Field(description="Timestamp of latest committed change.")
    current_version_no: int = Field(ge=1, description="Latest version number.", examples=[1])
    versions: List[DocumentVersionRecord] = Field(
        default_factory=list, description="Append-only version history."
    )
    current_step: int = Field(
        ge=0,
        description="0 when no workflow is running, else 1-based position of the active step.",
        examples=[1],
    )
    approval_steps: List[ApprovalStepRecord] = Field(
        default_factory=list, description="Ordered approval steps."
    )
    comments: List[DocumentCommentRecord] = Field(
        default_factory=list, description="Append-only comment thread."
    )
    tags: List[str] = Field(default_factory=list, description="Free-form tags.")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Free-form metadata.")
    expires_at: Optional[datetime] = Field(
        default=None, description="Informational expiry date; never enforced."
    )
    revision: int = Field(
        default=1,
        ge=1,
        description="Optimistic concurrency counter incremented on every commit.",
        examples=[1],
    )

    @model_validator(mode="after")
    def _validate_invariants(self) -> "DocumentRecord":
        self.check_invariants()
        return self

    def check_invariants(self) -> None:
        if self.current_version_no != len(self.versions):
            raise DocumentInvariantError("DOCUMENT_VERSION_COUNT_MISMATCH")
        for index, version in enumerate(self.versions):
            if version.version_no != index + 1:
                raise DocumentInvariantError("DOCUMENT_VERSION_SEQUENCE_BROKEN")
        for index, step in enumerate(self.approval_steps):
            if step.position != index + 1:
                raise DocumentInvariantError("APPROVAL_STEP_POSITIONS_BROKEN")
            user_ids = [entry.user_id for entry in step.approvers]
            if len(user_ids) != len(set(user_ids)):
                raise DocumentInvariantError("APPROVAL_STEP_DUPLICATE_APPROVER")
        if self.status == DocumentStatus.DRAFT and self.current_step != 0:
            raise DocumentInvariantError("DRAFT_DOCUMENT_HAS_ACTIVE_STEP")
        if self.status == DocumentStatus.PENDING_REVIEW and self.approval_steps:
            if not 1 <= self.current_step <= len(self.approval_steps):
                raise DocumentInvariantError("ACTIVE_STEP_OUT_OF_RANGE")

    def active_step(self) -> Optional[ApprovalStepRecord]:
        index = self.current_step - 1
        if index < 0 or index >= len(self.approval_steps):
            return None
        return self.approval_steps[index]

    def is_last_step(self, step: ApprovalStepRecord) -> bool:
        return step.position == len(self.approval_steps)

    def append_version(
        self,
        *,
        file_url: str,
        created_by: str,
        created_at: datetime,
        comment: Optional[str],
    ) -> DocumentVersionRecord:
        version = DocumentVersionRecord(
            version_no=self.current_version_no + 1,
            file_url=file_url,
            created_at=created_at,
            created_by=created_by,
            comment=comment,
        )
        self.versions.append(version)
        self.current_version_no = version.version_no
        return version

    def restart_workflow(self) -> None:
        self.status = DocumentStatus.DRAFT
        self.current_step = 0
        for step in self.approval_steps:
            step.reset()


class ApprovalStepRequest(BaseModel):
    position: int = Field(ge=1, description="1-based step rank.", examples=[1])
    assigned_to: List[str] = Field(
        default_factory=list,
        description="Explicitly assigned actor ids.",
        examples=[["usr_001", "usr_002"]],
    )
    role: Optional[str] = Field(
        default=None,
        description="Role qualifying actors for the step.",
        examples=["head"],
    )
    department: Optional[str] = Field(
        default=None,
        description="Department restriction for role-qualified actors.",
        examples=["finance"],
    )
    all_approvers_required: Optional[bool] = Field(
        default=None,
        description="Quorum rule; defaults to true when omitted.",
        examples=[True],
    )


class DocumentCreateRequest(BaseModel):
    title: str = Field(description="Document title.", examples=["Supplier contract 2026"])
    description: Optional[str] = Field(
        default=None,
        description="Optional description.",
        examples=["Framework agreement with the logistics supplier."],
    )
    document_type: DocumentType = Field(description="Document type.", examples=["contract"])
    department: str = Field(description="Owning organizational unit.", examples=["legal"])
    approval_steps: List[ApprovalStepRequest] = Field(
        default_factory=list,
        description=(
            "Approval steps in any order; sorted by position on creation. "
            "A JSON encoded string is accepted as well."
        ),
        examples=[[{"position": 1, "assigned_to": ["usr_002"]}, {"position": 2, "role": "head"}]],
    )
    tags: List[str] = Field(default_factory=list, description="Tags.", examples=[["q1"]])
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        description="Free-form metadata.",
        examples=[{"counterparty": "ACME Logistics"}],
    )
    expires_at: Optional[datetime] = Field(
        default=None,
        description="Informational expiry date.",
        examples=["2027-01-01T00:00:00+00:00"],
    )

    @field_validator("approval_steps", mode="before")
    @classmethod
    def _parse_encoded_steps(cls, value: Any) -> Any:
        if isinstance(value, str):
            if not value.strip():
                return []
            try:
                return json.loads(value)
            except json.JSONDecodeError as exc:
                raise ValueError("approval_steps is not valid JSON") from exc
        return value


class DocumentListFilters(BaseModel):
    status: Optional[DocumentStatus] = None
    document_type: Optional[DocumentType] = None
    department: Optional[str] = None
    created_by: Optional[str] = None
    search: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class DocumentListResponse(BaseModel):
    items: List[DocumentRecord] = Field(
        default_factory=list,
        description="Page of document aggregates.",
        examples=[[{"document_id": "doc_001", "status": "pending_review"}]],
    )
    total: int = Field(description="Total rows matching the query.", examples=[1])
    page: int = Field(description="1-based page number.", examples=[1])
    limit: int = Field(description="Page size.", examples=[10])


class DocumentSupportabilityConfigResponse(BaseModel):
    store_backend: str = Field(
        description="Configured document repository backend name.",
        examples=["IN_MEMORY"],
    )
    backend_ready: bool = Field(
        description="Whether the repository backend initialized successfully.",
        examples=[True],
    )
    backend_init_error: Optional[str] = Field(
        default=None,
        description="Stable initialization error code when the backend is not ready.",
        examples=["DOCUMENT_POSTGRES_DSN_REQUIRED"],
    )
    blob_backend: str = Field(description="Configured blob storage backend.", examples=["LOCAL"])
    workflow_enabled: bool = Field(
        description="Whether document lifecycle APIs are enabled.",
        examples=[True],
    )
    allow_submit_without_steps: bool = Field(
        description="Whether drafts with no approval steps may be submitted.",
        examples=[True],
    )
    max_commit_attempts: int = Field(
        description="Bounded optimistic-concurrency attempts per mutation.",
        examples=[3],
    )
    privileged_roles: List[str] = Field(
        default_factory=list,
        description="Roles allowed to version or archive documents they did not create.",
        examples=[["admin", "director"]],
    )
