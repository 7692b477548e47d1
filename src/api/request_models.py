from typing import Optional

from pydantic import BaseModel, Field

from src.core.documents.models import DocumentCreateRequest


class DocumentUploadRequest(DocumentCreateRequest):
    model_config = {
        "json_schema_extra": {
            "example": {
                "title": "Supplier contract 2026",
                "description": "Framework agreement with the logistics supplier.",
                "document_type": "contract",
                "department": "legal",
                "file_name": "contract.pdf",
                "content_base64": "JVBERi0xLjQK",
                "approval_steps": [
                    {"position": 1, "assigned_to": ["usr_002", "usr_003"]},
                    {"position": 2, "role": "department_head", "department": "legal"},
                ],
                "tags": ["supplier", "2026"],
            }
        }
    }

    file_name: Optional[str] = Field(
        default=None,
        description="Original file name; its extension is kept on the stored blob.",
        examples=["contract.pdf"],
    )
    content_base64: str = Field(
        description="Base64 encoded file content of the first version.",
        examples=["JVBERi0xLjQK"],
    )

    def to_create_request(self) -> DocumentCreateRequest:
        return DocumentCreateRequest.model_validate(
            self.model_dump(exclude={"file_name", "content_base64"})
        )


class DocumentVersionUploadRequest(BaseModel):
    file_name: Optional[str] = Field(
        default=None,
        description="Original file name of the new version.",
        examples=["contract_v2.pdf"],
    )
    content_base64: str = Field(
        description="Base64 encoded file content of the new version.",
        examples=["JVBERi0xLjUK"],
    )
    comment: Optional[str] = Field(
        default=None,
        description="Optional version comment.",
        examples=["Updated payment terms."],
    )


class DocumentDecisionRequest(BaseModel):
    comment: Optional[str] = Field(
        default=None,
        description="Decision comment; required when rejecting.",
        examples=["Looks good."],
    )


class DocumentCommentRequest(BaseModel):
    text: str = Field(description="Comment text.", examples=["Please attach annex B."])
