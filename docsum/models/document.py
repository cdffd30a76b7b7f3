"""Document domain models."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator


class DocumentStatus(str, Enum):
    """Top-level lifecycle state of a document run."""

    processing = "processing"
    awaiting_outline_approval = "awaiting_outline_approval"
    completed = "completed"
    failed = "failed"


class SectionDescriptor(BaseModel):
    """One outline entry as produced by structure analysis or edited by a reviewer."""

    title: str = Field(..., min_length=1)
    start_page: int = Field(..., ge=1)
    end_page: int = Field(..., ge=1)
    start_text: str | None = None
    end_text: str | None = None

    @model_validator(mode="after")
    def check_page_order(self) -> "SectionDescriptor":
        """Reject ranges that end before they start."""
        if self.end_page < self.start_page:
            raise ValueError(
                f"end_page ({self.end_page}) must not precede start_page ({self.start_page})"
            )
        return self


class ContinuationState(BaseModel):
    """Minimum data needed to resume after the approval gate.

    Never carries document text or credentials.
    """

    document_id: int
    selected_model: str
    file_name: str


class DocumentRecord(BaseModel):
    """Persisted document aggregate."""

    id: int
    original_name: str
    file_size: int
    status: DocumentStatus = DocumentStatus.processing
    current_step: str | None = "uploaded"
    progress: int = Field(0, ge=0, le=100)
    status_message: str | None = None
    error_message: str | None = None
    outline: list[SectionDescriptor] | None = None
    outline_generated_at: datetime | None = None
    outline_approved_at: datetime | None = None
    continuation_state: ContinuationState | None = None
    pdf_title: str | None = None
    pdf_author: str | None = None
    created_at: datetime
    completed_at: datetime | None = None


class SectionRecord(BaseModel):
    """Finalized, append-only section summary."""

    id: int
    document_id: int
    title: str
    summary: str
    summary_format: str = "raw_text"
    start_page: int
    end_page: int
    section_number: int = Field(..., ge=1)
    export_ref: str | None = None


class StatusSnapshot(BaseModel):
    """What a polling observer sees for one document."""

    id: int
    original_name: str
    status: DocumentStatus
    current_step: str | None
    progress: int
    status_message: str | None
    error_message: str | None
    has_outline: bool
    outline_generated_at: datetime | None
    outline_approved_at: datetime | None
    created_at: datetime
    completed_at: datetime | None
    pdf_title: str | None
    pdf_author: str | None
    outline: list[SectionDescriptor] | None
    continuation_state: ContinuationState | None
    sections: list[SectionRecord] = Field(default_factory=list)

    @classmethod
    def build(cls, document: DocumentRecord, sections: list[SectionRecord]) -> "StatusSnapshot":
        """Combine a document record and its sections."""
        data: dict[str, Any] = document.model_dump(
            exclude={"file_size"},
        )
        data["has_outline"] = document.outline is not None
        data["sections"] = sections
        return cls.model_validate(data)
