"""Repository protocol interfaces for data access."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Protocol

from pydantic import BaseModel

from docsum.models.document import DocumentRecord, DocumentStatus, SectionRecord

# Fields the pipeline is allowed to point-update on a document
UPDATABLE_FIELDS = frozenset(
    {
        "status",
        "current_step",
        "progress",
        "status_message",
        "error_message",
        "outline",
        "outline_generated_at",
        "outline_approved_at",
        "continuation_state",
        "pdf_title",
        "pdf_author",
        "completed_at",
    }
)


class DocumentRepository(Protocol):
    """Durable record store for documents and their sections."""

    async def create_document(self, original_name: str, file_size: int) -> DocumentRecord:
        """Insert a new document in the `processing` state.

        Args:
            original_name: Uploaded file name
            file_size: Size in bytes

        Returns:
            The stored record with its assigned id
        """
        ...

    async def get_document(self, document_id: int) -> DocumentRecord | None:
        """Point-read a document by id."""
        ...

    async def list_documents(self, status: DocumentStatus | None = None) -> list[DocumentRecord]:
        """List documents, newest first.

        Args:
            status: Only documents in this status (all when None)
        """
        ...

    async def update_document(self, document_id: int, **fields: Any) -> None:
        """Point-update arbitrary document fields.

        Args:
            document_id: Document id
            **fields: Subset of UPDATABLE_FIELDS; pydantic values are stored as JSON

        Raises:
            ValueError: If an unknown field is passed
        """
        ...

    async def transition_status(
        self,
        document_id: int,
        expected: DocumentStatus,
        new: DocumentStatus,
        **fields: Any,
    ) -> bool:
        """Move a document from `expected` to `new` status atomically.

        Returns:
            True if the document was in `expected` and has been updated,
            False if it was missing or in any other state (nothing written)
        """
        ...

    async def add_section(
        self,
        document_id: int,
        *,
        title: str,
        summary: str,
        summary_format: str,
        start_page: int,
        end_page: int,
        section_number: int,
    ) -> SectionRecord:
        """Insert a finalized section row."""
        ...

    async def list_sections(self, document_id: int) -> list[SectionRecord]:
        """List sections of a document ordered by section_number."""
        ...

    async def delete_sections(self, document_id: int) -> int:
        """Delete all sections of a document.

        Returns:
            Number of rows removed
        """
        ...


def serialize_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """Validate field names and convert values to their stored form.

    Enums become their values, pydantic models (or lists of them) become
    JSON-compatible dicts. Datetimes and scalars pass through.

    Raises:
        ValueError: If a field outside UPDATABLE_FIELDS is present
    """
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Unknown document fields: {sorted(unknown)}")

    stored: dict[str, Any] = {}
    for name, value in fields.items():
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, BaseModel):
            value = value.model_dump(mode="json")
        elif isinstance(value, list):
            value = [
                item.model_dump(mode="json") if isinstance(item, BaseModel) else item
                for item in value
            ]
        stored[name] = value
    return stored


@dataclass
class RetryAfter:
    """Rate limit retry-after information."""

    seconds: int


class RateLimiter(Protocol):
    """Rate limiter interface."""

    def check_quota(self, key: str, now: datetime) -> RetryAfter | None:
        """Check if quota is available.

        Args:
            key: Rate limit key
            now: Current timestamp

        Returns:
            RetryAfter if over quota, None if allowed
        """
        ...
