"""In-memory implementations of repository interfaces."""

import itertools
from datetime import datetime, timedelta, timezone
from typing import Any

from docsum.db.repositories import RetryAfter, serialize_fields
from docsum.models.document import DocumentRecord, DocumentStatus, SectionRecord


class InMemoryDocumentRepository:
    """In-memory implementation of DocumentRepository."""

    def __init__(self) -> None:
        self._documents: dict[int, DocumentRecord] = {}
        self._sections: dict[int, list[SectionRecord]] = {}
        self._document_ids = itertools.count(1)
        self._section_ids = itertools.count(1)

    async def create_document(self, original_name: str, file_size: int) -> DocumentRecord:
        """Insert a new document in the `processing` state."""
        document_id = next(self._document_ids)
        record = DocumentRecord(
            id=document_id,
            original_name=original_name,
            file_size=file_size,
            created_at=datetime.now(timezone.utc),
        )
        self._documents[document_id] = record
        self._sections[document_id] = []
        return record

    async def get_document(self, document_id: int) -> DocumentRecord | None:
        """Point-read a document by id."""
        return self._documents.get(document_id)

    async def list_documents(self, status: DocumentStatus | None = None) -> list[DocumentRecord]:
        """List documents newest first, optionally filtered by status."""
        documents = [d for d in self._documents.values() if status is None or d.status == status]
        return sorted(documents, key=lambda d: (d.created_at, d.id), reverse=True)

    async def update_document(self, document_id: int, **fields: Any) -> None:
        """Point-update arbitrary document fields."""
        stored = serialize_fields(fields)
        record = self._documents.get(document_id)
        if record is None:
            return

        self._documents[document_id] = DocumentRecord.model_validate(
            {**record.model_dump(), **stored}
        )

    async def transition_status(
        self,
        document_id: int,
        expected: DocumentStatus,
        new: DocumentStatus,
        **fields: Any,
    ) -> bool:
        """Compare-and-set the document status."""
        record = self._documents.get(document_id)
        if record is None or record.status != expected:
            return False

        await self.update_document(document_id, status=new, **fields)
        return True

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
        if document_id not in self._documents:
            raise KeyError(f"Document {document_id} not found")

        existing = self._sections[document_id]
        if any(s.section_number == section_number for s in existing):
            raise ValueError(
                f"Section {section_number} already exists for document {document_id}"
            )

        section = SectionRecord(
            id=next(self._section_ids),
            document_id=document_id,
            title=title,
            summary=summary,
            summary_format=summary_format,
            start_page=start_page,
            end_page=end_page,
            section_number=section_number,
        )
        existing.append(section)
        return section

    async def list_sections(self, document_id: int) -> list[SectionRecord]:
        """List sections of a document ordered by section_number."""
        return sorted(self._sections.get(document_id, []), key=lambda s: s.section_number)

    async def delete_sections(self, document_id: int) -> int:
        """Delete all sections of a document."""
        removed = len(self._sections.get(document_id, []))
        if document_id in self._sections:
            self._sections[document_id] = []
        return removed


class InMemoryRateLimiter:
    """In-memory implementation of RateLimiter using fixed window."""

    def __init__(self, max_requests: int, window_seconds: int = 60) -> None:
        """Initialize rate limiter.

        Args:
            max_requests: Maximum requests per window
            window_seconds: Window size in seconds (default 60)
        """
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._windows: dict[str, tuple[datetime, int]] = {}

    def check_quota(self, key: str, now: datetime) -> RetryAfter | None:
        """Check if quota is available."""
        if key not in self._windows:
            self._windows[key] = (now, 1)
            return None

        window_start, count = self._windows[key]
        window_end = window_start + timedelta(seconds=self._window_seconds)

        if now >= window_end:
            self._windows[key] = (now, 1)
            return None

        if count >= self._max_requests:
            seconds_remaining = int((window_end - now).total_seconds())
            return RetryAfter(seconds=max(1, seconds_remaining))

        self._windows[key] = (window_start, count + 1)
        return None
