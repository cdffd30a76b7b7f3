"""SQL implementations of repository interfaces."""

from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from docsum.db.models import Document, Section
from docsum.db.repositories import serialize_fields
from docsum.models.document import DocumentRecord, DocumentStatus, SectionRecord


def _to_document_record(row: Document) -> DocumentRecord:
    return DocumentRecord(
        id=row.id,
        original_name=row.original_name,
        file_size=row.file_size,
        status=DocumentStatus(row.status),
        current_step=row.current_step,
        progress=row.progress,
        status_message=row.status_message,
        error_message=row.error_message,
        outline=row.outline,
        outline_generated_at=row.outline_generated_at,
        outline_approved_at=row.outline_approved_at,
        continuation_state=row.continuation_state,
        pdf_title=row.pdf_title,
        pdf_author=row.pdf_author,
        created_at=row.created_at,
        completed_at=row.completed_at,
    )


def _to_section_record(row: Section) -> SectionRecord:
    return SectionRecord(
        id=row.id,
        document_id=row.document_id,
        title=row.title,
        summary=row.summary,
        summary_format=row.summary_format,
        start_page=row.start_page,
        end_page=row.end_page,
        section_number=row.section_number,
        export_ref=row.export_ref,
    )


class SqlDocumentRepository:
    """SQL implementation of DocumentRepository.

    Every write commits immediately so a status poll issued on another
    session observes it.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_document(self, original_name: str, file_size: int) -> DocumentRecord:
        """Insert a new document in the `processing` state."""
        row = Document(
            original_name=original_name,
            file_size=file_size,
            status=DocumentStatus.processing.value,
            current_step="uploaded",
            progress=0,
        )
        self._session.add(row)
        await self._session.commit()
        await self._session.refresh(row)
        return _to_document_record(row)

    async def get_document(self, document_id: int) -> DocumentRecord | None:
        """Point-read a document by id."""
        result = await self._session.execute(
            select(Document).where(Document.id == document_id).execution_options(
                populate_existing=True
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            return None
        return _to_document_record(row)

    async def list_documents(self, status: DocumentStatus | None = None) -> list[DocumentRecord]:
        """List documents newest first, optionally filtered by status."""
        query = select(Document).order_by(Document.created_at.desc(), Document.id.desc())
        if status is not None:
            query = query.where(Document.status == status.value)
        result = await self._session.execute(query.execution_options(populate_existing=True))
        return [_to_document_record(row) for row in result.scalars().all()]

    async def update_document(self, document_id: int, **fields: Any) -> None:
        """Point-update arbitrary document fields."""
        stored = serialize_fields(fields)
        if not stored:
            return

        await self._session.execute(
            update(Document).where(Document.id == document_id).values(**stored)
        )
        await self._session.commit()

    async def transition_status(
        self,
        document_id: int,
        expected: DocumentStatus,
        new: DocumentStatus,
        **fields: Any,
    ) -> bool:
        """Compare-and-set the document status in a single UPDATE."""
        stored = serialize_fields({"status": new, **fields})
        result = await self._session.execute(
            update(Document)
            .where(Document.id == document_id)
            .where(Document.status == expected.value)
            .values(**stored)
        )
        await self._session.commit()
        return result.rowcount == 1

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
        row = Section(
            document_id=document_id,
            title=title,
            summary=summary,
            summary_format=summary_format,
            start_page=start_page,
            end_page=end_page,
            section_number=section_number,
        )
        self._session.add(row)
        try:
            await self._session.commit()
        except IntegrityError:
            # Session stays usable for the failed-status write
            await self._session.rollback()
            raise
        await self._session.refresh(row)
        return _to_section_record(row)

    async def list_sections(self, document_id: int) -> list[SectionRecord]:
        """List sections of a document ordered by section_number."""
        result = await self._session.execute(
            select(Section)
            .where(Section.document_id == document_id)
            .order_by(Section.section_number)
        )
        return [_to_section_record(row) for row in result.scalars().all()]

    async def delete_sections(self, document_id: int) -> int:
        """Delete all sections of a document."""
        result = await self._session.execute(
            delete(Section).where(Section.document_id == document_id)
        )
        await self._session.commit()
        return result.rowcount or 0
