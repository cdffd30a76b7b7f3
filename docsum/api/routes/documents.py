"""Document endpoints - upload record, listing, process, continue, status, outline export."""

import logging
from pathlib import PurePath
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field

from docsum.api.deps import get_document_repository, get_pipeline
from docsum.db.repositories import DocumentRepository
from docsum.models.document import (
    ContinuationState,
    DocumentRecord,
    DocumentStatus,
    SectionDescriptor,
    SectionRecord,
    StatusSnapshot,
)
from docsum.pipeline.orchestrator import (
    DocumentNotFoundError,
    DocumentPipeline,
    InvalidDocumentStateError,
    PipelineInputError,
)
from docsum.pipeline.outline import render_outline_json, render_outline_text

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documents", tags=["documents"])


class CreateDocumentRequest(BaseModel):
    """Request body for POST /documents."""

    original_name: str = Field(..., min_length=1, max_length=255, description="Uploaded file name")
    file_size: int = Field(..., ge=0, description="File size in bytes")


class ProcessRequest(BaseModel):
    """Request body for POST /documents/{id}/process."""

    selected_model: str = Field(..., min_length=1)
    file_name: str = Field(..., min_length=1)
    document_text: str = Field("", description="Extracted text with page markers")
    custom_outline: list[SectionDescriptor] | None = None
    pdf_title: str | None = None
    pdf_author: str | None = None


class ProcessResponse(BaseModel):
    """Response for POST /documents/{id}/process."""

    success: bool
    awaiting_approval: bool
    approval_type: str
    has_outline: bool
    continuation_state: ContinuationState


class ContinueRequest(BaseModel):
    """Request body for POST /documents/{id}/continue."""

    document_text: str = Field(..., min_length=1, description="Extracted text with page markers")
    selected_model: str | None = None
    file_name: str | None = None
    outline: list[SectionDescriptor] | None = Field(
        None, description="Edited outline replacing the generated one"
    )


class ContinueResponse(BaseModel):
    """Response for POST /documents/{id}/continue."""

    success: bool
    sections: list[SectionRecord]


def _processing_failed(error: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Processing failed", "details": str(error) or type(error).__name__},
    )


async def _require_document(repo: DocumentRepository, document_id: int) -> DocumentRecord:
    document = await repo.get_document(document_id)
    if document is None:
        raise HTTPException(status_code=404, detail="Document not found")
    return document


@router.post("", response_model=DocumentRecord, status_code=status.HTTP_201_CREATED)
async def create_document(
    request: CreateDocumentRequest,
    repo: Annotated[DocumentRepository, Depends(get_document_repository)],
) -> DocumentRecord:
    """Register an uploaded document in the `processing` state."""
    return await repo.create_document(request.original_name, request.file_size)


@router.get("", response_model=list[StatusSnapshot])
async def list_documents(
    repo: Annotated[DocumentRepository, Depends(get_document_repository)],
    status_filter: Annotated[DocumentStatus | None, Query(alias="status")] = None,
) -> list[StatusSnapshot]:
    """List documents newest first, each with its sections in order.

    `?status=completed` gives the gallery of finished documents.
    """
    documents = await repo.list_documents(status_filter)
    return [
        StatusSnapshot.build(document, await repo.list_sections(document.id))
        for document in documents
    ]


@router.post("/{document_id}/process", response_model=ProcessResponse)
async def process_document(
    document_id: int,
    request: ProcessRequest,
    pipeline: Annotated[DocumentPipeline, Depends(get_pipeline)],
) -> ProcessResponse | JSONResponse:
    """Run the pipeline up to the outline approval gate.

    Returns:
        Continuation state once the document is awaiting approval;
        500 with the failure details if a stage failed (the document is
        then `failed`)
    """
    try:
        state = await pipeline.start(
            document_id,
            selected_model=request.selected_model,
            file_name=request.file_name,
            document_text=request.document_text,
            custom_outline=request.custom_outline,
            pdf_title=request.pdf_title,
            pdf_author=request.pdf_author,
        )
    except DocumentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except PipelineInputError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except Exception as e:
        return _processing_failed(e)

    return ProcessResponse(
        success=True,
        awaiting_approval=True,
        approval_type="outline",
        has_outline=True,
        continuation_state=state,
    )


@router.post("/{document_id}/continue", response_model=ContinueResponse)
async def continue_document(
    document_id: int,
    request: ContinueRequest,
    pipeline: Annotated[DocumentPipeline, Depends(get_pipeline)],
) -> ContinueResponse | JSONResponse:
    """Approve the outline (optionally edited) and generate section summaries."""
    try:
        sections = await pipeline.resume(
            document_id,
            document_text=request.document_text,
            selected_model=request.selected_model,
            file_name=request.file_name,
            outline=request.outline,
        )
    except DocumentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except InvalidDocumentStateError as e:
        raise HTTPException(status_code=409, detail="Document not awaiting approval") from e
    except PipelineInputError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except Exception as e:
        return _processing_failed(e)

    return ContinueResponse(success=True, sections=sections)


@router.get("/{document_id}/status", response_model=StatusSnapshot)
async def get_status(
    document_id: int,
    repo: Annotated[DocumentRepository, Depends(get_document_repository)],
) -> StatusSnapshot:
    """Status snapshot plus completed sections in order."""
    document = await _require_document(repo, document_id)
    sections = await repo.list_sections(document_id)
    return StatusSnapshot.build(document, sections)


def _export_filename(original_name: str, extension: str) -> str:
    return f"{PurePath(original_name).stem}_table_of_contents.{extension}"


async def _require_outline(
    repo: DocumentRepository, document_id: int
) -> tuple[DocumentRecord, list[SectionDescriptor]]:
    document = await _require_document(repo, document_id)
    if document.outline is None:
        raise HTTPException(status_code=404, detail="Table of contents not available")
    return document, document.outline


@router.get("/{document_id}/outline.txt", response_class=PlainTextResponse)
async def download_outline_text(
    document_id: int,
    repo: Annotated[DocumentRepository, Depends(get_document_repository)],
) -> PlainTextResponse:
    """Download the outline as a plain-text table of contents."""
    document, outline = await _require_outline(repo, document_id)
    filename = _export_filename(document.original_name, "txt")
    return PlainTextResponse(
        render_outline_text(outline, document.original_name),
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{document_id}/outline.json")
async def download_outline_json(
    document_id: int,
    repo: Annotated[DocumentRepository, Depends(get_document_repository)],
) -> JSONResponse:
    """Download the outline as JSON."""
    document, outline = await _require_outline(repo, document_id)
    filename = _export_filename(document.original_name, "json")
    body: dict[str, Any] = render_outline_json(outline, document.original_name)
    return JSONResponse(
        body,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
