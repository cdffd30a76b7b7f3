"""Pipeline orchestrator - sequences the stages and owns the document state machine.

A run is split in two at the approval gate:

    start():  processing -> [initializing 25, extracting_text 30,
              chunking_document 35, analyzing_structure 45..60,
              generating_toc 65] -> awaiting_outline_approval

    resume(): awaiting_outline_approval -> processing ->
              [generating_summaries 75..95, finalizing 98] -> completed

Nothing is held in memory across the gate. Everything resume() needs is
either persisted on the document (outline, continuation state) or
re-supplied by the caller (document text). Any exception escaping a stage
moves the document to `failed` with the message persisted, then
propagates.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

from docsum.config import Settings
from docsum.db.repositories import DocumentRepository
from docsum.llm.catalog import ModelInfo, resolve_chunk_budget
from docsum.llm.client import ModelClient, ModelError
from docsum.models.document import (
    ContinuationState,
    DocumentRecord,
    DocumentStatus,
    SectionDescriptor,
    SectionRecord,
)
from docsum.pipeline.chunker import split_text
from docsum.pipeline.extractor import PAGE_MARKER, extract_section_content
from docsum.pipeline.outline import merge_overlapping_sections
from docsum.pipeline.retry import RetryConfig, RetryController
from docsum.pipeline.status import StatusTracker
from docsum.pipeline.structure import StructureAnalyzer
from docsum.pipeline.summarize import SectionSummarizer
from docsum.utils.metrics import PrometheusModelMetrics

logger = logging.getLogger(__name__)

SUMMARY_PROGRESS_START = 75
SUMMARY_PROGRESS_SPAN = 20


class DocumentNotFoundError(Exception):
    """No document with the requested id."""

    pass


class InvalidDocumentStateError(Exception):
    """The document is not in the state the operation requires."""

    def __init__(self, document_id: int, status: DocumentStatus, expected: DocumentStatus) -> None:
        super().__init__(
            f"Document {document_id} is {status.value}, expected {expected.value}"
        )
        self.document_id = document_id
        self.status = status
        self.expected = expected


class PipelineInputError(ValueError):
    """Required pipeline input is missing or empty."""

    pass


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _count_pages(document_text: str) -> int:
    return len(PAGE_MARKER.findall(document_text))


class DocumentPipeline:
    """Runs the resumable analysis pipeline for one document at a time."""

    def __init__(
        self,
        repo: DocumentRepository,
        client: ModelClient,
        settings: Settings,
        *,
        retry: RetryController | None = None,
        metrics: PrometheusModelMetrics | None = None,
        sleep_fn: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        """Initialize pipeline.

        Args:
            repo: Durable record store
            client: Language model client
            settings: Application settings
            retry: Retry controller (default built from settings)
            metrics: Metrics recorder (optional)
            sleep_fn: Injectable sleep for the inter-section delay (default: asyncio.sleep)
        """
        self._repo = repo
        self._client = client
        self._settings = settings
        self._metrics = metrics or PrometheusModelMetrics()
        self._sleep = sleep_fn or asyncio.sleep
        retry = retry or RetryController(
            RetryConfig(
                max_retries=settings.retry_max_retries,
                base_delay_ms=settings.retry_base_delay_ms,
            ),
            metrics=self._metrics,
        )
        self._analyzer = StructureAnalyzer(
            client,
            retry,
            temperature=settings.model_temperature,
            max_output_tokens=settings.structure_max_output_tokens,
        )
        self._summarizer = SectionSummarizer(
            client,
            retry,
            temperature=settings.model_temperature,
            max_output_tokens=settings.summary_max_output_tokens,
        )

    async def _load(self, document_id: int) -> DocumentRecord:
        document = await self._repo.get_document(document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        return document

    async def _fail(self, document_id: int, stage: str, error: Exception) -> None:
        logger.exception(
            f"Pipeline {stage} failed for document {document_id}: {error}",
            extra={"structured": {"document_id": document_id, "stage": stage}},
        )
        self._metrics.inc_pipeline_run(stage, "failed")
        await self._repo.update_document(
            document_id,
            status=DocumentStatus.failed,
            error_message=str(error) or type(error).__name__,
            status_message=f"Processing failed: {error}",
        )

    async def _discover_models(self) -> list[ModelInfo] | None:
        try:
            return await self._client.list_models()
        except ModelError as e:
            logger.warning(f"Model discovery failed, using default chunk budget: {e}")
            return None

    async def start(
        self,
        document_id: int,
        *,
        selected_model: str,
        file_name: str,
        document_text: str,
        custom_outline: list[SectionDescriptor] | None = None,
        pdf_title: str | None = None,
        pdf_author: str | None = None,
    ) -> ContinuationState:
        """Run everything up to the approval gate.

        May be called on a document in any state; prior sections are
        discarded and progress restarts from 0. A supplied
        `custom_outline` skips structure analysis.

        Returns:
            The continuation state persisted alongside the outline

        Raises:
            PipelineInputError: Missing model, file name or text (nothing written)
            DocumentNotFoundError: Unknown document (nothing written)
            Exception: Any stage failure, after the document is marked failed
        """
        if not selected_model or not file_name:
            raise PipelineInputError("Missing required parameters: selected_model and file_name")
        if not document_text.strip() and custom_outline is None:
            raise PipelineInputError("Missing required parameter: document_text")

        await self._load(document_id)

        try:
            state = await self._run_until_gate(
                document_id,
                selected_model=selected_model,
                file_name=file_name,
                document_text=document_text,
                custom_outline=custom_outline,
                pdf_title=pdf_title,
                pdf_author=pdf_author,
            )
        except Exception as e:
            await self._fail(document_id, "outline", e)
            raise

        self._metrics.inc_pipeline_run("outline", "success")
        return state

    async def _run_until_gate(
        self,
        document_id: int,
        *,
        selected_model: str,
        file_name: str,
        document_text: str,
        custom_outline: list[SectionDescriptor] | None,
        pdf_title: str | None,
        pdf_author: str | None,
    ) -> ContinuationState:
        await self._repo.delete_sections(document_id)
        tracker = StatusTracker(self._repo, document_id)

        await tracker.update(
            "initializing",
            "Starting document processing...",
            0,
            status=DocumentStatus.processing,
            error_message=None,
            outline=None,
            outline_generated_at=None,
            outline_approved_at=None,
            continuation_state=None,
            completed_at=None,
        )
        await tracker.update(
            "initializing",
            f"Initializing document processing for {file_name} with {selected_model}.",
            25,
            pdf_title=pdf_title,
            pdf_author=pdf_author,
        )

        pages = _count_pages(document_text)
        await tracker.update(
            "extracting_text",
            f"Text received: {len(document_text)} characters across {pages} pages.",
            30,
        )

        models = await self._discover_models()
        budget = resolve_chunk_budget(selected_model, models, self._settings.default_chunk_budget)
        await tracker.update(
            "chunking_document",
            f"Analyzing document for chunking ({len(document_text)} characters, "
            f"budget {budget}).",
            35,
        )
        chunks = split_text(document_text, budget)
        await tracker.update("chunking_document", f"Document split into {len(chunks)} chunks")

        if custom_outline is not None:
            outline = list(custom_outline)
            await tracker.update(
                "analyzing_structure",
                f"Using custom table of contents with {len(outline)} sections.",
            )
        else:
            await tracker.update(
                "analyzing_structure",
                "Analyzing document structure with AI... "
                "Sending chunks to the model for table of contents generation.",
                45,
            )
            outline = await self._analyzer.analyze_chunks(
                chunks,
                model=selected_model,
                report=tracker.reporter("analyzing_structure"),
            )
            if self._settings.outline_merge_across_chunks and len(chunks) > 1:
                before = len(outline)
                outline = merge_overlapping_sections(outline)
                logger.info(f"Merged outline across chunks: {before} -> {len(outline)} sections")

        await tracker.update(
            "analyzing_structure",
            f"Document structure analysis completed. "
            f"Identified {len(outline)} sections in the document.",
            60,
        )

        await tracker.update(
            "generating_toc",
            "Table of contents generated! Available for download.",
            65,
            outline=outline,
            outline_generated_at=_now(),
        )

        state = ContinuationState(
            document_id=document_id,
            selected_model=selected_model,
            file_name=file_name,
        )
        await tracker.update(
            "awaiting_outline_approval",
            'Outline generated! Please review and click "Continue" to proceed with summarization.',
            65,
            status=DocumentStatus.awaiting_outline_approval,
            continuation_state=state,
        )
        return state

    async def resume(
        self,
        document_id: int,
        *,
        document_text: str,
        selected_model: str | None = None,
        file_name: str | None = None,
        outline: list[SectionDescriptor] | None = None,
    ) -> list[SectionRecord]:
        """Continue past the approval gate and summarize every section.

        The move out of `awaiting_outline_approval` is a compare-and-set,
        so a document in any other state is rejected without being touched.
        An edited `outline` replaces the persisted one.

        Returns:
            Created sections in order

        Raises:
            DocumentNotFoundError: Unknown document
            InvalidDocumentStateError: Document is not awaiting approval
            PipelineInputError: No model known for this document
            Exception: Any stage failure, after the document is marked failed
        """
        document = await self._load(document_id)
        if document.status != DocumentStatus.awaiting_outline_approval:
            raise InvalidDocumentStateError(
                document_id, document.status, DocumentStatus.awaiting_outline_approval
            )

        state = document.continuation_state
        model = selected_model or (state.selected_model if state else None)
        if not model:
            raise PipelineInputError("Missing required parameter: selected_model")

        sections = list(outline) if outline is not None else list(document.outline or [])
        fields: dict[str, object] = {"outline_approved_at": _now()}
        if outline is not None:
            fields["outline"] = sections

        approved = await self._repo.transition_status(
            document_id,
            DocumentStatus.awaiting_outline_approval,
            DocumentStatus.processing,
            **fields,
        )
        if not approved:
            current = await self._load(document_id)
            raise InvalidDocumentStateError(
                document_id, current.status, DocumentStatus.awaiting_outline_approval
            )

        logger.info(
            f"Resuming document {document_id} ({file_name or document.original_name}) "
            f"with {len(sections)} sections",
            extra={"structured": {"document_id": document_id, "model": model}},
        )

        try:
            created = await self._summarize_sections(
                document_id,
                sections,
                document_text=document_text,
                model=model,
                start_progress=document.progress,
            )
        except Exception as e:
            await self._fail(document_id, "summaries", e)
            raise

        self._metrics.inc_pipeline_run("summaries", "success")
        return created

    async def _summarize_sections(
        self,
        document_id: int,
        sections: list[SectionDescriptor],
        *,
        document_text: str,
        model: str,
        start_progress: int,
    ) -> list[SectionRecord]:
        tracker = StatusTracker(self._repo, document_id, start_progress=start_progress)
        total = len(sections)
        bullet_points = self._settings.summary_bullet_points

        await tracker.update(
            "generating_summaries",
            f"Generating detailed summaries for {total} sections...",
            SUMMARY_PROGRESS_START,
        )

        created: list[SectionRecord] = []
        for i, section in enumerate(sections):
            await tracker.update(
                "generating_summaries",
                f"Processing section {i + 1}/{total}: {section.title}",
                SUMMARY_PROGRESS_START + round(i / total * SUMMARY_PROGRESS_SPAN),
            )

            if i > 0:
                await self._sleep(self._settings.section_delay_seconds)

            next_section = sections[i + 1] if i + 1 < total else None
            content = extract_section_content(document_text, section, next_section)
            logger.info(
                f"Extracted {len(content)} characters for section: {section.title} "
                f"(pages {section.start_page}-{section.end_page})"
            )

            await tracker.update(
                "generating_summaries",
                f"Analyzing section {i + 1}/{total}: {section.title} with AI...",
            )
            summary = await self._summarizer.summarize(
                section.title,
                content,
                model=model,
                bullet_points=bullet_points,
                report=tracker.reporter("generating_summaries"),
            )

            record = await self._repo.add_section(
                document_id,
                title=section.title,
                summary=summary.as_text(),
                summary_format=summary.kind,
                start_page=section.start_page,
                end_page=section.end_page,
                section_number=i + 1,
            )
            created.append(record)

            await tracker.update(
                "generating_summaries",
                f"Completed section {i + 1}/{total}: {section.title} (summary generated)",
                SUMMARY_PROGRESS_START + round((i + 1) / total * SUMMARY_PROGRESS_SPAN),
            )

        await tracker.update(
            "generating_summaries",
            f"All section summaries generated. Successfully processed {len(created)} sections.",
            SUMMARY_PROGRESS_START + SUMMARY_PROGRESS_SPAN,
        )
        await tracker.update(
            "finalizing",
            "Finalizing document processing...",
            98,
        )
        await tracker.update(
            "completed",
            f"Processing complete! Generated {len(created)} section summaries.",
            100,
            status=DocumentStatus.completed,
            completed_at=_now(),
        )
        return created
