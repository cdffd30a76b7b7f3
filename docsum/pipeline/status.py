"""Status/progress writer for one pipeline run."""

from collections.abc import Awaitable, Callable
from typing import Any

from docsum.db.repositories import DocumentRepository
from docsum.utils.logging import StructuredPipelineLogger


class StatusTracker:
    """Writes `current_step`, `status_message` and `progress` for a document.

    Every update is a single `update_document` call, so a poll issued after
    it returns observes the new position. Progress never moves backwards
    within a tracker's lifetime; a lower value is raised to the last one
    written.
    """

    def __init__(
        self,
        repo: DocumentRepository,
        document_id: int,
        *,
        start_progress: int = 0,
        logger: StructuredPipelineLogger | None = None,
    ) -> None:
        self._repo = repo
        self._document_id = document_id
        self._progress = start_progress
        self._logger = logger or StructuredPipelineLogger()

    async def update(
        self,
        step: str,
        message: str,
        progress: int | None = None,
        **fields: Any,
    ) -> None:
        """Persist a stage transition.

        Args:
            step: Sub-stage label stored in `current_step`
            message: Human-readable status message
            progress: New progress value, if this transition moves it
            **fields: Extra document fields written in the same statement
        """
        values: dict[str, Any] = {"current_step": step, "status_message": message, **fields}
        if progress is not None:
            self._progress = min(100, max(self._progress, progress))
            values["progress"] = self._progress

        await self._repo.update_document(self._document_id, **values)
        self._logger.log_stage(
            document_id=self._document_id,
            step=step,
            message=message,
            progress=self._progress,
        )

    def reporter(self, step: str) -> Callable[[str], Awaitable[None]]:
        """Message-only callback bound to `step`, for stages that report as they go."""

        async def report(message: str) -> None:
            await self.update(step, message)

        return report
