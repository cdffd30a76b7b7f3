"""Structured logging for model calls and pipeline stages."""

import logging
from typing import Any

logger = logging.getLogger(__name__)


class StructuredPipelineLogger:
    """Structured logger for pipeline progress and model call attempts."""

    def log_model_attempt(
        self,
        *,
        task: str,
        model: str,
        attempt: int,
        outcome: str,
        latency_ms: float,
        error_reason: str | None = None,
    ) -> None:
        """Log one model call attempt with structured data."""
        log_data: dict[str, Any] = {
            "task": task,
            "model": model,
            "attempt": attempt,
            "outcome": outcome,
            "latency_ms": round(latency_ms, 2),
        }

        if error_reason:
            log_data["error_reason"] = error_reason

        log_msg = f"Model call: {task} on {model} - {outcome}"

        if outcome == "success":
            logger.info(log_msg, extra={"structured": log_data})
        else:
            logger.warning(log_msg, extra={"structured": log_data})

    def log_stage(
        self,
        *,
        document_id: int,
        step: str,
        message: str,
        progress: int | None = None,
    ) -> None:
        """Log a pipeline stage transition."""
        log_data: dict[str, Any] = {
            "document_id": document_id,
            "step": step,
            "progress": progress,
        }
        logger.info(f"[document {document_id}] {step}: {message}", extra={"structured": log_data})
