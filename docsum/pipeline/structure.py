"""Structure analysis stage - text chunks to a candidate outline."""

import json
import logging
import re
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import ValidationError

from docsum.llm.catalog import normalize_model_name
from docsum.llm.client import (
    EmptyModelResponseError,
    FinishReason,
    GenerationRequest,
    ModelClient,
    ModelRateLimitError,
)
from docsum.llm.prompts import build_continuation_prompt, build_structure_prompt
from docsum.models.document import SectionDescriptor
from docsum.pipeline.retry import RetryController

logger = logging.getLogger(__name__)

Reporter = Callable[[str], Awaitable[None]]

CODE_FENCE = re.compile(r"```(?:json)?")
JSON_ARRAY = re.compile(r"\[[\s\S]*\]")


class OutlineParseError(Exception):
    """Model output is not a JSON array of section descriptors."""

    pass


def _to_descriptor(item: Any, index: int) -> SectionDescriptor:
    if not isinstance(item, dict):
        raise OutlineParseError(f"Outline entry {index} is not an object: {item!r}")

    data = dict(item)
    try:
        start = int(data.get("start_page"))  # type: ignore[arg-type]
        end = int(data.get("end_page", start))  # type: ignore[arg-type]
    except (TypeError, ValueError) as e:
        raise OutlineParseError(f"Outline entry {index} has invalid page numbers") from e

    # Tolerate inverted or zero-based ranges rather than failing the run
    start = max(1, start)
    if end < start:
        logger.warning(
            f"Outline entry {index} ends before it starts ({start}-{end}), clamping end_page"
        )
        end = start
    data["start_page"] = start
    data["end_page"] = end

    try:
        return SectionDescriptor.model_validate(data)
    except ValidationError as e:
        raise OutlineParseError(f"Outline entry {index} is invalid: {e.errors()[0]['msg']}") from e


def parse_outline(text: str) -> list[SectionDescriptor]:
    """Parse model output into section descriptors.

    Code fences are stripped and the outermost JSON array is extracted,
    so surrounding prose is ignored.

    Raises:
        OutlineParseError: No array found, invalid JSON, or invalid entries
    """
    cleaned = CODE_FENCE.sub("", text).strip()

    match = JSON_ARRAY.search(cleaned)
    if not match:
        raise OutlineParseError("No valid JSON found in response")

    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise OutlineParseError(f"Outline JSON could not be parsed: {e.msg}") from e

    if not isinstance(data, list):
        raise OutlineParseError("Outline JSON is not an array")

    return [_to_descriptor(item, i) for i, item in enumerate(data)]


class StructureAnalyzer:
    """Asks the model for a table of contents, one chunk at a time."""

    def __init__(
        self,
        client: ModelClient,
        retry: RetryController,
        *,
        temperature: float = 0.3,
        max_output_tokens: int = 8192,
    ) -> None:
        self._client = client
        self._retry = retry
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens

    def _request(self, model: str, prompt: str, task: str) -> GenerationRequest:
        return GenerationRequest(
            model=normalize_model_name(model),
            prompt=prompt,
            temperature=self._temperature,
            max_output_tokens=self._max_output_tokens,
            task=task,
        )

    async def analyze_chunk(
        self,
        chunk: str,
        *,
        model: str,
        chunk_number: int = 1,
        total_chunks: int = 1,
        report: Reporter | None = None,
    ) -> list[SectionDescriptor]:
        """Produce the outline for one chunk.

        A truncated response gets exactly one continuation request; the
        combined text is then parsed.

        Raises:
            OutlineParseError: Output (after continuation) is not a valid outline
            EmptyModelResponseError: Model returned no text
            ModelError: Non-retryable model failure, or rate limit after retries
        """
        prefix = f"[Chunk {chunk_number}/{total_chunks}]"
        prompt = build_structure_prompt(chunk, chunk_number, total_chunks)

        async def notify(message: str) -> None:
            if report is not None:
                await report(message)

        async def attempt() -> list[SectionDescriptor]:
            await notify(f"{prefix} Calling model for structure analysis...")

            result = await self._client.generate(self._request(model, prompt, "structure"))
            text = result.text

            if result.finish_reason == FinishReason.truncated:
                logger.info(f"{prefix} Response truncated, requesting continuation")
                await notify(f"{prefix} Response truncated, continuing...")
                continued = await self._client.generate(
                    self._request(model, build_continuation_prompt(text), "continuation")
                )
                text += continued.text

            if not text.strip():
                raise EmptyModelResponseError("No analysis returned from model")

            sections = parse_outline(text)
            await notify(f"{prefix} Successfully parsed {len(sections)} sections.")
            return sections

        async def on_retry(retry_number: int, delay: float, error: ModelRateLimitError) -> None:
            await notify(
                f"Rate limit reached. Waiting {round(delay)} seconds before retrying..."
            )

        return await self._retry.execute(attempt, task="structure", on_retry=on_retry)

    async def analyze_chunks(
        self,
        chunks: list[str],
        *,
        model: str,
        report: Reporter | None = None,
    ) -> list[SectionDescriptor]:
        """Analyze chunks serially and concatenate their outlines in chunk order.

        No de-duplication happens here.
        """
        outline: list[SectionDescriptor] = []
        total = len(chunks)

        for index, chunk in enumerate(chunks, start=1):
            if report is not None:
                await report(f"Analyzing chunk {index}/{total}...")

            sections = await self.analyze_chunk(
                chunk,
                model=model,
                chunk_number=index,
                total_chunks=total,
                report=report,
            )
            logger.info(f"Chunk {index}/{total} analysis complete: {len(sections)} sections")
            outline.extend(sections)

        return outline
