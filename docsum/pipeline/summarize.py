"""Summarization stage - section content to a bullet summary."""

import logging
import re
from collections.abc import Awaitable, Callable

from docsum.llm.catalog import normalize_model_name, supports_thinking_budget
from docsum.llm.client import (
    EmptyModelResponseError,
    GenerationRequest,
    ModelClient,
    ModelRateLimitError,
)
from docsum.llm.prompts import build_summary_prompt
from docsum.models.summary import RawTextSummary, Summary, WellFormedSummary
from docsum.pipeline.retry import RetryController

logger = logging.getLogger(__name__)

Reporter = Callable[[str], Awaitable[None]]

# "• text", "- text", "* text", "1. text", "1) text"
BULLET_LINE = re.compile(r"^\s*(?:[•\-*]|\d+[.)])\s+(?P<body>\S.*?)\s*$")


def classify_summary(text: str, expected_bullets: int) -> Summary:
    """Tag summary text as well formed or raw.

    Well formed means every non-blank line is a bullet and there are
    exactly `expected_bullets` of them.
    """
    lines = [line for line in text.splitlines() if line.strip()]
    bullets: list[str] = []

    for line in lines:
        match = BULLET_LINE.match(line)
        if match is None:
            return RawTextSummary(text=text)
        bullets.append(match.group("body"))

    if len(bullets) != expected_bullets:
        return RawTextSummary(text=text)
    return WellFormedSummary(text=text, bullets=bullets)


class SectionSummarizer:
    """Produces bullet summaries for extracted section content."""

    def __init__(
        self,
        client: ModelClient,
        retry: RetryController,
        *,
        temperature: float = 0.3,
        max_output_tokens: int = 2048,
    ) -> None:
        self._client = client
        self._retry = retry
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens

    async def summarize(
        self,
        title: str,
        content: str,
        *,
        model: str,
        bullet_points: int = 12,
        report: Reporter | None = None,
    ) -> Summary:
        """Summarize one section.

        Args:
            title: Section title
            content: Extracted section text
            model: Model identifier
            bullet_points: Number of bullets to request
            report: Receives rate-limit wait messages

        Returns:
            WellFormedSummary or RawTextSummary of the trimmed output

        Raises:
            EmptyModelResponseError: Model returned no text
            ModelError: Non-retryable failure, or rate limit after retries
        """
        request = GenerationRequest(
            model=normalize_model_name(model),
            prompt=build_summary_prompt(title, content, bullet_points),
            temperature=self._temperature,
            max_output_tokens=self._max_output_tokens,
            disable_thinking=supports_thinking_budget(model),
            task="summary",
        )

        async def attempt() -> str:
            result = await self._client.generate(request)
            text = result.text.strip()
            if not text:
                raise EmptyModelResponseError(f'No summary returned for section "{title}"')
            return text

        async def on_retry(retry_number: int, delay: float, error: ModelRateLimitError) -> None:
            if report is not None:
                await report(
                    f"Rate limit reached. Waiting {round(delay)} seconds before retrying..."
                )

        text = await self._retry.execute(attempt, task="summary", on_retry=on_retry)
        summary = classify_summary(text, bullet_points)

        if isinstance(summary, RawTextSummary):
            logger.warning(
                f'Summary for "{title}" did not match the requested {bullet_points} bullets',
                extra={"structured": {"title": title, "expected_bullets": bullet_points}},
            )
        return summary
