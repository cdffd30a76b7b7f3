"""Language model client over an OpenAI-compatible endpoint.

Security: the API key comes from settings or a per-request header and is
never persisted. A deterministic stub is used when no key is present.
"""

import json
import logging
import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

import openai
from openai import AsyncOpenAI

from docsum.config import Settings
from docsum.llm.catalog import ModelInfo, build_model_info, is_supported_model
from docsum.pipeline.extractor import PAGE_MARKER
from docsum.ratelimit import ModelRateGate, get_model_rate_gate
from docsum.utils.logging import StructuredPipelineLogger
from docsum.utils.metrics import PrometheusModelMetrics

logger = logging.getLogger(__name__)

RETRY_INFO_TYPE = "type.googleapis.com/google.rpc.RetryInfo"


class ModelError(Exception):
    """Base class for language model failures."""

    def __init__(self, message: str, *, error_text: str = "") -> None:
        super().__init__(message)
        self.error_text = error_text


class ModelRateLimitError(ModelError):
    """The service answered "Too Many Requests"; the only retryable failure."""

    def __init__(
        self,
        message: str,
        *,
        retry_after_seconds: float | None = None,
        error_text: str = "",
    ) -> None:
        super().__init__(message, error_text=error_text)
        self.retry_after_seconds = retry_after_seconds


class ModelAuthError(ModelError):
    """API key rejected or lacking permission."""

    pass


class ModelNotFoundError(ModelError):
    """Model name unknown or not available to this key."""

    pass


class ModelAPIError(ModelError):
    """Any other non-success response or transport failure."""

    pass


class EmptyModelResponseError(ModelError):
    """The service answered successfully but with no text."""

    pass


class FinishReason(str, Enum):
    """Why the model stopped generating."""

    stop = "stop"
    truncated = "truncated"
    other = "other"


@dataclass(frozen=True)
class GenerationRequest:
    """A single prompt sent to the model."""

    model: str
    prompt: str
    temperature: float
    max_output_tokens: int
    disable_thinking: bool = False
    task: str = "generate"


@dataclass(frozen=True)
class GenerationResult:
    """Generated text plus its finish reason."""

    text: str
    finish_reason: FinishReason


class ModelClient(Protocol):
    """Protocol for language model client implementations."""

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Generate text for a prompt.

        Raises:
            ModelRateLimitError: Service is rate limiting this key/model
            ModelError: Any other failure
        """
        ...

    async def list_models(self) -> list[ModelInfo]:
        """List generation models available to this key."""
        ...


def _parse_delay_string(value: Any) -> float | None:
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        match = re.fullmatch(r"\s*(\d+(?:\.\d+)?)s?\s*", value)
        if match:
            return float(match.group(1))
    return None


def parse_retry_delay(payload: Any) -> float | None:
    """Extract the service-suggested retry delay from an error payload.

    Understands the Google RPC shape
    `{"error": {"details": [{"@type": ".../RetryInfo", "retryDelay": "37s"}]}}`,
    whether passed as a dict, a list wrapping that dict, or JSON text.

    Returns:
        Delay in seconds, or None when the payload carries no usable hint
    """
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError:
            return None

    if isinstance(payload, list):
        payload = payload[0] if payload else None

    if not isinstance(payload, dict):
        return None

    error = payload.get("error", payload)
    if not isinstance(error, dict):
        return None

    for detail in error.get("details") or []:
        if isinstance(detail, dict) and detail.get("@type") == RETRY_INFO_TYPE:
            delay = _parse_delay_string(detail.get("retryDelay"))
            if delay is not None and delay > 0:
                return delay
    return None


def _retry_after_from_error(error: openai.APIStatusError) -> float | None:
    delay = parse_retry_delay(error.body)
    if delay is not None:
        return delay

    header = error.response.headers.get("retry-after") if error.response is not None else None
    parsed = _parse_delay_string(header)
    return parsed if parsed and parsed > 0 else None


def _error_text(error: openai.APIStatusError) -> str:
    if error.body is None:
        return ""
    return error.body if isinstance(error.body, str) else json.dumps(error.body)


def translate_error(error: openai.OpenAIError, model: str) -> ModelError:
    """Map an SDK exception onto the model error taxonomy."""
    if isinstance(error, openai.RateLimitError):
        return ModelRateLimitError(
            f"Too Many Requests: {error.message}",
            retry_after_seconds=_retry_after_from_error(error),
            error_text=_error_text(error),
        )
    if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return ModelAuthError(
            f"Authentication error. Please check your API key and permissions for model {model}.",
            error_text=_error_text(error),
        )
    if isinstance(error, openai.NotFoundError):
        return ModelNotFoundError(
            f"Model {model} not found. Please check if the model name is correct "
            "and you have access to it.",
            error_text=_error_text(error),
        )
    if isinstance(error, openai.APIStatusError):
        return ModelAPIError(
            f"Model API error: {error.status_code} {error.message}",
            error_text=_error_text(error),
        )
    return ModelAPIError(f"Model API error: {error}")


def _finish_reason(raw: str | None) -> FinishReason:
    if raw == "length":
        return FinishReason.truncated
    if raw == "stop":
        return FinishReason.stop
    return FinishReason.other


class OpenAICompatibleClient:
    """Model client for any OpenAI-compatible chat completions endpoint."""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        logger: StructuredPipelineLogger | None = None,
        metrics: PrometheusModelMetrics | None = None,
    ) -> None:
        """Initialize client.

        Args:
            api_key: Service API key
            base_url: OpenAI-compatible base URL
            logger: Structured logger (optional)
            metrics: Metrics recorder (optional)
        """
        # SDK retries are disabled; the pipeline's retry controller owns that policy
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url, max_retries=0)
        self._logger = logger or StructuredPipelineLogger()
        self._metrics = metrics or PrometheusModelMetrics()

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Generate text using the chat completions API."""
        kwargs: dict[str, Any] = {}
        if request.disable_thinking:
            kwargs["extra_body"] = {
                "extra_body": {"google": {"thinking_config": {"thinking_budget": 0}}}
            }

        start = time.monotonic()
        try:
            response = await self.client.chat.completions.create(
                model=request.model.removeprefix("models/"),
                messages=[{"role": "user", "content": request.prompt}],
                temperature=request.temperature,
                max_tokens=request.max_output_tokens,
                **kwargs,
            )
        except openai.OpenAIError as e:
            translated = translate_error(e, request.model)
            outcome = "rate_limited" if isinstance(translated, ModelRateLimitError) else "error"
            latency_ms = (time.monotonic() - start) * 1000
            self._metrics.record_latency(request.task, outcome, latency_ms)
            self._logger.log_model_attempt(
                task=request.task,
                model=request.model,
                attempt=1,
                outcome=outcome,
                latency_ms=latency_ms,
                error_reason=type(translated).__name__,
            )
            raise translated from e

        latency_ms = (time.monotonic() - start) * 1000
        self._metrics.record_latency(request.task, "success", latency_ms)
        self._logger.log_model_attempt(
            task=request.task,
            model=request.model,
            attempt=1,
            outcome="success",
            latency_ms=latency_ms,
        )

        if not response.choices:
            return GenerationResult(text="", finish_reason=FinishReason.other)

        choice = response.choices[0]
        return GenerationResult(
            text=choice.message.content or "",
            finish_reason=_finish_reason(choice.finish_reason),
        )

    async def list_models(self) -> list[ModelInfo]:
        """List supported generation models with their known limits."""
        try:
            page = await self.client.models.list()
        except openai.OpenAIError as e:
            raise translate_error(e, "models") from e

        return [
            build_model_info(model.id)
            for model in page.data
            if is_supported_model(model.id)
        ]


class DeterministicStubClient:
    """Deterministic stub client for testing (no API key required).

    Structure prompts yield one section per page marker, titled by the
    first non-blank line of that page. Summary prompts yield the requested
    number of bullets.
    """

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Generate deterministic stub output."""
        if request.task == "structure":
            text = json.dumps(self._outline_from_prompt(request.prompt), indent=2)
        elif request.task == "summary":
            text = self._summary_from_prompt(request.prompt)
        else:
            text = ""
        return GenerationResult(text=text, finish_reason=FinishReason.stop)

    async def list_models(self) -> list[ModelInfo]:
        """Return the stub model catalog."""
        return [build_model_info("models/gemini-2.0-flash"), build_model_info("models/gemma-3")]

    def _outline_from_prompt(self, prompt: str) -> list[dict[str, Any]]:
        document = prompt.split("Document to analyze:", 1)[-1]
        sections: list[dict[str, Any]] = []
        page: int | None = None
        titled = False

        for line in document.splitlines():
            marker = PAGE_MARKER.search(line)
            if marker:
                page = int(marker.group(1))
                titled = False
                continue
            stripped = line.strip()
            if page is None or titled or not stripped or stripped.startswith("Return ONLY"):
                continue
            sections.append(
                {
                    "title": stripped[:80],
                    "start_page": page,
                    "end_page": page,
                    "start_text": " ".join(stripped.split()[:5]),
                }
            )
            titled = True

        return sections

    def _summary_from_prompt(self, prompt: str) -> str:
        title_match = re.search(r"\*\*Section Title:\*\* (.+)", prompt)
        count_match = re.search(r"Create exactly (\d+) bullet points", prompt)
        title = title_match.group(1).strip() if title_match else "Section"
        count = int(count_match.group(1)) if count_match else 12
        return "\n".join(f"• Key point {i + 1} of {title} (stub)" for i in range(count))


class RateLimitedModelClient:
    """Client wrapper that consults the shared per-model gate before each call."""

    def __init__(self, inner: ModelClient, gate: ModelRateGate) -> None:
        self._inner = inner
        self._gate = gate

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Wait for a slot on the model, then delegate."""
        await self._gate.acquire(request.model)
        return await self._inner.generate(request)

    async def list_models(self) -> list[ModelInfo]:
        """Delegate; listing does not count against generation quota."""
        return await self._inner.list_models()


def build_model_client(settings: Settings, api_key: str | None = None) -> ModelClient:
    """Factory function to get appropriate model client based on config.

    Args:
        settings: Application settings
        api_key: Per-request key overriding the configured one

    Returns:
        OpenAICompatibleClient if a key is available, DeterministicStubClient otherwise,
        wrapped in the shared rate gate when enabled
    """
    key = api_key or settings.model_api_key.get_secret_value()

    client: ModelClient
    if key:
        logger.info("Using OpenAI-compatible model client")
        client = OpenAICompatibleClient(api_key=key, base_url=settings.model_base_url)
    else:
        logger.warning("No model API key configured, using deterministic stub client")
        return DeterministicStubClient()

    if settings.model_rate_limit_enabled:
        client = RateLimitedModelClient(client, get_model_rate_gate(settings))
    return client
