"""Tests for the language model client.

All tests are deterministic and do not make real network calls.
"""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from docsum.config import Settings
from docsum.llm.client import (
    DeterministicStubClient,
    FinishReason,
    GenerationRequest,
    ModelAPIError,
    ModelAuthError,
    ModelNotFoundError,
    ModelRateLimitError,
    OpenAICompatibleClient,
    RateLimitedModelClient,
    build_model_client,
    parse_retry_delay,
    translate_error,
)
from docsum.llm.prompts import build_structure_prompt, build_summary_prompt
from docsum.models.document import SectionDescriptor
from docsum.pipeline.extractor import extract_section_content

RETRY_BODY = {
    "error": {
        "code": 429,
        "message": "Resource has been exhausted",
        "details": [
            {"@type": "type.googleapis.com/google.rpc.QuotaFailure"},
            {"@type": "type.googleapis.com/google.rpc.RetryInfo", "retryDelay": "37s"},
        ],
    }
}


def _status_error(
    cls: type[openai.APIStatusError],
    status_code: int,
    body: object = None,
    headers: dict[str, str] | None = None,
) -> openai.APIStatusError:
    request = httpx.Request("POST", "https://example.test/v1/chat/completions")
    response = httpx.Response(status_code, request=request, headers=headers or {})
    return cls("error", response=response, body=body)


def _request(**overrides: object) -> GenerationRequest:
    fields: dict[str, object] = {
        "model": "models/gemini-2.0-flash",
        "prompt": "hello",
        "temperature": 0.3,
        "max_output_tokens": 100,
    }
    fields.update(overrides)
    return GenerationRequest(**fields)  # type: ignore[arg-type]


class TestParseRetryDelay:
    """parse_retry_delay behaviour."""

    def test_dict_payload(self) -> None:
        assert parse_retry_delay(RETRY_BODY) == 37.0

    def test_json_text_payload(self) -> None:
        assert parse_retry_delay(json.dumps(RETRY_BODY)) == 37.0

    def test_list_wrapped_payload(self) -> None:
        assert parse_retry_delay([RETRY_BODY]) == 37.0

    def test_fractional_delay(self) -> None:
        body = {
            "error": {
                "details": [
                    {"@type": "type.googleapis.com/google.rpc.RetryInfo", "retryDelay": "1.5s"}
                ]
            }
        }
        assert parse_retry_delay(body) == 1.5

    def test_missing_retry_info(self) -> None:
        assert parse_retry_delay({"error": {"details": []}}) is None

    def test_non_json_text(self) -> None:
        assert parse_retry_delay("Too Many Requests") is None

    def test_none(self) -> None:
        assert parse_retry_delay(None) is None


class TestTranslateError:
    """SDK errors map onto the model error taxonomy."""

    def test_rate_limit_carries_body_delay(self) -> None:
        error = translate_error(_status_error(openai.RateLimitError, 429, RETRY_BODY), "m")

        assert isinstance(error, ModelRateLimitError)
        assert error.retry_after_seconds == 37.0
        assert "Too Many Requests" in str(error)
        assert "RetryInfo" in error.error_text

    def test_rate_limit_falls_back_to_header(self) -> None:
        error = translate_error(
            _status_error(openai.RateLimitError, 429, None, {"retry-after": "12"}), "m"
        )

        assert isinstance(error, ModelRateLimitError)
        assert error.retry_after_seconds == 12.0

    def test_rate_limit_without_hint(self) -> None:
        error = translate_error(_status_error(openai.RateLimitError, 429), "m")

        assert isinstance(error, ModelRateLimitError)
        assert error.retry_after_seconds is None

    def test_auth_errors(self) -> None:
        assert isinstance(
            translate_error(_status_error(openai.AuthenticationError, 401), "m"), ModelAuthError
        )
        assert isinstance(
            translate_error(_status_error(openai.PermissionDeniedError, 403), "m"),
            ModelAuthError,
        )

    def test_not_found(self) -> None:
        error = translate_error(_status_error(openai.NotFoundError, 404), "models/nope")

        assert isinstance(error, ModelNotFoundError)
        assert "models/nope" in str(error)

    def test_other_status_is_api_error(self) -> None:
        error = translate_error(_status_error(openai.InternalServerError, 500), "m")

        assert isinstance(error, ModelAPIError)
        assert "500" in str(error)

    def test_connection_error_is_api_error(self) -> None:
        request = httpx.Request("POST", "https://example.test")
        error = translate_error(openai.APIConnectionError(request=request), "m")

        assert isinstance(error, ModelAPIError)


def _completion(content: str | None, finish_reason: str) -> MagicMock:
    choice = MagicMock()
    choice.message.content = content
    choice.finish_reason = finish_reason
    response = MagicMock()
    response.choices = [choice]
    return response


class TestOpenAICompatibleClient:
    """OpenAICompatibleClient with the SDK call mocked out."""

    @pytest.mark.asyncio
    async def test_generate_maps_length_to_truncated(self) -> None:
        client = OpenAICompatibleClient(api_key="test_key", base_url="https://example.test/v1/")
        create = AsyncMock(return_value=_completion("[{", "length"))
        client.client.chat.completions.create = create  # type: ignore[method-assign]

        result = await client.generate(_request())

        assert result.text == "[{"
        assert result.finish_reason == FinishReason.truncated
        kwargs = create.call_args.kwargs
        assert kwargs["model"] == "gemini-2.0-flash"
        assert kwargs["max_tokens"] == 100
        assert "extra_body" not in kwargs

    @pytest.mark.asyncio
    async def test_generate_sends_zero_thinking_budget(self) -> None:
        client = OpenAICompatibleClient(api_key="test_key", base_url="https://example.test/v1/")
        create = AsyncMock(return_value=_completion("• a", "stop"))
        client.client.chat.completions.create = create  # type: ignore[method-assign]

        result = await client.generate(_request(disable_thinking=True))

        assert result.finish_reason == FinishReason.stop
        thinking = create.call_args.kwargs["extra_body"]["extra_body"]["google"]
        assert thinking == {"thinking_config": {"thinking_budget": 0}}

    @pytest.mark.asyncio
    async def test_generate_translates_rate_limit(self) -> None:
        client = OpenAICompatibleClient(api_key="test_key", base_url="https://example.test/v1/")
        client.client.chat.completions.create = AsyncMock(  # type: ignore[method-assign]
            side_effect=_status_error(openai.RateLimitError, 429, RETRY_BODY)
        )

        with pytest.raises(ModelRateLimitError) as exc_info:
            await client.generate(_request())

        assert exc_info.value.retry_after_seconds == 37.0

    @pytest.mark.asyncio
    async def test_null_content_is_empty_text(self) -> None:
        client = OpenAICompatibleClient(api_key="test_key", base_url="https://example.test/v1/")
        client.client.chat.completions.create = AsyncMock(  # type: ignore[method-assign]
            return_value=_completion(None, "stop")
        )

        result = await client.generate(_request())

        assert result.text == ""


class TestDeterministicStubClient:
    """DeterministicStubClient behaviour."""

    @pytest.mark.asyncio
    async def test_structure_one_section_per_page(self) -> None:
        document = "=== PAGE 1 ===\nIntroduction\nbody\n=== PAGE 2 ===\n\nMethods\nmore"
        client = DeterministicStubClient()

        result = await client.generate(
            _request(prompt=build_structure_prompt(document, 1, 1), task="structure")
        )

        outline = json.loads(result.text)
        assert [(s["title"], s["start_page"]) for s in outline] == [
            ("Introduction", 1),
            ("Methods", 2),
        ]

    @pytest.mark.asyncio
    async def test_structure_pages_agree_with_extractor(self) -> None:
        """Stub outline page numbers address the same pages the extractor reads."""
        document = "=== PAGE 1 ===\nIntroduction\nbody\n=== PAGE 2 ===\n\nMethods\nmore"
        client = DeterministicStubClient()

        result = await client.generate(
            _request(prompt=build_structure_prompt(document, 1, 1), task="structure")
        )
        outline = [SectionDescriptor.model_validate(item) for item in json.loads(result.text)]

        assert extract_section_content(document, outline[0], outline[1]) == "Introduction\nbody"
        assert extract_section_content(document, outline[1]) == "Methods\nmore"

    @pytest.mark.asyncio
    async def test_summary_has_requested_bullets(self) -> None:
        client = DeterministicStubClient()

        result = await client.generate(
            _request(prompt=build_summary_prompt("Methods", "text", 5), task="summary")
        )

        lines = result.text.splitlines()
        assert len(lines) == 5
        assert all(line.startswith("• ") for line in lines)
        assert "Methods" in lines[0]

    @pytest.mark.asyncio
    async def test_stub_is_deterministic(self) -> None:
        client = DeterministicStubClient()
        request = _request(prompt=build_summary_prompt("A", "b", 3), task="summary")

        first = await client.generate(request)
        second = await client.generate(request)

        assert first == second


class TestBuildModelClient:
    """Client factory selection."""

    def test_no_key_returns_stub(self) -> None:
        settings = Settings(model_api_key="")

        assert isinstance(build_model_client(settings), DeterministicStubClient)

    def test_header_key_selects_live_client(self) -> None:
        settings = Settings(model_api_key="", model_rate_limit_enabled=False)

        client = build_model_client(settings, api_key="per-request-key")

        assert isinstance(client, OpenAICompatibleClient)

    def test_live_client_is_gated_when_enabled(self) -> None:
        settings = Settings(model_api_key="configured", model_rate_limit_enabled=True)

        assert isinstance(build_model_client(settings), RateLimitedModelClient)


@pytest.mark.asyncio
async def test_rate_limited_client_acquires_before_generate() -> None:
    """The shared gate is consulted with the request's model before delegating."""
    calls: list[str] = []

    class Gate:
        async def acquire(self, model: str) -> None:
            calls.append(f"acquire:{model}")

    inner = DeterministicStubClient()
    client = RateLimitedModelClient(inner, Gate())  # type: ignore[arg-type]

    await client.generate(_request(task="other"))

    assert calls == ["acquire:models/gemini-2.0-flash"]
