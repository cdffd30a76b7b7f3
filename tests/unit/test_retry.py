"""Tests for the rate-limit-aware retry controller."""

import pytest

from docsum.llm.client import ModelAuthError, ModelRateLimitError
from docsum.pipeline.retry import RetryConfig, RetryController


class FakeSleep:
    """Records requested sleeps instead of waiting."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class Flaky:
    """Raises the given errors in order, then returns `value`."""

    def __init__(self, errors: list[Exception], value: str = "ok") -> None:
        self.errors = list(errors)
        self.value = value
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.value


@pytest.mark.asyncio
async def test_succeeds_after_k_rate_limits() -> None:
    """k < max_retries rate limits: success value returned, on_retry called k times."""
    sleep = FakeSleep()
    controller = RetryController(RetryConfig(max_retries=3, base_delay_ms=1000), sleep_fn=sleep)
    fn = Flaky([ModelRateLimitError("Too Many Requests")] * 2)
    retries: list[tuple[int, float]] = []

    async def on_retry(retry_number: int, delay: float, error: ModelRateLimitError) -> None:
        retries.append((retry_number, delay))

    result = await controller.execute(fn, task="test", on_retry=on_retry)

    assert result == "ok"
    assert fn.calls == 3
    assert retries == [(1, 1.0), (2, 2.0)]
    assert sleep.calls == [1.0, 2.0]


@pytest.mark.asyncio
async def test_non_rate_limit_error_propagates_immediately() -> None:
    """Any other error is raised on the first attempt with no on_retry call."""
    sleep = FakeSleep()
    controller = RetryController(sleep_fn=sleep)
    fn = Flaky([ModelAuthError("bad key")] * 5)
    retries: list[int] = []

    async def on_retry(retry_number: int, delay: float, error: ModelRateLimitError) -> None:
        retries.append(retry_number)

    with pytest.raises(ModelAuthError):
        await controller.execute(fn, on_retry=on_retry)

    assert fn.calls == 1
    assert retries == []
    assert sleep.calls == []


@pytest.mark.asyncio
async def test_plain_exceptions_are_not_retried() -> None:
    """Errors outside the model taxonomy propagate too."""
    controller = RetryController(sleep_fn=FakeSleep())
    fn = Flaky([ValueError("boom")])

    with pytest.raises(ValueError):
        await controller.execute(fn)

    assert fn.calls == 1


@pytest.mark.asyncio
async def test_exhausted_retries_reraise_last_error() -> None:
    """After max_retries retries the last rate-limit error is raised."""
    sleep = FakeSleep()
    controller = RetryController(RetryConfig(max_retries=3, base_delay_ms=100), sleep_fn=sleep)
    errors = [ModelRateLimitError(f"Too Many Requests {i}") for i in range(4)]
    fn = Flaky(errors)

    with pytest.raises(ModelRateLimitError, match="Too Many Requests 3"):
        await controller.execute(fn)

    assert fn.calls == 4
    assert sleep.calls == [0.1, 0.2, 0.4]


@pytest.mark.asyncio
async def test_service_hint_overrides_backoff() -> None:
    """A retry delay carried by the error is used as-is."""
    sleep = FakeSleep()
    controller = RetryController(sleep_fn=sleep)
    fn = Flaky([ModelRateLimitError("Too Many Requests", retry_after_seconds=37.0)])

    await controller.execute(fn)

    assert sleep.calls == [37.0]


def test_compute_delay_exponential() -> None:
    """Backoff doubles from the base delay."""
    controller = RetryController(RetryConfig(max_retries=5, base_delay_ms=500))
    error = ModelRateLimitError("Too Many Requests")

    assert [controller.compute_delay(n, error) for n in (1, 2, 3, 4)] == [0.5, 1.0, 2.0, 4.0]


@pytest.mark.asyncio
async def test_zero_retries_means_single_attempt() -> None:
    """max_retries=0 runs once and raises."""
    controller = RetryController(RetryConfig(max_retries=0), sleep_fn=FakeSleep())
    fn = Flaky([ModelRateLimitError("Too Many Requests")])

    with pytest.raises(ModelRateLimitError):
        await controller.execute(fn)

    assert fn.calls == 1
