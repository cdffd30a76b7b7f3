"""Rate-limit-aware retry controller for model calls.

Only `ModelRateLimitError` is retried. The wait before attempt n+1 is the
service-suggested delay when the error carries one, otherwise exponential
backoff `base_delay * 2^(n-1)`. Any other exception propagates on the
attempt that raised it.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from docsum.llm.client import ModelRateLimitError
from docsum.utils.metrics import PrometheusModelMetrics

T = TypeVar("T")

logger = logging.getLogger(__name__)

# Called with (retry_number, wait_seconds, error) before each wait
OnRetry = Callable[[int, float, ModelRateLimitError], Awaitable[None]]


@dataclass(frozen=True)
class RetryConfig:
    """Retry policy for rate-limited calls."""

    max_retries: int = 3
    base_delay_ms: int = 1000


class RetryController:
    """Bounded retry wrapper around any async callable."""

    def __init__(
        self,
        config: RetryConfig | None = None,
        metrics: PrometheusModelMetrics | None = None,
        sleep_fn: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        """Initialize controller.

        Args:
            config: Retry policy (default: 3 retries, 1000 ms base delay)
            metrics: Metrics recorder (optional)
            sleep_fn: Injectable sleep function (default: asyncio.sleep)
        """
        self._config = config or RetryConfig()
        self._metrics = metrics or PrometheusModelMetrics()
        self._sleep = sleep_fn or asyncio.sleep

    def compute_delay(self, retry_number: int, error: ModelRateLimitError) -> float:
        """Seconds to wait before retry `retry_number` (1-based)."""
        if error.retry_after_seconds is not None and error.retry_after_seconds > 0:
            return error.retry_after_seconds
        return self._config.base_delay_ms * (2 ** (retry_number - 1)) / 1000

    async def execute(
        self,
        fn: Callable[[], Awaitable[T]],
        *,
        task: str = "model_call",
        on_retry: OnRetry | None = None,
    ) -> T:
        """Run `fn`, retrying only on rate-limit errors.

        Args:
            fn: Zero-argument coroutine factory, invoked once per attempt
            task: Label for logs and metrics
            on_retry: Awaited before each wait so callers can surface it

        Returns:
            The first successful result

        Raises:
            ModelRateLimitError: The last rate-limit error once retries are exhausted
            Exception: Any non-rate-limit error, immediately
        """
        last_error: ModelRateLimitError | None = None

        for attempt in range(self._config.max_retries + 1):
            try:
                return await fn()
            except ModelRateLimitError as e:
                last_error = e

                if attempt == self._config.max_retries:
                    logger.warning(
                        f"{task}: all {attempt + 1} attempts rate limited, giving up"
                    )
                    break

                retry_number = attempt + 1
                delay = self.compute_delay(retry_number, e)
                source = "service hint" if e.retry_after_seconds else "exponential backoff"
                logger.info(
                    f"{task}: rate limited, retry {retry_number}/{self._config.max_retries} "
                    f"in {delay:.1f}s ({source})",
                    extra={
                        "structured": {
                            "task": task,
                            "retry": retry_number,
                            "wait_seconds": delay,
                        }
                    },
                )
                self._metrics.inc_retry(task)

                if on_retry is not None:
                    await on_retry(retry_number, delay, e)
                await self._sleep(delay)

        assert last_error is not None
        raise last_error
