"""Shared per-model rate limiting.

Every pipeline instance in the process (or, with Redis, across processes)
consults the same gate before calling a model, so concurrent document runs
targeting one model share its requests-per-minute budget.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime

import redis

from docsum.config import Settings
from docsum.db.inmemory import InMemoryRateLimiter
from docsum.db.repositories import RateLimiter, RetryAfter
from docsum.llm.catalog import normalize_model_name, resolve_requests_per_minute
from docsum.utils.metrics import PrometheusModelMetrics

logger = logging.getLogger(__name__)


def make_rate_limit_key(model: str) -> str:
    """Create rate limit key for a model identifier.

    Args:
        model: Model name, with or without the `models/` prefix

    Returns:
        Rate limit key
    """
    return f"model:{normalize_model_name(model)}"


class RedisRateLimiter:
    """Redis-based rate limiter using INCR + EXPIRE pattern."""

    def __init__(self, redis_client: redis.Redis, max_requests: int, window_seconds: int = 60) -> None:
        """Initialize rate limiter.

        Args:
            redis_client: Redis client
            max_requests: Maximum requests per window
            window_seconds: Window size in seconds (default 60)
        """
        self._redis = redis_client
        self._max_requests = max_requests
        self._window_seconds = window_seconds

    def check_quota(self, key: str, now: datetime) -> RetryAfter | None:
        """Check if quota is available.

        Uses Redis INCR + EXPIRE for atomic counting.

        Args:
            key: Rate limit key
            now: Current timestamp

        Returns:
            RetryAfter if over quota, None if allowed
        """
        window_start = int(now.timestamp() / self._window_seconds) * self._window_seconds
        redis_key = f"ratelimit:{key}:{window_start}"

        count = self._redis.incr(redis_key)

        # Set expiry on first request
        if count == 1:
            self._redis.expire(redis_key, self._window_seconds)

        if count > self._max_requests:
            ttl = self._redis.ttl(redis_key)
            return RetryAfter(seconds=max(1, ttl))

        return None


LimiterFactory = Callable[[int], RateLimiter]


class ModelRateGate:
    """Process-wide gate that holds one limiter per model."""

    def __init__(
        self,
        limiter_factory: LimiterFactory,
        default_requests_per_minute: int,
        sleep_fn: Callable[[float], Awaitable[None]] | None = None,
        clock: Callable[[], datetime] | None = None,
        metrics: PrometheusModelMetrics | None = None,
    ) -> None:
        """Initialize gate.

        Args:
            limiter_factory: Builds a limiter for a requests-per-minute budget
            default_requests_per_minute: Budget for models with no known limit
            sleep_fn: Injectable sleep function (default: asyncio.sleep)
            clock: Injectable clock (default: datetime.now)
            metrics: Metrics recorder (optional)
        """
        self._limiter_factory = limiter_factory
        self._default_rpm = default_requests_per_minute
        self._sleep = sleep_fn or asyncio.sleep
        self._clock = clock or datetime.now
        self._metrics = metrics or PrometheusModelMetrics()
        self._limiters: dict[str, RateLimiter] = {}

    def _limiter_for(self, model: str) -> RateLimiter:
        key = make_rate_limit_key(model)
        if key not in self._limiters:
            rpm = resolve_requests_per_minute(model, self._default_rpm)
            self._limiters[key] = self._limiter_factory(rpm)
        return self._limiters[key]

    async def acquire(self, model: str) -> None:
        """Wait until the model has a free request slot."""
        limiter = self._limiter_for(model)
        key = make_rate_limit_key(model)

        while True:
            retry_after = limiter.check_quota(key, self._clock())
            if retry_after is None:
                return

            logger.info(
                f"Shared rate gate: {key} over quota, waiting {retry_after.seconds}s",
                extra={"structured": {"model": model, "wait_seconds": retry_after.seconds}},
            )
            self._metrics.inc_rate_limit_wait(normalize_model_name(model))
            await self._sleep(retry_after.seconds)


_model_rate_gate: ModelRateGate | None = None


def get_model_rate_gate(settings: Settings) -> ModelRateGate:
    """Get the process-wide gate, backed by Redis when configured."""
    global _model_rate_gate
    if _model_rate_gate is None:
        if settings.redis_url:
            client = redis.from_url(settings.redis_url, decode_responses=True)  # type: ignore[no-untyped-call]

            def factory(rpm: int) -> RateLimiter:
                return RedisRateLimiter(client, max_requests=rpm)

        else:

            def factory(rpm: int) -> RateLimiter:
                return InMemoryRateLimiter(max_requests=rpm)

        _model_rate_gate = ModelRateGate(
            limiter_factory=factory,
            default_requests_per_minute=settings.default_requests_per_minute,
        )
    return _model_rate_gate
