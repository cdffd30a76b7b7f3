"""Prometheus metrics for model calls and pipeline runs."""

from prometheus_client import Counter, Histogram

# Model call metrics
model_call_latency_ms = Histogram(
    "model_call_latency_ms",
    "Language model call latency in milliseconds",
    ["task", "outcome"],
    buckets=[100, 500, 1000, 2000, 5000, 10000, 20000, 40000, 80000],
)

model_retries_total = Counter(
    "model_retries_total",
    "Total rate-limited model calls that were retried",
    ["task"],
)

model_rate_limit_waits_total = Counter(
    "model_rate_limit_waits_total",
    "Total waits imposed by the shared per-model rate gate",
    ["model"],
)

# Pipeline metrics
pipeline_runs_total = Counter(
    "pipeline_runs_total",
    "Total pipeline stage runs by outcome",
    ["stage", "outcome"],
)


class PrometheusModelMetrics:
    """Prometheus-based model call metrics implementation."""

    def record_latency(self, task: str, outcome: str, latency_ms: float) -> None:
        """Record model call latency."""
        model_call_latency_ms.labels(task=task, outcome=outcome).observe(latency_ms)

    def inc_retry(self, task: str) -> None:
        """Increment retry counter."""
        model_retries_total.labels(task=task).inc()

    def inc_rate_limit_wait(self, model: str) -> None:
        """Increment shared gate wait counter."""
        model_rate_limit_waits_total.labels(model=model).inc()

    def inc_pipeline_run(self, stage: str, outcome: str) -> None:
        """Increment pipeline run counter."""
        pipeline_runs_total.labels(stage=stage, outcome=outcome).inc()
