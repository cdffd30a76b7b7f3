"""Prometheus metrics endpoint."""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics endpoint.

    Exposes all registered Prometheus metrics including:
    - model_call_latency_ms{task, outcome}
    - model_retries_total{task}
    - model_rate_limit_waits_total{model}
    - pipeline_runs_total{stage, outcome}
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
