"""Model catalog endpoint - GET /models."""

import logging
from typing import Annotated, Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from docsum.api.deps import get_model_client
from docsum.llm.catalog import MODEL_RATE_LIMITS, build_model_info, is_supported_model
from docsum.llm.client import ModelClient, ModelError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/models", tags=["models"])


class ModelEntry(BaseModel):
    """One selectable generation model."""

    name: str
    display_name: str
    requests_per_minute: int | None
    tokens_per_minute: int | None


class ModelListResponse(BaseModel):
    """Response for GET /models."""

    models: list[ModelEntry]
    source: Literal["service", "fallback"]


def _fallback_models() -> list[ModelEntry]:
    return [
        ModelEntry(**vars(build_model_info(name)))
        for name in MODEL_RATE_LIMITS
        if is_supported_model(name) and "embedding" not in name
    ]


@router.get("", response_model=ModelListResponse)
async def list_models(
    client: Annotated[ModelClient, Depends(get_model_client)],
) -> ModelListResponse:
    """List generation models with their rate limits.

    Falls back to the built-in table when the service cannot be reached
    or rejects the key.
    """
    try:
        models = await client.list_models()
    except ModelError as e:
        logger.warning(f"Model listing failed, serving fallback catalog: {e}")
        return ModelListResponse(models=_fallback_models(), source="fallback")

    return ModelListResponse(
        models=[ModelEntry(**vars(info)) for info in models],
        source="service",
    )
