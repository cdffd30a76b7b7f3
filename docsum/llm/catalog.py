"""Model catalog - per-model limits and capability checks."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ModelLimits:
    """Published free-tier limits for a model."""

    requests_per_minute: int | None
    tokens_per_minute: int


# Fallback limits for models whose listing does not carry them
MODEL_RATE_LIMITS: dict[str, ModelLimits] = {
    "models/gemini-2.5-pro": ModelLimits(requests_per_minute=5, tokens_per_minute=250_000),
    "models/gemini-2.5-flash": ModelLimits(requests_per_minute=10, tokens_per_minute=250_000),
    "models/gemini-2.5-flash-lite-preview-06-17": ModelLimits(
        requests_per_minute=15, tokens_per_minute=250_000
    ),
    "models/gemini-2.0-flash": ModelLimits(requests_per_minute=15, tokens_per_minute=1_000_000),
    "models/gemini-2.0-flash-lite": ModelLimits(
        requests_per_minute=30, tokens_per_minute=1_000_000
    ),
    "models/gemma-3": ModelLimits(requests_per_minute=30, tokens_per_minute=15_000),
    "models/gemma-3n": ModelLimits(requests_per_minute=30, tokens_per_minute=15_000),
    "models/gemini-embedding": ModelLimits(requests_per_minute=None, tokens_per_minute=30_000),
    "models/gemini-1.5-flash": ModelLimits(requests_per_minute=15, tokens_per_minute=250_000),
    "models/gemini-1.5-flash-8b": ModelLimits(requests_per_minute=15, tokens_per_minute=250_000),
}

SUPPORTED_PREFIXES = ("models/gemini-", "models/gemma-")


@dataclass(frozen=True)
class ModelInfo:
    """A generation model available to the configured API key."""

    name: str
    display_name: str
    requests_per_minute: int | None
    tokens_per_minute: int | None


def normalize_model_name(model: str) -> str:
    """Return the `models/...` form of a model identifier."""
    return model if model.startswith("models/") else f"models/{model}"


def is_supported_model(model: str) -> bool:
    """Check whether the model belongs to a supported family."""
    return normalize_model_name(model).startswith(SUPPORTED_PREFIXES)


def lookup_limits(model: str) -> ModelLimits | None:
    """Find fallback limits for a model, matching the longest known prefix.

    Versioned names such as `models/gemma-3-27b-it` resolve to the
    `models/gemma-3` family entry.
    """
    name = normalize_model_name(model)
    if name in MODEL_RATE_LIMITS:
        return MODEL_RATE_LIMITS[name]

    candidates = [key for key in MODEL_RATE_LIMITS if name.startswith(key + "-")]
    if not candidates:
        return None
    return MODEL_RATE_LIMITS[max(candidates, key=len)]


def build_model_info(name: str, display_name: str | None = None) -> ModelInfo:
    """Annotate a listed model with fallback limits."""
    limits = lookup_limits(name)
    return ModelInfo(
        name=normalize_model_name(name),
        display_name=display_name or normalize_model_name(name).removeprefix("models/"),
        requests_per_minute=limits.requests_per_minute if limits else None,
        tokens_per_minute=limits.tokens_per_minute if limits else None,
    )


def resolve_chunk_budget(
    model: str,
    models: list[ModelInfo] | None,
    default_budget: int,
) -> int:
    """Pick the chunk budget (characters) for a model.

    Uses the discovered tokens-per-minute limit, since a single request
    must fit inside the per-minute budget, and falls back to
    `default_budget` when the model was not discovered.
    """
    name = normalize_model_name(model)
    for info in models or []:
        if info.name == name and info.tokens_per_minute:
            return info.tokens_per_minute
    return default_budget


def resolve_requests_per_minute(model: str, default_rpm: int) -> int:
    """Requests-per-minute budget used by the shared rate gate."""
    limits = lookup_limits(model)
    if limits and limits.requests_per_minute:
        return limits.requests_per_minute
    return default_rpm


def supports_thinking_budget(model: str) -> bool:
    """Check whether the model accepts a zero thinking budget.

    Gemini 2.5 Pro cannot disable thinking, so it is excluded.
    """
    return "gemini-2.5" in model and "gemini-2.5-pro" not in model
