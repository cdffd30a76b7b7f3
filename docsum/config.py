"""Typed settings configuration - single source of truth."""

from functools import lru_cache

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = "sqlite+aiosqlite:///./docsum.db"

    # Cache (shared model rate gate when set)
    redis_url: str | None = None

    # Language model service
    model_api_key: SecretStr = SecretStr("")
    model_base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    model_temperature: float = 0.3
    structure_max_output_tokens: int = 8192
    summary_max_output_tokens: int = 2048

    # Chunking (characters, 1 token ~ 1 char)
    default_chunk_budget: int = 15000

    # Retry policy for rate-limited calls
    retry_max_retries: int = 3
    retry_base_delay_ms: int = 1000

    # Throttling
    section_delay_seconds: float = 2.0
    default_requests_per_minute: int = 15
    model_rate_limit_enabled: bool = True

    # Summaries
    summary_bullet_points: int = 12

    # Outline post-processing
    outline_merge_across_chunks: bool = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
