"""
LLM Router Configuration Module

This module manages application settings and environment variables using
pydantic-settings for type-safe configuration management.

Environment variables are loaded from .env file or system environment.
All sensitive values use SecretStr to prevent accidental logging.
"""

from functools import lru_cache
from typing import Literal
import logging
import sys

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Pydantic Settings automatically reads from:
    1. Environment variables
    2. .env file in working directory
    3. Default values defined here

    Provider API keys are optional: only providers with a configured key
    are registered with the dispatcher at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore unknown env vars
    )

    openai_api_key: SecretStr | None = Field(
        default=None, description="OpenAI API key for completions and embeddings"
    )

    groq_api_key: SecretStr | None = Field(
        default=None, description="Groq API key for Llama inference"
    )

    cache_enabled: bool = Field(
        default=True, description="Consult and populate the result cache"
    )

    semantic_cache_enabled: bool = Field(
        default=True,
        description="Use embedding similarity lookups in addition to exact matches",
    )

    cache_ttl_seconds: float = Field(
        default=24 * 60 * 60,
        gt=0,
        description="Default lifetime of a cached response",
    )

    similarity_threshold: float = Field(
        default=0.95,
        ge=0.0,
        le=1.0,
        description="Minimum cosine similarity for a semantic cache hit (exclusive)",
    )

    cache_cleanup_interval_seconds: float = Field(
        default=60 * 60,
        gt=0,
        description="Interval between background sweeps of expired cache entries",
    )

    min_request_interval_ms: float = Field(
        default=1000,
        ge=0,
        description="Minimum spacing between attempts sent to the same backend",
    )

    request_timeout_ms: float = Field(
        default=30000, gt=0, description="Default per-attempt timeout"
    )

    max_retries: int = Field(
        default=3, ge=0, description="Retries per candidate after the first attempt"
    )

    retry_base_delay_ms: float = Field(
        default=2000,
        ge=0,
        description="Base exponential backoff delay, doubled on each retry",
    )

    embedding_candidate: str = Field(
        default="openai:gpt-4o-mini",
        description="Candidate key ('provider:model') used for cache embeddings",
    )

    openai_embedding_model: str = Field(
        default="text-embedding-3-small",
        description="OpenAI model used by generate_embedding",
    )

    track_costs: bool = Field(
        default=True, description="Enable cost estimation and metrics recording"
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Application log level"
    )

    host: str = Field(default="0.0.0.0", description="Server bind host")

    port: int = Field(default=8000, description="Server bind port")

    debug: bool = Field(default=False, description="Enable debug mode")

    @field_validator("embedding_candidate")
    @classmethod
    def validate_embedding_candidate(cls, v: str) -> str:
        """Ensure the embedding candidate is a 'provider:model' key."""
        provider, sep, model = v.partition(":")
        if not sep or not provider or not model:
            raise ValueError("embedding_candidate must look like 'provider:model'")
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Returns cached settings instance.

    Using lru_cache ensures settings are loaded once and reused,
    avoiding repeated file reads and environment parsing.

    Returns:
        Settings: The application settings singleton.
    """
    return Settings()


def configure_logging(settings: Settings) -> None:
    """
    Configure application logging based on settings.

    Sets up structured logging with timestamps and reduces noise
    from third-party HTTP libraries.

    Args:
        settings: The application settings instance.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("groq").setLevel(logging.WARNING)
