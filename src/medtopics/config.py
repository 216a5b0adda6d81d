"""Configuration management for medtopics.

This module provides typed configuration classes using pydantic-settings.
Configuration is loaded from environment variables with optional .env file support.
"""

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = [
    "MongoSettings",
    "RedisSettings",
    "LLMSettings",
    "PipelineSettings",
    "MedTopicsConfig",
]


class MongoSettings(BaseSettings):
    """MongoDB connection settings."""

    model_config = SettingsConfigDict(
        env_prefix="MEDTOPICS_MONGO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    uri: SecretStr = SecretStr("mongodb://localhost:27017")
    database: str = "medtopics"
    collection_prefix: str = ""


class RedisSettings(BaseSettings):
    """Redis connection settings (optional).

    If url is not configured or connection fails, the read cache
    falls back to an in-process epoch cache.
    """

    model_config = SettingsConfigDict(
        env_prefix="MEDTOPICS_REDIS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    url: str | None = None
    enabled: bool = True  # Can be explicitly disabled
    key_prefix: str = "medtopics:"


class LLMSettings(BaseSettings):
    """Classifier (LLM) provider settings."""

    model_config = SettingsConfigDict(
        env_prefix="MEDTOPICS_LLM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    provider: str = "openai"  # "openai" or "anthropic"
    api_key: SecretStr | None = None
    model: str | None = None  # provider default when unset
    temperature: float = 0.1
    max_tokens: int = 4096


class PipelineSettings(BaseSettings):
    """Tunables for ingestion, refresh, backfill and the read cache."""

    model_config = SettingsConfigDict(
        env_prefix="MEDTOPICS_PIPELINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Source merging and quality gate
    max_chars_per_source: int = 15_000
    min_summary_length: int = 80
    min_source_length: int = 500

    # Classifier batching
    classify_batch_size: int = 50
    max_snippet_length: int = 150
    llm_throttle_seconds: float = 0.5

    # Persistence cadence
    ingest_flush_every: int = 10
    refresh_flush_every: int = 25
    reprocess_flush_every: int = 10

    # Concurrency caps
    fetch_concurrency: int = 5
    reprocess_concurrency: int = 3

    # Staleness windows
    reprocess_window_days: int = 2
    stale_grace_days: int = 7

    # Read cache
    cache_ttl_seconds: int = 600
    negative_cache_ttl_seconds: int = 120

    # Scheduled jobs (cron)
    discovery_cron: str = "0 3 * * *"
    refresh_cron: str = "0 5 * * *"


class MedTopicsConfig(BaseSettings):
    """Main configuration aggregating all settings.

    Example usage:
        config = MedTopicsConfig()
        mongo_uri = config.mongo.uri.get_secret_value()
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Component settings (nested)
    mongo: MongoSettings = MongoSettings()
    redis: RedisSettings = RedisSettings()
    llm: LLMSettings = LLMSettings()
    pipeline: PipelineSettings = PipelineSettings()

    @property
    def redis_enabled(self) -> bool:
        """Check if Redis caching is enabled and configured."""
        return self.redis.enabled and self.redis.url is not None
