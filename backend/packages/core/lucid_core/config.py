"""
Resilience engine configuration.

This module provides the tuning knobs of the feed resilience engine,
loaded from environment variables.
"""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Find .env file in project root
_env_file = Path(__file__).parent.parent.parent.parent.parent / ".env"


class ResilienceConfig(BaseSettings):
    """
    Resilience engine configuration from environment variables.

    All settings are prefixed with RESILIENCE_ in environment.
    """

    model_config = SettingsConfigDict(
        env_prefix="RESILIENCE_",
        env_file=str(_env_file) if _env_file.exists() else None,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Job queue and processor
    poll_interval_seconds: float = 30.0
    batch_size: int = 3
    max_discovery_attempts: int = 3  # Persisted attempts per feed before giving up
    max_job_retries: int = 3
    failure_threshold: int = 3  # Consecutive fetch failures that trigger discovery
    high_priority_subscribers: int = 10
    medium_priority_subscribers: int = 3

    # Process-local caches
    catalog_cache_ttl_seconds: int = 300
    pattern_cache_ttl_seconds: int = 3600

    # Scoring and decisions
    validation_limit: int = 10
    validation_concurrency: int = 10
    attempts_to_persist: int = 3
    adoption_threshold: int = 90
    suggestion_threshold: int = 60

    # Learning loop
    decay_threshold_days: int = 30
    decay_rate: float = 0.05  # Per day past the threshold
    min_decay_factor: float = 0.1
    decay_clear_factor: float = 0.5
    min_pattern_samples: int = 5

    # Network timeouts (seconds)
    probe_timeout: float = 3.0
    path_probe_timeout: float = 2.0
    variant_parse_timeout: float = 5.0
    validation_timeout: float = 10.0
    archive_timeout: float = 10.0
    redirect_timeout: float = 5.0
    path_probe_batch_size: int = 5
    path_probe_pause_seconds: float = 0.1

    # Host process wiring
    database_url: str = "sqlite+aiosqlite:///./lucid.db"
    redis_url: str = "redis://localhost:6379/0"


# Global instance
resilience_config = ResilienceConfig()
