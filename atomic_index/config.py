"""
Configuration settings for the atomic index repository.

Uses Pydantic Settings to load environment variables for the Redis connection,
index maintenance, logging, and benchmark defaults.
"""
from __future__ import annotations

from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Store
    redis_url: str = Field("redis://127.0.0.1:6379/0", alias="REDIS_URL")
    redis_socket_timeout: float = Field(5.0, alias="REDIS_SOCKET_TIMEOUT")
    redis_max_connections: int = Field(50, alias="REDIS_MAX_CONNECTIONS")

    # Indexing
    status_index_ttl_seconds: int = Field(86_400, alias="STATUS_INDEX_TTL_SECONDS")
    optimistic_writes: bool = Field(False, alias="OPTIMISTIC_WRITES")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Benchmark defaults
    benchmark_count: int = Field(100, alias="BENCHMARK_COUNT")
    benchmark_owners: int = Field(10, alias="BENCHMARK_OWNERS")
    benchmark_concurrency: int = Field(8, alias="BENCHMARK_CONCURRENCY")
    race_concurrent_updates: int = Field(10, alias="RACE_CONCURRENT_UPDATES")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
