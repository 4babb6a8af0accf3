from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "molt-jobs-api"
    environment: str = "dev"
    storage_backend: Literal["postgres", "memory"] = "postgres"
    database_url: str | None = None
    database_pool_min_size: int = 1
    database_pool_max_size: int = 10
    moltbook_api_base_url: str = "https://www.moltbook.com/api/v1"
    moltbook_timeout_seconds: float = 5.0
    api_key_prefix: str = "moltbook_"
    auth_cache_ttl_seconds: float = 3600.0
    auth_cache_max_entries: int = 1000
    otel_enabled: bool = True
    otel_service_name: str = "molt-jobs-api"
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None
    otel_trace_sample_ratio: float = 1.0
    otel_excluded_urls: str = "healthz"
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="MJ_", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
