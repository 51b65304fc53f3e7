"""
Application Configuration

Load settings from environment variables with validation.
"""

from functools import lru_cache
from typing import List, Optional
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings from environment variables."""

    # Environment
    environment: str = "development"
    debug: bool = True
    enable_scheduler: bool = False
    log_level: Optional[str] = None

    # Redis (cache collaborator)
    redis_url: str = "redis://localhost:6379"
    cache_ttl_seconds: int = 600  # 10 minutes

    # Metadata registry (TMDB)
    tmdb_api_key: Optional[str] = None
    tmdb_read_access_token: Optional[str] = None
    tmdb_language: str = "zh-CN"
    tmdb_daily_quota: int = 50000
    registry_timeout_seconds: float = 12.0

    # Upstream providers
    providers_file: Optional[str] = None
    proxy_url: Optional[str] = None
    provider_verify_tls: bool = True
    provider_timeout_seconds: float = 4.0
    broadcast_timeout_seconds: float = 6.0
    race_fanout: int = 3
    banned_category_ids: List[int] = []

    # Sync
    sync_providers: List[str] = ["feifan", "liangzi", "sony"]
    backfill_providers: List[str] = ["feifan", "liangzi"]
    sync_hours: int = 24
    sync_max_pages: int = 20

    # Enrichment
    enrichment_batch_size: int = 100
    enrichment_concurrency: int = 5
    enrichment_max_batches: int = 5
    enrichment_full_scan_max_batches: int = 1000
    enrichment_batch_pause_seconds: float = 1.5

    # Merge engine
    merge_max_retries: int = 5

    # Ops surface
    admin_api_key: str = ""

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()
