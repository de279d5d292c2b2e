"""
Central configuration for the Sports HQ board service.
Uses pydantic-settings for env-based config with validation.
"""
from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Root settings for the API process."""

    model_config = SettingsConfigDict(
        env_prefix="SHQ_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── General ──────────────────────────────────────────────
    environment: Environment = Environment.DEV
    log_level: str = "INFO"
    instance_id: str = Field(default="", description="Pod/container ID bound to every log line")

    # ── API ──────────────────────────────────────────────────
    api_host: str = "0.0.0.0"
    api_port: int = 3000
    cors_origins: list[str] = ["*"]

    # ── Upstream (TheSportsDB) ───────────────────────────────
    tsdb_base_url: str = "https://www.thesportsdb.com/api"
    tsdb_v1_key: str = Field(default="3", description="v1 key, sent in the URL path")
    tsdb_v2_key: str = Field(default="", description="v2 key, sent as X-API-KEY; livescore needs it")
    upstream_timeout_s: float = 10.0
    user_agent: str = "SportsHQ/1.0"

    # ── Retrying fetcher ─────────────────────────────────────
    fetch_tries: int = 4
    fetch_base_delay_ms: float = 650.0
    fetch_jitter_ratio: float = 0.33

    # ── SWR cache TTLs (seconds) ─────────────────────────────
    swr_extra_s: float = 300.0
    ttl_live_s: float = 15.0
    ttl_next_s: float = 300.0
    ttl_season_s: float = 3 * 3600.0
    ttl_past_s: float = 600.0
    ttl_day_s: float = 1800.0

    # ── Day-scan token bucket ────────────────────────────────
    bucket_max_tokens: int = 60
    bucket_refill_amount: int = 20
    bucket_refill_interval_s: float = 60.0
    day_scan_cap_days: int = 30
    day_scan_token_floor: int = 10

    # ── Classifier ───────────────────────────────────────────
    final_recency_s: float = 15 * 60.0
    start_grace_s: float = 90.0
    live_min_elapsed_s: float = 5 * 60.0

    # ── Board ────────────────────────────────────────────────
    board_min_rows: int = 5
    board_max_rows: int = 10
    board_default_rows: int = 5

    # ── Observability ────────────────────────────────────────
    metrics_enabled: bool = True
    metrics_port: int = 9090

    @property
    def has_v2_key(self) -> bool:
        return bool(self.tsdb_v2_key)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton access to validated settings."""
    return Settings()
