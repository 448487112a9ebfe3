"""Pydantic Settings — typed configuration with .env auto-loading."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment / .env file."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ── Service ──────────────────────────────────────────────
    service_port: int = 5000
    cors_origins: list[str] = ["*"]
    debug: bool = False
    log_level: str = "INFO"

    # ── Record Store ─────────────────────────────────────────
    record_store_base_url: str = "http://localhost:8080"
    record_store_api_prefix: str = "/api"
    record_store_access_token: str = ""
    record_store_timeout: int = 15  # seconds
    use_mock_data: bool = False  # serve services/mock_data instead of the remote store

    # ── Batch Export ─────────────────────────────────────────
    batch_size: int = 3  # tasks per group
    batch_workers: int = 0  # 0 = same as batch_size
    task_start_delay: float = 0.5  # seconds between task starts inside a group
    group_delay: float = 2.0  # seconds between groups
    max_open_reports: int = 5  # retained output resources before FIFO eviction
    task_timeout: float | None = None  # None = a stuck task stalls its group
    phase_export_delay: float = 1.5  # pause between phases of a single-student export

    # ── Ranking ──────────────────────────────────────────────
    cohort_read_concurrency: int = 5  # concurrent classmate resolutions

    # ── Reports ──────────────────────────────────────────────
    report_output_dir: str = "data/reports"

    # ── Helpers ───────────────────────────────────────────────

    @property
    def effective_batch_workers(self) -> int:
        """Worker count of the per-group pool (never above the group size)."""
        if self.batch_workers <= 0:
            return self.batch_size
        return min(self.batch_workers, self.batch_size)


@lru_cache
def get_settings() -> Settings:
    """Singleton accessor for application settings."""
    return Settings()
