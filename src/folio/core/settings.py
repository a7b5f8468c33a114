"""Settings for folio services.

All fields can be set through ``FOLIO_*`` environment variables or a
``.env`` file, e.g. ``FOLIO_DATABASE_URL=postgresql://...`` or
``FOLIO_RETRY_MAX_ATTEMPTS=5``.

Fields
──────
log_level         : structlog level
json_logs         : JSON output (None = auto-detect from TTY)
database_url      : SQLAlchemy URL of the record store
blob_root         : Root directory of the local blob store
retry_*           : Default retry policy for remote writes
move_batch_size   : Concurrent moves per window
delete_chunk_size : Paths per remote delete call (API ceiling 1000)
list_limit        : Most files one listing may hold; more raises STORAGE_LIST_TRUNCATED
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Hard ceiling of the remote store's batch-delete call.
MAX_DELETE_CHUNK_SIZE = 1000


class FolioSettings(BaseSettings):
    """Folio configuration resolved from the environment."""

    model_config = SettingsConfigDict(
        env_prefix="FOLIO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None

    # ── Stores ───────────────────────────────────────────────────
    database_url: str = "sqlite:///folio.db"
    blob_root: Path = Field(
        default_factory=lambda: Path.home() / ".folio" / "blobs",
        description="Root directory of the local blob store",
    )

    # ── Retry ────────────────────────────────────────────────────
    retry_max_attempts: int = Field(default=3, ge=1)
    retry_initial_delay: float = Field(default=1.0, ge=0)
    retry_max_delay: float = Field(default=10.0, ge=0)
    retry_backoff_multiplier: float = Field(default=2.0, ge=1)

    # ── Batching ─────────────────────────────────────────────────
    move_batch_size: int = Field(default=10, ge=1)
    delete_chunk_size: int = Field(default=MAX_DELETE_CHUNK_SIZE, ge=1, le=MAX_DELETE_CHUNK_SIZE)
    list_limit: int = Field(default=1000, ge=1)

    @model_validator(mode="after")
    def _check_delay_bounds(self) -> FolioSettings:
        if self.retry_max_delay < self.retry_initial_delay:
            raise ValueError("retry_max_delay must be >= retry_initial_delay")
        return self


@lru_cache(maxsize=1)
def get_settings() -> FolioSettings:
    """Return the process-wide settings instance."""
    return FolioSettings()
