"""Application settings loaded from environment variables via pydantic-settings.

Values are read, in priority order, from:

  1. Environment variables prefixed ``MEMOCACHE_`` (e.g. ``MEMOCACHE_DURABLE_BACKEND=sqlite``)
  2. A ``.env`` file in the working directory
  3. The defaults declared below
"""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

DurableBackend = Literal["none", "memory", "sqlite"]


class Settings(BaseSettings):
    """memocache settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(
        env_prefix="MEMOCACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Durable tier ===
    # "none" keeps every computation in the transient tier.
    durable_backend: DurableBackend = "none"
    memory_max_size: int = 1024
    sqlite_db_path: str = "data/memocache.db"
    sqlite_table: str = "memo_entries"

    # === Error reporting ===
    report_errors: bool = True

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"
