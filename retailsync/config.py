"""
Application Configuration.

Pydantic Settings model for the RetailSync engine.
All configuration is loaded from environment variables and .env files.
Inject an AppConfig instance via dependency injection where needed.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings


class AppConfig(BaseSettings):
    """Central configuration loaded from environment variables and defaults."""

    # --- Remote API ---
    API_BASE_URL: str = ""
    API_TOKEN: SecretStr = SecretStr("")
    API_CONNECT_TIMEOUT_S: float = 10.0
    API_READ_TIMEOUT_S: float = 30.0
    API_MAX_RETRIES: int = Field(default=3, ge=0)
    API_RETRY_DELAY_S: float = 1.0

    # --- Sync ---
    SYNC_BATCH_LIMIT: int = Field(default=500, gt=0)
    SYNC_STALE_AFTER_S: float = 3600.0
    SYNC_WORKER_INTERVAL_S: float = 300.0

    # --- Account the device syncs for ---
    SYNC_USER_TYPE: int = 1
    SYNC_USER_ID: int = -1

    # --- Local store ---
    SQLITE_PATH: str = "retailsync_local.db"

    # --- Logging ---
    LOG_FILE: str = "retailsync.log"
    LOG_MAX_BYTES: int = 5_242_880  # 5 MB
    LOG_BACKUP_COUNT: int = 3

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @field_validator("API_BASE_URL")
    @classmethod
    def _ensure_trailing_slash(cls, value: str) -> str:
        """Endpoint paths are relative, so the base URL must end in a slash."""
        value = value.strip()
        if value and not value.endswith("/"):
            value += "/"
        return value

    @model_validator(mode="after")
    def _warn_missing_env(self) -> "AppConfig":
        """Emit a startup warning when critical configuration is empty."""
        _log = logging.getLogger("retailsync.config")

        if not Path(".env").exists():
            _log.warning(
                "No .env file found; all configuration loaded from "
                "environment variables or defaults."
            )

        if not self.API_BASE_URL:
            _log.warning(
                "API_BASE_URL is empty. Remote sync is disabled and only "
                "the local cache will be served."
            )

        return self

    @property
    def sqlite_path(self) -> Path:
        return Path(self.SQLITE_PATH)

    @property
    def is_remote_configured(self) -> bool:
        return bool(self.API_BASE_URL)


# ---------------------------------------------------------------------------
# Module-level singleton factory
# ---------------------------------------------------------------------------

_config_instance: Optional[AppConfig] = None
_config_lock: threading.Lock = threading.Lock()


def get_config() -> AppConfig:
    """Return a cached ``AppConfig`` singleton.

    Uses a check-lock-check pattern so the fast path skips the lock while
    first initialisation stays thread-safe.  Prefer constructor injection
    of ``AppConfig`` in new code.
    """
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = AppConfig()
    return _config_instance


def reset_config() -> None:
    """Drop the cached singleton so the next ``get_config()`` re-reads the environment."""
    global _config_instance
    with _config_lock:
        _config_instance = None
