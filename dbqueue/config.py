"""
Queue configuration using Pydantic Settings.
Loads configuration from DBQUEUE_* environment variables with sensible defaults.
"""

from functools import lru_cache
from typing import Any, Dict, Optional

from pydantic import BaseModel, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DAY = 24 * 60 * 60


class ConnectionConfig(BaseModel):
    """One queue connection group: which handler, database and table to use."""

    handler: str = "database"
    db_group: str = "default"
    shared_connection: bool = True
    table: str = "dbqueue_jobs"


class QueueSettings(BaseSettings):
    """Queue settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="DBQUEUE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    default_connection: str = "database"
    default_queue: str = "default"

    # Reaper
    max_retries: int = 3
    timeout: int = 30
    delete_done_messages_after: Optional[int] = 30 * DAY  # None keeps DONE rows forever

    # Worker ceilings, 0 disables
    max_worker_batch: int = 0
    worker_max_execution_time: int = 0
    worker_memory_limit_mb: int = 2048

    connections: Dict[str, ConnectionConfig] = {
        "database": ConnectionConfig(),
        "tests": ConnectionConfig(db_group="tests"),
    }
    database_groups: Dict[str, str] = {
        "default": "sqlite:///dbqueue.db",
        "tests": "sqlite://",
    }

    log_level: str = "INFO"

    @field_validator("delete_done_messages_after", mode="before")
    @classmethod
    def _retention_disabled(cls, value: Any) -> Any:
        if isinstance(value, str) and value.strip().lower() in ("", "never", "false", "none"):
            return None
        if value is False:
            return None
        return value


@lru_cache
def get_settings() -> QueueSettings:
    """Get cached settings instance."""
    return QueueSettings()


class _GlobalConfig:
    def __init__(self):
        self.settings: Optional[QueueSettings] = None
        self.events = None


_GLOBAL_CONFIG = _GlobalConfig()


def configure(settings: Optional[QueueSettings] = None, events=None) -> None:
    _GLOBAL_CONFIG.settings = settings
    _GLOBAL_CONFIG.events = events


def get_configured_settings() -> QueueSettings:
    return _GLOBAL_CONFIG.settings or get_settings()


def get_configured_events():
    return _GLOBAL_CONFIG.events
