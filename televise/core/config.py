"""
Televise Configuration Management
==================================
Pydantic-based settings for environment variable loading.
"""

import os
from datetime import timedelta
from enum import Enum
from typing import List, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class PresenceBackend(str, Enum):
    """Storage backends able to answer sliding-window presence queries."""
    SQL = "SQL"              # Relational session table (SQLAlchemy)
    FIRESTORE = "FIRESTORE"  # Append-only sighting log per identity
    REDIS = "REDIS"          # Sorted set scored by sighting time


class TeleviseConfig(BaseSettings):
    """Televise configuration from environment variables."""

    # Presence backend selection
    presence_backend: PresenceBackend = Field(
        default=PresenceBackend.SQL, validation_alias="TELEVISE_PRESENCE_BACKEND"
    )

    # Relational store (also hosts metadata and polls)
    database_url: str = Field(default="sqlite:///./televise.db", validation_alias="TELEVISE_DB")

    # Redis Configuration
    redis_url: str = Field(default="redis://localhost:6379", validation_alias="REDIS_URL")
    redis_max_connections: int = Field(default=50, validation_alias="REDIS_MAX_CONNECTIONS")
    redis_key_prefix: str = Field(default="televise", validation_alias="TELEVISE_REDIS_PREFIX")

    # Firestore Configuration
    firebase_project_id: Optional[str] = Field(default=None, validation_alias="FIREBASE_PROJECT_ID")
    firestore_collection: str = Field(default="presence", validation_alias="TELEVISE_FIRESTORE_COLLECTION")

    # Presence windows (whole seconds)
    viewer_window_sec: int = Field(default=25, validation_alias="TELEVISE_VIEWER_WINDOW_SEC")
    inactive_limit_sec: int = Field(default=25, validation_alias="TELEVISE_INACTIVE_LIMIT_SEC")
    retention_sec: int = Field(default=600, validation_alias="TELEVISE_RETENTION_SEC")

    # Background loops
    poll_interval_sec: float = Field(default=10.0, validation_alias="TELEVISE_POLL_INTERVAL_SEC")
    prune_interval_sec: float = Field(default=60.0, validation_alias="TELEVISE_PRUNE_INTERVAL_SEC")
    prune_in_poller: bool = Field(default=False, validation_alias="TELEVISE_PRUNE_IN_POLLER")

    # Snowflake process id (defaults to the OS pid)
    process_id: Optional[int] = Field(default=None, validation_alias="TELEVISE_PROCESS_ID")

    # HTTP surface
    allowed_origins: str = Field(default="*", validation_alias="ALLOWED_ORIGINS")
    port: int = Field(default=8080, validation_alias="PORT")
    log_level: str = Field(default="INFO", validation_alias="TELEVISE_LOG_LEVEL")
    log_json: bool = Field(default=True, validation_alias="TELEVISE_LOG_JSON")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        populate_by_name = True
        extra = "ignore"

    @model_validator(mode="after")
    def _check_windows(self) -> "TeleviseConfig":
        for name in ("viewer_window_sec", "inactive_limit_sec", "retention_sec"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.poll_interval_sec <= 0 or self.prune_interval_sec <= 0:
            raise ValueError("loop intervals must be positive")
        if self.retention_sec < self.viewer_window_sec:
            raise ValueError("retention_sec must not be shorter than viewer_window_sec")
        return self

    @property
    def viewer_window(self) -> timedelta:
        return timedelta(seconds=self.viewer_window_sec)

    @property
    def inactive_limit(self) -> timedelta:
        return timedelta(seconds=self.inactive_limit_sec)

    @property
    def retention(self) -> timedelta:
        return timedelta(seconds=self.retention_sec)

    def resolved_process_id(self) -> int:
        """Process id fed to the Snowflake generator."""
        if self.process_id is not None:
            return self.process_id
        return os.getpid()

    def origins(self) -> List[str]:
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]


# Global config instance
_config: Optional[TeleviseConfig] = None


def get_config() -> TeleviseConfig:
    """Get or create the global Televise configuration."""
    global _config
    if _config is None:
        _config = TeleviseConfig()
    return _config


def reset_config() -> None:
    """Drop the cached configuration so the next call re-reads the environment."""
    global _config
    _config = None
