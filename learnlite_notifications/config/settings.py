from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


APP_VERSION = "v1.2"
POLL_INTERVAL_MS = 5000
BATCH_SIZE = 50


class SinkKind(str, Enum):
    CONSOLE = "console"
    FILE = "file"


def default_log_path() -> Path:
    return Path.cwd() / "var" / "notifications.log"


@dataclass(frozen=True)
class NotificationsConfig:
    """Immutable settings handed to the worker and sink factory."""

    enabled: bool = False
    sink: SinkKind = SinkKind.CONSOLE
    log_path: Path = field(default_factory=default_log_path)
    interval_ms: int = POLL_INTERVAL_MS
    batch_size: int = BATCH_SIZE


class Settings(BaseSettings):
    """Runtime configuration for the LearnLite notifications subsystem."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    database_dsn: str = Field(
        "postgresql://localhost:5432/learnlite_dev", validation_alias="DATABASE_URL"
    )
    app_name: str = Field("learnlite", validation_alias="APP_NAME")
    log_level: str = Field("INFO", validation_alias="LOG_LEVEL")

    notifications_enabled: bool = Field(False, validation_alias="NOTIFICATIONS_ENABLED")
    notifications_sink: SinkKind = Field(SinkKind.CONSOLE, validation_alias="NOTIFICATIONS_SINK")

    @field_validator("notifications_enabled", mode="before")
    @classmethod
    def _only_literal_true(cls, value: Any) -> bool:
        # Only the exact string "true" turns the worker on.
        return value is True or value == "true"

    @field_validator("notifications_sink", mode="before")
    @classmethod
    def _file_or_console(cls, value: Any) -> SinkKind:
        if value == SinkKind.FILE.value:
            return SinkKind.FILE
        return SinkKind.CONSOLE

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, value: Any) -> str:
        return str(value or "INFO").upper()

    @property
    def version(self) -> str:
        return APP_VERSION

    def notifications(self) -> NotificationsConfig:
        return NotificationsConfig(
            enabled=self.notifications_enabled,
            sink=self.notifications_sink,
            log_path=default_log_path(),
        )

    def summary(self) -> dict:
        """Redacted view for startup logs."""
        return {
            "app_name": self.app_name,
            "version": self.version,
            "database_dsn": "[REDACTED]" if self.database_dsn else "[NOT SET]",
            "log_level": self.log_level,
            "notifications_enabled": self.notifications_enabled,
            "notifications_sink": self.notifications_sink.value,
        }
