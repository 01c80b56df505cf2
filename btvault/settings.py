"""Centralized btvault settings powered by Pydantic.

Environment matrix:

| Section  | Environment Variable         | Default          | Purpose                                      |
|----------|------------------------------|------------------|----------------------------------------------|
| Storage  | `BTVAULT_DATA_DIR`           | `~/.btvault`     | Program-data root archives are relative to   |
| Storage  | `BTVAULT_BACKTESTS_FOLDER`   | `Backtests`      | Sub-folder receiving result archives         |
| Storage  | `BTVAULT_ARCHIVE_TEMPLATE`   | `backtest.zip`   | Template name numbered by `unique_file_name` |
| Logging  | `LOG_LEVEL`                  | `INFO`           | Minimum level for the loguru sinks           |
| Logging  | `ENV`                        | `local`          | Deployment environment label                 |

The settings objects are read from the environment on construction and are
intended to be treated as read-only; call `reload_settings()` after changing
the environment (tests do this through `monkeypatch`).
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from btvault.core.exceptions import ConfigError

LOG_ENTRY = "Logs.log"
RESULT_ENTRY = "Result.json"


class _SettingsBase(BaseSettings):
    """Common configuration for BaseSettings subclasses."""

    model_config = SettingsConfigDict(
        env_prefix="",
        populate_by_name=True,
        extra="ignore",
        case_sensitive=True,
        frozen=True,
    )


class StorageSettings(_SettingsBase):
    """Where result archives live and how they are named."""

    data_dir: Path = Field(
        default_factory=lambda: Path.home() / ".btvault", alias="BTVAULT_DATA_DIR"
    )
    backtests_folder: str = Field(default="Backtests", alias="BTVAULT_BACKTESTS_FOLDER")
    archive_template: str = Field(
        default="backtest.zip", alias="BTVAULT_ARCHIVE_TEMPLATE"
    )

    @field_validator("data_dir", mode="before")
    @classmethod
    def _expand_data_dir(cls, value: str | Path | None) -> Path:
        if value in (None, ""):
            return Path.home() / ".btvault"
        return Path(value).expanduser()

    @field_validator("archive_template")
    @classmethod
    def _require_suffix(cls, value: str) -> str:
        if not Path(value).suffix:
            raise ValueError("archive template needs a file extension, e.g. backtest.zip")
        return value

    @computed_field
    @property
    def backtests_dir(self) -> Path:
        return self.data_dir / self.backtests_folder


class LoggingSettings(_SettingsBase):
    """Log level and environment labels attached to every record."""

    level: str = Field(default="INFO", alias="LOG_LEVEL")
    environment: str = Field(default="local", alias="ENV")

    @field_validator("level", mode="before")
    @classmethod
    def _upper_level(cls, value: str | None) -> str:
        return (value or "INFO").strip().upper()


class Settings(BaseModel):
    """Aggregate accessor for domain-specific settings."""

    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = {
        "frozen": True,
        "arbitrary_types_allowed": True,
    }


def get_settings() -> Settings:
    """Instantiate settings from the current environment."""
    try:
        return Settings()
    except ValidationError as exc:
        raise ConfigError(f"invalid btvault configuration: {exc}") from exc


def reload_settings() -> Settings:
    """Alias for get_settings to maintain a consistent API."""
    return get_settings()


def get_storage_settings() -> StorageSettings:
    return get_settings().storage


def get_logging_settings() -> LoggingSettings:
    return get_settings().logging


__all__ = [
    "LOG_ENTRY",
    "RESULT_ENTRY",
    "Settings",
    "StorageSettings",
    "LoggingSettings",
    "get_settings",
    "reload_settings",
    "get_storage_settings",
    "get_logging_settings",
]
