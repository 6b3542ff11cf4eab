"""Configuration management for the cohort tracker client."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated
import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class TrackerSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True
    )

    api_base_url: str = Field(
        default="http://localhost:3000", validation_alias="TRACKER_API_BASE_URL"
    )
    id_token: str | None = Field(default=None, validation_alias="TRACKER_ID_TOKEN")
    request_timeout: float = Field(default=30.0, validation_alias="TRACKER_REQUEST_TIMEOUT")
    log_level: str = Field(default="INFO", validation_alias="TRACKER_LOG_LEVEL")
    catalog_paths: Annotated[tuple[Path, ...], NoDecode] = Field(
        default=(Path("catalog"),), validation_alias="TRACKER_CATALOG_PATHS"
    )

    @field_validator("api_base_url")
    @classmethod
    def _strip_base_url(cls, value: str) -> str:
        normalized = value.strip().rstrip("/")
        if not normalized:
            raise ValueError("TRACKER_API_BASE_URL must not be empty")
        return normalized

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "TRACKER_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("request_timeout")
    @classmethod
    def _validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("TRACKER_REQUEST_TIMEOUT must be > 0")
        return value

    @field_validator("catalog_paths", mode="before")
    @classmethod
    def _parse_catalog_paths(cls, value):
        if value is None or value == "":
            return (Path("catalog"),)
        if isinstance(value, (list, tuple)):
            return tuple(Path(str(item)) for item in value)
        if isinstance(value, str):
            parts = [part.strip() for part in value.split(os.pathsep) if part.strip()]
            return tuple(Path(part) for part in parts) or (Path("catalog"),)
        raise TypeError("TRACKER_CATALOG_PATHS must be a list of paths or a path-separated string")


@lru_cache(maxsize=1)
def get_settings() -> TrackerSettings:
    """Return cached settings instance."""

    settings = TrackerSettings()
    settings.catalog_paths = tuple(path.expanduser().resolve() for path in settings.catalog_paths)
    return settings


__all__ = ["TrackerSettings", "get_settings"]
