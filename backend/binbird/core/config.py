from __future__ import annotations

from datetime import timezone, tzinfo
from functools import lru_cache
from pathlib import Path
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    debug: bool = Field(False, alias="BINBIRD_DEBUG")
    storage_root: Path = Field(Path("./data"), alias="BINBIRD_STORAGE_ROOT")

    # An operational day starts at this local hour; earlier activity still
    # belongs to the previous day.
    operational_rollover_hour: int = Field(
        6, ge=0, le=23, alias="BINBIRD_OPERATIONAL_ROLLOVER_HOUR"
    )
    timezone: str = Field("UTC", alias="BINBIRD_TIMEZONE")

    routing_provider: Literal["google", "local"] = Field(
        "google", alias="BINBIRD_ROUTING_PROVIDER"
    )
    google_maps_api_key: str | None = Field(None, alias="BINBIRD_GOOGLE_MAPS_API_KEY")
    routing_timeout: float = Field(10.0, alias="BINBIRD_ROUTING_TIMEOUT")
    routing_time_limit_seconds: int = Field(
        5, ge=1, alias="BINBIRD_ROUTING_TIME_LIMIT_SECONDS"
    )
    # Devices whose session storage stays in memory; the least recently seen
    # is dropped first and rebuilt from the local backend on its next request.
    device_cache_size: int = Field(1024, ge=1, alias="BINBIRD_DEVICE_CACHE_SIZE")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
    )

    @field_validator("storage_root", mode="before")
    def _expand_storage_root(cls, value: Path | str) -> Path:
        """Expand user and resolve the storage directory."""
        path = Path(value).expanduser()
        path.mkdir(parents=True, exist_ok=True)
        return path

    @field_validator("routing_provider", mode="before")
    def _normalize_provider(cls, value: str) -> str:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("timezone")
    def _check_timezone(cls, value: str) -> str:
        try:
            resolve_timezone(value)
        except ZoneInfoNotFoundError as exc:
            raise ValueError(f"Unknown timezone {value!r}") from exc
        return value

    @property
    def zone(self) -> tzinfo:
        return resolve_timezone(self.timezone)


def resolve_timezone(name: str) -> tzinfo:
    if name.strip().upper() in {"UTC", "Z"}:
        return timezone.utc
    return ZoneInfo(name.strip())


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached application settings."""

    return Settings()  # type: ignore[call-arg]
