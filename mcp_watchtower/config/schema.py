"""Pydantic configuration models for MCP Watchtower."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from mcp_watchtower.constants import (
    DEFAULT_LOG_LEVEL,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_PROBE_TIMEOUT,
    DEFAULT_STALE_THRESHOLD,
    DEFAULT_STORE_PATH,
    DEFAULT_SYNC_DEBOUNCE,
    DEFAULT_SYNC_POLL_INTERVAL,
    LOG_DIR,
    STORAGE_KEY,
)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class StoreSettings(BaseModel):
    """Where the server list is persisted."""

    model_config = ConfigDict(extra="forbid")

    path: str = Field(
        default=DEFAULT_STORE_PATH,
        min_length=1,
        description="JSON file shared by every process using the registry.",
    )
    key: str = Field(
        default=STORAGE_KEY,
        min_length=1,
        description="Key holding the server array inside the store document.",
    )


class HealthSettings(BaseModel):
    """Health polling and probe timing, all in seconds."""

    model_config = ConfigDict(extra="forbid")

    poll_interval: float = Field(
        default=DEFAULT_POLL_INTERVAL,
        gt=0,
        description="Seconds between scheduler ticks.",
    )
    stale_threshold: float = Field(
        default=DEFAULT_STALE_THRESHOLD,
        gt=0,
        description="Seconds an ONLINE result is trusted before re-probing.",
    )
    probe_timeout: float = Field(
        default=DEFAULT_PROBE_TIMEOUT,
        gt=0,
        description="Deadline shared by the three requests of one probe.",
    )


class SyncSettings(BaseModel):
    """Cross-process change detection."""

    model_config = ConfigDict(extra="forbid")

    poll_interval: float = Field(
        default=DEFAULT_SYNC_POLL_INTERVAL,
        gt=0,
        description="Seconds between store file polls.",
    )
    debounce: float = Field(
        default=DEFAULT_SYNC_DEBOUNCE,
        ge=0,
        description="Seconds to let rapid successive writes settle.",
    )


class LoggingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: str = Field(default=DEFAULT_LOG_LEVEL)
    directory: str = Field(default=LOG_DIR, min_length=1)

    @field_validator("level")
    @classmethod
    def _check_level(cls, v: str) -> str:
        upper = v.upper()
        if upper not in _LOG_LEVELS:
            raise ValueError(f"log level must be one of {', '.join(_LOG_LEVELS)}")
        return upper


class WatchtowerConfig(BaseModel):
    """Top-level configuration (versioned v1 format)."""

    model_config = ConfigDict(extra="forbid")

    version: Literal["1"] = "1"
    store: StoreSettings = Field(default_factory=StoreSettings)
    health: HealthSettings = Field(default_factory=HealthSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("version", mode="before")
    @classmethod
    def _coerce_version(cls, v: object) -> object:
        # YAML reads an unquoted 1 as int
        return str(v) if isinstance(v, int) else v
