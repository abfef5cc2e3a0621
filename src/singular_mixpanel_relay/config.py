"""Application configuration management using Pydantic Settings.

This module defines the `Settings` class, which loads configuration parameters
from environment variables and a `.env` file. It centralizes all tunable
parameters, from the Mixpanel project token and API host to retry behavior and
the namespace used for unmapped Singular fields.

The `get_settings` function provides a cached, singleton instance of the
configuration, ensuring consistent settings throughout the application.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict as _SettingsConfigDict


class Settings(BaseSettings):
    """Defines all application configuration parameters.

    This class uses `pydantic-settings` to automatically load values from
    environment variables or a `.env` file. A missing `MIXPANEL_TOKEN` is not a
    settings error: the handler reports it per request as a configuration
    failure so the invoking layer receives a proper 500 response.
    """

    model_config = _SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Mixpanel
    MIXPANEL_TOKEN: str = Field(default="", description="Mixpanel project token")
    MIXPANEL_API_HOST: str = Field(
        default="https://api.mixpanel.com", description="Base URL for the Mixpanel ingestion API"
    )
    MIXPANEL_TIMEOUT: int = Field(
        default=10, description="Timeout (seconds) for each Mixpanel HTTP request"
    )

    # Delivery retry policy
    MAX_RETRIES: int = Field(
        default=3,
        description="Maximum number of full alias/set/track attempts before giving up",
    )
    RETRY_DELAY_MS: int = Field(
        default=1000,
        description="Base delay in milliseconds; attempt N waits N * RETRY_DELAY_MS",
    )

    # Logging & runtime behavior
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    DRY_RUN: bool = Field(
        default=False,
        description="If true, map and log postbacks without calling Mixpanel",
    )

    # ---------------- Property mapping -----------------
    ATTRIBUTION_SOURCE: str = Field(
        default="singular", description="Value stamped into $attribution_source"
    )
    EXTRA_FIELD_PREFIX: str = Field(
        default="$singular_",
        description="Prefix applied to postback fields absent from the field mapping table",
    )
    # Use Any type to prevent Pydantic Settings JSON decoding; validator converts to list[str]
    EXTRA_FIELD_MAPPINGS: Any = Field(
        default_factory=list,
        description=(
            "Optional comma-separated list of source:destination pairs appended to "
            "the default field mapping table. Example: "
            "EXTRA_FIELD_MAPPINGS=click_id:mp_click_id,partner:mp_partner"
        ),
    )

    @field_validator("EXTRA_FIELD_MAPPINGS", mode="before")
    @classmethod
    def parse_comma_separated(cls, v: str | list[str]) -> list[str]:
        """Parse comma-separated string into list of stripped strings.

        Supports both direct list input (from code/tests) and comma-separated
        string input (from environment variables). Empty strings result in
        empty list.
        """
        if isinstance(v, list):
            return [s.strip() for s in v if s.strip()]
        if isinstance(v, str):
            if not v.strip():
                return []
            return [s.strip() for s in v.split(",") if s.strip()]
        return []

    @field_validator("EXTRA_FIELD_MAPPINGS")
    @classmethod
    def check_mapping_pairs(cls, v: list[str]) -> list[str]:
        for entry in v:
            source, sep, dest = entry.partition(":")
            if not sep or not source.strip() or not dest.strip():
                raise ValueError(
                    f"EXTRA_FIELD_MAPPINGS entry {entry!r} must look like source:destination"
                )
        return v

    @field_validator("MIXPANEL_API_HOST")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.strip().rstrip("/")

    @field_validator("MAX_RETRIES")
    @classmethod
    def at_least_one_attempt(cls, v: int) -> int:
        if v < 1:
            raise ValueError("MAX_RETRIES must be at least 1")
        return v

    @field_validator("RETRY_DELAY_MS", "MIXPANEL_TIMEOUT")
    @classmethod
    def non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("value must not be negative")
        return v

    @property
    def retry_delay_seconds(self) -> float:
        return self.RETRY_DELAY_MS / 1000.0

    def extra_mapping_pairs(self) -> list[tuple[str, str]]:
        """Return `EXTRA_FIELD_MAPPINGS` as ordered (source, destination) tuples."""
        pairs: list[tuple[str, str]] = []
        for entry in self.EXTRA_FIELD_MAPPINGS:
            source, _, dest = entry.partition(":")
            pairs.append((source.strip(), dest.strip()))
        return pairs


@lru_cache(maxsize=1)
def get_settings() -> Settings:  # pragma: no cover - trivial
    """Return a cached, singleton instance of the application settings."""
    return Settings()
