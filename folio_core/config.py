"""
Runtime configuration from environment variables.

FOLIO_QUOTE_BASE_URL   base endpoint of the quote/portfolio provider
FOLIO_TICK_INTERVAL    seconds between refresh ticks
FOLIO_FETCH_TIMEOUT    seconds to wait for one quote before giving up on it
FOLIO_MAX_CONCURRENCY  maximum quote requests in flight within one tick
"""

from __future__ import annotations

from typing import Mapping

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PREFIX = "FOLIO_"

DEFAULT_QUOTE_BASE_URL = "http://localhost:3001"
DEFAULT_TICK_INTERVAL = 15.0
DEFAULT_FETCH_TIMEOUT = 5.0
DEFAULT_MAX_CONCURRENCY = 8


class Settings(BaseSettings):
    """Provider endpoint and refresh cadence. Immutable once built."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX, env_ignore_empty=True, frozen=True, extra="ignore"
    )

    quote_base_url: str = Field(default=DEFAULT_QUOTE_BASE_URL, description="Quote provider base URL")
    tick_interval: float = Field(
        default=DEFAULT_TICK_INTERVAL, gt=0, allow_inf_nan=False, description="Seconds between ticks"
    )
    fetch_timeout: float = Field(
        default=DEFAULT_FETCH_TIMEOUT, gt=0, allow_inf_nan=False, description="Per-quote timeout in seconds"
    )
    max_concurrency: int = Field(default=DEFAULT_MAX_CONCURRENCY, gt=0, description="Quote requests in flight")

    @field_validator("quote_base_url")
    @classmethod
    def _strip_base_url(cls, value: str) -> str:
        return value.strip().rstrip("/") or DEFAULT_QUOTE_BASE_URL

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """
        Read FOLIO_* settings from environ, or from the process environment when
        omitted. Blank values fall back to defaults. Raises pydantic.ValidationError
        on bad values.
        """
        if environ is None:
            return cls()
        values = {}
        for name in cls.model_fields:
            raw = environ.get(f"{ENV_PREFIX}{name.upper()}", "").strip()
            if raw:
                values[name] = raw
        return cls.model_validate(values)
