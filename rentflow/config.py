"""
Engine configuration.

Business constants live here so that no engine hard-codes them. Values
are read from ``RENTFLOW_*`` environment variables (or a ``.env`` file),
falling back to the defaults below.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Literal, Mapping, Optional

import pytz
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from rentflow.utils.constants import PROFILE_FULL

# ---- Paths ----
BASE_DIR = Path(__file__).resolve().parents[1]
DEFAULT_DATA_PATH = BASE_DIR / "orders.pkl"

ENV_PREFIX = "RENTFLOW_"


class EngineConfig(BaseSettings):
    """Tunable business constants. Immutable once built; invalid values raise ValueError."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        frozen=True,
        extra="ignore",
    )

    profile: Literal["full", "basic"] = Field(
        default=PROFILE_FULL,
        description="Status-graph profile",
    )
    grace_days: int = Field(default=1, ge=0)
    tax_rate_pct: float = Field(default=16.0, ge=0)
    min_charge_ratio: float = Field(
        default=0.5, ge=0, le=1,
        description="Share of the original amount charged at least on an early return",
    )
    late_penalty_multiplier: float = Field(default=1.5, ge=0)
    cancellation_fee_pct: float = Field(default=10.0, ge=0, le=100)
    deposit_ratio: float = Field(default=0.2, ge=0, description="Suggested deposit as a share of the total")
    business_timezone: str = "Africa/Nairobi"
    data_path: str = str(DEFAULT_DATA_PATH)
    log_level: str = "INFO"

    @field_validator("business_timezone")
    @classmethod
    def validate_timezone(cls, v):
        if v not in pytz.all_timezones_set:
            raise ValueError(f"Unknown timezone: {v!r}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()

    @property
    def tz(self):
        return pytz.timezone(self.business_timezone)

    def with_overrides(self, **changes) -> "EngineConfig":
        return type(self)(**{**self.model_dump(), **changes})

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineConfig":
        """
        Build a config from RENTFLOW_* variables; unset or blank ones keep their
        defaults. ``environ`` replaces the process environment (tests).
        """
        if environ is None:
            return cls()
        values = {}
        for name in cls.model_fields:
            raw = environ.get(ENV_PREFIX + name.upper())
            if raw is not None and raw.strip():
                values[name] = raw.strip()
        return cls(**values)


_current: Optional[EngineConfig] = None
_lock = threading.Lock()


def current_config() -> EngineConfig:
    """Return the process-wide config, loading it from the environment on first use."""
    global _current
    with _lock:
        if _current is None:
            _current = EngineConfig.from_env()
        return _current


def set_config(config: Optional[EngineConfig]) -> None:
    """Replace the process-wide config (None forces a reload from env)."""
    global _current
    with _lock:
        _current = config
