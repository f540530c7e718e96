"""
config/settings.py — Canonical configuration contract for pgraise.

Uses pydantic-settings to load, validate, and type-check the run
configuration: the operator's flags (pool, target, delta, verbose) plus the
pacing and ceph invocation knobs that only come from the environment.

Two usage modes:
  Production / CLI:
      cfg = load_settings(POOL="data", TARGET=1024)   # PGRAISE_* from .env + os.environ, then flags
      cfg = load_settings("env/prod.env", POOL="data", TARGET=1024)

  Tests (isolated — no env file, no os.environ bleed):
      cfg = Settings(POOL="data", TARGET=1024, SETTLE_SECONDS=0)
      # All values come exclusively from kwargs → clean, reproducible.

The instance is frozen: it is built once at startup and handed to the driver.
"""
from __future__ import annotations

import os
import re
from collections.abc import Mapping
from typing import Any

from pydantic import field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


ENV_PREFIX = "PGRAISE_"


def is_power_of_two(n: int) -> bool:
    """Report whether n is a positive power of two."""
    return n > 0 and n & (n - 1) == 0


class Settings(BaseSettings):
    # Settings() reads purely from kwargs. load_settings() is the explicit
    # production entry point that merges env file, os.environ and flags.
    model_config = SettingsConfigDict(
        env_file=None,
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings,)

    # -------------------------------------------------------------------------
    # Operator input
    # -------------------------------------------------------------------------
    POOL: str
    TARGET: int
    DELTA: int = 10
    VERBOSE: bool = False

    # -------------------------------------------------------------------------
    # Pacing (seconds)
    # -------------------------------------------------------------------------
    TICK_SECONDS: float = 10.0
    SETTLE_SECONDS: float = 40.0
    PHASE_DELAY_SECONDS: float = 30.0

    # -------------------------------------------------------------------------
    # ceph CLI
    # -------------------------------------------------------------------------
    CEPH_BIN: str = "ceph"
    CEPH_TIMEOUT_SECONDS: int = 60

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------

    @field_validator("POOL", "CEPH_BIN", mode="before")
    @classmethod
    def strip_required_strings(cls, v: Any) -> Any:
        """Strip trailing whitespace that GNU make leaves after include .env."""
        if isinstance(v, str):
            v = v.strip()
            if not v:
                raise ValueError("must be a non-empty string")
        return v

    @field_validator("TARGET")
    @classmethod
    def target_power_of_two(cls, v: int) -> int:
        if not is_power_of_two(v):
            raise ValueError("Target PG number must be greater than 0 and a power of 2")
        return v

    @field_validator("DELTA", "CEPH_TIMEOUT_SECONDS")
    @classmethod
    def at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator("TICK_SECONDS")
    @classmethod
    def positive_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be > 0")
        return v

    @field_validator("SETTLE_SECONDS", "PHASE_DELAY_SECONDS")
    @classmethod
    def non_negative_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must be >= 0")
        return v


def _read_env_file(env_file: str) -> dict[str, str]:
    file_vals: dict[str, str] = {}
    try:
        with open(env_file, encoding="utf-8") as fh:
            for line in fh:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue
                k, _, v = line.partition("=")
                k = k.strip()
                # Strip inline comments: "40   # seconds" → "40"
                v = re.sub(r"\s+#.*$", "", v.strip())
                if k:
                    file_vals[k] = v
    except FileNotFoundError:
        pass
    return file_vals


def _unprefixed(values: Mapping[str, str]) -> dict[str, str]:
    return {k[len(ENV_PREFIX):]: v for k, v in values.items() if k.startswith(ENV_PREFIX)}


def load_settings(env_file: str = ".env", **overrides: Any) -> Settings:
    """Load and validate settings from an env file, os.environ and overrides.

    Only PGRAISE_-prefixed names are read from the env file and os.environ
    (PGRAISE_SETTLE_SECONDS=60 sets SETTLE_SECONDS), so an unrelated DELTA or
    VERBOSE exported in the operator's shell is never picked up. Overrides use
    the bare field names.

    Precedence: explicit overrides (the CLI flags) win over os.environ, which
    wins over the env file. Overrides set to None are treated as not given so
    optional flags fall back to the environment or the field default.

    Raises:
        ValidationError: if a value is invalid or POOL/TARGET are missing.
    """
    merged: dict[str, Any] = {
        **_unprefixed(_read_env_file(env_file)),
        **_unprefixed(os.environ),
    }
    merged.update({k: v for k, v in overrides.items() if v is not None})
    known = {k: v for k, v in merged.items() if k in Settings.model_fields}
    return Settings(**known)
