"""
stickytree — Configuration System

All configuration is Pydantic-validated and loaded from:
1. a YAML file (defaults)
2. Environment variables (overrides)

Every tunable parameter of the sticky-state engine lives here.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Failure messages the transition engine uses for expected outcomes.
# These are re-raised to the caller but never logged as anomalies.
DEFAULT_BENIGN_FAILURES: tuple[str, ...] = (
    "transition prevented",
    "transition aborted",
    "transition superseded",
)

# ─── Sub-configs ──────────────────────────────────────────────────


class StickyConfig(BaseModel):
    # Log classification, surrogate paths and view chains for every transition
    debug: bool = False
    # When True, descendants of an inactivated sticky state are inactivated
    # with it instead of being exited
    inherit_sticky: bool = False
    # Synthetic parameter injected on the reload boundary for one transition
    reload_param: str = "$$stickyreload"
    benign_failures: list[str] = Field(
        default_factory=lambda: list(DEFAULT_BENIGN_FAILURES)
    )
    # Recent events kept per event type by the event bus
    event_buffer_size: int = 100

    @field_validator("reload_param")
    @classmethod
    def _reload_param_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("reload_param must not be blank")
        return value


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "console"  # "console" | "json"


# ─── Root Configuration ──────────────────────────────────────────


class StickyTreeConfig(BaseSettings):
    """
    Root configuration. Loads from YAML, overridable by env vars.
    """

    model_config = SettingsConfigDict(
        env_prefix="STICKYTREE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    instance_id: str = "stickytree-default"

    sticky: StickyConfig = Field(default_factory=StickyConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes")


def load_config(
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> StickyTreeConfig:
    """
    Load configuration from YAML file, then apply environment variable overrides.
    """
    raw: dict[str, Any] = {}

    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                raw = yaml.safe_load(f) or {}

    if overrides:
        raw = _deep_merge(raw, overrides)

    # Environment wins over the file for the handful of operational knobs
    if debug := os.environ.get("STICKYTREE_STICKY__DEBUG"):
        raw.setdefault("sticky", {})["debug"] = _env_flag(debug)
    if inherit := os.environ.get("STICKYTREE_STICKY__INHERIT_STICKY"):
        raw.setdefault("sticky", {})["inherit_sticky"] = _env_flag(inherit)
    if level := os.environ.get("STICKYTREE_LOGGING__LEVEL"):
        raw.setdefault("logging", {})["level"] = level
    if fmt := os.environ.get("STICKYTREE_LOGGING__FORMAT"):
        raw.setdefault("logging", {})["format"] = fmt
    if instance_id := os.environ.get("STICKYTREE_INSTANCE_ID"):
        raw["instance_id"] = instance_id

    return StickyTreeConfig(**raw)
