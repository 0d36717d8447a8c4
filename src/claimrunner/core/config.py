"""Configuration models for claimrunner.

Pydantic v2 models for runner settings. Configs are usually loaded from a
YAML file and then overridden by CLI options.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from claimrunner.core.constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_CLAIM_TIMEOUT_SECONDS,
    DEFAULT_CONCURRENT_BATCHES,
    MEMORY_RELEASE_INTERVAL,
)
from claimrunner.core.errors import ConfigError


class LogConfig(BaseModel):
    """Logging settings passed to ``configure_logging``."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Minimum log level",
    )
    format: Literal["json", "console", "both"] = Field(
        default="console",
        description="Log output format",
    )
    file_path: Path | None = Field(
        default=None,
        description="Log file path (required for format='both')",
    )
    max_file_size_mb: int = Field(default=50, ge=1, le=1000)
    backup_count: int = Field(default=5, ge=0, le=100)

    @field_validator("level", mode="before")
    @classmethod
    def _upper_level(cls, v: object) -> object:
        return v.upper() if isinstance(v, str) else v


class RunnerConfig(BaseModel):
    """Settings for a BatchRunner and the ``run`` command."""

    concurrent_batches: int = Field(
        default=DEFAULT_CONCURRENT_BATCHES,
        ge=1,
        description="Maximum outstanding claims before new batches are blocked",
    )
    batch_size: int = Field(
        default=DEFAULT_BATCH_SIZE,
        ge=1,
        description="Maximum jobs staked per claim",
    )
    memory_release_interval: int = Field(
        default=MEMORY_RELEASE_INTERVAL,
        ge=1,
        description="Release ambient memory after every Nth processed job",
    )
    memory_release_sleep_seconds: float = Field(
        default=0.0,
        ge=0.0,
        description="Sleep used by explicit release_memory() calls from the CLI. "
        "The in-loop release never sleeps.",
    )
    collect_garbage: bool = Field(
        default=True,
        description="Run a gc collection pass when releasing memory",
    )
    halt_on_job_failure: bool = Field(
        default=False,
        description="Stop the batch after the first failed job",
    )
    claim_timeout_seconds: float = Field(
        default=DEFAULT_CLAIM_TIMEOUT_SECONDS,
        gt=0,
        description="Age after which the reference cleaner releases a claim",
    )
    log: LogConfig = Field(default_factory=LogConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> RunnerConfig:
        """Load runner configuration from a YAML file.

        Raises:
            ConfigError: If the file cannot be read or does not validate.
        """
        try:
            with open(path) as f:
                text = f.read()
        except OSError as e:
            raise ConfigError(f"Cannot read config {path}: {e}") from e
        return cls.from_yaml_string(text)

    @classmethod
    def from_yaml_string(cls, yaml_str: str) -> RunnerConfig:
        """Load runner configuration from a YAML string."""
        try:
            data = yaml.safe_load(yaml_str) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError("Runner config must be a mapping")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(str(e)) from e


__all__ = ["LogConfig", "RunnerConfig"]
