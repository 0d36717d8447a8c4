"""Shared utilities for claimrunner CLI commands.

Holds the module-level CLI state (output level, logging options) set by the
global option callbacks, plus loaders for the queue file and job handler
references.
"""

from __future__ import annotations

import importlib
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Literal

import typer
import yaml
from rich.console import Console

from claimrunner.core.errors import ConfigError, HandlerImportError
from claimrunner.core.logging import configure_logging
from claimrunner.execution.executor import JobHandler
from claimrunner.interfaces import JobId

# =============================================================================
# Output level management
# =============================================================================


class OutputLevel(str, Enum):
    """Output verbosity level."""

    QUIET = "quiet"
    NORMAL = "normal"
    VERBOSE = "verbose"


_output_level: OutputLevel = OutputLevel.NORMAL


def get_output_level() -> OutputLevel:
    return _output_level


def set_output_level(level: OutputLevel) -> None:
    global _output_level
    _output_level = level


def is_verbose() -> bool:
    return _output_level == OutputLevel.VERBOSE


def is_quiet() -> bool:
    return _output_level == OutputLevel.QUIET


# =============================================================================
# Logging configuration
# =============================================================================


@dataclass
class CliLoggingConfig:
    """Logging options collected from the global CLI flags."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    file: Path | None = None
    format: Literal["json", "console", "both"] = "console"
    configured: bool = False


_log_config = CliLoggingConfig()


def set_log_level(level: str) -> None:
    _log_config.level = level.upper()  # type: ignore[assignment]


def set_log_file(path: Path | None) -> None:
    """Send logs to ``path`` as JSON lines; the console keeps Rich output."""
    _log_config.file = path
    if path is not None:
        _log_config.format = "json"


def set_log_format(fmt: str) -> None:
    _log_config.format = fmt  # type: ignore[assignment]


def get_log_config() -> CliLoggingConfig:
    return _log_config


def configure_global_logging(console: Console) -> None:
    """Configure logging from the global CLI options, once per session.

    Raises:
        typer.Exit: If the logging options are inconsistent.
    """
    if _log_config.configured:
        return
    try:
        configure_logging(
            level=_log_config.level,
            format=_log_config.format,
            file_path=_log_config.file,
        )
    except (ValueError, AttributeError) as e:
        console.print(f"[red]Logging configuration error:[/red] {e}")
        raise typer.Exit(1) from None
    _log_config.configured = True


def reset_cli_state() -> None:
    """Restore default CLI state (used by tests)."""
    global _log_config
    _log_config = CliLoggingConfig()
    set_output_level(OutputLevel.NORMAL)


# =============================================================================
# Loaders
# =============================================================================


def load_queue_file(path: Path) -> list[JobId]:
    """Read pending job ids from a YAML queue file.

    The file holds either a bare list of ids or a mapping with a ``jobs``
    list. Ids must be integers or strings; duplicates keep their first
    position.

    Raises:
        ConfigError: If the file is unreadable or malformed.
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read queue file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in queue file {path}: {e}") from e

    if isinstance(data, dict):
        data = data.get("jobs")
    if data is None:
        return []
    if not isinstance(data, list):
        raise ConfigError(f"Queue file {path} must contain a list of job ids")

    job_ids: list[JobId] = []
    for item in data:
        if isinstance(item, bool) or not isinstance(item, (int, str)):
            raise ConfigError(f"Invalid job id {item!r} in {path}")
        if item not in job_ids:
            job_ids.append(item)
    return job_ids


def load_handler(reference: str) -> JobHandler:
    """Resolve a ``package.module:function`` reference to a callable.

    Raises:
        HandlerImportError: If the reference is malformed, the module cannot
            be imported, or the attribute is missing or not callable.
    """
    module_name, sep, attr_path = reference.partition(":")
    if not sep or not module_name or not attr_path:
        raise HandlerImportError(
            f"Handler must look like 'module:function', got {reference!r}"
        )
    try:
        target: object = importlib.import_module(module_name)
    except ImportError as e:
        raise HandlerImportError(f"Cannot import {module_name!r}: {e}") from e
    for part in attr_path.split("."):
        try:
            target = getattr(target, part)
        except AttributeError:
            raise HandlerImportError(
                f"{module_name!r} has no attribute {attr_path!r}"
            ) from None
    if not callable(target):
        raise HandlerImportError(f"{reference!r} is not callable")
    return target  # type: ignore[return-value]


__all__ = [
    "CliLoggingConfig",
    "OutputLevel",
    "configure_global_logging",
    "get_log_config",
    "get_output_level",
    "is_quiet",
    "is_verbose",
    "load_handler",
    "load_queue_file",
    "reset_cli_state",
    "set_log_file",
    "set_log_format",
    "set_log_level",
    "set_output_level",
]
