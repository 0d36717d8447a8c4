"""Structured logging infrastructure for claimrunner.

Provides structured logging using structlog with runner-specific context
such as run_id, claim_id and job_id. Supports console and JSON output, the
latter optionally to a rotating log file.

Example usage:
    from claimrunner.core.logging import configure_logging, get_logger

    configure_logging(level="DEBUG", format="console")

    logger = get_logger("runner")
    logger.info("runner.batch_staked", jobs=25)

    ctx = RunContext(claim_id="c-17")
    with with_context(ctx):
        logger.info("runner.job_started")  # includes run_id, claim_id
"""

from __future__ import annotations

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Literal

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

# Field name fragments whose values are never written to logs
SENSITIVE_PATTERNS = frozenset({
    "api_key",
    "token",
    "secret",
    "password",
    "credential",
    "authorization",
})

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console", "both"]


@dataclass(frozen=True)
class RunContext:
    """Immutable correlation context for one runner invocation.

    Attributes:
        run_id: Unique identifier of the setup/run cycle.
        claim_id: Identifier of the claim staked for the batch, once known.
        job_id: Job currently being executed, if any.
        component: Component emitting the log entries.
    """

    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    claim_id: str | int | None = None
    job_id: str | int | None = None
    component: str = "runner"

    def with_claim(self, claim_id: str | int) -> RunContext:
        """Return a copy bound to ``claim_id``."""
        return replace(self, claim_id=claim_id)

    def with_job(self, job_id: str | int | None) -> RunContext:
        """Return a copy bound to ``job_id``."""
        return replace(self, job_id=job_id)

    def to_dict(self) -> dict[str, Any]:
        """Context fields for log entries, without unset values."""
        result: dict[str, Any] = {"run_id": self.run_id, "component": self.component}
        if self.claim_id is not None:
            result["claim_id"] = self.claim_id
        if self.job_id is not None:
            result["job_id"] = self.job_id
        return result


_current_context: ContextVar[RunContext | None] = ContextVar(
    "claimrunner_context", default=None
)


def get_current_context() -> RunContext | None:
    """Get the active RunContext, if any."""
    return _current_context.get()


@contextmanager
def with_context(ctx: RunContext) -> Iterator[RunContext]:
    """Set ``ctx`` as the active RunContext for the duration of a block."""
    token = _current_context.set(ctx)
    try:
        yield ctx
    finally:
        _current_context.reset(token)


def _sanitize_value(key: str, value: Any) -> Any:
    key_lower = key.lower()
    if any(pattern in key_lower for pattern in SENSITIVE_PATTERNS):
        return "[REDACTED]"
    return value


def _sanitize_event_dict(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that redacts sensitive fields (one level deep)."""
    sanitized: EventDict = {}
    for key, value in event_dict.items():
        if isinstance(value, dict):
            sanitized[key] = {k: _sanitize_value(k, v) for k, v in value.items()}
        else:
            sanitized[key] = _sanitize_value(key, value)
    return sanitized


def _add_timestamp(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    event_dict["timestamp"] = datetime.now(UTC).isoformat()
    return event_dict


def _add_context(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that merges the active RunContext.

    Explicitly bound keys take precedence over context fields.
    """
    ctx = get_current_context()
    if ctx is not None:
        for key, value in ctx.to_dict().items():
            event_dict.setdefault(key, value)
    return event_dict


class RunnerLogger:
    """Component logger wrapping structlog.

    The underlying structlog logger is fetched on every call, so loggers
    created at import time still honour a later configure_logging().
    """

    def __init__(self, component: str, **initial_context: Any) -> None:
        self._component = component
        self._context: dict[str, Any] = {"component": component, **initial_context}

    def _get_logger(self) -> structlog.stdlib.BoundLogger:
        logger: structlog.stdlib.BoundLogger = structlog.get_logger().bind(**self._context)
        return logger

    def bind(self, **context: Any) -> RunnerLogger:
        """Return a new logger with additional bound context."""
        merged = {**self._context, **context}
        merged.pop("component", None)
        return RunnerLogger(self._component, **merged)

    def unbind(self, *keys: str) -> RunnerLogger:
        """Return a new logger without the given keys."""
        remaining = {k: v for k, v in self._context.items() if k not in keys}
        remaining.pop("component", None)
        return RunnerLogger(self._component, **remaining)

    def debug(self, event: str, **kw: Any) -> None:
        self._get_logger().debug(event, **kw)

    def info(self, event: str, **kw: Any) -> None:
        self._get_logger().info(event, **kw)

    def warning(self, event: str, **kw: Any) -> None:
        self._get_logger().warning(event, **kw)

    def error(self, event: str, **kw: Any) -> None:
        self._get_logger().error(event, **kw)

    def critical(self, event: str, **kw: Any) -> None:
        self._get_logger().critical(event, **kw)

    def exception(self, event: str, **kw: Any) -> None:
        """Log at error level with the active exception's traceback."""
        self._get_logger().exception(event, **kw)


def _build_processors(renderer: Processor, include_timestamps: bool) -> list[Processor]:
    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        _sanitize_event_dict,
        _add_context,
    ]
    if include_timestamps:
        processors.append(_add_timestamp)
    processors.extend([
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        renderer,
    ])
    return processors


def configure_logging(
    level: LogLevel = "INFO",
    format: LogFormat = "console",  # noqa: A002
    file_path: Path | None = None,
    max_file_size_mb: int = 50,
    backup_count: int = 5,
    include_timestamps: bool = True,
) -> None:
    """Configure structured logging for the process.

    Args:
        level: Minimum log level to capture.
        format: "console" for human-readable stderr output, "json" for JSON
            (to ``file_path`` when given, stdout otherwise), "both" for
            console on stderr plus JSON lines in ``file_path``.
        file_path: Log file; required when format is "both".
        max_file_size_mb: Rotation threshold for the log file.
        backup_count: Rotated files to keep.
        include_timestamps: Add an ISO8601 UTC timestamp to every entry.

    Raises:
        ValueError: If format="both" without a file_path.
    """
    if format == "both" and file_path is None:
        raise ValueError("file_path is required when format='both'")

    log_level = getattr(logging, level)
    handlers: list[logging.Handler] = []

    if format in ("console", "both"):
        handlers.append(logging.StreamHandler(sys.stderr))

    if format in ("json", "both"):
        if file_path is not None:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(
                RotatingFileHandler(
                    file_path,
                    maxBytes=max_file_size_mb * 1024 * 1024,
                    backupCount=backup_count,
                    encoding="utf-8",
                )
            )
        else:
            handlers.append(logging.StreamHandler(sys.stdout))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in handlers:
        handler.setLevel(log_level)
        root_logger.addHandler(handler)

    renderer: Processor
    if format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    # cache_logger_on_first_use=False so module-level loggers pick up late config
    structlog.configure(
        processors=_build_processors(renderer, include_timestamps),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(component: str, **initial_context: Any) -> RunnerLogger:
    """Get a logger bound to ``component``."""
    return RunnerLogger(component, **initial_context)


__all__ = [
    "RunContext",
    "RunnerLogger",
    "SENSITIVE_PATTERNS",
    "configure_logging",
    "get_current_context",
    "get_logger",
    "with_context",
]
