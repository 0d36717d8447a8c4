"""claimrunner CLI.

Built with Typer. Global flags are consumed by the app callback, which
records them in ``cli.helpers`` and configures logging once before the
command body runs. The only command, ``run``, lives in ``cli/commands``.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Annotated, TypeVar

import typer

from claimrunner import __version__

from .commands import run
from .helpers import (
    OutputLevel,
    configure_global_logging,
    set_log_file,
    set_log_format,
    set_log_level,
    set_output_level,
)
from .output import console

T = TypeVar("T")

app = typer.Typer(
    name="claimrunner",
    help="Drain a job queue in claimed batches, one claim per batch",
    add_completion=False,
)


def version_callback(value: bool) -> None:
    """Print the installed claimrunner version and stop."""
    if value:
        console.print(f"claimrunner v{__version__}")
        raise typer.Exit()


def _output_level_setter(level: OutputLevel) -> Callable[[bool], None]:
    """Callback that switches the output level when its flag is present."""

    def callback(value: bool) -> None:
        if value:
            set_output_level(level)

    return callback


def _recorder(setter: Callable[[T], None]) -> Callable[[T | None], T | None]:
    """Callback that hands a logging option to ``setter`` when it was given.

    The value is passed through unchanged so Typer still binds it.
    """

    def callback(value: T | None) -> T | None:
        if value:
            setter(value)
        return value

    return callback


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Print the version and exit",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            callback=_output_level_setter(OutputLevel.VERBOSE),
            is_eager=True,
            help="Echo a line when each job starts and completes",
        ),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            callback=_output_level_setter(OutputLevel.QUIET),
            is_eager=True,
            help="Only print errors; no progress bar or summary",
        ),
    ] = False,
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            "-L",
            callback=_recorder(set_log_level),
            help="Minimum structured log level: DEBUG, INFO, WARNING or ERROR",
            envvar="CLAIMRUNNER_LOG_LEVEL",
        ),
    ] = None,
    log_file: Annotated[
        Path | None,
        typer.Option(
            "--log-file",
            callback=_recorder(set_log_file),
            help="Append structured logs to this file as JSON lines",
            envvar="CLAIMRUNNER_LOG_FILE",
        ),
    ] = None,
    log_format: Annotated[
        str | None,
        typer.Option(
            "--log-format",
            callback=_recorder(set_log_format),
            help="Structured log renderer: console, json, or both (needs --log-file)",
            envvar="CLAIMRUNNER_LOG_FORMAT",
        ),
    ] = None,
) -> None:
    """Claim a batch of queued jobs, run it, and repeat."""
    configure_global_logging(console)


app.command()(run)

__all__ = ["app", "console", "main"]
