"""Run command for the claimrunner CLI.

Drains a queue file in claimed batches: each iteration stakes a claim,
runs it to completion, and continues until a setup stakes no jobs or the
``--batches`` limit is reached. Admission blocks, lost claims and (with
``--halt-on-failure``) job failures end the command with exit code 1.
"""

from __future__ import annotations

import time
from pathlib import Path

import typer

from claimrunner.core.config import RunnerConfig
from claimrunner.core.errors import ConfigError, HandlerImportError
from claimrunner.core.logging import get_logger
from claimrunner.execution.executor import CallableExecutor
from claimrunner.execution.monitor import FatalErrorMonitor
from claimrunner.execution.progress import NullProgressReporter
from claimrunner.execution.runner import BatchRunner
from claimrunner.interfaces import ProgressReporter
from claimrunner.store.memory import InMemoryClaimStore, InMemoryQueueCleaner

from ..helpers import is_quiet, is_verbose, load_handler, load_queue_file
from ..output import (
    ConsoleJobListener,
    RichProgressReporter,
    build_summary_table,
    console,
)

_logger = get_logger("cli.run")


def run(
    queue_file: Path = typer.Argument(
        ...,
        help="YAML file listing pending job ids",
        exists=True,
        readable=True,
        dir_okay=False,
    ),
    handler: str = typer.Option(
        ...,
        "--handler",
        "-H",
        help="Job handler as 'module:function'; called with each job id",
    ),
    batch_size: int | None = typer.Option(
        None,
        "--batch-size",
        "-b",
        min=1,
        help="Maximum jobs per claimed batch",
    ),
    batches: int = typer.Option(
        0,
        "--batches",
        min=0,
        help="Number of batches to run (0 = until the queue is empty)",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Run even when the concurrent batch limit is reached",
    ),
    config_file: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="YAML runner configuration",
        exists=True,
        readable=True,
        dir_okay=False,
    ),
    halt_on_failure: bool | None = typer.Option(
        None,
        "--halt-on-failure/--continue-on-failure",
        help="Stop the batch after the first failed job",
    ),
) -> None:
    """Run queued jobs in claimed batches."""
    try:
        config = RunnerConfig.from_yaml(config_file) if config_file else RunnerConfig()
        job_ids = load_queue_file(queue_file)
        job_handler = load_handler(handler)
    except (ConfigError, HandlerImportError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    if halt_on_failure is not None:
        config = config.model_copy(update={"halt_on_job_failure": halt_on_failure})
    size = batch_size or config.batch_size

    store = InMemoryClaimStore(job_ids)
    executor = CallableExecutor(
        job_handler,
        on_success=store.mark_complete,
        on_failure=store.mark_failure,
    )
    monitor = FatalErrorMonitor(
        on_fatal=lambda job_id, _claim_id: store.mark_failure(job_id, "fatal error at shutdown")
    )
    executor.add_listener(monitor)

    progress: ProgressReporter = (
        NullProgressReporter() if is_quiet() else RichProgressReporter(console)
    )
    runner = BatchRunner(
        store,
        executor,
        cleaner=InMemoryQueueCleaner(store, config.claim_timeout_seconds),
        monitor=monitor,
        progress=progress,
        observers=[ConsoleJobListener(console, verbose=is_verbose())],
        config=config,
    )

    started = time.monotonic()
    completed_batches = 0
    processed = 0
    failed = 0
    exit_code = 0

    while True:
        setup = runner.setup(size, force)
        if setup.error is not None:
            console.print(f"[red]Error:[/red] {setup.error}")
            exit_code = 1
            break
        if setup.warning and not is_quiet():
            console.print(f"[yellow]Warning:[/yellow] {setup.warning}")
        if setup.staked == 0:
            break

        if not is_quiet():
            noun = "task" if setup.staked == 1 else "tasks"
            console.print(f"Found {setup.staked} queued {noun}")

        result = runner.run()
        completed_batches += 1
        processed += result.processed
        failed += result.failed

        if result.error is not None:
            console.print(f"[red]Error:[/red] {result.error}")
            exit_code = 1
            break
        if batches and completed_batches >= batches:
            break

        runner.release_memory(config.memory_release_sleep_seconds)

    _logger.info(
        "cli.run_finished",
        batches=completed_batches,
        processed=processed,
        failed=failed,
        exit_code=exit_code,
    )

    if not is_quiet():
        console.print(
            build_summary_table(
                completed_batches, processed, failed, time.monotonic() - started
            )
        )
        if exit_code == 0:
            noun = "task" if processed == 1 else "tasks"
            console.print(f"[green]Success:[/green] {processed} scheduled {noun} completed")

    if exit_code:
        raise typer.Exit(exit_code)
