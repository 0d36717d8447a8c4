"""Tests for claimrunner.cli.output and the headless progress reporters."""

from __future__ import annotations

import io

import pytest
from rich.console import Console

from claimrunner.cli.output import (
    ConsoleJobListener,
    RichProgressReporter,
    build_summary_table,
    format_duration,
    truncate,
)
from claimrunner.execution.progress import CountingProgressReporter, NullProgressReporter
from claimrunner.interfaces import ProgressReporter


def _console() -> tuple[Console, io.StringIO]:
    buffer = io.StringIO()
    return Console(file=buffer, width=120, force_terminal=False), buffer


class TestProgressReporters:
    @pytest.mark.parametrize(
        "reporter",
        [NullProgressReporter(), CountingProgressReporter(), RichProgressReporter(_console()[0])],
    )
    def test_satisfy_protocol(self, reporter: object) -> None:
        assert isinstance(reporter, ProgressReporter)

    def test_counting_reporter_restarts(self) -> None:
        reporter = CountingProgressReporter()
        reporter.start(3, "Running 3 tasks")
        reporter.tick()
        reporter.finish()
        reporter.start(2, "Running 2 tasks")

        assert reporter.current == 0
        assert reporter.start_calls == 2
        assert reporter.total == 2
        assert reporter.finished_at is None
        assert reporter.elapsed_seconds >= 0.0

    def test_rich_reporter_counts_ticks(self) -> None:
        console, _ = _console()
        reporter = RichProgressReporter(console)
        reporter.start(2, "Running 2 tasks")
        reporter.tick()
        reporter.tick()
        reporter.finish()
        reporter.finish()

        assert reporter.current == 2


class TestConsoleJobListener:
    def test_quiet_by_default_except_failures(self) -> None:
        console, buffer = _console()
        listener = ConsoleJobListener(console)

        listener.on_start(1)
        listener.on_complete(1)
        listener.on_fail(2, ValueError("bad row"))

        text = buffer.getvalue()
        assert "Started" not in text
        assert "Error processing job 2: bad row" in text

    def test_verbose_prints_lifecycle(self) -> None:
        console, buffer = _console()
        listener = ConsoleJobListener(console, verbose=True)

        listener.on_start(1)
        listener.on_complete(1)

        text = buffer.getvalue()
        assert "Started processing job 1" in text
        assert "Completed processing job 1" in text


class TestFormatting:
    def test_truncate(self) -> None:
        assert truncate("short") == "short"
        assert truncate("x" * 20, limit=10) == "xxxxxxx..."

    @pytest.mark.parametrize(
        ("seconds", "expected"),
        [(None, "N/A"), (5.24, "5.2s"), (192, "3m 12s"), (5400, "1h 30m")],
    )
    def test_format_duration(self, seconds: float | None, expected: str) -> None:
        assert format_duration(seconds) == expected

    def test_summary_table(self) -> None:
        console, buffer = _console()
        console.print(build_summary_table(2, 7, 1, 3.0))

        text = buffer.getvalue()
        assert "Jobs processed" in text
        assert "7" in text
        assert "3.0s" in text
