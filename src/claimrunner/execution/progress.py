"""Progress reporters for batch runs.

The runner drives a reporter through ``start(total, description)``, one
``tick()`` per processed job and exactly one ``finish()`` per run. The Rich
terminal reporter lives in ``claimrunner.cli.output``; these two are the
headless variants.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from claimrunner.utils.time import utc_now


class NullProgressReporter:
    """Reporter that discards every signal."""

    def start(self, total: int, description: str) -> None:
        pass

    def tick(self) -> None:
        pass

    def finish(self) -> None:
        pass


@dataclass
class CountingProgressReporter:
    """Reporter that records what it was told.

    Useful for headless runs that only need the final figures, and for
    asserting on the runner's progress protocol in tests.

    Attributes:
        total: Batch size given to ``start``.
        description: Label given to ``start``.
        current: Number of ticks received.
        start_calls: How many times ``start`` was called.
        finish_calls: How many times ``finish`` was called.
        started_at: When ``start`` was last called.
        finished_at: When ``finish`` was last called.
    """

    total: int = 0
    description: str = ""
    current: int = 0
    start_calls: int = 0
    finish_calls: int = 0
    started_at: datetime | None = None
    finished_at: datetime | None = None
    history: list[str] = field(default_factory=list)

    def start(self, total: int, description: str) -> None:
        self.total = total
        self.description = description
        self.current = 0
        self.start_calls += 1
        self.started_at = utc_now()
        self.finished_at = None
        self.history.append("start")

    def tick(self) -> None:
        self.current += 1
        self.history.append("tick")

    def finish(self) -> None:
        self.finish_calls += 1
        self.finished_at = utc_now()
        self.history.append("finish")

    @property
    def elapsed_seconds(self) -> float:
        """Seconds between start and finish (or now, while running)."""
        if self.started_at is None:
            return 0.0
        end = self.finished_at or utc_now()
        return (end - self.started_at).total_seconds()


__all__ = ["CountingProgressReporter", "NullProgressReporter"]
