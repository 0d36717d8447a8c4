"""Failure monitors.

A failure monitor is attached to a claim for the duration of a batch. The
reference ``FatalErrorMonitor`` tracks the job in flight through the
executor's lifecycle signals. A job still in flight when the batch is torn
down (an exception such as ``SystemExit`` escaped the executor) or when the
interpreter exits is reported as failed through ``on_fatal``, so the store
can fail it instead of leaving it claimed.
"""

from __future__ import annotations

import atexit
from collections.abc import Callable

from claimrunner.core.logging import get_logger
from claimrunner.interfaces import Claim, ClaimId, JobId

_logger = get_logger("monitor")

FatalHandler = Callable[[JobId, ClaimId], None]


class NullFailureMonitor:
    """Monitor that does nothing."""

    def attach(self, claim: Claim) -> None:
        pass

    def detach(self) -> None:
        pass


class FatalErrorMonitor:
    """Attributes an abrupt exit to the job that was running.

    Register the monitor as a listener on the executor so it can see which
    job of the attached claim is in flight; the runner calls
    ``attach``/``detach`` around a batch.
    """

    def __init__(self, on_fatal: FatalHandler) -> None:
        self._on_fatal = on_fatal
        self._claim: Claim | None = None
        self._in_flight: JobId | None = None

    @property
    def claim(self) -> Claim | None:
        return self._claim

    @property
    def in_flight(self) -> JobId | None:
        return self._in_flight

    def attach(self, claim: Claim) -> None:
        if self._claim is not None:
            self.detach()
        self._claim = claim
        self._in_flight = None
        atexit.register(self.handle_unexpected_shutdown)
        _logger.debug("monitor.attached", claim_id=claim.claim_id)

    def detach(self) -> None:
        """Stop monitoring, first reporting any job left in flight."""
        if self._claim is None:
            return
        if self._in_flight is not None:
            self.handle_unexpected_shutdown()
        atexit.unregister(self.handle_unexpected_shutdown)
        _logger.debug("monitor.detached", claim_id=self._claim.claim_id)
        self._claim = None
        self._in_flight = None

    def on_start(self, job_id: JobId) -> None:
        # Jobs outside the attached claim belong to another runner
        if self._claim is not None and job_id in self._claim.job_ids:
            self._in_flight = job_id

    def on_complete(self, job_id: JobId) -> None:
        if job_id == self._in_flight:
            self._in_flight = None

    def on_fail(self, job_id: JobId, error: BaseException) -> None:
        if job_id == self._in_flight:
            self._in_flight = None

    def handle_unexpected_shutdown(self) -> None:
        """Report the in-flight job, if any, as fatally failed."""
        if self._claim is None or self._in_flight is None:
            return
        job_id, claim_id = self._in_flight, self._claim.claim_id
        _logger.error("monitor.fatal_shutdown", job_id=job_id, claim_id=claim_id)
        self._in_flight = None
        self._on_fatal(job_id, claim_id)


__all__ = ["FatalErrorMonitor", "NullFailureMonitor"]
