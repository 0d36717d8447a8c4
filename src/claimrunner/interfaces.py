"""Collaborator contracts for the batch runner.

The runner only talks to its collaborators through these structural types.
Durable stores, executors, cleaners and monitors live outside this package;
``claimrunner.store.memory`` and ``claimrunner.execution`` provide in-process
reference implementations used by the tests and the CLI.
"""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

JobId = int | str
ClaimId = int | str


@dataclass(frozen=True)
class Claim:
    """A staked claim: its identifier and the batch it covered when staked.

    ``job_ids`` is a snapshot in the store's order. What the claim covers
    *now* must be asked of the store via ``find_jobs_by_claim_id``.
    """

    claim_id: ClaimId
    job_ids: tuple[JobId, ...] = ()

    def __len__(self) -> int:
        return len(self.job_ids)


@runtime_checkable
class ClaimStore(Protocol):
    """Durable queue that hands out exclusive claims over pending jobs."""

    def get_claim_count(self) -> int:
        """Number of claims currently outstanding across all runners."""
        ...

    def stake_claim(self, max_jobs: int) -> Claim:
        """Claim up to ``max_jobs`` pending jobs. May return an empty claim."""
        ...

    def find_jobs_by_claim_id(self, claim_id: ClaimId) -> Collection[JobId]:
        """Jobs the claim covers at the time of the call."""
        ...


@runtime_checkable
class JobListener(Protocol):
    """Receives lifecycle signals from a JobExecutor."""

    def on_start(self, job_id: JobId) -> None: ...

    def on_complete(self, job_id: JobId) -> None: ...

    def on_fail(self, job_id: JobId, error: BaseException) -> None: ...


@runtime_checkable
class JobExecutor(Protocol):
    """Runs one job and fans lifecycle signals out to listeners synchronously.

    ``execute`` reports failures through ``on_fail`` rather than raising.
    """

    def execute(self, job_id: JobId) -> None: ...

    def add_listener(self, listener: JobListener) -> None: ...

    def remove_listener(self, listener: JobListener) -> None: ...


@runtime_checkable
class QueueCleaner(Protocol):
    """Removes stale or orphaned claims before a batch is staked."""

    def clean(self) -> None: ...


@runtime_checkable
class FailureMonitor(Protocol):
    """Attributes a fatal error during a job to that job under a claim."""

    def attach(self, claim: Claim) -> None: ...

    def detach(self) -> None: ...


@runtime_checkable
class ProgressReporter(Protocol):
    """Progress display consumed by the runner (start, tick, finish)."""

    def start(self, total: int, description: str) -> None: ...

    def tick(self) -> None: ...

    def finish(self) -> None: ...


@runtime_checkable
class AmbientCache(Protocol):
    """Process-lifetime buffer whose growth is bounded by periodic clearing.

    Caches that also satisfy RemoteFlushable are flushed after clearing.
    """

    def clear(self) -> None: ...


@runtime_checkable
class RemoteFlushable(Protocol):
    """Cache backed by a remote tier that needs an explicit flush."""

    def flush_remote(self) -> None: ...


__all__ = [
    "AmbientCache",
    "Claim",
    "ClaimId",
    "ClaimStore",
    "FailureMonitor",
    "JobExecutor",
    "JobId",
    "JobListener",
    "ProgressReporter",
    "QueueCleaner",
    "RemoteFlushable",
]
