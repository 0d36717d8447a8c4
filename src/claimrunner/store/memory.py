"""In-memory claim store for tests and local runs.

Provides a ``ClaimStore`` that keeps the queue in process memory with no
durability. Useful for unit tests that need a real store, and for the CLI
when draining a queue file.
"""

from __future__ import annotations

import itertools
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from claimrunner.core.logging import get_logger
from claimrunner.interfaces import Claim, ClaimId, JobId

_logger = get_logger("store.memory")


@dataclass
class _ClaimRecord:
    claim_id: int
    staked_at: float
    job_ids: list[JobId] = field(default_factory=list)


class InMemoryClaimStore:
    """Queue of pending job ids with exclusive claims.

    A job is covered by at most one claim. Completing, failing or releasing
    a job removes it from its claim; a claim covering no jobs no longer
    counts as outstanding. All methods are guarded by one lock so runners
    on separate threads can share a store.

    Args:
        job_ids: Initial pending jobs, in queue order.
        clock: Monotonic clock used to age claims.
    """

    def __init__(
        self,
        job_ids: Iterable[JobId] = (),
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._clock = clock
        self._lock = threading.RLock()
        self._pending: dict[JobId, int | None] = {}
        self._claims: dict[int, _ClaimRecord] = {}
        self._ids = itertools.count(1)
        self.completed: list[JobId] = []
        self.failed: dict[JobId, str] = {}
        for job_id in job_ids:
            self.add_job(job_id)

    # ─── Queue ──────────────────────────────────────────────────────

    def add_job(self, job_id: JobId) -> None:
        """Append a pending job. Re-adding a pending job is a no-op."""
        with self._lock:
            self._pending.setdefault(job_id, None)

    def pending_jobs(self) -> list[JobId]:
        with self._lock:
            return list(self._pending)

    def claim_of(self, job_id: JobId) -> int | None:
        with self._lock:
            return self._pending.get(job_id)

    # ─── ClaimStore ─────────────────────────────────────────────────

    def get_claim_count(self) -> int:
        with self._lock:
            return len(self._claims)

    def stake_claim(self, max_jobs: int) -> Claim:
        with self._lock:
            record = _ClaimRecord(claim_id=next(self._ids), staked_at=self._clock())
            for job_id, owner in self._pending.items():
                if len(record.job_ids) >= max_jobs:
                    break
                if owner is None:
                    record.job_ids.append(job_id)
            for job_id in record.job_ids:
                self._pending[job_id] = record.claim_id
            if record.job_ids:
                self._claims[record.claim_id] = record
            _logger.debug(
                "store.claim_staked",
                claim_id=record.claim_id,
                jobs=len(record.job_ids),
            )
            return Claim(claim_id=record.claim_id, job_ids=tuple(record.job_ids))

    def find_jobs_by_claim_id(self, claim_id: ClaimId) -> set[JobId]:
        with self._lock:
            record = self._claims.get(claim_id)  # type: ignore[arg-type]
            return set(record.job_ids) if record else set()

    # ─── Claim lifecycle ────────────────────────────────────────────

    def release_claim(self, claim_id: ClaimId) -> None:
        """Drop a claim; its unfinished jobs become pending again."""
        with self._lock:
            record = self._claims.pop(claim_id, None)  # type: ignore[arg-type]
            if record is None:
                return
            for job_id in record.job_ids:
                if self._pending.get(job_id) == record.claim_id:
                    self._pending[job_id] = None
            _logger.debug("store.claim_released", claim_id=claim_id)

    def release_stale_claims(self, older_than: float) -> int:
        """Release claims staked more than ``older_than`` seconds ago.

        Returns:
            Number of claims released.
        """
        with self._lock:
            cutoff = self._clock() - older_than
            stale = [cid for cid, rec in self._claims.items() if rec.staked_at <= cutoff]
            for claim_id in stale:
                self.release_claim(claim_id)
            return len(stale)

    def mark_complete(self, job_id: JobId) -> None:
        with self._lock:
            self._finish(job_id)
            self.completed.append(job_id)

    def mark_failure(self, job_id: JobId, error: BaseException | str) -> None:
        with self._lock:
            self._finish(job_id)
            self.failed[job_id] = str(error)

    def _finish(self, job_id: JobId) -> None:
        claim_id = self._pending.pop(job_id, None)
        if claim_id is None:
            return
        record = self._claims.get(claim_id)
        if record is not None and job_id in record.job_ids:
            record.job_ids.remove(job_id)
            if not record.job_ids:
                del self._claims[claim_id]


class InMemoryQueueCleaner:
    """Cleaner that releases claims older than ``timeout`` seconds."""

    def __init__(self, store: InMemoryClaimStore, timeout: float) -> None:
        self.store = store
        self.timeout = timeout

    def clean(self) -> None:
        released = self.store.release_stale_claims(self.timeout)
        if released:
            _logger.info("store.stale_claims_released", count=released)


__all__ = ["InMemoryClaimStore", "InMemoryQueueCleaner"]
