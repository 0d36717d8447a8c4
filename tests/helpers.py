"""Shared test helpers for claimrunner tests."""

from __future__ import annotations

from claimrunner.interfaces import JobId


class RecordingListener:
    """JobListener that records every signal it receives."""

    def __init__(self) -> None:
        self.events: list[tuple[str, JobId]] = []
        self.errors: dict[JobId, BaseException] = {}

    def on_start(self, job_id: JobId) -> None:
        self.events.append(("start", job_id))

    def on_complete(self, job_id: JobId) -> None:
        self.events.append(("complete", job_id))

    def on_fail(self, job_id: JobId, error: BaseException) -> None:
        self.events.append(("fail", job_id))
        self.errors[job_id] = error

    def of_kind(self, kind: str) -> list[JobId]:
        return [job_id for k, job_id in self.events if k == kind]


def failing_on(*job_ids: JobId, record: list[JobId] | None = None):
    """Build a handler that raises RuntimeError for the given job ids."""
    bad = set(job_ids)

    def handler(job_id: JobId) -> None:
        if record is not None:
            record.append(job_id)
        if job_id in bad:
            raise RuntimeError(f"job {job_id} exploded")

    return handler
