"""Exception hierarchy for claimrunner.

All runner-specific exceptions inherit from RunnerError so callers can
catch broadly or narrowly. The terminal run conditions (admission blocked,
claim lost, job failed under the halt policy) are carried on SetupResult and
RunResult rather than raised; the CLI decides whether they end the process.
Failures raised by the cleaner or the claim store are never wrapped.
"""

from __future__ import annotations


class RunnerError(Exception):
    """Base exception for all runner errors."""


class AdmissionBlockedError(RunnerError):
    """Too many outstanding claims to start another batch."""

    def __init__(self, outstanding: int, ceiling: int) -> None:
        self.outstanding = outstanding
        self.ceiling = ceiling
        super().__init__(
            f"There are too many concurrent batches ({outstanding} outstanding, limit {ceiling})."
        )


class ClaimLostError(RunnerError):
    """The claim no longer covers the next job in the batch."""

    def __init__(self, claim_id: str | int, job_id: str | int, processed: int) -> None:
        self.claim_id = claim_id
        self.job_id = job_id
        self.processed = processed
        super().__init__(f"The claim {claim_id} has been lost. Aborting.")


class JobFailedError(RunnerError):
    """A job failed while the halt-on-job-failure policy was enabled."""

    def __init__(self, job_id: str | int, cause: BaseException) -> None:
        self.job_id = job_id
        self.cause = cause
        super().__init__(f"Error processing job {job_id}: {cause}")


class RunnerStateError(RunnerError):
    """A runner method was called out of order (e.g. run() before setup())."""


class ConfigError(RunnerError):
    """Runner configuration could not be loaded or validated."""


class HandlerImportError(RunnerError):
    """A ``module:function`` job handler reference could not be resolved."""


__all__ = [
    "AdmissionBlockedError",
    "ClaimLostError",
    "ConfigError",
    "HandlerImportError",
    "JobFailedError",
    "RunnerError",
    "RunnerStateError",
]
