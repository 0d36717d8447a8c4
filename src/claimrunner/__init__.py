"""claimrunner - claim-based batch job runner.

Leases a bounded batch of pending jobs from a shared queue, executes each
one under the claim, and stops as soon as the claim is lost.
"""

from claimrunner.core.errors import (
    AdmissionBlockedError,
    ClaimLostError,
    JobFailedError,
    RunnerError,
)
from claimrunner.execution.runner import BatchRunner, RunResult, SetupResult

__version__ = "0.3.0"

__all__ = [
    "AdmissionBlockedError",
    "BatchRunner",
    "ClaimLostError",
    "JobFailedError",
    "RunResult",
    "RunnerError",
    "SetupResult",
    "__version__",
]
