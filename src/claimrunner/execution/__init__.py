"""Batch execution: admission, the runner loop, progress and memory release."""

from claimrunner.execution.executor import CallableExecutor, ListenerRegistry
from claimrunner.execution.guard import Admission, AdmissionDecision, ConcurrencyGuard, admit
from claimrunner.execution.memory import MemoryReleaser, ObjectCache, QueryLog, RemoteObjectCache
from claimrunner.execution.monitor import FatalErrorMonitor, NullFailureMonitor
from claimrunner.execution.progress import CountingProgressReporter, NullProgressReporter
from claimrunner.execution.runner import BatchRunner, RunResult, SetupResult

__all__ = [
    "Admission",
    "AdmissionDecision",
    "BatchRunner",
    "CallableExecutor",
    "ConcurrencyGuard",
    "CountingProgressReporter",
    "FatalErrorMonitor",
    "ListenerRegistry",
    "MemoryReleaser",
    "NullFailureMonitor",
    "NullProgressReporter",
    "ObjectCache",
    "QueryLog",
    "RemoteObjectCache",
    "RunResult",
    "SetupResult",
    "admit",
]
