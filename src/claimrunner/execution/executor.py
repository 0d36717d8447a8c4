"""Reference job executor with explicit listener fan-out.

``ListenerRegistry`` holds the listeners registered by runners and fans each
lifecycle signal out to them synchronously, in registration order.
``CallableExecutor`` runs a plain ``handler(job_id)`` callable and turns any
exception it raises into a job-failed signal.
"""

from __future__ import annotations

from collections.abc import Callable

from claimrunner.core.logging import get_logger
from claimrunner.interfaces import JobId, JobListener

_logger = get_logger("executor")

JobHandler = Callable[[JobId], object]
OutcomeHook = Callable[[JobId], None]
FailureHook = Callable[[JobId, BaseException], None]


class ListenerRegistry:
    """Ordered set of JobListeners."""

    def __init__(self) -> None:
        self._listeners: list[JobListener] = []

    @property
    def listeners(self) -> list[JobListener]:
        return list(self._listeners)

    def add_listener(self, listener: JobListener) -> None:
        """Register ``listener``; registering twice has no effect."""
        if not any(existing is listener for existing in self._listeners):
            self._listeners.append(listener)

    def remove_listener(self, listener: JobListener) -> None:
        """Deregister ``listener``; unknown listeners are ignored."""
        self._listeners = [
            registered for registered in self._listeners if registered is not listener
        ]

    def notify_start(self, job_id: JobId) -> None:
        for listener in self.listeners:
            listener.on_start(job_id)

    def notify_complete(self, job_id: JobId) -> None:
        for listener in self.listeners:
            listener.on_complete(job_id)

    def notify_fail(self, job_id: JobId, error: BaseException) -> None:
        for listener in self.listeners:
            listener.on_fail(job_id, error)


class CallableExecutor(ListenerRegistry):
    """Executes jobs by calling ``handler(job_id)``.

    A handler exception is reported once through ``on_fail`` and never
    escapes ``execute``. ``on_success`` / ``on_failure`` let the owner of
    the queue record the outcome (e.g. mark the job complete or failed in
    the store) before listeners are told.

    Args:
        handler: Callable performing the job's work.
        on_success: Called with the job id after the handler returns.
        on_failure: Called with the job id and exception after a failure.
    """

    def __init__(
        self,
        handler: JobHandler,
        *,
        on_success: OutcomeHook | None = None,
        on_failure: FailureHook | None = None,
    ) -> None:
        super().__init__()
        self._handler = handler
        self._on_success = on_success
        self._on_failure = on_failure

    def execute(self, job_id: JobId) -> None:
        self.notify_start(job_id)
        try:
            self._handler(job_id)
        except Exception as e:
            _logger.debug("executor.handler_raised", job_id=job_id, error=str(e))
            if self._on_failure is not None:
                self._on_failure(job_id, e)
            self.notify_fail(job_id, e)
            return

        if self._on_success is not None:
            self._on_success(job_id)
        self.notify_complete(job_id)


__all__ = ["CallableExecutor", "JobHandler", "ListenerRegistry"]
