"""Claim-based batch runner.

``BatchRunner`` drains one claimed batch from a shared queue:

1. ``setup()`` runs the cleaner, registers the runner as a listener on the
   executor, checks the concurrency ceiling and stakes a claim for up to
   ``batch_size`` jobs.
2. ``run()`` executes the batch in order. Before each job the claim's
   membership is re-read from the store; if the job is no longer covered
   the claim was lost (expired or taken over by another runner) and the
   batch stops at once, returning how many jobs were processed.

Job failures are contained per job. Only a lost claim, or a failure while
``halt_on_job_failure`` is set, ends a batch early. Those conditions come
back on ``SetupResult`` / ``RunResult``; errors raised by the cleaner or the
store propagate unchanged.

Example::

    runner = BatchRunner(store, executor, cleaner=cleaner)
    setup = runner.setup(batch_size=25)
    if setup.ok and setup.staked:
        result = runner.run()
        print(result.processed)
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from claimrunner.core.config import RunnerConfig
from claimrunner.core.errors import (
    AdmissionBlockedError,
    ClaimLostError,
    JobFailedError,
    RunnerStateError,
)
from claimrunner.core.logging import RunContext, get_logger, with_context
from claimrunner.execution.guard import AdmissionDecision, ConcurrencyGuard
from claimrunner.execution.memory import MemoryReleaser
from claimrunner.execution.monitor import NullFailureMonitor
from claimrunner.execution.progress import NullProgressReporter
from claimrunner.interfaces import (
    AmbientCache,
    Claim,
    ClaimStore,
    FailureMonitor,
    JobExecutor,
    JobId,
    JobListener,
    ProgressReporter,
    QueueCleaner,
)

_logger = get_logger("runner")


@dataclass(frozen=True)
class SetupResult:
    """Outcome of ``BatchRunner.setup``.

    Attributes:
        staked: Number of jobs in the staked batch (0 when blocked or idle).
        admission: The concurrency guard's decision.
        claim: The staked claim, or None when admission was blocked.
        error: Set when admission was blocked.
    """

    staked: int
    admission: AdmissionDecision
    claim: Claim | None = None
    error: AdmissionBlockedError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def warning(self) -> str | None:
        return self.admission.warning


@dataclass(frozen=True)
class RunResult:
    """Outcome of ``BatchRunner.run``.

    Attributes:
        processed: Jobs executed under the claim, failed ones included.
        total: Size of the staked batch.
        failures: Failed jobs and their errors, in execution order.
        error: ClaimLostError or JobFailedError when the batch ended early.
    """

    processed: int
    total: int
    failures: tuple[tuple[JobId, BaseException], ...] = ()
    error: ClaimLostError | JobFailedError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def claim_lost(self) -> bool:
        return isinstance(self.error, ClaimLostError)

    @property
    def failed(self) -> int:
        return len(self.failures)


@dataclass
class _RunState:
    claim: Claim
    batch: tuple[JobId, ...]
    processed: int = 0
    failures: list[tuple[JobId, BaseException]] = field(default_factory=list)
    current_job: JobId | None = None
    current_failure: BaseException | None = None


class BatchRunner:
    """Drains one claimed batch per setup/run cycle.

    The runner is itself a ``JobListener``. It registers on the executor in
    ``setup`` and deregisters when the batch is over. While registered it
    acts only on signals for the job it is executing, so several runners
    can share an executor without receiving each other's signals.

    Args:
        store: Queue handing out claims.
        executor: Runs individual jobs and emits lifecycle signals.
        cleaner: Run before each batch is staked. Optional.
        monitor: Attached to each staked claim. Optional.
        progress: Progress display. Defaults to a silent reporter.
        caches: Ambient caches cleared by ``release_memory``.
        observers: Listeners that receive the runner's forwarded job signals
            while a batch is in progress (e.g. console output).
        config: Runner settings. Defaults to ``RunnerConfig()``.
        releaser: Memory releaser; built from ``caches`` and ``config`` if
            not given.
    """

    def __init__(
        self,
        store: ClaimStore,
        executor: JobExecutor,
        *,
        cleaner: QueueCleaner | None = None,
        monitor: FailureMonitor | None = None,
        progress: ProgressReporter | None = None,
        caches: Iterable[AmbientCache] = (),
        observers: Sequence[JobListener] = (),
        config: RunnerConfig | None = None,
        releaser: MemoryReleaser | None = None,
    ) -> None:
        self.config = config or RunnerConfig()
        self.store = store
        self.executor = executor
        self.cleaner = cleaner
        self.monitor: FailureMonitor = monitor or NullFailureMonitor()
        self.progress: ProgressReporter = progress or NullProgressReporter()
        self.observers = list(observers)
        self.guard = ConcurrencyGuard(self.config.concurrent_batches)
        self.releaser = releaser or MemoryReleaser(
            caches, collect_garbage=self.config.collect_garbage
        )
        self._state: _RunState | None = None
        self._running: _RunState | None = None
        self._registered = False
        self._context = RunContext()

    # ─── Setup ──────────────────────────────────────────────────────

    def setup(self, batch_size: int | None = None, force: bool = False) -> SetupResult:
        """Stake a claim for up to ``batch_size`` jobs.

        Returns:
            SetupResult with the staked count. A blocked admission carries an
            AdmissionBlockedError and stakes nothing. An empty batch is a
            normal outcome; the caller should skip ``run``.

        Raises:
            ValueError: If batch_size is not a positive integer.
            RunnerStateError: If a staked batch has not been run yet.
        """
        size = self.config.batch_size if batch_size is None else batch_size
        if isinstance(size, bool) or not isinstance(size, int) or size < 1:
            raise ValueError(f"batch_size must be a positive integer, got {size!r}")
        if self._state is not None and self._state.batch:
            raise RunnerStateError("setup() called again before the staked batch was run")

        self._state = None
        self._context = RunContext()

        with with_context(self._context):
            if self.cleaner is not None:
                self.cleaner.clean()

            self._register()
            try:
                outstanding = self.store.get_claim_count()
                decision = self.guard.admit(outstanding, force)
                if not decision.allowed:
                    self._teardown()
                    _logger.error(
                        "runner.admission_blocked",
                        outstanding=outstanding,
                        ceiling=decision.ceiling,
                    )
                    error = AdmissionBlockedError(outstanding, decision.ceiling)
                    return SetupResult(staked=0, admission=decision, error=error)

                claim = self.store.stake_claim(size)
                self.monitor.attach(claim)
            except BaseException:
                self._teardown()
                raise

        state = _RunState(claim=claim, batch=tuple(claim.job_ids))
        self._state = state
        self._context = self._context.with_claim(claim.claim_id)

        with with_context(self._context):
            _logger.info(
                "runner.batch_staked",
                requested=size,
                staked=len(state.batch),
                outstanding=outstanding,
                forced=decision.forced,
            )

        if not state.batch:
            self._teardown()

        return SetupResult(staked=len(state.batch), admission=decision, claim=claim)

    # ─── Run ────────────────────────────────────────────────────────

    def run(self) -> RunResult:
        """Execute the staked batch.

        Returns:
            RunResult with the number of processed jobs. When the claim is
            lost the result carries a ClaimLostError and ``processed`` counts
            only the jobs run before the loss.

        Raises:
            RunnerStateError: If no batch was staked by a successful setup().
        """
        state = self._state
        if state is None:
            raise RunnerStateError("run() called without a staked batch; call setup() first")
        self._state = None

        total = len(state.batch)
        error: ClaimLostError | JobFailedError | None = None
        noun = "task" if total == 1 else "tasks"
        self.progress.start(total, f"Running {total} {noun}")
        self._running = state
        try:
            with with_context(self._context):
                self._register()
                error = self._run_batch(state)
        finally:
            self._running = None
            self.progress.finish()
            self._teardown()

        with with_context(self._context):
            _logger.info(
                "runner.batch_finished",
                processed=state.processed,
                total=total,
                failed=len(state.failures),
                stopped_early=error is not None,
            )

        return RunResult(
            processed=state.processed,
            total=total,
            failures=tuple(state.failures),
            error=error,
        )

    def _run_batch(self, state: _RunState) -> ClaimLostError | JobFailedError | None:
        claim_id = state.claim.claim_id
        interval = self.config.memory_release_interval

        for job_id in state.batch:
            # Re-read membership on every job: the claim can expire or be
            # reclaimed while earlier jobs run.
            covered = self.store.find_jobs_by_claim_id(claim_id)
            if job_id not in covered:
                _logger.error(
                    "runner.claim_lost",
                    job_id=job_id,
                    processed=state.processed,
                )
                return ClaimLostError(claim_id, job_id, state.processed)

            state.current_job = job_id
            state.current_failure = None
            try:
                with with_context(self._context.with_job(job_id)):
                    self._execute(state, job_id)
            finally:
                state.current_job = None

            state.processed += 1
            self.progress.tick()

            if state.processed % interval == 0:
                self.release_memory()

            if state.current_failure is not None and self.config.halt_on_job_failure:
                _logger.error("runner.halted_on_failure", job_id=job_id)
                return JobFailedError(job_id, state.current_failure)

        return None

    def _execute(self, state: _RunState, job_id: JobId) -> None:
        try:
            self.executor.execute(job_id)
        except Exception as e:
            # Executors report failures via on_fail; one that raises instead
            # still only fails this job, and is reported at most once.
            _logger.exception("runner.executor_raised", job_id=job_id)
            if state.current_failure is None:
                self.on_fail(job_id, e)

    # ─── Memory ─────────────────────────────────────────────────────

    def release_memory(self, sleep_seconds: float = 0) -> None:
        """Clear ambient caches, optionally sleeping first."""
        self.releaser.release(sleep_seconds)

    # ─── JobListener ────────────────────────────────────────────────

    # An executor shared between runners delivers every runner's signals to
    # every registered listener; only the job this runner is executing counts.

    def on_start(self, job_id: JobId) -> None:
        if self._current_state(job_id) is None:
            return
        _logger.info("runner.job_started", job_id=job_id)
        for observer in self.observers:
            observer.on_start(job_id)

    def on_complete(self, job_id: JobId) -> None:
        if self._current_state(job_id) is None:
            return
        _logger.info("runner.job_completed", job_id=job_id)
        for observer in self.observers:
            observer.on_complete(job_id)

    def on_fail(self, job_id: JobId, error: BaseException) -> None:
        state = self._current_state(job_id)
        if state is None:
            return
        _logger.error("runner.job_failed", job_id=job_id, error=str(error))
        state.failures.append((job_id, error))
        state.current_failure = error
        for observer in self.observers:
            observer.on_fail(job_id, error)

    def _current_state(self, job_id: JobId) -> _RunState | None:
        """Run state if ``job_id`` is the job this runner is executing."""
        state = self._running
        if state is None or state.current_job != job_id:
            return None
        return state

    # ─── Internals ──────────────────────────────────────────────────

    def _register(self) -> None:
        if not self._registered:
            self.executor.add_listener(self)
            self._registered = True

    def _teardown(self) -> None:
        if self._registered:
            self.executor.remove_listener(self)
            self._registered = False
        self.monitor.detach()


__all__ = ["BatchRunner", "RunResult", "SetupResult"]
