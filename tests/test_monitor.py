"""Tests for claimrunner.execution.monitor."""

from __future__ import annotations

import atexit
import os
import subprocess
import sys
import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest

from claimrunner.execution.executor import CallableExecutor
from claimrunner.execution.monitor import FatalErrorMonitor, NullFailureMonitor
from claimrunner.execution.runner import BatchRunner
from claimrunner.interfaces import Claim, ClaimId, FailureMonitor, JobId
from claimrunner.store.memory import InMemoryClaimStore

SRC_DIR = Path(__file__).resolve().parents[1] / "src"


@pytest.fixture
def exit_hooks(monkeypatch) -> list[Callable[[], None]]:
    """Capture atexit registrations instead of touching the real registry."""
    hooks: list[Callable[[], None]] = []
    monkeypatch.setattr(atexit, "register", hooks.append)
    monkeypatch.setattr(atexit, "unregister", lambda fn: hooks.remove(fn) if fn in hooks else None)
    return hooks


@pytest.fixture
def fatal() -> list[tuple[JobId, ClaimId]]:
    return []


@pytest.fixture
def monitor(fatal: list[tuple[JobId, ClaimId]]) -> FatalErrorMonitor:
    return FatalErrorMonitor(on_fatal=lambda job_id, claim_id: fatal.append((job_id, claim_id)))


class TestFatalErrorMonitor:
    def test_satisfies_protocol(self, monitor: FatalErrorMonitor) -> None:
        assert isinstance(monitor, FailureMonitor)
        assert isinstance(NullFailureMonitor(), FailureMonitor)

    def test_attach_registers_exit_hook(
        self, monitor: FatalErrorMonitor, exit_hooks: list[Callable[[], None]]
    ) -> None:
        claim = Claim(claim_id=9, job_ids=(1, 2))
        monitor.attach(claim)

        assert monitor.claim == claim
        assert exit_hooks == [monitor.handle_unexpected_shutdown]

        monitor.detach()
        assert exit_hooks == []
        assert monitor.claim is None

    def test_reattach_does_not_stack_hooks(
        self, monitor: FatalErrorMonitor, exit_hooks: list[Callable[[], None]]
    ) -> None:
        monitor.attach(Claim(claim_id=1))
        monitor.attach(Claim(claim_id=2))
        assert len(exit_hooks) == 1

    def test_detach_without_attach(
        self, monitor: FatalErrorMonitor, exit_hooks: list[Callable[[], None]]
    ) -> None:
        monitor.detach()
        assert exit_hooks == []

    def test_reports_in_flight_job_at_shutdown(
        self,
        monitor: FatalErrorMonitor,
        fatal: list[tuple[JobId, ClaimId]],
        exit_hooks: list[Callable[[], None]],
    ) -> None:
        monitor.attach(Claim(claim_id="c-1", job_ids=("a", "b")))
        monitor.on_start("a")
        monitor.on_complete("a")
        monitor.on_start("b")
        assert monitor.in_flight == "b"

        exit_hooks[0]()
        monitor.handle_unexpected_shutdown()

        assert fatal == [("b", "c-1")]
        assert monitor.in_flight is None

    def test_nothing_in_flight_reports_nothing(
        self,
        monitor: FatalErrorMonitor,
        fatal: list[tuple[JobId, ClaimId]],
        exit_hooks: list[Callable[[], None]],
    ) -> None:
        monitor.attach(Claim(claim_id=1, job_ids=(1,)))
        monitor.on_start(1)
        monitor.on_fail(1, RuntimeError("boom"))

        monitor.handle_unexpected_shutdown()

        assert fatal == []

    def test_detached_monitor_ignores_shutdown(
        self,
        monitor: FatalErrorMonitor,
        fatal: list[tuple[JobId, ClaimId]],
    ) -> None:
        monitor.on_start(5)
        monitor.handle_unexpected_shutdown()
        assert fatal == []

    def test_detach_reports_job_left_in_flight(
        self,
        monitor: FatalErrorMonitor,
        fatal: list[tuple[JobId, ClaimId]],
        exit_hooks: list[Callable[[], None]],
    ) -> None:
        monitor.attach(Claim(claim_id=4, job_ids=(10, 11)))
        monitor.on_start(10)

        monitor.detach()

        assert fatal == [(10, 4)]
        assert exit_hooks == []

    def test_ignores_jobs_outside_claim(
        self,
        monitor: FatalErrorMonitor,
        fatal: list[tuple[JobId, ClaimId]],
        exit_hooks: list[Callable[[], None]],
    ) -> None:
        monitor.attach(Claim(claim_id=1, job_ids=(1, 2)))
        monitor.on_start(1)
        monitor.on_start(7)
        monitor.on_complete(7)

        assert monitor.in_flight == 1


class TestFatalErrorMonitorWithRunner:
    """The monitor attributes an exit raised inside a job to that job."""

    def test_system_exit_in_handler_fails_job(self) -> None:
        store = InMemoryClaimStore([1, 2])

        def handler(job_id: JobId) -> None:
            raise SystemExit(3)

        executor = CallableExecutor(handler, on_failure=store.mark_failure)
        monitor = FatalErrorMonitor(
            on_fatal=lambda job_id, _claim_id: store.mark_failure(job_id, "fatal exit")
        )
        executor.add_listener(monitor)
        runner = BatchRunner(store, executor, monitor=monitor)
        runner.setup(batch_size=2)

        with pytest.raises(SystemExit):
            runner.run()

        assert store.failed == {1: "fatal exit"}
        assert monitor.claim is None

    def test_process_exit_reports_in_flight_job(self, tmp_path: Path) -> None:
        script = tmp_path / "exit_in_job.py"
        script.write_text(
            textwrap.dedent(
                """
                from claimrunner.execution.executor import CallableExecutor
                from claimrunner.execution.monitor import FatalErrorMonitor
                from claimrunner.execution.runner import BatchRunner
                from claimrunner.store.memory import InMemoryClaimStore

                def handler(job_id):
                    raise SystemExit(3)

                store = InMemoryClaimStore([1, 2])
                executor = CallableExecutor(handler)
                monitor = FatalErrorMonitor(
                    on_fatal=lambda job_id, claim_id: print(
                        f"FATAL job={job_id} claim={claim_id}", flush=True
                    )
                )
                executor.add_listener(monitor)
                runner = BatchRunner(store, executor, monitor=monitor)
                runner.setup(batch_size=2)
                runner.run()
                """
            )
        )
        pythonpath = [str(SRC_DIR), os.environ.get("PYTHONPATH", "")]
        env = {**os.environ, "PYTHONPATH": os.pathsep.join(p for p in pythonpath if p)}

        proc = subprocess.run(
            [sys.executable, str(script)],
            capture_output=True,
            text=True,
            env=env,
            timeout=60,
        )

        assert proc.returncode == 3
        assert proc.stdout.count("FATAL job=1 claim=1") == 1
