"""Pytest fixtures for claimrunner tests."""

from __future__ import annotations

import logging
from collections.abc import Generator

import pytest
import structlog
from helpers import RecordingListener

from claimrunner.execution.executor import CallableExecutor
from claimrunner.interfaces import JobId
from claimrunner.store.memory import InMemoryClaimStore


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None, None, None]:
    """Reset structlog, root handlers and CLI globals around each test."""
    from claimrunner.cli import helpers

    helpers.reset_cli_state()
    structlog.reset_defaults()

    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    original_level = root_logger.level
    for handler in original_handlers:
        root_logger.removeHandler(handler)

    yield

    helpers.reset_cli_state()
    structlog.reset_defaults()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in original_handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(original_level)


@pytest.fixture
def listener() -> RecordingListener:
    return RecordingListener()


@pytest.fixture
def store() -> InMemoryClaimStore:
    """Store with ten pending jobs, ids 1..10."""
    return InMemoryClaimStore(range(1, 11))


@pytest.fixture
def executed() -> list[JobId]:
    """Job ids in the order the default executor ran them."""
    return []


@pytest.fixture
def executor(executed: list[JobId]) -> CallableExecutor:
    """Executor whose handler only records the job id."""
    return CallableExecutor(executed.append)
