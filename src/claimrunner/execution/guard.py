"""Concurrency guard for batch admission.

Decides whether another batch may be staked given how many claims are
already outstanding across all runners. The check is one-shot: no retries,
no backoff, and it is re-evaluated on every ``BatchRunner.setup`` call.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from claimrunner.core.constants import DEFAULT_CONCURRENT_BATCHES
from claimrunner.core.logging import get_logger

_logger = get_logger("guard")

FORCED_WARNING = "There are too many concurrent batches, but the run is forced to continue."


class Admission(Enum):
    """Verdict of an admission check."""

    PROCEED = "proceed"
    BLOCK = "block"


@dataclass(frozen=True)
class AdmissionDecision:
    """Outcome of ``admit``.

    Attributes:
        verdict: Whether the batch may be staked.
        outstanding: Outstanding claim count the decision was based on.
        ceiling: Configured concurrency ceiling.
        warning: Set when the ceiling was reached but ``force`` overrode it.
    """

    verdict: Admission
    outstanding: int
    ceiling: int
    warning: str | None = None

    @property
    def allowed(self) -> bool:
        return self.verdict is Admission.PROCEED

    @property
    def forced(self) -> bool:
        return self.warning is not None


def admit(outstanding: int, ceiling: int, force: bool = False) -> AdmissionDecision:
    """Decide whether a new batch may start.

    Args:
        outstanding: Claims currently outstanding across all runners.
        ceiling: Maximum number of concurrent batches.
        force: Proceed even when the ceiling is reached.

    Returns:
        PROCEED below the ceiling; at or above it BLOCK, or PROCEED with a
        warning when forced.
    """
    if outstanding < ceiling:
        return AdmissionDecision(Admission.PROCEED, outstanding, ceiling)

    if force:
        _logger.warning(
            "guard.batch_forced",
            outstanding=outstanding,
            ceiling=ceiling,
        )
        return AdmissionDecision(
            Admission.PROCEED, outstanding, ceiling, warning=FORCED_WARNING
        )

    _logger.warning(
        "guard.batch_blocked",
        outstanding=outstanding,
        ceiling=ceiling,
    )
    return AdmissionDecision(Admission.BLOCK, outstanding, ceiling)


class ConcurrencyGuard:
    """Admission check bound to a fixed ceiling."""

    def __init__(self, ceiling: int = DEFAULT_CONCURRENT_BATCHES) -> None:
        if ceiling < 1:
            raise ValueError(f"ceiling must be at least 1, got {ceiling}")
        self.ceiling = ceiling

    def admit(self, outstanding: int, force: bool = False) -> AdmissionDecision:
        return admit(outstanding, self.ceiling, force)


__all__ = [
    "Admission",
    "AdmissionDecision",
    "ConcurrencyGuard",
    "FORCED_WARNING",
    "admit",
]
