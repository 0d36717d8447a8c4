"""Shared utilities for claimrunner."""

from claimrunner.utils.time import utc_now

__all__ = ["utc_now"]
