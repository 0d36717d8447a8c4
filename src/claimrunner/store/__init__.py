"""Claim store implementations."""

from claimrunner.store.memory import InMemoryClaimStore, InMemoryQueueCleaner

__all__ = ["InMemoryClaimStore", "InMemoryQueueCleaner"]
