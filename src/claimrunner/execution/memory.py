"""Periodic release of process-wide ambient memory.

Long-lived runner processes accumulate query logs and cache buffers as a
side effect of executing many jobs. ``MemoryReleaser`` clears the caches it
was given; it has no effect on job execution and is a no-op when no caches
are injected and garbage collection is disabled.
"""

from __future__ import annotations

import gc
import time
from collections import deque
from collections.abc import Callable, Iterable
from typing import Any

from claimrunner.core.logging import get_logger
from claimrunner.interfaces import AmbientCache, RemoteFlushable

_logger = get_logger("memory")


class MemoryReleaser:
    """Clears injected ambient caches on demand.

    Args:
        caches: Ambient caches to clear, in order.
        sleep: Sleep function, replaceable in tests.
        collect_garbage: Run ``gc.collect()`` after clearing.
    """

    def __init__(
        self,
        caches: Iterable[AmbientCache] = (),
        *,
        sleep: Callable[[float], None] = time.sleep,
        collect_garbage: bool = True,
    ) -> None:
        self._caches = list(caches)
        self._sleep = sleep
        self._collect_garbage = collect_garbage
        self.release_count = 0

    @property
    def caches(self) -> list[AmbientCache]:
        return list(self._caches)

    def release(self, sleep_seconds: float = 0) -> None:
        """Sleep (when asked), then clear and flush every cache."""
        if sleep_seconds > 0:
            _logger.warning("memory.sleeping", seconds=sleep_seconds)
            self._sleep(sleep_seconds)

        _logger.info("memory.releasing", caches=len(self._caches))

        for cache in self._caches:
            cache.clear()
            if isinstance(cache, RemoteFlushable):
                cache.flush_remote()

        collected = gc.collect() if self._collect_garbage else 0
        self.release_count += 1
        _logger.debug("memory.released", collected=collected)


class QueryLog:
    """Bounded history of queries issued by shared infrastructure.

    Mirrors a database layer that records every statement for debugging;
    only the most recent ``maxlen`` entries are kept between releases.
    """

    def __init__(self, maxlen: int | None = 10_000) -> None:
        self._entries: deque[str] = deque(maxlen=maxlen)

    def record(self, query: str) -> None:
        self._entries.append(query)

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()


class ObjectCache:
    """In-process object cache with grouped entries and bookkeeping buffers.

    ``clear()`` drops the cached entries together with the group operation
    log, hit/miss stats and debug trail.
    """

    def __init__(self) -> None:
        self.entries: dict[tuple[str, str], Any] = {}
        self.group_ops: dict[str, list[str]] = {}
        self.stats: dict[str, int] = {"hits": 0, "misses": 0}
        self.debug: list[str] = []
        self._unflushed: dict[tuple[str, str], Any] = {}

    def get(self, key: str, group: str = "default") -> Any:
        try:
            value = self.entries[(group, key)]
        except KeyError:
            self.stats["misses"] += 1
            return None
        self.stats["hits"] += 1
        return value

    def set(self, key: str, value: Any, group: str = "default") -> None:
        self.entries[(group, key)] = value
        self._unflushed[(group, key)] = value
        self.group_ops.setdefault(group, []).append(f"set {key}")
        self.debug.append(f"set {group}:{key}")

    def clear(self) -> None:
        self.entries.clear()
        self.group_ops.clear()
        self.stats = {"hits": 0, "misses": 0}
        self.debug.clear()


class RemoteObjectCache(ObjectCache):
    """ObjectCache with a remote tier.

    ``flush_remote()`` hands the entries written since the previous flush to
    ``remote_flush``; clearing the local buffers does not discard them.
    """

    def __init__(self, remote_flush: Callable[[dict[tuple[str, str], Any]], None]) -> None:
        super().__init__()
        self._remote_flush = remote_flush

    def flush_remote(self) -> None:
        pending, self._unflushed = self._unflushed, {}
        self._remote_flush(pending)


__all__ = ["MemoryReleaser", "ObjectCache", "QueryLog", "RemoteObjectCache"]
