"""
Per-source exclusion gate.

Guarantees at most one in-flight fetch-and-ingest pass per source name,
even when two triggers (scheduled and manual) race on the same source.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Hashable

import structlog

logger = structlog.get_logger(__name__)


class _LockEntry:
    __slots__ = ("lock", "refs")

    def __init__(self):
        self.lock = asyncio.Lock()
        self.refs = 0


class KeyedLock:
    """
    Reference-counted registry of asyncio locks keyed by name.

    An entry is created on first use and dropped only when the last
    holder or waiter has released it, so every concurrent caller for the
    same key blocks on the same lock object.
    """

    def __init__(self):
        self._entries: dict[Hashable, _LockEntry] = {}

    @asynccontextmanager
    async def acquire(self, key: Hashable) -> AsyncIterator[None]:
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = _LockEntry()
        # Counted before awaiting so a waiter keeps the entry alive
        entry.refs += 1

        try:
            if entry.lock.locked():
                logger.debug("Waiting for source lock", key=key, waiters=entry.refs - 1)
            async with entry.lock:
                yield
        finally:
            entry.refs -= 1
            if entry.refs == 0 and self._entries.get(key) is entry:
                del self._entries[key]

    def is_locked(self, key: Hashable) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.lock.locked()

    def waiters(self, key: Hashable) -> int:
        """Number of callers queued behind the current holder."""
        entry = self._entries.get(key)
        if entry is None:
            return 0
        return max(entry.refs - (1 if entry.lock.locked() else 0), 0)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
