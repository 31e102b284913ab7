"""In-memory stores.

Same contracts as the filesystem stores, without touching disk. Used by the
test suites and by callers that want a single-process, throwaway state.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable

from mergegate_store.base import BlockedCommandLog, CacheStore, LockStore
from mergegate_store.models import PASS, BlockedCommandLogEntry, CacheEntry, MergeLock


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MemoryCacheStore(CacheStore):
    def __init__(self, ttl: timedelta = timedelta(days=30), clock: Callable[[], datetime] = _utcnow):
        self._ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def get(self, fingerprint: str) -> CacheEntry | None:
        entry = self._entries.get(fingerprint)
        if entry is None:
            return None
        if self._clock() - entry.written_at > self._ttl:
            del self._entries[fingerprint]
            return None
        return entry

    def put(self, fingerprint: str, outcome: str) -> None:
        if outcome != PASS:
            raise ValueError(f"Only {PASS} verdicts are cached, got {outcome!r}")
        self._entries[fingerprint] = CacheEntry(fingerprint=fingerprint, outcome=outcome, written_at=self._clock())

    def sweep(self) -> int:
        now = self._clock()
        stale = [k for k, e in self._entries.items() if now - e.written_at > self._ttl]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def __len__(self) -> int:
        return len(self._entries)


class MemoryLockStore(LockStore):
    def __init__(self):
        self._locks: dict[int, MergeLock] = {}

    def read(self, pr_number: int) -> MergeLock | None:
        return self._locks.get(pr_number)

    def write(self, lock: MergeLock) -> None:
        self._locks[lock.pr_number] = lock

    def delete(self, pr_number: int) -> bool:
        return self._locks.pop(pr_number, None) is not None

    def list_locks(self) -> list[MergeLock]:
        return [self._locks[k] for k in sorted(self._locks)]


class MemoryBlockedCommandLog(BlockedCommandLog):
    def __init__(self):
        self._entries: list[BlockedCommandLogEntry] = []

    def append(self, entry: BlockedCommandLogEntry) -> None:
        self._entries.append(entry)

    def entries(self) -> list[BlockedCommandLogEntry]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()
