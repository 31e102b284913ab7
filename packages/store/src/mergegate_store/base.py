"""Abstract store interfaces.

The engine's only shared mutable state lives behind these three interfaces:
the verdict cache, the merge-lock store and the blocked-command log. Core
code depends on the interfaces, never on a concrete backend, so tests can
substitute the in-memory backends without touching orchestration code.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mergegate_store.models import BlockedCommandLogEntry, CacheEntry, MergeLock


class CacheStore(ABC):
    """Content-addressed store of passing review verdicts.

    Only PASS outcomes are ever stored. A FAIL must be re-judged on the next
    run, so implementations reject any other outcome in put().
    """

    @abstractmethod
    def get(self, fingerprint: str) -> CacheEntry | None:
        """Return the cached entry for fingerprint, or None on a miss.

        Expired entries are misses; implementations may delete them here.
        """

    @abstractmethod
    def put(self, fingerprint: str, outcome: str) -> None:
        """Record a passing verdict for fingerprint."""

    def sweep(self) -> int:
        """Evict entries older than the retention window.

        Best-effort and called once when the store is opened, not on every
        access. Returns the number of evicted entries.
        """
        return 0

    def close(self) -> None:
        """Release any resources held by the store.

        Default is a no-op so callers can always call close() safely.
        """


class LockStore(ABC):
    """One merge-lock record per pull request.

    Stores hold records only; expiry is decided by the lock manager in
    mergegate_core, which re-checks validity on every query.
    """

    @abstractmethod
    def read(self, pr_number: int) -> MergeLock | None:
        """Return the lock record for pr_number, or None."""

    @abstractmethod
    def write(self, lock: MergeLock) -> None:
        """Create or replace the lock record for lock.pr_number."""

    @abstractmethod
    def delete(self, pr_number: int) -> bool:
        """Remove the lock record. Returns True if one existed."""

    @abstractmethod
    def list_locks(self) -> list[MergeLock]:
        """Return every stored lock record, expired or not."""


class BlockedCommandLog(ABC):
    """Append-only audit trail of firewall blocks."""

    @abstractmethod
    def append(self, entry: BlockedCommandLogEntry) -> None:
        """Append one entry. Must never raise into the firewall."""

    @abstractmethod
    def entries(self) -> list[BlockedCommandLogEntry]:
        """Return all entries, oldest first. Used by the audit viewer only."""

    @abstractmethod
    def clear(self) -> None:
        """Drop the whole log. Human-invoked from the audit viewer only."""
