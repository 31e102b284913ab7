"""No-op cache store, used when ``cache_enabled`` is false.

Using a NoOpCacheStore rather than None lets the invoker always call
cache.get()/cache.put() without conditional checks.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from mergegate_store.base import CacheStore
from mergegate_store.models import PASS

if TYPE_CHECKING:
    from mergegate_store.models import CacheEntry


class NoOpCacheStore(CacheStore):
    """Never hits and silently discards every write."""

    def get(self, fingerprint: str) -> CacheEntry | None:
        return None

    def put(self, fingerprint: str, outcome: str) -> None:
        if outcome != PASS:
            raise ValueError(f"Only {PASS} verdicts are cached, got {outcome!r}")
