"""Merge authorization lock.

States: UNAUTHORIZED → AUTHORIZED → expired → deleted.

authorize() is the only way a record is ever created, and it is reached only
from the human-invoked ``mergegate lock authorize`` command. Expiry is
computed at query time; an expired record is deleted by the query that
notices it. There is no background sweep and no grace period.
"""

from __future__ import annotations

import enum
import getpass
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Callable

from mergegate_store.models import MergeLock

if TYPE_CHECKING:
    from mergegate_store.base import LockStore

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(minutes=30)
DEFAULT_REASON = "Manual authorization"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def authorize_command(pr_number: int) -> str:
    return f'mergegate lock authorize {pr_number} "reason"'


def retry_command(pr_number: int) -> str:
    return f"gh pr merge {pr_number}"


class LockState(enum.Enum):
    AUTHORIZED = "authorized"
    UNAUTHORIZED = "unauthorized"


@dataclass(frozen=True)
class LockStatus:
    pr_number: int
    state: LockState
    lock: MergeLock | None = None
    remaining: timedelta | None = None
    expired: bool = False


class MergeLockManager:
    def __init__(
        self,
        store: LockStore,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.ttl = ttl
        self.clock = clock

    def authorize(self, pr_number: int, actor: str | None = None, reason: str = "") -> MergeLock:
        lock = MergeLock(
            pr_number=pr_number,
            authorized_by=actor or getpass.getuser(),
            created_at=self.clock(),
            reason=reason or DEFAULT_REASON,
        )
        self.store.write(lock)
        logger.info("Authorization created for PR #%d by %s", pr_number, lock.authorized_by)
        return lock

    def status(self, pr_number: int) -> LockStatus:
        """Inspect the lock, deleting it if it has expired."""
        lock = self.store.read(pr_number)
        if lock is None:
            return LockStatus(pr_number=pr_number, state=LockState.UNAUTHORIZED)

        remaining = self.ttl - (self.clock() - lock.created_at)
        if remaining <= timedelta(0):
            self.store.delete(pr_number)
            logger.info("Authorization for PR #%d expired; removed", pr_number)
            return LockStatus(pr_number=pr_number, state=LockState.UNAUTHORIZED, lock=lock, expired=True)
        return LockStatus(pr_number=pr_number, state=LockState.AUTHORIZED, lock=lock, remaining=remaining)

    def check(self, pr_number: int) -> LockState:
        """AUTHORIZED or UNAUTHORIZED. Never creates a lock."""
        return self.status(pr_number).state

    def revoke(self, pr_number: int) -> bool:
        removed = self.store.delete(pr_number)
        if removed:
            logger.info("Authorization for PR #%d revoked", pr_number)
        return removed

    def active(self) -> list[LockStatus]:
        """Every currently valid authorization. Expired ones are removed."""
        statuses = [self.status(lock.pr_number) for lock in self.store.list_locks()]
        return [s for s in statuses if s.state == LockState.AUTHORIZED]
