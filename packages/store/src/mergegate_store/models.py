"""Persisted state models.

Decoupled from mergegate_core so the store layer can be used independently
and mergegate_core has no knowledge of on-disk formats.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

# The only verdict outcome ever written to the cache.
PASS = "PASS"


@dataclass(frozen=True)
class CacheEntry:
    """A previously passing verdict for one content fingerprint."""

    fingerprint: str
    outcome: str
    written_at: datetime


@dataclass(frozen=True)
class MergeLock:
    """A human-granted merge authorization for one pull request."""

    pr_number: int
    authorized_by: str
    created_at: datetime
    reason: str = ""


@dataclass(frozen=True)
class BlockedCommandLogEntry:
    """One firewall block, appended to the audit log and never mutated."""

    timestamp: datetime
    rule_triggered: str
    raw_command: str

    def to_line(self) -> str:
        # One entry per line: embedded newlines would split the record.
        command = self.raw_command.replace("\r", " ").replace("\n", " ")
        stamp = self.timestamp.strftime("%Y-%m-%dT%H:%M:%SZ")
        return f"{stamp} BLOCKED {self.rule_triggered}: {command}"
