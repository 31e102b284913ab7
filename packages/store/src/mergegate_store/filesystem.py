"""Filesystem stores, the default persistence for all three interfaces.

Layout:
  cache dir: one file per content fingerprint: ``PASS\\n<iso timestamp>\\n``
  lock dir:  one JSON file per pull request: ``pr-<number>.lock``
  log file:  one line per blocked command, append-only

Every operation is a discrete read or write keyed by an external
identifier, so unrelated keys never contend. Two writers racing on the same
key write the same value; last write wins.
"""

from __future__ import annotations

import json
import logging
import re
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path

from mergegate_store.base import BlockedCommandLog, CacheStore, LockStore
from mergegate_store.models import PASS, BlockedCommandLogEntry, CacheEntry, MergeLock

logger = logging.getLogger(__name__)

_DEFAULT_CACHE_TTL = timedelta(days=30)
_FINGERPRINT_RE = re.compile(r"^[0-9a-f]{16,128}$")
_LOCK_NAME_RE = re.compile(r"^pr-(\d+)\.lock$")
_LOG_LINE_RE = re.compile(r"^(\S+) BLOCKED ([^:]+): (.*)$")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: str) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class FileCacheStore(CacheStore):
    """Verdict cache with one file per fingerprint.

    The directory is created and swept once on construction. get() also
    treats a stale or malformed file as a miss and removes it, so an entry
    that outlived a missed sweep is never reused.
    """

    def __init__(self, directory: str | Path, ttl: timedelta = _DEFAULT_CACHE_TTL):
        self._dir = Path(directory).expanduser()
        self._ttl = ttl
        self._dir.mkdir(parents=True, exist_ok=True)
        evicted = self.sweep()
        if evicted:
            logger.debug("Evicted %d stale cache entr(y/ies) from %s", evicted, self._dir)

    def _path(self, fingerprint: str) -> Path:
        if not _FINGERPRINT_RE.match(fingerprint):
            raise ValueError(f"Not a content fingerprint: {fingerprint!r}")
        return self._dir / fingerprint

    def get(self, fingerprint: str) -> CacheEntry | None:
        path = self._path(fingerprint)
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("Could not read cache entry %s: %s", path.name, e)
            return None

        outcome = lines[0].strip() if lines else ""
        written_at = _parse_timestamp(lines[1]) if len(lines) > 1 else None
        if outcome != PASS or written_at is None or _utcnow() - written_at > self._ttl:
            # FAIL, unparseable or expired: never reuse, re-judge instead.
            path.unlink(missing_ok=True)
            return None
        return CacheEntry(fingerprint=fingerprint, outcome=outcome, written_at=written_at)

    def put(self, fingerprint: str, outcome: str) -> None:
        if outcome != PASS:
            raise ValueError(f"Only {PASS} verdicts are cached, got {outcome!r}")
        path = self._path(fingerprint)
        stamp = _utcnow().strftime("%Y-%m-%dT%H:%M:%SZ")
        try:
            path.write_text(f"{PASS}\n{stamp}\n", encoding="utf-8")
        except OSError as e:
            # A failed cache write only costs a repeat review next time.
            logger.warning("Could not write cache entry %s: %s", path.name, e)

    def sweep(self) -> int:
        cutoff = time.time() - self._ttl.total_seconds()
        evicted = 0
        for path in self._dir.iterdir():
            try:
                if path.is_file() and path.stat().st_mtime < cutoff:
                    path.unlink()
                    evicted += 1
            except OSError as e:
                logger.debug("Skipping cache sweep of %s: %s", path.name, e)
        return evicted


class FileLockStore(LockStore):
    """Merge-lock records as ``pr-<number>.lock`` JSON files."""

    def __init__(self, directory: str | Path):
        self._dir = Path(directory).expanduser()
        self._dir.mkdir(parents=True, exist_ok=True)

    @property
    def directory(self) -> Path:
        return self._dir

    def _path(self, pr_number: int) -> Path:
        return self._dir / f"pr-{int(pr_number)}.lock"

    def read(self, pr_number: int) -> MergeLock | None:
        path = self._path(pr_number)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning("Unreadable merge lock %s (%s); treating as absent", path.name, e)
            return None
        return self._from_dict(data, pr_number)

    def write(self, lock: MergeLock) -> None:
        self._path(lock.pr_number).write_text(json.dumps(self._to_dict(lock), indent=2) + "\n", encoding="utf-8")

    def delete(self, pr_number: int) -> bool:
        path = self._path(pr_number)
        existed = path.exists()
        path.unlink(missing_ok=True)
        return existed

    def list_locks(self) -> list[MergeLock]:
        locks = []
        for path in sorted(self._dir.iterdir()):
            match = _LOCK_NAME_RE.match(path.name)
            if not match:
                continue
            lock = self.read(int(match.group(1)))
            if lock is not None:
                locks.append(lock)
        return locks

    @staticmethod
    def _to_dict(lock: MergeLock) -> dict:
        return {
            "pr_number": lock.pr_number,
            "authorized_by": lock.authorized_by,
            "created_at": lock.created_at.isoformat(),
            "reason": lock.reason,
        }

    @staticmethod
    def _from_dict(d: object, pr_number: int) -> MergeLock | None:
        """Build a lock from decoded JSON; anything malformed reads as no lock."""
        if not isinstance(d, dict):
            return None
        created_at = _parse_timestamp(str(d.get("created_at", "")))
        if created_at is None:
            return None
        try:
            number = int(d.get("pr_number", pr_number))
        except (TypeError, ValueError):
            return None
        return MergeLock(
            pr_number=number,
            authorized_by=str(d.get("authorized_by", "")),
            created_at=created_at,
            reason=str(d.get("reason", "")),
        )


class FileBlockedCommandLog(BlockedCommandLog):
    """Line-oriented append-only audit log."""

    def __init__(self, path: str | Path):
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def append(self, entry: BlockedCommandLogEntry) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "a", encoding="utf-8") as f:
                f.write(entry.to_line() + "\n")
        except OSError as e:
            # The block itself must still happen even if auditing fails.
            logger.warning("Could not append to blocked-command log %s: %s", self._path, e)

    def entries(self) -> list[BlockedCommandLogEntry]:
        try:
            raw_lines = self._path.read_text(encoding="utf-8").splitlines()
        except FileNotFoundError:
            return []
        results = []
        for line in raw_lines:
            match = _LOG_LINE_RE.match(line)
            if not match:
                continue
            timestamp = _parse_timestamp(match.group(1))
            if timestamp is None:
                continue
            results.append(
                BlockedCommandLogEntry(
                    timestamp=timestamp,
                    rule_triggered=match.group(2),
                    raw_command=match.group(3),
                )
            )
        return results

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)
