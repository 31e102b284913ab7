"""Tests for mergegate-store implementations."""

from __future__ import annotations

import json
import os
import time
from datetime import datetime, timedelta, timezone

import pytest

from mergegate_store.filesystem import FileBlockedCommandLog, FileCacheStore, FileLockStore
from mergegate_store.memory import MemoryBlockedCommandLog, MemoryCacheStore, MemoryLockStore
from mergegate_store.models import PASS, BlockedCommandLogEntry, MergeLock
from mergegate_store.noop import NoOpCacheStore

FP = "ab" * 32
FP2 = "cd" * 32


def _lock(pr_number=7, created_at=None, reason="hotfix"):
    return MergeLock(
        pr_number=pr_number,
        authorized_by="alice",
        created_at=created_at or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc),
        reason=reason,
    )


# ---------------------------------------------------------------------------
# NoOpCacheStore
# ---------------------------------------------------------------------------


class TestNoOpCacheStore:
    def test_get_always_misses(self):
        store = NoOpCacheStore()
        store.put(FP, PASS)
        assert store.get(FP) is None

    def test_rejects_non_pass(self):
        with pytest.raises(ValueError):
            NoOpCacheStore().put(FP, "FAIL")

    def test_close_does_not_raise(self):
        NoOpCacheStore().close()


# ---------------------------------------------------------------------------
# FileCacheStore
# ---------------------------------------------------------------------------


class TestFileCacheStore:
    def test_put_then_get(self, tmp_path):
        store = FileCacheStore(tmp_path / "cache")
        store.put(FP, PASS)

        entry = store.get(FP)
        assert entry is not None
        assert entry.outcome == PASS
        assert entry.fingerprint == FP

    def test_file_format(self, tmp_path):
        store = FileCacheStore(tmp_path)
        store.put(FP, PASS)

        lines = (tmp_path / FP).read_text().splitlines()
        assert lines[0] == "PASS"
        assert lines[1].endswith("Z")

    def test_miss_returns_none(self, tmp_path):
        assert FileCacheStore(tmp_path).get(FP2) is None

    def test_fail_is_rejected(self, tmp_path):
        store = FileCacheStore(tmp_path)
        with pytest.raises(ValueError):
            store.put(FP, "FAIL")
        assert not (tmp_path / FP).exists()

    def test_hand_written_fail_is_never_reused(self, tmp_path):
        (tmp_path / FP).write_text("FAIL\n2026-01-01T00:00:00Z\n")
        store = FileCacheStore(tmp_path)

        assert store.get(FP) is None
        assert not (tmp_path / FP).exists()

    def test_expired_entry_is_a_miss_and_deleted(self, tmp_path):
        (tmp_path / FP).write_text("PASS\n2000-01-01T00:00:00Z\n")
        store = FileCacheStore(tmp_path, ttl=timedelta(days=30))
        # Recreate after the constructor sweep so only get() can evict it.
        (tmp_path / FP).write_text("PASS\n2000-01-01T00:00:00Z\n")

        assert store.get(FP) is None
        assert not (tmp_path / FP).exists()

    def test_sweep_on_open_removes_old_files(self, tmp_path):
        old = tmp_path / FP
        old.write_text("PASS\n2000-01-01T00:00:00Z\n")
        stale = time.time() - 40 * 86400
        os.utime(old, (stale, stale))
        fresh = tmp_path / FP2
        fresh.write_text("PASS\n2099-01-01T00:00:00Z\n")

        FileCacheStore(tmp_path, ttl=timedelta(days=30))

        assert not old.exists()
        assert fresh.exists()

    def test_invalid_fingerprint_rejected(self, tmp_path):
        store = FileCacheStore(tmp_path)
        with pytest.raises(ValueError):
            store.get("../../etc/passwd")


# ---------------------------------------------------------------------------
# MemoryCacheStore
# ---------------------------------------------------------------------------


class TestMemoryCacheStore:
    def test_put_then_get(self):
        store = MemoryCacheStore()
        store.put(FP, PASS)
        assert store.get(FP).outcome == PASS
        assert len(store) == 1

    def test_expiry(self):
        now = [datetime(2026, 1, 1, tzinfo=timezone.utc)]
        store = MemoryCacheStore(ttl=timedelta(days=30), clock=lambda: now[0])
        store.put(FP, PASS)

        now[0] += timedelta(days=31)
        assert store.get(FP) is None
        assert len(store) == 0

    def test_sweep_counts_evictions(self):
        now = [datetime(2026, 1, 1, tzinfo=timezone.utc)]
        store = MemoryCacheStore(ttl=timedelta(days=30), clock=lambda: now[0])
        store.put(FP, PASS)
        now[0] += timedelta(days=10)
        store.put(FP2, PASS)
        now[0] += timedelta(days=25)

        assert store.sweep() == 1
        assert store.get(FP2) is not None

    def test_rejects_non_pass(self):
        with pytest.raises(ValueError):
            MemoryCacheStore().put(FP, "BLOCK_MERGE")


# ---------------------------------------------------------------------------
# Lock stores
# ---------------------------------------------------------------------------


class TestFileLockStore:
    def test_write_read_roundtrip(self, tmp_path):
        store = FileLockStore(tmp_path)
        store.write(_lock())

        lock = store.read(7)
        assert lock == _lock()

    def test_one_json_file_per_pr(self, tmp_path):
        store = FileLockStore(tmp_path)
        store.write(_lock(pr_number=12))

        data = json.loads((tmp_path / "pr-12.lock").read_text())
        assert data["pr_number"] == 12
        assert data["authorized_by"] == "alice"
        assert data["reason"] == "hotfix"

    def test_read_missing_returns_none(self, tmp_path):
        assert FileLockStore(tmp_path).read(1) is None

    def test_corrupt_file_treated_as_absent(self, tmp_path):
        (tmp_path / "pr-3.lock").write_text("not json")
        assert FileLockStore(tmp_path).read(3) is None

    @pytest.mark.parametrize(
        "content",
        [
            "[1, 2]",
            '"2026-05-01T09:30:00Z"',
            "null",
            '{"pr_number": "three", "created_at": "2026-05-01T09:30:00Z"}',
        ],
    )
    def test_malformed_lock_treated_as_absent(self, tmp_path, content):
        (tmp_path / "pr-3.lock").write_text(content)
        store = FileLockStore(tmp_path)
        assert store.read(3) is None
        assert store.list_locks() == []

    def test_non_utf8_file_treated_as_absent(self, tmp_path):
        (tmp_path / "pr-3.lock").write_bytes(b"\xff\xfe\x00")
        assert FileLockStore(tmp_path).read(3) is None

    def test_delete(self, tmp_path):
        store = FileLockStore(tmp_path)
        store.write(_lock())

        assert store.delete(7) is True
        assert store.delete(7) is False
        assert store.read(7) is None

    def test_list_ignores_unrelated_files(self, tmp_path):
        store = FileLockStore(tmp_path)
        store.write(_lock(pr_number=2))
        store.write(_lock(pr_number=1))
        (tmp_path / "notes.txt").write_text("hello")

        assert [lock.pr_number for lock in store.list_locks()] == [1, 2]


class TestMemoryLockStore:
    def test_roundtrip_and_delete(self):
        store = MemoryLockStore()
        store.write(_lock())
        assert store.read(7) == _lock()
        assert store.delete(7) is True
        assert store.list_locks() == []


# ---------------------------------------------------------------------------
# Blocked-command logs
# ---------------------------------------------------------------------------


class TestBlockedCommandLogEntry:
    def test_line_format(self):
        entry = BlockedCommandLogEntry(
            timestamp=datetime(2026, 3, 4, 5, 6, 7, tzinfo=timezone.utc),
            rule_triggered="API_MERGE",
            raw_command="gh api repos/o/r/pulls/1/merge",
        )
        assert entry.to_line() == "2026-03-04T05:06:07Z BLOCKED API_MERGE: gh api repos/o/r/pulls/1/merge"

    def test_newlines_flattened(self):
        entry = BlockedCommandLogEntry(
            timestamp=datetime(2026, 3, 4, tzinfo=timezone.utc),
            rule_triggered="NO_VERIFY",
            raw_command="git commit\n--no-verify",
        )
        assert "\n" not in entry.to_line()


class TestFileBlockedCommandLog:
    def test_append_and_read_back(self, tmp_path):
        log = FileBlockedCommandLog(tmp_path / "sub" / "blocked.log")
        stamp = datetime(2026, 3, 4, 5, 6, 7, tzinfo=timezone.utc)
        log.append(BlockedCommandLogEntry(stamp, "WORKTREE", "git worktree add ../x"))
        log.append(BlockedCommandLogEntry(stamp, "NO_VERIFY", "git commit --no-verify -m 'a: b'"))

        entries = log.entries()
        assert [e.rule_triggered for e in entries] == ["WORKTREE", "NO_VERIFY"]
        assert entries[1].raw_command == "git commit --no-verify -m 'a: b'"
        assert entries[0].timestamp == stamp

    def test_entries_when_missing(self, tmp_path):
        assert FileBlockedCommandLog(tmp_path / "none.log").entries() == []

    def test_clear(self, tmp_path):
        log = FileBlockedCommandLog(tmp_path / "blocked.log")
        log.append(BlockedCommandLogEntry(datetime.now(timezone.utc), "WORKTREE", "git worktree list"))
        log.clear()
        assert log.entries() == []

    def test_unwritable_path_does_not_raise(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        log = FileBlockedCommandLog(blocker / "blocked.log")
        log.append(BlockedCommandLogEntry(datetime.now(timezone.utc), "WORKTREE", "git worktree list"))


class TestMemoryBlockedCommandLog:
    def test_append_and_clear(self):
        log = MemoryBlockedCommandLog()
        log.append(BlockedCommandLogEntry(datetime.now(timezone.utc), "WORKTREE", "git worktree list"))
        assert len(log.entries()) == 1
        log.clear()
        assert log.entries() == []
