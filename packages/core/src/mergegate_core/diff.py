"""Immutable unified-diff model.

A Diff is captured once per review pass and never mutated; triage and the
targeted-diff builder derive new text from it instead of editing it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

_HEADER_PREFIX = "diff --git "
# Markers of file content in a section: a text hunk or a binary patch.
_CONTENT_RE = re.compile(r"^(?:@@ |Binary files |GIT binary patch)", re.MULTILINE)


def _count_lines(text: str) -> int:
    return len(text.splitlines())


def _header_path(header: str) -> str:
    """Extract the post-image path from a ``diff --git a/X b/Y`` header.

    The b-path wins so renames are reported under their new name. Paths may
    contain spaces; a symmetric ``a/X b/X`` header is split exactly.
    """
    rest = header[len(_HEADER_PREFIX) :].rstrip("\n")
    if rest.startswith("a/") and (len(rest) - 5) % 2 == 0:
        half = (len(rest) - 5) // 2
        old, sep, new = rest[2 : 2 + half], rest[2 + half : 5 + half], rest[5 + half :]
        if sep == " b/" and old == new:
            return new
    idx = rest.find(" b/")
    if idx >= 0:
        return rest[idx + 3 :]
    return rest


def _count_changes(text: str) -> tuple[int, int]:
    added = removed = 0
    in_hunk = False
    for line in text.splitlines():
        if line.startswith("@@"):
            in_hunk = True
            continue
        if not in_hunk:
            continue
        if line.startswith("+"):
            added += 1
        elif line.startswith("-"):
            removed += 1
    return added, removed


@dataclass(frozen=True)
class FileDiff:
    """One file's section of a diff, header line included."""

    path: str
    added: int
    removed: int
    text: str

    @property
    def line_count(self) -> int:
        return _count_lines(self.text)

    @classmethod
    def from_text(cls, path: str, text: str) -> FileDiff:
        added, removed = _count_changes(text)
        return cls(path=path, added=added, removed=removed, text=text)


@dataclass(frozen=True)
class Diff:
    files: tuple[FileDiff, ...] = field(default_factory=tuple)
    raw: str = ""

    @classmethod
    def parse(cls, text: str) -> Diff:
        files: list[FileDiff] = []
        current_path: str | None = None
        current: list[str] = []

        def flush():
            if current_path is not None:
                files.append(FileDiff.from_text(current_path, "".join(current)))

        for line in text.splitlines(keepends=True):
            if line.startswith(_HEADER_PREFIX):
                flush()
                current_path = _header_path(line)
                current = [line]
            elif current_path is not None:
                current.append(line)
        flush()
        return cls(files=tuple(files), raw=text)

    @classmethod
    def from_files(cls, files) -> Diff:
        """Build a Diff from hosting-client file records.

        Each record needs ``filename`` and ``patch`` attributes (PyGithub's
        File objects qualify). Records without a patch, such as binaries,
        keep their header so the path is still visible to the reviewer.
        """
        parts = []
        for f in files:
            header = f"diff --git a/{f.filename} b/{f.filename}\n"
            patch = getattr(f, "patch", None) or ""
            if patch and not patch.endswith("\n"):
                patch += "\n"
            parts.append(header + patch)
        return cls.parse("".join(parts))

    @property
    def total_lines(self) -> int:
        return _count_lines(self.raw)

    @property
    def paths(self) -> list[str]:
        return [f.path for f in self.files]

    @property
    def is_empty(self) -> bool:
        return not self.raw.strip()

    def file(self, path: str) -> FileDiff | None:
        for f in self.files:
            if f.path == path:
                return f
        return None

    def line_counts(self) -> dict[str, int]:
        return {f.path: f.line_count for f in self.files}

    def has_code_changes(self) -> bool:
        """False when no file section carries a hunk, as in a pure mode change.

        Text without any ``diff --git`` section counts as a code change
        unless it is blank.
        """
        if not self.files:
            return not self.is_empty
        return any(_CONTENT_RE.search(f.text) for f in self.files)
