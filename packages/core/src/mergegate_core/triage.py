"""Size-based triage for both review paths.

Pre-commit: decide between full review, per-file chunked review, or no agent
review at all (skip-with-summary) from the diff's line count.

Pre-merge: build a bounded "targeted diff" for the reviewer that never hides
a security-critical or actively commented file.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Iterable

from mergegate_core.diff import Diff, FileDiff
from mergegate_core.utils.classify import FileCategory, primary_category

logger = logging.getLogger(__name__)


class ReviewMode(enum.Enum):
    FULL = "full"
    CHUNKED = "chunked"
    SKIP = "skip"


@dataclass(frozen=True)
class Thresholds:
    max_full: int = 1000
    chunk_ceiling: int = 800
    skip_ceiling: int = 2500

    @classmethod
    def from_config(cls, config: dict) -> Thresholds:
        return cls(
            max_full=int(config.get("max_full_lines", cls.max_full)),
            chunk_ceiling=int(config.get("chunk_ceiling", cls.chunk_ceiling)),
            skip_ceiling=int(config.get("skip_ceiling", cls.skip_ceiling)),
        )


@dataclass(frozen=True)
class TriagePlan:
    mode: ReviewMode
    total_lines: int
    chunks: tuple[FileDiff, ...] = ()
    oversized: tuple[FileDiff, ...] = ()


def triage(diff: Diff, thresholds: Thresholds) -> TriagePlan:
    """Pick the review mode for a pre-commit diff.

    In CHUNKED mode every file over ``chunk_ceiling`` lands in ``oversized``;
    those files are skipped, never counted as blocking.
    """
    total = diff.total_lines
    if total <= thresholds.max_full:
        return TriagePlan(mode=ReviewMode.FULL, total_lines=total)
    if total > thresholds.skip_ceiling:
        return TriagePlan(mode=ReviewMode.SKIP, total_lines=total)

    chunks = []
    oversized = []
    for f in diff.files:
        if f.line_count > thresholds.chunk_ceiling:
            logger.info("Skipping %s (%d lines > %d chunk size)", f.path, f.line_count, thresholds.chunk_ceiling)
            oversized.append(f)
        else:
            chunks.append(f)
    return TriagePlan(mode=ReviewMode.CHUNKED, total_lines=total, chunks=tuple(chunks), oversized=tuple(oversized))


def approaching_limit(diff: Diff, thresholds: Thresholds) -> bool:
    """True when a full-review diff is over three quarters of max_full."""
    total = diff.total_lines
    return thresholds.max_full * 3 // 4 < total <= thresholds.max_full


def summarize_large_diff(diff: Diff, top: int = 10) -> str:
    """Per-file change-size summary shown instead of an agent review."""
    lines = [f"Total changes: {diff.total_lines} lines across {len(diff.files)} files", ""]
    ranked = sorted(diff.files, key=lambda f: (f.added, f.removed), reverse=True)
    lines.append(f"Top {min(top, len(ranked))} changed files:")
    for f in ranked[:top]:
        lines.append(f"  {f.added:5d} + | {f.removed:5d} - | {f.path}")
    return "\n".join(lines)


# --------------------------------------------------------------------------- #
# Pre-merge targeted diff                                                     #
# --------------------------------------------------------------------------- #


@dataclass(frozen=True)
class TargetedDiff:
    text: str
    full: list[str] = field(default_factory=list)
    truncated: list[str] = field(default_factory=list)
    summarized: list[str] = field(default_factory=list)


def summarize_data_file(file_diff: FileDiff) -> str:
    return (
        f"diff --git a/{file_diff.path} b/{file_diff.path}\n"
        "--- CI validated data file (not shown) ---\n"
        f"File: {file_diff.path}\n"
        f"Changes: +{file_diff.added} -{file_diff.removed} lines\n"
    )


def truncate_file_diff(file_diff: FileDiff, context_lines: int = 50) -> tuple[str, int]:
    """Keep the first and last context_lines lines, eliding the middle.

    Returns the text and the number of elided lines (0 when nothing was cut).
    """
    lines = file_diff.text.splitlines()
    if len(lines) <= context_lines * 2:
        return file_diff.text, 0
    elided = len(lines) - context_lines * 2
    kept = [
        *lines[:context_lines],
        "",
        f"... [{elided} lines truncated - no review comments, CI passed] ...",
        "",
        *lines[-context_lines:],
    ]
    return "\n".join(kept) + "\n", elided


def build_targeted_diff(
    diff: Diff,
    commented_paths: Iterable[str],
    ci_passed: bool,
    threshold: int = 1000,
    context_lines: int = 50,
) -> TargetedDiff:
    """Build the reviewer-facing diff for a pull request.

    Below ``threshold`` lines the diff is passed through untouched. Above it,
    each file is handled by its primary category: security-critical and
    commented files verbatim, data files summarised only once CI has passed,
    and plain code truncated only once CI has passed.
    """
    if diff.total_lines <= threshold:
        logger.info("Diff is %d lines (under threshold), including full diff", diff.total_lines)
        return TargetedDiff(text=diff.raw, full=diff.paths)

    commented = set(commented_paths)
    full: list[str] = []
    truncated: list[str] = []
    summarized: list[str] = []
    body: list[str] = []
    summaries: list[str] = []

    for f in diff.files:
        category = primary_category(f.path, commented)
        if category in (FileCategory.SECURITY_CRITICAL, FileCategory.COMMENTED) or not ci_passed:
            body.append(f.text)
            full.append(f.path)
        elif category == FileCategory.DATA:
            summaries.append(summarize_data_file(f))
            summarized.append(f.path)
        else:
            text, elided = truncate_file_diff(f, context_lines)
            body.append(text)
            (truncated if elided else full).append(f.path)

    text = (
        f"=== Smart Diff Context ({diff.total_lines} total lines) ===\n\n"
        f"Files shown in full: {len(full)}\n"
        f"Files truncated (no comments, CI passed): {len(truncated)}\n"
        f"Data files summarized (CI validated): {len(summarized)}\n\n"
        "=== Full/Truncated Diffs ===\n\n"
        + "".join(body)
        + "\n=== Data Files (CI Validated) ===\n\n"
        + "\n".join(summaries)
    )
    logger.info("Smart diff built: %d lines (down from %d)", len(text.splitlines()), diff.total_lines)
    return TargetedDiff(text=text, full=full, truncated=truncated, summarized=summarized)
