"""Combine reviewer verdicts into one gate decision.

Invocation errors are handled by a policy named per call site rather than a
single global flag: an incomplete single-pass review blocks, while one flaky
per-file review inside a chunked batch only skips that file.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Union

from mergegate_core.errors import GateError
from mergegate_core.verdict import Outcome, ReviewVerdict

logger = logging.getLogger(__name__)


class FailurePolicy(enum.Enum):
    FAIL_CLOSED = "fail-closed"
    FAIL_OPEN = "fail-open"


SINGLE_PASS_ERROR_POLICY = FailurePolicy.FAIL_CLOSED
CHUNK_ERROR_POLICY = FailurePolicy.FAIL_OPEN
PRE_MERGE_ERROR_POLICY = FailurePolicy.FAIL_CLOSED

# Either what the reviewer said, or why it could not say anything.
AgentOutcome = Union[ReviewVerdict, GateError]


def _blocks(verdict: ReviewVerdict) -> bool:
    return verdict.outcome == Outcome.FAIL and verdict.has_blocking


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    reasons: list[str] = field(default_factory=list)
    verdicts: list[ReviewVerdict] = field(default_factory=list)
    errors: list[GateError] = field(default_factory=list)


def aggregate_single_pass(
    primary: AgentOutcome,
    adversarial: AgentOutcome | None = None,
    policy: FailurePolicy = SINGLE_PASS_ERROR_POLICY,
) -> GateDecision:
    """FAIL iff either reviewer reports FAIL with at least one BLOCKING issue.

    A FAIL carrying only warnings is reported but does not block, and it
    never masks a blocking FAIL from the other reviewer.
    """
    verdicts: list[ReviewVerdict] = []
    errors: list[GateError] = []
    reasons: list[str] = []
    allowed = True

    for outcome in (primary, adversarial):
        if outcome is None:
            continue
        if isinstance(outcome, GateError):
            errors.append(outcome)
            if policy == FailurePolicy.FAIL_CLOSED:
                allowed = False
                reasons.append(f"Review did not complete: {outcome}")
            else:
                logger.warning("Ignoring reviewer error under fail-open policy: %s", outcome)
            continue

        verdicts.append(outcome)
        if _blocks(outcome):
            allowed = False
            reasons.append(f"{outcome.source} found {len(outcome.blocking_issues)} blocking issue(s)")
        elif outcome.outcome == Outcome.FAIL:
            logger.warning("%s found warnings (non-blocking)", outcome.source)

    return GateDecision(allowed=allowed, reasons=reasons, verdicts=verdicts, errors=errors)


@dataclass(frozen=True)
class ChunkResult:
    path: str
    verdict: ReviewVerdict | None = None
    skipped_reason: str = ""
    error: GateError | None = None


@dataclass(frozen=True)
class ChunkSummary:
    total_files: int
    reviewed: int
    skipped: int
    blocking: int
    warnings: int
    allowed: bool
    failed: list[ChunkResult] = field(default_factory=list)

    def render(self) -> str:
        lines = []
        for result in self.failed:
            lines.append(f"=== Issues in {result.path} ===")
            if result.verdict is not None:
                lines.append(result.verdict.raw.rstrip())
            elif result.error is not None:
                lines.append(str(result.error))
            lines.append("")
        lines.append("=== CHUNKED REVIEW SUMMARY ===")
        lines.append(f"Reviewed: {self.reviewed}/{self.total_files} files")
        if self.skipped:
            lines.append(f"Skipped (too large or errors): {self.skipped} files")
        lines.append(f"Blocking issues: {self.blocking}")
        lines.append(f"Warnings: {self.warnings}")
        return "\n".join(lines)


def aggregate_chunks(
    results: list[ChunkResult],
    total_files: int,
    policy: FailurePolicy = CHUNK_ERROR_POLICY,
) -> ChunkSummary:
    """Fold per-file results; any blocking FAIL fails the whole batch.

    Skipped files (oversized, or errored under fail-open) never count against
    the verdict.
    """
    reviewed = skipped = blocking = warnings = 0
    failed: list[ChunkResult] = []

    for result in results:
        if result.error is not None:
            if policy == FailurePolicy.FAIL_OPEN:
                logger.warning("Agent error for %s - skipping this file: %s", result.path, result.error)
                skipped += 1
            else:
                blocking += 1
                failed.append(result)
            continue
        if result.verdict is None:
            skipped += 1
            continue

        reviewed += 1
        if result.verdict.outcome == Outcome.FAIL:
            failed.append(result)
            if result.verdict.has_blocking:
                blocking += 1
            else:
                warnings += 1

    return ChunkSummary(
        total_files=total_files,
        reviewed=reviewed,
        skipped=skipped,
        blocking=blocking,
        warnings=warnings,
        allowed=blocking == 0,
        failed=failed,
    )
