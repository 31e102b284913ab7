"""Pre-commit review orchestration.

    staged diff → cheap skips → triage → full / chunked / summary-only
                → invoker → aggregator → PrecommitOutcome

Returns a decision; printing and exit codes are the CLI's job.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from mergegate_core.aggregate import (
    CHUNK_ERROR_POLICY,
    SINGLE_PASS_ERROR_POLICY,
    AgentOutcome,
    ChunkResult,
    aggregate_chunks,
    aggregate_single_pass,
)
from mergegate_core.errors import GateError
from mergegate_core.prompts import chunk_review_prompt, commit_review_prompt
from mergegate_core.triage import ReviewMode, Thresholds, approaching_limit, summarize_large_diff, triage
from mergegate_core.utils.classify import is_documentation_file, is_lockfile, needs_elevated_scrutiny
from mergegate_core.utils.fingerprint import fingerprint

if TYPE_CHECKING:
    from mergegate_core.diff import Diff
    from mergegate_core.invoker import AgentInvoker

logger = logging.getLogger(__name__)


@dataclass
class PrecommitOutcome:
    allowed: bool
    mode: ReviewMode | None = None
    reasons: list[str] = field(default_factory=list)
    report: str = ""


def _skip_reason(diff: Diff) -> str | None:
    """Return why this diff needs no agent review, or None."""
    if diff.is_empty:
        return "No staged changes to review"
    if not diff.has_code_changes():
        return "No code changes detected (permission/metadata only) - skipping review"
    paths = diff.paths
    if paths and all(is_documentation_file(p) for p in paths):
        return "Markdown-only changes detected - skipping code review"
    if paths and all(is_lockfile(p) for p in paths):
        return "Lockfile-only changes detected - skipping code review (generated files)"
    return None


def _invoke(invoker: AgentInvoker, agent: str, prompt: str, cache_key: str) -> AgentOutcome:
    try:
        return invoker.invoke(agent, prompt, cache_key)
    except GateError as e:
        return e


def _full_review(diff: Diff, invoker: AgentInvoker, config: dict) -> PrecommitOutcome:
    primary_agent = config.get("primary_agent") or "code-reviewer"
    adversarial_agent = config.get("adversarial_agent")

    if needs_elevated_scrutiny(diff.paths, diff.raw):
        logger.info("Security-critical changes detected - adversarial review has elevated scrutiny")

    if adversarial_agent and not invoker.reviewer.has_agent(adversarial_agent):
        logger.warning("%s agent not found - skipping adversarial review", adversarial_agent)
        adversarial_agent = None

    prompt = commit_review_prompt(diff.raw)
    primary = _invoke(invoker, primary_agent, prompt, fingerprint(diff.raw, agent=primary_agent))
    adversarial = None
    if adversarial_agent:
        adversarial = _invoke(invoker, adversarial_agent, prompt, fingerprint(diff.raw, agent=adversarial_agent))

    decision = aggregate_single_pass(primary, adversarial, policy=SINGLE_PASS_ERROR_POLICY)

    sections = []
    for agent, outcome in ((primary_agent, primary), (adversarial_agent, adversarial)):
        if outcome is None:
            continue
        body = str(outcome) if isinstance(outcome, GateError) else outcome.raw
        sections.append(f"=== {agent.upper().replace('-', ' ')} ===\n{body.rstrip()}")
    return PrecommitOutcome(
        allowed=decision.allowed,
        mode=ReviewMode.FULL,
        reasons=decision.reasons,
        report="\n\n".join(sections),
    )


def _chunked_review(plan, diff: Diff, invoker: AgentInvoker, config: dict) -> PrecommitOutcome:
    agent = config.get("primary_agent") or "code-reviewer"
    logger.warning("Diff is large (%d lines), using chunked file-by-file review", plan.total_lines)

    results = [ChunkResult(f.path, skipped_reason=f"{f.line_count} lines over chunk size") for f in plan.oversized]
    for f in plan.chunks:
        key = fingerprint(f.text, path=f.path, agent=agent)
        try:
            verdict = invoker.invoke(agent, chunk_review_prompt(f.path, f.text), key)
        except GateError as e:
            results.append(ChunkResult(f.path, error=e))
            continue
        results.append(ChunkResult(f.path, verdict=verdict))

    summary = aggregate_chunks(results, total_files=len(diff.files), policy=CHUNK_ERROR_POLICY)
    reasons = [] if summary.allowed else [f"Chunked review found {summary.blocking} blocking issue(s)"]
    return PrecommitOutcome(allowed=summary.allowed, mode=ReviewMode.CHUNKED, reasons=reasons, report=summary.render())


def run_precommit_review(diff: Diff, invoker: AgentInvoker, config: dict) -> PrecommitOutcome:
    """Decide whether a staged diff may be committed."""
    reason = _skip_reason(diff)
    if reason:
        logger.info(reason)
        return PrecommitOutcome(allowed=True, reasons=[reason])

    thresholds = Thresholds.from_config(config)
    plan = triage(diff, thresholds)

    if plan.mode == ReviewMode.SKIP:
        reason = (
            f"AI review skipped for very large diffs ({plan.total_lines} > {thresholds.skip_ceiling} lines); "
            "diff size alone is not a code quality issue"
        )
        logger.warning(reason)
        return PrecommitOutcome(allowed=True, mode=ReviewMode.SKIP, reasons=[reason], report=summarize_large_diff(diff))

    if plan.mode == ReviewMode.CHUNKED:
        return _chunked_review(plan, diff, invoker, config)

    if approaching_limit(diff, thresholds):
        logger.warning("Diff is approaching review limit (%d/%d lines)", plan.total_lines, thresholds.max_full)
    return _full_review(diff, invoker, config)
