"""Pre-merge gate.

    fetch PR → hard state checks → active inline comments → targeted diff
             → one reviewer pass (SAFE_TO_MERGE / BLOCK_MERGE) → merge lock

Hard checks raise HardPolicyViolation before any reviewer runs. Reviewer
verdicts here are never cached: review state on the hosting platform moves
independently of the diff, so the same diff can be safe one minute and not
the next.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Iterable

from mergegate_core.diff import Diff
from mergegate_core.errors import AuthorizationMissing, GateError, HardPolicyViolation, HostingError
from mergegate_core.gh.client import active_inline_comments
from mergegate_core.gh.models import STATE_BEARING_REVIEW_STATES
from mergegate_core.lock import LockState, authorize_command, retry_command
from mergegate_core.prompts import merge_review_prompt
from mergegate_core.triage import build_targeted_diff
from mergegate_core.verdict import MERGE_OUTCOMES, Outcome, ReviewVerdict

if TYPE_CHECKING:
    from mergegate_core.gh.client import HostingClient
    from mergegate_core.gh.models import InlineComment, PRRecord, Review, StatusCheck
    from mergegate_core.invoker import AgentInvoker
    from mergegate_core.lock import MergeLockManager

logger = logging.getLogger(__name__)

CI_PASSING_CONCLUSIONS = frozenset({"SUCCESS", "SKIPPED", "NEUTRAL"})

RESOLVED_TIP = (
    "If you've already resolved these issues and the comments are outdated, add a new PR "
    "comment explaining what was fixed, then attempt the merge again. The reviewer will see "
    "your update and re-analyze the current state."
)


@dataclass
class MergeDecision:
    allowed: bool
    pr_number: int
    verdict: ReviewVerdict | None = None
    reason: str = ""


_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _submitted(review: Review) -> datetime:
    if review.submitted_at is None:
        return _EPOCH
    if review.submitted_at.tzinfo is None:
        return review.submitted_at.replace(tzinfo=timezone.utc)
    return review.submitted_at


def latest_reviews_by_author(reviews: Iterable[Review]) -> dict[str, Review]:
    """Each reviewer's most recent state-bearing review.

    COMMENTED and PENDING reviews are ignored so a follow-up comment never
    hides an earlier request for changes.
    """
    latest: dict[str, Review] = {}
    for review in sorted(reviews, key=_submitted):
        if review.state in STATE_BEARING_REVIEW_STATES:
            latest[review.author] = review
    return latest


def check_review_state(pr: PRRecord) -> None:
    """Raise HardPolicyViolation if changes are requested on the PR."""
    requesting = sorted(
        author for author, review in latest_reviews_by_author(pr.reviews).items() if review.state == "CHANGES_REQUESTED"
    )
    if pr.review_decision == "CHANGES_REQUESTED" or requesting:
        details = [f"- {author}: CHANGES_REQUESTED" for author in requesting]
        raise HardPolicyViolation(f"PR #{pr.number} has changes requested", details)


def check_neutral_ci(pr: PRRecord, allowlist: Iterable[str] = ()) -> None:
    """Raise HardPolicyViolation for NEUTRAL checks not on the informational allow-list.

    Allow-list entries are name prefixes, so "Pages changed" also covers
    "Pages changed - my-site".
    """
    prefixes = tuple(allowlist)
    neutral = [
        check
        for check in pr.status_checks or []
        if check.conclusion == "NEUTRAL" and not (prefixes and check.name.startswith(prefixes))
    ]
    if neutral:
        raise HardPolicyViolation(
            "CI checks with NEUTRAL status (indicates unresolved issues)",
            [f"- {check.name}: {check.conclusion}" for check in neutral],
        )


def ci_passed(checks: list[StatusCheck] | None) -> bool:
    """True only when checks exist and every one concluded successfully."""
    if not checks:
        return False
    return all(check.conclusion in CI_PASSING_CONCLUSIONS for check in checks)


def format_status_checks(checks: list[StatusCheck] | None) -> str:
    if checks is None:
        return "Status checks unavailable"
    if not checks:
        return "No CI checks configured"
    return "\n".join(check.render() for check in checks)


def _format_reviews(reviews: list[Review]) -> str:
    if not reviews:
        return "No reviews"
    lines = []
    for r in reviews:
        when = f" ({r.submitted_at.isoformat()})" if r.submitted_at else ""
        lines.append(f"- {r.author}: {r.state}{when}")
        if r.body.strip():
            lines.append(f"  {r.body.strip()}")
    return "\n".join(lines)


def _format_comments(pr: PRRecord) -> str:
    if not pr.comments:
        return "No comments"
    return "\n".join(f"---\nAuthor: {c.author}\n{c.body.strip()}" for c in pr.comments)


def _format_inline(comments: list[InlineComment] | None) -> str:
    if comments is None:
        return "Inline comments unavailable"
    if not comments:
        return "No active inline comments (all outdated or resolved)"
    return "\n".join(c.render() for c in comments)


def render_block_report(pr: PRRecord, verdict: ReviewVerdict) -> str:
    """Markdown body used for the optional PR comment and follow-up issue."""
    lines = [f"### Merge blocked: PR #{pr.number}", "", f"**{pr.title}**", ""]
    if verdict.issues:
        for issue in verdict.issues:
            lines.append(f"- **{issue.description}**")
            if issue.location:
                lines.append(f"  - location: `{issue.location}`")
            if issue.source:
                lines.append(f"  - source: {issue.source}")
            if issue.details:
                lines.append(f"  - {issue.details}")
    else:
        lines.append("The reviewer returned BLOCK_MERGE without itemised issues.")
    lines += ["", RESOLVED_TIP]
    return "\n".join(lines)


class PreMergeGate:
    def __init__(
        self,
        client: HostingClient,
        invoker: AgentInvoker,
        locks: MergeLockManager,
        config: dict,
    ):
        self.client = client
        self.invoker = invoker
        self.locks = locks
        self.config = config

    def evaluate(self, pr_number: int) -> MergeDecision:
        """Decide whether PR pr_number may be merged right now.

        Raises HostingError when the PR cannot be fetched, HardPolicyViolation
        on a failed state check and AuthorizationMissing when the review
        passed but no human authorization is on record.
        """
        logger.info("Fetching PR review data...")
        pr = self.client.fetch_pr(pr_number)
        logger.info("PR #%d: %s", pr.number, pr.title)
        logger.info("Review decision: %s", pr.review_decision or "NONE")

        check_review_state(pr)
        check_neutral_ci(pr, self.config.get("informational_checks") or ())

        inline = self._inline_comments(pr_number)
        diff = self._diff(pr_number)
        targeted = build_targeted_diff(
            diff,
            {c.path for c in inline or []},
            ci_passed(pr.status_checks),
            threshold=self.config.get("targeted_diff_threshold", 1000),
            context_lines=self.config.get("context_lines", 50),
        )

        prompt = merge_review_prompt(
            pr_number=pr.number,
            title=pr.title,
            review_decision=pr.review_decision or "",
            status_checks=format_status_checks(pr.status_checks),
            reviews=_format_reviews(pr.reviews),
            comments=_format_comments(pr),
            inline_comments=_format_inline(inline),
            diff_text=targeted.text,
        )
        logger.info("Prompt size: %d bytes, %d lines", len(prompt), len(prompt.splitlines()))

        try:
            verdict = self.invoker.invoke(
                self.config.get("premerge_agent"), prompt, cache_key=None, allowed=MERGE_OUTCOMES
            )
        except GateError as e:
            # Pre-merge review failures always fail closed.
            return MergeDecision(False, pr_number, reason=f"Blocking merge out of caution: {e}")

        if verdict.outcome == Outcome.BLOCK_MERGE:
            self._report_block(pr, verdict)
            return MergeDecision(False, pr_number, verdict, "PR has unresolved review issues - merge blocked")

        if self.locks.check(pr_number) != LockState.AUTHORIZED:
            raise AuthorizationMissing(
                pr_number,
                authorize_command(pr_number),
                retry_command(pr_number),
                int(self.locks.ttl.total_seconds()),
            )
        logger.info("Merge authorization verified")
        return MergeDecision(True, pr_number, verdict, "PR review analysis passed - safe to merge")

    def _inline_comments(self, pr_number: int) -> list[InlineComment] | None:
        try:
            comments = active_inline_comments(self.client, pr_number)
        except HostingError as e:
            logger.warning("Could not fetch inline review comments: %s", e)
            return None
        logger.info("Found %d active inline comment(s) (filtered out outdated/resolved)", len(comments))
        return comments

    def _diff(self, pr_number: int) -> Diff:
        try:
            return self.client.fetch_diff(pr_number)
        except HostingError as e:
            logger.warning("Could not fetch PR diff: %s", e)
            return Diff.parse("")

    def _report_block(self, pr: PRRecord, verdict: ReviewVerdict) -> None:
        if not (self.config.get("comment_on_block") or self.config.get("issue_on_block")):
            return
        body = render_block_report(pr, verdict)
        try:
            if self.config.get("comment_on_block"):
                self.client.post_comment(pr.number, body)
            if self.config.get("issue_on_block"):
                number = self.client.create_issue(f"Merge blocked: PR #{pr.number} {pr.title}", body)
                logger.info("Opened follow-up issue #%d", number)
        except HostingError as e:
            logger.warning("Could not record merge block on the hosting platform: %s", e)
