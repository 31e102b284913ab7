"""Tests for verdict aggregation."""

from mergegate_core.aggregate import (
    CHUNK_ERROR_POLICY,
    PRE_MERGE_ERROR_POLICY,
    SINGLE_PASS_ERROR_POLICY,
    ChunkResult,
    FailurePolicy,
    aggregate_chunks,
    aggregate_single_pass,
)
from mergegate_core.errors import InvocationTimeout, VerdictParseError
from mergegate_core.verdict import Issue, Outcome, ReviewVerdict, Severity


def _pass(source="code-reviewer"):
    return ReviewVerdict(outcome=Outcome.PASS, source=source, raw="VERDICT: PASS")


def _fail(*severities, source="code-reviewer"):
    issues = tuple(Issue(description=f"issue {i}", severity=s) for i, s in enumerate(severities))
    return ReviewVerdict(outcome=Outcome.FAIL, issues=issues, source=source, raw="VERDICT: FAIL")


class TestPolicies:
    def test_call_site_policies(self):
        assert SINGLE_PASS_ERROR_POLICY == FailurePolicy.FAIL_CLOSED
        assert CHUNK_ERROR_POLICY == FailurePolicy.FAIL_OPEN
        assert PRE_MERGE_ERROR_POLICY == FailurePolicy.FAIL_CLOSED


class TestAggregateSinglePass:
    def test_primary_warning_only_and_adversarial_pass_is_pass(self):
        decision = aggregate_single_pass(_fail(Severity.WARNING), _pass("adversarial-reviewer"))
        assert decision.allowed is True

    def test_primary_pass_and_adversarial_blocking_is_fail(self):
        decision = aggregate_single_pass(_pass(), _fail(Severity.BLOCKING, source="adversarial-reviewer"))
        assert decision.allowed is False
        assert "adversarial-reviewer" in decision.reasons[0]

    def test_warning_primary_does_not_mask_blocking_adversarial(self):
        decision = aggregate_single_pass(
            _fail(Severity.WARNING), _fail(Severity.BLOCKING, source="adversarial-reviewer")
        )
        assert decision.allowed is False

    def test_primary_blocking_alone(self):
        assert aggregate_single_pass(_fail(Severity.WARNING, Severity.BLOCKING)).allowed is False

    def test_fail_without_issues_does_not_block(self):
        assert aggregate_single_pass(_fail()).allowed is True

    def test_both_pass(self):
        decision = aggregate_single_pass(_pass(), _pass("adversarial-reviewer"))
        assert decision.allowed is True
        assert len(decision.verdicts) == 2

    def test_error_fails_closed(self):
        decision = aggregate_single_pass(InvocationTimeout("code-reviewer", 120), _pass("adversarial-reviewer"))
        assert decision.allowed is False
        assert "timed out" in decision.reasons[0]

    def test_parse_error_fails_closed(self):
        decision = aggregate_single_pass(_pass(), VerdictParseError("No 'VERDICT:' line found"))
        assert decision.allowed is False

    def test_error_under_fail_open_is_ignored(self):
        decision = aggregate_single_pass(
            InvocationTimeout("code-reviewer", 120), policy=FailurePolicy.FAIL_OPEN
        )
        assert decision.allowed is True
        assert len(decision.errors) == 1


class TestAggregateChunks:
    def test_blocking_in_any_file_fails_batch(self):
        results = [
            ChunkResult("a.py", _pass()),
            ChunkResult("b.py", _fail(Severity.BLOCKING)),
            ChunkResult("c.py", _fail(Severity.WARNING)),
        ]
        summary = aggregate_chunks(results, total_files=3)
        assert summary.allowed is False
        assert (summary.reviewed, summary.blocking, summary.warnings) == (3, 1, 1)

    def test_oversized_and_errors_are_skipped_not_blocking(self):
        results = [
            ChunkResult("a.py", _pass()),
            ChunkResult("big.py", skipped_reason="900 lines > 800 chunk size"),
            ChunkResult("flaky.py", error=InvocationTimeout("code-reviewer", 120)),
        ]
        summary = aggregate_chunks(results, total_files=3)
        assert summary.allowed is True
        assert (summary.reviewed, summary.skipped) == (1, 2)

    def test_errors_block_under_fail_closed(self):
        results = [ChunkResult("flaky.py", error=InvocationTimeout("code-reviewer", 120))]
        summary = aggregate_chunks(results, total_files=1, policy=FailurePolicy.FAIL_CLOSED)
        assert summary.allowed is False

    def test_render(self):
        results = [
            ChunkResult("a.py", _pass()),
            ChunkResult("b.py", _fail(Severity.BLOCKING)),
            ChunkResult("big.py", skipped_reason="too large"),
        ]
        text = aggregate_chunks(results, total_files=3).render()
        assert "=== Issues in b.py ===" in text
        assert "Reviewed: 2/3 files" in text
        assert "Skipped (too large or errors): 1 files" in text
        assert "Blocking issues: 1" in text
        assert "Warnings: 0" in text
