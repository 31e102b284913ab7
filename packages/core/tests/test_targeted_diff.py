"""Tests for the pre-merge targeted diff."""

from mergegate_core.diff import Diff
from mergegate_core.triage import build_targeted_diff, truncate_file_diff


def _file(path: str, lines: int) -> str:
    body = "".join(f"+line {i}\n" for i in range(lines - 2))
    return f"diff --git a/{path} b/{path}\n@@ -0,0 +1,{lines - 2} @@\n{body}"


def _large(*files: tuple[str, int]) -> Diff:
    # Pad with an ordinary file so the total is always over the threshold.
    return Diff.parse("".join(_file(p, n) for p, n in files) + _file("src/padding.py", 1000))


class TestSmallDiff:
    def test_passes_through_untouched(self):
        diff = Diff.parse(_file("src/a.py", 20) + _file("package-lock.json", 30))
        result = build_targeted_diff(diff, commented_paths=(), ci_passed=True)
        assert result.text == diff.raw
        assert result.summarized == []


class TestLargeDiff:
    def test_security_critical_json_never_summarized(self):
        diff = _large(("config/secrets.json", 40))
        result = build_targeted_diff(diff, commented_paths=(), ci_passed=True)
        assert "config/secrets.json" in result.full
        assert result.summarized == []

    def test_data_file_summarized_when_ci_passed(self):
        diff = _large(("web/yarn.lock", 40))
        result = build_targeted_diff(diff, commented_paths=(), ci_passed=True)
        assert result.summarized == ["web/yarn.lock"]
        assert "--- CI validated data file (not shown) ---" in result.text
        assert "Changes: +38 -0 lines" in result.text

    def test_data_file_verbatim_when_ci_not_passed(self):
        diff = _large(("web/yarn.lock", 40))
        result = build_targeted_diff(diff, commented_paths=(), ci_passed=False)
        assert "web/yarn.lock" in result.full
        assert result.summarized == []

    def test_commented_file_verbatim(self):
        diff = _large(("src/view.py", 300))
        result = build_targeted_diff(diff, commented_paths={"src/view.py"}, ci_passed=True)
        assert "src/view.py" in result.full
        assert "+line 150" in result.text

    def test_code_truncated_when_ci_passed(self):
        diff = _large(("src/view.py", 300))
        result = build_targeted_diff(diff, commented_paths=(), ci_passed=True)
        assert "src/view.py" in result.truncated
        assert "... [200 lines truncated - no review comments, CI passed] ..." in result.text

    def test_code_verbatim_when_ci_failed(self):
        diff = _large(("src/view.py", 300))
        result = build_targeted_diff(diff, commented_paths=(), ci_passed=False)
        assert result.truncated == []
        assert "lines truncated" not in result.text

    def test_header_counts(self):
        diff = _large(("src/auth.py", 20), ("data.json", 20))
        result = build_targeted_diff(diff, commented_paths=(), ci_passed=True)
        assert result.text.startswith(f"=== Smart Diff Context ({diff.total_lines} total lines) ===")
        assert "Files shown in full: 1" in result.text
        assert "Files truncated (no comments, CI passed): 1" in result.text
        assert "Data files summarized (CI validated): 1" in result.text

    def test_custom_context_lines(self):
        diff = _large(("src/view.py", 100))
        result = build_targeted_diff(diff, commented_paths=(), ci_passed=True, context_lines=10)
        assert "... [80 lines truncated" in result.text


class TestTruncateFileDiff:
    def test_short_file_untouched(self):
        fd = Diff.parse(_file("a.py", 100)).files[0]
        text, elided = truncate_file_diff(fd, 50)
        assert elided == 0
        assert text == fd.text

    def test_keeps_head_and_tail(self):
        fd = Diff.parse(_file("a.py", 150)).files[0]
        text, elided = truncate_file_diff(fd, 50)
        lines = text.splitlines()
        assert elided == 50
        assert lines[0] == "diff --git a/a.py b/a.py"
        assert lines[-1] == "+line 147"
