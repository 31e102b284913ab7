"""Tests for reviewer implementations.

Shared API behaviour (timeout mapping, error-to-status conversion, persona
selection) lives in APIReviewer and is tested once via a lightweight stub.
Provider-specific tests cover only what differs: the SDK client setup.
"""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from mergegate_core.prompts import DEFAULT_SYSTEM_PROMPT, SYSTEM_PROMPTS
from mergegate_core.providers.anthropic import AnthropicReviewer
from mergegate_core.providers.base import APIReviewer, ReviewerResult, ReviewerTimeout
from mergegate_core.providers.cli import CLIReviewer
from mergegate_core.providers.factory import get_reviewer
from mergegate_core.providers.openai import OpenAIReviewer


class _StubAPIReviewer(APIReviewer):
    """Minimal concrete subclass used to test APIReviewer shared behaviour."""

    def __init__(self, response="VERDICT: PASS", exc=None):
        self.response = response
        self.exc = exc
        self.calls = []

    def _call_api(self, system_prompt: str, user_prompt: str, timeout: float) -> str:
        self.calls.append((system_prompt, user_prompt, timeout))
        if self.exc:
            raise self.exc
        return self.response


# ---------------------------------------------------------------------------
# APIReviewer shared behaviour
# ---------------------------------------------------------------------------


class TestAPIReviewer:
    def test_success_returns_zero_status(self):
        result = _StubAPIReviewer().review("code-reviewer", "prompt", 30)
        assert result == ReviewerResult(output="VERDICT: PASS", returncode=0)

    def test_agent_selects_persona(self):
        reviewer = _StubAPIReviewer()
        reviewer.review("adversarial-reviewer", "prompt", 30)
        assert reviewer.calls[0][0] == SYSTEM_PROMPTS["adversarial-reviewer"]

    def test_unknown_agent_uses_default_persona(self):
        reviewer = _StubAPIReviewer()
        reviewer.review(None, "prompt", 30)
        assert reviewer.calls[0][0] == DEFAULT_SYSTEM_PROMPT

    def test_timeout_is_forwarded(self):
        reviewer = _StubAPIReviewer()
        reviewer.review("code-reviewer", "prompt", 42)
        assert reviewer.calls[0][2] == 42

    def test_timeout_error_raises_reviewer_timeout(self):
        with pytest.raises(ReviewerTimeout):
            _StubAPIReviewer(exc=TimeoutError("slow")).review("code-reviewer", "prompt", 5)

    def test_api_error_becomes_non_zero_status(self):
        result = _StubAPIReviewer(exc=RuntimeError("rate limited")).review("code-reviewer", "prompt", 5)
        assert result.returncode == 1
        assert "rate limited" in result.output

    def test_no_retry_on_failure(self):
        reviewer = _StubAPIReviewer(exc=RuntimeError("boom"))
        reviewer.review("code-reviewer", "prompt", 5)
        assert len(reviewer.calls) == 1


# ---------------------------------------------------------------------------
# CLIReviewer
# ---------------------------------------------------------------------------


class TestCLIReviewer:
    def test_agent_flag_appended(self):
        reviewer = CLIReviewer(["claude", "-p"])
        assert reviewer.build_argv("code-reviewer") == ["claude", "-p", "--agent", "code-reviewer"]
        assert reviewer.build_argv(None) == ["claude", "-p"]

    def test_empty_command_rejected(self):
        with pytest.raises(ValueError):
            CLIReviewer([])

    def test_prompt_on_stdin_and_streams_combined(self, mocker):
        run = mocker.patch(
            "mergegate_core.providers.cli.subprocess.run",
            return_value=MagicMock(stdout="VERDICT: PASS\n", returncode=0),
        )
        result = CLIReviewer(["claude", "-p"]).review("code-reviewer", "the prompt", 120)

        assert result == ReviewerResult(output="VERDICT: PASS\n", returncode=0)
        kwargs = run.call_args.kwargs
        assert kwargs["input"] == "the prompt"
        assert kwargs["stderr"] == subprocess.STDOUT
        assert kwargs["timeout"] == 120

    def test_non_zero_exit_passed_through(self, mocker):
        mocker.patch(
            "mergegate_core.providers.cli.subprocess.run",
            return_value=MagicMock(stdout="crash", returncode=3),
        )
        result = CLIReviewer(["claude"]).review(None, "p", 10)
        assert result.returncode == 3
        assert result.output == "crash"

    def test_timeout_raises(self, mocker):
        mocker.patch(
            "mergegate_core.providers.cli.subprocess.run",
            side_effect=subprocess.TimeoutExpired(cmd="claude", timeout=10, output=b"partial"),
        )
        with pytest.raises(ReviewerTimeout) as exc_info:
            CLIReviewer(["claude"]).review(None, "p", 10)
        assert exc_info.value.output == "partial"

    def test_missing_executable(self, mocker):
        mocker.patch("mergegate_core.providers.cli.subprocess.run", side_effect=FileNotFoundError())
        result = CLIReviewer(["/no/such/claude"]).review(None, "p", 10)
        assert result.returncode == 127
        assert "/no/such/claude" in result.output

    def test_unrunnable_executable(self, mocker):
        mocker.patch(
            "mergegate_core.providers.cli.subprocess.run",
            side_effect=PermissionError(13, "Permission denied"),
        )
        result = CLIReviewer(["./claude"]).review("code-reviewer", "p", 10)
        assert result.returncode == 126
        assert "Permission denied" in result.output

    def test_has_agent_looks_in_agent_dirs(self, tmp_path):
        (tmp_path / "code-reviewer.md").write_text("---\nname: code-reviewer\n---\n")
        reviewer = CLIReviewer(["claude"], agent_dirs=[str(tmp_path / "missing"), str(tmp_path)])
        assert reviewer.has_agent("code-reviewer") is True
        assert reviewer.has_agent("adversarial-reviewer") is False

    def test_has_agent_without_dirs(self):
        assert CLIReviewer(["claude"]).has_agent("anything") is True


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


class TestGetReviewer:
    def test_cli_default(self):
        reviewer = get_reviewer({"reviewer": "cli", "reviewer_command": ["claude", "-p"]})
        assert isinstance(reviewer, CLIReviewer)

    def test_cli_agent_dirs_passed_through(self):
        config = {"reviewer": "cli", "reviewer_command": ["claude"], "agent_dirs": ["/agents"]}
        assert get_reviewer(config).agent_dirs == ["/agents"]

    def test_unknown_raises(self):
        with pytest.raises(ValueError):
            get_reviewer({"reviewer": "gemini"})


# ---------------------------------------------------------------------------
# Provider-specific
# ---------------------------------------------------------------------------


class TestAnthropicReviewer:
    def test_raises_import_error_without_sdk(self):
        with patch.dict("sys.modules", {"anthropic": None}):
            with pytest.raises(ImportError):
                AnthropicReviewer(api_key="key")

    def test_model_is_claude(self):
        assert "claude" in AnthropicReviewer.MODEL


class TestOpenAIReviewer:
    def test_raises_import_error_without_sdk(self, monkeypatch):
        import mergegate_core.providers.openai as openai_mod

        monkeypatch.setattr(openai_mod, "_OpenAI", None)
        with pytest.raises(ImportError):
            OpenAIReviewer(api_key="key")

    def test_model_is_gpt(self):
        assert "gpt" in OpenAIReviewer.MODEL
