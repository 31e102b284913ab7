"""Firewall rules: one class per known way around the gate.

Each rule matches a single command segment (or a file path, or a tool
name) and returns the message to show when it blocks, or None. Rules are
independent; the firewall stops at the first one that matches.

Known gap: a GraphQL merge mutation supplied through ``gh api graphql
--input <file>`` lives in the file, not the command, and is not matched.
"""

from __future__ import annotations

import os
import re
from abc import ABC
from dataclasses import dataclass
from typing import Iterable

from mergegate_core.firewall.shell import Segment

_MERGE_ENDPOINT_RE = re.compile(r"pulls/\d+/merge(?:$|[^A-Za-z0-9_])")
_GITHUB_API_MERGE_RE = re.compile(r"api\.github\.com/.*pulls/\d+/merge(?:$|[^A-Za-z0-9_])")
_HTTP_CLIENTS = frozenset({"curl", "wget", "http", "https", "xh"})

# git options that take a separate value before the subcommand.
_GIT_VALUE_OPTIONS = frozenset({"-C", "-c", "--git-dir", "--work-tree", "--namespace", "--exec-path", "--config-env"})
# gh options that take a separate value before the subcommand.
_GH_VALUE_OPTIONS = frozenset({"-R", "--repo", "--hostname"})
# `gh api` options that take a separate value.
_GH_API_VALUE_OPTIONS = frozenset(
    {
        "-X",
        "--method",
        "-f",
        "--raw-field",
        "-F",
        "--field",
        "-H",
        "--header",
        "--input",
        "-q",
        "--jq",
        "-t",
        "--template",
        "--cache",
        "-p",
        "--preview",
    }
)

_VERIFYING_SUBCOMMANDS = frozenset({"commit", "push", "merge", "am", "rebase", "cherry-pick", "revert"})
# Subcommands where a bare -n means --no-verify.
_SHORT_N_SUBCOMMANDS = frozenset({"commit", "push"})
# Short flags that consume the rest of their cluster, or the next word, as a value.
_SHORT_VALUE_FLAGS = {
    "commit": frozenset("mFCctS"),
    "push": frozenset("o"),
    "merge": frozenset("mFsX"),
    "rebase": frozenset("sXx"),
}
_LONG_VALUE_OPTIONS = {
    "commit": frozenset(
        {
            "--message",
            "--file",
            "--author",
            "--date",
            "--template",
            "--reuse-message",
            "--reedit-message",
            "--fixup",
            "--squash",
            "--cleanup",
            "--trailer",
            "--pathspec-from-file",
        }
    ),
    "push": frozenset({"--push-option", "--receive-pack", "--exec", "--repo"}),
    "merge": frozenset({"--message", "--file", "--strategy", "--strategy-option"}),
    "rebase": frozenset({"--strategy", "--strategy-option", "--exec", "--onto"}),
}
# git accepts abbreviated long options; anything from --no-v up counts as --no-verify.
_NO_VERIFY_MIN_PREFIX = len("--no-v")

MERGE_ALTERNATIVE = (
    "Use `gh pr merge <number>` instead; it routes through pre-merge review and merge authorization.\n\n"
    "If gh pr merge is failing, report the failure and ask the human to merge manually."
)


@dataclass(frozen=True)
class CommandContext:
    """Facts about where a command would run. Supplied by the caller."""

    branch: str | None = None


@dataclass(frozen=True)
class GitInvocation:
    options: tuple[str, ...]
    subcommand: str
    args: tuple[str, ...]


def git_invocation(segment: Segment) -> GitInvocation | None:
    """Split a ``git`` segment into global options, subcommand and arguments."""
    if segment.program != "git":
        return None
    args = segment.args
    i = 0
    while i < len(args) and args[i].startswith("-"):
        i += 2 if args[i] in _GIT_VALUE_OPTIONS else 1
    if i >= len(args):
        return None
    return GitInvocation(options=args[:i], subcommand=args[i], args=args[i + 1 :])


def gh_words(args: Iterable[str], value_options: frozenset[str] = _GH_VALUE_OPTIONS) -> list[tuple[str, bool]]:
    """Return each positional word of a gh command line with whether a flag came before it.

    Values of options in ``value_options`` are skipped, so ``-R owner/repo``
    never reads as a subcommand.
    """
    words: list[tuple[str, bool]] = []
    flagged = False
    pending_value = False
    for arg in args:
        if pending_value:
            pending_value = False
        elif arg.startswith("-") and len(arg) > 1:
            flagged = True
            pending_value = "=" not in arg and arg in value_options
        else:
            words.append((arg, flagged))
    return words


class Rule(ABC):
    """Base rule. Subclasses override whichever matchers apply to them."""

    name = "RULE"

    def match_segment(self, segment: Segment, context: CommandContext) -> str | None:
        return None

    def match_path(self, path: str) -> str | None:
        return None

    def match_tool(self, tool_name: str) -> str | None:
        return None


class NoVerifyRule(Rule):
    """Skipping commit/push hooks: ``--no-verify``, ``-n`` or a hooksPath override."""

    name = "NO_VERIFY"

    message = (
        "--no-verify is forbidden. Code review is mandatory.\n\n"
        "If review times out, retry or raise timeout_seconds in .mergegate.yml.\n"
        "For genuine emergencies (rare), ask the human to commit manually."
    )
    short_message = "-n flag (short for --no-verify) is forbidden on git commit/push."
    hooks_message = (
        "Overriding core.hooksPath skips the review hooks and is forbidden.\n\n"
        "Commit normally and let the pre-commit review run."
    )

    def match_segment(self, segment: Segment, context: CommandContext) -> str | None:
        git = git_invocation(segment)
        if git is None or git.subcommand not in _VERIFYING_SUBCOMMANDS:
            return None
        if any(opt.lower().startswith("core.hookspath") for opt in git.options):
            return self.hooks_message
        short_values = _SHORT_VALUE_FLAGS.get(git.subcommand, frozenset())
        long_values = _LONG_VALUE_OPTIONS.get(git.subcommand, frozenset())
        args = git.args
        i = 0
        while i < len(args):
            arg = args[i]
            i += 1
            if arg == "--":
                break
            if arg.startswith("--"):
                name = arg.split("=", 1)[0]
                if len(name) >= _NO_VERIFY_MIN_PREFIX and "--no-verify".startswith(name):
                    return self.message
                if "=" not in arg and name in long_values:
                    i += 1
            elif arg.startswith("-") and len(arg) > 1:
                has_n, takes_next = self._scan_short_cluster(arg, short_values)
                if has_n and git.subcommand in _SHORT_N_SUBCOMMANDS:
                    return self.short_message
                if takes_next:
                    i += 1
        return None

    @staticmethod
    def _scan_short_cluster(arg: str, value_flags: frozenset[str]) -> tuple[bool, bool]:
        """Return (has -n, next word is a value) for a cluster such as ``-anm``."""
        for pos, ch in enumerate(arg[1:], start=2):
            if ch == "n":
                return True, False
            if ch in value_flags:
                return False, pos == len(arg)
        return False, False


class LockPathRule(Rule):
    """Any command word, redirection or file edit that touches the lock directory."""

    name = "LOCK_PATH"

    message = (
        "Access to the merge-locks directory is forbidden.\n\n"
        'Merge locks are created only by `mergegate lock authorize <PR> "<reason>"`, run by a human.'
    )
    # Commit messages and log searches may mention the directory by name.
    _TEXT_SUBCOMMANDS = frozenset({"commit", "log"})

    def __init__(self, lock_dir: str):
        expanded = os.path.normpath(os.path.expanduser(lock_dir))
        self.lock_dir = expanded
        dirname = re.escape(os.path.basename(expanded))
        self._pattern = re.compile(rf"(?:^|[^A-Za-z0-9_-]){dirname}(?:/|[^A-Za-z0-9_-]|$)")

    def _mentions(self, text: str) -> bool:
        return bool(self._pattern.search(text)) or self.lock_dir in os.path.expanduser(text)

    def match_segment(self, segment: Segment, context: CommandContext) -> str | None:
        if any(self._mentions(r.target) for r in segment.redirects):
            return self.message
        git = git_invocation(segment)
        if git is not None and git.subcommand in self._TEXT_SUBCOMMANDS:
            return None
        if any(self._mentions(word) for word in segment.words):
            return self.message
        return None

    def match_path(self, path: str) -> str | None:
        return self.message if self._mentions(path) else None


class LockAuthorizeRule(Rule):
    """The human-only ``mergegate lock authorize`` subcommand."""

    name = "LOCK_AUTHORIZE"

    message = (
        "`mergegate lock authorize` is a human-only action.\n\n"
        "Merge authorization must be granted by the human.\n"
        'Ask the human to run: mergegate lock authorize <PR> "<reason>"'
    )

    def match_segment(self, segment: Segment, context: CommandContext) -> str | None:
        args = self._mergegate_args(segment)
        if args is None:
            return None
        positionals = [a for a in args if not a.startswith("-")]
        for i, word in enumerate(positionals[:-1]):
            if word == "lock" and positionals[i + 1] in ("authorize", "auth"):
                return self.message
        return None

    @staticmethod
    def _mergegate_args(segment: Segment) -> tuple[str, ...] | None:
        if segment.program == "mergegate":
            return segment.args
        args = segment.args
        if segment.program.startswith("python") and len(args) >= 2 and args[0] == "-m":
            if args[1].split(".")[0] in ("mergegate", "mergegate_cli"):
                return args[2:]
        return None


class ApiMergeRule(Rule):
    """Raw REST calls to the pull-request merge endpoint.

    The suffix boundary keeps sub-resources such as ``merge_status`` usable.
    """

    name = "API_MERGE"

    message = (
        "Direct REST API PR merge bypasses code quality gates.\n\n"
        "This endpoint skips pre-merge review and merge authorization.\n\n" + MERGE_ALTERNATIVE + "\n"
        "Do NOT use the REST API as a workaround."
    )

    def match_segment(self, segment: Segment, context: CommandContext) -> str | None:
        if segment.program == "gh":
            words = gh_words(segment.args)
            if words[:1] and words[0][0] == "api" and any(_MERGE_ENDPOINT_RE.search(a) for a in segment.args):
                return self.message
        elif segment.program in _HTTP_CLIENTS:
            if any(_GITHUB_API_MERGE_RE.search(a) for a in segment.args):
                return self.message
        return None


class GraphQLMergeRule(Rule):
    """Inline ``mergePullRequest`` mutations sent through ``gh api graphql``."""

    name = "GRAPHQL_MERGE"

    message = "GraphQL mergePullRequest mutation bypasses code quality gates.\n\n" + MERGE_ALTERNATIVE

    def match_segment(self, segment: Segment, context: CommandContext) -> str | None:
        if segment.program != "gh":
            return None
        words = [w for w, _ in gh_words(segment.args, _GH_VALUE_OPTIONS | _GH_API_VALUE_OPTIONS)]
        if words[:1] != ["api"] or "graphql" not in words[1:]:
            return None
        if any("mergePullRequest" in a for a in segment.args):
            return self.message
        return None


class GlobalFlagMergeRule(Rule):
    """``gh -R owner/repo pr merge``: flags ahead of the subcommand dodge merge routing."""

    name = "GLOBAL_FLAG_MERGE"

    message = (
        "gh pr merge with global flags (e.g. -R repo) bypasses merge routing.\n\n"
        "Placing global flags before the subcommand skips pre-merge review and merge authorization.\n\n"
        "Use `gh pr merge <number>` (no global flags before the subcommand) instead.\n\n"
        "If gh pr merge is failing, report the failure and ask the human to merge manually."
    )

    def match_segment(self, segment: Segment, context: CommandContext) -> str | None:
        if segment.program != "gh":
            return None
        words = gh_words(segment.args)
        if [w for w, _ in words[:2]] == ["pr", "merge"] and words[1][1]:
            return self.message
        return None


class WorktreeRule(Rule):
    name = "WORKTREE"

    FORBIDDEN_TOOLS = frozenset({"EnterWorktree"})

    message = (
        "git worktree commands are forbidden.\n\n"
        "Worktrees conflict with the project workflow.\n\n"
        "For task isolation, work directly on a feature branch instead:\n"
        "  git checkout -b <branch-name>"
    )
    tool_message = (
        "The EnterWorktree tool is forbidden.\n\n"
        "Worktrees conflict with the project workflow.\n\n"
        "For task isolation, work directly on a feature branch instead:\n"
        "  git checkout -b <branch-name>"
    )

    def match_segment(self, segment: Segment, context: CommandContext) -> str | None:
        git = git_invocation(segment)
        if git is not None and git.subcommand == "worktree":
            return self.message
        return None

    def match_tool(self, tool_name: str) -> str | None:
        return self.tool_message if tool_name in self.FORBIDDEN_TOOLS else None


class ProtectedBranchCommitRule(Rule):
    name = "PROTECTED_BRANCH_COMMIT"

    def __init__(self, protected_branches: Iterable[str] = ("main", "master")):
        self.protected_branches = frozenset(protected_branches)

    def match_segment(self, segment: Segment, context: CommandContext) -> str | None:
        if context.branch not in self.protected_branches:
            return None
        git = git_invocation(segment)
        if git is not None and git.subcommand == "commit":
            return (
                f"Cannot commit directly to {context.branch}.\n\n"
                "Create a feature branch first:\n"
                "  git checkout -b <branch-name>"
            )
        return None


def default_rules(config: dict) -> list[Rule]:
    return [
        NoVerifyRule(),
        LockPathRule(config.get("lock_dir") or "~/.mergegate/merge-locks"),
        LockAuthorizeRule(),
        ApiMergeRule(),
        GraphQLMergeRule(),
        GlobalFlagMergeRule(),
        WorktreeRule(),
        ProtectedBranchCommitRule(config.get("protected_branches") or ("main", "master")),
    ]
