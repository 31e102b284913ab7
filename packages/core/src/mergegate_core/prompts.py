"""Prompt text sent to reviewers.

Kept apart from orchestration so wording changes never touch gate logic.
The verdict format blocks must stay in sync with mergegate_core.verdict.
"""

from __future__ import annotations

_PREAMBLE = """IMPORTANT: You are being invoked as a focused analysis tool.
Do NOT output any environment check or preamble.
Begin your response directly with the verdict in the specified format below."""

_FOCUS = """Focus on:
1. Correctness: Logic errors, null handling, race conditions
2. Security: Hardcoded secrets, injection vulnerabilities, auth issues
3. Error Handling: Silent failures, missing error cases
4. Completeness: Edge cases, incomplete implementations"""

_COMMIT_FORMAT = """CRITICAL: Respond with this exact format:

VERDICT: [PASS or FAIL]

[If FAIL, list each issue:]
ISSUE: [one-line description]
SEVERITY: [BLOCKING or WARNING]
LOCATION: [file:line]
DETAILS: [explanation and fix]

[If PASS:]
No blocking issues found."""

_MERGE_INSTRUCTIONS = """You are analyzing a GitHub PR to determine if it's safe to merge.

{preamble}

IMPORTANT - PR DIFF FORMAT:
The PR diff may use smart filtering to reduce size while preserving critical context:
- **Full diffs**: Files with inline comments or security-critical files (auth, payment, db, etc.)
- **Truncated diffs**: Code files without comments (first/last lines shown, CI passed)
- **Summarized**: Data files validated by CI (JSON, lock files, etc.)

If a file shows "CI validated data file (not shown)", trust CI validation unless:
1. The file type is security-critical (credentials, secrets)
2. Inline comments specifically flag issues with that file
3. CI checks show failures

Identify:
1. **Unresolved concerns** - Issues raised but not addressed in subsequent commits
2. **Requested changes** - Explicit change requests not yet implemented
3. **Blocking issues** - Security concerns, bugs flagged by reviewers
4. **CI failures** - Failed checks or tests
5. **Inline file comments** - Comments posted directly on code lines (outdated and resolved ones are already filtered out)

Rules:
- FAILURE conclusion = blocking issue that must be addressed; PENDING = cannot merge yet
- If all CI checks pass, defer to CI unless a reviewer explicitly flags a security risk
- Distinguish "reviewer suggested" (non-blocking) from "reviewer blocked" (blocking)
- Automated reviewers are informational; prioritize human reviewers and CI

Respond in this format:

VERDICT: [SAFE_TO_MERGE or BLOCK_MERGE]

[If BLOCK_MERGE, list each issue:]
ISSUE: [one-line description]
SOURCE: [reviewer or "CI"]
LOCATION: [file:line if inline comment]
STATUS: [UNRESOLVED or UNCLEAR]
DETAILS: [what needs to happen]

[If SAFE_TO_MERGE:]
All review comments appear resolved or are non-blocking. [Brief summary]

Be conservative but pragmatic. If CI passes and concerns look addressed, allow merge."""

# Personas used by the API-backed reviewers, which have no agent registry of
# their own. The CLI reviewer selects its persona with --agent instead.
SYSTEM_PROMPTS = {
    "code-reviewer": (
        "You are a strict and precise senior code reviewer. You only flag real defects "
        "and mark an issue BLOCKING only when the change must not be committed as-is."
    ),
    "adversarial-reviewer": (
        "You are an adversarial reviewer. Assume the author missed something: look for "
        "security holes, broken invariants, unhandled failure paths and ways the change "
        "can be abused. Mark an issue BLOCKING only when you can name the concrete failure."
    ),
}
DEFAULT_SYSTEM_PROMPT = "You are a careful, conservative reviewer of code changes and pull requests."


def system_prompt_for(agent: str | None) -> str:
    return SYSTEM_PROMPTS.get(agent or "", DEFAULT_SYSTEM_PROMPT)


def commit_review_prompt(diff_text: str) -> str:
    return f"""You are performing a pre-commit code review. Analyze the diff below and identify issues BEFORE code is committed.

{_PREAMBLE}

{_FOCUS}

{_COMMIT_FORMAT}

Review this diff:

```diff
{diff_text}
```"""


def chunk_review_prompt(path: str, diff_text: str) -> str:
    return f"""Reviewing file: {path}

{_PREAMBLE}

{_FOCUS}

{_COMMIT_FORMAT}

Review this diff:

```diff
{diff_text}
```"""


def merge_review_prompt(
    pr_number: int,
    title: str,
    review_decision: str,
    status_checks: str,
    reviews: str,
    comments: str,
    inline_comments: str,
    diff_text: str,
) -> str:
    instructions = _MERGE_INSTRUCTIONS.format(preamble=_PREAMBLE)
    return f"""{instructions}

PR #{pr_number}: {title}
Review Decision: {review_decision or "NONE"}

=== CI Check Status ===
{status_checks}

=== Reviews ===
{reviews}

=== Review Comments ===
{comments}

=== Active Inline Review Comments (outdated/resolved filtered out) ===
{inline_comments}

=== PR Diff (for context) ===
```diff
{diff_text}
```"""
