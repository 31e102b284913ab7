"""pre-merge command: the gate in front of `gh pr merge`."""

from __future__ import annotations

import click

from mergegate_cli.output import block, err_console, say

_NEUTRAL_ACTIONS = (
    "  1. View PR comments: gh pr view {n} --comments",
    "  2. Check inline code comments on GitHub",
    "  3. Address all review findings",
    "  4. Push fixes and wait for checks to pass",
)
_RULE = "━" * 46


def pr_number_from_args(gh_args: tuple[str, ...]) -> int | None:
    """First purely numeric argument, as in `gh pr merge 42 --squash`."""
    for arg in gh_args:
        if arg.isdigit():
            return int(arg)
    return None


def _tip() -> None:
    from mergegate_core.premerge import RESOLVED_TIP

    err_console.print()
    err_console.print(f"   TIP: {RESOLVED_TIP}", markup=False)
    err_console.print()


def _report_violation(e, pr_number: int) -> None:
    say("pre-merge", "red", f"{e}:")
    for line in e.details:
        err_console.print(line, markup=False)
    err_console.print()
    say("pre-merge", "red", "Actions:")
    for line in _NEUTRAL_ACTIONS:
        say("pre-merge", "red", line.format(n=pr_number))
    _tip()


def _report_authorization(e) -> None:
    err_console.print()
    say("pre-merge", "red", _RULE)
    say("pre-merge", "red", "MERGE AUTHORIZATION REQUIRED")
    say("pre-merge", "red", _RULE)
    err_console.print()
    say("pre-merge", "red", "Review passed, but merge requires human authorization.")
    say("pre-merge", "red")
    say("pre-merge", "red", f"To authorize (valid {e.ttl_seconds // 60} min):")
    say("pre-merge", "red", f"  {e.authorize_command}")
    say("pre-merge", "red")
    say("pre-merge", "red", f"Then retry: {e.retry_command}")
    err_console.print()


@click.command(
    "pre-merge",
    context_settings={"ignore_unknown_options": True, "allow_extra_args": True},
)
@click.option("--repo", default=None, help="GitHub repository in owner/name format. Defaults to the origin remote.")
@click.argument("gh_args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def premerge_cmd(ctx, repo: str | None, gh_args: tuple[str, ...]):
    """Gate a pull-request merge on review state, an AI review and human authorization.

    GH_ARGS are the arguments of the intercepted `gh pr merge` call; the
    first numeric one is the PR number, otherwise the current branch's open
    PR is used. Exits 0 when the merge may proceed and 1 when it is blocked.

    \b
    Required environment variables:
      GITHUB_TOKEN         GitHub token (or an authenticated gh CLI session)
    """
    from mergegate_core.errors import AuthorizationMissing, HardPolicyViolation, HostingError
    from mergegate_core.premerge import PreMergeGate
    from mergegate_cli.auth import resolve_github_token
    from mergegate_cli.git import current_branch, repo_slug
    from mergegate_cli.stores import build_hosting_client, build_invoker, build_lock_manager
    from mergegate_store.noop import NoOpCacheStore

    config = ctx.obj["config"]

    repo = repo or repo_slug()
    if not repo:
        raise click.ClickException("Could not determine the GitHub repository. Pass --repo owner/name.")

    token = resolve_github_token(config)
    if not token:
        raise click.ClickException(
            "No GitHub token found. Set GITHUB_TOKEN (or GH_TOKEN) or run `gh auth login` first."
        )

    client = build_hosting_client(repo, token)

    pr_number = pr_number_from_args(gh_args)
    if pr_number is None:
        branch = current_branch()
        try:
            pr_number = client.find_pr_for_branch(branch) if branch else None
        except HostingError as e:
            say("pre-merge", "red", str(e))
            block("Could not look up the pull request for this branch")
        if pr_number is None:
            say("pre-merge", "red", f"No open pull request found for branch {branch or '(detached HEAD)'}")
            block("No pull request to merge")

    # Merge verdicts are never cached.
    gate = PreMergeGate(client, build_invoker(config, NoOpCacheStore()), build_lock_manager(config), config)

    try:
        decision = gate.evaluate(pr_number)
    except HostingError as e:
        say("pre-merge", "red", f"Failed to fetch PR data: {e}")
        block(f"Could not fetch PR #{pr_number}")
    except HardPolicyViolation as e:
        _report_violation(e, pr_number)
        block(f"{e} - merge blocked")
    except AuthorizationMissing as e:
        _report_authorization(e)
        block(f"PR #{pr_number} requires human merge authorization")

    if decision.verdict is not None:
        err_console.print()
        err_console.print(decision.verdict.raw, markup=False)
        err_console.print()

    if not decision.allowed:
        say("pre-merge", "red", decision.reason)
        if decision.verdict is not None:
            err_console.print()
            err_console.print("   Address the issues above before merging.")
            _tip()
            err_console.print("   To bypass (emergency only):")
            err_console.print(f"   OBTAIN EXPLICIT PERMISSION and then command gh pr merge {pr_number}")
            err_console.print()
        block(decision.reason)

    say("pre-merge", "green", "Merge authorization verified")
    say("pre-merge", "green", decision.reason)
