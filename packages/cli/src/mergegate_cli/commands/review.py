"""review command: pre-commit review of the staged diff."""

from __future__ import annotations

import click

from mergegate_cli.output import block, err_console, say


def _read_diff(staged: bool) -> str:
    from mergegate_cli.git import GitError, staged_diff

    stdin = click.get_text_stream("stdin")
    if not staged and not stdin.isatty():
        return stdin.read()
    try:
        return staged_diff()
    except GitError as e:
        raise click.ClickException(f"Could not read staged changes: {e}") from e


@click.command("review")
@click.option("--staged", is_flag=True, help="Review `git diff --cached` instead of a diff on stdin.")
@click.option("--max-lines", type=int, default=None, help="Largest diff reviewed in a single pass.")
@click.option("--chunk-size", type=int, default=None, help="Largest single file reviewed in chunked mode.")
@click.option("--skip-threshold", type=int, default=None, help="Diffs above this many lines skip agent review.")
@click.option("--timeout", type=float, default=None, help="Seconds allowed per reviewer call.")
@click.pass_context
def review_cmd(
    ctx,
    staged: bool,
    max_lines: int | None,
    chunk_size: int | None,
    skip_threshold: int | None,
    timeout: float | None,
):
    """Review staged changes before they are committed.

    Reads a unified diff on stdin; with --staged, or when stdin is a
    terminal, runs `git diff --cached` itself. Exits 0 when the commit may
    proceed and 1 when it is blocked.

    \b
    Thresholds and timeout default to .mergegate.yml:
      max_full_lines, chunk_ceiling, skip_ceiling, timeout_seconds
    """
    from mergegate_core.diff import Diff
    from mergegate_core.precommit import run_precommit_review
    from mergegate_cli.stores import build_cache, build_invoker

    overrides = {
        "max_full_lines": max_lines,
        "chunk_ceiling": chunk_size,
        "skip_ceiling": skip_threshold,
        "timeout_seconds": timeout,
    }
    config = {**ctx.obj["config"], **{k: v for k, v in overrides.items() if v is not None}}

    diff = Diff.parse(_read_diff(staged))

    cache = build_cache(config)
    ctx.call_on_close(cache.close)
    invoker = build_invoker(config, cache)

    outcome = run_precommit_review(diff, invoker, config)

    if outcome.report:
        err_console.print()
        err_console.print(outcome.report, markup=False)
        err_console.print()

    if not outcome.allowed:
        for reason in outcome.reasons:
            say("review", "red", reason)
        block(outcome.reasons[0] if outcome.reasons else "Code review did not pass")

    for reason in outcome.reasons:
        say("review", "blue", reason)
    label = outcome.mode.value if outcome.mode else "skipped"
    say("review", "green", f"Review passed ({label})")
