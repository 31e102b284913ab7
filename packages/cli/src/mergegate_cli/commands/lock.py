"""lock command: human-granted merge authorizations."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from mergegate_cli.output import say

console = Console()


def _minutes(seconds: float) -> int:
    return int(seconds // 60)


@click.group("lock")
def lock_cmd():
    """Grant, inspect and revoke merge authorizations.

    An authorization lets `mergegate pre-merge` allow one PR's merge for a
    limited time after its review passes. Only a human should run
    `authorize`; the firewall blocks agents from doing so.
    """


@lock_cmd.command("authorize")
@click.argument("pr_number", type=int)
@click.argument("reason", required=False, default="")
@click.pass_context
def authorize_cmd(ctx, pr_number: int, reason: str):
    """Authorize merging PR_NUMBER."""
    from mergegate_cli.stores import build_lock_manager

    manager = build_lock_manager(ctx.obj["config"])
    manager.authorize(pr_number, reason=reason)
    say("merge-lock", "green", f"Authorization created for PR #{pr_number}")
    say("merge-lock", "green", f"Valid for {_minutes(manager.ttl.total_seconds())} minutes")


# `auth` is accepted as a short alias.
lock_cmd.add_command(authorize_cmd, "auth")


@lock_cmd.command("check")
@click.argument("pr_number", type=int)
@click.pass_context
def check_cmd(ctx, pr_number: int):
    """Exit 0 if PR_NUMBER is authorized, 1 if not."""
    from mergegate_core.lock import LockState
    from mergegate_cli.stores import build_lock_manager

    state = build_lock_manager(ctx.obj["config"]).check(pr_number)
    if state == LockState.AUTHORIZED:
        click.echo("Authorized")
        return
    click.echo("Not authorized")
    ctx.exit(1)


@lock_cmd.command("status")
@click.argument("pr_number", type=int)
@click.pass_context
def status_cmd(ctx, pr_number: int):
    """Show who authorized PR_NUMBER and when the authorization expires."""
    from mergegate_core.lock import LockState, authorize_command
    from mergegate_cli.stores import build_lock_manager

    manager = build_lock_manager(ctx.obj["config"])
    status = manager.status(pr_number)

    if status.state == LockState.AUTHORIZED:
        console.print(f"[green]PR #{pr_number} is authorized[/green]")
        console.print(f"  Authorized by: {status.lock.authorized_by}", markup=False)
        console.print(f"  Reason: {status.lock.reason}", markup=False)
        console.print(f"  Expires in: {_minutes(status.remaining.total_seconds())} minutes")
        return

    if status.expired:
        console.print(f"[yellow]PR #{pr_number} authorization expired[/yellow]")
        return

    console.print(f"[red]PR #{pr_number} is NOT authorized[/red]")
    console.print()
    console.print(f"To authorize merge (valid {_minutes(manager.ttl.total_seconds())} minutes):")
    console.print(f"  {authorize_command(pr_number)}", markup=False)


@lock_cmd.command("list")
@click.pass_context
def list_cmd(ctx):
    """List every active authorization."""
    from mergegate_cli.stores import build_lock_manager

    active = build_lock_manager(ctx.obj["config"]).active()
    if not active:
        console.print("[yellow]No active merge authorizations.[/yellow]")
        return

    table = Table(title="Active Merge Authorizations", show_header=True, header_style="bold cyan")
    table.add_column("PR", style="bold", width=6)
    table.add_column("Authorized By")
    table.add_column("Reason", max_width=40)
    table.add_column("Expires In", justify="right")

    for status in sorted(active, key=lambda s: s.pr_number):
        table.add_row(
            f"#{status.pr_number}",
            status.lock.authorized_by,
            status.lock.reason,
            f"{_minutes(status.remaining.total_seconds())} min",
        )

    console.print(table)


@lock_cmd.command("revoke")
@click.argument("pr_number", type=int)
@click.pass_context
def revoke_cmd(ctx, pr_number: int):
    """Withdraw the authorization for PR_NUMBER."""
    from mergegate_cli.stores import build_lock_manager

    if build_lock_manager(ctx.obj["config"]).revoke(pr_number):
        say("merge-lock", "green", f"Authorization for PR #{pr_number} revoked")
    else:
        say("merge-lock", "yellow", f"PR #{pr_number} had no authorization")
