"""audit command: human-facing viewer for the blocked-command log."""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone

import click
from rich.console import Console
from rich.table import Table

console = Console()


def _entries(ctx):
    from mergegate_cli.stores import build_blocked_log

    return build_blocked_log(ctx.obj["config"]).entries()


def _print_entries(entries) -> None:
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Time (UTC)", width=20)
    table.add_column("Rule", style="bold red")
    table.add_column("Command", overflow="fold")
    for entry in entries:
        table.add_row(entry.timestamp.strftime("%Y-%m-%d %H:%M:%S"), entry.rule_triggered, entry.raw_command)
    console.print(table)


@click.group("audit")
def audit_cmd():
    """Inspect commands the firewall has blocked."""


@audit_cmd.command("show")
@click.pass_context
def show_cmd(ctx):
    """Show every blocked attempt, oldest first."""
    entries = _entries(ctx)
    if not entries:
        console.print("[yellow]No blocked commands logged yet.[/yellow]")
        return
    console.print("=== Blocked Command Attempts ===")
    _print_entries(entries)


@audit_cmd.command("count")
@click.pass_context
def count_cmd(ctx):
    """Count blocked attempts, broken down by rule."""
    entries = _entries(ctx)
    console.print(f"Total blocked attempts: {len(entries)}")
    if not entries:
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Rule", style="bold")
    table.add_column("Blocked", justify="right")
    for rule, count in Counter(e.rule_triggered for e in entries).most_common():
        table.add_row(rule, str(count))
    console.print(table)


@audit_cmd.command("today")
@click.pass_context
def today_cmd(ctx):
    """Show attempts blocked today (UTC)."""
    today = datetime.now(timezone.utc).date()
    entries = [e for e in _entries(ctx) if e.timestamp.astimezone(timezone.utc).date() == today]
    console.print(f"=== Blocked Today ({today.isoformat()}) ===")
    if not entries:
        console.print("None")
        return
    _print_entries(entries)


@audit_cmd.command("clear")
@click.confirmation_option(prompt="Clear the blocked-command log?")
@click.pass_context
def clear_cmd(ctx):
    """Delete the blocked-command log."""
    from mergegate_cli.stores import build_blocked_log

    console.print("Clearing log...")
    build_blocked_log(ctx.obj["config"]).clear()
    console.print("Log cleared.")
