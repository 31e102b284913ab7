"""CLI entry point for mergegate.

Commands:
  review     pre-commit review of the staged diff
  pre-merge  gate in front of `gh pr merge`
  lock       human merge authorization (authorize, check, status, list, revoke)
  firewall   vet a command, file path or hook payload before it runs
  audit      view and clear the blocked-command log
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
import yaml
from rich.logging import RichHandler

from mergegate_cli.commands.audit import audit_cmd
from mergegate_cli.commands.firewall import firewall_cmd
from mergegate_cli.commands.lock import lock_cmd
from mergegate_cli.commands.premerge import premerge_cmd
from mergegate_cli.commands.review import review_cmd
from mergegate_cli.output import EXIT_BLOCKED, EXIT_HARD_BLOCK, err_console


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False, show_time=verbose)],
        force=True,
    )


@click.group()
@click.version_option(
    version=importlib.metadata.version("mergegate"),
    prog_name="mergegate",
)
@click.option(
    "--config",
    "config_path",
    default=".mergegate.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="MERGEGATE_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Log diagnostics to stderr.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Review and merge gating for AI coding agents."""
    from mergegate_core.config import load_config

    _configure_logging(verbose)
    ctx.ensure_object(dict)

    try:
        config = load_config(config_path)
    except (OSError, ValueError, yaml.YAMLError) as e:
        err_console.print(f"Invalid configuration: {e}", markup=False, style="red")
        # A firewall that cannot read its config must still block.
        code = EXIT_HARD_BLOCK if ctx.invoked_subcommand == "firewall" else EXIT_BLOCKED
        click.echo("BLOCKED: Invalid mergegate configuration")
        ctx.exit(code)

    ctx.obj["config"] = config


main.add_command(review_cmd)
main.add_command(premerge_cmd)
main.add_command(lock_cmd)
main.add_command(firewall_cmd)
main.add_command(audit_cmd)
