"""firewall command: vet a command, file path or tool-use hook event."""

from __future__ import annotations

import click

from mergegate_cli.output import EXIT_HARD_BLOCK, block, err_console


@click.command("firewall")
@click.option("--command", "command", default=None, help="Shell command to vet.")
@click.option("--file-path", "file_path", default=None, help="File about to be written or edited.")
@click.pass_context
def firewall_cmd(ctx, command: str | None, file_path: str | None):
    """Block known bypasses of the review gate and merge lock.

    Without options, reads a tool-use hook event as JSON on stdin:

    \b
      {"tool_name": "Bash", "tool_input": {"command": "..."}}
      {"tool_name": "Write", "tool_input": {"file_path": "..."}}

    Exits 0 to allow and 2 to block. Input that cannot be parsed is
    blocked too.
    """
    from mergegate_core.errors import InputError
    from mergegate_core.firewall.guard import Firewall
    from mergegate_cli.git import current_branch
    from mergegate_cli.stores import build_blocked_log

    firewall = Firewall.from_config(ctx.obj["config"], build_blocked_log(ctx.obj["config"]))

    try:
        if command is not None or file_path is not None:
            decision = None
            if command is not None:
                decision = firewall.check_command(command, branch=current_branch())
            if file_path is not None and (decision is None or decision.allowed):
                decision = firewall.check_file_path(file_path)
        else:
            decision = firewall.check_hook_payload(click.get_text_stream("stdin").read(), branch=current_branch())
    except InputError as e:
        err_console.print(f"BLOCKED: {e}", markup=False, style="red")
        block("Invalid hook input", code=EXIT_HARD_BLOCK)

    if not decision.allowed:
        err_console.print(f"[red]BLOCKED ({decision.rule}):[/red]")
        err_console.print(decision.message, markup=False)
        block(decision.summary, code=EXIT_HARD_BLOCK)
