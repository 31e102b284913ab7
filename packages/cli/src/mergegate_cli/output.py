"""Exit codes and the two output streams.

stdout carries exactly one ``BLOCKED: ...`` line per blocking outcome so
hook runners can surface it; every explanation goes to stderr.
"""

from __future__ import annotations

from typing import NoReturn

import click
from rich.console import Console
from rich.markup import escape

EXIT_ALLOWED = 0
EXIT_BLOCKED = 1
EXIT_HARD_BLOCK = 2

err_console = Console(stderr=True, highlight=False, soft_wrap=True)


def block(summary: str, code: int = EXIT_BLOCKED) -> NoReturn:
    """Print the one-line summary and exit with code."""
    click.echo(f"BLOCKED: {summary}")
    click.get_current_context().exit(code)


def say(tag: str, style: str, message: str = "") -> None:
    """One ``[tag] message`` line on stderr, tag coloured by style."""
    err_console.print(f"[{style}]\\[{tag}][/{style}] {escape(message)}")
