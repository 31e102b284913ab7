"""Shell command tokenizer for the firewall.

Commands are split into segments at control operators (``&&``, ``||``,
``;``, ``|``, ``&``, newlines and parentheses) that appear outside quotes.
Rules then look at each segment's program and arguments, so a forbidden
token only matches where it would actually execute as a command, and text
inside a quoted commit message never does.
"""

from __future__ import annotations

import os
import re
import shlex
from dataclasses import dataclass, field

from mergegate_core.errors import InputError

_PUNCTUATION = "();<>|&\n"
_REDIRECT_CHARS = frozenset("<>&")
_ASSIGNMENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*=")

SHELLS = frozenset({"bash", "sh", "zsh", "dash", "ksh"})

# Wrappers that run their arguments as a command. Values are the flags that
# consume a following value, and the number of leading positionals that are
# not part of the wrapped command.
_TRANSPARENT_PREFIXES: dict[str, tuple[frozenset[str], int]] = {
    "builtin": (frozenset(), 0),
    "command": (frozenset(), 0),
    "env": (frozenset({"-u", "-C", "-S"}), 0),
    "exec": (frozenset({"-a"}), 0),
    "nice": (frozenset({"-n"}), 0),
    "nohup": (frozenset(), 0),
    "sudo": (frozenset({"-u", "-g", "-h", "-p", "-C", "-D"}), 0),
    "time": (frozenset({"-f", "-o"}), 0),
    "timeout": (frozenset({"-s", "-k", "--signal", "--kill-after"}), 1),
    "xargs": (frozenset({"-I", "-n", "-L", "-P", "-d", "-E", "-s", "-a"}), 0),
}


@dataclass(frozen=True)
class Redirect:
    operator: str
    target: str


@dataclass(frozen=True)
class Segment:
    """One simple command: its words (quotes removed) and redirections."""

    words: tuple[str, ...] = ()
    redirects: tuple[Redirect, ...] = field(default_factory=tuple)

    @property
    def program_index(self) -> int:
        """Index of the word that names the executed program.

        Skips leading ``NAME=value`` assignments and transparent prefixes
        such as ``sudo`` or ``env``. Equals len(words) when there is none.
        """
        i = 0
        words = self.words
        while i < len(words):
            word = words[i]
            if _ASSIGNMENT_RE.match(word):
                i += 1
                continue
            prefix = _TRANSPARENT_PREFIXES.get(os.path.basename(word))
            if prefix is None:
                return i
            value_flags, positionals = prefix
            i += 1
            while i < len(words) and (words[i].startswith("-") or _ASSIGNMENT_RE.match(words[i])):
                if words[i] == "--":
                    i += 1
                    break
                i += 2 if words[i] in value_flags else 1
            i += positionals
        return len(words)

    @property
    def argv(self) -> tuple[str, ...]:
        return self.words[self.program_index :]

    @property
    def program(self) -> str:
        argv = self.argv
        return os.path.basename(argv[0]) if argv else ""

    @property
    def args(self) -> tuple[str, ...]:
        return self.argv[1:]

    def nested_commands(self) -> list[str]:
        """Scripts this segment hands to another interpreter.

        Covers ``bash -c SCRIPT`` (and the other common shells, with the
        ``-c`` possibly bundled as in ``-lc``) and ``eval``.
        """
        program, args = self.program, self.args
        if program == "eval":
            return [" ".join(args)] if args else []
        if program not in SHELLS:
            return []
        for i, arg in enumerate(args):
            if arg.startswith("-") and not arg.startswith("--") and "c" in arg[1:]:
                return [args[i + 1]] if i + 1 < len(args) else []
        return []


def _is_operator(token: str) -> bool:
    return bool(token) and all(c in _PUNCTUATION for c in token)


def _is_redirect(token: str) -> bool:
    if not set(token) <= _REDIRECT_CHARS or token in ("&", "&&"):
        return False
    return token[0] != "&" or token.startswith("&>")


def tokenize(command: str) -> list[str]:
    """shlex tokens with quotes removed and operators kept as tokens.

    Raises InputError when the command cannot be tokenized (for example an
    unterminated quote), since an unreadable command cannot be vetted.
    """
    lexer = shlex.shlex(command.replace("\\\n", ""), posix=True, punctuation_chars=_PUNCTUATION)
    lexer.whitespace = " \t\r"
    lexer.whitespace_split = True
    lexer.commenters = ""
    try:
        return list(lexer)
    except ValueError as e:
        raise InputError(f"Could not parse command: {e}") from e


def split_segments(command: str) -> list[Segment]:
    segments: list[Segment] = []
    words: list[str] = []
    redirects: list[Redirect] = []
    pending: str | None = None

    def flush():
        if words or redirects:
            segments.append(Segment(tuple(words), tuple(redirects)))
        words.clear()
        redirects.clear()

    for token in tokenize(command):
        if _is_operator(token):
            if _is_redirect(token):
                if words and words[-1].isdigit():
                    words.pop()  # file descriptor, as in 2>&1
                pending = token
            else:
                pending = None
                flush()
            continue
        if pending is not None:
            redirects.append(Redirect(pending, token))
            pending = None
            continue
        words.append(token)
    flush()
    return segments
