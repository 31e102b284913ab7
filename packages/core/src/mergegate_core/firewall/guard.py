"""Pattern firewall.

Vets a command, a file path or a tool name before it executes and blocks
known ways of getting around the review gate and the merge lock. Every block
is appended to the blocked-command log; nothing is ever read back from it.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, Iterator

from mergegate_core.errors import InputError
from mergegate_core.firewall.rules import CommandContext, Rule, default_rules
from mergegate_core.firewall.shell import Segment, split_segments
from mergegate_store.models import BlockedCommandLogEntry

if TYPE_CHECKING:
    from mergegate_store.base import BlockedCommandLog

logger = logging.getLogger(__name__)

# bash -c "bash -c '...'" nesting beyond this is refused outright.
MAX_NESTING = 5

_FILE_PATH_KEYS = ("file_path", "notebook_path")


@dataclass(frozen=True)
class FirewallDecision:
    allowed: bool
    rule: str | None = None
    message: str = ""

    @property
    def summary(self) -> str:
        return self.message.splitlines()[0] if self.message else ""


ALLOW = FirewallDecision(allowed=True)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def iter_segments(command: str, depth: int = 0) -> Iterator[Segment]:
    """Yield every segment of command, descending into ``sh -c`` and ``eval`` scripts."""
    if depth > MAX_NESTING:
        raise InputError(f"Shell nesting deeper than {MAX_NESTING} levels")
    for segment in split_segments(command):
        yield segment
        for script in segment.nested_commands():
            yield from iter_segments(script, depth + 1)


class Firewall:
    def __init__(
        self,
        rules: list[Rule],
        log: BlockedCommandLog,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.rules = rules
        self.log = log
        self.clock = clock

    @classmethod
    def from_config(cls, config: dict, log: BlockedCommandLog) -> Firewall:
        return cls(default_rules(config), log)

    def _block(self, rule: Rule, message: str, raw: str) -> FirewallDecision:
        self.log.append(BlockedCommandLogEntry(timestamp=self.clock(), rule_triggered=rule.name, raw_command=raw))
        logger.warning("Blocked by %s: %s", rule.name, raw)
        return FirewallDecision(allowed=False, rule=rule.name, message=message)

    def check_command(self, command: str, branch: str | None = None) -> FirewallDecision:
        """Raises InputError if the command cannot be tokenized."""
        context = CommandContext(branch=branch)
        for segment in iter_segments(command):
            for rule in self.rules:
                message = rule.match_segment(segment, context)
                if message:
                    return self._block(rule, message, command)
        return ALLOW

    def check_file_path(self, path: str) -> FirewallDecision:
        for rule in self.rules:
            message = rule.match_path(path)
            if message:
                return self._block(rule, message, path)
        return ALLOW

    def check_tool(self, tool_name: str) -> FirewallDecision:
        for rule in self.rules:
            message = rule.match_tool(tool_name)
            if message:
                return self._block(rule, message, tool_name)
        return ALLOW

    def check_hook_payload(self, payload: str | dict, branch: str | None = None) -> FirewallDecision:
        """Vet a tool-use hook event: ``{"tool_name": ..., "tool_input": {...}}``.

        Raises InputError for a payload that is not valid JSON or lacks the
        expected shape; callers treat that as a block.
        """
        if isinstance(payload, str):
            try:
                payload = json.loads(payload)
            except json.JSONDecodeError as e:
                raise InputError(f"Invalid hook input (malformed JSON): {e}") from e
        if not isinstance(payload, dict):
            raise InputError("Invalid hook input: expected a JSON object")

        tool_name = payload.get("tool_name")
        tool_input = payload.get("tool_input") or {}
        if not isinstance(tool_name, str) or not isinstance(tool_input, dict):
            raise InputError("Invalid hook input: missing tool_name or tool_input")

        decision = self.check_tool(tool_name)
        if not decision.allowed:
            return decision

        command = tool_input.get("command")
        if command is not None:
            if not isinstance(command, str):
                raise InputError("Invalid hook input: tool_input.command must be a string")
            decision = self.check_command(command, branch=branch)
            if not decision.allowed:
                return decision

        for key in _FILE_PATH_KEYS:
            path = tool_input.get(key)
            if path is None:
                continue
            if not isinstance(path, str):
                raise InputError(f"Invalid hook input: tool_input.{key} must be a string")
            decision = self.check_file_path(path)
            if not decision.allowed:
                return decision
        return ALLOW
