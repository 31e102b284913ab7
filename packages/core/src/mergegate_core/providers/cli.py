"""Reviewer backed by an external CLI process.

The prompt goes to the child's standard input; standard output and standard
error are combined into a single text stream, as a terminal would show them.
"""

from __future__ import annotations

import logging
import subprocess
import time
from pathlib import Path

from mergegate_core.providers.base import BaseReviewer, ReviewerResult, ReviewerTimeout

logger = logging.getLogger(__name__)

# Conventional shell statuses for "not found" and "found but not runnable".
_NOT_FOUND = 127
_NOT_EXECUTABLE = 126


class CLIReviewer(BaseReviewer):
    def __init__(self, command: list[str], agent_dirs: list[str] | None = None):
        if not command:
            raise ValueError("reviewer_command must name an executable")
        self.command = list(command)
        self.agent_dirs = agent_dirs

    def has_agent(self, agent: str) -> bool:
        """Look for ``<agent>.md`` in the agent directories; without any, assume it exists."""
        if self.agent_dirs is None:
            return True
        return any((Path(d).expanduser() / f"{agent}.md").is_file() for d in self.agent_dirs)

    def build_argv(self, agent: str | None) -> list[str]:
        argv = list(self.command)
        if agent:
            argv.extend(["--agent", agent])
        return argv

    def review(self, agent: str | None, prompt: str, timeout: float) -> ReviewerResult:
        argv = self.build_argv(agent)
        logger.debug("Running reviewer: %s", " ".join(argv))
        start = time.monotonic()
        try:
            # subprocess.run kills the child when the timeout expires.
            result = subprocess.run(
                argv,
                input=prompt,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            partial = e.output or ""
            if isinstance(partial, bytes):
                partial = partial.decode("utf-8", errors="replace")
            raise ReviewerTimeout(timeout, partial) from e
        except FileNotFoundError:
            return ReviewerResult(output=f"Reviewer CLI not found: {argv[0]}", returncode=_NOT_FOUND)
        except OSError as e:
            return ReviewerResult(output=f"Could not run reviewer CLI {argv[0]}: {e}", returncode=_NOT_EXECUTABLE)

        logger.info("%s completed in %.0fs", agent or argv[0], time.monotonic() - start)
        return ReviewerResult(output=result.stdout or "", returncode=result.returncode)
