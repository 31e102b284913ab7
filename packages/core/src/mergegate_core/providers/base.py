"""Reviewer capability.

The engine never inspects a reviewer's reasoning: a reviewer takes a prompt
and returns text plus an exit status. All timeout, cache and error policy
lives in mergegate_core.invoker, so reviewers stay swappable.

Two shapes are provided:
  - BaseReviewer: the bare capability, implemented directly by CLIReviewer
  - APIReviewer: Template Method for SDK-backed reviewers
        review() → system_prompt_for(agent)
                 → _call_api()   ← only this differs per provider
                 → ReviewerResult
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from mergegate_core.prompts import system_prompt_for

logger = logging.getLogger(__name__)

_MAX_TOKENS = 4096


@dataclass(frozen=True)
class ReviewerResult:
    output: str
    returncode: int = 0


class ReviewerTimeout(Exception):
    """The reviewer exceeded its wall-clock budget and was terminated."""

    def __init__(self, timeout: float, output: str = ""):
        super().__init__(f"reviewer timed out after {timeout:g}s")
        self.timeout = timeout
        self.output = output


class BaseReviewer(ABC):
    @abstractmethod
    def review(self, agent: str | None, prompt: str, timeout: float) -> ReviewerResult:
        """Run one review and return its raw output and exit status.

        Must raise ReviewerTimeout when the timeout fires, after making sure
        nothing is left running.
        """

    def has_agent(self, agent: str) -> bool:
        """Whether ``agent`` can be reviewed with. Built-in personas always can."""
        return True


class APIReviewer(BaseReviewer):
    MAX_TOKENS: int = _MAX_TOKENS

    def review(self, agent: str | None, prompt: str, timeout: float) -> ReviewerResult:
        system = system_prompt_for(agent)
        try:
            text = self._call_api(system, prompt, timeout)
        except self._timeout_errors() as e:
            raise ReviewerTimeout(timeout, str(e)) from e
        except Exception as e:
            # SDK errors become a non-zero status so the invoker classifies
            # them as a process failure, same as a crashed CLI.
            logger.error("%s API call failed: %s", self.__class__.__name__, e)
            return ReviewerResult(output=f"{type(e).__name__}: {e}", returncode=1)
        return ReviewerResult(output=text or "", returncode=0)

    @abstractmethod
    def _call_api(self, system_prompt: str, user_prompt: str, timeout: float) -> str:
        """Make a single API call and return the raw text response."""

    def _timeout_errors(self) -> tuple[type[BaseException], ...]:
        return (TimeoutError,)
