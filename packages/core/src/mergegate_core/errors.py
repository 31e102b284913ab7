"""Error taxonomy for the gating engine.

Components convert local parse and format failures into one of these kinds;
the CLI turns them into exit codes and human-readable explanations. The
original diagnostic text is kept on the exception for operator debugging.
"""

from __future__ import annotations


class GateError(Exception):
    """Base class for every failure the gate reports to a user."""


class InputError(GateError):
    """Malformed event payload or missing required field. Always fails closed."""


class InvocationError(GateError):
    """The external reviewer did not complete a review."""

    def __init__(self, agent: str, message: str, diagnostic: str = ""):
        super().__init__(message)
        self.agent = agent
        self.diagnostic = diagnostic


class InvocationTimeout(InvocationError):
    def __init__(self, agent: str, timeout: float, diagnostic: str = ""):
        super().__init__(agent, f"{agent} timed out after {timeout:g}s", diagnostic)
        self.timeout = timeout


class ProcessFailure(InvocationError):
    def __init__(self, agent: str, returncode: int, diagnostic: str = ""):
        super().__init__(agent, f"{agent} exited with error code {returncode}", diagnostic)
        self.returncode = returncode


class VerdictParseError(GateError):
    """Reviewer output carried no verdict marker, or an unrecognised value."""

    def __init__(self, message: str, source: str = "", raw: str = ""):
        super().__init__(message)
        self.source = source
        self.raw = raw


class HardPolicyViolation(GateError):
    """A non-overridable state check failed. Never cached, never retried."""

    def __init__(self, message: str, details: list[str] | None = None):
        super().__init__(message)
        self.details = details or []


class AuthorizationMissing(GateError):
    """Review passed but no valid human merge authorization exists."""

    def __init__(self, pr_number: int, authorize_command: str, retry_command: str, ttl_seconds: int):
        super().__init__(f"Merge of PR #{pr_number} requires human authorization")
        self.pr_number = pr_number
        self.authorize_command = authorize_command
        self.retry_command = retry_command
        self.ttl_seconds = ttl_seconds


class HostingError(GateError):
    """The hosting platform could not be queried. Fails closed."""
