"""Small wrappers around the git executable."""

from __future__ import annotations

import logging
import re
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)

_GIT_TIMEOUT = 30
# git@github.com:owner/name.git, https://github.com/owner/name(.git)
_GITHUB_REMOTE_RE = re.compile(r"github\.com[:/]([^/\s]+/[^/\s]+?)(?:\.git)?/?$")


class GitError(Exception):
    """A git command could not be run or exited non-zero."""


def _git(*args: str) -> str:
    try:
        result = subprocess.run(
            ["git", *args],
            capture_output=True,
            text=True,
            timeout=_GIT_TIMEOUT,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired) as e:
        raise GitError(f"git {args[0]} failed: {e}") from e
    if result.returncode != 0:
        raise GitError(result.stderr.strip() or f"git {args[0]} exited with code {result.returncode}")
    return result.stdout


def staged_diff() -> str:
    return _git("diff", "--cached")


def git_dir() -> Path:
    return Path(_git("rev-parse", "--git-dir").strip())


def current_branch() -> str | None:
    """The checked-out branch name, or None outside a repo or on a detached HEAD."""
    try:
        name = _git("rev-parse", "--abbrev-ref", "HEAD").strip()
    except GitError as e:
        logger.debug("Could not determine current branch: %s", e)
        return None
    return None if name in ("", "HEAD") else name


def repo_slug(remote: str = "origin") -> str | None:
    """owner/name of a GitHub remote, or None if it is not one."""
    try:
        url = _git("remote", "get-url", remote).strip()
    except GitError as e:
        logger.debug("Could not read remote %s: %s", remote, e)
        return None
    match = _GITHUB_REMOTE_RE.search(url)
    return match.group(1) if match else None
