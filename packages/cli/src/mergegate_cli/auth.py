"""Where `mergegate pre-merge` gets its GitHub token.

A token already in the loaded config (GITHUB_TOKEN) or in GH_TOKEN wins.
Otherwise the token of the local gh session is borrowed: the gate sits in
front of `gh pr merge`, so that session is normally there.
"""

from __future__ import annotations

import logging
import os
import subprocess

logger = logging.getLogger(__name__)

_GH_TOKEN_TIMEOUT = 5


def _gh_session_token() -> str | None:
    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=_GH_TOKEN_TIMEOUT,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("gh auth token unavailable: %s", e)
        return None
    if result.returncode != 0:
        logger.debug("gh auth token exited %d", result.returncode)
        return None
    return result.stdout.strip() or None


def resolve_github_token(config: dict | None = None) -> str | None:
    """Return a token for the GitHub API, or None when there is none."""
    token = (config or {}).get("github_token") or os.environ.get("GITHUB_TOKEN") or os.environ.get("GH_TOKEN")
    if token:
        return token
    token = _gh_session_token()
    if token:
        logger.debug("Using the gh CLI session token")
    return token
