"""Factories for stores, reviewers and the hosting client.

These live in the CLI so neither mergegate_core nor mergegate_store know
about the .mergegate.yml format. Commands import them at call time, which
keeps them patchable in tests.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from pathlib import Path
from typing import TYPE_CHECKING

import click

if TYPE_CHECKING:
    from mergegate_core.gh.client import HostingClient
    from mergegate_core.invoker import AgentInvoker
    from mergegate_core.lock import MergeLockManager
    from mergegate_store.base import BlockedCommandLog, CacheStore

logger = logging.getLogger(__name__)

_CACHE_DIRNAME = "mergegate-review-cache"
_API_KEYS = {"anthropic": ("anthropic_api_key", "ANTHROPIC_API_KEY"), "openai": ("openai_api_key", "OPENAI_API_KEY")}


def build_cache(config: dict) -> CacheStore:
    """Verdict cache selection:

      cache_enabled: false  → NoOpCacheStore
      cache_dir: <path>     → FileCacheStore at that path
      (default)             → FileCacheStore under the repository's git dir
    """
    from mergegate_cli.git import GitError, git_dir
    from mergegate_store.filesystem import FileCacheStore
    from mergegate_store.noop import NoOpCacheStore

    if not config.get("cache_enabled", True):
        return NoOpCacheStore()

    directory = config.get("cache_dir")
    if not directory:
        try:
            directory = git_dir() / _CACHE_DIRNAME
        except GitError as e:
            logger.warning("Review cache disabled, no git directory: %s", e)
            return NoOpCacheStore()
    return FileCacheStore(Path(directory), ttl=timedelta(days=config.get("cache_ttl_days", 30)))


def build_lock_manager(config: dict) -> MergeLockManager:
    from mergegate_core.lock import MergeLockManager
    from mergegate_store.filesystem import FileLockStore

    return MergeLockManager(
        FileLockStore(config["lock_dir"]),
        ttl=timedelta(seconds=config.get("lock_ttl_seconds", 1800)),
    )


def build_blocked_log(config: dict) -> BlockedCommandLog:
    from mergegate_store.filesystem import FileBlockedCommandLog

    return FileBlockedCommandLog(config["blocked_log"])


def build_invoker(config: dict, cache: CacheStore) -> AgentInvoker:
    """Reviewer plus cache behind the bounded invoker.

    Raises click.ClickException for a missing API key or an unknown backend.
    """
    from mergegate_core.invoker import AgentInvoker
    from mergegate_core.providers.factory import get_reviewer

    kind = config.get("reviewer", "cli")
    if kind in _API_KEYS:
        key, env_var = _API_KEYS[kind]
        if not config.get(key):
            raise click.ClickException(f"{env_var} environment variable is not set.")
    try:
        reviewer = get_reviewer(config)
    except (ValueError, ImportError) as e:
        raise click.ClickException(str(e)) from e
    return AgentInvoker(reviewer, cache, timeout=config.get("timeout_seconds", 120))


def build_hosting_client(repo: str, token: str) -> HostingClient:
    from mergegate_core.gh.client import GithubHostingClient

    return GithubHostingClient(repo, token=token)
