import os
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_CONFIG_PATH = ".mergegate.yml"

DEFAULT_CONFIG: dict = {
    # Pre-commit triage thresholds, in diff lines.
    "max_full_lines": 1000,
    "chunk_ceiling": 800,
    "skip_ceiling": 2500,
    "timeout_seconds": 120,
    "reviewer": "cli",  # "cli" | "anthropic" | "openai"
    "reviewer_command": ["claude", "-p", "--tools", "", "--no-session-persistence"],
    "primary_agent": "code-reviewer",
    "adversarial_agent": "adversarial-reviewer",  # None disables the second reviewer
    # Where the CLI reviewer keeps agent definitions; None skips the lookup.
    "agent_dirs": ["~/.claude/agents", ".claude/agents"],
    "premerge_agent": None,  # None = reviewer default persona
    "cache_enabled": True,
    "cache_dir": None,  # None = <git-dir>/mergegate-review-cache
    "cache_ttl_days": 30,
    "lock_dir": "~/.mergegate/merge-locks",
    "lock_ttl_seconds": 1800,
    "blocked_log": "~/.mergegate/blocked-commands.log",
    "targeted_diff_threshold": 1000,
    "context_lines": 50,
    "informational_checks": ["Pages changed", "Header rules"],
    "protected_branches": ["main", "master"],
    "comment_on_block": False,
    "issue_on_block": False,
}

_LIST_KEYS = ("reviewer_command", "agent_dirs", "informational_checks", "protected_branches")


def load_config(config_path: Optional[str] = None, cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .mergegate.yml in the current directory (or MERGEGATE_CONFIG)
      3. CLI argument overrides
    """
    config = {**DEFAULT_CONFIG}
    for key in _LIST_KEYS:
        config[key] = list(DEFAULT_CONFIG[key])

    path = Path(config_path or os.environ.get("MERGEGATE_CONFIG") or DEFAULT_CONFIG_PATH)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        if not isinstance(file_config, dict):
            raise ValueError(f"{path} must contain a YAML mapping, got {type(file_config).__name__}")
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    # The reviewer executable can be relocated without editing the argv.
    reviewer_cli = os.environ.get("MERGEGATE_REVIEWER_CLI")
    if reviewer_cli:
        config["reviewer_command"] = [reviewer_cli, *config["reviewer_command"][1:]]

    # Resolve credentials from environment variables
    config["github_token"] = os.environ.get("GITHUB_TOKEN")
    config["anthropic_api_key"] = os.environ.get("ANTHROPIC_API_KEY")
    config["openai_api_key"] = os.environ.get("OPENAI_API_KEY")

    return config
