from __future__ import annotations

from mergegate_core.providers.base import BaseReviewer
from mergegate_core.providers.cli import CLIReviewer


def get_reviewer(config: dict) -> BaseReviewer:
    kind = config.get("reviewer", "cli")
    if kind == "cli":
        return CLIReviewer(config["reviewer_command"], agent_dirs=config.get("agent_dirs"))
    if kind == "anthropic":
        from mergegate_core.providers.anthropic import AnthropicReviewer

        return AnthropicReviewer(api_key=config["anthropic_api_key"])
    if kind == "openai":
        from mergegate_core.providers.openai import OpenAIReviewer

        return OpenAIReviewer(api_key=config["openai_api_key"])
    raise ValueError(f"Unknown reviewer: {kind!r}. Choose 'cli', 'anthropic' or 'openai'.")
