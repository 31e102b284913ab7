from __future__ import annotations

from mergegate_core.providers.base import APIReviewer


class AnthropicReviewer(APIReviewer):
    MODEL = "claude-sonnet-4-20250514"
    # Low temperature: the verdict marker and issue fields must come back in
    # the exact requested shape.
    TEMPERATURE = 0.2

    def __init__(self, api_key: str):
        try:
            from anthropic import Anthropic
        except ImportError:
            raise ImportError(
                "The 'anthropic' package is required for this reviewer. "
                "Install it with: pip install 'mergegate[anthropic]'"
            )
        self.client = Anthropic(api_key=api_key)

    def _call_api(self, system_prompt: str, user_prompt: str, timeout: float) -> str:
        # Imported inside the method because the anthropic package is optional;
        # __init__ already validated it is installed before we reach here.
        from anthropic.types import TextBlock

        response = self.client.messages.create(
            model=self.MODEL,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
            timeout=timeout,
        )
        text_blocks = [block.text for block in response.content if isinstance(block, TextBlock)]
        return "".join(text_blocks).strip()

    def _timeout_errors(self):
        from anthropic import APITimeoutError

        return (APITimeoutError, TimeoutError)
