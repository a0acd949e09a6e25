"""Anthropic (Claude) AI provider implementation."""

import logging

from wine_catalog.core.enums import AIProvider
from wine_catalog.services.ai.client import AIClient

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"


class AnthropicClient(AIClient):
    """Anthropic Claude AI client."""

    provider = AIProvider.ANTHROPIC

    def __init__(self, api_key: str, model: str | None = None, timeout: float | None = None):
        """
        Initialize the Anthropic client.

        Args:
            api_key: Anthropic API key.
            model: Model name (defaults to claude-sonnet-4-20250514).
            timeout: Per-request timeout in seconds, passed to the SDK.
        """
        try:
            import anthropic
        except ImportError:
            raise ImportError(
                "anthropic package is required. Install with: pip install anthropic"
            )

        kwargs = {"api_key": api_key}
        if timeout is not None:
            kwargs["timeout"] = timeout
        self.client = anthropic.Anthropic(**kwargs)
        self.model = model or DEFAULT_MODEL

    def complete_json(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = 1000,
        temperature: float = 0.1,
    ) -> str:
        # Claude has no JSON mode; the prompts demand a bare JSON object
        response = self.client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            temperature=temperature,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
        )
        raw_response = response.content[0].text if response.content else ""
        logger.debug(f"Raw AI response: {raw_response[:500]}")
        return raw_response
