"""OpenAI AI provider implementation."""

import logging

from wine_catalog.core.enums import AIProvider
from wine_catalog.services.ai.client import AIClient

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o"


class OpenAIClient(AIClient):
    """OpenAI GPT AI client."""

    provider = AIProvider.OPENAI

    def __init__(self, api_key: str, model: str | None = None, timeout: float | None = None):
        """
        Initialize the OpenAI client.

        Args:
            api_key: OpenAI API key.
            model: Model name (defaults to gpt-4o).
            timeout: Per-request timeout in seconds, passed to the SDK.
        """
        try:
            import openai
        except ImportError:
            raise ImportError(
                "openai package is required. Install with: pip install openai"
            )

        kwargs = {"api_key": api_key}
        if timeout is not None:
            kwargs["timeout"] = timeout
        self.client = openai.OpenAI(**kwargs)
        self.model = model or DEFAULT_MODEL

    def complete_json(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = 1000,
        temperature: float = 0.1,
    ) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            response_format={"type": "json_object"},
        )
        raw_response = response.choices[0].message.content or ""
        logger.debug(f"Raw AI response: {raw_response[:500]}")
        return raw_response
