"""AI client interface and provider abstraction."""

import json
from abc import ABC, abstractmethod
from typing import Any

from wine_catalog.config import AIConfig
from wine_catalog.core.enums import AIProvider


def strip_code_fences(raw_response: str) -> str:
    """Remove markdown code fences that models sometimes wrap JSON in."""
    json_str = raw_response.strip()
    if json_str.startswith("```json"):
        json_str = json_str[7:]
    if json_str.startswith("```"):
        json_str = json_str[3:]
    if json_str.endswith("```"):
        json_str = json_str[:-3]
    return json_str.strip()


def parse_json_response(raw_response: str) -> Any:
    """
    Parse a model response as JSON.

    Raises:
        json.JSONDecodeError: if the response is not valid JSON.
    """
    return json.loads(strip_code_fences(raw_response))


class AIClient(ABC):
    """Abstract base class for AI providers."""

    provider: AIProvider
    model: str

    @abstractmethod
    def complete_json(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = 1000,
        temperature: float = 0.1,
    ) -> str:
        """
        Ask the model for a JSON object.

        Args:
            system_prompt: Role and output-format instructions.
            user_prompt: The request itself.
            max_tokens: Response length cap.
            temperature: Sampling temperature.

        Returns:
            The raw response text (expected to be a JSON object).

        Raises:
            Exception: provider SDK errors propagate to the caller.
        """
        pass


def get_ai_client(
    provider: AIProvider | str,
    api_key: str,
    model: str | None = None,
    timeout: float | None = None,
) -> AIClient:
    """
    Factory function to get an AI client for the specified provider.

    Raises:
        ValueError: If the provider is not supported.
    """
    if isinstance(provider, str):
        provider = AIProvider(provider.lower())

    if provider == AIProvider.ANTHROPIC:
        from wine_catalog.services.ai.providers.anthropic import AnthropicClient

        return AnthropicClient(api_key=api_key, model=model, timeout=timeout)
    elif provider == AIProvider.OPENAI:
        from wine_catalog.services.ai.providers.openai import OpenAIClient

        return OpenAIClient(api_key=api_key, model=model, timeout=timeout)
    else:
        raise ValueError(f"Unsupported AI provider: {provider}")


def create_client_from_config(config: AIConfig, timeout: float | None = None) -> AIClient | None:
    """Build the configured client, or None when no API key is set."""
    if not config.configured:
        return None
    return get_ai_client(
        provider=config.provider,
        api_key=config.api_key,
        model=config.model,
        timeout=timeout,
    )
