"""AI provider implementations."""

from wine_catalog.services.ai.providers.anthropic import AnthropicClient
from wine_catalog.services.ai.providers.openai import OpenAIClient

__all__ = ["AnthropicClient", "OpenAIClient"]
