"""Profile generation for catalog enrichment."""

import asyncio
import json
import logging
from typing import Protocol

from pydantic import ValidationError

from wine_catalog.core.errors import ProfileGenerationFailed
from wine_catalog.core.schema import WineProfile, WineRecord
from wine_catalog.services.ai.client import AIClient, parse_json_response
from wine_catalog.services.ai.prompts import PROFILE_SYSTEM_PROMPT, build_profile_prompt

logger = logging.getLogger(__name__)


class ProfileGenerator(Protocol):
    """Anything that can produce a tasting profile for a catalog entry."""

    async def generate(self, record: WineRecord) -> WineProfile: ...


class AIProfileGenerator:
    """ProfileGenerator backed by an AI provider."""

    def __init__(self, ai_client: AIClient, timeout: float = 10.0, max_tokens: int = 1200):
        self.ai_client = ai_client
        self.timeout = timeout
        self.max_tokens = max_tokens

    async def generate(self, record: WineRecord) -> WineProfile:
        """
        Generate a profile for ``record``.

        Raises:
            ProfileGenerationFailed: on timeout, transport error, or a
                response that is not a JSON object.
        """
        call = asyncio.to_thread(
            self.ai_client.complete_json,
            PROFILE_SYSTEM_PROMPT,
            build_profile_prompt(record),
            self.max_tokens,
            0.3,
        )
        try:
            raw_response = await asyncio.wait_for(call, timeout=self.timeout)
        except TimeoutError as e:
            raise ProfileGenerationFailed(
                f"Profile generation timed out after {self.timeout}s"
            ) from e
        except Exception as e:
            raise ProfileGenerationFailed(f"Profile generation failed: {e}") from e

        try:
            data = parse_json_response(raw_response or "")
        except json.JSONDecodeError as e:
            raise ProfileGenerationFailed(f"Unparseable profile response: {e}") from e
        if not isinstance(data, dict):
            raise ProfileGenerationFailed("Profile response is not a JSON object")

        try:
            return WineProfile.model_validate(data)
        except ValidationError as e:
            raise ProfileGenerationFailed(f"Malformed profile: {e}") from e
