"""
Knowledge Extraction Client
===========================

Wraps one knowledge-service call per candidate line with a hard timeout
and validation of the structured response.

Outcomes:
- ExtractedWine: the line is a wine
- None: the line is not a wine (headers, notes, empty responses)
- ExtractionTimeout / ExtractionFailed: the caller should fall back
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Protocol

from pydantic import ValidationError

from wine_catalog.core.enums import ExtractionSource
from wine_catalog.core.errors import ExtractionFailed, ExtractionTimeout, ValidationFailure
from wine_catalog.core.schema import CandidateLine, ExtractedWine, WineExtractionPayload
from wine_catalog.services.ai.client import AIClient, parse_json_response
from wine_catalog.services.ai.prompts import EXTRACTION_SYSTEM_PROMPT, build_extraction_prompt

logger = logging.getLogger(__name__)

# Per-field confidence attached to knowledge-service output
KNOWLEDGE_CONFIDENCE: dict[str, float] = {
    "name": 0.90,
    "vintage": 0.85,
    "producer": 0.85,
    "region": 0.80,
    "country": 0.85,
    "varietals": 0.80,
    "price": 0.75,
    "style": 0.75,
    "aroma": 0.75,
    "taste": 0.75,
    "food_pairings": 0.75,
}


class Extractor(Protocol):
    """Anything that can turn a candidate line into an extraction."""

    source: ExtractionSource

    async def extract(self, line: CandidateLine) -> ExtractedWine | None: ...


class KnowledgeExtractionClient:
    """Extractor backed by an external knowledge service."""

    source = ExtractionSource.KNOWLEDGE_SERVICE

    def __init__(
        self,
        ai_client: AIClient,
        timeout: float = 10.0,
        confidences: dict[str, float] | None = None,
        max_tokens: int = 800,
    ):
        """
        Initialize the client.

        Args:
            ai_client: Provider client used for the outbound call.
            timeout: Hard limit in seconds for one call.
            confidences: Per-field confidence overrides.
            max_tokens: Response length cap.
        """
        self.ai_client = ai_client
        self.timeout = timeout
        self.confidences = {**KNOWLEDGE_CONFIDENCE, **(confidences or {})}
        self.max_tokens = max_tokens

    async def extract(self, line: CandidateLine) -> ExtractedWine | None:
        """
        Extract structured wine fields from one line.

        Raises:
            ExtractionTimeout: if the call exceeds the timeout.
            ExtractionFailed: on transport or parse errors.
        """
        prompt = build_extraction_prompt(line.text)
        call = asyncio.to_thread(
            self.ai_client.complete_json,
            EXTRACTION_SYSTEM_PROMPT,
            prompt,
            self.max_tokens,
        )
        try:
            raw_response = await asyncio.wait_for(call, timeout=self.timeout)
        except TimeoutError as e:
            raise ExtractionTimeout(
                f"Knowledge service timed out after {self.timeout}s", cause=e
            ) from e
        except Exception as e:
            raise ExtractionFailed(f"Knowledge service call failed: {e}", cause=e) from e

        return self.parse_response(raw_response, line)

    def parse_response(self, raw_response: str | None, line: CandidateLine) -> ExtractedWine | None:
        """
        Validate a raw service response for ``line``.

        Returns None for the service's "not a wine" answers: an empty
        response, an empty object, a non-object, or an object with no name.
        """
        if not raw_response or not raw_response.strip():
            return None

        try:
            data = parse_json_response(raw_response)
        except json.JSONDecodeError as e:
            raise ExtractionFailed(f"Unparseable knowledge-service response: {e}", cause=e) from e

        if not isinstance(data, dict) or not data:
            return None

        try:
            payload = WineExtractionPayload.from_response(data)
        except ValidationError as e:
            raise ValidationFailure(f"Malformed extraction payload: {e}", cause=e) from e

        if not payload.name:
            logger.debug(f"Line {line.index} has no usable name, treating as not a wine")
            return None

        return ExtractedWine.from_values(
            payload.model_dump(),
            source=self.source,
            confidences=self.confidences,
            line_index=line.index,
        )
