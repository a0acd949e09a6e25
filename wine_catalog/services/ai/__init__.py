"""Knowledge-service clients for extraction and enrichment."""

from wine_catalog.services.ai.client import AIClient, get_ai_client
from wine_catalog.services.ai.extraction import Extractor, KnowledgeExtractionClient
from wine_catalog.services.ai.profiles import AIProfileGenerator, ProfileGenerator

__all__ = [
    "AIClient",
    "get_ai_client",
    "Extractor",
    "KnowledgeExtractionClient",
    "ProfileGenerator",
    "AIProfileGenerator",
]
