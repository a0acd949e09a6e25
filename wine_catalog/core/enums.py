"""Enums shared across the ingestion and enrichment pipelines."""

from enum import Enum


class ExtractionSource(str, Enum):
    """Which extractor produced a field value."""

    KNOWLEDGE_SERVICE = "knowledge_service"
    FALLBACK = "fallback"
    MANUAL = "manual"


class LineState(str, Enum):
    """Lifecycle of a single candidate line inside the ingestion pipeline."""

    PENDING = "pending"
    EXTRACTED_VIA_KNOWLEDGE_SERVICE = "extracted_via_knowledge_service"
    EXTRACTED_VIA_FALLBACK = "extracted_via_fallback"
    REJECTED = "rejected"
    STORED = "stored"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (LineState.REJECTED, LineState.STORED, LineState.FAILED)


class ConfidenceLabel(str, Enum):
    """Self-reported confidence of a generated wine profile."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class EnrichmentOutcome(str, Enum):
    """Result of enriching one catalog entry."""

    ACCEPTED = "accepted"
    REJECTED = "rejected"
    FAILED = "failed"


class RunStatus(str, Enum):
    """Status of an ingestion or enrichment run."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class AIProvider(str, Enum):
    """Supported knowledge-service providers."""

    ANTHROPIC = "anthropic"
    OPENAI = "openai"
