"""Catalog enrichment: profile generation behind a confidence gate."""

from wine_catalog.enrichment.gate import ConfidenceGate, GateDecision
from wine_catalog.enrichment.scheduler import EnrichmentScheduler, EnrichmentStats

__all__ = ["ConfidenceGate", "GateDecision", "EnrichmentScheduler", "EnrichmentStats"]
