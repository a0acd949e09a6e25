"""
Configuration Module
====================

Loads pipeline tuning knobs from a YAML file and AI credentials from
the environment. Every section falls back to built-in defaults, so a
missing config file is not an error.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from wine_catalog.core.enums import AIProvider
from wine_catalog.core.errors import ConfigurationError


@dataclass(frozen=True)
class BatchTier:
    """
    Batch sizing for inputs with more than ``above`` candidate lines.

    Larger inputs must map to smaller batches and longer delays so that
    big uploads stay under the extraction service's rate limit.
    """

    above: int
    batch_size: int
    item_delay: float
    batch_pause: float = 2.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BatchTier:
        return cls(
            above=int(data.get("above", 0)),
            batch_size=int(data["batch_size"]),
            item_delay=float(data["item_delay"]),
            batch_pause=float(data.get("batch_pause", 2.0)),
        )


DEFAULT_BATCH_TIERS: tuple[BatchTier, ...] = (
    BatchTier(above=1000, batch_size=25, item_delay=0.25),
    BatchTier(above=500, batch_size=50, item_delay=0.15),
    BatchTier(above=100, batch_size=100, item_delay=0.10),
    BatchTier(above=0, batch_size=200, item_delay=0.05),
)


def validate_tiers(tiers: list[BatchTier] | tuple[BatchTier, ...]) -> tuple[BatchTier, ...]:
    """
    Sort tiers by descending threshold and check their shape.

    Raises:
        ConfigurationError: if a higher-volume tier has a larger batch
            or a shorter delay than a lower-volume one.
    """
    if not tiers:
        raise ConfigurationError("At least one batch tier is required")

    ordered = tuple(sorted(tiers, key=lambda t: t.above, reverse=True))
    for bigger, smaller in zip(ordered, ordered[1:]):
        if bigger.batch_size > smaller.batch_size:
            raise ConfigurationError(
                f"Tier above {bigger.above} has batch size {bigger.batch_size}, "
                f"larger than tier above {smaller.above} ({smaller.batch_size})"
            )
        if bigger.item_delay < smaller.item_delay:
            raise ConfigurationError(
                f"Tier above {bigger.above} has a shorter item delay than "
                f"tier above {smaller.above}"
            )
    for tier in ordered:
        if tier.batch_size < 1:
            raise ConfigurationError("Batch size must be at least 1")
        if tier.item_delay < 0 or tier.batch_pause < 0:
            raise ConfigurationError("Delays cannot be negative")
    return ordered


@dataclass
class IngestionConfig:
    """Settings for the wine-list ingestion pipeline."""

    min_line_length: int = 4
    extraction_timeout: float = 10.0
    sample_size: int = 20
    error_rate_alert: float = 0.5
    progress_log_every: int = 25
    batch_tiers: tuple[BatchTier, ...] = DEFAULT_BATCH_TIERS

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> IngestionConfig:
        if data is None:
            return cls()
        tiers_data = data.get("batch_tiers")
        tiers = (
            validate_tiers([BatchTier.from_dict(t) for t in tiers_data])
            if tiers_data
            else DEFAULT_BATCH_TIERS
        )
        return cls(
            min_line_length=int(data.get("min_line_length", 4)),
            extraction_timeout=float(data.get("extraction_timeout", 10.0)),
            sample_size=int(data.get("sample_size", 20)),
            error_rate_alert=float(data.get("error_rate_alert", 0.5)),
            progress_log_every=int(data.get("progress_log_every", 25)),
            batch_tiers=tiers,
        )


@dataclass
class EnrichmentConfig:
    """Settings for the enrichment (profile generation) job."""

    batch_size: int = 5
    item_delay: float = 1.0
    min_tasting_notes_length: int = 75
    accepted_confidence_labels: tuple[str, ...] = ("high", "medium")
    profile_timeout: float = 10.0
    verified_source: str = "AI Research"

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> EnrichmentConfig:
        if data is None:
            return cls()
        labels = data.get("accepted_confidence_labels", ["high", "medium"])
        return cls(
            batch_size=int(data.get("batch_size", 5)),
            item_delay=float(data.get("item_delay", 1.0)),
            min_tasting_notes_length=int(data.get("min_tasting_notes_length", 75)),
            accepted_confidence_labels=tuple(str(label).lower() for label in labels),
            profile_timeout=float(data.get("profile_timeout", 10.0)),
            verified_source=data.get("verified_source", "AI Research"),
        )


# Values shipped in .env.example that should not count as real keys
_PLACEHOLDER_KEYS = {"your-openai-api-key-here", "your-anthropic-api-key-here"}


@dataclass
class AIConfig:
    """Knowledge-service provider settings, read from the environment."""

    provider: AIProvider = AIProvider.OPENAI
    model: str | None = None
    api_key: str | None = None

    @classmethod
    def from_env(cls) -> AIConfig:
        provider_name = os.environ.get("AI_PROVIDER", AIProvider.OPENAI.value).lower()
        try:
            provider = AIProvider(provider_name)
        except ValueError:
            raise ConfigurationError(f"Unsupported AI provider: {provider_name}")

        env_var = "OPENAI_API_KEY" if provider == AIProvider.OPENAI else "ANTHROPIC_API_KEY"
        api_key = os.environ.get(env_var, "").strip()
        if api_key in _PLACEHOLDER_KEYS:
            api_key = ""

        return cls(
            provider=provider,
            model=os.environ.get("AI_MODEL") or None,
            api_key=api_key or None,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key)


@dataclass
class CatalogConfig:
    """Top-level configuration object."""

    ingestion: IngestionConfig = field(default_factory=IngestionConfig)
    enrichment: EnrichmentConfig = field(default_factory=EnrichmentConfig)
    ai: AIConfig = field(default_factory=AIConfig)
    config_path: Path | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> CatalogConfig:
        data = data or {}
        return cls(
            ingestion=IngestionConfig.from_dict(data.get("ingestion")),
            enrichment=EnrichmentConfig.from_dict(data.get("enrichment")),
            ai=AIConfig.from_env(),
        )


def load_config(config_path: Path | str) -> CatalogConfig:
    """
    Load configuration from a YAML file.

    Args:
        config_path: Path to the catalog.yaml file

    Raises:
        FileNotFoundError: if the file does not exist
    """
    config_path = Path(config_path).expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    config = CatalogConfig.from_dict(data)
    config.config_path = config_path
    return config


_default_config: CatalogConfig | None = None


def get_default_config() -> CatalogConfig:
    """
    Get the process-wide configuration.

    Reads the path from WINE_CATALOG_CONFIG, falling back to
    config/catalog.yaml at the project root, then to defaults.
    """
    global _default_config

    if _default_config is None:
        env_path = os.environ.get("WINE_CATALOG_CONFIG")
        if env_path:
            path = Path(env_path)
        else:
            path = Path(__file__).resolve().parent.parent / "config" / "catalog.yaml"

        if path.exists():
            _default_config = load_config(path)
        else:
            _default_config = CatalogConfig.from_dict(None)

    return _default_config


def reset_default_config() -> None:
    """Reset the process-wide configuration (useful for testing)."""
    global _default_config
    _default_config = None
