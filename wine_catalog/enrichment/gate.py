"""Confidence gate for generated wine profiles."""

from dataclasses import dataclass

from wine_catalog.config import EnrichmentConfig
from wine_catalog.core.schema import WineProfile


@dataclass(frozen=True)
class GateDecision:
    """Whether a profile may be persisted, and why not if rejected."""

    accepted: bool
    reason: str | None = None

    def __bool__(self) -> bool:
        return self.accepted


class ConfidenceGate:
    """
    Accepts a profile only if it has enough tasting-note content and an
    explicit, acceptable confidence label.

    A profile without a label is rejected: the generator must vouch for
    what it wrote.
    """

    def __init__(
        self,
        min_tasting_notes_length: int = 75,
        accepted_labels: tuple[str, ...] = ("high", "medium"),
    ):
        self.min_tasting_notes_length = min_tasting_notes_length
        self.accepted_labels = frozenset(label.lower() for label in accepted_labels)

    @classmethod
    def from_config(cls, config: EnrichmentConfig) -> "ConfidenceGate":
        return cls(
            min_tasting_notes_length=config.min_tasting_notes_length,
            accepted_labels=config.accepted_confidence_labels,
        )

    def evaluate(self, profile: WineProfile) -> GateDecision:
        notes_length = len(profile.tasting_notes.strip())
        if notes_length < self.min_tasting_notes_length:
            return GateDecision(
                False,
                f"tasting notes too short ({notes_length} < {self.min_tasting_notes_length} chars)",
            )

        if profile.confidence_level is None:
            return GateDecision(False, "no confidence label")
        if profile.confidence_level.value not in self.accepted_labels:
            return GateDecision(False, f"confidence label '{profile.confidence_level.value}'")

        return GateDecision(True)
