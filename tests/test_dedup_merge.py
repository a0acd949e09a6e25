"""Tests for dedup keys and confidence-respecting merge."""

from wine_catalog.core.enums import ExtractionSource
from wine_catalog.core.schema import FieldValue
from wine_catalog.ingestion.dedup import make_dedup_key, normalize_key_part
from wine_catalog.ingestion.merge import ConfidenceMerger, merge_attributes


def _fv(value: str, confidence: float, source=ExtractionSource.KNOWLEDGE_SERVICE) -> FieldValue:
    return FieldValue(value=value, confidence=confidence, source=source)


class TestDedupKey:
    """Tests for dedup key derivation."""

    def test_invariant_under_case(self) -> None:
        assert make_dedup_key("Opus One", "2018", "Opus") == make_dedup_key("opus one", "2018", "opus")

    def test_invariant_under_whitespace(self) -> None:
        assert make_dedup_key("  Opus   One ", "2018 ", "\tOpus") == make_dedup_key(
            "Opus One", "2018", "Opus"
        )

    def test_missing_parts(self) -> None:
        assert make_dedup_key("Opus One") == "opus one||"
        assert make_dedup_key("Opus One", None, "Opus") == "opus one||opus"

    def test_parts_are_positional(self) -> None:
        """Vintage and producer cannot be confused with each other."""
        assert make_dedup_key("Sassicaia", "2018", None) != make_dedup_key("Sassicaia", None, "2018")

    def test_different_vintages_differ(self) -> None:
        assert make_dedup_key("Opus One", "2018") != make_dedup_key("Opus One", "2019")

    def test_normalize_key_part(self) -> None:
        assert normalize_key_part(None) == ""
        assert normalize_key_part("  Château\n  Margaux ") == "château margaux"


class TestConfidenceMerger:
    """Tests for field-level merge."""

    def test_adds_missing_fields(self) -> None:
        merged, changed = merge_attributes(
            {"name": _fv("Opus One", 0.9)},
            {"region": _fv("Napa Valley", 0.8)},
        )
        assert merged["region"].value == "Napa Valley"
        assert merged["name"].value == "Opus One"
        assert changed == ["region"]

    def test_higher_confidence_replaces(self) -> None:
        merged, changed = merge_attributes(
            {"region": _fv("Napa", 0.4, ExtractionSource.FALLBACK)},
            {"region": _fv("Oakville, Napa Valley", 0.8)},
        )
        assert merged["region"].value == "Oakville, Napa Valley"
        assert changed == ["region"]

    def test_lower_confidence_never_replaces(self) -> None:
        merged, changed = merge_attributes(
            {"region": _fv("Oakville, Napa Valley", 0.8)},
            {"region": _fv("Napa", 0.4, ExtractionSource.FALLBACK)},
        )
        assert merged["region"].value == "Oakville, Napa Valley"
        assert changed == []

    def test_equal_confidence_takes_newer(self) -> None:
        merged, changed = merge_attributes(
            {"price": _fv("$300", 0.75)},
            {"price": _fv("$315", 0.75)},
        )
        assert merged["price"].value == "$315"
        assert changed == ["price"]

    def test_identical_value_is_not_a_change(self) -> None:
        _, changed = merge_attributes({"price": _fv("$315", 0.75)}, {"price": _fv("$315", 0.75)})
        assert changed == []

    def test_blank_incoming_ignored(self) -> None:
        merged, changed = ConfidenceMerger().merge(
            {"region": _fv("Napa", 0.4)},
            {"region": _fv("   ", 1.0)},
        )
        assert merged["region"].value == "Napa"
        assert changed == []

    def test_does_not_mutate_inputs(self) -> None:
        existing = {"name": _fv("Opus One", 0.4)}
        merge_attributes(existing, {"name": _fv("Opus One Red", 0.9)})
        assert existing["name"].value == "Opus One"
