"""Tests for the confidence gate and enrichment scheduler."""

import asyncio

import pytest

from wine_catalog.config import EnrichmentConfig
from wine_catalog.core.enums import ConfidenceLabel, EnrichmentOutcome, ExtractionSource
from wine_catalog.core.errors import (
    CatalogUnavailable,
    ProfileGenerationFailed,
    RunAborted,
    StoreFailure,
)
from wine_catalog.core.schema import ExtractedWine, WineProfile, WineRecord
from wine_catalog.enrichment.gate import ConfidenceGate
from wine_catalog.enrichment.scheduler import EnrichmentScheduler
from wine_catalog.ingestion.store import InMemoryCatalogStore

LONG_NOTES = (
    "Deep garnet with aromas of cassis, violets and cedar; the palate is layered "
    "and polished with fine-grained tannins and a long graphite finish."
)
SHORT_NOTES = "Nice red wine."


def profile(notes: str = LONG_NOTES, label: str | ConfidenceLabel | None = "high") -> WineProfile:
    return WineProfile(tasting_notes=notes, serving_temp="16-18C", confidence_level=label)


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class StubGenerator:
    """Profile generator returning canned results keyed by wine name."""

    def __init__(self, results: dict[str, WineProfile | Exception], default=None) -> None:
        self.results = results
        self.default = default
        self.calls: list[str] = []

    async def generate(self, record: WineRecord) -> WineProfile:
        self.calls.append(record.name)
        result = self.results.get(record.name, self.default)
        if isinstance(result, Exception):
            raise result
        return result


def seeded_store(*names: str) -> InMemoryCatalogStore:
    store = InMemoryCatalogStore()
    for name in names:
        store.upsert(
            ExtractedWine.from_values(
                {"name": name}, source=ExtractionSource.FALLBACK, confidences={"name": 0.4}
            )
        )
    return store


def make_scheduler(store, generator, sleep=None, **config) -> EnrichmentScheduler:
    return EnrichmentScheduler(
        store=store,
        generator=generator,
        config=EnrichmentConfig(**config),
        sleep=sleep or RecordingSleep(),
    )


class TestConfidenceGate:
    """Tests for ConfidenceGate.evaluate."""

    def test_accepts_long_high_confidence(self) -> None:
        decision = ConfidenceGate().evaluate(profile())
        assert decision.accepted is True
        assert decision.reason is None

    def test_accepts_medium(self) -> None:
        assert ConfidenceGate().evaluate(profile(label="medium"))

    def test_rejects_short_notes(self) -> None:
        decision = ConfidenceGate().evaluate(profile(notes=SHORT_NOTES))
        assert not decision
        assert "too short" in decision.reason

    def test_length_threshold_is_inclusive(self) -> None:
        gate = ConfidenceGate(min_tasting_notes_length=75)
        assert gate.evaluate(profile(notes="x" * 75)).accepted
        assert not gate.evaluate(profile(notes="x" * 74)).accepted

    def test_accepts_enum_labels(self) -> None:
        """Providers that build profiles in code pass the enum member itself."""
        high = profile(label=ConfidenceLabel.HIGH)

        assert high.confidence_level == ConfidenceLabel.HIGH
        assert ConfidenceGate().evaluate(high).accepted
        assert ConfidenceGate().evaluate(profile(label=ConfidenceLabel.MEDIUM)).accepted
        assert not ConfidenceGate().evaluate(profile(label=ConfidenceLabel.LOW)).accepted

    def test_rejects_low_label(self) -> None:
        assert not ConfidenceGate().evaluate(profile(label="low"))

    def test_rejects_missing_label(self) -> None:
        decision = ConfidenceGate().evaluate(profile(label=None))
        assert not decision
        assert "no confidence label" in decision.reason

    def test_from_config(self) -> None:
        gate = ConfidenceGate.from_config(
            EnrichmentConfig(min_tasting_notes_length=10, accepted_confidence_labels=("high",))
        )
        assert gate.evaluate(profile(notes=SHORT_NOTES, label="high")).accepted
        assert not gate.evaluate(profile(label="medium")).accepted


class TestEnrichmentScheduler:
    """Tests for EnrichmentScheduler.run."""

    @pytest.mark.asyncio
    async def test_only_accepted_profiles_are_persisted(self) -> None:
        store = seeded_store("Opus One", "House Red", "Mystery Cuvee")
        generator = StubGenerator({
            "Opus One": profile(),
            "House Red": profile(notes=SHORT_NOTES),
            "Mystery Cuvee": profile(label="low"),
        })

        stats = await make_scheduler(store, generator).run()

        assert (stats.processed, stats.accepted, stats.rejected, stats.failed) == (3, 1, 2, 0)
        wines = {w.name: w for w in store.search("", 0, 10)[0]}
        assert wines["Opus One"].verified is True
        assert wines["Opus One"].verified_source == "AI Research"
        assert wines["Opus One"].profile.confidence_level == ConfidenceLabel.HIGH
        for name in ("House Red", "Mystery Cuvee"):
            assert wines[name].verified is False
            assert wines[name].profile is None

    @pytest.mark.asyncio
    async def test_short_notes_never_verify(self) -> None:
        store = seeded_store("House Red")
        await make_scheduler(store, StubGenerator({}, default=profile(notes=SHORT_NOTES))).run()

        assert store.verification_stats().verified_wines == 0

    @pytest.mark.asyncio
    async def test_failures_are_isolated(self) -> None:
        store = seeded_store("Opus One", "Barolo", "Chablis")
        generator = StubGenerator({
            "Barolo": ProfileGenerationFailed("timed out"),
            "Chablis": RuntimeError("unexpected"),
        }, default=profile())

        stats = await make_scheduler(store, generator).run()

        assert stats.accepted == 1
        assert stats.failed == 2
        assert stats.processed == 3

    @pytest.mark.asyncio
    async def test_rejected_entries_not_retried_within_run(self) -> None:
        store = seeded_store("A", "B", "C", "D", "E")
        generator = StubGenerator({}, default=profile(label="low"))

        stats = await make_scheduler(store, generator, batch_size=2).run()

        assert stats.processed == 5
        assert sorted(generator.calls) == ["A", "B", "C", "D", "E"]
        assert store.verification_stats().unverified_wines == 5

    @pytest.mark.asyncio
    async def test_rejected_entries_eligible_next_run(self) -> None:
        store = seeded_store("A")
        await make_scheduler(store, StubGenerator({}, default=profile(label="low"))).run()
        stats = await make_scheduler(store, StubGenerator({}, default=profile())).run()

        assert stats.accepted == 1
        assert store.verification_stats().verified_wines == 1

    @pytest.mark.asyncio
    async def test_limit(self) -> None:
        store = seeded_store("A", "B", "C", "D")
        generator = StubGenerator({}, default=profile())

        stats = await make_scheduler(store, generator, batch_size=3).run(limit=2)

        assert stats.processed == 2
        assert store.verification_stats().verified_wines == 2

    @pytest.mark.asyncio
    async def test_fixed_delay_between_items(self) -> None:
        sleep = RecordingSleep()
        store = seeded_store("A", "B", "C")
        await make_scheduler(store, StubGenerator({}, default=profile()), sleep=sleep).run()

        assert sleep.calls == [1.0, 1.0]

    @pytest.mark.asyncio
    async def test_cancellation(self) -> None:
        cancel = asyncio.Event()
        cancel.set()
        store = seeded_store("A", "B")

        stats = await make_scheduler(store, StubGenerator({}, default=profile())).run(
            cancel_event=cancel
        )

        assert stats.cancelled is True
        assert stats.processed == 0

    @pytest.mark.asyncio
    async def test_unreachable_store_aborts(self) -> None:
        class DownStore(InMemoryCatalogStore):
            def apply_profile(self, wine_id, profile, verified_source):
                raise CatalogUnavailable("connection lost")

        store = DownStore()
        store.upsert(
            ExtractedWine.from_values(
                {"name": "A"}, source=ExtractionSource.FALLBACK, confidences={}
            )
        )
        with pytest.raises(RunAborted):
            await make_scheduler(store, StubGenerator({}, default=profile())).run()

    @pytest.mark.asyncio
    async def test_enum_labelled_profile_is_accepted(self) -> None:
        store = seeded_store("Opus One")
        generator = StubGenerator({}, default=profile(label=ConfidenceLabel.HIGH))

        stats = await make_scheduler(store, generator).run()

        assert stats.accepted == 1
        assert store.verification_stats().verified_wines == 1

    @pytest.mark.asyncio
    async def test_listing_failure_stops_run(self) -> None:
        class FlakyStore(InMemoryCatalogStore):
            listings = 0

            def list_unverified(self, limit, after=None):
                self.listings += 1
                if self.listings > 1:
                    raise StoreFailure("database is locked")
                return super().list_unverified(limit, after)

        store = FlakyStore()
        for name in ("A", "B", "C"):
            store.upsert(
                ExtractedWine.from_values(
                    {"name": name}, source=ExtractionSource.FALLBACK, confidences={}
                )
            )

        stats = await make_scheduler(store, StubGenerator({}, default=profile()), batch_size=2).run()

        assert stats.processed == 2
        assert stats.accepted == 2
        assert "database is locked" in stats.error
        assert stats.to_dict()["error"] == stats.error

    @pytest.mark.asyncio
    async def test_unreachable_store_while_listing_aborts(self) -> None:
        class DownStore(InMemoryCatalogStore):
            def list_unverified(self, limit, after=None):
                raise CatalogUnavailable("connection lost")

        with pytest.raises(RunAborted):
            await make_scheduler(DownStore(), StubGenerator({})).run()

    @pytest.mark.asyncio
    async def test_empty_catalog(self) -> None:
        stats = await make_scheduler(InMemoryCatalogStore(), StubGenerator({})).run()
        assert stats.processed == 0
        assert stats.to_dict()["accepted"] == 0

    @pytest.mark.asyncio
    async def test_enrich_one_outcomes(self) -> None:
        store = seeded_store("A")
        record = store.list_unverified(1)[0]

        scheduler = make_scheduler(store, StubGenerator({}, default=profile(label="low")))
        assert await scheduler.enrich_one(record) == EnrichmentOutcome.REJECTED

        scheduler = make_scheduler(store, StubGenerator({}, default=profile()))
        assert await scheduler.enrich_one(record) == EnrichmentOutcome.ACCEPTED
