"""Tests for job wiring and the arq task functions."""

from unittest.mock import patch

import pytest

from wine_catalog.config import AIConfig, CatalogConfig
from wine_catalog.core.enums import AIProvider, RunStatus
from wine_catalog.core.errors import ConfigurationError, StoreFailure
from wine_catalog.core.schema import WineProfile
from wine_catalog.enrichment.scheduler import EnrichmentScheduler
from wine_catalog.ingestion import jobs
from wine_catalog.ingestion.pipeline import IngestionPipeline
from wine_catalog.ingestion.scheduler import BatchScheduler
from wine_catalog.ingestion.store import InMemoryCatalogStore
from wine_catalog.services.ai.extraction import KnowledgeExtractionClient


async def no_sleep(seconds: float) -> None:
    return None


class StubGenerator:
    async def generate(self, record):
        return WineProfile(tasting_notes="Dark fruit and cedar. " * 5, confidence_level="medium")


@pytest.fixture
def store() -> InMemoryCatalogStore:
    return InMemoryCatalogStore()


class TestBuilders:
    """Tests for pipeline and scheduler construction."""

    def test_pipeline_without_ai_is_fallback_only(self, store) -> None:
        pipeline = jobs.build_pipeline(CatalogConfig(ai=AIConfig(api_key=None)), store)

        assert isinstance(pipeline, IngestionPipeline)
        assert pipeline.extractor is None
        assert pipeline.store is store

    def test_pipeline_with_ai(self, store) -> None:
        config = CatalogConfig(ai=AIConfig(provider=AIProvider.OPENAI, api_key="sk-test"))
        with patch("openai.OpenAI"):
            pipeline = jobs.build_pipeline(config, store)

        assert isinstance(pipeline.extractor, KnowledgeExtractionClient)
        assert pipeline.extractor.timeout == config.ingestion.extraction_timeout

    def test_enrichment_requires_ai(self, store) -> None:
        with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
            jobs.build_enrichment(CatalogConfig(ai=AIConfig(api_key=None)), store)

    def test_enrichment_with_ai(self, store) -> None:
        config = CatalogConfig(ai=AIConfig(provider=AIProvider.ANTHROPIC, api_key="sk-ant"))
        with patch("anthropic.Anthropic"):
            scheduler = jobs.build_enrichment(config, store)

        assert isinstance(scheduler, EnrichmentScheduler)
        assert scheduler.gate.min_tasting_notes_length == 75


class TestIngestJob:
    """Tests for the ingest_wine_list task."""

    @pytest.fixture(autouse=True)
    def offline_pipeline(self, monkeypatch, store) -> None:
        monkeypatch.setattr(
            jobs,
            "build_pipeline",
            lambda: IngestionPipeline(store=store, scheduler=BatchScheduler(sleep=no_sleep)),
        )

    @pytest.mark.asyncio
    async def test_completed(self, store) -> None:
        result = await jobs.ingest_wine_list(
            {"job_id": "job-1"}, "Opus One 2018\nBarolo Riserva 2016", restaurant_id="r1"
        )

        assert result["job_id"] == "job-1"
        assert result["status"] == RunStatus.COMPLETED.value
        assert result["result"]["stats"]["processed"] == 2
        assert result["duration_seconds"] is not None
        assert len(store.restaurant_links()) == 2

    @pytest.mark.asyncio
    async def test_empty_text_fails(self) -> None:
        result = await jobs.ingest_wine_list({}, "   ")

        assert result["status"] == RunStatus.FAILED.value
        assert result["errors"] == ["No wine list text provided"]


class TestEnrichJob:
    """Tests for the enrich_catalog task."""

    @pytest.mark.asyncio
    async def test_not_configured(self, monkeypatch) -> None:
        def unconfigured():
            raise ConfigurationError("Enrichment needs an AI provider")

        monkeypatch.setattr(jobs, "build_enrichment", unconfigured)

        result = await jobs.enrich_catalog({})
        assert result["status"] == RunStatus.FAILED.value
        assert "AI provider" in result["errors"][0]

    @pytest.mark.asyncio
    async def test_completed(self, monkeypatch, store) -> None:
        store_pipeline = IngestionPipeline(store=store, scheduler=BatchScheduler(sleep=no_sleep))
        await store_pipeline.run("Opus One 2018\nBarolo Riserva 2016")
        monkeypatch.setattr(
            jobs,
            "build_enrichment",
            lambda: EnrichmentScheduler(store=store, generator=StubGenerator(), sleep=no_sleep),
        )

        result = await jobs.enrich_catalog({}, limit=5)

        assert result["status"] == RunStatus.COMPLETED.value
        assert result["result"]["accepted"] == 2
        assert store.verification_stats().verified_wines == 2

    @pytest.mark.asyncio
    async def test_listing_failure_marks_job_failed(self, monkeypatch) -> None:
        class LockedStore(InMemoryCatalogStore):
            def list_unverified(self, limit, after=None):
                raise StoreFailure("database is locked")

        monkeypatch.setattr(
            jobs,
            "build_enrichment",
            lambda: EnrichmentScheduler(
                store=LockedStore(), generator=StubGenerator(), sleep=no_sleep
            ),
        )

        result = await jobs.enrich_catalog({})

        assert result["status"] == RunStatus.FAILED.value
        assert result["errors"] == ["database is locked"]
        assert result["result"]["processed"] == 0


class TestWorkerSettings:
    def test_functions_registered(self) -> None:
        assert jobs.ingest_wine_list in jobs.WorkerSettings.functions
        assert jobs.enrich_catalog in jobs.WorkerSettings.functions

    def test_job_result_to_dict(self) -> None:
        result = jobs.JobResult(job_id="x", job_type="enrich_catalog", status=RunStatus.PENDING)
        data = result.to_dict()
        assert data["status"] == "pending"
        assert data["started_at"] is None
