"""
Catalog Jobs
============

Wires pipelines from configuration and exposes them as arq tasks, so
large wine lists and enrichment passes can run on a Redis-backed worker
instead of inside an HTTP request.
"""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from arq import ArqRedis, create_pool
from arq.connections import RedisSettings
from arq.jobs import Job, JobStatus

from wine_catalog.config import CatalogConfig, get_default_config
from wine_catalog.core.enums import RunStatus
from wine_catalog.core.errors import ConfigurationError, RunAborted
from wine_catalog.enrichment.gate import ConfidenceGate
from wine_catalog.enrichment.scheduler import EnrichmentScheduler
from wine_catalog.ingestion.pipeline import IngestionPipeline
from wine_catalog.ingestion.store import CatalogStore, SqlCatalogStore
from wine_catalog.services.ai.client import create_client_from_config
from wine_catalog.services.ai.extraction import KnowledgeExtractionClient
from wine_catalog.services.ai.profiles import AIProfileGenerator

logger = logging.getLogger(__name__)

INGEST_TASK = "ingest_wine_list"
ENRICH_TASK = "enrich_catalog"


@dataclass
class JobResult:
    """Outcome of one catalog job, as stored by arq."""

    job_id: str
    job_type: str
    status: RunStatus = RunStatus.PENDING
    started_at: datetime | None = None
    completed_at: datetime | None = None
    result: dict[str, Any] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float | None:
        if self.started_at is None or self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        def iso(value: datetime | None) -> str | None:
            return value.isoformat() if value else None

        return {
            "job_id": self.job_id,
            "job_type": self.job_type,
            "status": self.status.value,
            "started_at": iso(self.started_at),
            "completed_at": iso(self.completed_at),
            "duration_seconds": self.duration_seconds,
            "result": self.result,
            "errors": self.errors,
        }


def get_redis_settings() -> RedisSettings:
    """Redis connection for the job queue (REDIS_HOST, REDIS_PORT, REDIS_DB)."""
    return RedisSettings(
        host=os.environ.get("REDIS_HOST", "localhost"),
        port=int(os.environ.get("REDIS_PORT", "6379")),
        database=int(os.environ.get("REDIS_DB", "0")),
    )


def build_pipeline(
    config: CatalogConfig | None = None,
    store: CatalogStore | None = None,
) -> IngestionPipeline:
    """
    Build an ingestion pipeline from configuration.

    Without AI credentials the pipeline runs on the cheap extractor only.
    """
    config = config or get_default_config()
    ai_client = create_client_from_config(config.ai, timeout=config.ingestion.extraction_timeout)

    extractor = None
    if ai_client is not None:
        extractor = KnowledgeExtractionClient(ai_client, timeout=config.ingestion.extraction_timeout)
    else:
        logger.warning("No AI provider configured; ingesting with the fallback extractor only")

    return IngestionPipeline(
        store=store or SqlCatalogStore(),
        extractor=extractor,
        config=config.ingestion,
    )


def build_enrichment(
    config: CatalogConfig | None = None,
    store: CatalogStore | None = None,
) -> EnrichmentScheduler:
    """
    Build an enrichment scheduler from configuration.

    Raises:
        ConfigurationError: if no AI provider is configured.
    """
    config = config or get_default_config()
    ai_client = create_client_from_config(config.ai, timeout=config.enrichment.profile_timeout)
    if ai_client is None:
        raise ConfigurationError(
            f"Enrichment needs an AI provider; set the {config.ai.provider.value.upper()}_API_KEY"
            " environment variable"
        )

    return EnrichmentScheduler(
        store=store or SqlCatalogStore(),
        generator=AIProfileGenerator(ai_client, timeout=config.enrichment.profile_timeout),
        gate=ConfidenceGate.from_config(config.enrichment),
        config=config.enrichment,
    )


async def _run_job(
    ctx: dict[str, Any],
    job_type: str,
    body: Callable[[JobResult], Awaitable[None]],
) -> dict[str, Any]:
    """
    Run ``body`` with a JobResult and always hand arq a serializable result.

    Configuration problems and aborted runs are expected failures and are
    logged without a traceback.
    """
    job = JobResult(
        job_id=ctx.get("job_id") or str(uuid4()),
        job_type=job_type,
        status=RunStatus.RUNNING,
        started_at=datetime.now(UTC),
    )
    try:
        await body(job)
    except (ConfigurationError, RunAborted) as e:
        logger.error(f"{job_type} job {job.job_id} could not finish: {e}")
        job.status = RunStatus.FAILED
        job.errors.append(str(e))
    except Exception as e:
        logger.exception(f"{job_type} job {job.job_id} crashed")
        job.status = RunStatus.FAILED
        job.errors.append(str(e))

    job.completed_at = datetime.now(UTC)
    return job.to_dict()


async def ingest_wine_list(
    ctx: dict[str, Any],
    text: str,
    restaurant_id: str | None = None,
    catalog_only: bool = False,
) -> dict[str, Any]:
    """
    arq task: ingest one wine list.

    The job's ``result`` is the same summary the upload endpoint returns.
    """

    async def body(job: JobResult) -> None:
        report = await build_pipeline().run(
            text, restaurant_id=restaurant_id, catalog_only=catalog_only
        )
        job.result = report.to_dict()
        if not report.success:
            job.status = RunStatus.FAILED
            job.errors.append(report.message)
        elif report.stats and report.stats.cancelled:
            job.status = RunStatus.CANCELLED
        else:
            job.status = RunStatus.COMPLETED

    return await _run_job(ctx, INGEST_TASK, body)


async def enrich_catalog(ctx: dict[str, Any], limit: int | None = None) -> dict[str, Any]:
    """arq task: enrich up to ``limit`` unverified catalog wines."""

    async def body(job: JobResult) -> None:
        stats = await build_enrichment().run(limit=limit)
        job.result = stats.to_dict()
        if stats.error:
            job.status = RunStatus.FAILED
            job.errors.append(stats.error)
        else:
            job.status = RunStatus.CANCELLED if stats.cancelled else RunStatus.COMPLETED

    return await _run_job(ctx, ENRICH_TASK, body)


@asynccontextmanager
async def _queue() -> AsyncIterator[ArqRedis]:
    redis = await create_pool(get_redis_settings())
    try:
        yield redis
    finally:
        await redis.close()


async def _enqueue(task: str, *args: Any) -> str:
    async with _queue() as redis:
        job = await redis.enqueue_job(task, *args)
    if job is None:
        raise RuntimeError(f"Could not enqueue {task}: duplicate job id")
    logger.info(f"Enqueued {task} as job {job.job_id}")
    return job.job_id


async def enqueue_ingestion(
    text: str,
    restaurant_id: str | None = None,
    catalog_only: bool = False,
) -> str:
    """Queue a wine list for the worker and return the job id."""
    return await _enqueue(INGEST_TASK, text, restaurant_id, catalog_only)


async def enqueue_enrichment(limit: int | None = None) -> str:
    """Queue an enrichment pass for the worker and return the job id."""
    return await _enqueue(ENRICH_TASK, limit)


async def get_job_status(job_id: str) -> dict[str, Any] | None:
    """
    Look up a queued or finished job.

    Returns:
        ``{job_id, status, result}`` where ``result`` is the job's
        JobResult dict once complete, or None if arq has no such job.
    """
    async with _queue() as redis:
        job = Job(job_id, redis)
        status = await job.status()
        if status == JobStatus.not_found:
            return None
        result = await job.result(timeout=1) if status == JobStatus.complete else None
    return {"job_id": job_id, "status": status.value, "result": result}


class WorkerSettings:
    """arq worker settings for ``wine-catalog worker``."""

    functions = [ingest_wine_list, enrich_catalog]
    redis_settings = get_redis_settings()
    max_jobs = 2
    # Large lists at the slowest tier take a while
    job_timeout = 2 * 60 * 60
    keep_result = 24 * 60 * 60
