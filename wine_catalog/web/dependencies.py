"""FastAPI dependencies for the catalog routes.

Routes receive their store, pipeline and services through these
functions so tests can swap them with ``app.dependency_overrides``.
"""

from typing import Annotated

from fastapi import Depends

from wine_catalog.config import CatalogConfig, get_default_config
from wine_catalog.enrichment.scheduler import EnrichmentScheduler
from wine_catalog.ingestion.jobs import build_enrichment, build_pipeline
from wine_catalog.ingestion.pipeline import IngestionPipeline
from wine_catalog.ingestion.store import CatalogStore, SqlCatalogStore
from wine_catalog.services.catalog_service import CatalogQueryService


def get_config() -> CatalogConfig:
    """Dependency returning the process-wide configuration."""
    return get_default_config()


def get_store() -> CatalogStore:
    """Dependency returning the SQL-backed catalog store."""
    return SqlCatalogStore()


ConfigDep = Annotated[CatalogConfig, Depends(get_config)]
StoreDep = Annotated[CatalogStore, Depends(get_store)]


def get_pipeline(config: ConfigDep, store: StoreDep) -> IngestionPipeline:
    return build_pipeline(config, store)


def get_enrichment(config: ConfigDep, store: StoreDep) -> EnrichmentScheduler | None:
    """Dependency returning an enrichment scheduler, or None without an AI provider."""
    if not config.ai.configured:
        return None
    return build_enrichment(config, store)


def get_query_service(store: StoreDep) -> CatalogQueryService:
    return CatalogQueryService(store)


PipelineDep = Annotated[IngestionPipeline, Depends(get_pipeline)]
QueryServiceDep = Annotated[CatalogQueryService, Depends(get_query_service)]
EnrichmentDep = Annotated[EnrichmentScheduler | None, Depends(get_enrichment)]
