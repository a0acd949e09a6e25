"""Wine-list upload and catalog routes (JSON API)."""

import logging

from fastapi import APIRouter, File, Query, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from wine_catalog.core.errors import RunAborted
from wine_catalog.ingestion.pipeline import IngestionPipeline
from wine_catalog.web.dependencies import (
    ConfigDep,
    EnrichmentDep,
    PipelineDep,
    QueryServiceDep,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/wine-list", tags=["wine-list"])

MIN_TEXT_LENGTH = 10


class UploadTextRequest(BaseModel):
    """Body of a pasted wine-list upload."""

    model_config = ConfigDict(populate_by_name=True)

    text: str | None = None
    restaurant_id: str | None = Field(default=None, alias="restaurantId")
    catalog_only: bool = Field(default=False, alias="catalogOnly")


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"success": False, "message": message}, status_code=status_code)


async def _ingest(
    pipeline: IngestionPipeline,
    text: str | None,
    restaurant_id: str | None,
    catalog_only: bool,
) -> JSONResponse:
    if not text or len(text.strip()) < MIN_TEXT_LENGTH:
        return _error(400, "Wine list text is missing or too short")

    try:
        report = await pipeline.run(
            text, restaurant_id=restaurant_id, catalog_only=catalog_only
        )
    except RunAborted as e:
        logger.error(f"Wine list upload aborted: {e}")
        return _error(503, f"Catalog unavailable: {e}")

    body = report.to_dict()
    if report.success and pipeline.extractor is None:
        body["message"] += " (knowledge service not configured; basic extraction used)"
    return JSONResponse(body, status_code=200 if report.success else 400)


@router.get("/status")
async def api_status(config: ConfigDep) -> JSONResponse:
    """Report whether the knowledge-extraction service is configured."""
    available = config.ai.configured
    return JSONResponse({
        "success": True,
        "status": "available" if available else "unavailable",
        "message": (
            "Knowledge extraction service is configured"
            if available
            else "Knowledge extraction service is not configured; uploads use basic extraction"
        ),
        "provider": config.ai.provider.value if available else None,
    })


@router.post("/upload-text")
async def api_upload_text(request: UploadTextRequest, pipeline: PipelineDep) -> JSONResponse:
    """Ingest pasted or OCR-extracted wine-list text."""
    return await _ingest(pipeline, request.text, request.restaurant_id, request.catalog_only)


@router.post("/upload-file")
async def api_upload_file(
    pipeline: PipelineDep,
    file: UploadFile = File(...),
    restaurant_id: str | None = Query(default=None, alias="restaurantId"),
    catalog_only: bool = Query(default=False, alias="catalogOnly"),
) -> JSONResponse:
    """Ingest an uploaded file whose text was already extracted upstream."""
    content = await file.read()
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        return _error(400, "Uploaded file is not UTF-8 text")
    return await _ingest(pipeline, text, restaurant_id, catalog_only)


@router.get("/wines")
async def api_list_wines(
    service: QueryServiceDep,
    page: int = 1,
    page_size: int = Query(default=20, alias="pageSize"),
    search: str = "",
) -> JSONResponse:
    """Paginated catalog listing with optional free-text search."""
    result = service.list_wines(page=page, page_size=page_size, search=search)
    return JSONResponse({"success": True, **result.to_dict()})


@router.get("/wines/{wine_id}")
async def api_get_wine(wine_id: str, service: QueryServiceDep) -> JSONResponse:
    """Get a catalog wine by ID."""
    wine = service.get_wine(wine_id)
    if wine is None:
        return _error(404, "Wine not found")
    return JSONResponse({"success": True, "wine": wine.to_summary()})


@router.post("/enrich")
async def api_enrich(
    scheduler: EnrichmentDep,
    limit: int = Query(default=10, ge=1, le=500),
) -> JSONResponse:
    """Run an enrichment pass over unverified wines."""
    if scheduler is None:
        return _error(503, "Enrichment needs a configured AI provider")

    try:
        stats = await scheduler.run(limit=limit)
    except RunAborted as e:
        logger.error(f"Enrichment aborted: {e}")
        return _error(503, f"Catalog unavailable: {e}")

    return JSONResponse({
        "success": True,
        "message": f"Enriched {stats.accepted} of {stats.processed} wines",
        "stats": stats.to_dict(),
    })


@router.get("/verification-stats")
async def api_verification_stats(service: QueryServiceDep) -> JSONResponse:
    """Counts of verified and unverified catalog wines."""
    return JSONResponse({"success": True, **service.verification_stats().to_dict()})
