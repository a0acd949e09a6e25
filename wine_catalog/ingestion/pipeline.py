"""
Ingestion Pipeline Module
=========================

Turns raw wine-list text into catalog records.

Each candidate line moves through:

    Pending -> ExtractedViaKnowledgeService | ExtractedViaFallback | Rejected
            -> Stored | Failed

Knowledge-service failures fall back to the cheap extractor, store
failures fail the line, and neither stops the run.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from wine_catalog.config import IngestionConfig
from wine_catalog.core.enums import LineState
from wine_catalog.core.errors import ExtractionFailed, ExtractionTimeout, RunAborted, StoreFailure
from wine_catalog.core.schema import CandidateLine, ExtractedWine, WineRecord
from wine_catalog.ingestion.cheap_extractor import CheapExtractor
from wine_catalog.ingestion.scheduler import (
    BatchScheduler,
    HandlerResult,
    ItemOutcome,
    RunStats,
)
from wine_catalog.ingestion.segmenter import segment_lines
from wine_catalog.ingestion.store import CatalogStore
from wine_catalog.services.ai.extraction import Extractor

logger = logging.getLogger(__name__)

_ALLOWED_TRANSITIONS: dict[LineState, set[LineState]] = {
    LineState.PENDING: {
        LineState.EXTRACTED_VIA_KNOWLEDGE_SERVICE,
        LineState.EXTRACTED_VIA_FALLBACK,
        LineState.REJECTED,
    },
    LineState.EXTRACTED_VIA_KNOWLEDGE_SERVICE: {LineState.STORED, LineState.FAILED},
    LineState.EXTRACTED_VIA_FALLBACK: {LineState.STORED, LineState.FAILED},
}


@dataclass
class LineResult:
    """Where one candidate line ended up."""

    line: CandidateLine
    state: LineState = LineState.PENDING
    extracted: ExtractedWine | None = None
    record: WineRecord | None = None
    error: str | None = None
    history: list[LineState] = field(default_factory=lambda: [LineState.PENDING])

    def transition(self, new_state: LineState) -> None:
        if new_state not in _ALLOWED_TRANSITIONS.get(self.state, set()):
            raise ValueError(f"Invalid line transition {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)

    @property
    def used_fallback(self) -> bool:
        return LineState.EXTRACTED_VIA_FALLBACK in self.history


@dataclass
class IngestionReport:
    """Summary of an ingestion run, shaped for the HTTP boundary."""

    success: bool
    message: str
    sample: list[WineRecord] = field(default_factory=list)
    stats: RunStats | None = None
    database_total: int = 0
    lines_found: int = 0

    @property
    def processed(self) -> int:
        return self.stats.processed if self.stats else 0

    @property
    def errors(self) -> int:
        return self.stats.errors if self.stats else 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        stats = self.stats
        return {
            "success": self.success,
            "message": self.message,
            "wines": [w.to_summary() for w in self.sample],
            "stats": {
                "processed": self.processed,
                "errors": self.errors,
                "databaseTotal": self.database_total,
                "linesFound": self.lines_found,
                "rejected": stats.rejected if stats else 0,
                "fallbacks": stats.fallbacks if stats else 0,
                "elapsedSeconds": stats.elapsed_seconds if stats else 0.0,
                "cancelled": stats.cancelled if stats else False,
            },
        }


class IngestionPipeline:
    """
    Orchestrates segmenting, extraction, fallback and storage.

    With no knowledge extractor every line goes straight to the cheap
    extractor, so uploads still work when no AI provider is configured.
    """

    def __init__(
        self,
        store: CatalogStore,
        extractor: Extractor | None = None,
        fallback: CheapExtractor | None = None,
        config: IngestionConfig | None = None,
        scheduler: BatchScheduler | None = None,
    ):
        self.store = store
        self.extractor = extractor
        self.fallback = fallback or CheapExtractor()
        self.config = config or IngestionConfig()
        self.scheduler = scheduler or BatchScheduler(
            tiers=self.config.batch_tiers,
            sample_size=self.config.sample_size,
            progress_log_every=self.config.progress_log_every,
        )

    async def process_line(
        self,
        line: CandidateLine,
        restaurant_id: str | None = None,
    ) -> LineResult:
        """
        Drive one line to a terminal state.

        Raises:
            RunAborted: if the store is unreachable.
        """
        result = LineResult(line=line)

        extracted = await self._extract(line, result)
        if result.state == LineState.REJECTED:
            return result
        result.extracted = extracted

        try:
            upsert = await asyncio.to_thread(self.store.upsert, extracted)
            if restaurant_id:
                await asyncio.to_thread(
                    self.store.link_restaurant, restaurant_id, upsert.record_id
                )
        except RunAborted:
            raise
        except StoreFailure as e:
            logger.warning(f"Line {line.index}: store failed: {e}")
            result.error = str(e)
            result.transition(LineState.FAILED)
            return result

        result.record = upsert.record
        result.transition(LineState.STORED)
        return result

    async def _extract(self, line: CandidateLine, result: LineResult) -> ExtractedWine | None:
        if self.extractor is not None:
            try:
                extracted = await self.extractor.extract(line)
            except ExtractionTimeout as e:
                logger.info(f"Line {line.index}: {e}, using fallback")
            except ExtractionFailed as e:
                logger.warning(f"Line {line.index}: extraction failed ({e}), using fallback")
            else:
                if extracted is None:
                    logger.debug(f"Line {line.index} is not a wine: {line.text!r}")
                    result.transition(LineState.REJECTED)
                    return None
                result.transition(LineState.EXTRACTED_VIA_KNOWLEDGE_SERVICE)
                return extracted

        result.transition(LineState.EXTRACTED_VIA_FALLBACK)
        return self.fallback.extract(line)

    async def run(
        self,
        raw_text: str,
        restaurant_id: str | None = None,
        catalog_only: bool = False,
        cancel_event: asyncio.Event | None = None,
        on_progress: Callable[[RunStats], Any] | None = None,
    ) -> IngestionReport:
        """
        Ingest a raw wine list.

        Args:
            raw_text: Pasted, OCR-extracted or uploaded text.
            restaurant_id: Restaurant to associate stored wines with.
            catalog_only: Add to the catalog without any restaurant link.
            cancel_event: Set to stop at the next line boundary.
            on_progress: Called with running stats after every line.

        Returns:
            IngestionReport; ``success`` is False only when nothing could start.

        Raises:
            RunAborted: if the catalog store becomes unreachable.
        """
        if not raw_text or not raw_text.strip():
            return IngestionReport(success=False, message="No wine list text provided")

        lines = list(segment_lines(raw_text, self.config.min_line_length))
        if not lines:
            return IngestionReport(
                success=False,
                message="No candidate wine lines found in the provided text",
            )

        link_to = None if catalog_only else restaurant_id

        async def handle(line: CandidateLine) -> HandlerResult:
            line_result = await self.process_line(line, restaurant_id=link_to)
            if line_result.state == LineState.STORED:
                outcome = ItemOutcome.STORED
            elif line_result.state == LineState.REJECTED:
                outcome = ItemOutcome.REJECTED
            else:
                outcome = ItemOutcome.FAILED
            return HandlerResult(
                outcome=outcome,
                value=line_result.record,
                fallback=line_result.used_fallback,
            )

        logger.info(f"Ingesting {len(lines)} candidate lines")
        stats = await self.scheduler.run(lines, handle, cancel_event, on_progress)

        if stats.attempted and stats.error_rate >= self.config.error_rate_alert:
            logger.error(
                f"High error rate: {stats.errors} of {stats.attempted} lines failed "
                f"({stats.error_rate:.0%}); check the catalog store"
            )

        database_total = await asyncio.to_thread(self.store.count)

        message = f"Processed {stats.processed} wines from {len(lines)} lines"
        if stats.cancelled:
            message += " (cancelled before completion)"

        return IngestionReport(
            success=True,
            message=message,
            sample=list(stats.sample),
            stats=stats,
            database_total=database_total,
            lines_found=len(lines),
        )
