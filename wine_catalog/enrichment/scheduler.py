"""
Enrichment Scheduler Module
===========================

Walks unverified catalog entries, asks the profile generator for
tasting metadata, and writes back only profiles that pass the
confidence gate. Rejected entries stay unverified for a later pass.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from wine_catalog.config import EnrichmentConfig
from wine_catalog.core.enums import EnrichmentOutcome
from wine_catalog.core.errors import ProfileGenerationFailed, RunAborted, StoreFailure
from wine_catalog.core.schema import UnverifiedCursor, WineRecord
from wine_catalog.enrichment.gate import ConfidenceGate
from wine_catalog.ingestion.store import CatalogStore
from wine_catalog.services.ai.profiles import ProfileGenerator

logger = logging.getLogger(__name__)


@dataclass
class EnrichmentStats:
    """Counters for one enrichment run."""

    processed: int = 0
    accepted: int = 0
    rejected: int = 0
    failed: int = 0
    cancelled: bool = False
    accepted_ids: list[str] = field(default_factory=list)
    elapsed_seconds: float = 0.0
    # Set when listing candidates failed and the run stopped early
    error: str | None = None

    def record(self, wine_id: str, outcome: EnrichmentOutcome) -> None:
        self.processed += 1
        if outcome == EnrichmentOutcome.ACCEPTED:
            self.accepted += 1
            self.accepted_ids.append(wine_id)
        elif outcome == EnrichmentOutcome.REJECTED:
            self.rejected += 1
        else:
            self.failed += 1

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "processed": self.processed,
            "accepted": self.accepted,
            "rejected": self.rejected,
            "failed": self.failed,
            "cancelled": self.cancelled,
            "elapsedSeconds": self.elapsed_seconds,
            "error": self.error,
        }


class EnrichmentScheduler:
    """Sequential, throttled enrichment over unverified entries."""

    def __init__(
        self,
        store: CatalogStore,
        generator: ProfileGenerator,
        gate: ConfidenceGate | None = None,
        config: EnrichmentConfig | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.store = store
        self.generator = generator
        self.config = config or EnrichmentConfig()
        self.gate = gate or ConfidenceGate.from_config(self.config)
        self._sleep = sleep

    async def enrich_one(self, record: WineRecord) -> EnrichmentOutcome:
        """
        Generate, gate and persist a profile for one entry.

        Raises:
            RunAborted: if the store is unreachable.
        """
        try:
            profile = await self.generator.generate(record)
        except ProfileGenerationFailed as e:
            logger.warning(f"Profile generation failed for '{record.name}': {e}")
            return EnrichmentOutcome.FAILED

        decision = self.gate.evaluate(profile)
        if not decision.accepted:
            logger.info(f"Profile for '{record.name}' rejected: {decision.reason}")
            return EnrichmentOutcome.REJECTED

        try:
            updated = await asyncio.to_thread(
                self.store.apply_profile, record.id, profile, self.config.verified_source
            )
        except RunAborted:
            raise
        except StoreFailure as e:
            logger.warning(f"Could not save profile for '{record.name}': {e}")
            return EnrichmentOutcome.FAILED

        if updated is None:
            logger.warning(f"Wine {record.id} disappeared before its profile was saved")
            return EnrichmentOutcome.FAILED
        return EnrichmentOutcome.ACCEPTED

    async def run(
        self,
        limit: int | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> EnrichmentStats:
        """
        Enrich up to ``limit`` unverified entries (all of them if None).

        Entries are visited in (created_at, id) order behind a cursor, so
        each is attempted at most once per run and a rejected profile is
        not retried until the next run. If the store cannot list the next
        batch, the run stops and returns what it has done so far.
        """
        stats = EnrichmentStats()
        cursor: UnverifiedCursor | None = None
        started = time.monotonic()

        logger.info(f"Starting enrichment run (limit={limit})")
        try:
            while limit is None or stats.processed < limit:
                batch_limit = self.config.batch_size
                if limit is not None:
                    batch_limit = min(batch_limit, limit - stats.processed)

                try:
                    batch = await asyncio.to_thread(
                        self.store.list_unverified, batch_limit, cursor
                    )
                except RunAborted:
                    raise
                except StoreFailure as e:
                    logger.error(f"Could not list unverified wines, stopping run: {e}")
                    stats.error = str(e)
                    break
                if not batch:
                    break

                for record in batch:
                    if cancel_event is not None and cancel_event.is_set():
                        stats.cancelled = True
                        logger.warning(f"Enrichment cancelled after {stats.processed} entries")
                        return stats
                    if stats.processed > 0:
                        await self._sleep(self.config.item_delay)

                    wine_id = str(record.id)
                    cursor = record.cursor
                    try:
                        outcome = await self.enrich_one(record)
                    except RunAborted:
                        raise
                    except Exception:
                        logger.exception(f"Unexpected error enriching '{record.name}'")
                        outcome = EnrichmentOutcome.FAILED
                    stats.record(wine_id, outcome)
        finally:
            stats.elapsed_seconds = round(time.monotonic() - started, 3)

        logger.info(
            f"Enrichment complete: {stats.accepted} accepted, {stats.rejected} rejected, "
            f"{stats.failed} failed"
        )
        return stats
