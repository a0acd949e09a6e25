"""
Batch Scheduler Module
======================

Runs a sequence of work items one at a time in volume-sized batches,
sleeping between items and between batches to stay under the external
service's rate limit.

Item-level failures are counted and the run continues; only
``RunAborted`` stops a run.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Generic, TypeVar

from wine_catalog.config import DEFAULT_BATCH_TIERS, BatchTier
from wine_catalog.core.errors import RunAborted

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

SleepFn = Callable[[float], Awaitable[Any]]


def select_tier(total: int, tiers: Sequence[BatchTier] = DEFAULT_BATCH_TIERS) -> BatchTier:
    """
    Pick the batch tier for a run of ``total`` items.

    Tiers are matched by descending threshold; the first tier whose
    ``above`` is exceeded wins, and the lowest tier catches the rest.
    """
    ordered = sorted(tiers, key=lambda t: t.above, reverse=True)
    for tier in ordered:
        if total > tier.above:
            return tier
    return ordered[-1]


@dataclass
class RunStats:
    """Running counters for one scheduled run."""

    total: int = 0
    processed: int = 0
    errors: int = 0
    rejected: int = 0
    fallbacks: int = 0
    sample: list[Any] = field(default_factory=list)
    sample_size: int = 20
    tier: BatchTier | None = None
    batches: int = 0
    cancelled: bool = False
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    _clock_start: float = field(default_factory=time.monotonic, repr=False)
    _clock_end: float | None = field(default=None, repr=False)

    @property
    def attempted(self) -> int:
        return self.processed + self.errors + self.rejected

    @property
    def elapsed_seconds(self) -> float:
        end = self._clock_end if self._clock_end is not None else time.monotonic()
        return round(end - self._clock_start, 3)

    @property
    def error_rate(self) -> float:
        """Errors as a fraction of items that reached a terminal state."""
        return self.errors / self.attempted if self.attempted else 0.0

    @property
    def estimated_remaining_seconds(self) -> float | None:
        """Linear estimate from the average time per item so far."""
        if not self.attempted:
            return None
        remaining = max(self.total - self.attempted, 0)
        return round(self.elapsed_seconds / self.attempted * remaining, 1)

    def record_sample(self, item: Any) -> None:
        if len(self.sample) < self.sample_size:
            self.sample.append(item)

    def finish(self) -> None:
        self._clock_end = time.monotonic()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "total": self.total,
            "processed": self.processed,
            "errors": self.errors,
            "rejected": self.rejected,
            "fallbacks": self.fallbacks,
            "batches": self.batches,
            "batchSize": self.tier.batch_size if self.tier else None,
            "errorRate": round(self.error_rate, 4),
            "elapsedSeconds": self.elapsed_seconds,
            "cancelled": self.cancelled,
            "startedAt": self.started_at.isoformat(),
        }


class ItemOutcome:
    """What a handler reports back for one item."""

    STORED = "stored"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass
class HandlerResult(Generic[R]):
    """
    Result of one item handler call.

    ``outcome`` is one of the ItemOutcome values; ``value`` is kept in
    the run sample when the item was stored.
    """

    outcome: str
    value: R | None = None
    fallback: bool = False


class BatchScheduler:
    """
    Throttled sequential executor.

    Example:
        scheduler = BatchScheduler()
        stats = await scheduler.run(lines, handle_line)
    """

    def __init__(
        self,
        tiers: Sequence[BatchTier] = DEFAULT_BATCH_TIERS,
        sample_size: int = 20,
        progress_log_every: int = 25,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.tiers = tuple(tiers)
        self.sample_size = sample_size
        self.progress_log_every = progress_log_every
        self._sleep = sleep

    async def run(
        self,
        items: Sequence[T],
        handler: Callable[[T], Awaitable[HandlerResult]],
        cancel_event: asyncio.Event | None = None,
        on_progress: Callable[[RunStats], Any] | None = None,
    ) -> RunStats:
        """
        Process ``items`` in throttled batches.

        Args:
            items: Work items; the count selects the batch tier.
            handler: Coroutine processing one item.
            cancel_event: When set, the run stops at the next item boundary.
            on_progress: Called with the stats after every item.

        Returns:
            Final RunStats.

        Raises:
            RunAborted: if the handler signals a run-level failure.
        """
        total = len(items)
        tier = select_tier(total, self.tiers)
        stats = RunStats(total=total, sample_size=self.sample_size, tier=tier)

        logger.info(
            f"Processing {total} items in batches of {tier.batch_size} "
            f"({tier.item_delay}s between items, {tier.batch_pause}s between batches)"
        )

        try:
            for batch_start in range(0, total, tier.batch_size):
                batch = items[batch_start : batch_start + tier.batch_size]
                if batch_start > 0:
                    await self._sleep(tier.batch_pause)
                stats.batches += 1

                for position, item in enumerate(batch):
                    if cancel_event is not None and cancel_event.is_set():
                        stats.cancelled = True
                        logger.warning(
                            f"Run cancelled after {stats.attempted} of {total} items"
                        )
                        return stats
                    if position > 0:
                        await self._sleep(tier.item_delay)

                    await self._run_item(item, handler, stats)

                    if on_progress is not None:
                        on_progress(stats)
                    if self.progress_log_every and stats.attempted % self.progress_log_every == 0:
                        logger.info(
                            f"Progress: {stats.attempted}/{total} "
                            f"({stats.processed} stored, {stats.errors} errors), "
                            f"~{stats.estimated_remaining_seconds}s remaining"
                        )
        finally:
            stats.finish()

        logger.info(
            f"Run complete: {stats.processed} stored, {stats.rejected} rejected, "
            f"{stats.errors} errors in {stats.elapsed_seconds}s"
        )
        return stats

    async def _run_item(
        self,
        item: T,
        handler: Callable[[T], Awaitable[HandlerResult]],
        stats: RunStats,
    ) -> None:
        try:
            result = await handler(item)
        except RunAborted:
            raise
        except Exception:
            logger.exception("Unexpected error processing item")
            stats.errors += 1
            return

        if result.fallback:
            stats.fallbacks += 1
        if result.outcome == ItemOutcome.STORED:
            stats.processed += 1
            if result.value is not None:
                stats.record_sample(result.value)
        elif result.outcome == ItemOutcome.REJECTED:
            stats.rejected += 1
        else:
            stats.errors += 1
