"""Interval-driven poll cycles across all configured source stores."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from typing import Any

from ddlrelay.config.models import RelayConfig, StoreConfig
from ddlrelay.db.exceptions import DatabaseError
from ddlrelay.db.pool import ConnectionPoolManager, StorePool
from ddlrelay.relay.fetch import fetch_batch
from ddlrelay.relay.pipeline import RelayPipeline
from ddlrelay.relay.tracker import RetryTracker

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CycleReport:
    """Counters for one poll cycle."""

    stores_polled: int = 0
    fetched: int = 0
    relayed: int = 0
    failed: int = 0
    skipped_stores: list[str] = field(default_factory=list)

    def merge(self, other: CycleReport) -> None:
        self.stores_polled += other.stores_polled
        self.fetched += other.fetched
        self.relayed += other.relayed
        self.failed += other.failed
        self.skipped_stores.extend(other.skipped_stores)


class PollingScheduler:
    """Runs one poll cycle on start and then one per ``polling_interval``.

    Stores are polled sequentially in configuration order and events in
    batch order. Ticks fire on wall-clock interval; a tick that finds the
    previous cycle still running is skipped, so two cycles never touch the
    same source store at once.
    """

    def __init__(
        self,
        config: RelayConfig,
        pools: ConnectionPoolManager,
        pipeline: RelayPipeline,
        tracker: RetryTracker | None = None,
    ) -> None:
        self._config = config
        self._pools = pools
        self._pipeline = pipeline
        self._tracker = tracker if tracker is not None else RetryTracker()
        self._lock = asyncio.Lock()
        self._running = False
        self._ticker_task: asyncio.Task[None] | None = None
        self._cycle_task: asyncio.Task[CycleReport] | None = None
        self._skipped_ticks = 0
        self._last_report: CycleReport | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def cycle_in_progress(self) -> bool:
        return self._cycle_task is not None and not self._cycle_task.done()

    @property
    def skipped_ticks(self) -> int:
        return self._skipped_ticks

    @property
    def last_report(self) -> CycleReport | None:
        return self._last_report

    async def start(self) -> None:
        async with self._lock:
            if self._running:
                logger.info("polling scheduler already running")
                return
            self._running = True
            logger.info(
                "starting polling scheduler: interval=%ss, sources=%d",
                self._config.audit.polling_interval,
                len(self._config.sources),
            )
            first = self.tick()
            if first is not None:
                await asyncio.shield(first)
            self._ticker_task = asyncio.create_task(self._ticker())

    async def stop(self) -> None:
        """Cancel future ticks and wait for an in-flight cycle to finish."""
        async with self._lock:
            if not self._running:
                return
            self._running = False
            if self._ticker_task is not None:
                self._ticker_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._ticker_task
                self._ticker_task = None
            if self.cycle_in_progress:
                logger.info("waiting for in-flight poll cycle to finish")
                await asyncio.shield(self._cycle_task)  # type: ignore[arg-type]
            self._cycle_task = None
            logger.info("polling scheduler stopped")

    def tick(self) -> asyncio.Task[CycleReport] | None:
        """Launch a cycle unless one is still running; returns the new task."""
        if self.cycle_in_progress:
            self._skipped_ticks += 1
            logger.warning("previous poll cycle still running, skipping tick (%d skipped)", self._skipped_ticks)
            return None
        self._cycle_task = asyncio.create_task(self.run_cycle())
        return self._cycle_task

    async def _ticker(self) -> None:
        interval = self._config.audit.polling_interval
        while True:
            await asyncio.sleep(interval)
            self.tick()

    async def run_cycle(self) -> CycleReport:
        """One pass over every source store; never raises for store or event errors."""
        report = CycleReport()
        for source in self._config.sources:
            try:
                report.merge(await self.poll_store(source))
            except Exception as exc:
                logger.exception("unexpected error polling store %s: %s", source.name, exc)
                report.skipped_stores.append(source.name)
        if report.fetched or report.skipped_stores:
            logger.info(
                "poll cycle done: stores=%d fetched=%d relayed=%d failed=%d skipped=%s",
                report.stores_polled,
                report.fetched,
                report.relayed,
                report.failed,
                report.skipped_stores,
            )
        self._last_report = report
        return report

    async def poll_store(self, source: StoreConfig) -> CycleReport:
        report = CycleReport()
        audit = self._config.audit
        try:
            source_pool = await self._pools.acquire(source)
            central_pool = await self._pools.acquire(self._config.central)
            events = await fetch_batch(source_pool, audit.batch_size, audit.max_retries)
        except DatabaseError as exc:
            logger.error("skipping store %s this cycle: %s", source.name, exc)
            report.skipped_stores.append(source.name)
            return report

        report.stores_polled = 1
        report.fetched = len(events)
        if events:
            logger.info("fetched %d event(s) from store %s", len(events), source.name)
        for event in events:
            try:
                result = await self._pipeline.relay(event, central_pool, source_pool)
            except Exception as exc:
                logger.exception("relay of event %s from %s raised: %s", event.id, source.name, exc)
                report.failed += 1
                await self._record_failure(source_pool, event.id, exc)
                continue
            if result.ok:
                report.relayed += 1
                continue
            report.failed += 1
            await self._record_failure(source_pool, event.id, result.error or result.reason or "relay failed")
        return report

    async def _record_failure(self, pool: StorePool, event_id: int, error: Exception | str) -> None:
        try:
            await self._tracker.record_failure(pool, event_id, error)
        except DatabaseError as exc:
            logger.error("could not record failure for event %s on store %s: %s", event_id, pool.name, exc)

    def status(self) -> dict[str, Any]:
        return {
            "is_running": self._running,
            "polling_interval": self._config.audit.polling_interval,
            "monitored_databases": [source.name for source in self._config.sources],
            "cycle_in_progress": self.cycle_in_progress,
            "skipped_ticks": self._skipped_ticks,
        }
