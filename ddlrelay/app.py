"""Process wiring: config, pools, notifier, pipeline and scheduler."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal

from ddlrelay.config.models import RelayConfig
from ddlrelay.db.pool import ConnectionPoolManager
from ddlrelay.notify import Notifier, build_notifier
from ddlrelay.relay.pipeline import RelayPipeline
from ddlrelay.relay.scheduler import CycleReport, PollingScheduler
from ddlrelay.relay.tracker import RetryTracker
from ddlrelay.validation import StoreCheck, validate_or_raise

logger = logging.getLogger(__name__)

STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class DDLRelayApp:
    """Owns every long-lived component for one relay process."""

    def __init__(
        self,
        config: RelayConfig,
        *,
        pools: ConnectionPoolManager | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.config = config
        self.pools = pools if pools is not None else ConnectionPoolManager()
        self.notifier = notifier if notifier is not None else build_notifier(config.discord)
        self.pipeline = RelayPipeline(self.notifier)
        self.scheduler = PollingScheduler(config, self.pools, self.pipeline, RetryTracker())
        self._stop_event: asyncio.Event | None = None

    async def startup(self) -> list[StoreCheck]:
        """Validate stores, announce, start polling.

        Raises:
            StartupValidationError: a store is unreachable or its table cannot be created.
        """
        try:
            checks = await validate_or_raise(self.config, self.pools)
        except Exception as exc:
            logger.error("startup failed: %s", exc)
            await self.notifier.notify_system_error(exc, "startup")
            raise
        sources = ", ".join(source.name for source in self.config.sources)
        await self.notifier.notify_system_status(
            "DDL relay online",
            f"Monitoring: {sources}\nPolling interval: {self.config.audit.polling_interval}s",
        )
        await self.scheduler.start()
        logger.info("ddl relay started")
        return checks

    async def shutdown(self) -> None:
        logger.info("shutting down ddl relay")
        await self.scheduler.stop()
        await self.notifier.notify_system_status("DDL relay shutting down")
        await self.notifier.close()
        await self.pools.close_all()
        logger.info("ddl relay stopped")

    def request_stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()

    async def run(self) -> int:
        """Run until SIGINT/SIGTERM; returns the process exit status."""
        self._stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in STOP_SIGNALS:
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, self.request_stop)
        try:
            try:
                await self.startup()
            except Exception:
                await self.notifier.close()
                await self.pools.close_all()
                return 1
            await self._stop_event.wait()
            await self.shutdown()
            return 0
        finally:
            for sig in STOP_SIGNALS:
                with contextlib.suppress(NotImplementedError):
                    loop.remove_signal_handler(sig)

    async def poll_once(self) -> CycleReport:
        """Validate, run a single cycle, release everything."""
        try:
            await validate_or_raise(self.config, self.pools)
            return await self.scheduler.run_cycle()
        finally:
            await self.notifier.close()
            await self.pools.close_all()
