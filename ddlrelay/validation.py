"""Startup checks: every store reachable and its table present."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from ddlrelay.config.models import RelayConfig, StoreConfig
from ddlrelay.db.exceptions import DatabaseError
from ddlrelay.db.pool import ConnectionPoolManager
from ddlrelay.db.schema import StoreRole, ensure_schema

logger = logging.getLogger(__name__)


class StartupValidationError(Exception):
    """A store failed its startup check; the process must not start polling."""

    def __init__(self, check: StoreCheck) -> None:
        self.check = check
        super().__init__(f"{check.role} store '{check.name}' failed validation: {check.message}")


@dataclass(slots=True)
class StoreCheck:
    name: str
    role: StoreRole
    location: str
    ok: bool
    message: str
    latency_ms: float | None = None

    @property
    def status(self) -> str:
        return "OK" if self.ok else "ERROR"


async def check_store(pools: ConnectionPoolManager, config: StoreConfig, role: StoreRole) -> StoreCheck:
    location = config.describe()
    start = time.perf_counter()
    try:
        pool = await pools.acquire(config)
        latency_ms = (time.perf_counter() - start) * 1000
        await ensure_schema(pool, role)
    except DatabaseError as exc:
        logger.error("%s store %s failed validation: %s", role, config.name, exc)
        return StoreCheck(name=config.name, role=role, location=location, ok=False, message=str(exc))
    return StoreCheck(
        name=config.name,
        role=role,
        location=location,
        ok=True,
        message=f"connected ({latency_ms:.0f}ms), table ready",
        latency_ms=latency_ms,
    )


async def validate_stores(config: RelayConfig, pools: ConnectionPoolManager) -> list[StoreCheck]:
    """Check the central store first, then each source in configuration order."""
    checks = [await check_store(pools, config.central, "central")]
    for source in config.sources:
        checks.append(await check_store(pools, source, "source"))
    return checks


async def validate_or_raise(config: RelayConfig, pools: ConnectionPoolManager) -> list[StoreCheck]:
    checks = await validate_stores(config, pools)
    for check in checks:
        if not check.ok:
            raise StartupValidationError(check)
    logger.info("all %d store(s) validated", len(checks))
    return checks
