"""Connection pools keyed by store identity.

One ``StorePool`` wraps one SQLAlchemy ``AsyncEngine`` (which owns the
actual connection pool). The ``ConnectionPoolManager`` creates pools
lazily, hands back the live one on later calls, replaces pools that stop
answering, and closes everything on shutdown.

The manager is not locked: the polling scheduler is its only caller and
never acquires the same key concurrently.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from sqlalchemy import Executable, text
from sqlalchemy.engine import RowMapping
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from ddlrelay.config.models import StoreConfig, StoreKey
from ddlrelay.db.exceptions import ConfigurationError, ConnectivityError, QueryError

logger = logging.getLogger(__name__)

T = TypeVar("T")
EngineFactory = Callable[[StoreConfig], AsyncEngine]


def _connect_args(config: StoreConfig, backend: str, driver: str) -> dict[str, Any]:
    connect_timeout = config.connect_timeout_seconds
    if backend == "postgresql" and driver == "asyncpg":
        return {"timeout": connect_timeout, "command_timeout": config.request_timeout_seconds}
    if backend == "mssql":
        return {"timeout": int(max(connect_timeout, 1))}
    if backend == "sqlite":
        return {"timeout": connect_timeout}
    return {}


def create_store_engine(config: StoreConfig) -> AsyncEngine:
    """Create an async engine using the store's pool tuning and timeouts.

    SQLite engines keep SQLAlchemy's default pool class, which does not take
    sizing arguments.
    """
    try:
        url = config.sqlalchemy_url()
    except Exception as exc:
        raise ConfigurationError(f"Invalid URL for store '{config.name}': {exc}") from exc
    backend = url.get_backend_name()
    kwargs: dict[str, Any] = {
        "connect_args": _connect_args(config, backend, url.get_driver_name()),
        "pool_pre_ping": True,
    }
    if backend != "sqlite":
        pool_size = max(config.pool.min, 1)
        kwargs.update(
            pool_size=pool_size,
            max_overflow=max(config.pool.max - pool_size, 0),
            pool_timeout=config.connect_timeout_seconds,
            pool_recycle=max(config.pool.idle_timeout_ms // 1000, 1),
        )
    return create_async_engine(url, **kwargs)


def _connectivity_error(config: StoreConfig, exc: Exception) -> ConnectivityError:
    return ConnectivityError(config.name, config.server, config.port if config.server else None, str(exc))


class StorePool:
    """Live handle to one store; shared by all relay work for that store."""

    def __init__(self, config: StoreConfig, engine: AsyncEngine) -> None:
        self.config = config
        self.engine = engine
        self._closed = False

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def key(self) -> StoreKey:
        return self.config.key

    @property
    def closed(self) -> bool:
        return self._closed

    async def ping(self) -> None:
        """Round-trip ``SELECT 1``; raises on failure."""
        async with self.engine.connect() as conn:
            await asyncio.wait_for(conn.execute(text("SELECT 1")), timeout=self.config.connect_timeout_seconds)

    async def is_connected(self) -> bool:
        if self._closed:
            return False
        try:
            await self.ping()
        except Exception as exc:
            logger.warning("store %s failed health check: %s", self.name, exc)
            return False
        return True

    async def fetch_all(self, statement: Executable, *, operation: str = "query") -> list[RowMapping]:
        """Run a read statement and return its rows as mappings."""

        async def _run() -> list[RowMapping]:
            async with self.engine.connect() as conn:
                result = await conn.execute(statement)
                return list(result.mappings().all())

        return await self._bounded(_run(), operation)

    async def execute(self, statement: Executable, *, operation: str = "write") -> int:
        """Run a write statement in its own transaction; returns the rowcount."""

        async def _run() -> int:
            async with self.engine.begin() as conn:
                result = await conn.execute(statement)
                return int(result.rowcount or 0)

        return await self._bounded(_run(), operation)

    async def run_sync(self, fn: Callable[..., Any], operation: str = "schema") -> Any:
        """Run a sync callable (e.g. metadata.create_all) inside a transaction."""

        async def _run() -> Any:
            async with self.engine.begin() as conn:
                return await conn.run_sync(fn)

        return await self._bounded(_run(), operation)

    async def close(self) -> None:
        self._closed = True
        await self.engine.dispose()

    async def _bounded(self, coro: Awaitable[T], operation: str) -> T:
        try:
            return await asyncio.wait_for(coro, timeout=self.config.request_timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise QueryError(
                self.name, operation, f"timed out after {self.config.request_timeout_seconds:.1f}s"
            ) from exc
        except QueryError:
            raise
        except Exception as exc:
            raise QueryError(self.name, operation, str(exc)) from exc


class ConnectionPoolManager:
    """Registry of ``StorePool`` instances keyed by (name, server, database)."""

    def __init__(self, engine_factory: EngineFactory | None = None) -> None:
        self._engine_factory = engine_factory or create_store_engine
        self._pools: dict[StoreKey, StorePool] = {}

    def __len__(self) -> int:
        return len(self._pools)

    def __contains__(self, key: object) -> bool:
        return key in self._pools

    async def __aenter__(self) -> ConnectionPoolManager:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close_all()

    async def acquire(self, config: StoreConfig) -> StorePool:
        """Return the live pool for ``config``, creating or replacing it when needed.

        Raises:
            ConnectivityError: the pool could not be created or connected.
        """
        key = config.key
        existing = self._pools.get(key)
        if existing is not None:
            if await existing.is_connected():
                return existing
            logger.info("replacing disconnected pool for store %s", config.name)
            del self._pools[key]
            await self._close_quietly(existing)

        logger.info("creating connection pool for store %s", config.describe())
        try:
            engine = self._engine_factory(config)
        except Exception as exc:
            raise _connectivity_error(config, exc) from exc
        pool = StorePool(config, engine)
        try:
            await pool.ping()
        except Exception as exc:
            await self._close_quietly(pool)
            raise _connectivity_error(config, exc) from exc
        self._pools[key] = pool
        logger.info("connection pool ready for store %s", config.name)
        return pool

    async def close_all(self) -> None:
        """Close every registered pool, logging individual failures, then clear."""
        if not self._pools:
            return
        logger.info("closing %d connection pool(s)", len(self._pools))
        pools = list(self._pools.values())
        self._pools.clear()
        results = await asyncio.gather(*(pool.close() for pool in pools), return_exceptions=True)
        for pool, result in zip(pools, results, strict=True):
            if isinstance(result, BaseException):
                logger.error("failed to close pool for store %s: %s", pool.name, result)

    @staticmethod
    async def _close_quietly(pool: StorePool) -> None:
        try:
            await pool.close()
        except Exception as exc:
            logger.warning("failed to close pool for store %s: %s", pool.name, exc)
