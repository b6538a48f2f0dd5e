"""Unit tests for the connection pool manager."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import text

from ddlrelay.config import PoolConfig, StoreConfig
from ddlrelay.db import ConfigurationError, ConnectionPoolManager, ConnectivityError, QueryError, create_store_engine


@pytest.mark.asyncio
async def test_acquire_is_idempotent_per_key(store_config: Callable[..., StoreConfig]) -> None:
    manager = ConnectionPoolManager()
    config = store_config("sales")
    first = await manager.acquire(config)
    second = await manager.acquire(config)
    assert first is second
    assert len(manager) == 1
    assert config.key in manager
    await manager.close_all()


@pytest.mark.asyncio
async def test_acquire_replaces_disconnected_pool(
    store_config: Callable[..., StoreConfig], monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = ConnectionPoolManager()
    config = store_config("sales")
    first = await manager.acquire(config)
    monkeypatch.setattr(first, "is_connected", AsyncMock(return_value=False))

    second = await manager.acquire(config)

    assert second is not first
    assert first.closed is True
    assert len(manager) == 1
    await manager.close_all()


@pytest.mark.asyncio
async def test_close_all_clears_registry_and_next_acquire_creates_fresh_pool(
    store_config: Callable[..., StoreConfig],
) -> None:
    manager = ConnectionPoolManager()
    a = await manager.acquire(store_config("a"))
    b = await manager.acquire(store_config("b"))
    assert len(manager) == 2

    await manager.close_all()

    assert len(manager) == 0
    assert a.closed and b.closed
    fresh = await manager.acquire(store_config("a"))
    assert fresh is not a
    assert fresh.closed is False
    await manager.close_all()


@pytest.mark.asyncio
async def test_close_all_logs_individual_failures(
    store_config: Callable[..., StoreConfig], caplog: pytest.LogCaptureFixture
) -> None:
    manager = ConnectionPoolManager()
    a = await manager.acquire(store_config("a"))
    b = await manager.acquire(store_config("b"))
    a.close = AsyncMock(side_effect=RuntimeError("boom"))  # type: ignore[method-assign]

    with caplog.at_level("ERROR", logger="ddlrelay.db.pool"):
        await manager.close_all()

    assert len(manager) == 0
    assert b.closed is True
    assert "boom" in caplog.text
    await a.engine.dispose()


@pytest.mark.asyncio
async def test_acquire_unreachable_store_raises_connectivity_error(tmp_path) -> None:
    manager = ConnectionPoolManager()
    config = StoreConfig(name="broken", url=f"sqlite+aiosqlite:///{tmp_path}/missing/dir/x.db")
    with pytest.raises(ConnectivityError, match="broken"):
        await manager.acquire(config)
    assert len(manager) == 0


@pytest.mark.asyncio
async def test_engine_factory_failure_is_connectivity_error(store_config: Callable[..., StoreConfig]) -> None:
    def _factory(config: StoreConfig):
        raise RuntimeError("driver missing")

    manager = ConnectionPoolManager(engine_factory=_factory)
    with pytest.raises(ConnectivityError, match="driver missing"):
        await manager.acquire(store_config("sales"))


@pytest.mark.asyncio
async def test_query_failures_become_query_errors(store_config: Callable[..., StoreConfig]) -> None:
    async with ConnectionPoolManager() as manager:
        pool = await manager.acquire(store_config("sales"))
        with pytest.raises(QueryError, match="lookup failed on store 'sales'"):
            await pool.fetch_all(text("SELECT * FROM no_such_table"), operation="lookup")
    assert len(manager) == 0


@pytest.mark.asyncio
async def test_request_timeout_bounds_each_call(store_config: Callable[..., StoreConfig]) -> None:
    async with ConnectionPoolManager() as manager:
        pool = await manager.acquire(store_config("sales", request_timeout_ms=20))
        with pytest.raises(QueryError, match="timed out"):
            await pool._bounded(asyncio.sleep(1), "slow call")


def test_create_store_engine_rejects_bad_url() -> None:
    with pytest.raises(ConfigurationError):
        create_store_engine(StoreConfig(name="bad", url="not a url"))


@pytest.mark.asyncio
async def test_create_store_engine_maps_pool_tuning() -> None:
    config = StoreConfig(
        name="pg",
        url="postgresql+asyncpg://user:pw@localhost:5432/audit",
        pool=PoolConfig(max=10, min=2, idle_timeout_ms=60000),
    )
    engine = create_store_engine(config)
    try:
        pool = engine.sync_engine.pool
        assert pool.size() == 2
        assert pool._max_overflow == 8
        assert pool._recycle == 60
    finally:
        await engine.dispose()
