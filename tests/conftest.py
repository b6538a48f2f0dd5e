"""Shared fixtures: file-backed SQLite stores standing in for source and central databases."""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy import insert, select

from ddlrelay.config import AuditConfig, RelayConfig, StoreConfig
from ddlrelay.db import ConnectionPoolManager, LocalDDLAuditModel, SchemaAuditLogModel, StorePool, ensure_schema

BASE_TIME = datetime(2024, 1, 15, 9, 30, 0)


@pytest.fixture
def store_config(tmp_path: Path) -> Callable[..., StoreConfig]:
    def _make(name: str, **kwargs: Any) -> StoreConfig:
        return StoreConfig(name=name, url=f"sqlite+aiosqlite:///{tmp_path / name}.db", **kwargs)

    return _make


@pytest.fixture
def relay_config(store_config: Callable[..., StoreConfig]) -> RelayConfig:
    return RelayConfig(
        audit=AuditConfig(polling_interval=1, max_retries=3, retry_delay=0, batch_size=50),
        central=store_config("central"),
        sources=[store_config("sales"), store_config("inventory")],
    )


@pytest_asyncio.fixture
async def pools() -> AsyncIterator[ConnectionPoolManager]:
    manager = ConnectionPoolManager()
    yield manager
    await manager.close_all()


@pytest_asyncio.fixture
async def source_pool(pools: ConnectionPoolManager, relay_config: RelayConfig) -> StorePool:
    pool = await pools.acquire(relay_config.sources[0])
    await ensure_schema(pool, "source")
    return pool


@pytest_asyncio.fixture
async def central_pool(pools: ConnectionPoolManager, relay_config: RelayConfig) -> StorePool:
    pool = await pools.acquire(relay_config.central)
    await ensure_schema(pool, "central")
    return pool


def event_row(object_name: str | None, *, offset_s: int = 0, **overrides: Any) -> dict[str, Any]:
    created = BASE_TIME + timedelta(seconds=offset_s)
    row: dict[str, Any] = {
        "event_type": "CREATE_TABLE",
        "object_type": "TABLE",
        "object_name": object_name,
        "schema_name": "dbo",
        "ddl_statement": f"CREATE TABLE dbo.{object_name} (id INT)",
        "event_data": "<EVENT_INSTANCE />",
        "login_name": "sa",
        "user_name": "dbo",
        "host_name": "WS01",
        "application_name": "sqlcmd",
        "spid": 55,
        "start_time": created,
        "created_at": created,
    }
    row.update(overrides)
    return row


@pytest.fixture
def make_row() -> Callable[..., dict[str, Any]]:
    return event_row


@pytest.fixture
def seed_events() -> Callable[..., Awaitable[list[int]]]:
    """Insert rows into a source store's queue; returns their ids in insert order."""

    async def _seed(pool: StorePool, *rows: dict[str, Any]) -> list[int]:
        ids: list[int] = []
        async with pool.engine.begin() as conn:
            for row in rows:
                result = await conn.execute(insert(LocalDDLAuditModel.__table__).values(**row))
                ids.append(int(result.inserted_primary_key[0]))
        return ids

    return _seed


@pytest.fixture
def source_rows() -> Callable[[StorePool], Awaitable[dict[int, dict[str, Any]]]]:
    async def _rows(pool: StorePool) -> dict[int, dict[str, Any]]:
        rows = await pool.fetch_all(select(LocalDDLAuditModel.__table__))
        return {int(row["id"]): dict(row) for row in rows}

    return _rows


@pytest.fixture
def central_rows() -> Callable[[StorePool], Awaitable[list[dict[str, Any]]]]:
    async def _rows(pool: StorePool) -> list[dict[str, Any]]:
        table = SchemaAuditLogModel.__table__
        rows = await pool.fetch_all(select(table).order_by(table.c.id))
        return [dict(row) for row in rows]

    return _rows
