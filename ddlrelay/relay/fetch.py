"""Selection of relayable events from a source store's queue table."""

from __future__ import annotations

from sqlalchemy import Select, false, or_, select
from sqlalchemy.engine import RowMapping

from ddlrelay.db.models import LocalDDLAuditModel
from ddlrelay.db.pool import StorePool
from ddlrelay.relay.events import ChangeEvent

# Tables the capture self-test creates and drops; never relayed.
SELF_TEST_OBJECT_PREFIX = "temp_test_trigger_"
_LIKE_ESCAPE = "\\"


def _escape_like(value: str) -> str:
    return value.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2).replace("%", "\\%").replace("_", "\\_")


SELF_TEST_LIKE_PATTERN = _escape_like(SELF_TEST_OBJECT_PREFIX) + "%"


def is_self_test_object(object_name: str | None) -> bool:
    return bool(object_name) and object_name.startswith(SELF_TEST_OBJECT_PREFIX)  # type: ignore[union-attr]


def build_fetch_statement(batch_size: int, max_retries: int) -> Select:
    """Unprocessed, retry budget left, not a self-test object; oldest first.

    Rows with a NULL object name fail the NOT LIKE test and are never
    fetched.
    """
    model = LocalDDLAuditModel
    return (
        select(model.__table__)
        .where(
            model.processed == false(),
            or_(model.retry_count < max_retries, model.retry_count.is_(None)),
            model.object_name.not_like(SELF_TEST_LIKE_PATTERN, escape=_LIKE_ESCAPE),
        )
        .order_by(model.created_at.asc(), model.id.asc())
        .limit(batch_size)
    )


def build_exhausted_statement(max_retries: int, limit: int) -> Select:
    """Unprocessed events whose retry budget is spent (dead-letter-by-filter)."""
    model = LocalDDLAuditModel
    return (
        select(model.__table__)
        .where(model.processed == false(), model.retry_count >= max_retries)
        .order_by(model.created_at.asc(), model.id.asc())
        .limit(limit)
    )


async def fetch_batch(pool: StorePool, batch_size: int, max_retries: int) -> list[ChangeEvent]:
    """Return at most ``batch_size`` eligible events from one source store.

    Ordering holds within this store only. An empty list means nothing is
    pending.

    Raises:
        QueryError: the select failed or timed out.
    """
    rows = await pool.fetch_all(build_fetch_statement(batch_size, max_retries), operation="fetch batch")
    return [_to_event(pool, row) for row in rows]


async def fetch_exhausted(pool: StorePool, max_retries: int, limit: int = 100) -> list[ChangeEvent]:
    rows = await pool.fetch_all(build_exhausted_statement(max_retries, limit), operation="fetch exhausted")
    return [_to_event(pool, row) for row in rows]


def _to_event(pool: StorePool, row: RowMapping) -> ChangeEvent:
    return ChangeEvent.from_row(row, database_name=pool.config.name, server_name=pool.config.server_label)
