"""Idempotent table creation for source and central stores."""

from __future__ import annotations

import logging
from typing import Literal

from ddlrelay.db.base import CentralBase, SourceBase
from ddlrelay.db.pool import StorePool

StoreRole = Literal["source", "central"]

logger = logging.getLogger(__name__)


async def ensure_schema(pool: StorePool, role: StoreRole) -> None:
    """Create the role's table and indexes when they do not exist yet."""
    metadata = CentralBase.metadata if role == "central" else SourceBase.metadata
    await pool.run_sync(lambda sync_conn: metadata.create_all(sync_conn, checkfirst=True), operation="ensure schema")
    logger.info("schema ready on %s store %s", role, pool.name)
