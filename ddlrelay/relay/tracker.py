"""Per-event failure bookkeeping on the source queue table."""

from __future__ import annotations

import logging
import re

from sqlalchemy import false, func, update

from ddlrelay.db.models import LocalDDLAuditModel
from ddlrelay.db.pool import StorePool

MAX_ERROR_MESSAGE_LENGTH = 4000
_WHITESPACE = re.compile(r"\s+")

logger = logging.getLogger(__name__)


def normalize_error_message(error: BaseException | str, limit: int = MAX_ERROR_MESSAGE_LENGTH) -> str:
    """Single-line message, falling back to the exception type, cut to ``limit``."""
    if isinstance(error, BaseException):
        raw = str(error).strip() or type(error).__name__
    else:
        raw = str(error)
    message = _WHITESPACE.sub(" ", raw).strip() or "unknown error"
    if len(message) > limit:
        return message[: max(limit - 3, 0)] + "..."
    return message


class RetryTracker:
    """Counts failed relay attempts per event.

    This is the only writer that increases ``retry_count``. Once the count
    reaches ``max_retries`` the fetch predicate stops returning the event;
    the row stays in place for manual inspection.
    """

    def __init__(self, max_error_length: int = MAX_ERROR_MESSAGE_LENGTH) -> None:
        self._max_error_length = max_error_length

    async def record_failure(self, pool: StorePool, event_id: int, error: BaseException | str) -> bool:
        """Increment ``retry_count`` and store the error; ``processed`` stays false.

        Returns False when no unprocessed row matched ``event_id``.

        Raises:
            QueryError: the update failed.
        """
        model = LocalDDLAuditModel
        message = normalize_error_message(error, self._max_error_length)
        stmt = (
            update(model)
            .where(model.id == event_id, model.processed == false())
            .values(
                retry_count=func.coalesce(model.retry_count, 0) + 1,
                error_message=message,
            )
        )
        updated = await pool.execute(stmt, operation="record failure")
        if updated == 0:
            logger.warning("no unprocessed event %s on store %s to record failure for", event_id, pool.name)
            return False
        logger.info("recorded failure for event %s on store %s: %s", event_id, pool.name, message)
        return True
