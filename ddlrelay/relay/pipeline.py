"""At-least-once relay of one event: central write, mark processed, notify."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from sqlalchemy import insert, update

from ddlrelay.db.exceptions import QueryError
from ddlrelay.db.models import LocalDDLAuditModel, SchemaAuditLogModel
from ddlrelay.db.pool import StorePool
from ddlrelay.notify.base import DDLChange, Notifier
from ddlrelay.relay.errors import ProcessingError
from ddlrelay.relay.events import ChangeEvent, RelayedEvent, utcnow

RelayStep = Literal["central_write", "mark_processed"]

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RelayResult:
    """Outcome of one relay attempt."""

    event_id: int
    ok: bool
    central_written: bool = False
    failed_step: RelayStep | None = None
    error: Exception | None = None

    @property
    def reason(self) -> str | None:
        return str(self.error) if self.error is not None else None


class RelayPipeline:
    """Moves one ``ChangeEvent`` from its source queue to the central store.

    Steps run in order: insert into ``schema_audit_log``, mark the source row
    processed, notify. No transaction spans the two stores. When the insert
    succeeds and the mark fails, the central row stays and the event is
    relayed again later, producing a duplicate central row.
    """

    def __init__(self, notifier: Notifier) -> None:
        self._notifier = notifier

    async def relay(self, event: ChangeEvent, central: StorePool, source: StorePool) -> RelayResult:
        logger.info("relaying event %s from %s (%s)", event.id, source.name, event.label)
        relayed = RelayedEvent.from_change(event)
        try:
            await self.write_central(relayed, central)
        except QueryError as exc:
            logger.error("central write failed for event %s from %s: %s", event.id, source.name, exc)
            return RelayResult(event_id=event.id, ok=False, failed_step="central_write", error=exc)

        try:
            await self.mark_processed(event, source)
        except ProcessingError as exc:
            logger.error(
                "event %s from %s written centrally but not marked processed; it will be relayed again: %s",
                event.id,
                source.name,
                exc,
            )
            return RelayResult(
                event_id=event.id, ok=False, central_written=True, failed_step="mark_processed", error=exc
            )

        await self.notify(event)
        logger.info("event %s from %s relayed", event.id, source.name)
        return RelayResult(event_id=event.id, ok=True, central_written=True)

    async def write_central(self, relayed: RelayedEvent, central: StorePool) -> None:
        stmt = insert(SchemaAuditLogModel).values(**relayed.to_values())
        await central.execute(stmt, operation="central insert")

    async def mark_processed(self, event: ChangeEvent, source: StorePool) -> None:
        model = LocalDDLAuditModel
        processed_at = utcnow()
        stmt = (
            update(model)
            .where(model.id == event.id)
            .values(processed=True, processed_at=processed_at, retry_count=0)
        )
        try:
            updated = await source.execute(stmt, operation="mark processed")
        except QueryError as exc:
            raise ProcessingError(source.name, event.id, "mark processed", str(exc)) from exc
        if updated == 0:
            raise ProcessingError(source.name, event.id, "mark processed", "source row not found")
        event.processed = True
        event.processed_at = processed_at
        event.retry_count = 0

    async def notify(self, event: ChangeEvent) -> None:
        """Best-effort; a notifier failure never changes the relay outcome."""
        try:
            await self._notifier.notify_change(DDLChange.from_event(event))
        except Exception as exc:
            logger.warning("notification for event %s failed: %s", event.id, exc)
