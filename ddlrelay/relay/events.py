"""Typed records for captured and relayed DDL events, plus row adapters."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DATETIME columns of both tables."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass(slots=True)
class ChangeEvent:
    """One row of a source store's ``local_ddl_audit`` queue."""

    id: int
    database_name: str
    server_name: str
    event_type: str
    object_name: str
    object_type: str
    start_time: datetime
    created_at: datetime
    schema_name: str | None = None
    ddl_statement: str | None = None
    event_data: str | None = None
    login_name: str | None = None
    user_name: str | None = None
    host_name: str | None = None
    application_name: str | None = None
    spid: int | None = None
    processed: bool = False
    processed_at: datetime | None = None
    retry_count: int = 0
    error_message: str | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any], *, database_name: str, server_name: str) -> ChangeEvent:
        """Map a ``local_ddl_audit`` row; provenance comes from the store config."""
        return cls(
            id=int(row["id"]),
            database_name=database_name,
            server_name=server_name,
            event_type=row["event_type"],
            object_name=row["object_name"] or "",
            object_type=row["object_type"] or "",
            start_time=row["start_time"],
            created_at=row["created_at"],
            schema_name=row["schema_name"],
            ddl_statement=row["ddl_statement"],
            event_data=row["event_data"],
            login_name=row["login_name"],
            user_name=row["user_name"],
            host_name=row["host_name"],
            application_name=row["application_name"],
            spid=row["spid"],
            processed=bool(row["processed"]),
            processed_at=row["processed_at"],
            retry_count=int(row["retry_count"] or 0),
            error_message=row["error_message"],
        )

    @property
    def label(self) -> str:
        return f"{self.event_type} {self.object_type} {self.object_name}".strip()


@dataclass(slots=True)
class RelayedEvent:
    """Append-only central copy of a ``ChangeEvent``."""

    source_event_id: int
    database_name: str
    server_name: str
    object_name: str
    object_type: str
    ddl_operation: str
    start_time: datetime
    schema_name: str | None = None
    ddl_statement: str | None = None
    event_data: str | None = None
    login_name: str | None = None
    user_name: str | None = None
    host_name: str | None = None
    application_name: str | None = None
    spid: int | None = None
    relayed_at: datetime = field(default_factory=utcnow)

    @classmethod
    def from_change(cls, event: ChangeEvent, *, relayed_at: datetime | None = None) -> RelayedEvent:
        return cls(
            source_event_id=event.id,
            database_name=event.database_name,
            server_name=event.server_name,
            object_name=event.object_name,
            object_type=event.object_type,
            ddl_operation=event.event_type,
            start_time=event.start_time,
            schema_name=event.schema_name,
            ddl_statement=event.ddl_statement,
            event_data=event.event_data,
            login_name=event.login_name,
            user_name=event.user_name,
            host_name=event.host_name,
            application_name=event.application_name,
            spid=event.spid,
            relayed_at=relayed_at or utcnow(),
        )

    @property
    def natural_key(self) -> tuple[str, int, datetime]:
        """Key downstream consumers use to drop at-least-once duplicates."""
        return (self.database_name, self.source_event_id, self.start_time)

    def to_values(self) -> dict[str, Any]:
        """Column values for a ``schema_audit_log`` insert."""
        return {
            "database_name": self.database_name,
            "server_name": self.server_name,
            "source_event_id": self.source_event_id,
            "schema_name": self.schema_name,
            "object_name": self.object_name,
            "object_type": self.object_type,
            "ddl_operation": self.ddl_operation,
            "ddl_statement": self.ddl_statement,
            "event_data": self.event_data,
            "login_name": self.login_name,
            "user_name": self.user_name,
            "host_name": self.host_name,
            "application_name": self.application_name,
            "spid": self.spid,
            "start_time": self.start_time,
            "processed": True,
            "processed_at": self.relayed_at,
            "created_at": self.relayed_at,
            "updated_at": self.relayed_at,
        }
