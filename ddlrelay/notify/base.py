"""Notification sink contract and the no-op sink."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from ddlrelay.relay.events import ChangeEvent


class NotificationError(Exception):
    """A notification could not be delivered; logged, never propagated to relay state."""


@dataclass(slots=True, frozen=True)
class DDLChange:
    """Payload handed to the notification sink for one relayed event."""

    id: int
    database_name: str
    server_name: str
    object_name: str
    object_type: str
    ddl_operation: str
    start_time: datetime
    schema_name: str | None = None
    ddl_statement: str | None = None
    login_name: str | None = None
    user_name: str | None = None
    host_name: str | None = None

    @classmethod
    def from_event(cls, event: ChangeEvent) -> DDLChange:
        return cls(
            id=event.id,
            database_name=event.database_name,
            server_name=event.server_name,
            object_name=event.object_name,
            object_type=event.object_type,
            ddl_operation=event.event_type,
            start_time=event.start_time,
            schema_name=event.schema_name,
            ddl_statement=event.ddl_statement,
            login_name=event.login_name,
            user_name=event.user_name,
            host_name=event.host_name,
        )

    @property
    def qualified_name(self) -> str:
        if self.schema_name:
            return f"{self.schema_name}.{self.object_name}"
        return self.object_name


class Notifier(Protocol):
    async def notify_change(self, change: DDLChange) -> None: ...

    async def notify_system_error(self, error: BaseException, context: str) -> None: ...

    async def notify_system_status(self, status: str, details: str | None = None) -> None: ...

    async def close(self) -> None: ...

    def status(self) -> dict[str, Any]: ...


class NullNotifier:
    """Sink used when notifications are disabled."""

    async def notify_change(self, change: DDLChange) -> None:
        return None

    async def notify_system_error(self, error: BaseException, context: str) -> None:
        return None

    async def notify_system_status(self, status: str, details: str | None = None) -> None:
        return None

    async def close(self) -> None:
        return None

    def status(self) -> dict[str, Any]:
        return {"is_connected": False, "type": "none"}
