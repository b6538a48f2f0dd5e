"""ORM models for the source queue table and the central audit log."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text, false, func, text
from sqlalchemy.orm import Mapped, mapped_column

from ddlrelay.db.base import CentralBase, SourceBase


class LocalDDLAuditModel(SourceBase):
    """Per-database queue of captured DDL events, appended by the capture trigger."""

    __tablename__ = "local_ddl_audit"
    __table_args__ = (
        Index("IX_local_ddl_audit_processed", "processed"),
        Index("IX_local_ddl_audit_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    object_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    object_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    schema_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    ddl_statement: Mapped[str | None] = mapped_column(Text, nullable=True)
    event_data: Mapped[str] = mapped_column(Text, nullable=False)
    login_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    user_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    host_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    application_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    spid: Mapped[int | None] = mapped_column(Integer, nullable=True)
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=func.now())
    processed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    processed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    retry_count: Mapped[int | None] = mapped_column(Integer, nullable=True, default=0, server_default=text("0"))
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=func.now())


class SchemaAuditLogModel(CentralBase):
    """Append-only central copy of relayed events.

    There is no uniqueness constraint: a relay retried after a failed
    mark-processed step writes a second row. Consumers deduplicate on
    (database_name, source_event_id, start_time).
    """

    __tablename__ = "schema_audit_log"
    __table_args__ = (
        Index("IX_schema_audit_log_processed", "processed"),
        Index("IX_schema_audit_log_database_start_time", "database_name", "start_time"),
        Index("IX_schema_audit_log_created_at", "created_at"),
        Index("IX_schema_audit_log_natural_key", "database_name", "source_event_id", "start_time"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    database_name: Mapped[str] = mapped_column(String(128), nullable=False)
    server_name: Mapped[str] = mapped_column(String(128), nullable=False)
    source_event_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    schema_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    object_name: Mapped[str] = mapped_column(String(128), nullable=False)
    object_type: Mapped[str] = mapped_column(String(50), nullable=False)
    ddl_operation: Mapped[str] = mapped_column(String(100), nullable=False)
    ddl_statement: Mapped[str | None] = mapped_column(Text, nullable=True)
    event_data: Mapped[str | None] = mapped_column(Text, nullable=True)
    login_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    user_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    host_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    application_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    spid: Mapped[int | None] = mapped_column(Integer, nullable=True)
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=func.now())
    processed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    processed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    discord_notified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    discord_notified_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=func.now())
