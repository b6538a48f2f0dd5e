"""ddlrelay database layer: models, pools, schema, exceptions."""

from ddlrelay.db.base import CentralBase, SourceBase
from ddlrelay.db.exceptions import ConfigurationError, ConnectivityError, DatabaseError, QueryError
from ddlrelay.db.models import LocalDDLAuditModel, SchemaAuditLogModel
from ddlrelay.db.pool import ConnectionPoolManager, StorePool, create_store_engine
from ddlrelay.db.schema import StoreRole, ensure_schema

__all__ = [
    "CentralBase",
    "ConfigurationError",
    "ConnectionPoolManager",
    "ConnectivityError",
    "DatabaseError",
    "LocalDDLAuditModel",
    "QueryError",
    "SchemaAuditLogModel",
    "SourceBase",
    "StorePool",
    "StoreRole",
    "create_store_engine",
    "ensure_schema",
]
