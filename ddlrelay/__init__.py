"""ddlrelay: relays captured schema-change events into a central audit store."""

from ddlrelay.app import DDLRelayApp

__all__ = ["DDLRelayApp"]
