"""Database-related exceptions for ddlrelay.

Messages never include store passwords.
"""


class DatabaseError(Exception):
    """Base exception for database operations."""

    pass


class ConfigurationError(DatabaseError):
    """Raised when a store configuration cannot be turned into an engine."""

    pass


class ConnectivityError(DatabaseError):
    """Raised when a pool for a store cannot be created or connected."""

    def __init__(self, store: str, host: str, port: int | None, message: str) -> None:
        self.store = store
        self.host = host
        self.port = port
        location = f"{host}:{port}" if port else host or "local"
        super().__init__(f"Connection to store '{store}' at {location} failed: {message}")


class QueryError(DatabaseError):
    """Raised when a fetch or write against a store fails."""

    def __init__(self, store: str, operation: str, message: str) -> None:
        self.store = store
        self.operation = operation
        super().__init__(f"{operation} failed on store '{store}': {message}")
