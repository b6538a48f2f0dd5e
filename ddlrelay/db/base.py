"""Declarative bases for the two store roles.

Source stores and the central store are different databases, so each role
owns its own metadata and only its own tables are created on a store.
"""

from sqlalchemy.orm import DeclarativeBase


class SourceBase(DeclarativeBase):
    """Base for tables living in every monitored source store."""


class CentralBase(DeclarativeBase):
    """Base for tables living in the central audit store."""
