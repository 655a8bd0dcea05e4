"""Repository adapters - Document store implementations."""

from .memory import InMemoryDocumentStore
from .organizations import StoreOrganizationProvider
from .postgres import PostgresDocumentStore, run_migrations

__all__ = [
    "InMemoryDocumentStore",
    "PostgresDocumentStore",
    "StoreOrganizationProvider",
    "run_migrations",
]
