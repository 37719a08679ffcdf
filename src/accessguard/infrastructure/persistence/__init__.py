"""Persistence layer: tabular store backends, locks and repositories."""

from accessguard.infrastructure.persistence.locking import LockManager
from accessguard.infrastructure.persistence.sql_store import SqlTabularStore
from accessguard.infrastructure.persistence.store_factory import create_store
from accessguard.infrastructure.persistence.tabular_store import (
    InMemoryTabularStore,
    TabularStore,
    UnknownTableError,
)

__all__ = [
    "InMemoryTabularStore",
    "LockManager",
    "SqlTabularStore",
    "TabularStore",
    "UnknownTableError",
    "create_store",
]
