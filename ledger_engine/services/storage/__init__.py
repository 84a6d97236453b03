"""
Storage Services Package

Provides the abstract record-store and audit-store interfaces the engine
depends on, plus in-memory implementations.
"""

from ledger_engine.services.storage.interface import (
    COLLECTION_MODELS,
    AuditStorageInterface,
    Collection,
    DuplicateError,
    NotFoundError,
    RecordStoreInterface,
    StorageError,
    SyntheticRecordError,
)
from ledger_engine.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryRecordStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "Collection",
    "COLLECTION_MODELS",
    "RecordStoreInterface",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    "SyntheticRecordError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryRecordStore",
]
