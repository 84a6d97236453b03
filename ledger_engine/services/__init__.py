"""
Services Package

Contains everything that talks to the outside world:
- storage: record store and audit store interfaces
- bankfeed: bank-feed providers and the reconciler
- backup: JSON backup export and restore

Only the storage layer is re-exported here. The audit logger depends on it,
so bankfeed and backup (which depend on the audit logger) are imported from
their own modules.
"""

from ledger_engine.services.storage import (
    AuditStorageInterface,
    Collection,
    DuplicateError,
    InMemoryAuditStorage,
    InMemoryRecordStore,
    NotFoundError,
    RecordStoreInterface,
    StorageError,
    SyntheticRecordError,
)

__all__ = [
    "AuditStorageInterface",
    "Collection",
    "DuplicateError",
    "InMemoryAuditStorage",
    "InMemoryRecordStore",
    "NotFoundError",
    "RecordStoreInterface",
    "StorageError",
    "SyntheticRecordError",
]
