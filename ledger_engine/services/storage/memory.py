"""
In-Memory Storage

Dict-backed implementations of the record store and the audit store.
Used by the test-suite and by embedders that bring their own persistence
and only want the engine's semantics.

Records are deep-copied on the way in and out, so callers can never mutate
stored state by holding on to a model.
"""

from typing import Optional, Sequence
from uuid import UUID

from pydantic import BaseModel

from ledger_engine.models.audit import AuditEvent
from ledger_engine.models.records import Transaction, TransactionOrigin, UiPreferences
from ledger_engine.services.storage.interface import (
    COLLECTION_MODELS,
    AuditStorageInterface,
    Collection,
    RecordStoreInterface,
    StorageError,
    SyntheticRecordError,
)


class InMemoryRecordStore(RecordStoreInterface):
    """Record store kept in process memory, in insertion order."""

    def __init__(self):
        self._collections: dict[Collection, dict[str, BaseModel]] = {
            collection: {} for collection in Collection
        }
        self._ui_preferences = UiPreferences()

    async def list_records(self, collection: Collection) -> list:
        return [record.model_copy(deep=True) for record in self._collections[collection].values()]

    async def upsert_records(self, collection: Collection, records: Sequence[BaseModel]) -> int:
        model = COLLECTION_MODELS[collection]
        # Check the whole batch before touching anything
        for record in records:
            if not isinstance(record, model):
                raise StorageError(
                    f"{collection.value} expects {model.__name__}, got {type(record).__name__}"
                )
            if isinstance(record, Transaction) and record.origin == TransactionOrigin.SYNTHETIC:
                raise SyntheticRecordError(f"Refusing to persist synthetic transaction {record.id}")

        bucket = self._collections[collection]
        for record in records:
            bucket[record.id] = record.model_copy(deep=True)
        return len(records)

    async def delete_records(self, collection: Collection, ids: Sequence[str]) -> int:
        bucket = self._collections[collection]
        deleted = 0
        for record_id in ids:
            if bucket.pop(record_id, None) is not None:
                deleted += 1
        return deleted

    async def get_ui_preferences(self) -> UiPreferences:
        return self._ui_preferences.model_copy()

    async def set_ui_preferences(self, preferences: UiPreferences) -> None:
        self._ui_preferences = preferences.model_copy()


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in a list."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        return [event for event in self._events if event.correlation_id == correlation_id]

    async def get_events_by_entity(self, entity_type: str, entity_id: Optional[str]) -> list[AuditEvent]:
        return [
            event for event in self._events
            if event.entity_type == entity_type and event.entity_id == entity_id
        ]

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
