"""
Abstract Record Store Interface

DESIGN DECISION: The engine never assumes a particular backing store.
This allows us to:
1. Run against local persistence, a hosted API or a native bridge
2. Use in-memory storage for testing
3. Keep every derivation decoupled from storage

The interface is intentionally simple - we're not building a full ORM.
List, upsert and delete per collection, plus UI preferences. The only
consistency required is read-your-writes within one logical operation.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional, Sequence
from uuid import UUID

from pydantic import BaseModel

from ledger_engine.models.audit import AuditEvent
from ledger_engine.models.records import (
    BankAccount,
    BankFeedConnection,
    Budget,
    CreditCard,
    Goal,
    RetirementEntry,
    Scenario,
    Subscription,
    Transaction,
    UiPreferences,
)


class Collection(str, Enum):
    """Record collections; values are the wire/backup keys."""
    TRANSACTIONS = "transactions"
    SUBSCRIPTIONS = "subscriptions"
    CARDS = "cards"
    BANKS = "banks"
    BUDGETS = "budgets"
    GOALS = "goals"
    SCENARIOS = "scenarios"
    RETIREMENT_ENTRIES = "retirementEntries"
    BANK_FEED_CONNECTIONS = "bankFeedConnections"


COLLECTION_MODELS: dict[Collection, type[BaseModel]] = {
    Collection.TRANSACTIONS: Transaction,
    Collection.SUBSCRIPTIONS: Subscription,
    Collection.CARDS: CreditCard,
    Collection.BANKS: BankAccount,
    Collection.BUDGETS: Budget,
    Collection.GOALS: Goal,
    Collection.SCENARIOS: Scenario,
    Collection.RETIREMENT_ENTRIES: RetirementEntry,
    Collection.BANK_FEED_CONNECTIONS: BankFeedConnection,
}


class RecordStoreInterface(ABC):
    """
    Abstract interface for the record store.

    Any storage implementation (local DB, hosted REST API, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def list_records(self, collection: Collection) -> list:
        """
        List every record in a collection.

        Args:
            collection: The collection to read

        Returns:
            Validated models of the collection's type, in storage order
        """
        pass

    @abstractmethod
    async def upsert_records(self, collection: Collection, records: Sequence[BaseModel]) -> int:
        """
        Insert or replace records by id.

        Args:
            collection: Target collection
            records: Models of the collection's type

        Returns:
            Number of records written

        Raises:
            StorageError: If the write fails
            SyntheticRecordError: If a synthetic transaction is passed in
        """
        pass

    @abstractmethod
    async def delete_records(self, collection: Collection, ids: Sequence[str]) -> int:
        """
        Delete records by id. Unknown ids are ignored.

        Returns:
            Number of records actually deleted
        """
        pass

    @abstractmethod
    async def get_ui_preferences(self) -> UiPreferences:
        pass

    @abstractmethod
    async def set_ui_preferences(self, preferences: UiPreferences) -> None:
        pass

    async def get_record(self, collection: Collection, record_id: str) -> BaseModel:
        """
        Fetch one record by id.

        Raises:
            NotFoundError: If no record has that id
        """
        for record in await self.list_records(collection):
            if record.id == record_id:
                return record
        raise NotFoundError(f"{collection.value}/{record_id} not found")


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Args:
            event: The audit event to log

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one sync).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: Optional[str],
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Args:
            entity_type: Type of entity (e.g., 'connection', 'backup')
            entity_id: The entity's ID

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class SyntheticRecordError(StorageError):
    """Attempted to persist a scenario installment."""
    pass
