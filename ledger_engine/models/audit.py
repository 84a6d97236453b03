"""
Audit Models for the Ledger Engine

Every action that changes the record store, or talks to a bank-feed
provider, is logged for audit purposes. This provides:
1. Traceability of every write the engine makes on the user's behalf
2. Debugging information when a provider misbehaves
3. A record of credential failures the user has to act on

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
Credentials never appear in an audit event; only connection ids do.
"""

import json
from datetime import datetime, timezone
from typing import Any, Optional
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Each step of linking, syncing and restoring has its own event type.
    """
    # Bank-feed connections
    LINK_STARTED = "link_started"
    LINK_COMPLETED = "link_completed"
    LINK_FAILED = "link_failed"
    CREDENTIAL_REJECTED = "credential_rejected"

    # Sync
    SYNC_STARTED = "sync_started"
    SYNC_COMPLETED = "sync_completed"
    SYNC_FAILED = "sync_failed"
    TRANSACTION_SKIPPED = "transaction_skipped"
    TRANSACTIONS_PRUNED = "transactions_pruned"

    # Backup
    BACKUP_EXPORTED = "backup_exported"
    BACKUP_RESTORED = "backup_restored"
    BACKUP_REJECTED = "backup_rejected"

    # Record edits
    RECORD_PATCHED = "record_patched"
    SCHEDULED_CHARGES_SYNCED = "scheduled_charges_synced"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'connection', 'transaction', 'backup')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events of one sync)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_record(self) -> dict:
        """
        Convert to a flat record for append-only storage.

        Nested details are stored as a JSON string so any key/value store
        can hold the row.
        """
        record = self.to_log_dict()
        record["details"] = json.dumps(self.details, default=str) if self.details else ""
        return record


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.sync_started(connection_id, correlation_id)
        event = AuditEventBuilder.credential_rejected(connection_id, provider, message, correlation_id)
    """

    @staticmethod
    def link_started(
        connection_id: str,
        provider: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LINK_STARTED,
            entity_type="connection",
            entity_id=connection_id,
            correlation_id=correlation_id,
            description=f"Linking {provider} connection",
            details={"provider": provider},
            is_user_action=True,
        )

    @staticmethod
    def link_completed(
        connection_id: str,
        provider: str,
        institution_name: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LINK_COMPLETED,
            entity_type="connection",
            entity_id=connection_id,
            correlation_id=correlation_id,
            description=f"Linked {provider} connection: {institution_name}",
            details={
                "provider": provider,
                "institution_name": institution_name,
            },
        )

    @staticmethod
    def link_failed(
        connection_id: str,
        provider: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LINK_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="connection",
            entity_id=connection_id,
            correlation_id=correlation_id,
            description=f"Linking {provider} connection failed",
            error_message=error_message,
            details={"provider": provider},
        )

    @staticmethod
    def credential_rejected(
        connection_id: str,
        provider: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CREDENTIAL_REJECTED,
            severity=AuditSeverity.ERROR,
            entity_type="connection",
            entity_id=connection_id,
            correlation_id=correlation_id,
            description=f"{provider} rejected the access credential; re-link required",
            error_code="credential_rejected",
            error_message=error_message,
            details={"provider": provider},
        )

    @staticmethod
    def sync_started(
        connection_id: str,
        since: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_STARTED,
            entity_type="connection",
            entity_id=connection_id,
            correlation_id=correlation_id,
            description=f"Sync started for transactions since {since}",
            details={"since": since},
        )

    @staticmethod
    def sync_completed(
        connection_id: str,
        counts: dict[str, int],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_COMPLETED,
            entity_type="connection",
            entity_id=connection_id,
            correlation_id=correlation_id,
            description=(
                f"Sync completed: {counts.get('added', 0)} added, "
                f"{counts.get('modified', 0)} modified"
            ),
            details=counts,
        )

    @staticmethod
    def sync_failed(
        connection_id: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="connection",
            entity_id=connection_id,
            correlation_id=correlation_id,
            description="Sync failed; store left unchanged",
            error_message=error_message,
        )

    @staticmethod
    def transaction_skipped(
        connection_id: str,
        provider_transaction_id: str,
        raw_amount: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_SKIPPED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            entity_id=provider_transaction_id,
            correlation_id=correlation_id,
            description=f"Skipped provider transaction with malformed amount: {raw_amount!r}",
            details={
                "connection_id": connection_id,
                "raw_amount": raw_amount,
            },
        )

    @staticmethod
    def transactions_pruned(
        count: int,
        cutoff: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTIONS_PRUNED,
            entity_type="transaction",
            correlation_id=correlation_id,
            description=f"Pruned {count} imported transactions dated before {cutoff}",
            details={"count": count, "cutoff": cutoff},
        )

    @staticmethod
    def backup_exported(
        record_counts: dict[str, int],
        app_version: str
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_EXPORTED,
            entity_type="backup",
            description=f"Backup exported ({sum(record_counts.values())} records)",
            details={
                "record_counts": record_counts,
                "app_version": app_version,
            },
            is_user_action=True,
        )

    @staticmethod
    def backup_restored(
        record_counts: dict[str, int],
        exported_at: str
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_RESTORED,
            severity=AuditSeverity.WARNING,
            entity_type="backup",
            description=f"Backup from {exported_at} restored over existing records",
            details={
                "record_counts": record_counts,
                "exported_at": exported_at,
            },
            is_user_action=True,
        )

    @staticmethod
    def backup_rejected(error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="backup",
            description="Backup rejected before any change was made",
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def record_patched(
        collection: str,
        record_id: str,
        fields: list[str]
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_PATCHED,
            entity_type=collection,
            entity_id=record_id,
            description=f"Updated {', '.join(fields) or 'nothing'} on {collection} record",
            details={"fields": fields},
            is_user_action=True,
        )

    @staticmethod
    def scheduled_charges_synced(
        subscription_id: str,
        written: int,
        removed: int
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SCHEDULED_CHARGES_SYNCED,
            entity_type="subscription",
            entity_id=subscription_id,
            description=f"Scheduled charges refreshed: {written} written, {removed} removed",
            details={"written": written, "removed": removed},
        )
