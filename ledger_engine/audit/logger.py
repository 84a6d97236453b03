"""
Audit Logger

DESIGN DECISION: Every write the engine makes on the user's behalf, and
every conversation with a bank-feed provider, is logged.
This provides:
1. Traceability of syncs, restores and edits
2. Debugging capability when a provider misbehaves
3. A visible history of credential failures

The audit logger:
- Is async so it fits the reconciler's flow
- Gracefully handles failures (an audit write never fails a sync)
- Supports correlation IDs to trace all events of one sync or link
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from ledger_engine.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from ledger_engine.services.storage.interface import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An AuditStorageInterface backend (for persistence), if configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("ledger_engine.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    # -------------------------------------------------------------------------
    # Bank-feed connections
    # -------------------------------------------------------------------------

    async def log_link_started(self, connection_id: str, provider: str, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.link_started(connection_id, provider, correlation_id))

    async def log_link_completed(
        self,
        connection_id: str,
        provider: str,
        institution_name: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.link_completed(
            connection_id=connection_id,
            provider=provider,
            institution_name=institution_name,
            correlation_id=correlation_id,
        ))

    async def log_link_failed(
        self,
        connection_id: str,
        provider: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.link_failed(
            connection_id=connection_id,
            provider=provider,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_credential_rejected(
        self,
        connection_id: str,
        provider: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log a revoked or expired credential; the user has to re-link."""
        await self.log(AuditEventBuilder.credential_rejected(
            connection_id=connection_id,
            provider=provider,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    # -------------------------------------------------------------------------
    # Sync
    # -------------------------------------------------------------------------

    async def log_sync_started(self, connection_id: str, since: str, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.sync_started(connection_id, since, correlation_id))

    async def log_sync_completed(
        self,
        connection_id: str,
        counts: dict[str, int],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.sync_completed(connection_id, counts, correlation_id))

    async def log_sync_failed(self, connection_id: str, error_message: str, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.sync_failed(connection_id, error_message, correlation_id))

    async def log_transaction_skipped(
        self,
        connection_id: str,
        provider_transaction_id: str,
        raw_amount: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_skipped(
            connection_id=connection_id,
            provider_transaction_id=provider_transaction_id,
            raw_amount=raw_amount,
            correlation_id=correlation_id,
        ))

    async def log_transactions_pruned(
        self,
        count: int,
        cutoff: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.transactions_pruned(count, cutoff, correlation_id))

    # -------------------------------------------------------------------------
    # Backup & edits
    # -------------------------------------------------------------------------

    async def log_backup_exported(self, record_counts: dict[str, int], app_version: str) -> None:
        await self.log(AuditEventBuilder.backup_exported(record_counts, app_version))

    async def log_backup_restored(self, record_counts: dict[str, int], exported_at: str) -> None:
        await self.log(AuditEventBuilder.backup_restored(record_counts, exported_at))

    async def log_backup_rejected(self, error_message: str) -> None:
        await self.log(AuditEventBuilder.backup_rejected(error_message))

    async def log_record_patched(self, collection: str, record_id: str, fields: list[str]) -> None:
        await self.log(AuditEventBuilder.record_patched(collection, record_id, fields))

    async def log_scheduled_charges_synced(self, subscription_id: str, written: int, removed: int) -> None:
        await self.log(AuditEventBuilder.scheduled_charges_synced(subscription_id, written, removed))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new unit of work (e.g., one sync).
    Pass it through all subsequent operations.
    """
    return uuid4()
