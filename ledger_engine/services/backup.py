"""
Backup Export / Restore

A backup is one JSON document holding every ledger collection plus the UI
preferences:

    {"format": "local-finance-backup", "version": 1, "exportedAt": ...,
     "appVersion": ..., "data": {"transactions": [...], ...}}

CRITICAL: `parse_backup` validates the WHOLE document before anything is
written. A malformed backup raises BackupFormatError and the store is left
untouched.

DESIGN DECISION: Bank-feed connections are not part of a backup. They hold
access credentials, and a restored connection would point at a provider
session the user may already have revoked. Imported transactions and feed
accounts are ordinary records and are included.

Restore replaces each collection wholesale (delete every stored id, then
insert every backup record), so replaying the same backup twice leaves the
store in the same state.
"""

import json
from datetime import datetime, timezone
from typing import Any, Optional, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ledger_engine.audit import AuditLogger
from ledger_engine.models.records import (
    BankAccount,
    Budget,
    CreditCard,
    Goal,
    RetirementEntry,
    Scenario,
    Subscription,
    Transaction,
    UiPreferences,
)
from ledger_engine.services.storage.interface import Collection, RecordStoreInterface


logger = structlog.get_logger("ledger_engine.backup")

BACKUP_FORMAT = "local-finance-backup"
BACKUP_VERSION = 1

# Collection -> attribute on BackupData, in restore order
BACKUP_COLLECTIONS: dict[Collection, str] = {
    Collection.TRANSACTIONS: "transactions",
    Collection.SUBSCRIPTIONS: "subscriptions",
    Collection.CARDS: "cards",
    Collection.BANKS: "banks",
    Collection.SCENARIOS: "scenarios",
    Collection.RETIREMENT_ENTRIES: "retirement_entries",
    Collection.BUDGETS: "budgets",
    Collection.GOALS: "goals",
}


class BackupFormatError(Exception):
    """The document is not a restorable backup."""
    pass


class BackupData(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    transactions: list[Transaction] = Field(default_factory=list)
    subscriptions: list[Subscription] = Field(default_factory=list)
    cards: list[CreditCard] = Field(default_factory=list)
    banks: list[BankAccount] = Field(default_factory=list)
    scenarios: list[Scenario] = Field(default_factory=list)
    retirement_entries: list[RetirementEntry] = Field(default_factory=list)
    budgets: list[Budget] = Field(default_factory=list)
    goals: list[Goal] = Field(default_factory=list)
    ui_preferences: UiPreferences = Field(default_factory=UiPreferences)

    def record_counts(self) -> dict[str, int]:
        return {
            collection.value: len(getattr(self, attribute))
            for collection, attribute in BACKUP_COLLECTIONS.items()
        }


class FinanceBackup(BaseModel):
    """The backup envelope."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    format: str = BACKUP_FORMAT
    version: int = BACKUP_VERSION
    exported_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    app_version: str = "unknown"
    data: BackupData

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)


# =============================================================================
# EXPORT
# =============================================================================

async def export_backup(
    store: RecordStoreInterface,
    app_version: str,
    audit_logger: Optional[AuditLogger] = None,
) -> FinanceBackup:
    """
    Snapshot every backed-up collection.

    Args:
        store: Store to read
        app_version: Version string stamped on the envelope
        audit_logger: Optional audit trail

    Returns:
        The backup; call `to_json()` for the wire form
    """
    contents: dict[str, Any] = {
        attribute: await store.list_records(collection)
        for collection, attribute in BACKUP_COLLECTIONS.items()
    }
    contents["ui_preferences"] = await store.get_ui_preferences()

    backup = FinanceBackup(app_version=app_version, data=BackupData(**contents))
    counts = backup.data.record_counts()
    logger.info("backup_exported", app_version=app_version, **counts)
    if audit_logger:
        await audit_logger.log_backup_exported(counts, app_version)
    return backup


# =============================================================================
# PARSE
# =============================================================================

def parse_backup(raw: Union[str, bytes, dict]) -> FinanceBackup:
    """
    Validate a backup document.

    Missing collections default to empty; missing UI preferences default to
    the built-in ones.

    Raises:
        BackupFormatError: On invalid JSON, a wrong format marker or version,
            or any invalid record
    """
    if isinstance(raw, (str, bytes)):
        try:
            document = json.loads(raw)
        except ValueError as e:
            raise BackupFormatError(f"Backup is not valid JSON: {e}") from e
    else:
        document = raw

    if not isinstance(document, dict):
        raise BackupFormatError("Backup must be a JSON object")
    if document.get("format") != BACKUP_FORMAT:
        raise BackupFormatError(f"Invalid backup format: expected '{BACKUP_FORMAT}'")
    if not isinstance(document.get("data"), dict):
        raise BackupFormatError("Backup has no data section")
    version = document.get("version", BACKUP_VERSION)
    if version != BACKUP_VERSION:
        raise BackupFormatError(f"Unsupported backup version: {version}")

    try:
        return FinanceBackup.model_validate(document)
    except ValidationError as e:
        raise BackupFormatError(f"Backup contains invalid records: {e.error_count()} error(s)") from e


# =============================================================================
# RESTORE
# =============================================================================

async def restore_backup(
    store: RecordStoreInterface,
    backup: FinanceBackup,
    audit_logger: Optional[AuditLogger] = None,
) -> dict[str, int]:
    """
    Replace every backed-up collection with the backup's contents.

    Returns:
        Records written per collection
    """
    for collection, attribute in BACKUP_COLLECTIONS.items():
        current = await store.list_records(collection)
        if current:
            await store.delete_records(collection, [record.id for record in current])
        records = getattr(backup.data, attribute)
        if records:
            await store.upsert_records(collection, records)
    await store.set_ui_preferences(backup.data.ui_preferences)

    counts = backup.data.record_counts()
    logger.info("backup_restored", exported_at=backup.exported_at.isoformat(), **counts)
    if audit_logger:
        await audit_logger.log_backup_restored(counts, backup.exported_at.isoformat())
    return counts


async def import_backup(
    store: RecordStoreInterface,
    raw: Union[str, bytes, dict],
    audit_logger: Optional[AuditLogger] = None,
) -> dict[str, int]:
    """
    Parse then restore. A rejected document is audited and re-raised.

    Raises:
        BackupFormatError: If the document is rejected; nothing was written
    """
    try:
        backup = parse_backup(raw)
    except BackupFormatError as e:
        logger.warning("backup_rejected", error=str(e))
        if audit_logger:
            await audit_logger.log_backup_rejected(str(e))
        raise
    return await restore_backup(store, backup, audit_logger)
