"""
Shared fixtures for the ledger engine tests.

Every test pins its own reference date through an EngineContext; nothing
here reads the clock.
"""

from datetime import date

import pytest

from ledger_engine.audit import AuditLogger
from ledger_engine.engine import EngineContext
from ledger_engine.services.storage import InMemoryAuditStorage, InMemoryRecordStore


AS_OF = date(2026, 3, 15)
CUTOFF = date(2026, 2, 12)


@pytest.fixture
def as_of() -> date:
    return AS_OF


@pytest.fixture
def ctx() -> EngineContext:
    return EngineContext(as_of=AS_OF, import_cutoff=CUTOFF)


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)
