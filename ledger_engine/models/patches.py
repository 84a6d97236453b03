"""
Typed Patch Models

DESIGN DECISION: Partial updates are explicit models, not dict spreads.
A patch declares exactly which fields may change, rejects unknown fields,
and the merged record is re-validated as a whole before anything is
written. A bad patch fails loudly and leaves the stored record untouched.

Provenance (`origin`) and identity (`id`) are never patchable.
"""

import datetime as dt
from decimal import Decimal
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ledger_engine.models.records import (
    BankAccount,
    BankAccountType,
    Budget,
    BudgetPeriod,
    CreditCard,
    Goal,
    GoalType,
    LedgerRecord,
    Scenario,
    ScenarioPaymentType,
    Transaction,
    TransactionOrigin,
    TransactionType,
)


RecordT = TypeVar("RecordT", bound=LedgerRecord)


class RecordPatch(BaseModel, Generic[RecordT]):
    """Base patch: only explicitly set fields are merged."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)

    def apply_to(self, record: RecordT) -> RecordT:
        """
        Return a validated copy of `record` with this patch applied.

        Raises:
            pydantic.ValidationError: if the merged record is invalid
        """
        merged = record.model_dump()
        merged.update(self.changes())
        patched = type(record).model_validate(merged)
        if isinstance(record, Transaction) and record.origin == TransactionOrigin.SYNTHETIC:
            # origin is excluded from model_dump
            patched.origin = TransactionOrigin.SYNTHETIC
        return patched


class TransactionPatch(RecordPatch[Transaction]):
    date: Optional[dt.date] = None
    amount: Optional[Decimal] = Field(default=None, ge=0)
    type: Optional[TransactionType] = None
    category: Optional[str] = None
    merchant: Optional[str] = None
    account: Optional[str] = None
    note: Optional[str] = None
    recurring: Optional[bool] = None


class BankAccountPatch(RecordPatch[BankAccount]):
    institution: Optional[str] = None
    nickname: Optional[str] = None
    type: Optional[BankAccountType] = None
    current_balance: Optional[Decimal] = None
    available_balance: Optional[Decimal] = None
    apy: Optional[float] = Field(default=None, ge=0)
    last_updated: Optional[dt.date] = None


class CreditCardPatch(RecordPatch[CreditCard]):
    name: Optional[str] = None
    balance: Optional[Decimal] = None
    limit_amount: Optional[Decimal] = Field(default=None, ge=0)
    apr: Optional[float] = Field(default=None, ge=0)
    min_payment: Optional[Decimal] = Field(default=None, ge=0)
    due_date: Optional[dt.date] = None


class BudgetPatch(RecordPatch[Budget]):
    category: Optional[str] = None
    amount: Optional[Decimal] = Field(default=None, ge=0)
    period: Optional[BudgetPeriod] = None
    start_date: Optional[dt.date] = None
    is_active: Optional[bool] = None


class GoalPatch(RecordPatch[Goal]):
    name: Optional[str] = None
    type: Optional[GoalType] = None
    target_amount: Optional[Decimal] = Field(default=None, ge=0)
    current_amount: Optional[Decimal] = None
    deadline: Optional[dt.date] = None
    linked_account_id: Optional[str] = None


class ScenarioPatch(RecordPatch[Scenario]):
    name: Optional[str] = None
    purchase_amount: Optional[Decimal] = Field(default=None, ge=0)
    duration_months: Optional[int] = Field(default=None, ge=0)
    payment_type: Optional[ScenarioPaymentType] = None
    account_id: Optional[str] = None
    schedule_date: Optional[dt.date] = None
    is_applied: Optional[bool] = None
