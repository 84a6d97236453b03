"""
Core Record Models for the Ledger Engine

These models define the strict schemas for every record the engine reads
from, or writes back into, the record store.

They are designed to:
1. Enforce type safety at runtime
2. Stay wire-compatible with the stored/backup JSON (camelCase field names)
3. Carry provenance explicitly instead of re-parsing id prefixes everywhere

DESIGN DECISION: The "bank-feed:" id prefix is the wire convention for
imported records and the sole reconciliation key. It is parsed exactly once,
when a Transaction is validated, into the `origin` field. Every other
component asks `origin`, never the id string.

DESIGN DECISION: Money is Decimal in Python and a plain JSON number on the
wire, so backups written by older versions restore unchanged.
"""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Annotated, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    SecretStr,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


Money = Annotated[
    Decimal,
    PlainSerializer(lambda v: float(v), return_type=float, when_used="json"),
]

CENT = Decimal("0.01")


def quantize_money(value: Decimal) -> Decimal:
    """Round to cents, half-up."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


BANK_FEED_PREFIX = "bank-feed:"
IMPORTED_NOTE_MARKER = "imported from"
UNASSIGNED_ACCOUNT = "unassigned"


def has_import_marker(record_id: str, note: str = "") -> bool:
    """Wire-level provenance check: feed id prefix or an "imported from" note."""
    return record_id.startswith(BANK_FEED_PREFIX) or IMPORTED_NOTE_MARKER in (note or "").lower()


def bank_feed_account_id(connection_id: str, provider_account_id: str) -> str:
    return f"{BANK_FEED_PREFIX}{connection_id}:{provider_account_id}"


def bank_feed_transaction_id(
    connection_id: str,
    provider_account_id: str,
    provider_transaction_id: str,
) -> str:
    return f"{bank_feed_account_id(connection_id, provider_account_id)}:{provider_transaction_id}"


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of a transaction."""
    INCOME = "income"
    EXPENSE = "expense"


class TransactionOrigin(str, Enum):
    """
    Where a transaction came from.

    SYNTHETIC records only ever live in memory: they are generated from
    applied scenarios for a single derivation and are never persisted.
    """
    MANUAL = "manual"
    IMPORTED = "imported"
    SYNTHETIC = "synthetic"


class BankAccountType(str, Enum):
    CHECKING = "checking"
    SAVINGS = "savings"
    BROKERAGE = "brokerage"
    CASH = "cash"


class BudgetPeriod(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class GoalType(str, Enum):
    SAVINGS = "savings"
    DEBT_PAYOFF = "debt-payoff"
    PURCHASE = "purchase"


class ScenarioPaymentType(str, Enum):
    CASH = "cash"
    CARD = "card"


class SubscriptionFrequency(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class BankFeedProviderName(str, Enum):
    PLAID = "plaid"
    SIMPLEFIN = "simplefin"


class ConnectionStatus(str, Enum):
    """
    Lifecycle of a bank-feed connection.

    UNLINKED -> LINKING -> LINKED <-> SYNCING
    LINKING/SYNCING -> ERROR (credential revoked or expired)
    ERROR -> LINKING (manual re-link only, never automatic)
    """
    UNLINKED = "unlinked"
    LINKING = "linking"
    LINKED = "linked"
    SYNCING = "syncing"
    ERROR = "error"


# =============================================================================
# BASE
# =============================================================================

class LedgerRecord(BaseModel):
    """
    Base for every stored record.

    Python code uses snake_case; stored JSON and backups use camelCase.
    Unknown wire fields (e.g. image data urls) are ignored.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    id: str = Field(
        ...,
        min_length=1,
        description="Record identifier, unique within its collection"
    )


# =============================================================================
# LEDGER RECORDS
# =============================================================================

class Transaction(LedgerRecord):
    """
    A single ledger entry.

    `amount` is always a non-negative magnitude; direction lives in `type`.
    """
    date: date
    amount: Money = Field(
        ...,
        ge=0,
        description="Magnitude of the transaction"
    )
    type: TransactionType
    category: str = Field(default="")
    merchant: str = Field(default="")
    account: str = Field(
        default=UNASSIGNED_ACCOUNT,
        description="Bank or card id, or 'unassigned'"
    )
    note: str = Field(default="")
    recurring: bool = Field(default=False)
    origin: TransactionOrigin = Field(
        default=TransactionOrigin.MANUAL,
        exclude=True,
        description="Provenance; derived from the wire id/note, never serialised"
    )

    @field_validator('account', mode='before')
    @classmethod
    def default_account(cls, v):
        return v or UNASSIGNED_ACCOUNT

    @model_validator(mode='after')
    def derive_origin(self) -> 'Transaction':
        """Translate the wire provenance convention into the origin enum."""
        if self.origin != TransactionOrigin.SYNTHETIC and has_import_marker(self.id, self.note):
            self.origin = TransactionOrigin.IMPORTED
        return self

    @property
    def month(self) -> str:
        """Calendar month key, YYYY-MM."""
        return self.date.strftime("%Y-%m")


class BankAccount(LedgerRecord):
    """
    A deposit account.

    CRITICAL: current_balance is the ANCHOR balance as of last_updated.
    It is set by the user (or once by the feed for a new account) and is
    never recomputed and written back by the engine.
    """
    institution: str = Field(default="")
    nickname: str = Field(default="")
    type: BankAccountType = BankAccountType.CHECKING
    current_balance: Money = Field(default=Decimal("0"))
    available_balance: Money = Field(default=Decimal("0"))
    apy: float = Field(default=0.0, ge=0)
    last_updated: Optional[date] = None

    @property
    def display_name(self) -> str:
        return self.nickname or self.institution or self.id


class CreditCard(LedgerRecord):
    """A card account; `balance` is the anchor debt."""
    name: str = Field(default="")
    balance: Money = Field(default=Decimal("0"))
    limit_amount: Money = Field(default=Decimal("0"), ge=0)
    apr: float = Field(default=0.0, ge=0)
    min_payment: Money = Field(default=Decimal("0"), ge=0)
    due_date: Optional[date] = None


class Budget(LedgerRecord):
    """
    A spending limit for one category over a repeating period.

    One budget per category per period is expected; the engine does not
    enforce uniqueness.
    """
    category: str = Field(..., min_length=1)
    amount: Money = Field(..., ge=0)
    period: BudgetPeriod = BudgetPeriod.MONTHLY
    start_date: Optional[date] = None
    is_active: bool = True


class Goal(LedgerRecord):
    """
    A savings, purchase or debt-payoff target.

    When linked_account_id points at an existing bank or card, progress is
    derived from that account's live balance; otherwise current_amount is
    used as stored.
    """
    name: str = Field(default="")
    type: GoalType = GoalType.SAVINGS
    target_amount: Money = Field(..., ge=0)
    current_amount: Money = Field(default=Decimal("0"))
    deadline: Optional[date] = None
    linked_account_id: Optional[str] = None

    @field_validator('linked_account_id', mode='before')
    @classmethod
    def blank_is_none(cls, v):
        return v or None


class Scenario(LedgerRecord):
    """A hypothetical purchase; expanded into installments when applied."""
    name: str = Field(default="")
    purchase_amount: Money = Field(..., ge=0)
    duration_months: int = Field(default=0, ge=0)
    payment_type: ScenarioPaymentType = ScenarioPaymentType.CASH
    created_at: Optional[date] = None
    account_id: str = Field(default=UNASSIGNED_ACCOUNT)
    schedule_date: Optional[date] = None
    is_applied: bool = False

    @field_validator('account_id', mode='before')
    @classmethod
    def default_account(cls, v):
        return v or UNASSIGNED_ACCOUNT

    @field_validator('schedule_date', 'created_at', mode='before')
    @classmethod
    def blank_date_is_none(cls, v):
        return v or None


class Subscription(LedgerRecord):
    """A recurring charge."""
    name: str = Field(default="")
    cost: Money = Field(..., ge=0)
    frequency: SubscriptionFrequency = SubscriptionFrequency.MONTHLY
    next_due_date: Optional[date] = None
    category: str = Field(default="Subscription")
    account_id: str = Field(default=UNASSIGNED_ACCOUNT)
    is_active: bool = True

    @field_validator('account_id', mode='before')
    @classmethod
    def default_account(cls, v):
        return v or UNASSIGNED_ACCOUNT


class RetirementEntry(LedgerRecord):
    """A dated retirement-account statement."""
    date: date
    employee_contribution: Money = Field(default=Decimal("0"), ge=0)
    employer_match: Money = Field(default=Decimal("0"), ge=0)
    balance: Money = Field(default=Decimal("0"))
    annual_return: float = Field(default=0.0)


class UiPreferences(BaseModel):
    """
    Display preferences.

    Only stored so that backups round-trip; the engine has no theming logic.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    theme: str = "midnight"
    background: str = "aurora"
    density: str = "cozy"
    glass_mode: bool = True
    motion_effects: bool = True


class BankFeedConnection(BaseModel):
    """
    One linked institution at a bank-feed provider.

    Owns a set of provider accounts, each mapped 1:1 to a local BankAccount
    whose id is bank_feed_account_id(connection_id, provider_account_id).
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    connection_id: str = Field(..., min_length=1)
    provider: BankFeedProviderName
    access_credential: Optional[SecretStr] = None
    institution_name: str = ""
    status: ConnectionStatus = ConnectionStatus.UNLINKED
    is_active: bool = True
    last_synced_at: Optional[datetime] = None
    last_error: Optional[str] = None

    @property
    def id(self) -> str:
        return self.connection_id
