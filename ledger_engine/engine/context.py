"""
Engine Context

DESIGN DECISION: No derivation reads the clock or the settings on its own.
The caller builds one EngineContext per request and passes it in, so every
figure in a single dashboard is computed against the same reference date
and the same thresholds, and tests can pin any date they like.

LedgerSnapshot is the other half: one consistent read of the record store,
already passed through ingestion (allowed-imported filter plus scenario
installments). Downstream components never re-filter.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ledger_engine.config.settings import Settings, get_settings
from ledger_engine.engine.temporal import month_key
from ledger_engine.models.records import (
    BankAccount,
    Budget,
    CreditCard,
    Goal,
    RetirementEntry,
    Scenario,
    Subscription,
    Transaction,
)


def local_today() -> date:
    """Today in the host's local timezone."""
    return date.today()


class EngineContext(BaseModel):
    """Reference date and thresholds for one derivation pass."""

    model_config = ConfigDict(frozen=True)

    as_of: date
    import_cutoff: date
    anomaly_multiplier: Decimal = Field(default=Decimal("1.5"), gt=1)
    rolling_window_months: int = Field(default=3, ge=1)
    forecast_window_months: int = Field(default=6, ge=2)

    @classmethod
    def from_settings(
        cls,
        as_of: Optional[date] = None,
        settings: Optional[Settings] = None,
    ) -> "EngineContext":
        engine = (settings or get_settings()).engine
        return cls(
            as_of=as_of or local_today(),
            import_cutoff=engine.import_cutoff_date,
            anomaly_multiplier=engine.anomaly_multiplier,
            rolling_window_months=engine.rolling_window_months,
            forecast_window_months=engine.forecast_window_months,
        )

    @property
    def current_month(self) -> str:
        return month_key(self.as_of)


class LedgerSnapshot(BaseModel):
    """
    One read of the record store.

    `transactions` is the ingested stream used by every derivation;
    `stored_transactions` is what the store actually holds.
    """
    transactions: list[Transaction] = Field(default_factory=list)
    stored_transactions: list[Transaction] = Field(default_factory=list)
    subscriptions: list[Subscription] = Field(default_factory=list)
    cards: list[CreditCard] = Field(default_factory=list)
    banks: list[BankAccount] = Field(default_factory=list)
    budgets: list[Budget] = Field(default_factory=list)
    goals: list[Goal] = Field(default_factory=list)
    scenarios: list[Scenario] = Field(default_factory=list)
    retirement_entries: list[RetirementEntry] = Field(default_factory=list)

    @property
    def card_ids(self) -> set[str]:
        return {card.id for card in self.cards}

    @property
    def bank_ids(self) -> set[str]:
        return {bank.id for bank in self.banks}
