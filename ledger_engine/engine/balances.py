"""
Balance Reconstructor

Turns an account's stored anchor balance plus the transaction stream into
a live balance, keeping posted and pending (future-dated) deltas apart.

CRITICAL: Nothing here writes a balance back. Anchor balances belong to the
user (or, once, to the feed for a brand-new account); live balances are
display values only.

DESIGN DECISION: Cards are reported in debt terms and ignore imported
transactions. A feed-provided card balance already reflects the activity
the feed imports, so counting those transactions again would double-count.
Banks include imported transactions because their anchor is user-owned.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable

from ledger_engine.engine.context import EngineContext, LedgerSnapshot
from ledger_engine.engine.projections import (
    latest_retirement_entry,
    monthly_subscription_cost,
    retirement_projection,
)
from ledger_engine.engine.temporal import is_imported, is_posted, is_scheduled
from ledger_engine.models.records import (
    BankAccount,
    CreditCard,
    Transaction,
    TransactionType,
)
from ledger_engine.models.results import AccountBalance, AccountKind, DashboardMetrics


ZERO = Decimal("0")


def signed_delta(tx: Transaction) -> Decimal:
    """+amount for income, -amount for expense."""
    return tx.amount if tx.type == TransactionType.INCOME else -tx.amount


def _deltas_by_account(transactions: Iterable[Transaction], include, include_imported: bool) -> dict[str, Decimal]:
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for tx in transactions:
        if not include(tx):
            continue
        if not include_imported and is_imported(tx):
            continue
        totals[tx.account] += signed_delta(tx)
    return dict(totals)


def posted_deltas_by_account(
    transactions: Iterable[Transaction],
    as_of: date,
    include_imported: bool = True,
) -> dict[str, Decimal]:
    return _deltas_by_account(transactions, lambda tx: is_posted(tx, as_of), include_imported)


def pending_deltas_by_account(
    transactions: Iterable[Transaction],
    as_of: date,
    include_imported: bool = True,
) -> dict[str, Decimal]:
    return _deltas_by_account(transactions, lambda tx: is_scheduled(tx, as_of), include_imported)


def bank_balance(bank: BankAccount, transactions: list[Transaction], as_of: date) -> AccountBalance:
    posted = posted_deltas_by_account(transactions, as_of).get(bank.id, ZERO)
    pending = pending_deltas_by_account(transactions, as_of).get(bank.id, ZERO)
    live = bank.current_balance + posted
    return AccountBalance(
        account_id=bank.id,
        kind=AccountKind.BANK,
        name=bank.display_name,
        anchor_balance=bank.current_balance,
        posted_delta=posted,
        pending_delta=pending,
        live_balance=live,
        projected_balance=live + pending,
    )


def card_balance(card: CreditCard, transactions: list[Transaction], as_of: date) -> AccountBalance:
    """
    Live card debt: anchor minus the posted non-imported delta.

    A posted expense on the card (negative signed delta) raises the debt;
    a payment lowers it. Pending charges are reported in the same terms.
    """
    posted = -posted_deltas_by_account(transactions, as_of, include_imported=False).get(card.id, ZERO)
    pending = -pending_deltas_by_account(transactions, as_of, include_imported=False).get(card.id, ZERO)
    live = card.balance + posted
    return AccountBalance(
        account_id=card.id,
        kind=AccountKind.CARD,
        name=card.name or card.id,
        anchor_balance=card.balance,
        posted_delta=posted,
        pending_delta=pending,
        live_balance=live,
        projected_balance=live + pending,
    )


def credit_utilization(cards: Iterable[CreditCard]) -> float:
    """Anchor balance over total limit, as a percentage. 0 with no limit."""
    cards = list(cards)
    total_limit = sum((card.limit_amount for card in cards), ZERO)
    if total_limit <= 0:
        return 0.0
    total_balance = sum((card.balance for card in cards), ZERO)
    return float(total_balance / total_limit * 100)


def calculate_dashboard_metrics(snapshot: LedgerSnapshot, ctx: EngineContext) -> DashboardMetrics:
    """
    Headline figures for the dashboard.

    Income and expenses cover posted transactions that are not against a
    card; card activity shows up in the debt figures instead.
    """
    card_ids = snapshot.card_ids
    cashflow = [
        tx for tx in snapshot.transactions
        if tx.account not in card_ids and is_posted(tx, ctx.as_of)
    ]
    income = sum((tx.amount for tx in cashflow if tx.type == TransactionType.INCOME), ZERO)
    expenses = sum((tx.amount for tx in cashflow if tx.type == TransactionType.EXPENSE), ZERO)

    total_credit = sum(
        (card_balance(card, snapshot.transactions, ctx.as_of).live_balance for card in snapshot.cards),
        ZERO,
    )
    bank_cash = sum(
        (bank_balance(bank, snapshot.transactions, ctx.as_of).live_balance for bank in snapshot.banks),
        ZERO,
    )
    total_limit = sum((card.limit_amount for card in snapshot.cards), ZERO)
    utilization = float(total_credit / total_limit * 100) if total_limit > 0 else 0.0

    latest = latest_retirement_entry(snapshot.retirement_entries)

    return DashboardMetrics(
        income=income,
        expenses=expenses,
        net_cashflow=income - expenses,
        monthly_subscriptions=monthly_subscription_cost(snapshot.subscriptions),
        total_credit_balance=total_credit,
        bank_cash_position=bank_cash,
        average_utilization_pct=utilization,
        retirement_balance=latest.balance if latest else ZERO,
        retirement_projected_12m=retirement_projection(snapshot.retirement_entries),
    )
