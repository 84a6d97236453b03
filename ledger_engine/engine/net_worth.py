"""
Net Worth Timeline Builder

Reconstructs a month-by-month assets/liabilities/net series by walking
backward from today's anchor balances through the monthly deltas.

DESIGN DECISION: The series is anchor-exact for the present month and
approximate for history. It assumes every balance change since the first
transaction is in the ledger and that accounts never change type. An
off-ledger transfer made before the earliest transaction shifts every
historical point by the same constant; that offset is known and is
deliberately not corrected, since there is nothing to correct it from.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable

from ledger_engine.engine.balances import signed_delta
from ledger_engine.engine.projections import latest_retirement_entry
from ledger_engine.engine.temporal import month_key, posted_transactions
from ledger_engine.models.records import (
    UNASSIGNED_ACCOUNT,
    BankAccount,
    CreditCard,
    RetirementEntry,
    Transaction,
)
from ledger_engine.models.results import NetWorthPoint


ZERO = Decimal("0")


def net_worth_series(
    transactions: Iterable[Transaction],
    banks: Iterable[BankAccount],
    cards: Iterable[CreditCard],
    retirement_entries: Iterable[RetirementEntry],
    as_of: date,
) -> list[NetWorthPoint]:
    """
    Build the net worth timeline from posted transactions.

    Args:
        transactions: Ingested transaction stream (future-dated ones are ignored)
        banks: Bank accounts; their current balances are the asset anchor
        cards: Credit cards; their balances are the liability anchor
        retirement_entries: Statements, used per month with a latest fallback
        as_of: Reference date

    Returns:
        One point per month that has transactions, oldest first, or a single
        current-month point when there are none.
    """
    banks = list(banks)
    cards = list(cards)
    entries = sorted(retirement_entries, key=lambda entry: entry.date)

    total_bank = sum((bank.current_balance for bank in banks), ZERO)
    total_card_debt = sum((card.balance for card in cards), ZERO)
    latest = latest_retirement_entry(entries)
    latest_retirement = latest.balance if latest else ZERO

    card_ids = {card.id for card in cards}
    bank_ids = {bank.id for bank in banks}

    bank_deltas: dict[str, Decimal] = defaultdict(lambda: ZERO)
    card_deltas: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for tx in posted_transactions(transactions, as_of):
        month = tx.month
        delta = signed_delta(tx)
        # months with only unknown-account activity still get a point
        bank_deltas[month] += ZERO
        card_deltas[month] += ZERO
        if tx.account in card_ids:
            card_deltas[month] += delta
        elif tx.account in bank_ids or tx.account == UNASSIGNED_ACCOUNT:
            bank_deltas[month] += delta

    retirement_by_month = {month_key(entry.date): entry.balance for entry in entries}

    months = sorted(bank_deltas)
    if not months:
        assets = total_bank + latest_retirement
        return [NetWorthPoint(
            month=month_key(as_of),
            assets=assets,
            liabilities=total_card_debt,
            net=assets - total_card_debt,
        )]

    # Seed so that the walk ends exactly on today's anchors.
    bank_running = total_bank - sum(bank_deltas.values(), ZERO)
    card_running = total_card_debt + sum(card_deltas.values(), ZERO)

    points = []
    for month in months:
        bank_running += bank_deltas[month]
        card_running -= card_deltas[month]
        retirement = retirement_by_month.get(month, latest_retirement)
        assets = max(ZERO, bank_running) + retirement
        liabilities = max(ZERO, card_running)
        points.append(NetWorthPoint(
            month=month,
            assets=assets,
            liabilities=liabilities,
            net=assets - liabilities,
        ))
    return points
