"""
Temporal Classifier

Decides whether a transaction is posted (dated on or before the reference
date), scheduled (future-dated) or imported from a bank feed. Pure filters
over a transaction slice; nothing here touches the store.
"""

import calendar
from datetime import date
from typing import Iterable

from ledger_engine.models.records import Transaction, TransactionOrigin
from ledger_engine.models.results import TransactionClassification, TransactionStatus


def is_posted(tx: Transaction, as_of: date) -> bool:
    return tx.date <= as_of


def is_scheduled(tx: Transaction, as_of: date) -> bool:
    return tx.date > as_of


def is_imported(tx: Transaction) -> bool:
    return tx.origin == TransactionOrigin.IMPORTED


def is_allowed_imported(tx: Transaction, cutoff: date) -> bool:
    """Non-imported transactions are always allowed, whatever their date."""
    if not is_imported(tx):
        return True
    return tx.date >= cutoff


def posted_transactions(transactions: Iterable[Transaction], as_of: date) -> list[Transaction]:
    return [tx for tx in transactions if is_posted(tx, as_of)]


def scheduled_transactions(transactions: Iterable[Transaction], as_of: date) -> list[Transaction]:
    return [tx for tx in transactions if is_scheduled(tx, as_of)]


def allowed_transactions(transactions: Iterable[Transaction], cutoff: date) -> list[Transaction]:
    return [tx for tx in transactions if is_allowed_imported(tx, cutoff)]


def classify_transaction(tx: Transaction, as_of: date) -> TransactionClassification:
    status = TransactionStatus.POSTED if is_posted(tx, as_of) else TransactionStatus.SCHEDULED
    return TransactionClassification(
        transaction_id=tx.id,
        status=status,
        origin=tx.origin,
    )


# =============================================================================
# MONTH ARITHMETIC
# =============================================================================

def month_key(value: date) -> str:
    """Calendar month key, YYYY-MM."""
    return value.strftime("%Y-%m")


def add_months(value: date, months: int) -> date:
    """Shift by whole months, clamping the day to the target month's end."""
    index = value.year * 12 + value.month - 1 + months
    year, month = divmod(index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def shift_month(month: str, months: int) -> str:
    year, mon = (int(part) for part in month.split("-"))
    return month_key(add_months(date(year, mon, 1), months))
