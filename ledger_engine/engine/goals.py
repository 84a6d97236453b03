"""
Goals & Debt Payoff

Goal progress, optionally derived from a linked account's live balance,
and an amortisation timeline for paying a balance down at a fixed payment.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from ledger_engine.engine.balances import bank_balance, card_balance
from ledger_engine.models.records import (
    BankAccount,
    CreditCard,
    Goal,
    GoalType,
    Transaction,
    quantize_money,
)
from ledger_engine.models.results import DebtPayoffPlan, DebtPayoffPoint, GoalProgress


ZERO = Decimal("0")


def _months_until(as_of: date, deadline: date) -> int:
    months = (deadline.year - as_of.year) * 12 + deadline.month - as_of.month
    return max(1, months)


def _linked_amount(
    goal: Goal,
    banks: dict[str, BankAccount],
    cards: dict[str, CreditCard],
    transactions: list[Transaction],
    as_of: date,
) -> Optional[Decimal]:
    """Current amount from the linked account, or None to use the stored value."""
    if goal.linked_account_id is None:
        return None
    if goal.type == GoalType.DEBT_PAYOFF:
        card = cards.get(goal.linked_account_id)
        if card is None:
            return None
        live_debt = card_balance(card, transactions, as_of).live_balance
        return max(ZERO, goal.target_amount - live_debt)
    bank = banks.get(goal.linked_account_id)
    if bank is None:
        return None
    return bank_balance(bank, transactions, as_of).live_balance


def calculate_goal_progress(
    goals: Iterable[Goal],
    banks: Iterable[BankAccount],
    cards: Iterable[CreditCard],
    transactions: Iterable[Transaction],
    as_of: date,
) -> list[GoalProgress]:
    """
    Progress for each goal.

    A savings or purchase goal linked to a bank tracks that bank's live
    balance; a debt-payoff goal linked to a card counts the debt already
    cleared against its target. A link to an account that no longer exists
    falls back to the stored current_amount.
    """
    bank_map = {bank.id: bank for bank in banks}
    card_map = {card.id: card for card in cards}
    transactions = list(transactions)

    results = []
    for goal in goals:
        linked = _linked_amount(goal, bank_map, card_map, transactions, as_of)
        current = linked if linked is not None else goal.current_amount
        remaining = max(ZERO, goal.target_amount - current)
        if goal.target_amount > 0:
            progress = max(0.0, min(100.0, float(current / goal.target_amount * 100)))
        else:
            progress = 100.0

        months_remaining = None
        required_monthly = None
        if goal.deadline is not None:
            months_remaining = _months_until(as_of, goal.deadline) if goal.deadline > as_of else 0
            required_monthly = quantize_money(remaining / months_remaining) if months_remaining else remaining

        results.append(GoalProgress(
            goal_id=goal.id,
            name=goal.name,
            type=goal.type,
            target_amount=goal.target_amount,
            current_amount=current,
            remaining=remaining,
            progress_pct=progress,
            is_linked=linked is not None,
            is_complete=current >= goal.target_amount,
            months_remaining=months_remaining,
            required_monthly=required_monthly,
        ))
    return results


def debt_payoff_timeline(
    balance: Decimal,
    apr: float,
    monthly_payment: Decimal,
    max_months: int = 360,
) -> DebtPayoffPlan:
    """
    Amortise a balance at a fixed monthly payment.

    Interest accrues monthly at apr/12 before each payment; the last
    payment only covers what is left. If the payment does not exceed the
    first month's interest, or the debt outlives max_months, the plan has
    months=None.
    """
    monthly_rate = Decimal(str(apr)) / 100 / 12
    remaining = balance
    total_interest = ZERO
    total_paid = ZERO
    schedule = []

    month = 0
    while remaining > 0:
        if month >= max_months:
            return DebtPayoffPlan(months=None, total_interest=total_interest, total_paid=total_paid, schedule=schedule)
        interest = quantize_money(remaining * monthly_rate)
        if monthly_payment <= interest:
            return DebtPayoffPlan(months=None, total_interest=total_interest, total_paid=total_paid, schedule=schedule)
        month += 1
        payment = min(monthly_payment, remaining + interest)
        remaining = remaining + interest - payment
        total_interest += interest
        total_paid += payment
        schedule.append(DebtPayoffPoint(month=month, payment=payment, interest=interest, balance=remaining))

    return DebtPayoffPlan(
        months=month,
        total_interest=total_interest,
        total_paid=total_paid,
        schedule=schedule,
    )
