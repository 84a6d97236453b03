"""
Subscriptions and Forward Projections

Recurring-cost normalisation, the scheduled charges a subscription writes
into the ledger, the 12-month retirement projection and the aggregate card
debt run-down.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from ledger_engine.engine.temporal import add_months, month_key, shift_month
from ledger_engine.models.records import (
    CreditCard,
    RetirementEntry,
    Subscription,
    SubscriptionFrequency,
    Transaction,
    TransactionType,
    quantize_money,
)
from ledger_engine.models.results import DebtProjectionPoint, SubscriptionForecastPoint


ZERO = Decimal("0")

SCHEDULED_CHARGE_PREFIX = "scheduled-subscription:"
SCHEDULED_CHARGE_NOTE = "Subscription charge"


def _rate(percent: float) -> Decimal:
    """Annual percentage (float) to a monthly Decimal rate."""
    return Decimal(str(percent)) / 100 / 12


# =============================================================================
# SUBSCRIPTIONS
# =============================================================================

def monthly_subscription_cost(subscriptions: Iterable[Subscription]) -> Decimal:
    """Active subscriptions normalised to a per-month cost."""
    total = ZERO
    for sub in subscriptions:
        if not sub.is_active:
            continue
        if sub.frequency == SubscriptionFrequency.MONTHLY:
            total += sub.cost
        elif sub.frequency == SubscriptionFrequency.QUARTERLY:
            total += sub.cost / 3
        else:
            total += sub.cost / 12
    return total


def subscription_forecast_series(
    subscriptions: Iterable[Subscription],
    as_of: date,
    months: int = 12,
) -> list[SubscriptionForecastPoint]:
    """
    Cash out per month over the next `months`, starting with the current one.

    Quarterly charges land on months 0, 3, 6, ...; yearly ones on month 0.
    """
    active = [sub for sub in subscriptions if sub.is_active]
    start = month_key(as_of)
    cumulative = ZERO
    points = []
    for offset in range(months):
        month_cost = ZERO
        for sub in active:
            if sub.frequency == SubscriptionFrequency.MONTHLY:
                month_cost += sub.cost
            elif sub.frequency == SubscriptionFrequency.QUARTERLY and offset % 3 == 0:
                month_cost += sub.cost
            elif sub.frequency == SubscriptionFrequency.YEARLY and offset % 12 == 0:
                month_cost += sub.cost
        cumulative += month_cost
        points.append(SubscriptionForecastPoint(
            month=shift_month(start, offset),
            recurring_cost=month_cost,
            cumulative=cumulative,
        ))
    return points


def scheduled_charge_id(subscription_id: str, offset_months: int) -> str:
    return f"{SCHEDULED_CHARGE_PREFIX}{subscription_id}:{offset_months}"


def is_scheduled_charge_for(tx: Transaction, subscription_id: str) -> bool:
    return (
        tx.id.startswith(f"{SCHEDULED_CHARGE_PREFIX}{subscription_id}:")
        or tx.note == f"{SCHEDULED_CHARGE_NOTE}: {subscription_id}"
    )


def _charge_offsets(frequency: SubscriptionFrequency, horizon_months: int) -> list[int]:
    if frequency == SubscriptionFrequency.MONTHLY:
        return list(range(horizon_months))
    if frequency == SubscriptionFrequency.QUARTERLY:
        return [idx * 3 for idx in range(-(-horizon_months // 3))]
    return [0]


def scheduled_subscription_charges(
    subscription: Subscription,
    horizon_months: int = 12,
) -> list[Transaction]:
    """
    Future-dated expense transactions for one subscription.

    Inactive, free or undated subscriptions produce nothing. Ids are stable
    per (subscription, offset) so rewriting the schedule is idempotent.
    """
    if not subscription.is_active or subscription.cost <= 0 or subscription.next_due_date is None:
        return []
    return [
        Transaction(
            id=scheduled_charge_id(subscription.id, offset),
            date=add_months(subscription.next_due_date, offset),
            amount=subscription.cost,
            type=TransactionType.EXPENSE,
            category=subscription.category or "Subscription",
            merchant=subscription.name,
            account=subscription.account_id,
            note=f"{SCHEDULED_CHARGE_NOTE}: {subscription.id}",
            recurring=True,
        )
        for offset in _charge_offsets(subscription.frequency, horizon_months)
    ]


# =============================================================================
# RETIREMENT
# =============================================================================

def latest_retirement_entry(entries: Iterable[RetirementEntry]) -> Optional[RetirementEntry]:
    return max(entries, key=lambda entry: entry.date, default=None)


def retirement_projection(entries: Iterable[RetirementEntry]) -> Decimal:
    """
    Balance 12 months after the latest statement.

    Monthly compounding at annual_return/12, plus that statement's employee
    contribution and employer match every month.
    """
    latest = latest_retirement_entry(entries)
    if latest is None:
        return ZERO
    contribution = latest.employee_contribution + latest.employer_match
    monthly_rate = _rate(latest.annual_return)
    projected = latest.balance
    for _ in range(12):
        projected = projected * (1 + monthly_rate) + contribution
    return quantize_money(projected)


# =============================================================================
# CREDIT DEBT
# =============================================================================

def credit_debt_projection(cards: Iterable[CreditCard], months: int = 24) -> list[DebtProjectionPoint]:
    """
    Aggregate card debt if only the minimum payments are made.

    Interest accrues at the balance-weighted APR (cards with no balance
    count with weight 1). Month 0 is today's total.
    """
    cards = list(cards)
    total = sum((card.balance for card in cards), ZERO)
    weights = [card.balance or Decimal("1") for card in cards]
    weight_total = sum(weights, ZERO)
    if weight_total != 0:
        weighted_apr = sum(
            (Decimal(str(card.apr)) * weight for card, weight in zip(cards, weights)),
            ZERO,
        ) / weight_total
    else:
        weighted_apr = ZERO
    monthly_rate = weighted_apr / 100 / 12
    payment_floor = sum((card.min_payment for card in cards), ZERO)

    points = []
    for month in range(months + 1):
        points.append(DebtProjectionPoint(month=month, debt=quantize_money(max(total, ZERO))))
        if total <= 0:
            continue
        total = total * (1 + monthly_rate) - payment_floor
    return points
