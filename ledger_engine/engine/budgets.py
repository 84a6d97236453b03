"""
Budget & Variance Engine

Budget period windows, spend-to-date and pace, rolling category averages,
month-over-month category variance, and the rule-based insight cascade.

DESIGN DECISION: Insight rules are a fixed cascade evaluated in order and
every matching rule is emitted. Categories and merchants are visited in
order of first occurrence so the output is deterministic for a given
ledger.
"""

from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from ledger_engine.engine.context import EngineContext
from ledger_engine.engine.temporal import posted_transactions, shift_month
from ledger_engine.models.records import (
    Budget,
    BudgetPeriod,
    Transaction,
    TransactionType,
)
from ledger_engine.models.results import (
    BudgetStatus,
    CategoryVariance,
    InsightKind,
    InsightSeverity,
    SpendingInsight,
)


ZERO = Decimal("0")
DEFAULT_ANOMALY_MULTIPLIER = Decimal("1.5")

NEAR_LIMIT_PCT = 90.0
OVERSPEND_PCT = 100.0
STREAK_MONTHS = 3
OPPORTUNITY_MONTHS = 3
OPPORTUNITY_TOTAL = Decimal("500")


# =============================================================================
# PERIODS & STATUS
# =============================================================================

def budget_period_window(period: BudgetPeriod, as_of: date) -> tuple[date, date]:
    """
    Half-open [start, end) window containing as_of.

    Weeks start on Sunday.
    """
    if period == BudgetPeriod.WEEKLY:
        start = as_of - timedelta(days=(as_of.weekday() + 1) % 7)
        return start, start + timedelta(days=7)
    if period == BudgetPeriod.YEARLY:
        return date(as_of.year, 1, 1), date(as_of.year + 1, 1, 1)
    start = as_of.replace(day=1)
    if start.month == 12:
        return start, date(start.year + 1, 1, 1)
    return start, start.replace(month=start.month + 1)


def calculate_budget_statuses(
    budgets: Iterable[Budget],
    transactions: Iterable[Transaction],
    as_of: date,
) -> list[BudgetStatus]:
    """
    Spend-to-date and pace for each active budget.

    Only posted expenses in the current period count. A budget whose
    start date is still in the future has no status yet.
    """
    expenses = [
        tx for tx in posted_transactions(transactions, as_of)
        if tx.type == TransactionType.EXPENSE
    ]
    statuses = []
    for budget in budgets:
        if not budget.is_active:
            continue
        if budget.start_date is not None and budget.start_date > as_of:
            continue

        start, end = budget_period_window(budget.period, as_of)
        spent = sum(
            (tx.amount for tx in expenses if tx.category == budget.category and start <= tx.date < end),
            ZERO,
        )
        pct_used = float(spent / budget.amount * 100) if budget.amount > 0 else 0.0
        days_elapsed = (as_of - start).days + 1
        period_days = (end - start).days
        pct_elapsed = min(1.0, max(0.0, days_elapsed / period_days))

        statuses.append(BudgetStatus(
            budget_id=budget.id,
            category=budget.category,
            period=budget.period,
            amount=budget.amount,
            spent=spent,
            remaining=max(ZERO, budget.amount - spent),
            pct_used=pct_used,
            pct_elapsed=pct_elapsed,
            on_track=pct_used <= pct_elapsed * 100,
            period_start=start,
            period_end=end,
        ))
    return statuses


# =============================================================================
# ROLLING AVERAGES & VARIANCE
# =============================================================================

def _category_totals(transactions: Iterable[Transaction], month: str) -> dict[str, Decimal]:
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for tx in transactions:
        if tx.type == TransactionType.EXPENSE and tx.month == month:
            totals[tx.category] += tx.amount
    return dict(totals)


def category_rolling_average(
    transactions: Iterable[Transaction],
    reference_month: str,
    window_months: int = 3,
) -> dict[str, Decimal]:
    """
    Mean monthly expense per category over the months strictly before
    reference_month.

    The divisor is always window_months, so a category that only appeared
    in one of those months averages down rather than up.
    """
    start_month = shift_month(reference_month, -window_months)
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for tx in transactions:
        if tx.type == TransactionType.EXPENSE and start_month <= tx.month < reference_month:
            totals[tx.category] += tx.amount
    return {category: total / window_months for category, total in totals.items()}


def is_anomaly(current: Decimal, average: Decimal, multiplier: Decimal = DEFAULT_ANOMALY_MULTIPLIER) -> bool:
    return average > 0 and current > average * multiplier


def category_variance_series(
    transactions: Iterable[Transaction],
    reference_month: str,
    multiplier: Decimal = DEFAULT_ANOMALY_MULTIPLIER,
    window_months: int = 3,
) -> list[CategoryVariance]:
    """Reference month vs. the month before, largest absolute change first."""
    transactions = list(transactions)
    previous_month = shift_month(reference_month, -1)
    averages = category_rolling_average(transactions, reference_month, window_months)
    current_spend = _category_totals(transactions, reference_month)
    previous_spend = _category_totals(transactions, previous_month)

    variances = []
    for category in dict.fromkeys([*current_spend, *previous_spend]):
        current = current_spend.get(category, ZERO)
        previous = previous_spend.get(category, ZERO)
        change = current - previous
        if previous > 0:
            change_pct = float(change / previous * 100)
        else:
            change_pct = 100.0 if current > 0 else 0.0
        variances.append(CategoryVariance(
            category=category,
            current=current,
            previous=previous,
            change=change,
            change_pct=change_pct,
            anomaly=is_anomaly(current, averages.get(category, ZERO), multiplier),
        ))
    return sorted(variances, key=lambda item: abs(item.change), reverse=True)


# =============================================================================
# INSIGHTS
# =============================================================================

def savings_streak(
    transactions: Iterable[Transaction],
    current_month: str,
    card_ids: Iterable[str] = (),
) -> int:
    """
    Consecutive calendar months, ending at `current_month`, with positive net cashflow.

    Card transactions are left out, as in the dashboard metrics. A month
    without cashflow breaks the streak, except the current month, which is
    skipped while it has no activity yet.
    """
    excluded = set(card_ids)
    net_by_month: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for tx in transactions:
        if tx.account in excluded:
            continue
        net_by_month[tx.month] += tx.amount if tx.type == TransactionType.INCOME else -tx.amount

    month = current_month if current_month in net_by_month else shift_month(current_month, -1)
    streak = 0
    while month in net_by_month and net_by_month[month] > 0:
        streak += 1
        month = shift_month(month, -1)
    return streak


def _budget_insight(status: BudgetStatus) -> Optional[SpendingInsight]:
    if status.pct_used >= OVERSPEND_PCT:
        return SpendingInsight(
            kind=InsightKind.OVERSPEND,
            severity=InsightSeverity.WARNING,
            title=f"{status.category} budget exceeded",
            message=(
                f"You've spent {status.spent:.2f} of your {status.amount:.2f} "
                f"{status.period.value} {status.category} budget."
            ),
            category=status.category,
            amount=status.spent - status.amount,
        )
    if status.pct_used >= NEAR_LIMIT_PCT:
        return SpendingInsight(
            kind=InsightKind.NEAR_LIMIT,
            severity=InsightSeverity.WARNING,
            title=f"{status.category} budget almost at limit",
            message=f"{status.pct_used:.0f}% of the {status.category} budget is used; {status.remaining:.2f} left.",
            category=status.category,
            amount=status.remaining,
        )
    return None


def generate_insights(
    budget_statuses: Iterable[BudgetStatus],
    transactions: Iterable[Transaction],
    budgets: Iterable[Budget],
    ctx: EngineContext,
    card_ids: Iterable[str] = (),
) -> list[SpendingInsight]:
    """
    Run the insight cascade over posted transactions.

    Rules, in order: budget overspend / near limit, category anomalies for
    the current month, savings streak, recurring-merchant savings
    opportunities, and tips when the ledger is still sparse.
    """
    posted = posted_transactions(transactions, ctx.as_of)
    insights: list[SpendingInsight] = []

    # 1. budgets
    for status in budget_statuses:
        insight = _budget_insight(status)
        if insight is not None:
            insights.append(insight)

    # 2. anomalies
    averages = category_rolling_average(posted, ctx.current_month, ctx.rolling_window_months)
    for category, current in _category_totals(posted, ctx.current_month).items():
        average = averages.get(category, ZERO)
        if is_anomaly(current, average, ctx.anomaly_multiplier):
            insights.append(SpendingInsight(
                kind=InsightKind.ANOMALY,
                severity=InsightSeverity.WARNING,
                title=f"Unusual {category} spending",
                message=(
                    f"{current:.2f} this month vs. a {ctx.rolling_window_months}-month "
                    f"average of {average:.2f}."
                ),
                category=category,
                amount=current - average,
            ))

    # 3. streak
    streak = savings_streak(posted, ctx.current_month, card_ids)
    if streak >= STREAK_MONTHS:
        insights.append(SpendingInsight(
            kind=InsightKind.STREAK,
            severity=InsightSeverity.SUCCESS,
            title=f"{streak}-month savings streak",
            message=f"You've spent less than you earned for {streak} months in a row.",
        ))

    # 4. recurring merchants
    merchant_months: dict[str, set[str]] = defaultdict(set)
    merchant_totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for tx in posted:
        if tx.type != TransactionType.EXPENSE or not tx.merchant:
            continue
        merchant_months[tx.merchant].add(tx.month)
        merchant_totals[tx.merchant] += tx.amount
    for merchant, total in merchant_totals.items():
        if len(merchant_months[merchant]) >= OPPORTUNITY_MONTHS and total > OPPORTUNITY_TOTAL:
            insights.append(SpendingInsight(
                kind=InsightKind.SAVINGS_OPPORTUNITY,
                severity=InsightSeverity.INFO,
                title=f"Recurring spend at {merchant}",
                message=(
                    f"{total:.2f} across {len(merchant_months[merchant])} months. "
                    "Worth a look for savings."
                ),
                amount=total,
            ))

    # 5. sparse data
    if not posted:
        insights.append(SpendingInsight(
            kind=InsightKind.TIP,
            severity=InsightSeverity.INFO,
            title="Add your first transactions",
            message="Insights appear once there is some spending history to compare.",
        ))
    if not list(budgets):
        insights.append(SpendingInsight(
            kind=InsightKind.TIP,
            severity=InsightSeverity.INFO,
            title="Set up a budget",
            message="Budgets let you track pace against a spending limit per category.",
        ))
    return insights
