"""
Cashflow & Trends

Category spend, monthly cashflow and trend series, running balance,
monthly candlesticks, bank and retirement balance trends, and a simple
linear spending forecast for the next month.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from ledger_engine.engine.balances import signed_delta
from ledger_engine.engine.health import savings_rate
from ledger_engine.engine.temporal import shift_month
from ledger_engine.models.records import (
    BankAccount,
    RetirementEntry,
    Transaction,
    TransactionType,
    quantize_money,
)
from ledger_engine.models.results import (
    BankBalancePoint,
    CandlestickPoint,
    CashflowPoint,
    CategorySpend,
    ForecastConfidence,
    MonthlyTrend,
    RetirementTrendPoint,
    RunningBalancePoint,
    SpendingForecast,
)


ZERO = Decimal("0")


def category_spend(transactions: Iterable[Transaction]) -> list[CategorySpend]:
    """Expense totals per category, largest first."""
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for tx in transactions:
        if tx.type == TransactionType.EXPENSE:
            totals[tx.category] += tx.amount
    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return [CategorySpend(name=name, amount=amount) for name, amount in ranked]


def _monthly_totals(transactions: Iterable[Transaction]) -> dict[str, tuple[Decimal, Decimal]]:
    income: dict[str, Decimal] = defaultdict(lambda: ZERO)
    expense: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for tx in transactions:
        if tx.type == TransactionType.INCOME:
            income[tx.month] += tx.amount
        else:
            expense[tx.month] += tx.amount
    months = sorted(set(income) | set(expense))
    return {month: (income[month], expense[month]) for month in months}


def cashflow_series(transactions: Iterable[Transaction]) -> list[CashflowPoint]:
    return [
        CashflowPoint(month=month, income=income, expense=expense, net=income - expense)
        for month, (income, expense) in _monthly_totals(transactions).items()
    ]


def monthly_trends(transactions: Iterable[Transaction]) -> list[MonthlyTrend]:
    return [
        MonthlyTrend(
            month=month,
            income=income,
            expenses=expense,
            net=income - expense,
            savings_rate=savings_rate(income, expense),
        )
        for month, (income, expense) in _monthly_totals(transactions).items()
    ]


def running_balance_series(transactions: Iterable[Transaction]) -> list[RunningBalancePoint]:
    """Cumulative signed total after each transaction, in date order."""
    running = ZERO
    points = []
    for tx in sorted(transactions, key=lambda item: item.date):
        running += signed_delta(tx)
        points.append(RunningBalancePoint(date=tx.date, balance=running))
    return points


def monthly_candlestick_series(transactions: Iterable[Transaction]) -> list[CandlestickPoint]:
    """
    Open/high/low/close of the running net, one candle per month with activity.

    Each month opens at the previous month's close; the first opens at 0.
    """
    candles: dict[str, CandlestickPoint] = {}
    running = ZERO
    for tx in sorted(transactions, key=lambda item: (item.date, item.id)):
        previous = running
        running += signed_delta(tx)
        candle = candles.get(tx.month)
        if candle is None:
            candles[tx.month] = CandlestickPoint(
                month=tx.month,
                open=previous,
                close=running,
                high=max(previous, running),
                low=min(previous, running),
            )
        else:
            candle.close = running
            candle.high = max(candle.high, running)
            candle.low = min(candle.low, running)
    return list(candles.values())


def bank_balance_series(
    accounts: Iterable[BankAccount],
    undated: Optional[date] = None,
) -> list[BankBalancePoint]:
    """
    Anchor balances summed per last-updated date, oldest first.

    Accounts that were never dated are counted on `undated`, or left out
    when it is None.
    """
    totals: dict[date, Decimal] = defaultdict(lambda: ZERO)
    for account in accounts:
        day = account.last_updated or undated
        if day is not None:
            totals[day] += account.current_balance
    return [BankBalancePoint(date=day, total=totals[day]) for day in sorted(totals)]


def retirement_trend_series(entries: Iterable[RetirementEntry]) -> list[RetirementTrendPoint]:
    return [
        RetirementTrendPoint(date=entry.date, balance=entry.balance)
        for entry in sorted(entries, key=lambda item: item.date)
    ]


def _linear_fit(values: list[Decimal]) -> tuple[Decimal, Decimal]:
    """Least-squares (slope, intercept) over x = 0..n-1."""
    n = len(values)
    if n < 2:
        return ZERO, values[0] if values else ZERO
    mean_x = Decimal(n - 1) / 2
    mean_y = sum(values, ZERO) / n
    numerator = sum(((Decimal(x) - mean_x) * (y - mean_y) for x, y in enumerate(values)), ZERO)
    denominator = sum(((Decimal(x) - mean_x) ** 2 for x in range(n)), ZERO)
    slope = numerator / denominator
    return slope, mean_y - slope * mean_x


def _confidence(months_used: int) -> ForecastConfidence:
    if months_used < 3:
        return ForecastConfidence.LOW
    if months_used < 6:
        return ForecastConfidence.MEDIUM
    return ForecastConfidence.HIGH


def spending_forecast(trends: list[MonthlyTrend], window: int = 6) -> Optional[SpendingForecast]:
    """
    Project next month's income and expenses from the trailing window.

    A straight line is fitted through each series and extended one month;
    projections never go below zero. None when there is no history.
    """
    if not trends:
        return None
    recent = trends[-window:]
    months_used = len(recent)

    expense_slope, expense_intercept = _linear_fit([point.expenses for point in recent])
    income_slope, income_intercept = _linear_fit([point.income for point in recent])
    projected_expenses = quantize_money(max(ZERO, expense_intercept + expense_slope * months_used))
    projected_income = quantize_money(max(ZERO, income_intercept + income_slope * months_used))

    return SpendingForecast(
        month=shift_month(recent[-1].month, 1),
        projected_expenses=projected_expenses,
        projected_income=projected_income,
        projected_net=projected_income - projected_expenses,
        monthly_change=quantize_money(expense_slope),
        months_used=months_used,
        confidence=_confidence(months_used),
    )
