"""
Financial Health Scorer

Five weighted sub-metrics, each normalised to 0-100 between a "good" and a
"fair" threshold, combined into one 0-100 score and a rating band.

DESIGN DECISION: The per-metric ratings (70/40 cut points) are independent
of the overall bands (80/60/40). A metric can read "good" while the overall
score is only "fair".
"""

import math
from decimal import Decimal
from typing import Union

from ledger_engine.models.results import (
    DashboardMetrics,
    FinancialHealthScore,
    HealthRating,
    HealthSubScore,
)


Number = Union[Decimal, float, int]

# (label, weight)
SAVINGS_RATE = ("Savings Rate", 0.25)
CREDIT_UTILIZATION = ("Credit Utilization", 0.20)
DEBT_TO_INCOME = ("Debt-to-Income", 0.20)
CASH_RESERVE = ("Cash Reserve", 0.20)
RETIREMENT_GROWTH = ("Retirement Growth", 0.15)


def savings_rate(income: Number, expenses: Number) -> float:
    """Percent of income kept, clamped to 0-100. 0 without income."""
    income = float(income)
    if income <= 0:
        return 0.0
    return max(0.0, min(100.0, (income - float(expenses)) / income * 100))


def debt_to_income_ratio(total_debt: Number, monthly_income: Number) -> float:
    """Debt as a percent of income, capped at 100. 100 without income."""
    monthly_income = float(monthly_income)
    if monthly_income <= 0:
        return 100.0
    return min(100.0, float(total_debt) / monthly_income * 100)


def _sub_score_rating(value: float) -> HealthRating:
    if value >= 70:
        return HealthRating.GOOD
    if value >= 40:
        return HealthRating.FAIR
    return HealthRating.POOR


def _overall_rating(score: int) -> HealthRating:
    if score >= 80:
        return HealthRating.EXCELLENT
    if score >= 60:
        return HealthRating.GOOD
    if score >= 40:
        return HealthRating.FAIR
    return HealthRating.POOR


def rate_sub_score(
    value: float,
    good: float,
    fair: float,
    lower_is_better: bool = False,
) -> tuple[float, HealthRating]:
    """
    Normalise a metric to 0-100 by linear interpolation.

    Args:
        value: Raw metric value
        good: Threshold at (or beyond) which the metric scores 100
        fair: Threshold at (or beyond) which the metric scores 0
        lower_is_better: True for utilization and debt-to-income

    Returns:
        (normalised value, sub-score rating)
    """
    if lower_is_better:
        if value <= good:
            normalized = 100.0
        elif value >= fair:
            normalized = 0.0
        else:
            normalized = 100 - (value - good) / (fair - good) * 100
    else:
        if value >= good:
            normalized = 100.0
        elif value <= fair:
            normalized = 0.0
        else:
            normalized = (value - fair) / (good - fair) * 100
    clamped = max(0.0, min(100.0, normalized))
    return clamped, _sub_score_rating(clamped)


def _sub_score(metric: tuple[str, float], rated: tuple[float, HealthRating]) -> HealthSubScore:
    label, weight = metric
    value, rating = rated
    return HealthSubScore(
        label=label,
        value=value,
        rating=rating,
        weight=weight,
        weighted=value * weight,
    )


def calculate_financial_health_score(metrics: DashboardMetrics) -> FinancialHealthScore:
    income = float(metrics.income)

    sr = savings_rate(metrics.income, metrics.expenses)
    dti = debt_to_income_ratio(metrics.total_credit_balance, income or 1)
    reserve_months = float(metrics.bank_cash_position) / income if income > 0 else 0.0
    retirement = float(metrics.retirement_balance)
    if retirement > 0:
        growth = (float(metrics.retirement_projected_12m) - retirement) / retirement * 100
    else:
        growth = 0.0

    breakdown = [
        _sub_score(SAVINGS_RATE, rate_sub_score(sr, 20, 0)),
        _sub_score(CREDIT_UTILIZATION, rate_sub_score(metrics.average_utilization_pct, 30, 80, lower_is_better=True)),
        _sub_score(DEBT_TO_INCOME, rate_sub_score(dti, 20, 50, lower_is_better=True)),
        _sub_score(CASH_RESERVE, rate_sub_score(reserve_months, 3, 0)),
        _sub_score(RETIREMENT_GROWTH, rate_sub_score(growth, 7, 0)),
    ]

    # half-up, so 79.5 rates excellent
    score = int(math.floor(sum(sub.weighted for sub in breakdown) + 0.5))
    score = max(0, min(100, score))
    return FinancialHealthScore(
        score=score,
        rating=_overall_rating(score),
        breakdown=breakdown,
    )
