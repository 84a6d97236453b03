"""Tests for the financial health scorer."""

from decimal import Decimal

import pytest

from ledger_engine.engine.health import (
    calculate_financial_health_score,
    debt_to_income_ratio,
    rate_sub_score,
    savings_rate,
)
from ledger_engine.models.results import DashboardMetrics, HealthRating


def _metrics(**kwargs) -> DashboardMetrics:
    return DashboardMetrics(**{key: Decimal(str(value)) if key != "average_utilization_pct" else value
                               for key, value in kwargs.items()})


class TestRatios:
    """Tests for the raw ratios."""

    def test_savings_rate(self):
        """Test savings rate and its guards."""
        assert savings_rate(1000, 800) == pytest.approx(20.0)
        assert savings_rate(0, 100) == 0.0
        assert savings_rate(1000, 5000) == 0.0

    def test_debt_to_income_without_income_is_100(self):
        """Test the zero-income default."""
        assert debt_to_income_ratio(500, 0) == 100.0
        assert debt_to_income_ratio(200, 1000) == pytest.approx(20.0)


class TestRateSubScore:
    """Tests for rate_sub_score interpolation."""

    def test_higher_is_better(self):
        """Test interpolation between fair and good."""
        value, rating = rate_sub_score(10, 20, 0)
        assert value == pytest.approx(50.0)
        assert rating == HealthRating.FAIR

    def test_lower_is_better(self):
        """Test the inverted direction."""
        assert rate_sub_score(30, 30, 80, lower_is_better=True) == (100.0, HealthRating.GOOD)
        assert rate_sub_score(80, 30, 80, lower_is_better=True) == (0.0, HealthRating.POOR)
        value, _ = rate_sub_score(55, 30, 80, lower_is_better=True)
        assert value == pytest.approx(50.0)

    def test_clamped(self):
        """Test that extreme values stay within 0-100."""
        assert rate_sub_score(1e9, 20, 0)[0] == 100.0
        assert rate_sub_score(-1e9, 20, 0)[0] == 0.0


class TestHealthScore:
    """Tests for calculate_financial_health_score."""

    def test_perfect_finances(self):
        """Test a ledger that maxes every sub-score."""
        metrics = _metrics(
            income=10000,
            expenses=5000,
            total_credit_balance=0,
            bank_cash_position=50000,
            average_utilization_pct=0.0,
            retirement_balance=10000,
            retirement_projected_12m=11000,
        )
        health = calculate_financial_health_score(metrics)
        assert health.score == 100
        assert health.rating == HealthRating.EXCELLENT
        assert [sub.label for sub in health.breakdown] == [
            "Savings Rate",
            "Credit Utilization",
            "Debt-to-Income",
            "Cash Reserve",
            "Retirement Growth",
        ]

    def test_empty_ledger(self):
        """Test zero accounts and zero income."""
        health = calculate_financial_health_score(DashboardMetrics())
        # no debt: utilization and debt-to-income both score 100 * 0.20
        assert health.score == 40
        assert health.rating == HealthRating.FAIR

    @pytest.mark.parametrize("income,expenses,debt,cash,util", [
        (-5000, 100, 10000, -300, 250.0),
        (0, 0, 0, 0, 0.0),
        (1, 1_000_000, 1_000_000, 0, 1000.0),
        (1_000_000, 0, 0, 1_000_000_000, -10.0),
        (3000, 2900, 900, 4000, 45.0),
    ])
    def test_score_bounds(self, income, expenses, debt, cash, util):
        """Test that the score stays in 0-100 and matches its band."""
        metrics = _metrics(
            income=income,
            expenses=expenses,
            total_credit_balance=debt,
            bank_cash_position=cash,
            average_utilization_pct=util,
        )
        health = calculate_financial_health_score(metrics)
        assert 0 <= health.score <= 100
        if health.score >= 80:
            assert health.rating == HealthRating.EXCELLENT
        elif health.score >= 60:
            assert health.rating == HealthRating.GOOD
        elif health.score >= 40:
            assert health.rating == HealthRating.FAIR
        else:
            assert health.rating == HealthRating.POOR
