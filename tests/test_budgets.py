"""Tests for the budget & variance engine."""

from datetime import date
from decimal import Decimal

import pytest

from ledger_engine.engine import EngineContext
from ledger_engine.engine.budgets import (
    budget_period_window,
    calculate_budget_statuses,
    category_rolling_average,
    category_variance_series,
    generate_insights,
    is_anomaly,
    savings_streak,
)
from ledger_engine.models.records import Budget, BudgetPeriod, Transaction, TransactionType
from ledger_engine.models.results import InsightKind, InsightSeverity


AS_OF = date(2026, 3, 15)  # a Sunday


def _expense(tx_id, day, amount, category="Food", merchant="") -> Transaction:
    return Transaction(
        id=tx_id,
        date=day,
        amount=Decimal(amount),
        type=TransactionType.EXPENSE,
        category=category,
        merchant=merchant,
    )


def _income(tx_id, day, amount) -> Transaction:
    return Transaction(id=tx_id, date=day, amount=Decimal(amount), type=TransactionType.INCOME, category="Salary")


@pytest.fixture
def ctx() -> EngineContext:
    return EngineContext(as_of=AS_OF, import_cutoff=date(2026, 2, 12))


class TestPeriodWindows:
    """Tests for budget_period_window."""

    def test_weekly_starts_on_sunday(self):
        """Test that a Wednesday maps to the preceding Sunday."""
        assert budget_period_window(BudgetPeriod.WEEKLY, date(2026, 3, 18)) == (date(2026, 3, 15), date(2026, 3, 22))
        assert budget_period_window(BudgetPeriod.WEEKLY, AS_OF) == (date(2026, 3, 15), date(2026, 3, 22))

    def test_monthly_window(self):
        """Test the monthly window, including December."""
        assert budget_period_window(BudgetPeriod.MONTHLY, AS_OF) == (date(2026, 3, 1), date(2026, 4, 1))
        assert budget_period_window(BudgetPeriod.MONTHLY, date(2026, 12, 5)) == (date(2026, 12, 1), date(2027, 1, 1))

    def test_yearly_window(self):
        """Test the calendar-year window."""
        assert budget_period_window(BudgetPeriod.YEARLY, AS_OF) == (date(2026, 1, 1), date(2027, 1, 1))


class TestBudgetStatuses:
    """Tests for calculate_budget_statuses."""

    def test_spent_counts_matching_posted_expenses_in_period(self):
        """Test category, period and posted filters."""
        budget = Budget(id="b1", category="Food", amount=Decimal("400"))
        txs = [
            _expense("1", date(2026, 3, 2), "100"),
            _expense("2", date(2026, 3, 10), "50"),
            _expense("3", date(2026, 2, 27), "999"),
            _expense("4", date(2026, 3, 10), "70", category="Fuel"),
            _expense("5", date(2026, 3, 20), "80"),
        ]
        [status] = calculate_budget_statuses([budget], txs, AS_OF)

        assert status.spent == Decimal("150")
        assert status.remaining == Decimal("250")
        assert status.pct_used == pytest.approx(37.5)
        assert status.pct_elapsed == pytest.approx(15 / 31)
        assert status.on_track is True

    def test_remaining_never_negative(self):
        """Test the remaining floor on overspend."""
        budget = Budget(id="b1", category="Food", amount=Decimal("100"))
        [status] = calculate_budget_statuses([budget], [_expense("1", AS_OF, "150")], AS_OF)
        assert status.remaining == Decimal("0")
        assert status.pct_used == pytest.approx(150.0)

    def test_zero_amount_budget_is_zero_percent(self):
        """Test the zero-denominator guard."""
        budget = Budget(id="b1", category="Food", amount=Decimal("0"))
        [status] = calculate_budget_statuses([budget], [_expense("1", AS_OF, "10")], AS_OF)
        assert status.pct_used == 0.0

    def test_inactive_and_future_budgets_skipped(self):
        """Test that only active, started budgets report."""
        budgets = [
            Budget(id="off", category="Food", amount=Decimal("100"), is_active=False),
            Budget(id="later", category="Food", amount=Decimal("100"), start_date=date(2026, 4, 1)),
        ]
        assert calculate_budget_statuses(budgets, [], AS_OF) == []


class TestRollingAverageAndVariance:
    """Tests for rolling averages and anomaly detection."""

    def test_rolling_average_uses_strictly_preceding_months(self):
        """Test the window and the fixed divisor."""
        txs = [
            _expense("1", date(2025, 12, 5), "90"),
            _expense("2", date(2026, 1, 5), "60"),
            _expense("3", date(2026, 3, 5), "500"),
            _expense("4", date(2025, 11, 5), "1000"),
        ]
        averages = category_rolling_average(txs, "2026-03")
        assert averages == {"Food": Decimal("50")}

    def test_anomaly_requires_positive_average(self):
        """Test the anomaly threshold."""
        assert is_anomaly(Decimal("151"), Decimal("100"))
        assert not is_anomaly(Decimal("150"), Decimal("100"))
        assert not is_anomaly(Decimal("10"), Decimal("0"))

    def test_variance_sorted_by_absolute_change(self):
        """Test month-over-month variance ordering and flags."""
        txs = [
            _expense("1", date(2026, 2, 5), "100", category="Food"),
            _expense("2", date(2026, 3, 5), "400", category="Food"),
            _expense("3", date(2026, 2, 5), "50", category="Fuel"),
            _expense("4", date(2026, 3, 5), "40", category="Fuel"),
            _expense("5", date(2026, 3, 6), "20", category="Books"),
        ]
        variances = category_variance_series(txs, "2026-03")

        assert [item.category for item in variances] == ["Food", "Books", "Fuel"]
        food = variances[0]
        assert food.change == Decimal("300")
        assert food.change_pct == pytest.approx(300.0)
        assert food.anomaly is True
        assert variances[1].change_pct == 100.0


class TestInsights:
    """Tests for the insight cascade."""

    def test_overspend_and_near_limit(self, ctx):
        """Test the budget rule thresholds."""
        budgets = [
            Budget(id="b1", category="Food", amount=Decimal("100")),
            Budget(id="b2", category="Fuel", amount=Decimal("100")),
        ]
        txs = [_expense("1", AS_OF, "120", category="Food"), _expense("2", AS_OF, "92", category="Fuel")]
        statuses = calculate_budget_statuses(budgets, txs, AS_OF)

        insights = generate_insights(statuses, txs, budgets, ctx)
        kinds = [insight.kind for insight in insights]

        assert kinds[:2] == [InsightKind.OVERSPEND, InsightKind.NEAR_LIMIT]
        assert all(insight.severity == InsightSeverity.WARNING for insight in insights[:2])

    def test_savings_streak(self, ctx):
        """Test that three positive months produce a streak insight."""
        txs = []
        for month in (1, 2, 3):
            txs.append(_income(f"i{month}", date(2026, month, 1), "1000"))
            txs.append(_expense(f"e{month}", date(2026, month, 2), "400", category=f"C{month}"))
        assert savings_streak(txs, "2026-03") == 3

        insights = generate_insights([], txs, [Budget(id="b", category="x", amount=Decimal("1"))], ctx)
        assert [insight.kind for insight in insights] == [InsightKind.STREAK]

    def test_savings_streak_needs_consecutive_months(self, ctx):
        """Test that old positive months with gaps between them are no streak."""
        txs = [
            _income("a", date(2024, 1, 5), "1000"),
            _income("b", date(2024, 6, 5), "1000"),
            _income("c", date(2025, 1, 5), "1000"),
        ]
        assert savings_streak(txs, ctx.current_month) == 0

        insights = generate_insights([], txs, [Budget(id="b", category="x", amount=Decimal("1"))], ctx)
        assert InsightKind.STREAK not in [insight.kind for insight in insights]

    def test_savings_streak_gap_breaks_count(self):
        """Test that a month without cashflow ends the streak."""
        txs = [
            _income("jan", date(2026, 1, 5), "1000"),
            _income("feb", date(2026, 2, 5), "1000"),
            _income("oct", date(2025, 10, 5), "1000"),
            _income("nov", date(2025, 11, 5), "1000"),
        ]
        assert savings_streak(txs, "2026-02") == 2

    def test_savings_streak_skips_quiet_current_month(self):
        """Test that a current month without activity does not reset the streak."""
        txs = [_income(f"i{month}", date(2025, month, 5), "100") for month in (10, 11, 12)]
        assert savings_streak(txs, "2026-01") == 3
        assert savings_streak(txs, "2026-02") == 0

    def test_savings_streak_ignores_card_activity(self):
        """Test that card spending does not count against cashflow."""
        txs = []
        for month in (1, 2, 3):
            txs.append(_income(f"i{month}", date(2026, month, 1), "1000"))
            card_charge = _expense(f"c{month}", date(2026, month, 2), "5000")
            txs.append(card_charge.model_copy(update={"account": "visa"}))
        assert savings_streak(txs, "2026-03") == 0
        assert savings_streak(txs, "2026-03", {"visa"}) == 3

    def test_recurring_merchant_opportunity(self, ctx):
        """Test that a merchant in three months with > 500 total is flagged."""
        txs = [
            _expense("1", date(2026, 1, 3), "200", category="Fun", merchant="Arcade"),
            _expense("2", date(2026, 2, 3), "200", category="Fun", merchant="Arcade"),
            _expense("3", date(2026, 3, 3), "150", category="Fun2", merchant="Arcade"),
        ]
        insights = generate_insights([], txs, [Budget(id="b", category="x", amount=Decimal("1"))], ctx)
        opportunities = [i for i in insights if i.kind == InsightKind.SAVINGS_OPPORTUNITY]
        assert len(opportunities) == 1
        assert opportunities[0].amount == Decimal("550")

    def test_sparse_ledger_tips(self, ctx):
        """Test the tips for an empty ledger."""
        insights = generate_insights([], [], [], ctx)
        assert [insight.kind for insight in insights] == [InsightKind.TIP, InsightKind.TIP]

    def test_future_transactions_do_not_drive_insights(self, ctx):
        """Test that only posted transactions feed the cascade."""
        txs = [_expense("f", date(2026, 4, 1), "10")]
        insights = generate_insights([], txs, [], ctx)
        assert insights[0].title == "Add your first transactions"
