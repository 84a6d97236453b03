"""
Derivation Engine Package

Pure, synchronous calculations over one LedgerSnapshot and one
EngineContext. Nothing in this package performs I/O.
"""

from ledger_engine.engine.balances import (
    bank_balance,
    calculate_dashboard_metrics,
    card_balance,
    credit_utilization,
    pending_deltas_by_account,
    posted_deltas_by_account,
    signed_delta,
)
from ledger_engine.engine.budgets import (
    budget_period_window,
    calculate_budget_statuses,
    category_rolling_average,
    category_variance_series,
    generate_insights,
)
from ledger_engine.engine.context import EngineContext, LedgerSnapshot, local_today
from ledger_engine.engine.goals import calculate_goal_progress, debt_payoff_timeline
from ledger_engine.engine.health import (
    calculate_financial_health_score,
    debt_to_income_ratio,
    rate_sub_score,
    savings_rate,
)
from ledger_engine.engine.net_worth import net_worth_series
from ledger_engine.engine.projections import (
    credit_debt_projection,
    monthly_subscription_cost,
    retirement_projection,
    scheduled_subscription_charges,
    subscription_forecast_series,
)
from ledger_engine.engine.scenarios import (
    evaluate_scenario,
    scenario_installments,
    scenario_series,
)
from ledger_engine.engine.temporal import (
    allowed_transactions,
    classify_transaction,
    is_allowed_imported,
    is_imported,
    is_posted,
    is_scheduled,
    posted_transactions,
    scheduled_transactions,
)
from ledger_engine.engine.trends import (
    bank_balance_series,
    cashflow_series,
    category_spend,
    monthly_candlestick_series,
    monthly_trends,
    retirement_trend_series,
    running_balance_series,
    spending_forecast,
)

__all__ = [
    # Context
    "EngineContext",
    "LedgerSnapshot",
    "local_today",
    # Temporal
    "allowed_transactions",
    "classify_transaction",
    "is_allowed_imported",
    "is_imported",
    "is_posted",
    "is_scheduled",
    "posted_transactions",
    "scheduled_transactions",
    # Balances
    "bank_balance",
    "calculate_dashboard_metrics",
    "card_balance",
    "credit_utilization",
    "pending_deltas_by_account",
    "posted_deltas_by_account",
    "signed_delta",
    # Net worth
    "net_worth_series",
    # Budgets
    "budget_period_window",
    "calculate_budget_statuses",
    "category_rolling_average",
    "category_variance_series",
    "generate_insights",
    # Health
    "calculate_financial_health_score",
    "debt_to_income_ratio",
    "rate_sub_score",
    "savings_rate",
    # Scenarios
    "evaluate_scenario",
    "scenario_installments",
    "scenario_series",
    # Trends
    "bank_balance_series",
    "cashflow_series",
    "category_spend",
    "monthly_candlestick_series",
    "monthly_trends",
    "retirement_trend_series",
    "running_balance_series",
    "spending_forecast",
    # Projections & goals
    "calculate_goal_progress",
    "credit_debt_projection",
    "debt_payoff_timeline",
    "monthly_subscription_cost",
    "retirement_projection",
    "scheduled_subscription_charges",
    "subscription_forecast_series",
]
