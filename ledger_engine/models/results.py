"""
Derived Result Models

Everything the engine computes is returned as one of these models. They are
never stored; they can be rebuilt at any time from the record store plus a
reference date.

DESIGN DECISION: Result models share the camelCase wire convention of the
records, so a host application can hand them straight to a UI layer.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ledger_engine.models.records import (
    BudgetPeriod,
    GoalType,
    Money,
    TransactionOrigin,
)


class ResultModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


# =============================================================================
# ENUMS
# =============================================================================

class TransactionStatus(str, Enum):
    POSTED = "posted"
    SCHEDULED = "scheduled"


class AccountKind(str, Enum):
    BANK = "bank"
    CARD = "card"


class InsightKind(str, Enum):
    OVERSPEND = "overspend"
    NEAR_LIMIT = "near-limit"
    ANOMALY = "anomaly"
    STREAK = "streak"
    SAVINGS_OPPORTUNITY = "savings-opportunity"
    TIP = "tip"


class InsightSeverity(str, Enum):
    WARNING = "warning"
    SUCCESS = "success"
    INFO = "info"


class HealthRating(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class ForecastConfidence(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# =============================================================================
# TEMPORAL & BALANCES
# =============================================================================

class TransactionClassification(ResultModel):
    transaction_id: str
    status: TransactionStatus
    origin: TransactionOrigin


class AccountBalance(ResultModel):
    """
    Point-in-time balance of one account.

    For cards every figure is in debt terms (a posted expense raises it).
    Always: live_balance == anchor_balance + posted_delta and
    projected_balance == live_balance + pending_delta.
    """
    account_id: str
    kind: AccountKind
    name: str = ""
    anchor_balance: Money
    posted_delta: Money
    pending_delta: Money
    live_balance: Money
    projected_balance: Money


class DashboardMetrics(ResultModel):
    income: Money = Decimal("0")
    expenses: Money = Decimal("0")
    net_cashflow: Money = Decimal("0")
    monthly_subscriptions: Money = Decimal("0")
    total_credit_balance: Money = Decimal("0")
    bank_cash_position: Money = Decimal("0")
    average_utilization_pct: float = 0.0
    retirement_balance: Money = Decimal("0")
    retirement_projected_12m: Money = Decimal("0")


class NetWorthPoint(ResultModel):
    month: str = Field(..., description="YYYY-MM")
    assets: Money
    liabilities: Money
    net: Money


# =============================================================================
# BUDGETS & INSIGHTS
# =============================================================================

class BudgetStatus(ResultModel):
    budget_id: str
    category: str
    period: BudgetPeriod
    amount: Money
    spent: Money
    remaining: Money
    pct_used: float
    pct_elapsed: float = Field(..., ge=0, le=1)
    on_track: bool
    period_start: date
    period_end: date


class CategoryVariance(ResultModel):
    category: str
    current: Money
    previous: Money
    change: Money
    change_pct: float
    anomaly: bool


class SpendingInsight(ResultModel):
    kind: InsightKind
    severity: InsightSeverity
    title: str
    message: str
    category: Optional[str] = None
    amount: Optional[Money] = None


class HealthSubScore(ResultModel):
    label: str
    value: float = Field(..., ge=0, le=100)
    rating: HealthRating
    weight: float
    weighted: float


class FinancialHealthScore(ResultModel):
    score: int = Field(..., ge=0, le=100)
    rating: HealthRating
    breakdown: list[HealthSubScore]


# =============================================================================
# SCENARIOS
# =============================================================================

class ScenarioEvaluation(ResultModel):
    scenario_id: str
    name: str
    baseline_disposable: Money
    monthly_scenario_cost: Money
    projected_disposable_after_purchase: Money
    projected_debt: Money


class ScenarioPoint(ResultModel):
    month: int
    disposable: Money
    debt: Money


# =============================================================================
# TRENDS & FORECAST
# =============================================================================

class CategorySpend(ResultModel):
    name: str
    amount: Money


class CashflowPoint(ResultModel):
    month: str
    income: Money
    expense: Money
    net: Money


class MonthlyTrend(ResultModel):
    month: str
    income: Money
    expenses: Money
    net: Money
    savings_rate: float


class RunningBalancePoint(ResultModel):
    date: date
    balance: Money


class CandlestickPoint(ResultModel):
    """Running net cashflow over one month: first, last, highest and lowest value."""
    month: str
    open: Money
    close: Money
    high: Money
    low: Money


class BankBalancePoint(ResultModel):
    date: date
    total: Money = Field(..., description="Sum of anchor balances last updated on this date")


class RetirementTrendPoint(ResultModel):
    date: date
    balance: Money


class SpendingForecast(ResultModel):
    month: str = Field(..., description="Forecast month, YYYY-MM")
    projected_expenses: Money
    projected_income: Money
    projected_net: Money
    monthly_change: Money = Field(
        default=Decimal("0"),
        description="Fitted month-over-month change in expenses"
    )
    months_used: int
    confidence: ForecastConfidence


# =============================================================================
# PROJECTIONS & GOALS
# =============================================================================

class SubscriptionForecastPoint(ResultModel):
    month: str
    recurring_cost: Money
    cumulative: Money


class DebtProjectionPoint(ResultModel):
    month: int
    debt: Money


class GoalProgress(ResultModel):
    goal_id: str
    name: str
    type: GoalType
    target_amount: Money
    current_amount: Money
    remaining: Money
    progress_pct: float = Field(..., ge=0, le=100)
    is_linked: bool
    is_complete: bool
    months_remaining: Optional[int] = None
    required_monthly: Optional[Money] = None


class DebtPayoffPoint(ResultModel):
    month: int
    payment: Money
    interest: Money
    balance: Money


class DebtPayoffPlan(ResultModel):
    """months is None when the payment never clears the balance."""
    months: Optional[int]
    total_interest: Money
    total_paid: Money
    schedule: list[DebtPayoffPoint]

    @property
    def is_payable(self) -> bool:
        return self.months is not None


# =============================================================================
# RECONCILIATION & VIEWS
# =============================================================================

class SyncSummary(ResultModel):
    connection_id: str
    added: int = 0
    modified: int = 0
    unchanged: int = 0
    skipped: int = 0
    pruned: int = 0
    new_accounts: int = 0
    synced_at: datetime


class DashboardView(ResultModel):
    """One consistent dashboard computed from a single snapshot."""
    as_of: date
    metrics: DashboardMetrics
    health: FinancialHealthScore
    account_balances: list[AccountBalance]
    net_worth: list[NetWorthPoint]
    budget_statuses: list[BudgetStatus]
    spending_pulse: list[CategoryVariance]
    insights: list[SpendingInsight]
    category_spend: list[CategorySpend]
    cashflow: list[CashflowPoint]
    monthly_trends: list[MonthlyTrend]
    candlesticks: list[CandlestickPoint] = Field(default_factory=list)
    bank_balances: list[BankBalancePoint] = Field(default_factory=list)
    retirement_trend: list[RetirementTrendPoint] = Field(default_factory=list)
    forecast: Optional[SpendingForecast] = None
    scenario_outcomes: list[ScenarioEvaluation]
    goals: list[GoalProgress]
    subscription_forecast: list[SubscriptionForecastPoint]
    debt_projection: list[DebtProjectionPoint]
