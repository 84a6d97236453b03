"""
Data Models Package

This package contains all Pydantic models used by the ledger engine.
Stored records, patches, derived results and audit events all live here.
"""

from ledger_engine.models.records import (
    BANK_FEED_PREFIX,
    UNASSIGNED_ACCOUNT,
    BankAccount,
    BankAccountType,
    BankFeedConnection,
    BankFeedProviderName,
    Budget,
    BudgetPeriod,
    ConnectionStatus,
    CreditCard,
    Goal,
    GoalType,
    LedgerRecord,
    Money,
    RetirementEntry,
    Scenario,
    ScenarioPaymentType,
    Subscription,
    SubscriptionFrequency,
    Transaction,
    TransactionOrigin,
    TransactionType,
    UiPreferences,
    bank_feed_account_id,
    bank_feed_transaction_id,
)
from ledger_engine.models.patches import (
    BankAccountPatch,
    BudgetPatch,
    CreditCardPatch,
    GoalPatch,
    RecordPatch,
    ScenarioPatch,
    TransactionPatch,
)
from ledger_engine.models.results import (
    AccountBalance,
    AccountKind,
    BankBalancePoint,
    BudgetStatus,
    CandlestickPoint,
    CashflowPoint,
    CategorySpend,
    CategoryVariance,
    DashboardMetrics,
    DashboardView,
    DebtPayoffPlan,
    DebtPayoffPoint,
    DebtProjectionPoint,
    FinancialHealthScore,
    ForecastConfidence,
    GoalProgress,
    HealthRating,
    HealthSubScore,
    InsightKind,
    InsightSeverity,
    MonthlyTrend,
    NetWorthPoint,
    RetirementTrendPoint,
    RunningBalancePoint,
    ScenarioEvaluation,
    ScenarioPoint,
    SpendingForecast,
    SpendingInsight,
    SubscriptionForecastPoint,
    SyncSummary,
    TransactionClassification,
    TransactionStatus,
)
from ledger_engine.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Records
    "BANK_FEED_PREFIX",
    "UNASSIGNED_ACCOUNT",
    "BankAccount",
    "BankAccountType",
    "BankFeedConnection",
    "BankFeedProviderName",
    "Budget",
    "BudgetPeriod",
    "ConnectionStatus",
    "CreditCard",
    "Goal",
    "GoalType",
    "LedgerRecord",
    "Money",
    "RetirementEntry",
    "Scenario",
    "ScenarioPaymentType",
    "Subscription",
    "SubscriptionFrequency",
    "Transaction",
    "TransactionOrigin",
    "TransactionType",
    "UiPreferences",
    "bank_feed_account_id",
    "bank_feed_transaction_id",
    # Patches
    "BankAccountPatch",
    "BudgetPatch",
    "CreditCardPatch",
    "GoalPatch",
    "RecordPatch",
    "ScenarioPatch",
    "TransactionPatch",
    # Results
    "AccountBalance",
    "AccountKind",
    "BankBalancePoint",
    "BudgetStatus",
    "CandlestickPoint",
    "CashflowPoint",
    "CategorySpend",
    "CategoryVariance",
    "DashboardMetrics",
    "DashboardView",
    "DebtPayoffPlan",
    "DebtPayoffPoint",
    "DebtProjectionPoint",
    "FinancialHealthScore",
    "ForecastConfidence",
    "GoalProgress",
    "HealthRating",
    "HealthSubScore",
    "InsightKind",
    "InsightSeverity",
    "MonthlyTrend",
    "NetWorthPoint",
    "RetirementTrendPoint",
    "RunningBalancePoint",
    "ScenarioEvaluation",
    "ScenarioPoint",
    "SpendingForecast",
    "SpendingInsight",
    "SubscriptionForecastPoint",
    "SyncSummary",
    "TransactionClassification",
    "TransactionStatus",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
