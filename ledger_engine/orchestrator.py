"""
Main Orchestrator for the Ledger Engine

This module ties the record store, the derivation engine, the bank-feed
reconciler and the backup service together and defines the end-to-end
flows for:
1. Dashboard (store -> snapshot -> derivations -> DashboardView)
2. Edits (typed patch -> validated record -> store)
3. Subscription schedules (subscription -> future-dated charges -> store)
4. Backups (store <-> JSON document)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Every derivation in one view reads ONE snapshot taken at ONE reference date
- Synthetic scenario installments are added to the snapshot, never written
- Imported transactions before the cutoff never reach a derivation
- Every write is audited

The derivation functions themselves stay pure; all I/O happens here.
"""

from typing import Optional

import structlog
from pydantic import BaseModel

from ledger_engine.audit import AuditLogger
from ledger_engine.config import get_settings, validate_all_settings
from ledger_engine.engine import (
    EngineContext,
    LedgerSnapshot,
    allowed_transactions,
    bank_balance,
    bank_balance_series,
    calculate_budget_statuses,
    calculate_dashboard_metrics,
    calculate_financial_health_score,
    calculate_goal_progress,
    card_balance,
    cashflow_series,
    category_spend,
    category_variance_series,
    credit_debt_projection,
    evaluate_scenario,
    generate_insights,
    monthly_candlestick_series,
    monthly_trends,
    net_worth_series,
    posted_transactions,
    retirement_trend_series,
    scenario_installments,
    scheduled_subscription_charges,
    spending_forecast,
    subscription_forecast_series,
)
from ledger_engine.engine.projections import is_scheduled_charge_for
from ledger_engine.models.patches import RecordPatch
from ledger_engine.models.records import BankFeedProviderName, Subscription, Transaction
from ledger_engine.models.results import AccountBalance, DashboardView
from ledger_engine.services.backup import (
    FinanceBackup,
    export_backup,
    import_backup,
)
from ledger_engine.services.bankfeed import (
    BankFeedReconciler,
    PlaidProvider,
    SimpleFinProvider,
)
from ledger_engine.services.storage import (
    AuditStorageInterface,
    Collection,
    InMemoryAuditStorage,
    InMemoryRecordStore,
    RecordStoreInterface,
)


logger = structlog.get_logger("ledger_engine.orchestrator")


class LedgerEngine:
    """
    Reads the store, runs the derivations, and performs audited writes.

    Usage:
        engine = LedgerEngine(store)
        view = await engine.dashboard()
    """

    def __init__(
        self,
        store: RecordStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger or AuditLogger()

    @property
    def store(self) -> RecordStoreInterface:
        return self._store

    def context(self, ctx: Optional[EngineContext] = None) -> EngineContext:
        return ctx or EngineContext.from_settings()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def load_snapshot(self, ctx: Optional[EngineContext] = None) -> LedgerSnapshot:
        """
        Read every collection once and build the ingested transaction stream.

        The stream is the stored transactions minus imported ones dated
        before the cutoff, plus in-memory installments of applied scenarios.
        """
        ctx = self.context(ctx)
        stored = await self._store.list_records(Collection.TRANSACTIONS)
        scenarios = await self._store.list_records(Collection.SCENARIOS)
        return LedgerSnapshot(
            transactions=allowed_transactions(stored, ctx.import_cutoff) + scenario_installments(scenarios),
            stored_transactions=stored,
            subscriptions=await self._store.list_records(Collection.SUBSCRIPTIONS),
            cards=await self._store.list_records(Collection.CARDS),
            banks=await self._store.list_records(Collection.BANKS),
            budgets=await self._store.list_records(Collection.BUDGETS),
            goals=await self._store.list_records(Collection.GOALS),
            scenarios=scenarios,
            retirement_entries=await self._store.list_records(Collection.RETIREMENT_ENTRIES),
        )

    async def account_balances(self, ctx: Optional[EngineContext] = None) -> list[AccountBalance]:
        """Anchor, live and projected balance for every bank account and card."""
        ctx = self.context(ctx)
        snapshot = await self.load_snapshot(ctx)
        return self._account_balances(snapshot, ctx)

    def _account_balances(self, snapshot: LedgerSnapshot, ctx: EngineContext) -> list[AccountBalance]:
        balances = [bank_balance(bank, snapshot.transactions, ctx.as_of) for bank in snapshot.banks]
        balances.extend(card_balance(card, snapshot.transactions, ctx.as_of) for card in snapshot.cards)
        return balances

    async def dashboard(self, ctx: Optional[EngineContext] = None) -> DashboardView:
        """
        Compute every dashboard figure from one snapshot.

        Args:
            ctx: Reference date and thresholds; built from settings if omitted

        Returns:
            DashboardView
        """
        ctx = self.context(ctx)
        snapshot = await self.load_snapshot(ctx)
        return self.build_dashboard(snapshot, ctx)

    def build_dashboard(self, snapshot: LedgerSnapshot, ctx: EngineContext) -> DashboardView:
        """Pure part of `dashboard`; exposed so callers can reuse a snapshot."""
        posted = posted_transactions(snapshot.transactions, ctx.as_of)
        metrics = calculate_dashboard_metrics(snapshot, ctx)
        budget_statuses = calculate_budget_statuses(snapshot.budgets, snapshot.transactions, ctx.as_of)
        trends = monthly_trends(posted)

        return DashboardView(
            as_of=ctx.as_of,
            metrics=metrics,
            health=calculate_financial_health_score(metrics),
            account_balances=self._account_balances(snapshot, ctx),
            net_worth=net_worth_series(
                snapshot.transactions,
                snapshot.banks,
                snapshot.cards,
                snapshot.retirement_entries,
                ctx.as_of,
            ),
            budget_statuses=budget_statuses,
            spending_pulse=category_variance_series(
                posted,
                ctx.current_month,
                ctx.anomaly_multiplier,
                ctx.rolling_window_months,
            ),
            insights=generate_insights(
                budget_statuses, snapshot.transactions, snapshot.budgets, ctx, snapshot.card_ids,
            ),
            category_spend=category_spend(posted),
            cashflow=cashflow_series(posted),
            monthly_trends=trends,
            candlesticks=monthly_candlestick_series(posted),
            bank_balances=bank_balance_series(snapshot.banks, ctx.as_of),
            retirement_trend=retirement_trend_series(snapshot.retirement_entries),
            forecast=spending_forecast(trends, ctx.forecast_window_months),
            scenario_outcomes=[
                evaluate_scenario(
                    scenario,
                    metrics.net_cashflow,
                    metrics.monthly_subscriptions,
                    snapshot.cards,
                )
                for scenario in snapshot.scenarios
            ],
            goals=calculate_goal_progress(
                snapshot.goals,
                snapshot.banks,
                snapshot.cards,
                snapshot.transactions,
                ctx.as_of,
            ),
            subscription_forecast=subscription_forecast_series(snapshot.subscriptions, ctx.as_of),
            debt_projection=credit_debt_projection(snapshot.cards),
        )

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def save_transaction(self, tx: Transaction) -> Transaction:
        """
        Insert or replace one transaction.

        Raises:
            SyntheticRecordError: If the transaction is a scenario installment
        """
        await self._store.upsert_records(Collection.TRANSACTIONS, [tx])
        logger.info("transaction_saved", transaction_id=tx.id, origin=tx.origin.value)
        return tx

    async def patch_record(self, collection: Collection, record_id: str, patch: RecordPatch) -> BaseModel:
        """
        Apply a typed patch to one stored record.

        Raises:
            NotFoundError: If the record does not exist
            pydantic.ValidationError: If the patched record is invalid
        """
        record = await self._store.get_record(collection, record_id)
        patched = patch.apply_to(record)
        await self._store.upsert_records(collection, [patched])
        await self._audit_logger.log_record_patched(collection.value, record_id, sorted(patch.changes()))
        return patched

    async def clear_scheduled_charges(self, subscription_id: str) -> int:
        """Delete every stored charge generated for a subscription."""
        stored = await self._store.list_records(Collection.TRANSACTIONS)
        linked = [tx.id for tx in stored if is_scheduled_charge_for(tx, subscription_id)]
        if not linked:
            return 0
        return await self._store.delete_records(Collection.TRANSACTIONS, linked)

    async def sync_scheduled_charges(self, subscription: Subscription) -> list[Transaction]:
        """
        Rewrite the future-dated charges of one subscription.

        Old charges are always cleared; inactive, free or undated
        subscriptions end up with none.
        """
        removed = await self.clear_scheduled_charges(subscription.id)
        charges = scheduled_subscription_charges(subscription)
        if charges:
            await self._store.upsert_records(Collection.TRANSACTIONS, charges)
        await self._audit_logger.log_scheduled_charges_synced(subscription.id, len(charges), removed)
        return charges

    async def save_subscription(self, subscription: Subscription) -> list[Transaction]:
        """Store a subscription and regenerate its charges."""
        await self._store.upsert_records(Collection.SUBSCRIPTIONS, [subscription])
        return await self.sync_scheduled_charges(subscription)

    async def delete_subscription(self, subscription_id: str) -> None:
        await self._store.delete_records(Collection.SUBSCRIPTIONS, [subscription_id])
        await self.clear_scheduled_charges(subscription_id)

    # -------------------------------------------------------------------------
    # Backup
    # -------------------------------------------------------------------------

    async def export_backup(self) -> FinanceBackup:
        return await export_backup(self._store, get_settings().engine.app_version, self._audit_logger)

    async def import_backup(self, raw) -> dict[str, int]:
        """
        Validate and restore a backup document.

        Raises:
            BackupFormatError: If the document is rejected; nothing was written
        """
        return await import_backup(self._store, raw, self._audit_logger)


def create_engine_components(
    store: Optional[RecordStoreInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
) -> tuple[LedgerEngine, BankFeedReconciler]:
    """
    Factory function to create all engine components.

    Args:
        store: Record store; in-memory if omitted
        audit_storage: Where audit events are persisted; in-memory if omitted

    Returns:
        (ledger_engine, bank_feed_reconciler)
    """
    store = store or InMemoryRecordStore()
    audit_logger = AuditLogger(audit_storage or InMemoryAuditStorage())

    providers = {BankFeedProviderName.SIMPLEFIN: SimpleFinProvider()}
    status = validate_all_settings()
    if status["plaid"]:
        providers[BankFeedProviderName.PLAID] = PlaidProvider()
    else:
        # Plaid not configured - SimpleFIN only
        logger.info("plaid_not_configured", error=status["plaid_error"])

    engine = LedgerEngine(store, audit_logger)
    reconciler = BankFeedReconciler(
        store,
        providers,
        ctx_factory=EngineContext.from_settings,
        audit_logger=audit_logger,
    )
    return engine, reconciler
