"""
Scenario Projector

Expands applied what-if purchases into synthetic installment transactions
and reports the disposable-income and debt impact of a purchase.

CRITICAL: Installments carry origin=SYNTHETIC. They are unioned into the
ingested stream for a single derivation and are never written to the
store or considered by bank-feed reconciliation.
"""

from decimal import Decimal
from typing import Iterable

from ledger_engine.engine.temporal import add_months
from ledger_engine.models.records import (
    CreditCard,
    Scenario,
    ScenarioPaymentType,
    Transaction,
    TransactionOrigin,
    TransactionType,
    quantize_money,
)
from ledger_engine.models.results import ScenarioEvaluation, ScenarioPoint


SCENARIO_CATEGORY = "What-If Scenario"


def monthly_scenario_cost(scenario: Scenario) -> Decimal:
    """Per-installment cost; the full amount when there is no term."""
    if scenario.duration_months > 0:
        return scenario.purchase_amount / scenario.duration_months
    return scenario.purchase_amount


def scenario_installments(scenarios: Iterable[Scenario]) -> list[Transaction]:
    """
    Synthetic monthly installments for every applied, scheduled scenario.

    Installment i is dated i months after the schedule date, clamped to the
    end of shorter months.
    """
    installments = []
    for scenario in scenarios:
        if not scenario.is_applied or scenario.schedule_date is None:
            continue
        count = max(1, scenario.duration_months)
        amount = quantize_money(monthly_scenario_cost(scenario))
        for idx in range(count):
            installments.append(Transaction(
                id=f"scenario-{scenario.id}-{idx + 1}",
                date=add_months(scenario.schedule_date, idx),
                amount=amount,
                type=TransactionType.EXPENSE,
                category=SCENARIO_CATEGORY,
                merchant=scenario.name,
                account=scenario.account_id,
                note=f"Scenario installment {idx + 1}/{count}",
                origin=TransactionOrigin.SYNTHETIC,
            ))
    return installments


def evaluate_scenario(
    scenario: Scenario,
    net_cashflow: Decimal,
    monthly_subscriptions: Decimal,
    cards: Iterable[CreditCard],
) -> ScenarioEvaluation:
    baseline = net_cashflow - monthly_subscriptions
    monthly_cost = monthly_scenario_cost(scenario)
    card_debt = sum((card.balance for card in cards), Decimal("0"))
    added_debt = scenario.purchase_amount if scenario.payment_type == ScenarioPaymentType.CARD else Decimal("0")
    return ScenarioEvaluation(
        scenario_id=scenario.id,
        name=scenario.name,
        baseline_disposable=baseline,
        monthly_scenario_cost=monthly_cost,
        projected_disposable_after_purchase=baseline - monthly_cost,
        projected_debt=card_debt + added_debt,
    )


def scenario_series(
    scenario: Scenario,
    baseline_disposable: Decimal,
    baseline_debt: Decimal,
) -> list[ScenarioPoint]:
    """
    Month-by-month disposable income and debt over the scenario's term.

    A card purchase adds its full amount to debt at month 0 and is paid
    down one installment per month; debt never drops below the baseline.
    """
    monthly_cost = monthly_scenario_cost(scenario)
    points = []
    for month in range(scenario.duration_months + 1):
        if scenario.payment_type == ScenarioPaymentType.CARD:
            debt = baseline_debt + scenario.purchase_amount - month * monthly_cost
        else:
            debt = baseline_debt
        points.append(ScenarioPoint(
            month=month,
            disposable=baseline_disposable - monthly_cost,
            debt=max(debt, baseline_debt),
        ))
    return points
