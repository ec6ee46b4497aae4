"""Aggregate a subject's budgets and investments into summary figures."""
from collections import defaultdict
from typing import Dict, Sequence

from app.schemas.finance import (
    BudgetEntry,
    BudgetSummary,
    BudgetType,
    FinancialSnapshot,
    FinancialSummary,
    InvestmentPosition,
    InvestmentSummary,
)


def summarize_budgets(budgets: Sequence[BudgetEntry]) -> BudgetSummary:
    total_income = sum(b.amount for b in budgets if b.type == BudgetType.INCOME)
    total_expenses = sum(b.amount for b in budgets if b.type == BudgetType.EXPENSE)
    total_savings = total_income - total_expenses

    category_breakdown: Dict[str, float] = defaultdict(float)
    for budget in budgets:
        if budget.type == BudgetType.EXPENSE:
            category_breakdown[budget.category] += budget.amount

    return BudgetSummary(
        total_income=total_income,
        total_expenses=total_expenses,
        total_savings=total_savings,
        savings_rate=(total_savings / total_income * 100) if total_income > 0 else 0.0,
        category_breakdown=dict(category_breakdown),
    )


def summarize_investments(investments: Sequence[InvestmentPosition]) -> InvestmentSummary:
    total_invested = sum(inv.amount_invested for inv in investments)
    total_value = sum(inv.current_value for inv in investments)
    total_returns = total_value - total_invested

    asset_type_breakdown: Dict[str, float] = defaultdict(float)
    risk_distribution: Dict[str, float] = defaultdict(float)
    for inv in investments:
        asset_type_breakdown[inv.asset_type] += inv.current_value
        risk_distribution[inv.risk_level.value] += inv.current_value

    return InvestmentSummary(
        total_invested=total_invested,
        total_value=total_value,
        total_returns=total_returns,
        roi_percentage=(total_returns / total_invested * 100) if total_invested > 0 else 0.0,
        asset_type_breakdown=dict(asset_type_breakdown),
        risk_distribution=dict(risk_distribution),
    )


def summarize_snapshot(snapshot: FinancialSnapshot) -> FinancialSummary:
    return FinancialSummary(
        budgets=summarize_budgets(snapshot.budgets),
        investments=summarize_investments(snapshot.investments),
    )
