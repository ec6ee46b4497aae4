"""Shared fixtures."""
import pytest

from app.schemas.finance import (
    BudgetEntry,
    BudgetType,
    BusinessFinanceRecord,
    FinancialSnapshot,
    InvestmentPosition,
    PersonalFinanceRecord,
    RiskLevel,
)


@pytest.fixture
def personal_finances():
    """Salaried subject with some freelance income."""
    return PersonalFinanceRecord(
        salary_income=75000,
        freelance_income=5000,
        other_deductions=12000,
    )


@pytest.fixture
def business_finances():
    return BusinessFinanceRecord(revenue=100000, other_expenses=30000)


@pytest.fixture
def budgets():
    return [
        BudgetEntry(category="Salary", type=BudgetType.INCOME, amount=5000),
        BudgetEntry(category="Rent", type=BudgetType.EXPENSE, amount=2000, deductible=True),
        BudgetEntry(category="Groceries", type=BudgetType.EXPENSE, amount=800),
        BudgetEntry(category="Utilities", type=BudgetType.EXPENSE, amount=300),
    ]


@pytest.fixture
def investments():
    return [
        InvestmentPosition(
            asset_type="stocks",
            amount_invested=10000,
            current_value=12000,
            risk_level=RiskLevel.HIGH,
            tax_saving_potential=500,
        ),
        InvestmentPosition(
            asset_type="bonds",
            amount_invested=5000,
            current_value=5100,
            risk_level=RiskLevel.LOW,
        ),
    ]


@pytest.fixture
def snapshot(personal_finances, business_finances, budgets, investments):
    """Complete stored snapshot for one subject."""
    return FinancialSnapshot(
        subject_id="user-123",
        budgets=budgets,
        investments=investments,
        personal_finances=personal_finances,
        business_finances=business_finances,
    )
