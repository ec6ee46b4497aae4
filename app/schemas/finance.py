"""Pydantic schemas for the canonical financial model."""

import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


PERSONAL_INCOME_FIELDS = (
    "salary_income",
    "freelance_income",
    "investment_income",
    "rental_income",
    "capital_gains",
)

PERSONAL_DEDUCTION_FIELDS = (
    "retirement_contributions",
    "mortgage_interest",
    "property_taxes",
    "charitable_donations",
    "medical_expenses",
    "childcare_costs",
    "education_expenses",
    "other_deductions",
)

PERSONAL_FIELDS = PERSONAL_INCOME_FIELDS + PERSONAL_DEDUCTION_FIELDS

BUSINESS_EXPENSE_FIELDS = (
    "employee_costs",
    "equipment",
    "rent",
    "utilities",
    "marketing",
    "travel_expenses",
    "office_supplies",
    "professional_services",
    "insurance",
    "other_expenses",
)

BUSINESS_FIELDS = ("revenue",) + BUSINESS_EXPENSE_FIELDS

# Largest magnitude kept for a single amount; sums of a few amounts stay
# far from float overflow and within exact cent rounding
MAX_AMOUNT = 1e18


def bound_amount(value: float) -> float:
    """Clamp a finite amount into [-MAX_AMOUNT, MAX_AMOUNT]."""
    return max(-MAX_AMOUNT, min(MAX_AMOUNT, value))


class ExtractionMethod(str, Enum):
    """How a financial record was obtained."""
    UPLOAD = "upload"
    OCR = "ocr"
    CRM = "crm"


class BudgetType(str, Enum):
    """Direction of a budget transaction."""
    INCOME = "income"
    EXPENSE = "expense"


class RiskLevel(str, Enum):
    """Risk level of an investment position."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class PersonalFinanceRecord(BaseModel):
    """Personal income and deductions. Every field is finite and bounded by MAX_AMOUNT."""

    model_config = ConfigDict(allow_inf_nan=False)

    salary_income: float = 0.0
    freelance_income: float = 0.0
    investment_income: float = 0.0
    rental_income: float = 0.0
    capital_gains: float = 0.0
    retirement_contributions: float = 0.0
    mortgage_interest: float = 0.0
    property_taxes: float = 0.0
    charitable_donations: float = 0.0
    medical_expenses: float = 0.0
    childcare_costs: float = 0.0
    education_expenses: float = 0.0
    other_deductions: float = 0.0

    @field_validator(*PERSONAL_FIELDS)
    @classmethod
    def bound_amounts(cls, value: float) -> float:
        return bound_amount(value)

    @property
    def total_income(self) -> float:
        return sum(getattr(self, name) for name in PERSONAL_INCOME_FIELDS)

    @property
    def total_deductions(self) -> float:
        return sum(getattr(self, name) for name in PERSONAL_DEDUCTION_FIELDS)


class BusinessFinanceRecord(BaseModel):
    """Business revenue and expenses. Every field is finite and bounded by MAX_AMOUNT."""

    model_config = ConfigDict(allow_inf_nan=False)

    revenue: float = 0.0
    employee_costs: float = 0.0
    equipment: float = 0.0
    rent: float = 0.0
    utilities: float = 0.0
    marketing: float = 0.0
    travel_expenses: float = 0.0
    office_supplies: float = 0.0
    professional_services: float = 0.0
    insurance: float = 0.0
    other_expenses: float = 0.0

    @field_validator(*BUSINESS_FIELDS)
    @classmethod
    def bound_amounts(cls, value: float) -> float:
        return bound_amount(value)

    @property
    def total_expenses(self) -> float:
        return sum(getattr(self, name) for name in BUSINESS_EXPENSE_FIELDS)

    @property
    def net_income(self) -> float:
        return self.revenue - self.total_expenses


class Provenance(BaseModel):
    """Immutable record of how a financial record was obtained."""

    model_config = ConfigDict(frozen=True)

    method: ExtractionMethod
    reference: Optional[str] = None  # file URL, image id or CRM sync id
    provider: Optional[str] = None  # e.g. quickbooks, xero
    extracted_at: datetime.datetime = Field(
        default_factory=lambda: datetime.datetime.now().astimezone()
    )


class FinancialRecord(BaseModel):
    """Normalized personal and business finances with their provenance."""

    model_config = ConfigDict(frozen=True)

    personal_finances: PersonalFinanceRecord = Field(default_factory=PersonalFinanceRecord)
    business_finances: BusinessFinanceRecord = Field(default_factory=BusinessFinanceRecord)
    source: Optional[Provenance] = None


class BudgetEntry(BaseModel):
    """A single budget transaction."""

    model_config = ConfigDict(allow_inf_nan=False)

    category: str
    type: BudgetType
    amount: float
    date: Optional[datetime.date] = None
    deductible: bool = False
    notes: Optional[str] = None

    @field_validator("amount")
    @classmethod
    def bound_amounts(cls, value: float) -> float:
        return bound_amount(value)


class InvestmentPosition(BaseModel):
    """A single investment holding."""

    model_config = ConfigDict(allow_inf_nan=False)

    asset_type: str
    amount_invested: float = 0.0
    current_value: float = 0.0
    risk_level: RiskLevel = RiskLevel.MEDIUM
    tax_saving_potential: float = 0.0
    symbol: Optional[str] = None
    purchase_date: Optional[datetime.date] = None

    @field_validator("amount_invested", "current_value", "tax_saving_potential")
    @classmethod
    def bound_amounts(cls, value: float) -> float:
        return bound_amount(value)

    @property
    def returns(self) -> float:
        return self.current_value - self.amount_invested


class FinancialSnapshot(BaseModel):
    """Everything stored for one subject, read once per invocation."""

    subject_id: str
    budgets: List[BudgetEntry] = Field(default_factory=list)
    investments: List[InvestmentPosition] = Field(default_factory=list)
    personal_finances: PersonalFinanceRecord = Field(default_factory=PersonalFinanceRecord)
    business_finances: BusinessFinanceRecord = Field(default_factory=BusinessFinanceRecord)


class BudgetSummary(BaseModel):
    """Aggregated budget figures."""

    total_income: float = 0.0
    total_expenses: float = 0.0
    total_savings: float = 0.0
    savings_rate: float = 0.0
    category_breakdown: Dict[str, float] = Field(default_factory=dict)


class InvestmentSummary(BaseModel):
    """Aggregated portfolio figures."""

    total_invested: float = 0.0
    total_value: float = 0.0
    total_returns: float = 0.0
    roi_percentage: float = 0.0
    asset_type_breakdown: Dict[str, float] = Field(default_factory=dict)
    risk_distribution: Dict[str, float] = Field(default_factory=dict)


class FinancialSummary(BaseModel):
    """Budget and investment aggregates for one subject."""

    budgets: BudgetSummary = Field(default_factory=BudgetSummary)
    investments: InvestmentSummary = Field(default_factory=InvestmentSummary)


class BudgetCreateRequest(BudgetEntry):
    """New budget transaction for the authenticated subject."""
    user_id: Optional[str] = None


class InvestmentCreateRequest(InvestmentPosition):
    """New investment position for the authenticated subject."""
    user_id: Optional[str] = None


class CreatedRecord(BaseModel):
    """Id of a newly stored row."""
    id: str
    kind: str
