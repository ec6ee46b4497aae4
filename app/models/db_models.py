"""SQLAlchemy database models."""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID

from app.database import Base


def local_now():
    """Return current time in local timezone."""
    return datetime.now().astimezone()


class Budget(Base):
    """Budget transaction."""

    __tablename__ = "budgets"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String(255), nullable=False)
    category = Column(String(100), nullable=False)
    type = Column(String(20), nullable=False)  # income or expense
    amount = Column(Float, nullable=False, default=0.0)
    date = Column(Date, nullable=True)
    deductible_expenses = Column(Boolean, default=False, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=local_now, nullable=False)


class Investment(Base):
    """Investment position."""

    __tablename__ = "investments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String(255), nullable=False)
    asset_type = Column(String(100), nullable=False)
    symbol = Column(String(20), nullable=True)
    amount_invested = Column(Float, nullable=False, default=0.0)
    current_value = Column(Float, nullable=False, default=0.0)
    risk_level = Column(String(20), nullable=False, default="medium")
    tax_saving_potential = Column(Float, nullable=True)
    purchase_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), default=local_now, nullable=False)


class PersonalFinance(Base):
    """Personal finances singleton per user."""

    __tablename__ = "personal_finances"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String(255), nullable=False, unique=True)
    salary_income = Column(Float, nullable=False, default=0.0)
    freelance_income = Column(Float, nullable=False, default=0.0)
    investment_income = Column(Float, nullable=False, default=0.0)
    rental_income = Column(Float, nullable=False, default=0.0)
    capital_gains = Column(Float, nullable=False, default=0.0)
    retirement_contributions = Column(Float, nullable=False, default=0.0)
    mortgage_interest = Column(Float, nullable=False, default=0.0)
    property_taxes = Column(Float, nullable=False, default=0.0)
    charitable_donations = Column(Float, nullable=False, default=0.0)
    medical_expenses = Column(Float, nullable=False, default=0.0)
    childcare_costs = Column(Float, nullable=False, default=0.0)
    education_expenses = Column(Float, nullable=False, default=0.0)
    other_deductions = Column(Float, nullable=False, default=0.0)
    source = Column(JSONB, nullable=True)  # provenance of the last extraction
    updated_at = Column(
        DateTime(timezone=True), default=local_now, onupdate=local_now, nullable=False
    )


class BusinessFinance(Base):
    """Business finances singleton per user."""

    __tablename__ = "business_finances"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String(255), nullable=False, unique=True)
    revenue = Column(Float, nullable=False, default=0.0)
    employee_costs = Column(Float, nullable=False, default=0.0)
    equipment = Column(Float, nullable=False, default=0.0)
    rent = Column(Float, nullable=False, default=0.0)
    utilities = Column(Float, nullable=False, default=0.0)
    marketing = Column(Float, nullable=False, default=0.0)
    travel_expenses = Column(Float, nullable=False, default=0.0)
    office_supplies = Column(Float, nullable=False, default=0.0)
    professional_services = Column(Float, nullable=False, default=0.0)
    insurance = Column(Float, nullable=False, default=0.0)
    other_expenses = Column(Float, nullable=False, default=0.0)
    source = Column(JSONB, nullable=True)
    updated_at = Column(
        DateTime(timezone=True), default=local_now, onupdate=local_now, nullable=False
    )


class TaxOptimizationRecord(Base):
    """Stored optimization run."""

    __tablename__ = "tax_optimization_results"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String(255), nullable=False)
    current_tax = Column(Float, nullable=False)
    optimized_tax = Column(Float, nullable=False)
    potential_savings = Column(Float, nullable=False)
    recommendations = Column(JSONB, nullable=True)
    chart_data = Column(JSONB, nullable=True)
    analysis_data = Column(JSONB, nullable=True)
    confidence_score = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), default=local_now, nullable=False)


class TaxSuggestionRecord(Base):
    """Suggestion attached to an optimization run."""

    __tablename__ = "tax_suggestions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String(255), nullable=False)
    optimization_id = Column(
        UUID(as_uuid=True), ForeignKey("tax_optimization_results.id"), nullable=False
    )
    suggestion_type = Column(String(20), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    potential_savings = Column(Float, nullable=False, default=0.0)
    difficulty_level = Column(String(20), nullable=True)
    time_to_implement = Column(String(50), nullable=True)
    is_actionable = Column(Boolean, default=True, nullable=False)
    action_url = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=local_now, nullable=False)


class AnalysisResultRecord(Base):
    """Stored simplified analysis."""

    __tablename__ = "analysis_results"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String(255), nullable=False)
    analysis_type = Column(String(20), nullable=False)
    analysis_data = Column(JSONB, nullable=True)
    estimated_tax_liability = Column(Float, nullable=False, default=0.0)
    estimated_savings = Column(Float, nullable=False, default=0.0)
    recommendations = Column(JSONB, nullable=True)
    created_at = Column(DateTime(timezone=True), default=local_now, nullable=False)


Index("ix_budgets_user_id", Budget.user_id)
Index("ix_investments_user_id", Investment.user_id)
Index("ix_tax_optimization_results_user_id", TaxOptimizationRecord.user_id)
Index("ix_tax_suggestions_optimization_id", TaxSuggestionRecord.optimization_id)
Index("ix_analysis_results_user_id", AnalysisResultRecord.user_id)
