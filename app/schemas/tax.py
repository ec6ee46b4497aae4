"""Pydantic schemas for tax estimation, optimization and analysis results."""
import datetime
import uuid
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.finance import (
    BudgetEntry,
    BusinessFinanceRecord,
    FinancialSummary,
    InvestmentPosition,
    PersonalFinanceRecord,
)
from app.schemas.insights import InsightReport


class AnalysisMode(str, Enum):
    """Scope of the simplified flat-rate analysis."""
    PERSONAL = "personal"
    BUSINESS = "business"
    COMBINED = "combined"


class OptimizationOpportunities(BaseModel):
    """Dollar amounts of each optimization opportunity (all >= 0)."""
    additional_deductions: float = 0.0
    tax_advantaged_investments: float = 0.0
    business_expense_optimization: float = 0.0
    retirement_contributions: float = 0.0
    health_savings: float = 0.0


class TaxBreakdownItem(BaseModel):
    name: str
    value: float
    color: str


class BeforeAfterItem(BaseModel):
    category: str
    before: float
    after: float


class ChartData(BaseModel):
    """Chart-ready aggregates of an optimization run."""
    tax_breakdown: List[TaxBreakdownItem] = []
    before_after: List[BeforeAfterItem] = []


class AnalysisData(BaseModel):
    """Bracket placement and rates for the subject's income."""
    tax_bracket: str
    effective_rate: float
    marginal_rate: float
    optimization_strategies: List[str] = []


class TaxSuggestion(BaseModel):
    """Actionable suggestion derived from the potential savings."""
    suggestion_type: Literal["deduction", "credit", "investment", "expense", "income"]
    title: str
    description: str
    potential_savings: float
    difficulty_level: Literal["easy", "medium", "hard"]
    time_to_implement: str
    is_actionable: bool = True
    action_url: Optional[str] = None


class TaxOptimizationResult(BaseModel):
    """Outcome of one optimization run."""

    model_config = ConfigDict(frozen=True)

    current_tax: float = Field(ge=0.0)
    optimized_tax: float = Field(ge=0.0)
    potential_savings: float = Field(ge=0.0)
    recommendations: List[str] = []
    chart_data: ChartData
    analysis_data: AnalysisData
    opportunities: OptimizationOpportunities
    suggestions: List[TaxSuggestion] = []
    confidence_score: float = Field(default=0.85, ge=0.0, le=1.0)


class TaxRecommendation(BaseModel):
    """Threshold-triggered recommendation of the simplified analysis."""
    type: Literal["deduction", "retirement", "business"]
    priority: Literal["high", "medium", "low"]
    title: str
    description: str
    potential_savings: float = 0.0


class TaxOptimizationPlan(BaseModel):
    short_term: List[TaxRecommendation] = []
    long_term: List[TaxRecommendation] = []


class TaxImpact(BaseModel):
    """Tax before and after deductions and credits at a flat rate."""
    total_income: float
    total_deductions: float
    total_credits: float
    taxable_income: float
    tax_before_cuts: float
    tax_after_deductions: float
    tax_after_credits: float
    tax_cut_savings: float
    effective_rate: float


class TaxAnalysisResult(BaseModel):
    """Outcome of the simplified flat-rate analysis."""
    analysis_type: AnalysisMode
    estimated_tax_liability: float = 0.0
    estimated_savings: float = 0.0
    recommendations: List[TaxRecommendation] = []
    tax_optimization_plan: TaxOptimizationPlan = Field(default_factory=TaxOptimizationPlan)
    tax_impact: Optional[TaxImpact] = None
    next_steps: List[str] = []


class TaxOptimizationRequest(BaseModel):
    """Optimization inputs supplied inline instead of read from storage."""
    user_id: Optional[str] = None
    personal_finances: Optional[PersonalFinanceRecord] = None
    business_finances: Optional[BusinessFinanceRecord] = None
    budget_data: Optional[List[BudgetEntry]] = None
    investment_data: Optional[List[InvestmentPosition]] = None


class TaxAnalysisRequest(BaseModel):
    """Request for the simplified analysis mode."""
    user_id: Optional[str] = None
    analysis_type: AnalysisMode
    personal_finances: Optional[PersonalFinanceRecord] = None
    business_finances: Optional[BusinessFinanceRecord] = None
    total_credits: float = Field(default=0.0, ge=0.0, allow_inf_nan=False)


class OptimizationResponse(BaseModel):
    """Optimization result and whether it was stored."""
    optimization_id: Optional[str] = None
    result: TaxOptimizationResult
    persisted: bool = False
    persistence_error: Optional[str] = None


class AnalysisResponse(BaseModel):
    """Simplified analysis result and whether it was stored."""
    analysis_id: Optional[str] = None
    result: TaxAnalysisResult
    persisted: bool = False
    persistence_error: Optional[str] = None


class FullAnalysisResponse(BaseModel):
    """Optimization and insights computed from one snapshot."""
    subject_id: str
    summary: FinancialSummary
    optimization: OptimizationResponse
    insights: InsightReport


class StoredSuggestion(TaxSuggestion):
    """Suggestion as read back from storage."""
    id: uuid.UUID
    optimization_id: uuid.UUID
    created_at: datetime.datetime


class StoredOptimization(BaseModel):
    """Optimization run as read back from storage."""
    id: uuid.UUID
    current_tax: float
    optimized_tax: float
    potential_savings: float
    recommendations: Optional[List[str]] = None
    chart_data: Optional[Dict[str, Any]] = None
    analysis_data: Optional[Dict[str, Any]] = None
    confidence_score: Optional[float] = None
    created_at: datetime.datetime
    suggestions: List[StoredSuggestion] = []


class StoredAnalysis(BaseModel):
    """Simplified analysis as read back from storage."""
    id: uuid.UUID
    analysis_type: AnalysisMode
    analysis_data: Optional[Dict[str, Any]] = None
    estimated_tax_liability: float
    estimated_savings: float
    recommendations: Optional[List[Dict[str, Any]]] = None
    created_at: datetime.datetime
