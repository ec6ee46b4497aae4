"""Tax estimation and optimization engine.

A single pass over the normalized records:
1. Current liability from the progressive bracket table
2. Five independent optimization opportunities, each an ordered rule
3. Optimized liability after applying each opportunity at its own rate
4. Recommendations, chart aggregates, bracket analysis and suggestions
"""
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from app.schemas.finance import (
    BudgetEntry,
    BudgetType,
    BusinessFinanceRecord,
    FinancialSnapshot,
    InvestmentPosition,
    PersonalFinanceRecord,
)
from app.schemas.tax import (
    AnalysisData,
    BeforeAfterItem,
    ChartData,
    OptimizationOpportunities,
    TaxBreakdownItem,
    TaxOptimizationResult,
    TaxSuggestion,
)
from app.services.tax_rules_service import (
    BUSINESS_EXPENSE_CEILING,
    FEDERAL_SHARE,
    HEALTH_SAVINGS_CAP,
    HEALTH_SAVINGS_FRACTION,
    OPTIMIZATION_CONFIDENCE,
    ORDINARY_MARGINAL_RATE,
    RETIREMENT_CONTRIBUTION_CAP,
    RETIREMENT_CONTRIBUTION_FRACTION,
    STATE_SHARE,
    TAX_ADVANTAGED_RATE,
    TaxRulesService,
    get_tax_rules_service,
    round_currency,
)

logger = logging.getLogger(__name__)

OPTIMIZATION_STRATEGIES = [
    "Maximize itemized deductions",
    "Contribute to tax-advantaged accounts",
    "Optimize business expenses",
    "Consider timing of income and expenses",
]


@dataclass(frozen=True)
class OptimizationInputs:
    """Everything the opportunity rules read."""
    personal: PersonalFinanceRecord
    business: BusinessFinanceRecord
    budgets: Sequence[BudgetEntry]
    investments: Sequence[InvestmentPosition]


@dataclass(frozen=True)
class OpportunityRule:
    """One optimization opportunity: how to size it and how to word it."""
    rule_id: str
    rate: float
    compute: Callable[[OptimizationInputs], float]
    recommendation: str  # formatted with the dollar amount


def format_amount(amount: float) -> str:
    """Dollar amount with thousands separators, cents only when present."""
    if float(amount).is_integer():
        return f"{amount:,.0f}"
    return f"{amount:,.2f}"


def _additional_deductions(inputs: OptimizationInputs) -> float:
    deductible_expenses = sum(
        b.amount for b in inputs.budgets if b.type == BudgetType.EXPENSE and b.deductible
    )
    return deductible_expenses - inputs.personal.total_deductions


def _tax_advantaged_investments(inputs: OptimizationInputs) -> float:
    return sum(inv.tax_saving_potential for inv in inputs.investments if inv.tax_saving_potential > 0)


def _business_expense_optimization(inputs: OptimizationInputs) -> float:
    return inputs.business.revenue * BUSINESS_EXPENSE_CEILING - inputs.business.total_expenses


def _retirement_contributions(inputs: OptimizationInputs) -> float:
    return min(RETIREMENT_CONTRIBUTION_CAP, inputs.personal.total_income * RETIREMENT_CONTRIBUTION_FRACTION)


def _health_savings(inputs: OptimizationInputs) -> float:
    return min(HEALTH_SAVINGS_CAP, inputs.personal.total_income * HEALTH_SAVINGS_FRACTION)


# Order fixes the order of the recommendations
OPPORTUNITY_RULES: List[OpportunityRule] = [
    OpportunityRule(
        "additional_deductions",
        ORDINARY_MARGINAL_RATE,
        _additional_deductions,
        "Claim additional deductions worth ${amount}",
    ),
    OpportunityRule(
        "tax_advantaged_investments",
        TAX_ADVANTAGED_RATE,
        _tax_advantaged_investments,
        "Consider tax-advantaged investments worth ${amount}",
    ),
    OpportunityRule(
        "business_expense_optimization",
        ORDINARY_MARGINAL_RATE,
        _business_expense_optimization,
        "Optimize business expenses for ${amount} in additional deductions",
    ),
    OpportunityRule(
        "retirement_contributions",
        ORDINARY_MARGINAL_RATE,
        _retirement_contributions,
        "Maximize retirement contributions up to ${amount}",
    ),
    OpportunityRule(
        "health_savings",
        ORDINARY_MARGINAL_RATE,
        _health_savings,
        "Consider Health Savings Account contributions up to ${amount}",
    ),
]


class TaxOptimizationEngine:
    """Estimate tax liability and search for savings."""

    def __init__(
        self,
        tax_rules: TaxRulesService = None,
        rules: Optional[List[OpportunityRule]] = None,
    ):
        self.tax_rules = tax_rules or get_tax_rules_service()
        self.rules = rules if rules is not None else OPPORTUNITY_RULES

    @staticmethod
    def total_income(personal: PersonalFinanceRecord, business: BusinessFinanceRecord) -> float:
        return personal.total_income + business.revenue

    @staticmethod
    def total_deductions(personal: PersonalFinanceRecord, business: BusinessFinanceRecord) -> float:
        return personal.total_deductions + business.total_expenses

    def calculate_current_tax(
        self, personal: PersonalFinanceRecord, business: BusinessFinanceRecord
    ) -> float:
        """Bracket liability on max(0, income - deductions)."""
        taxable_income = max(
            0.0, self.total_income(personal, business) - self.total_deductions(personal, business)
        )
        return self.tax_rules.calculate_bracket_tax(taxable_income)

    def detect_opportunities(self, inputs: OptimizationInputs) -> Dict[str, float]:
        """Size every opportunity, clamped to zero, in rule order."""
        return {rule.rule_id: max(0.0, rule.compute(inputs)) for rule in self.rules}

    def calculate_optimized_tax(self, current_tax: float, opportunities: Dict[str, float]) -> float:
        reduction = sum(opportunities[rule.rule_id] * rule.rate for rule in self.rules)
        return round_currency(max(0.0, current_tax - reduction))

    def generate_recommendations(self, opportunities: Dict[str, float]) -> List[str]:
        return [
            rule.recommendation.format(amount=format_amount(opportunities[rule.rule_id]))
            for rule in self.rules
            if opportunities[rule.rule_id] > 0
        ]

    def generate_chart_data(self, current_tax: float, optimized_tax: float) -> ChartData:
        savings = round_currency(current_tax - optimized_tax)
        return ChartData(
            tax_breakdown=[
                TaxBreakdownItem(
                    name="Federal Tax", value=round_currency(optimized_tax * FEDERAL_SHARE), color="#8884d8"
                ),
                TaxBreakdownItem(
                    name="State Tax", value=round_currency(optimized_tax * STATE_SHARE), color="#82ca9d"
                ),
            ],
            before_after=[
                BeforeAfterItem(category="Current Tax", before=current_tax, after=current_tax),
                BeforeAfterItem(category="Optimized Tax", before=current_tax, after=optimized_tax),
                BeforeAfterItem(category="Savings", before=0.0, after=savings),
            ],
        )

    def generate_analysis_data(self, income: float, current_tax: float) -> AnalysisData:
        effective_rate = round_currency(current_tax / income * 100) if income > 0 else 0.0
        return AnalysisData(
            tax_bracket=self.tax_rules.get_bracket_label(income),
            effective_rate=effective_rate,
            marginal_rate=self.tax_rules.get_marginal_rate(income),
            optimization_strategies=list(OPTIMIZATION_STRATEGIES),
        )

    def generate_suggestions(self, potential_savings: float) -> List[TaxSuggestion]:
        suggestions = []

        if potential_savings > 1000:
            suggestions.append(
                TaxSuggestion(
                    suggestion_type="deduction",
                    title="Maximize Itemized Deductions",
                    description=(
                        "Review your expenses to identify additional deductible items like "
                        "charitable contributions, medical expenses, and home office costs."
                    ),
                    potential_savings=round_currency(potential_savings * 0.4),
                    difficulty_level="medium",
                    time_to_implement="2-4 weeks",
                    action_url="/profile",
                )
            )

        if potential_savings > 500:
            suggestions.append(
                TaxSuggestion(
                    suggestion_type="investment",
                    title="Tax-Advantaged Investment Strategy",
                    description=(
                        "Consider contributing to retirement accounts and tax-advantaged investment "
                        "vehicles to reduce your taxable income."
                    ),
                    potential_savings=round_currency(potential_savings * 0.3),
                    difficulty_level="easy",
                    time_to_implement="1-2 weeks",
                    action_url="/investments",
                )
            )

        return suggestions

    def optimize(
        self,
        personal: PersonalFinanceRecord,
        business: BusinessFinanceRecord,
        budgets: Sequence[BudgetEntry] = (),
        investments: Sequence[InvestmentPosition] = (),
    ) -> TaxOptimizationResult:
        """
        Run a full optimization.

        Args:
            personal: Normalized personal finances
            business: Normalized business finances
            budgets: Budget transactions (deductible expenses feed opportunity 1)
            investments: Investment positions (tax-saving potential feeds opportunity 2)

        Returns:
            TaxOptimizationResult
        """
        inputs = OptimizationInputs(
            personal=personal, business=business, budgets=budgets, investments=investments
        )

        current_tax = self.calculate_current_tax(personal, business)
        opportunities = self.detect_opportunities(inputs)
        optimized_tax = self.calculate_optimized_tax(current_tax, opportunities)
        potential_savings = round_currency(current_tax - optimized_tax)

        logger.info(
            f"Tax optimization: current={current_tax}, optimized={optimized_tax}, "
            f"savings={potential_savings}"
        )

        return TaxOptimizationResult(
            current_tax=current_tax,
            optimized_tax=optimized_tax,
            potential_savings=potential_savings,
            recommendations=self.generate_recommendations(opportunities),
            chart_data=self.generate_chart_data(current_tax, optimized_tax),
            analysis_data=self.generate_analysis_data(
                self.total_income(personal, business), current_tax
            ),
            opportunities=OptimizationOpportunities(
                **{key: round_currency(value) for key, value in opportunities.items()}
            ),
            suggestions=self.generate_suggestions(potential_savings),
            confidence_score=OPTIMIZATION_CONFIDENCE,
        )

    def optimize_snapshot(self, snapshot: FinancialSnapshot) -> TaxOptimizationResult:
        return self.optimize(
            snapshot.personal_finances,
            snapshot.business_finances,
            snapshot.budgets,
            snapshot.investments,
        )
