"""Simplified flat-rate tax analysis and before/after-cuts tax impact.

Lighter than the optimization engine: no opportunity search, one flat rate
per domain, and recommendations triggered by fixed thresholds.
"""
import logging
from typing import List, Optional

from app.schemas.finance import BusinessFinanceRecord, PersonalFinanceRecord
from app.schemas.tax import (
    AnalysisMode,
    TaxAnalysisResult,
    TaxImpact,
    TaxOptimizationPlan,
    TaxRecommendation,
)
from app.services.tax_rules_service import (
    BUSINESS_FLAT_RATE,
    BUSINESS_SAVINGS_FRACTION,
    DEDUCTION_SAVINGS_CAP,
    DEDUCTION_TARGET_FRACTION,
    PERSONAL_FLAT_RATE,
    RETIREMENT_SAVINGS_CAP,
    RETIREMENT_TARGET,
    TAX_IMPACT_FLAT_RATE,
    round_currency,
)

logger = logging.getLogger(__name__)

NEXT_STEPS = [
    "Review your financial data for accuracy",
    "Consider implementing the recommended strategies",
    "Schedule a consultation with a tax professional",
    "Set up quarterly tax payments if applicable",
]


class TaxAnalysisService:
    """Flat-rate liability estimates for personal, business or combined subjects."""

    def _personal_recommendations(self, personal: PersonalFinanceRecord) -> List[TaxRecommendation]:
        recommendations = []
        income = personal.total_income
        deductions = personal.total_deductions

        if deductions < income * DEDUCTION_TARGET_FRACTION:
            recommendations.append(
                TaxRecommendation(
                    type="deduction",
                    priority="high",
                    title="Maximize Deductions",
                    description=(
                        "Consider increasing retirement contributions or charitable donations "
                        "to reduce taxable income."
                    ),
                    potential_savings=round_currency(
                        min(
                            DEDUCTION_SAVINGS_CAP,
                            (income * DEDUCTION_TARGET_FRACTION - deductions) * PERSONAL_FLAT_RATE,
                        )
                    ),
                )
            )

        if personal.retirement_contributions < RETIREMENT_TARGET:
            recommendations.append(
                TaxRecommendation(
                    type="retirement",
                    priority="medium",
                    title="Increase Retirement Contributions",
                    description="Consider maximizing your IRA contributions to reduce current year taxes.",
                    potential_savings=round_currency(
                        min(
                            RETIREMENT_SAVINGS_CAP,
                            (RETIREMENT_TARGET - personal.retirement_contributions) * PERSONAL_FLAT_RATE,
                        )
                    ),
                )
            )

        return recommendations

    def personal_liability(self, personal: PersonalFinanceRecord) -> float:
        taxable_income = max(0.0, personal.total_income - personal.total_deductions)
        return taxable_income * PERSONAL_FLAT_RATE

    def business_liability(self, business: BusinessFinanceRecord) -> float:
        return max(0.0, business.net_income) * BUSINESS_FLAT_RATE

    def analyze(
        self,
        mode: AnalysisMode,
        personal: Optional[PersonalFinanceRecord] = None,
        business: Optional[BusinessFinanceRecord] = None,
        total_credits: float = 0.0,
    ) -> TaxAnalysisResult:
        """
        Estimate liability without an optimization search.

        Args:
            mode: personal, business or combined
            personal: Personal finances (ignored in business mode)
            business: Business finances (ignored in personal mode)
            total_credits: Credits used for the before/after-cuts impact

        Returns:
            TaxAnalysisResult
        """
        liability = 0.0
        recommendations: List[TaxRecommendation] = []
        in_scope_personal = PersonalFinanceRecord()
        in_scope_business = BusinessFinanceRecord()

        if mode in (AnalysisMode.PERSONAL, AnalysisMode.COMBINED) and personal is not None:
            in_scope_personal = personal
            liability += self.personal_liability(personal)
            recommendations.extend(self._personal_recommendations(personal))

        if mode in (AnalysisMode.BUSINESS, AnalysisMode.COMBINED) and business is not None:
            in_scope_business = business
            liability += self.business_liability(business)
            recommendations.append(
                TaxRecommendation(
                    type="business",
                    priority="high",
                    title="Business Expense Optimization",
                    description="Review and categorize all business expenses to ensure maximum deductions.",
                    potential_savings=round_currency(
                        max(0.0, business.net_income) * BUSINESS_SAVINGS_FRACTION
                    ),
                )
            )

        estimated_savings = round_currency(sum(r.potential_savings for r in recommendations))
        logger.info(
            f"Tax analysis ({mode.value}): liability={liability:.2f}, "
            f"{len(recommendations)} recommendations"
        )

        return TaxAnalysisResult(
            analysis_type=mode,
            estimated_tax_liability=round_currency(liability),
            estimated_savings=estimated_savings,
            recommendations=recommendations,
            tax_optimization_plan=TaxOptimizationPlan(
                short_term=[r for r in recommendations if r.priority == "high"],
                long_term=[r for r in recommendations if r.priority in ("medium", "low")],
            ),
            tax_impact=self.tax_impact(in_scope_personal, in_scope_business, total_credits),
            next_steps=list(NEXT_STEPS),
        )

    def tax_impact(
        self,
        personal: PersonalFinanceRecord,
        business: Optional[BusinessFinanceRecord] = None,
        total_credits: float = 0.0,
    ) -> TaxImpact:
        """
        Tax before cuts, after deductions and after credits at one flat rate.

        Args:
            personal: Personal finances
            business: Business finances, if the subject has a business
            total_credits: Tax credits subtracted after deductions

        Returns:
            TaxImpact
        """
        business = business or BusinessFinanceRecord()
        total_income = personal.total_income + business.revenue
        total_deductions = personal.total_deductions + business.total_expenses
        taxable_income = max(0.0, total_income - total_deductions)

        tax_before_cuts = total_income * TAX_IMPACT_FLAT_RATE
        tax_after_deductions = taxable_income * TAX_IMPACT_FLAT_RATE
        tax_after_credits = max(0.0, tax_after_deductions - total_credits)
        effective_rate = tax_after_credits / taxable_income * 100 if taxable_income > 0 else 0.0

        return TaxImpact(
            total_income=round_currency(total_income),
            total_deductions=round_currency(total_deductions),
            total_credits=round_currency(total_credits),
            taxable_income=round_currency(taxable_income),
            tax_before_cuts=round_currency(tax_before_cuts),
            tax_after_deductions=round_currency(tax_after_deductions),
            tax_after_credits=round_currency(tax_after_credits),
            tax_cut_savings=round_currency(tax_before_cuts - tax_after_credits),
            effective_rate=round_currency(effective_rate),
        )
