"""Rule-based financial insight generation.

Each rule reads the aggregated budget and investment figures and either
emits one Insight or nothing. Rules run in a fixed order (budget, then
investment, then general) and the output is stably sorted by priority, so
insights of equal priority keep that order.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from app.schemas.finance import FinancialSnapshot, FinancialSummary
from app.schemas.insights import (
    Insight,
    InsightCategory,
    InsightPriority,
    InsightReport,
    InsightSummary,
    InsightType,
)
from app.services.financial_summary import summarize_snapshot

logger = logging.getLogger(__name__)

LOW_SAVINGS_RATE = 10.0
EXCELLENT_SAVINGS_RATE = 20.0
CATEGORY_CONCENTRATION = 0.4
EMERGENCY_FUND_MONTHS = 3
MIN_ASSET_TYPES = 3
HIGH_RISK_LIMIT = 60.0
STRONG_ROI = 10.0
STOCK_LIMIT = 80.0
STOCK_ASSET_TYPES = {"stock", "stocks"}


@dataclass(frozen=True)
class InsightRule:
    """A named trigger producing at most one insight."""
    rule_id: str
    category: InsightType
    evaluate: Callable[[FinancialSummary], Optional[Insight]]


def _percent_of(part: float, whole: float) -> float:
    return part / whole * 100 if whole > 0 else 0.0


# Budget rules

def _savings_rate(summary: FinancialSummary) -> Optional[Insight]:
    rate = summary.budgets.savings_rate
    if rate < LOW_SAVINGS_RATE:
        return Insight(
            type=InsightType.BUDGET,
            priority=InsightPriority.LOW,
            title="Low Savings Rate",
            description=f"Your current savings rate is {rate:.1f}%, which is below the recommended 20%.",
            recommendation=(
                "Consider reducing discretionary spending or increasing income to improve your savings rate."
            ),
            impact=(
                "Improving your savings rate will help build an emergency fund and achieve financial goals faster."
            ),
        )
    if rate >= EXCELLENT_SAVINGS_RATE:
        return Insight(
            type=InsightType.BUDGET,
            priority=InsightPriority.LOW,
            title="Excellent Savings Rate",
            description=f"Your savings rate of {rate:.1f}% is excellent and above the recommended 20%.",
            recommendation="Consider investing your excess savings to maximize long-term growth potential.",
            impact="Your strong savings rate positions you well for financial independence and wealth building.",
        )
    return None


def _spending_concentration(summary: FinancialSummary) -> Optional[Insight]:
    budgets = summary.budgets
    if not budgets.category_breakdown:
        return None

    # max() keeps the first category on ties
    category, amount = max(budgets.category_breakdown.items(), key=lambda item: item[1])
    if amount <= budgets.total_expenses * CATEGORY_CONCENTRATION:
        return None

    return Insight(
        type=InsightType.BUDGET,
        priority=InsightPriority.MEDIUM,
        title="High Spending Concentration",
        description=(
            f"{category} represents {_percent_of(amount, budgets.total_expenses):.1f}% "
            "of your total expenses."
        ),
        recommendation="Consider diversifying your spending or finding ways to reduce costs in this category.",
        impact="Reducing concentration in one category can improve budget flexibility and reduce financial risk.",
    )


def _emergency_fund(summary: FinancialSummary) -> Optional[Insight]:
    budgets = summary.budgets
    target = budgets.total_expenses * EMERGENCY_FUND_MONTHS
    if budgets.total_savings >= target:
        return None

    return Insight(
        type=InsightType.BUDGET,
        priority=InsightPriority.HIGH,
        title="Insufficient Emergency Fund",
        description=(
            f"Your current savings of ${budgets.total_savings:.2f} may not cover 3 months "
            f"of expenses (${target:.2f})."
        ),
        recommendation="Prioritize building an emergency fund covering 3-6 months of expenses.",
        impact=(
            "An adequate emergency fund provides financial security and prevents debt during "
            "unexpected situations."
        ),
    )


# Investment rules

def _diversification(summary: FinancialSummary) -> Optional[Insight]:
    asset_types = len(summary.investments.asset_type_breakdown)
    if asset_types >= MIN_ASSET_TYPES:
        return None

    return Insight(
        type=InsightType.INVESTMENT,
        priority=InsightPriority.MEDIUM,
        title="Limited Portfolio Diversification",
        description=(
            f"Your portfolio is concentrated in {asset_types} asset type{'' if asset_types == 1 else 's'}."
        ),
        recommendation=(
            "Consider diversifying across different asset types (stocks, bonds, ETFs, real estate) "
            "to reduce risk."
        ),
        impact="Diversification can help smooth out returns and reduce portfolio volatility.",
    )


def _risk_concentration(summary: FinancialSummary) -> Optional[Insight]:
    investments = summary.investments
    high_risk = _percent_of(investments.risk_distribution.get("high", 0.0), investments.total_value)
    if high_risk <= HIGH_RISK_LIMIT:
        return None

    return Insight(
        type=InsightType.INVESTMENT,
        priority=InsightPriority.MEDIUM,
        title="High Risk Concentration",
        description=f"{high_risk:.1f}% of your portfolio is in high-risk investments.",
        recommendation="Consider rebalancing to include more low and medium-risk investments for stability.",
        impact="A more balanced risk profile can provide steadier long-term returns.",
    )


def _performance(summary: FinancialSummary) -> Optional[Insight]:
    roi = summary.investments.roi_percentage
    if roi < 0:
        return Insight(
            type=InsightType.INVESTMENT,
            priority=InsightPriority.HIGH,
            title="Negative Portfolio Returns",
            description=f"Your portfolio is currently showing a {roi:.2f}% return.",
            recommendation="Review your investment strategy and consider consulting with a financial advisor.",
            impact=(
                "Addressing underperformance early can help prevent further losses and improve "
                "long-term outcomes."
            ),
        )
    if roi > STRONG_ROI:
        return Insight(
            type=InsightType.INVESTMENT,
            priority=InsightPriority.LOW,
            title="Strong Portfolio Performance",
            description=f"Your portfolio is performing well with a {roi:.2f}% return.",
            recommendation="Consider taking some profits or rebalancing to lock in gains.",
            impact="Your strong performance indicates effective investment strategy and market timing.",
        )
    return None


def _stock_allocation(summary: FinancialSummary) -> Optional[Insight]:
    investments = summary.investments
    stock_value = sum(
        value
        for asset_type, value in investments.asset_type_breakdown.items()
        if asset_type.strip().lower() in STOCK_ASSET_TYPES
    )
    stock_percentage = _percent_of(stock_value, investments.total_value)
    if stock_percentage <= STOCK_LIMIT:
        return None

    return Insight(
        type=InsightType.INVESTMENT,
        priority=InsightPriority.MEDIUM,
        title="Stock-Heavy Portfolio",
        description=f"{stock_percentage:.1f}% of your portfolio is in stocks, which may be too aggressive.",
        recommendation="Consider adding bonds or other fixed-income investments to balance your portfolio.",
        impact="A more balanced allocation can reduce volatility while maintaining growth potential.",
    )


# General rule

def calculate_health_score(summary: FinancialSummary) -> int:
    """Composite score out of 100 from four weighted bands."""
    budgets = summary.budgets
    investments = summary.investments
    score = 0

    if budgets.savings_rate >= 20:
        score += 30
    elif budgets.savings_rate >= 10:
        score += 20
    else:
        score += 10

    if investments.roi_percentage > 5:
        score += 25
    elif investments.roi_percentage > 0:
        score += 15
    else:
        score += 5

    if budgets.total_savings >= budgets.total_expenses * 6:
        score += 25
    elif budgets.total_savings >= budgets.total_expenses * 3:
        score += 20
    else:
        score += 10

    if len(investments.asset_type_breakdown) >= MIN_ASSET_TYPES:
        score += 20
    else:
        score += 10

    return score


def health_label(score: int) -> str:
    if score >= 80:
        return "Excellent"
    if score >= 60:
        return "Good"
    if score >= 40:
        return "Fair"
    return "Needs Improvement"


def _financial_health(summary: FinancialSummary) -> Optional[Insight]:
    score = calculate_health_score(summary)

    if score < 40:
        priority = InsightPriority.HIGH
    elif score < 60:
        priority = InsightPriority.MEDIUM
    else:
        priority = InsightPriority.LOW

    return Insight(
        type=InsightType.GENERAL,
        priority=priority,
        title=f"Financial Health: {health_label(score)}",
        description=f"Your overall financial health score is {score}/100.",
        recommendation=(
            "Focus on improving savings rate, building emergency fund, and diversifying investments."
            if score < 60
            else "Continue your current financial strategy while monitoring for optimization opportunities."
        ),
        impact=(
            "Your strong financial foundation provides security and growth potential."
            if score >= 60
            else "Improving your financial health will increase security and wealth-building potential."
        ),
    )


INSIGHT_RULES: List[InsightRule] = [
    InsightRule("savings_rate", InsightType.BUDGET, _savings_rate),
    InsightRule("spending_concentration", InsightType.BUDGET, _spending_concentration),
    InsightRule("emergency_fund", InsightType.BUDGET, _emergency_fund),
    InsightRule("diversification", InsightType.INVESTMENT, _diversification),
    InsightRule("risk_concentration", InsightType.INVESTMENT, _risk_concentration),
    InsightRule("performance", InsightType.INVESTMENT, _performance),
    InsightRule("stock_allocation", InsightType.INVESTMENT, _stock_allocation),
    InsightRule("financial_health", InsightType.GENERAL, _financial_health),
]


def sort_by_priority(insights: Sequence[Insight]) -> List[Insight]:
    """Stable sort, high before medium before low."""
    return sorted(insights, key=lambda insight: -insight.priority.rank)


class InsightGenerator:
    """Generate prioritized insights from aggregated financial data."""

    def __init__(self, rules: Optional[List[InsightRule]] = None):
        self.rules = rules if rules is not None else INSIGHT_RULES

    def _rules_for(self, category: InsightCategory) -> List[InsightRule]:
        if category == InsightCategory.ALL:
            order = [InsightType.BUDGET, InsightType.INVESTMENT, InsightType.GENERAL]
        else:
            order = [InsightType(category.value)]
        return [rule for rule_type in order for rule in self.rules if rule.category == rule_type]

    def generate(
        self, summary: FinancialSummary, category: InsightCategory = InsightCategory.ALL
    ) -> InsightReport:
        """
        Evaluate the rules for the requested category.

        Args:
            summary: Aggregated budgets and investments
            category: budget, investment, general or all

        Returns:
            InsightReport with insights ordered by priority
        """
        generated = []
        for rule in self._rules_for(category):
            insight = rule.evaluate(summary)
            if insight is not None:
                generated.append(insight)

        insights = sort_by_priority(generated)
        counts: Dict[InsightPriority, int] = {priority: 0 for priority in InsightPriority}
        for insight in insights:
            counts[insight.priority] += 1

        logger.info(f"Generated {len(insights)} insights for category '{category.value}'")

        return InsightReport(
            insights=insights,
            summary=InsightSummary(
                total_insights=len(insights),
                high_priority=counts[InsightPriority.HIGH],
                medium_priority=counts[InsightPriority.MEDIUM],
                low_priority=counts[InsightPriority.LOW],
            ),
        )

    def generate_for_snapshot(
        self, snapshot: FinancialSnapshot, category: InsightCategory = InsightCategory.ALL
    ) -> InsightReport:
        return self.generate(summarize_snapshot(snapshot), category)
