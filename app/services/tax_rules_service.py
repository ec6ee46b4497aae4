"""Tax rules service: bracket table, rate constants and rounding.

Two separate rate models live here:
1. The progressive bracket table used by the optimization engine
2. The flat per-domain rates used by the simplified analysis and the
   before/after-cuts tax impact
"""
import logging
import math
from decimal import ROUND_HALF_UP, Decimal
from typing import List, NamedTuple, Optional

logger = logging.getLogger(__name__)


class TaxBracket(NamedTuple):
    """Upper income bound (None = unbounded) and marginal rate."""
    upper_bound: Optional[float]
    rate: float


# Progressive brackets, rate strictly increasing with income
PROGRESSIVE_BRACKETS: List[TaxBracket] = [
    TaxBracket(10_000, 0.10),
    TaxBracket(40_000, 0.12),
    TaxBracket(85_000, 0.22),
    TaxBracket(163_000, 0.24),
    TaxBracket(207_000, 0.32),
    TaxBracket(518_000, 0.35),
    TaxBracket(None, 0.37),
]

# Optimization engine constants
ORDINARY_MARGINAL_RATE = 0.22
TAX_ADVANTAGED_RATE = 0.15
BUSINESS_EXPENSE_CEILING = 0.5
RETIREMENT_CONTRIBUTION_CAP = 20_000.0
RETIREMENT_CONTRIBUTION_FRACTION = 0.15
HEALTH_SAVINGS_CAP = 3_650.0
HEALTH_SAVINGS_FRACTION = 0.05
FEDERAL_SHARE = 0.8
STATE_SHARE = 0.2
OPTIMIZATION_CONFIDENCE = 0.85

# Simplified analysis constants
PERSONAL_FLAT_RATE = 0.22
BUSINESS_FLAT_RATE = 0.25
DEDUCTION_TARGET_FRACTION = 0.15
DEDUCTION_SAVINGS_CAP = 5_000.0
RETIREMENT_TARGET = 6_000.0
RETIREMENT_SAVINGS_CAP = 1_320.0
BUSINESS_SAVINGS_FRACTION = 0.05

# Before/after tax cuts
TAX_IMPACT_FLAT_RATE = 0.25

# Cent rounding stays exact below this magnitude at the default decimal precision
ROUNDING_LIMIT = 1e24


def round_currency(amount: float) -> float:
    """Round half-up to cents. NaN becomes 0 and magnitudes are capped at ROUNDING_LIMIT."""
    if math.isnan(amount):
        return 0.0
    amount = max(-ROUNDING_LIMIT, min(ROUNDING_LIMIT, amount))
    return float(Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


class TaxRulesService:
    """Apply the progressive bracket table."""

    def __init__(self, brackets: List[TaxBracket] = None):
        self.brackets = brackets or PROGRESSIVE_BRACKETS
        self._validate_brackets()

    def _validate_brackets(self) -> None:
        previous_bound = 0.0
        previous_rate = -1.0
        for index, bracket in enumerate(self.brackets):
            is_last = index == len(self.brackets) - 1
            if bracket.upper_bound is None and not is_last:
                raise ValueError("Only the last bracket may be unbounded")
            if bracket.upper_bound is not None and bracket.upper_bound <= previous_bound:
                raise ValueError("Bracket bounds must increase")
            if bracket.rate <= previous_rate:
                raise ValueError("Bracket rates must increase strictly")
            previous_bound = bracket.upper_bound or previous_bound
            previous_rate = bracket.rate

    def calculate_bracket_tax(self, taxable_income: float) -> float:
        """
        Progressive tax on taxable income, rounded to cents.

        Each bracket taxes only the income that falls inside it.

        Args:
            taxable_income: Income after deductions (negative treated as 0)

        Returns:
            Tax liability
        """
        if taxable_income <= 0:
            return 0.0

        tax = 0.0
        lower_bound = 0.0
        for bracket in self.brackets:
            upper = bracket.upper_bound if bracket.upper_bound is not None else taxable_income
            if taxable_income <= lower_bound:
                break
            tax += (min(taxable_income, upper) - lower_bound) * bracket.rate
            lower_bound = upper

        return round_currency(tax)

    def get_bracket(self, income: float) -> TaxBracket:
        """Bracket that the last dollar of ``income`` falls in."""
        for bracket in self.brackets:
            if bracket.upper_bound is None or income <= bracket.upper_bound:
                return bracket
        return self.brackets[-1]

    def get_marginal_rate(self, income: float) -> float:
        return self.get_bracket(income).rate

    def get_bracket_label(self, income: float) -> str:
        """Bracket as a percentage label, e.g. "22%"."""
        return f"{round(self.get_marginal_rate(income) * 100)}%"


_tax_rules_service: Optional[TaxRulesService] = None


def get_tax_rules_service() -> TaxRulesService:
    """Get the shared tax rules service instance."""
    global _tax_rules_service
    if _tax_rules_service is None:
        _tax_rules_service = TaxRulesService()
    return _tax_rules_service
