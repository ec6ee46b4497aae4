"""Database models package."""
from app.models.db_models import (
    AnalysisResultRecord,
    Budget,
    BusinessFinance,
    Investment,
    PersonalFinance,
    TaxOptimizationRecord,
    TaxSuggestionRecord,
)

__all__ = [
    "Budget",
    "Investment",
    "PersonalFinance",
    "BusinessFinance",
    "TaxOptimizationRecord",
    "TaxSuggestionRecord",
    "AnalysisResultRecord",
]
