"""Pydantic schemas package."""
from app.schemas.documents import (
    DocumentMimeType,
    ExtractionResponse,
    ProcessDocumentRequest,
    ProcessedDocument,
    RawDataRequest,
)
from app.schemas.finance import (
    BudgetEntry,
    BusinessFinanceRecord,
    FinancialRecord,
    FinancialSnapshot,
    FinancialSummary,
    InvestmentPosition,
    PersonalFinanceRecord,
    Provenance,
)
from app.schemas.insights import Insight, InsightCategory, InsightReport, InsightRequest
from app.schemas.tax import (
    AnalysisMode,
    AnalysisResponse,
    FullAnalysisResponse,
    OptimizationResponse,
    TaxAnalysisRequest,
    TaxAnalysisResult,
    TaxOptimizationRequest,
    TaxOptimizationResult,
)

__all__ = [
    "DocumentMimeType",
    "ProcessedDocument",
    "ProcessDocumentRequest",
    "RawDataRequest",
    "ExtractionResponse",
    "PersonalFinanceRecord",
    "BusinessFinanceRecord",
    "Provenance",
    "FinancialRecord",
    "BudgetEntry",
    "InvestmentPosition",
    "FinancialSnapshot",
    "FinancialSummary",
    "Insight",
    "InsightCategory",
    "InsightReport",
    "InsightRequest",
    "AnalysisMode",
    "TaxOptimizationRequest",
    "TaxOptimizationResult",
    "OptimizationResponse",
    "TaxAnalysisRequest",
    "TaxAnalysisResult",
    "AnalysisResponse",
    "FullAnalysisResponse",
]
