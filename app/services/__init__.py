"""Services package."""
from app.services.claude_client import ClaudeClient
from app.services.file_handler import FileHandler
from app.services.financial_extractor import FinancialDataExtractor
from app.services.insight_generator import InsightGenerator
from app.services.tax_analysis import TaxAnalysisService
from app.services.tax_optimizer import TaxOptimizationEngine
from app.services.tax_rules_service import TaxRulesService, get_tax_rules_service

__all__ = [
    "FileHandler",
    "ClaudeClient",
    "FinancialDataExtractor",
    "TaxRulesService",
    "get_tax_rules_service",
    "TaxOptimizationEngine",
    "TaxAnalysisService",
    "InsightGenerator",
]
