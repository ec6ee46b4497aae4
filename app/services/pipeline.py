"""Orchestrate extraction, normalization, tax computation and insights.

Computation never depends on storage: a result is produced first and then
offered to the store. A failed write is reported on the response with
``persisted=False`` instead of discarding the result.
"""
import logging
from typing import Any, Mapping, Optional, Sequence, Tuple

from app.schemas.documents import ExtractionResponse, ProcessedDocument
from app.schemas.finance import (
    BudgetEntry,
    BusinessFinanceRecord,
    ExtractionMethod,
    FinancialRecord,
    FinancialSnapshot,
    FinancialSummary,
    InvestmentPosition,
    PersonalFinanceRecord,
)
from app.schemas.insights import InsightCategory, InsightReport
from app.schemas.tax import (
    AnalysisMode,
    AnalysisResponse,
    FullAnalysisResponse,
    OptimizationResponse,
    TaxAnalysisResult,
    TaxOptimizationResult,
)
from app.services.exceptions import PersistenceError
from app.services.file_handler import FileHandler
from app.services.financial_extractor import FinancialDataExtractor
from app.services.financial_store import FinancialDataStore
from app.services.financial_summary import summarize_snapshot
from app.services.insight_generator import InsightGenerator
from app.services.normalizer import build_provenance, normalize_financial_data
from app.services.tax_analysis import TaxAnalysisService
from app.services.tax_optimizer import TaxOptimizationEngine

logger = logging.getLogger(__name__)


class FinancialPipeline:
    """Single entry point from raw documents to tax results and insights."""

    def __init__(
        self,
        file_handler: FileHandler = None,
        extractor: FinancialDataExtractor = None,
        optimizer: TaxOptimizationEngine = None,
        analysis: TaxAnalysisService = None,
        insight_generator: InsightGenerator = None,
    ):
        self.file_handler = file_handler or FileHandler()
        self.extractor = extractor or FinancialDataExtractor()
        self.optimizer = optimizer or TaxOptimizationEngine()
        self.analysis = analysis or TaxAnalysisService()
        self.insight_generator = insight_generator or InsightGenerator()

    # Extraction

    async def process_document(
        self, file_url: str, mime_type: str, reference: Optional[str] = None
    ) -> Tuple[ProcessedDocument, FinancialRecord]:
        """
        Download a document and extract normalized financial data from it.

        Args:
            file_url: Where to download the document from
            mime_type: Declared MIME type of the document
            reference: Provenance reference, defaults to the URL

        Returns:
            Tuple of (processed document, financial record)

        Raises:
            UnsupportedFormat, SourceUnavailable, DecodeError,
            ServiceUnavailable, ServiceConfigError, ExtractionParseError
        """
        document = await self.file_handler.process_url(file_url, mime_type)
        logger.info(
            f"Processed {mime_type} document: {document.section_count} sections, "
            f"{document.character_count} characters"
        )

        raw_data = await self.extractor.extract(document.text_content)
        source = build_provenance(ExtractionMethod.UPLOAD, reference=reference or file_url)
        return document, normalize_financial_data(raw_data, source)

    def normalize(
        self,
        raw_data: Optional[Mapping[str, Any]],
        method: ExtractionMethod,
        reference: Optional[str] = None,
        provider: Optional[str] = None,
    ) -> FinancialRecord:
        """Normalize fields that were already extracted (OCR or CRM)."""
        return normalize_financial_data(raw_data, build_provenance(method, reference, provider))

    # Computation

    def optimize(
        self,
        personal: PersonalFinanceRecord,
        business: BusinessFinanceRecord,
        budgets: Sequence[BudgetEntry] = (),
        investments: Sequence[InvestmentPosition] = (),
    ) -> TaxOptimizationResult:
        return self.optimizer.optimize(personal, business, budgets, investments)

    def analyze(
        self,
        mode: AnalysisMode,
        personal: Optional[PersonalFinanceRecord] = None,
        business: Optional[BusinessFinanceRecord] = None,
        total_credits: float = 0.0,
    ) -> TaxAnalysisResult:
        return self.analysis.analyze(mode, personal, business, total_credits)

    def insights(
        self, summary: FinancialSummary, category: InsightCategory = InsightCategory.ALL
    ) -> InsightReport:
        return self.insight_generator.generate(summary, category)

    def run_full_analysis(
        self, snapshot: FinancialSnapshot
    ) -> Tuple[FinancialSummary, TaxOptimizationResult, InsightReport]:
        """Optimization and insights from one snapshot, which is left untouched."""
        summary = summarize_snapshot(snapshot)
        optimization = self.optimizer.optimize_snapshot(snapshot)
        report = self.insight_generator.generate(summary, InsightCategory.ALL)
        logger.info(
            f"Full analysis for {snapshot.subject_id}: savings={optimization.potential_savings}, "
            f"{report.summary.total_insights} insights"
        )
        return summary, optimization, report

    # Persistence

    async def save_record(
        self,
        store: FinancialDataStore,
        subject_id: str,
        record: FinancialRecord,
        document: Optional[ProcessedDocument] = None,
    ) -> ExtractionResponse:
        """Store both finance singletons for the subject in one transaction."""
        response = ExtractionResponse(
            financial_data=record,
            section_count=document.section_count if document else 0,
            character_count=document.character_count if document else 0,
        )
        source = record.source.model_dump(mode="json") if record.source else None
        try:
            await store.replace_singletons(
                subject_id,
                {
                    "personal_finances": {**record.personal_finances.model_dump(), "source": source},
                    "business_finances": {**record.business_finances.model_dump(), "source": source},
                },
            )
        except PersistenceError as e:
            logger.error(f"Extracted data for {subject_id} was not stored: {e}")
            return response.model_copy(update={"persistence_error": str(e)})
        return response.model_copy(update={"persisted": True})

    async def save_optimization(
        self, store: FinancialDataStore, subject_id: str, result: TaxOptimizationResult
    ) -> OptimizationResponse:
        """Store an optimization run and its suggestions in one transaction."""
        try:
            optimization_id = await store.insert_with_children(
                "tax_optimization_results",
                {
                    "user_id": subject_id,
                    "current_tax": result.current_tax,
                    "optimized_tax": result.optimized_tax,
                    "potential_savings": result.potential_savings,
                    "recommendations": result.recommendations,
                    "chart_data": result.chart_data.model_dump(),
                    "analysis_data": result.analysis_data.model_dump(),
                    "confidence_score": result.confidence_score,
                },
                "tax_suggestions",
                [{**suggestion.model_dump(), "user_id": subject_id} for suggestion in result.suggestions],
                parent_key="optimization_id",
            )
        except PersistenceError as e:
            logger.error(f"Optimization for {subject_id} was not stored: {e}")
            return OptimizationResponse(result=result, persistence_error=str(e))
        return OptimizationResponse(optimization_id=optimization_id, result=result, persisted=True)

    async def save_analysis(
        self, store: FinancialDataStore, subject_id: str, result: TaxAnalysisResult
    ) -> AnalysisResponse:
        try:
            analysis_id = await store.insert(
                "analysis_results",
                {
                    "user_id": subject_id,
                    "analysis_type": result.analysis_type.value,
                    "analysis_data": result.model_dump(mode="json"),
                    "estimated_tax_liability": result.estimated_tax_liability,
                    "estimated_savings": result.estimated_savings,
                    "recommendations": [r.model_dump() for r in result.recommendations],
                },
            )
        except PersistenceError as e:
            logger.error(f"Analysis for {subject_id} was not stored: {e}")
            return AnalysisResponse(result=result, persistence_error=str(e))
        return AnalysisResponse(analysis_id=analysis_id, result=result, persisted=True)

    async def run_stored_analysis(
        self, store: FinancialDataStore, subject_id: str
    ) -> FullAnalysisResponse:
        """
        Load the subject's snapshot, run the full analysis and store the optimization.

        Raises:
            PersistenceError: If the snapshot cannot be loaded
        """
        snapshot = await store.fetch_snapshot(subject_id)
        summary, optimization, report = self.run_full_analysis(snapshot)
        return FullAnalysisResponse(
            subject_id=subject_id,
            summary=summary,
            optimization=await self.save_optimization(store, subject_id, optimization),
            insights=report,
        )
