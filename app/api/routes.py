"""API routes for the financial extraction and tax pipeline."""

import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.schemas.documents import ExtractionResponse, ProcessDocumentRequest, RawDataRequest
from app.schemas.finance import (
    BudgetCreateRequest,
    CreatedRecord,
    ExtractionMethod,
    FinancialSnapshot,
    FinancialSummary,
    InvestmentCreateRequest,
)
from app.schemas.insights import InsightReport, InsightRequest
from app.schemas.tax import (
    AnalysisMode,
    AnalysisResponse,
    FullAnalysisResponse,
    OptimizationResponse,
    StoredAnalysis,
    StoredOptimization,
    StoredSuggestion,
    TaxAnalysisRequest,
    TaxOptimizationRequest,
)
from app.services.exceptions import (
    DecodeError,
    ExtractionParseError,
    FinancialPipelineError,
    PersistenceError,
    ServiceConfigError,
    ServiceUnavailable,
    SourceUnavailable,
    UnsupportedFormat,
)
from app.services.financial_store import FinancialDataStore, budget_to_row, investment_to_row
from app.services.financial_summary import summarize_snapshot
from app.services.pipeline import FinancialPipeline

logger = logging.getLogger(__name__)

api_router = APIRouter(prefix="/api")

ERROR_STATUS_CODES = [
    (UnsupportedFormat, 415),
    (DecodeError, 422),
    (ExtractionParseError, 422),
    (SourceUnavailable, 502),
    (ServiceUnavailable, 502),
    (ServiceConfigError, 503),
    (PersistenceError, 500),
]

_pipeline: Optional[FinancialPipeline] = None


def get_pipeline() -> FinancialPipeline:
    """Get the shared pipeline instance."""
    global _pipeline
    if _pipeline is None:
        _pipeline = FinancialPipeline()
    return _pipeline


def get_store(db: AsyncSession = Depends(get_db)) -> FinancialDataStore:
    return FinancialDataStore(db)


def get_subject_id(x_subject_id: Optional[str] = Header(None, alias="X-Subject-Id")) -> str:
    """Resolve the authenticated subject from the request header."""
    if not x_subject_id or not x_subject_id.strip():
        raise HTTPException(status_code=401, detail="Missing subject identity")
    return x_subject_id.strip()


def check_subject(subject_id: str, user_id: Optional[str]) -> None:
    if user_id is not None and user_id != subject_id:
        raise HTTPException(status_code=403, detail="user_id does not match the authenticated subject")


def status_code_for(error: FinancialPipelineError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(error, error_type):
            return status_code
    return 500


def to_http_error(error: FinancialPipelineError) -> HTTPException:
    return HTTPException(status_code=status_code_for(error), detail=str(error))


async def call_store(operation, *args, **kwargs):
    """Await a store operation, turning storage failures into HTTP errors."""
    try:
        return await operation(*args, **kwargs)
    except PersistenceError as e:
        raise to_http_error(e) from e


async def load_snapshot(store: FinancialDataStore, subject_id: str) -> FinancialSnapshot:
    return await call_store(store.fetch_snapshot, subject_id)


# Extraction

@api_router.post("/process-document", response_model=ExtractionResponse)
async def process_document(
    request: ProcessDocumentRequest,
    subject_id: str = Depends(get_subject_id),
    store: FinancialDataStore = Depends(get_store),
    pipeline: FinancialPipeline = Depends(get_pipeline),
):
    """Download a document, extract its financial data and store it."""
    check_subject(subject_id, request.user_id)
    logger.info(f"Processing document {request.file_name} ({request.file_type}) for {subject_id}")

    try:
        document, record = await pipeline.process_document(
            request.file_url, request.file_type, reference=request.file_url
        )
    except FinancialPipelineError as e:
        logger.error(f"Document processing failed for {request.file_name}: {e}")
        raise to_http_error(e) from e

    return await pipeline.save_record(store, subject_id, record, document)


async def _normalize_raw(
    method: ExtractionMethod,
    request: RawDataRequest,
    subject_id: str,
    store: FinancialDataStore,
    pipeline: FinancialPipeline,
) -> ExtractionResponse:
    check_subject(subject_id, request.user_id)
    record = pipeline.normalize(request.raw_data, method, request.reference, request.provider)
    return await pipeline.save_record(store, subject_id, record)


@api_router.post("/ocr", response_model=ExtractionResponse)
async def process_ocr(
    request: RawDataRequest,
    subject_id: str = Depends(get_subject_id),
    store: FinancialDataStore = Depends(get_store),
    pipeline: FinancialPipeline = Depends(get_pipeline),
):
    """Map fields read from an image by an external OCR step."""
    return await _normalize_raw(ExtractionMethod.OCR, request, subject_id, store, pipeline)


@api_router.post("/crm", response_model=ExtractionResponse)
async def process_crm(
    request: RawDataRequest,
    subject_id: str = Depends(get_subject_id),
    store: FinancialDataStore = Depends(get_store),
    pipeline: FinancialPipeline = Depends(get_pipeline),
):
    """Map fields imported from an accounting CRM."""
    return await _normalize_raw(ExtractionMethod.CRM, request, subject_id, store, pipeline)


# Computation

@api_router.get("/financial-data/summary", response_model=FinancialSummary)
async def financial_data_summary(
    subject_id: str = Depends(get_subject_id),
    store: FinancialDataStore = Depends(get_store),
):
    snapshot = await load_snapshot(store, subject_id)
    return summarize_snapshot(snapshot)


@api_router.post("/tax-optimization", response_model=OptimizationResponse)
async def tax_optimization(
    request: TaxOptimizationRequest,
    subject_id: str = Depends(get_subject_id),
    store: FinancialDataStore = Depends(get_store),
    pipeline: FinancialPipeline = Depends(get_pipeline),
):
    """
    Run a tax optimization.

    Inputs missing from the body are read from the subject's stored data.
    """
    check_subject(subject_id, request.user_id)

    inline = [
        request.personal_finances,
        request.business_finances,
        request.budget_data,
        request.investment_data,
    ]
    snapshot = FinancialSnapshot(subject_id=subject_id)
    if any(value is None for value in inline):
        snapshot = await load_snapshot(store, subject_id)

    result = pipeline.optimize(
        request.personal_finances or snapshot.personal_finances,
        request.business_finances or snapshot.business_finances,
        request.budget_data if request.budget_data is not None else snapshot.budgets,
        request.investment_data if request.investment_data is not None else snapshot.investments,
    )
    return await pipeline.save_optimization(store, subject_id, result)


@api_router.post("/tax-analysis", response_model=AnalysisResponse)
async def tax_analysis(
    request: TaxAnalysisRequest,
    subject_id: str = Depends(get_subject_id),
    store: FinancialDataStore = Depends(get_store),
    pipeline: FinancialPipeline = Depends(get_pipeline),
):
    """Simplified flat-rate analysis in personal, business or combined mode."""
    check_subject(subject_id, request.user_id)

    personal = request.personal_finances
    business = request.business_finances
    if personal is None or business is None:
        snapshot = await load_snapshot(store, subject_id)
        personal = personal or snapshot.personal_finances
        business = business or snapshot.business_finances

    result = pipeline.analyze(request.analysis_type, personal, business, request.total_credits)
    return await pipeline.save_analysis(store, subject_id, result)


@api_router.post("/ai-insights", response_model=InsightReport)
async def ai_insights(
    request: InsightRequest,
    subject_id: str = Depends(get_subject_id),
    store: FinancialDataStore = Depends(get_store),
    pipeline: FinancialPipeline = Depends(get_pipeline),
):
    check_subject(subject_id, request.user_id)
    snapshot = await load_snapshot(store, subject_id)
    return pipeline.insights(summarize_snapshot(snapshot), request.insight_type)


@api_router.post("/full-analysis", response_model=FullAnalysisResponse)
async def full_analysis(
    subject_id: str = Depends(get_subject_id),
    store: FinancialDataStore = Depends(get_store),
    pipeline: FinancialPipeline = Depends(get_pipeline),
):
    """Optimization and insights over the subject's stored snapshot."""
    try:
        return await pipeline.run_stored_analysis(store, subject_id)
    except PersistenceError as e:
        raise to_http_error(e) from e


# Stored data

@api_router.post("/financial-data/budgets", response_model=CreatedRecord, status_code=201)
async def create_budget(
    request: BudgetCreateRequest,
    subject_id: str = Depends(get_subject_id),
    store: FinancialDataStore = Depends(get_store),
):
    """Add a budget transaction to the subject's stored data."""
    check_subject(subject_id, request.user_id)
    budget_id = await call_store(store.insert, "budgets", budget_to_row(subject_id, request))
    return CreatedRecord(id=budget_id, kind="budgets")


@api_router.post("/financial-data/investments", response_model=CreatedRecord, status_code=201)
async def create_investment(
    request: InvestmentCreateRequest,
    subject_id: str = Depends(get_subject_id),
    store: FinancialDataStore = Depends(get_store),
):
    check_subject(subject_id, request.user_id)
    investment_id = await call_store(
        store.insert, "investments", investment_to_row(subject_id, request)
    )
    return CreatedRecord(id=investment_id, kind="investments")


@api_router.get("/tax-optimization/history", response_model=List[StoredOptimization])
async def optimization_history(
    limit: int = Query(10, ge=1, le=100),
    subject_id: str = Depends(get_subject_id),
    store: FinancialDataStore = Depends(get_store),
):
    """Stored optimization runs, newest first."""
    return await call_store(store.fetch_history, subject_id, "tax_optimization_results", limit=limit)


@api_router.get("/tax-optimization/latest", response_model=StoredOptimization)
async def latest_optimization(
    subject_id: str = Depends(get_subject_id),
    store: FinancialDataStore = Depends(get_store),
):
    """Newest stored optimization run with its suggestions."""
    optimization = await call_store(store.fetch_latest_optimization, subject_id)
    if optimization is None:
        raise HTTPException(status_code=404, detail="No stored optimization")
    return optimization


@api_router.get(
    "/tax-optimization/{optimization_id}/suggestions", response_model=List[StoredSuggestion]
)
async def optimization_suggestions(
    optimization_id: uuid.UUID,
    subject_id: str = Depends(get_subject_id),
    store: FinancialDataStore = Depends(get_store),
):
    return await call_store(
        store.fetch_history, subject_id, "tax_suggestions", optimization_id=optimization_id
    )


@api_router.get("/tax-analysis", response_model=List[StoredAnalysis])
async def analysis_history(
    analysis_type: Optional[AnalysisMode] = Query(None, alias="type"),
    subject_id: str = Depends(get_subject_id),
    store: FinancialDataStore = Depends(get_store),
):
    """Stored simplified analyses, newest first, optionally of one mode."""
    filters = {"analysis_type": analysis_type.value} if analysis_type else {}
    return await call_store(store.fetch_history, subject_id, "analysis_results", **filters)
