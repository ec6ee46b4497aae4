"""FastAPI application for the financial data and tax pipeline."""
import logging

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import api_router, status_code_for
from app.config import settings
from app.database import init_db
from app.services.exceptions import FinancialPipelineError


def configure_logging(level: str) -> None:
    """Route stdlib and structlog records through one JSON renderer."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format="%(message)s")


configure_logging(settings.LOG_LEVEL)
logger = structlog.get_logger("financial_pipeline")

app = FastAPI(
    title="Financial Data & Tax Optimization Pipeline",
    description="Extract financial data from documents, estimate tax and generate insights",
    version="1.0.0",
    debug=settings.DEBUG,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)
app.include_router(api_router)


@app.exception_handler(FinancialPipelineError)
async def pipeline_error_handler(request: Request, exc: FinancialPipelineError):
    status_code = status_code_for(exc)
    logger.warning(
        "pipeline_error",
        path=request.url.path,
        error_type=type(exc).__name__,
        status_code=status_code,
    )
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.on_event("startup")
async def create_tables():
    logger.info("startup", database=settings.DATABASE_URL.rsplit("@", 1)[-1])
    await init_db()


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "service": "financial-pipeline",
        "model": settings.CLAUDE_MODEL,
        "ai_configured": bool(settings.ANTHROPIC_API_KEY),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)
