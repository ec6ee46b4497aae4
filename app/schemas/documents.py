"""Pydantic schemas for document intake."""
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from app.schemas.finance import FinancialRecord


class DocumentMimeType(str, Enum):
    """Supported document MIME types."""
    PDF = "application/pdf"
    DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
    XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    CSV = "text/csv"


class ProcessedDocument(BaseModel):
    """Canonical text produced from a source document."""
    mime_type: DocumentMimeType
    text_content: str
    section_count: int = Field(default=0, ge=0)  # pages, paragraphs, sheets or rows

    @property
    def character_count(self) -> int:
        return len(self.text_content)


class ProcessDocumentRequest(BaseModel):
    """Request to download a document and extract its financial data."""
    user_id: Optional[str] = None
    file_url: str = Field(..., min_length=1)
    file_name: str = Field(..., min_length=1)
    file_type: str = Field(..., min_length=1)


class RawDataRequest(BaseModel):
    """Already-extracted raw fields from OCR or a CRM import."""
    user_id: Optional[str] = None
    raw_data: Dict[str, Any] = {}
    reference: Optional[str] = None
    provider: Optional[str] = None


class ExtractionResponse(BaseModel):
    """Normalized financial data extracted from one document or raw payload."""
    financial_data: FinancialRecord
    section_count: int = 0
    character_count: int = 0
    persisted: bool = False
    persistence_error: Optional[str] = None
