"""File handling service for turning source documents into canonical text."""

import csv
import io
import json
import logging

import docx
import httpx
import openpyxl
import pypdf

from app.config import settings
from app.schemas.documents import DocumentMimeType, ProcessedDocument
from app.services.exceptions import DecodeError, SourceUnavailable, UnsupportedFormat

logger = logging.getLogger(__name__)


class FileHandler:
    """Download documents and convert them to plain text."""

    def __init__(self, http_client: httpx.AsyncClient = None):
        """Initialize file handler."""
        self.max_file_size = settings.max_file_size_bytes
        self.download_timeout = settings.DOWNLOAD_TIMEOUT_SECONDS
        self.allowed_mime_types = set(settings.ALLOWED_MIME_TYPES)
        self._http_client = http_client

    async def fetch(self, url: str) -> bytes:
        """
        Download a document.

        Args:
            url: Location of the document

        Returns:
            Raw document bytes

        Raises:
            SourceUnavailable: network failure or non-success status
        """
        try:
            if self._http_client is not None:
                response = await self._http_client.get(url)
            else:
                async with httpx.AsyncClient(
                    timeout=httpx.Timeout(self.download_timeout), follow_redirects=True
                ) as client:
                    response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Failed to download document {url}: HTTP {e.response.status_code}")
            raise SourceUnavailable(
                f"Failed to download file: HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Failed to download document {url}: {e}")
            raise SourceUnavailable(f"Failed to download file: {e}") from e

        return response.content

    def validate_mime_type(self, mime_type: str) -> DocumentMimeType:
        """Map a declared MIME type to a supported, enabled document type."""
        if mime_type not in self.allowed_mime_types:
            raise UnsupportedFormat(f"Unsupported file type: {mime_type}")
        try:
            return DocumentMimeType(mime_type)
        except ValueError:
            raise UnsupportedFormat(f"Unsupported file type: {mime_type}") from None

    def process_content(self, content: bytes, mime_type: str) -> ProcessedDocument:
        """
        Convert document bytes to canonical text.

        Args:
            content: Raw document bytes
            mime_type: Declared MIME type

        Returns:
            ProcessedDocument with the extracted text
        """
        doc_type = self.validate_mime_type(mime_type)

        if len(content) > self.max_file_size:
            raise DecodeError(
                f"File size ({len(content) / 1024 / 1024:.1f}MB) exceeds maximum "
                f"({settings.MAX_FILE_SIZE_MB}MB)"
            )

        if doc_type == DocumentMimeType.PDF:
            return self._process_pdf(content)
        elif doc_type == DocumentMimeType.DOCX:
            return self._process_docx(content)
        elif doc_type == DocumentMimeType.XLSX:
            return self._process_excel(content)
        else:
            return self._process_csv(content)

    async def process_url(self, url: str, mime_type: str) -> ProcessedDocument:
        """Download a document and convert it to canonical text."""
        # Reject unsupported types before spending a download on them
        self.validate_mime_type(mime_type)

        content = await self.fetch(url)
        return self.process_content(content, mime_type)

    def _process_pdf(self, content: bytes) -> ProcessedDocument:
        """Process PDF file."""
        try:
            pdf_reader = pypdf.PdfReader(io.BytesIO(content))
            text_content = []

            for page in pdf_reader.pages:
                page_text = page.extract_text()
                if page_text:
                    text_content.append(page_text)

            return ProcessedDocument(
                mime_type=DocumentMimeType.PDF,
                text_content="\n".join(text_content),
                section_count=len(pdf_reader.pages),
            )

        except Exception as e:
            logger.error(f"Error processing PDF: {e}")
            raise DecodeError(f"Invalid PDF file: {e}") from e

    def _process_docx(self, content: bytes) -> ProcessedDocument:
        """Process Word document, keeping body text only."""
        try:
            document = docx.Document(io.BytesIO(content))
            paragraphs = [p.text for p in document.paragraphs]

            return ProcessedDocument(
                mime_type=DocumentMimeType.DOCX,
                text_content="\n".join(paragraphs),
                section_count=len(paragraphs),
            )

        except Exception as e:
            logger.error(f"Error processing Word document: {e}")
            raise DecodeError(f"Invalid Word document: {e}") from e

    def _process_excel(self, content: bytes) -> ProcessedDocument:
        """Process Excel file, one CSV block per sheet."""
        try:
            workbook = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
            sheets = []

            for sheet_name in workbook.sheetnames:
                sheet = workbook[sheet_name]
                buffer = io.StringIO()
                writer = csv.writer(buffer, lineterminator="\n")

                for row in sheet.iter_rows(values_only=True):
                    writer.writerow(["" if cell is None else cell for cell in row])

                sheets.append(buffer.getvalue().rstrip("\n"))

            sheet_count = len(workbook.sheetnames)
            workbook.close()

            return ProcessedDocument(
                mime_type=DocumentMimeType.XLSX,
                text_content="\n\n".join(sheets),
                section_count=sheet_count,
            )

        except Exception as e:
            logger.error(f"Error processing Excel file: {e}")
            raise DecodeError(f"Invalid Excel file: {e}") from e

    def _process_csv(self, content: bytes) -> ProcessedDocument:
        """Process CSV file, one key/value fragment per data row."""
        try:
            text = content.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            logger.error(f"Error decoding CSV file: {e}")
            raise DecodeError(f"Invalid CSV file: {e}") from e

        try:
            reader = csv.DictReader(io.StringIO(text))
            rows = []
            for record in reader:
                if not any((value or "").strip() for value in record.values() if isinstance(value, str)):
                    continue  # Skip empty rows
                rows.append(json.dumps(record, ensure_ascii=False))

        except csv.Error as e:
            logger.error(f"Error processing CSV file: {e}")
            raise DecodeError(f"Invalid CSV file: {e}") from e

        return ProcessedDocument(
            mime_type=DocumentMimeType.CSV,
            text_content="\n".join(rows),
            section_count=len(rows),
        )
