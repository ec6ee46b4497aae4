"""Prompts for Claude financial data extraction."""
import json

from app.schemas.finance import BUSINESS_FIELDS, PERSONAL_FIELDS


def _schema_outline() -> str:
    """JSON outline naming every field the model must return."""
    outline = {
        "personalFinances": {name: "number" for name in PERSONAL_FIELDS},
        "businessFinances": {name: "number" for name in BUSINESS_FIELDS},
    }
    # Render "number" unquoted so the outline reads as a type schema
    return json.dumps(outline, indent=2).replace('"number"', "number")


FINANCIAL_EXTRACTION_SCHEMA = _schema_outline()

FINANCIAL_EXTRACTION_PROMPT = """You are a financial data extraction assistant.
Extract all relevant tax-related data from the following document text.

Document text:
---
{document_text}
---

Respond ONLY with valid JSON matching this schema:

{schema}

- If a field is missing, set it to 0.
- Report amounts as plain numbers without currency symbols.
- Only return valid JSON, no explanations or markdown formatting."""


def build_extraction_prompt(document_text: str) -> str:
    return FINANCIAL_EXTRACTION_PROMPT.format(
        document_text=document_text, schema=FINANCIAL_EXTRACTION_SCHEMA
    )
