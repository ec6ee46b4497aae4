"""Coerce raw extracted values into the canonical financial records."""

import logging
import math
import re
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from app.schemas.finance import (
    BUSINESS_FIELDS,
    PERSONAL_FIELDS,
    BusinessFinanceRecord,
    ExtractionMethod,
    FinancialRecord,
    PersonalFinanceRecord,
    Provenance,
)

logger = logging.getLogger(__name__)

NON_NUMERIC_CHARS = re.compile(r"[^0-9.\-]")

# Sections the extraction prompt asks the model to nest fields under
PERSONAL_SECTION = "personalFinances"
BUSINESS_SECTION = "businessFinances"


def coerce_number(value: Any) -> float:
    """
    Turn any raw value into a finite float, or 0.0.

    Strings keep only digits, "-" and "." before parsing, so "$1,234.50"
    becomes 1234.5. Anything unparseable, non-finite or absent is 0.0.
    """
    if isinstance(value, bool):
        return 0.0

    if isinstance(value, (int, float, Decimal)):
        try:
            number = float(value)
        except OverflowError:
            return 0.0
    elif isinstance(value, str):
        cleaned = NON_NUMERIC_CHARS.sub("", value)
        try:
            number = float(cleaned)
        except ValueError:
            return 0.0
    else:
        return 0.0

    return number if math.isfinite(number) else 0.0


def flatten_raw_data(raw: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge the personal/business sections of a nested reply into one flat map."""
    flat = {key: value for key, value in raw.items() if key not in (PERSONAL_SECTION, BUSINESS_SECTION)}
    for section in (PERSONAL_SECTION, BUSINESS_SECTION):
        nested = raw.get(section)
        if isinstance(nested, Mapping):
            flat.update(nested)
    return flat


def build_personal(raw: Mapping[str, Any]) -> PersonalFinanceRecord:
    return PersonalFinanceRecord(**{name: coerce_number(raw.get(name)) for name in PERSONAL_FIELDS})


def build_business(raw: Mapping[str, Any]) -> BusinessFinanceRecord:
    return BusinessFinanceRecord(**{name: coerce_number(raw.get(name)) for name in BUSINESS_FIELDS})


def build_provenance(
    method: ExtractionMethod, reference: Optional[str] = None, provider: Optional[str] = None
) -> Provenance:
    """Create the provenance for a new extraction event."""
    return Provenance(method=method, reference=reference, provider=provider)


def normalize_financial_data(
    raw: Optional[Mapping[str, Any]], source: Optional[Provenance] = None
) -> FinancialRecord:
    """
    Normalize a raw field map into personal and business records.

    Both records are always produced; unknown keys are ignored.
    """
    flat = flatten_raw_data(raw or {})
    record = FinancialRecord(
        personal_finances=build_personal(flat),
        business_finances=build_business(flat),
        source=source,
    )
    logger.debug(
        f"Normalized raw data ({len(flat)} keys) from "
        f"{source.method.value if source else 'unknown source'}"
    )
    return record
