"""Tests for AI-assisted field extraction."""
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.services.exceptions import ExtractionParseError, ServiceUnavailable
from app.services.financial_extractor import (
    FinancialDataExtractor,
    parse_json_object,
    truncate_text,
)


def make_generator(reply):
    generator = MagicMock()
    generator.generate = AsyncMock(return_value=reply)
    return generator


class TestParseJsonObject:
    def test_object_surrounded_by_prose(self):
        reply = 'Here is the data:\n{"personalFinances": {"salary_income": 1000}}\nDone.'

        assert parse_json_object(reply) == {"personalFinances": {"salary_income": 1000}}

    def test_no_object(self):
        with pytest.raises(ExtractionParseError):
            parse_json_object("I could not find any financial data.")

    def test_invalid_json(self):
        with pytest.raises(ExtractionParseError):
            parse_json_object("{salary_income: 1000,}")

    def test_empty_reply(self):
        with pytest.raises(ExtractionParseError):
            parse_json_object("")


def test_truncate_keeps_prefix():
    assert truncate_text("abcdef", 3) == "abc"
    assert truncate_text("abc", 10) == "abc"


@pytest.mark.asyncio
async def test_extract_returns_raw_field_map():
    generator = make_generator('{"salary_income": "75,000", "revenue": null}')
    extractor = FinancialDataExtractor(generator=generator)

    raw = await extractor.extract("W-2 wages 75,000")

    # Values are passed through untouched for the normalizer
    assert raw == {"salary_income": "75,000", "revenue": None}
    prompt = generator.generate.call_args.args[0]
    assert "W-2 wages 75,000" in prompt
    assert "salary_income" in prompt


@pytest.mark.asyncio
async def test_extract_truncates_long_documents():
    generator = make_generator("{}")
    extractor = FinancialDataExtractor(generator=generator, max_chars=10)

    await extractor.extract("A" * 10 + "QQQQ-TAIL")

    prompt = generator.generate.call_args.args[0]
    assert "A" * 10 in prompt
    assert "QQQQ-TAIL" not in prompt


@pytest.mark.asyncio
async def test_extract_unparseable_reply():
    extractor = FinancialDataExtractor(generator=make_generator("Sorry, no JSON here"))

    with pytest.raises(ExtractionParseError):
        await extractor.extract("some text")


@pytest.mark.asyncio
async def test_extract_propagates_service_errors():
    generator = MagicMock()
    generator.generate = AsyncMock(side_effect=ServiceUnavailable("down"))
    extractor = FinancialDataExtractor(generator=generator)

    with pytest.raises(ServiceUnavailable):
        await extractor.extract("some text")
