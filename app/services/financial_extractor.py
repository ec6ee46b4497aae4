"""AI-assisted extraction of raw financial fields from canonical text.

The model's reply is treated as untyped: the only guarantee this module
gives is that the result is a JSON object. Field names and value types are
left to the normalizer.
"""

import json
import logging
import re
from typing import Any, Dict, Optional, Protocol

from app.config import settings
from app.services.claude_client import ClaudeClient
from app.services.exceptions import ExtractionParseError
from app.services.prompts import build_extraction_prompt

logger = logging.getLogger(__name__)

# First "{" through the last "}" of the reply
JSON_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")


class TextGenerator(Protocol):
    async def generate(self, prompt: str) -> str: ...


def truncate_text(text: str, max_chars: int) -> str:
    """Keep the first ``max_chars`` characters; documents are front-loaded."""
    if max_chars < 0:
        raise ValueError("max_chars must be non-negative")
    return text[:max_chars]


def parse_json_object(response_text: str) -> Dict[str, Any]:
    """
    Parse the JSON object embedded in a model reply.

    Raises:
        ExtractionParseError: no object-like substring, invalid JSON, or a
            value that is not a JSON object
    """
    match = JSON_OBJECT_PATTERN.search(response_text or "")
    if not match:
        raise ExtractionParseError("Could not extract JSON from Claude response")

    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse Claude response as JSON: {e}")
        logger.debug(f"Response was: {response_text}")
        raise ExtractionParseError(f"Claude response is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ExtractionParseError("Claude response JSON is not an object")

    return data


class FinancialDataExtractor:
    """Extract a raw field map from document text with a text-generation service."""

    def __init__(self, generator: Optional[TextGenerator] = None, max_chars: int = None):
        self.generator = generator or ClaudeClient()
        self.max_chars = max_chars if max_chars is not None else settings.MAX_EXTRACTION_CHARS

    async def extract(self, text: str) -> Dict[str, Any]:
        """
        Extract financial fields from canonical text.

        Args:
            text: Canonical document text

        Returns:
            Raw field map exactly as the model produced it
        """
        truncated = truncate_text(text, self.max_chars)
        if len(truncated) < len(text):
            logger.info(f"Truncated document text from {len(text)} to {len(truncated)} characters")

        prompt = build_extraction_prompt(truncated)
        response_text = await self.generator.generate(prompt)

        raw_data = parse_json_object(response_text)
        logger.info(f"Extracted {len(raw_data)} top-level fields from document")
        return raw_data
