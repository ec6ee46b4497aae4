"""Errors raised across the extraction and persistence boundary.

The normalizer and the two computation engines never raise these: bad
numeric input degrades to zero instead.
"""


class FinancialPipelineError(Exception):
    """Base class for terminal pipeline failures."""


# Format extraction
class UnsupportedFormat(FinancialPipelineError):
    """The declared MIME type is not one of the supported document types."""


class SourceUnavailable(FinancialPipelineError):
    """The document could not be downloaded from its source."""


class DecodeError(FinancialPipelineError):
    """The document payload is corrupt or could not be parsed."""


# Structured field extraction
class ServiceUnavailable(FinancialPipelineError):
    """The text-generation service failed, timed out or returned nothing."""


class ServiceConfigError(FinancialPipelineError):
    """The text-generation service is not configured (missing credential)."""


class ExtractionParseError(FinancialPipelineError):
    """The model response did not contain a parseable JSON object."""


# Storage boundary
class PersistenceError(FinancialPipelineError):
    """The storage collaborator failed to read or write."""
