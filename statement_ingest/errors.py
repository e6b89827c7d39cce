"""
Error taxonomy for the ingestion pipeline.

Stages raise these; the pipeline converts every one of them into an
``ExtractionResult`` (or into the SMS deterministic fallback), so none
escapes the public entry points.  :class:`UnreadableSource` is the only one
that ends a source without any fallback being attempted.
"""

from __future__ import annotations


class IngestionError(Exception):
    """Base class.  ``code`` is a stable identifier surfaced to callers."""

    code = "ingestion_error"


class UnreadableSource(IngestionError):
    """The source could not be read or decoded at all."""

    code = "unreadable_source"


class HeaderUnresolved(IngestionError):
    """No date column was found in the header row."""

    code = "header_unresolved"


class ZeroTransactionsExtracted(IngestionError):
    """A parse ran to completion but produced nothing."""

    code = "zero_transactions"


class GenerativeError(IngestionError):
    code = "generative_error"


class GenerativeNetworkFailure(GenerativeError):
    """The completion call failed, timed out or returned a non-success status."""

    code = "generative_network_failure"


class GenerativeSchemaInvalid(GenerativeError):
    """The completion response was not parseable into the expected shape."""

    code = "generative_schema_invalid"


class ExtractionCancelled(GenerativeError):
    """The caller abandoned the operation while a request was outstanding."""

    code = "cancelled"
