"""
Schema Builder.

Responsible for assembling the final ``ExtractionResult`` of an ingestion
call and for serialising it for the review UI / persistence layer (JSON
and CSV).
"""

from __future__ import annotations

import csv
import json
from io import StringIO
from typing import Iterable, Optional

from statement_ingest.errors import IngestionError
from statement_ingest.logging_setup import get_logger
from statement_ingest.schema import (
    ExtractionMethod,
    ExtractionResult,
    ParsedTransaction,
)

logger = get_logger("schema_builder")


class SchemaBuilder:
    """Builds and serialises ``ExtractionResult`` objects."""

    # ------------------------------------------------------------------ #
    # Result assembly
    # ------------------------------------------------------------------ #

    @staticmethod
    def build_result(
        transactions: Iterable[ParsedTransaction],
        method: ExtractionMethod,
        warnings: Optional[Iterable[str]] = None,
        skipped_rows: int = 0,
    ) -> ExtractionResult:
        """Assemble a successful ``ExtractionResult``."""
        return ExtractionResult(
            transactions=tuple(transactions),
            success=True,
            method=method,
            warnings=tuple(warnings or ()),
            skipped_rows=skipped_rows,
        )

    @staticmethod
    def build_failure(
        error: IngestionError,
        method: ExtractionMethod,
        skipped_rows: int = 0,
    ) -> ExtractionResult:
        """Turn an ``IngestionError`` into a soft-failure result."""
        return ExtractionResult(
            transactions=(),
            success=False,
            method=method,
            error=str(error) or error.code,
            error_code=error.code,
            skipped_rows=skipped_rows,
        )

    # ------------------------------------------------------------------ #
    # Serialisation
    # ------------------------------------------------------------------ #

    @staticmethod
    def to_json(result: ExtractionResult, indent: int = 2) -> str:
        """Serialise ``ExtractionResult`` to a JSON string."""
        return json.dumps(result.to_dict(), indent=indent, ensure_ascii=False)

    @staticmethod
    def to_csv_string(result: ExtractionResult) -> str:
        """Serialise transactions to CSV text (excludes status fields)."""
        buf = StringIO()
        writer = csv.writer(buf)
        writer.writerow([
            "date", "description", "amount", "type", "merchant", "category",
        ])
        for t in result.transactions:
            writer.writerow([
                t.date.isoformat(),
                t.description,
                str(t.amount),
                t.type.value,
                t.merchant or "",
                t.category.value if t.category else "",
            ])
        return buf.getvalue()
