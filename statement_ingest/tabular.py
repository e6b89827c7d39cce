"""
Structural Parser for delimited statement text.

    raw text → lines → Tokenizer → Header Resolver (first row)
             → per data row: Amount/Sign Normalizer → Classifier
             → ParsedTransaction

Rows are handled one at a time with no shared state between them; a row
that cannot be turned into a transaction is skipped, logged and counted.
The parser raises ``HeaderUnresolved`` when the header has no date column
and ``ZeroTransactionsExtracted`` when nothing survives, so the pipeline
can hand the source to the generative fallback.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import InvalidOperation
from typing import List, Optional, Sequence, Tuple

from statement_ingest.classifier import CategoryClassifier
from statement_ingest.config import TabularConfig
from statement_ingest.date_parser import Clock, coerce_date, system_today
from statement_ingest.errors import HeaderUnresolved, ZeroTransactionsExtracted
from statement_ingest.header_resolver import ColumnMap, HeaderResolver
from statement_ingest.logging_setup import get_logger
from statement_ingest.normalizer import AmountNormalizer
from statement_ingest.schema import ParsedTransaction
from statement_ingest.tokenizer import detect_delimiter, split_lines, split_row

logger = get_logger("tabular")

DEFAULT_DESCRIPTION = "Transaction"
UNKNOWN_MERCHANT = "Unknown"

_MERCHANT_SPLIT_RE = re.compile(r"[-/]")


@dataclass(frozen=True)
class TabularOutcome:
    transactions: Tuple[ParsedTransaction, ...]
    columns: ColumnMap
    skipped_rows: int


def _cell(fields: Sequence[str], idx: Optional[int]) -> str:
    if idx is None or idx >= len(fields):
        return ""
    return fields[idx]


def derive_merchant(description: str) -> str:
    """First segment of the description before ``-`` or ``/``."""
    head = _MERCHANT_SPLIT_RE.split(description, maxsplit=1)[0].strip()
    return head or UNKNOWN_MERCHANT


class TabularParser:
    """Deterministic parser for one delimited-text source.

    Parameters
    ----------
    config:
        Delimiters, column floor and date convention.
    resolver, normalizer, classifier:
        Collaborating layers; defaults are built when omitted.
    clock:
        "Today" for unparseable dates.
    """

    def __init__(
        self,
        config: Optional[TabularConfig] = None,
        resolver: Optional[HeaderResolver] = None,
        normalizer: Optional[AmountNormalizer] = None,
        classifier: Optional[CategoryClassifier] = None,
        clock: Clock = system_today,
    ) -> None:
        self._config = config or TabularConfig()
        self._resolver = resolver or HeaderResolver()
        self._normalizer = normalizer or AmountNormalizer()
        self._classifier = classifier or CategoryClassifier()
        self._clock = clock

    def parse(self, text: str) -> TabularOutcome:
        """Parse delimited text into transactions.

        Raises
        ------
        ZeroTransactionsExtracted
            Fewer than two non-blank lines, or no row produced a transaction.
        HeaderUnresolved
            The header row has no date column.
        """
        lines = split_lines(text)
        if len(lines) < 2:
            raise ZeroTransactionsExtracted("Source has no data rows")

        delimiter = detect_delimiter(lines[0], self._config.candidate_delimiters)
        headers = split_row(lines[0], delimiter)
        columns = self._resolver.resolve(headers)

        if not columns.resolved:
            raise HeaderUnresolved("No canonical columns found in header row")
        if columns.date is None:
            raise HeaderUnresolved(
                f"No date column among headers {headers!r}"
            )

        transactions: List[ParsedTransaction] = []
        skipped = 0
        for lineno, line in enumerate(lines[1:], start=2):
            fields = split_row(line, delimiter)
            if len(fields) < self._config.min_columns:
                logger.debug("Line %d: too few fields (%d); skipped", lineno, len(fields))
                skipped += 1
                continue
            try:
                txn = self._build_transaction(fields, columns)
            except (ValueError, InvalidOperation) as exc:
                logger.warning("Line %d: malformed row skipped: %s", lineno, exc)
                skipped += 1
                continue
            if txn is None:
                skipped += 1
                continue
            transactions.append(txn)

        logger.info(
            "Structural parse complete — transactions=%d, skipped=%d",
            len(transactions),
            skipped,
        )
        if not transactions:
            raise ZeroTransactionsExtracted(
                f"Header resolved but none of {len(lines) - 1} rows produced a transaction"
            )
        return TabularOutcome(tuple(transactions), columns, skipped)

    def _build_transaction(
        self, fields: Sequence[str], columns: ColumnMap
    ) -> Optional[ParsedTransaction]:
        description = _cell(fields, columns.description) or DEFAULT_DESCRIPTION

        resolved = self._normalizer.resolve_row(columns, fields, description)
        if resolved is None:
            return None

        merchant_cell = _cell(fields, columns.merchant)
        if merchant_cell:
            merchant = merchant_cell
            category = self._classifier.classify(f"{description} {merchant}")
        else:
            merchant = derive_merchant(_cell(fields, columns.description))
            category = self._classifier.classify(description)

        return ParsedTransaction(
            date=coerce_date(
                _cell(fields, columns.date),
                day_first=self._config.day_first,
                clock=self._clock,
            ),
            description=description,
            amount=resolved.amount,
            type=resolved.type,
            merchant=merchant,
            category=category,
        )
