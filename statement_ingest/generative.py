"""
Generative Fallback Extractor.

Used when the structural parse is inapplicable or empty, and for PDF text.
One bounded prompt is sent to the completion service and the answer is
treated as untrusted input:

    raw text → truncate → prompt → complete() → strip fences → JSON
             → shape check (array, or {"transactions": [...]})
             → per record: coerce date / amount / type / category
             → ParsedTransaction

Nothing from the response reaches a ``ParsedTransaction`` without passing
the coercion step.  Missing or invalid fields are defaulted, never raised:
unparseable dates become "today", non-numeric amounts become 0, and every
amount is made non-negative.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Sequence, Tuple

from statement_ingest.category_matcher import CategoryMatcher
from statement_ingest.classifier import CategoryClassifier
from statement_ingest.completion_client import (
    CancellationToken,
    CompletionClient,
    run_completion,
)
from statement_ingest.config import GenerativeConfig
from statement_ingest.date_parser import Clock, coerce_date, system_today
from statement_ingest.errors import (
    GenerativeError,
    GenerativeSchemaInvalid,
    ZeroTransactionsExtracted,
)
from statement_ingest.json_tools import extract_json
from statement_ingest.logging_setup import get_logger
from statement_ingest.normalizer import AmountNormalizer
from statement_ingest.schema import (
    Category,
    ExtractionMethod,
    ExtractionResult,
    ParsedTransaction,
    TransactionType,
)
from statement_ingest.schema_builder import SchemaBuilder

logger = get_logger("generative")

UNKNOWN = "Unknown"

_EXPENSE_WORDS = frozenset({"debit", "dr", "withdrawal", "expense", "out", "payment"})
_INCOME_WORDS = frozenset({"credit", "cr", "deposit", "income", "in", "salary"})

DOCUMENT_PROMPT = """You are a strict data extraction engine.
Extract every transaction from this bank statement text.

RULES:
1. Return a JSON array ONLY. No prose, no Markdown.
2. Each element: {{"date": "DD-MM-YYYY", "description": string, "amount": number,
   "type": "income" | "expense", "merchant": string, "category": string}}
3. Amount: number only, no currency symbols.
4. Type: MUST be either "income" or "expense".
   - If the text says "Debit", "Dr", "Withdrawal" -> "expense".
   - If the text says "Credit", "Cr", "Deposit" -> "income".
5. Category: one of {categories}.
6. Ignore headers, footers, balances and page markers.

RAW TEXT:
{text}
"""


def truncate_text(text: str, max_chars: int) -> str:
    """Cut *text* to at most *max_chars* characters, preferring a line break."""
    if len(text) <= max_chars:
        return text
    cut = text[:max_chars]
    newline = cut.rfind("\n")
    if newline > max_chars // 2:
        cut = cut[:newline]
    logger.info("Input truncated from %d to %d characters", len(text), len(cut))
    return cut


def records_from_payload(payload: Any) -> List[Any]:
    """Accept a bare array or an object wrapping one under ``transactions``."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, Mapping) and isinstance(payload.get("transactions"), list):
        return payload["transactions"]
    raise GenerativeSchemaInvalid(
        f"Expected a JSON array of transactions, got {type(payload).__name__}"
    )


def _text_field(record: Mapping[str, Any], key: str) -> str:
    value = record.get(key)
    if value is None:
        return ""
    return str(value).strip()


class GenerativeExtractor:
    """Prompt builder, request runner and response validator.

    Parameters
    ----------
    client:
        The external completion service.
    config:
        Prompt limits and timeout.
    category_matcher, classifier, normalizer:
        Coercion helpers; defaults are built when omitted.
    clock:
        "Today" for unparseable dates.
    day_first:
        Date convention for ambiguous numeric dates.
    """

    def __init__(
        self,
        client: CompletionClient,
        config: Optional[GenerativeConfig] = None,
        category_matcher: Optional[CategoryMatcher] = None,
        classifier: Optional[CategoryClassifier] = None,
        normalizer: Optional[AmountNormalizer] = None,
        clock: Clock = system_today,
        day_first: bool = True,
    ) -> None:
        self._client = client
        self._config = config or GenerativeConfig()
        self._matcher = category_matcher or CategoryMatcher()
        self._classifier = classifier or CategoryClassifier()
        self._normalizer = normalizer or AmountNormalizer()
        self._clock = clock
        self._day_first = day_first

    # ------------------------------------------------------------------ #
    # Request
    # ------------------------------------------------------------------ #

    def build_document_prompt(self, raw_text: str) -> str:
        text = truncate_text(raw_text, self._config.max_input_chars)
        categories = ", ".join(c.value for c in Category)
        return DOCUMENT_PROMPT.format(categories=categories, text=text)

    async def request_json(
        self, prompt: str, cancel: Optional[CancellationToken] = None
    ) -> Any:
        """Send one prompt and return the decoded JSON payload.

        Raises
        ------
        GenerativeNetworkFailure, ExtractionCancelled
            From the request itself.
        GenerativeSchemaInvalid
            The response holds no parseable JSON.
        """
        raw = await run_completion(
            self._client,
            prompt,
            timeout_seconds=self._config.timeout_seconds,
            cancel=cancel,
        )
        logger.debug("Raw completion: %r", raw[:500])
        payload = extract_json(raw)
        if payload is None:
            raise GenerativeSchemaInvalid(
                f"Response is not JSON: {raw.strip()[:80]!r}"
            )
        return payload

    # ------------------------------------------------------------------ #
    # Document extraction
    # ------------------------------------------------------------------ #

    async def extract_transactions(
        self,
        raw_text: str,
        cancel: Optional[CancellationToken] = None,
    ) -> ExtractionResult:
        """Extract transactions from unstructured text.

        Never raises for service or response problems; they surface as
        ``success=False`` with ``error`` / ``error_code`` set.
        """
        try:
            payload = await self.request_json(self.build_document_prompt(raw_text), cancel)
            transactions, skipped = self.validate_records(records_from_payload(payload))
            if not transactions:
                raise ZeroTransactionsExtracted(
                    "Generative extraction returned no transactions"
                )
        except (GenerativeError, ZeroTransactionsExtracted) as exc:
            logger.warning("Generative extraction failed [%s]: %s", exc.code, exc)
            return SchemaBuilder.build_failure(exc, ExtractionMethod.GENERATIVE)

        logger.info(
            "Generative extraction complete — transactions=%d, skipped=%d",
            len(transactions),
            skipped,
        )
        return SchemaBuilder.build_result(
            transactions, ExtractionMethod.GENERATIVE, skipped_rows=skipped
        )

    # ------------------------------------------------------------------ #
    # Validation / coercion
    # ------------------------------------------------------------------ #

    def validate_records(
        self, records: Sequence[Any]
    ) -> Tuple[List[ParsedTransaction], int]:
        """Coerce every object-shaped record; other elements are skipped."""
        out: List[ParsedTransaction] = []
        skipped = 0
        for pos, record in enumerate(records):
            if not isinstance(record, Mapping):
                logger.warning("Skipping non-object record %d: %r", pos, record)
                skipped += 1
                continue
            out.append(self.coerce_record(record))
        return out, skipped

    def coerce_type(self, raw_type: Any, signed_amount: Any) -> TransactionType:
        word = str(raw_type or "").strip().lower()
        if word in _EXPENSE_WORDS:
            return TransactionType.EXPENSE
        if word in _INCOME_WORDS:
            return TransactionType.INCOME
        return TransactionType.EXPENSE if signed_amount < 0 else TransactionType.INCOME

    def coerce_category(self, raw_category: Any, text: str) -> Category:
        category = self._matcher.coerce(raw_category)
        if category is None or category is Category.OTHER:
            category = self._classifier.classify(text)
        return category

    def coerce_record(self, record: Mapping[str, Any]) -> ParsedTransaction:
        """Build a ``ParsedTransaction`` from one untrusted record."""
        signed = self._normalizer.parse_amount(record.get("amount"))
        description = _text_field(record, "description") or UNKNOWN
        merchant = _text_field(record, "merchant") or UNKNOWN

        return ParsedTransaction(
            date=coerce_date(record.get("date"), day_first=self._day_first, clock=self._clock),
            description=description,
            amount=abs(signed),
            type=self.coerce_type(record.get("type"), signed),
            merchant=merchant,
            category=self.coerce_category(
                record.get("category"), f"{description} {merchant}"
            ),
        )
