"""
SMS Single-Message Extractor.

Two tiers for one free-text bank / UPI alert:

1. **Generative**: one prompt asking for a single JSON record with a
   self-reported confidence.  The answer is accepted only when it reports a
   positive amount, a merchant other than ``"Unknown"``, and a confidence
   whose level reaches ``SmsConfig.min_generative_level``.
2. **Deterministic**: a regex reading used whenever the generative answer
   is missing, malformed, rejected or cancelled.  It never claims more than
   a low fixed confidence.

The caller therefore never receives a confident result synthesised from a
malformed generative answer.
"""

from __future__ import annotations

import datetime as dt
import re
from decimal import Decimal
from typing import Any, Mapping, Optional, Tuple

from statement_ingest.category_matcher import CategoryMatcher
from statement_ingest.classifier import CategoryClassifier
from statement_ingest.confidence import level_for
from statement_ingest.config import SmsConfig
from statement_ingest.completion_client import CancellationToken
from statement_ingest.date_parser import parse_date
from statement_ingest.errors import GenerativeError, GenerativeSchemaInvalid
from statement_ingest.generative import GenerativeExtractor
from statement_ingest.logging_setup import get_logger
from statement_ingest.normalizer import AmountNormalizer
from statement_ingest.schema import (
    Category,
    ExtractionMethod,
    ParsedSMSData,
    Stage,
    TransactionType,
)

logger = get_logger("sms")

UNKNOWN_MERCHANT = "Unknown"

SMS_PROMPT = """Analyze this Indian banking/UPI SMS and extract transaction details into JSON.

SMS: "{sms}"

RULES:
1. Extract 'amount' (number). Remove ₹/Rs/INR.
2. Identify 'merchant'. If unknown, use "Unknown".
3. Determine 'transactionType' ("income" or "expense").
4. 'category': {categories}.
5. 'paymentMethod': UPI, Card, NetBanking, ATM, or Other.
6. 'date': Extract date as YYYY-MM-DD. If strictly not found, return null.
7. 'confidence': 0-100 score.
8. Return ONE JSON object only.

Example JSON:
{{ "amount": 450, "merchant": "Swiggy", "transactionType": "expense", "category": "food", "paymentMethod": "UPI", "date": "2025-12-25", "confidence": 95 }}
"""

_AMOUNT_PATTERNS: Tuple[re.Pattern, ...] = (
    re.compile(r"(?:\brs\.?|\binr|₹)\s*([0-9,]+(?:\.[0-9]{1,2})?)", re.IGNORECASE),
    re.compile(r"([0-9,]+(?:\.[0-9]{1,2})?)\s*(?:rs\b\.?|inr\b|₹)", re.IGNORECASE),
)

_INCOME_RE = re.compile(r"credited|received|deposited|refund|salary")

_MERCHANT_RE = re.compile(
    r"\b(?:at|to|from|via)\s+(?:vpa\s+)?"
    r"([a-z0-9@&'._-]+(?:\s+[a-z0-9@&'._-]+){0,3}?)"
    r"(?=\s+(?:on|using|for|txn|ref|avl|upi|info)\b|\s*[,;(]|\.\s|\.?$)"
)

_PAYMENT_METHODS: Tuple[Tuple[re.Pattern, str], ...] = (
    (re.compile(r"\bupi\b|\bvpa\b|@"), "UPI"),
    (re.compile(r"\batm\b"), "ATM"),
    (re.compile(r"\bneft\b|\bimps\b|\brtgs\b|net\s?banking"), "NetBanking"),
    (re.compile(r"\bcard\b"), "Card"),
)

_SMS_DATE_RE = re.compile(
    r"\b(\d{1,2}[-/]\d{1,2}[-/]\d{2,4}|\d{1,2}-[a-z]{3}-\d{2,4})\b"
)


def _clamp_confidence(raw: Any) -> int:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return 0
    if value != value:  # NaN
        return 0
    return int(round(min(100.0, max(0.0, value))))


class SmsExtractor:
    """Generative-first, deterministic-fallback reader for one message.

    Parameters
    ----------
    generative:
        Generative extractor; ``None`` means deterministic only.
    config:
        Fallback confidence and acceptance level.
    """

    def __init__(
        self,
        generative: Optional[GenerativeExtractor] = None,
        config: Optional[SmsConfig] = None,
        classifier: Optional[CategoryClassifier] = None,
        category_matcher: Optional[CategoryMatcher] = None,
        normalizer: Optional[AmountNormalizer] = None,
    ) -> None:
        self._generative = generative
        self._config = config or SmsConfig()
        self._classifier = classifier or CategoryClassifier()
        self._matcher = category_matcher or CategoryMatcher()
        self._normalizer = normalizer or AmountNormalizer()

    # ------------------------------------------------------------------ #
    # Entry point
    # ------------------------------------------------------------------ #

    async def parse(
        self, text: str, cancel: Optional[CancellationToken] = None
    ) -> ParsedSMSData:
        """Read one message: GENERATIVE, then DETERMINISTIC if rejected.

        Never raises for service or response problems.
        """
        start = Stage.GENERATIVE if self._generative is not None else Stage.DETERMINISTIC
        stage = start
        result: Optional[ParsedSMSData] = None

        while stage is not Stage.DONE:
            if stage is Stage.GENERATIVE:
                result = await self._try_generative(text, cancel)
                next_stage = Stage.DETERMINISTIC if result is None else Stage.DONE
            elif stage is Stage.DETERMINISTIC:
                result = self.parse_deterministic(text)
                next_stage = Stage.DONE
            else:
                raise ValueError(f"Stage {stage.value!r} does not apply to SMS")

            logger.debug("SMS cascade %s → %s", stage.value, next_stage.value)
            stage = next_stage

        if result is None:
            raise RuntimeError(f"SMS cascade starting at {start.value!r} produced no result")
        return result

    async def _try_generative(
        self, text: str, cancel: Optional[CancellationToken]
    ) -> Optional[ParsedSMSData]:
        try:
            candidate = await self.parse_with_generative(text, cancel)
        except GenerativeError as exc:
            logger.warning("Generative SMS parse failed [%s]: %s", exc.code, exc)
            return None
        reason = self.rejection_reason(candidate)
        if reason is not None:
            logger.info("Generative SMS answer rejected: %s", reason)
            return None
        return candidate

    def rejection_reason(self, candidate: ParsedSMSData) -> Optional[str]:
        """``None`` when the generative answer is acceptable."""
        if candidate.amount <= 0:
            return "non-positive amount"
        if not candidate.merchant or candidate.merchant.lower() == UNKNOWN_MERCHANT.lower():
            return "unknown merchant"
        level = level_for(candidate.confidence)
        if level.rank < self._config.min_generative_level.rank:
            return (
                f"confidence {candidate.confidence} ({level.value}) below "
                f"{self._config.min_generative_level.value}"
            )
        return None

    # ------------------------------------------------------------------ #
    # Tier 1: generative
    # ------------------------------------------------------------------ #

    async def parse_with_generative(
        self, text: str, cancel: Optional[CancellationToken] = None
    ) -> ParsedSMSData:
        """Ask the service for one record and coerce it.

        Raises
        ------
        GenerativeError
            Network failure, cancellation, or a response that is not a
            single JSON object.
        """
        if self._generative is None:
            raise GenerativeSchemaInvalid("No generative extractor configured")

        categories = ", ".join(c.value for c in Category)
        prompt = SMS_PROMPT.format(sms=text.strip(), categories=categories)
        payload = await self._generative.request_json(prompt, cancel)

        if isinstance(payload, list) and len(payload) == 1:
            payload = payload[0]
        if not isinstance(payload, Mapping):
            raise GenerativeSchemaInvalid(
                f"Expected one JSON object, got {type(payload).__name__}"
            )
        return self.coerce_record(payload)

    def coerce_record(self, record: Mapping[str, Any]) -> ParsedSMSData:
        amount = abs(self._normalizer.parse_amount(record.get("amount")))
        merchant = str(record.get("merchant") or "").strip() or UNKNOWN_MERCHANT

        raw_type = str(record.get("transactionType") or "").strip().lower()
        transaction_type = (
            TransactionType.INCOME if raw_type == "income" else TransactionType.EXPENSE
        )

        category = self._matcher.coerce(record.get("category"))
        if category is None:
            category = self._classifier.classify(merchant)

        description = str(record.get("description") or "").strip()
        if not description:
            description = f"{merchant} ({category.value})"

        return ParsedSMSData(
            amount=amount,
            merchant=merchant,
            payment_method=str(record.get("paymentMethod") or "").strip() or "Other",
            transaction_type=transaction_type,
            category=category,
            description=description,
            confidence=_clamp_confidence(record.get("confidence")),
            date=parse_date(record.get("date"), day_first=False),
            method=ExtractionMethod.GENERATIVE,
        )

    # ------------------------------------------------------------------ #
    # Tier 2: deterministic
    # ------------------------------------------------------------------ #

    def parse_deterministic(self, text: str) -> ParsedSMSData:
        """Regex reading of the message with a low fixed confidence."""
        lowered = text.lower()

        amount = self._find_amount(lowered)
        transaction_type = (
            TransactionType.INCOME if _INCOME_RE.search(lowered) else TransactionType.EXPENSE
        )
        merchant = self._find_merchant(lowered)

        category = Category.OTHER
        if merchant != UNKNOWN_MERCHANT:
            category = self._classifier.classify(merchant)
        if category is Category.OTHER:
            category = self._classifier.classify(lowered)

        result = ParsedSMSData(
            amount=amount,
            merchant=merchant,
            payment_method=self._find_payment_method(lowered),
            transaction_type=transaction_type,
            category=category,
            description=merchant if merchant != UNKNOWN_MERCHANT else "Transaction",
            confidence=self._config.fallback_confidence if amount > 0 else 0,
            date=self._find_date(lowered),
            method=ExtractionMethod.DETERMINISTIC,
        )
        logger.info(
            "Deterministic SMS parse: amount=%s merchant=%r type=%s",
            result.amount,
            result.merchant,
            result.transaction_type.value,
        )
        return result

    def _find_amount(self, lowered: str) -> Decimal:
        for pattern in _AMOUNT_PATTERNS:
            m = pattern.search(lowered)
            if m:
                return abs(self._normalizer.parse_amount(m.group(1)))
        return Decimal("0")

    @staticmethod
    def _find_merchant(lowered: str) -> str:
        m = _MERCHANT_RE.search(lowered)
        if not m:
            return UNKNOWN_MERCHANT
        merchant = m.group(1).strip(" .,-")
        return merchant or UNKNOWN_MERCHANT

    @staticmethod
    def _find_payment_method(lowered: str) -> str:
        for pattern, method in _PAYMENT_METHODS:
            if pattern.search(lowered):
                return method
        return "Other"

    @staticmethod
    def _find_date(lowered: str) -> Optional[dt.date]:
        m = _SMS_DATE_RE.search(lowered)
        if not m:
            return None
        return parse_date(m.group(1), day_first=True)
