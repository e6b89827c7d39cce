"""
Amount & Sign Normalization Layer.

Turns raw amount cells into decimals and decides each row's direction.

Transformations applied to a raw amount (in order):
1. Strip currency symbols / codes (₹, Rs., INR, $, €, £, ¥) and whitespace
2. Remove thousands separators (Indian and Western grouping)
3. A trailing ``Dr`` marks a debit (negative), a trailing ``Cr`` a credit
4. Parenthetical negative: ``(123.45)`` → ``-123.45``
5. Parse as ``Decimal``; anything unparseable becomes ``0``

Direction policy, by the columns the header resolved:

* **debit + credit**: compare ``|debit|`` and ``|credit|``.  If both are
  positive the larger wins and a tie goes to expense; if one is positive it
  decides; if both are zero the row is not a transaction.
* **signed amount**: amount is ``|value|``; positive is income, negative is
  expense, exactly zero falls back to the income keyword vocabulary.
* **lone debit or credit**: its absolute value with the implied direction.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Sequence

from statement_ingest.header_resolver import ColumnMap
from statement_ingest.logging_setup import get_logger
from statement_ingest.schema import TransactionType

logger = get_logger("normalizer")

ZERO = Decimal("0")


@dataclass(frozen=True)
class NormalizedAmount:
    amount: Decimal  # always >= 0
    type: TransactionType


def _cell(fields: Sequence[str], idx: Optional[int]) -> str:
    if idx is None or idx >= len(fields):
        return ""
    return fields[idx]


class AmountNormalizer:
    """Stateless amount parser and direction resolver.  All methods are pure."""

    _CURRENCY_RE = re.compile(r"(?:rs\.?|inr|usd|eur|gbp|[₹$€£¥])", re.IGNORECASE)

    # Trailing debit / credit marker: ``1,200.00 Dr``
    _DRCR_SUFFIX_RE = re.compile(r"^(.*?)\s*(dr|cr)\.?$", re.IGNORECASE)

    # Parenthetical negative: ``(1234)`` → ``-1234``
    _PAREN_NEG_RE = re.compile(r"^\((.+)\)$")

    _WHITESPACE_RE = re.compile(r"\s+")

    # Descriptions that indicate money coming in
    _INCOME_HINT_RE = re.compile(
        r"salary|credit|deposit|refund|interest|freelance|commission|receipt",
        re.IGNORECASE,
    )

    # ------------------------------------------------------------------ #
    # Amount parsing
    # ------------------------------------------------------------------ #

    def parse_amount(self, raw: Any) -> Decimal:
        """Parse a raw amount into a signed ``Decimal``; failure yields ``0``.

        Handles:
        * Currency prefixes: ``"₹1,234.50"``, ``"Rs. 45"``
        * Parenthetical negatives: ``"(500)"``
        * ``Dr`` / ``Cr`` suffixes: ``"1,200.00 Dr"``
        * Already-numeric inputs (int / float / Decimal)
        """
        if raw is None or isinstance(raw, bool):
            return ZERO

        if isinstance(raw, Decimal):
            return raw if raw.is_finite() else ZERO

        if isinstance(raw, (int, float)):
            value = Decimal(str(raw))
            return value if value.is_finite() else ZERO

        if not isinstance(raw, str):
            logger.debug("parse_amount: unexpected type %s", type(raw).__name__)
            return ZERO

        text = self._CURRENCY_RE.sub("", raw)
        text = self._WHITESPACE_RE.sub("", text).replace(",", "")
        if not text:
            return ZERO

        negative = False
        m = self._DRCR_SUFFIX_RE.match(text)
        if m:
            text = m.group(1)
            negative = m.group(2).lower() == "dr"

        m = self._PAREN_NEG_RE.match(text)
        if m:
            text = m.group(1)
            negative = True

        try:
            value = Decimal(text)
        except InvalidOperation:
            logger.debug("parse_amount: cannot parse %r", raw)
            return ZERO

        if not value.is_finite():
            return ZERO

        return -abs(value) if negative else value

    # ------------------------------------------------------------------ #
    # Direction resolution
    # ------------------------------------------------------------------ #

    def infer_type_from_text(self, description: str) -> TransactionType:
        """Keyword fallback: income vocabulary → income, anything else expense."""
        if description and self._INCOME_HINT_RE.search(description):
            return TransactionType.INCOME
        return TransactionType.EXPENSE

    def resolve_debit_credit(
        self, raw_debit: Any, raw_credit: Any
    ) -> Optional[NormalizedAmount]:
        """Separate debit and credit columns.  ``None`` means "not a transaction"."""
        d = abs(self.parse_amount(raw_debit))
        c = abs(self.parse_amount(raw_credit))

        if d > 0 and c > 0:
            if d >= c:
                return NormalizedAmount(d, TransactionType.EXPENSE)
            return NormalizedAmount(c, TransactionType.INCOME)
        if d > 0:
            return NormalizedAmount(d, TransactionType.EXPENSE)
        if c > 0:
            return NormalizedAmount(c, TransactionType.INCOME)
        return None

    def resolve_signed(
        self, raw_amount: Any, description: str = ""
    ) -> NormalizedAmount:
        """A single signed amount column."""
        value = self.parse_amount(raw_amount)
        if value > 0:
            return NormalizedAmount(value, TransactionType.INCOME)
        if value < 0:
            return NormalizedAmount(-value, TransactionType.EXPENSE)
        return NormalizedAmount(ZERO, self.infer_type_from_text(description))

    def resolve_row(
        self,
        columns: ColumnMap,
        fields: Sequence[str],
        description: str = "",
    ) -> Optional[NormalizedAmount]:
        """Apply the direction policy to one tokenized row.

        Returns ``None`` when the row carries no transaction (both debit and
        credit empty, or no amount-bearing column resolved at all).
        """
        if columns.has_debit_credit:
            return self.resolve_debit_credit(
                _cell(fields, columns.debit), _cell(fields, columns.credit)
            )

        lone = columns.debit if columns.debit is not None else columns.credit
        if columns.amount is not None and columns.amount != lone:
            return self.resolve_signed(_cell(fields, columns.amount), description)

        if columns.debit is not None:
            d = abs(self.parse_amount(_cell(fields, columns.debit)))
            return NormalizedAmount(d, TransactionType.EXPENSE) if d > 0 else None
        if columns.credit is not None:
            c = abs(self.parse_amount(_cell(fields, columns.credit)))
            return NormalizedAmount(c, TransactionType.INCOME) if c > 0 else None

        return None
