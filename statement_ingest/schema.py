"""
Canonical transaction schema and data models.

Defines the closed vocabularies (canonical columns, categories, directions)
and the typed, immutable records carried through the pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass
import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Tuple


# ---------------------------------------------------------------------------
# Closed vocabularies
# ---------------------------------------------------------------------------

class CanonicalField(str, Enum):
    """Logical columns that tabular headers are mapped onto."""

    DATE = "date"
    DESCRIPTION = "description"
    DEBIT = "debit"
    CREDIT = "credit"
    AMOUNT = "amount"
    MERCHANT = "merchant"


class Category(str, Enum):
    """
    The closed category taxonomy.

    Every ``ParsedTransaction.category`` that is set is a member of this
    enum; classification always terminates with a value (``OTHER``).
    """

    FOOD = "food"
    RENT = "rent"
    SHOPPING = "shopping"
    TRAVEL = "travel"
    SUBSCRIPTIONS = "subscriptions"
    ENTERTAINMENT = "entertainment"
    HEALTHCARE = "healthcare"
    EDUCATION = "education"
    UTILITIES = "utilities"
    TRANSPORT = "transport"
    SALARY = "salary"
    INVESTMENT = "investment"
    OTHER = "other"


def category_lookup(name: str) -> Optional[Category]:
    """Case-insensitive lookup by value."""
    _lower = name.strip().lower()
    for c in Category:
        if c.value == _lower:
            return c
    return None


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class ExtractionMethod(str, Enum):
    STRUCTURAL = "structural"
    GENERATIVE = "generative"
    DETERMINISTIC = "deterministic"


class ConfidenceLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return ("low", "medium", "high").index(self.value)


# ---------------------------------------------------------------------------
# Pipeline Data Models
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ParsedTransaction:
    """One transaction recovered from a source row or a generative record.

    ``amount`` is never negative; direction lives only in ``type``.
    """

    date: dt.date
    description: str
    amount: Decimal
    type: TransactionType
    merchant: Optional[str] = None
    category: Optional[Category] = None

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError(f"amount must be non-negative, got {self.amount}")

    @property
    def is_income(self) -> bool:
        return self.type is TransactionType.INCOME

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "description": self.description,
            "amount": float(self.amount),
            "type": self.type.value,
            "merchant": self.merchant,
            "category": self.category.value if self.category else None,
        }


@dataclass(frozen=True)
class ExtractionResult:
    """Aggregate result of one ingestion call."""

    transactions: Tuple[ParsedTransaction, ...] = ()
    success: bool = False
    method: ExtractionMethod = ExtractionMethod.STRUCTURAL
    error: Optional[str] = None
    error_code: Optional[str] = None
    warnings: Tuple[str, ...] = ()
    skipped_rows: int = 0

    @property
    def total_count(self) -> int:
        return len(self.transactions)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "method": self.method.value,
            "total_count": self.total_count,
            "transactions": [t.to_dict() for t in self.transactions],
            "error": self.error,
            "error_code": self.error_code,
            "warnings": list(self.warnings),
            "skipped_rows": self.skipped_rows,
        }


@dataclass(frozen=True)
class ConfidenceFactors:
    data_completeness: int  # 0–100
    historical_consistency: int  # 0–100
    pattern_strength: int  # 0–100


@dataclass(frozen=True)
class ConfidenceScore:
    """Derived trust summary; recomputed on demand, never persisted."""

    level: ConfidenceLevel
    score: int  # 0–100
    factors: ConfidenceFactors

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level.value,
            "score": self.score,
            "factors": {
                "data_completeness": self.factors.data_completeness,
                "historical_consistency": self.factors.historical_consistency,
                "pattern_strength": self.factors.pattern_strength,
            },
        }


@dataclass(frozen=True)
class ParsedSMSData:
    """Structured reading of a single bank / payment alert message."""

    amount: Decimal
    merchant: str
    payment_method: str
    transaction_type: TransactionType
    category: Category
    description: str
    confidence: int  # 0–100
    date: Optional[dt.date] = None
    method: ExtractionMethod = ExtractionMethod.DETERMINISTIC

    def to_dict(self) -> dict[str, Any]:
        return {
            "amount": float(self.amount),
            "merchant": self.merchant,
            "payment_method": self.payment_method,
            "transaction_type": self.transaction_type.value,
            "category": self.category.value,
            "description": self.description,
            "confidence": self.confidence,
            "date": self.date.isoformat() if self.date else None,
            "method": self.method.value,
        }


class Stage(str, Enum):
    """Named states of the fallback cascade."""

    STRUCTURAL = "structural"
    GENERATIVE = "generative"
    DETERMINISTIC = "deterministic"
    DONE = "done"
