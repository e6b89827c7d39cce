"""
Validation Layer.

Post-extraction checks on the transactions of one ingestion call *before*
the result is handed to the review UI.  The validator never drops or edits
transactions; it only reports.

Checks performed
----------------
1. **Non-finite amounts**: NaN / infinite values are errors.
2. **Magnitude**: amounts above ``max_absolute_amount`` are suspicious.
3. **Zero amounts**: kept by the normalizer, flagged here for review.
4. **Future dates**: transactions dated after today.
5. **Duplicates**: the same date, amount, type and description appearing
   more than once, usually a statement exported twice into one file.
"""

from __future__ import annotations

import datetime as dt
from typing import Sequence

from statement_ingest.config import ValidationConfig
from statement_ingest.date_parser import Clock, system_today
from statement_ingest.logging_setup import get_logger
from statement_ingest.schema import ParsedTransaction

logger = get_logger("validator")


class ValidationReport:
    """Accumulates errors and warnings during a validation pass."""

    def __init__(self) -> None:
        self.errors: list[str] = []
        self.warnings: list[str] = []

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)
        logger.error("Validation ERROR: %s", msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)
        logger.warning("Validation WARNING: %s", msg)


class TransactionValidator:
    """Validates a sequence of ``ParsedTransaction`` objects.

    Parameters
    ----------
    config:
        Validation thresholds and behaviour flags.
    clock:
        Source of "today" for the future-date check.
    """

    def __init__(
        self,
        config: ValidationConfig,
        clock: Clock = system_today,
    ) -> None:
        self._config = config
        self._clock = clock

    def validate(self, transactions: Sequence[ParsedTransaction]) -> ValidationReport:
        """Run all checks and return a ``ValidationReport``."""
        report = ValidationReport()
        today = self._clock()
        for pos, txn in enumerate(transactions, start=1):
            self._check_amount(pos, txn, report)
            self._check_date(pos, txn, today, report)
        if self._config.warn_on_duplicates:
            self._check_duplicates(transactions, report)
        return report

    # ------------------------------------------------------------------ #
    # Individual checks
    # ------------------------------------------------------------------ #

    def _check_amount(
        self, pos: int, txn: ParsedTransaction, report: ValidationReport
    ) -> None:
        if not txn.amount.is_finite():
            report.add_error(f"Transaction {pos} has non-finite amount: {txn.amount}")
            return

        if txn.amount == 0:
            report.add_warning(
                f"Transaction {pos} ({txn.description!r}) has a zero amount"
            )
        elif float(txn.amount) > self._config.max_absolute_amount:
            report.add_warning(
                f"Transaction {pos} amount {txn.amount} exceeds "
                f"max_absolute_amount ({self._config.max_absolute_amount}). "
                f"Possible column mix-up?"
            )

    def _check_date(
        self,
        pos: int,
        txn: ParsedTransaction,
        today: dt.date,
        report: ValidationReport,
    ) -> None:
        if self._config.warn_on_future_dates and txn.date > today:
            report.add_warning(
                f"Transaction {pos} ({txn.description!r}) is dated in the "
                f"future: {txn.date.isoformat()}"
            )

    def _check_duplicates(
        self, transactions: Sequence[ParsedTransaction], report: ValidationReport
    ) -> None:
        seen: dict[tuple, int] = {}  # key → first position
        for pos, txn in enumerate(transactions, start=1):
            key = (txn.date, txn.amount, txn.type, txn.description.strip().lower())
            first = seen.setdefault(key, pos)
            if first != pos:
                report.add_warning(
                    f"Transaction {pos} duplicates transaction {first} "
                    f"({txn.description!r}, {txn.amount} on {txn.date.isoformat()})"
                )
